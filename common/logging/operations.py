# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from enum import Enum

from common.logging import splunk


class OperationsLogEntry(splunk.SplunkExtendedLogEntry):
    """Container for operations specific logging."""

    class Status(Enum):
        """Enum detailing the state operations can be in."""

        success = "SUCCESS"
        error = "ERROR"

    class Operation(Enum):
        """
        Enum detailing which operations the component supports.

        Enums can not be extended, child classes redefine this enum with their own operations.
        """

        only_test = "ONLY_TEST"

    class Step(Enum):
        """
        Enum detailing which steps in the operations are available.

        Child classes redefine this enum with their own steps.
        """

        only_test = "ONLY_TEST"

    status: Status
    operation: Operation
    step: Step
