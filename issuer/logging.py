# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from enum import Enum

from common.logging import operations


class IssuerOperationsLogEntry(operations.OperationsLogEntry):
    """Container for issuer operations specific logging. Never put user identifying data in here."""

    class Operation(Enum):
        issuance = "ISSUANCE"
        authorization = "AUTHORIZATION"
        revocation = "REVOCATION"

    class Step(Enum):
        initiation = "INITIATION"
        authorize = "AUTHORIZE"
        authorize_response = "AUTHORIZE_RESPONSE"
        token = "TOKEN"
        delivery = "DELIVERY"
        assembly = "ASSEMBLY"
        vcs_issue = "VCS_ISSUE"
        didcomm = "DIDCOMM"
        event = "EVENT"
        oidc_login = "OIDC_LOGIN"
        did_auth = "DID_AUTH"
        vcs_status = "VCS_STATUS"

    operation: Operation
    step: Step
