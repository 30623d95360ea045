# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Splunk compatible JSON log format.

Every record is rendered as a single JSON line containing at least
`@timestamp`, `level`, `message`, `hash` (correlation id) and `app`.
Records logged with a `SplunkExtendedLogEntry` as message additionally
carry all fields of the entry on top level.
"""

import datetime
import json
import logging
from enum import Enum

from pydantic import BaseModel


class SplunkExtendedLogEntry(BaseModel):
    """Structured log message. Pass an instance directly to the logger."""

    message: str

    def fields(self) -> dict[str, object]:
        """Fields of the entry excluding the message, enums resolved to their values."""
        return {
            key: value.value if isinstance(value, Enum) else value
            for key, value in self.model_dump(exclude={"message"}, exclude_none=True).items()
        }

    def __str__(self) -> str:
        details = " ".join(f"{key}={value}" for key, value in self.fields().items())
        return f"{self.message} {details}" if details else self.message


class SplunkFormatter(logging.Formatter):
    def __init__(self, defaults: dict[str, str] | None = None) -> None:
        """
        * defaults: fallback values for `app_name` and `correlation_id` if the record does not provide them
        """
        super().__init__()
        self._defaults = defaults or {}

    def _lookup(self, record: logging.LogRecord, name: str) -> str | None:
        value = getattr(record, name, None)
        if value in (None, "-"):
            value = self._defaults.get(name)
        return value

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.datetime.fromtimestamp(record.created).astimezone()
        data: dict[str, object] = {
            "@timestamp": timestamp.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "message": record.getMessage(),
            "hash": self._lookup(record, "correlation_id"),
            "app": self._lookup(record, "app_name"),
            "logger": record.name,
        }
        if isinstance(record.msg, SplunkExtendedLogEntry):
            data.update(record.msg.fields())
        if record.exc_info:
            data["stack_trace"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)
