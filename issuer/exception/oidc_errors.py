# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Errors raised by the issuance endpoints.

The mock OpenID endpoints (token & credential) answer with a compact JSON envelope
`{"error": "<message>"}` and the cache headers of https://www.rfc-editor.org/rfc/rfc6749#section-5.1,
all other endpoints answer with the message as plain text.
"""

from fastapi import HTTPException, status
from pydantic import BaseModel

NO_STORE_HEADERS = {
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
}


class OIDCErrorBody(BaseModel):
    """Error envelope of the mock OpenID endpoints."""

    error: str


class OIDCError(HTTPException):
    """Error of the mock OpenID token and credential endpoints."""

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST) -> None:
        super().__init__(status_code, message, headers=dict(NO_STORE_HEADERS))
        self.message = message

    def body(self) -> OIDCErrorBody:
        return OIDCErrorBody(error=self.message)


class PlainTextError(HTTPException):
    """Error rendered as `text/plain` with the message as body."""

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST, headers: dict[str, str] | None = None) -> None:
        super().__init__(status_code, message, headers=headers)
        self.message = message


class InvalidRequestError(PlainTextError):
    """A required request parameter is missing or malformed."""

    def __init__(self, message: str = "Invalid Request") -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class InternalError(PlainTextError):
    """A collaborator or the store failed while processing the request."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)
