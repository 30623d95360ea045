# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import logging

from fastapi import Request, FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.exceptions import RequestValidationError

from .oidc_errors import OIDCError, PlainTextError

_logger = logging.getLogger(__name__)


def configure_exception_handlers(app: FastAPI) -> None:
    """
    Configure exception handlers on the FastAPI app instance.
    Changes 422 Unprocessable Entity to 400 Bad Request and renders the issuer errors.

    Args:
        app (FastAPI): the instance to configure the handlers for.
    """

    @app.exception_handler(OIDCError)
    async def oidc_exception_handler(request: Request, exc: OIDCError):
        _logger.warning(f"{request.method} {request.url.path} failed with {exc.status_code}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            headers=exc.headers,
            content=exc.body().model_dump(),
        )

    @app.exception_handler(PlainTextError)
    async def plain_text_exception_handler(request: Request, exc: PlainTextError):
        _logger.warning(f"{request.method} {request.url.path} failed with {exc.status_code}: {exc.message}")
        return PlainTextResponse(exc.message, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def invalid_request_exception_handler(request: Request, exc: RequestValidationError):
        """
        Recasts validation errors to plain 400 responses
        """
        return await plain_text_exception_handler(request, PlainTextError(f"failed to decode request: {exc.errors()}"))
