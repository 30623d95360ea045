# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from fastapi import Security, HTTPException, status
from fastapi.security import APIKeyHeader

from common import config

API_KEY_HEADER = "x-api-key"

_api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


def require_api_key(conf: config.inject, api_key: str | None = Security(_api_key_header)) -> None:
    """Guards the administrative endpoints with the configured `API_KEY`."""
    if not api_key or api_key != conf.api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or missing API Key")
