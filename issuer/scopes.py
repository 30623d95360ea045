# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Registry of the credential scopes a DIDComm connection can be initiated for,
and of the CMS collections holding the assurance data of those scopes.

Seeded from `DIDCOMM_SCOPES` and `ASSURANCE_SCOPES`, changed through the admin api only.
"""

import logging
import threading
from typing import Annotated
from functools import cache

from fastapi import Depends

from issuer import models
from issuer.config import IssuerConfig

_logger = logging.getLogger(__name__)


class ScopeRegistry:
    def __init__(self, didcomm_scopes: list[str] | None = None, assurance_scopes: dict[str, str] | None = None) -> None:
        self._lock = threading.Lock()
        self._didcomm_scopes: set[str] = set(didcomm_scopes or [])
        self._assurance_scopes: dict[str, str] = dict(assurance_scopes or {})
        # Assurance data is only served for registered scopes
        self._didcomm_scopes.update(self._assurance_scopes.keys())

    def register(self, scope: str, assurance_scope: str | None = None) -> None:
        with self._lock:
            self._didcomm_scopes.add(scope)
            if assurance_scope:
                self._assurance_scopes[scope] = assurance_scope
        _logger.info(f"Registered DIDComm scope {scope}")

    def unregister(self, scope: str) -> bool:
        """Returns False if the scope was not registered"""
        with self._lock:
            if scope not in self._didcomm_scopes:
                return False
            self._didcomm_scopes.discard(scope)
            self._assurance_scopes.pop(scope, None)
        _logger.info(f"Unregistered DIDComm scope {scope}")
        return True

    def is_registered(self, scope: str) -> bool:
        with self._lock:
            return scope in self._didcomm_scopes

    def filter_registered(self, scopes: str) -> list[str]:
        """Registered scopes of a space separated OAuth2 scope string, in their order"""
        with self._lock:
            return [scope for scope in scopes.split(" ") if scope in self._didcomm_scopes]

    def assurance_scope_for(self, scopes: list[str]) -> str | None:
        """Assurance collection of the first scope having one"""
        with self._lock:
            for scope in scopes:
                if scope in self._assurance_scopes:
                    return self._assurance_scopes[scope]
        return None

    def snapshot(self) -> models.ScopesSnapshot:
        with self._lock:
            return models.ScopesSnapshot(
                didcomm_scopes=sorted(self._didcomm_scopes),
                assurance_scopes=dict(self._assurance_scopes),
            )


@cache
def get_scope_registry() -> ScopeRegistry:
    config = IssuerConfig()
    return ScopeRegistry(config.didcomm_scopes, config.assurance_scopes)


inject = Annotated[ScopeRegistry, Depends(get_scope_registry)]
