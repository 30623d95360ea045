# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Admin Functions to configure the DIDComm scopes and to inspect running authorizations
"""
import fastapi
from fastapi import HTTPException, status

from common.apikey import require_api_key
from common.model.exception import HTTPError

from issuer import models
import issuer.scopes as scopes
import issuer.cache.repository as repo
from issuer.cache.transient_store import DataNotFoundError

TAG = "Admin"

router = fastapi.APIRouter(prefix="/admin", dependencies=[fastapi.Security(require_api_key)], tags=[TAG])


@router.get("/scopes")
def get_scopes(registry: scopes.inject) -> models.ScopesSnapshot:
    return registry.snapshot()


@router.put("/scopes/didcomm/{scope}")
def register_scope(scope: str, registry: scopes.inject, assurance_scope: str | None = None) -> models.ScopesSnapshot:
    """
    Allows DIDComm connections for the credential scope.
    With `assurance_scope` the assurance data of the scope is read from that CMS collection.
    """
    registry.register(scope, assurance_scope)
    return registry.snapshot()


@router.delete("/scopes/didcomm/{scope}", responses={status.HTTP_404_NOT_FOUND: {"model": HTTPError}})
def unregister_scope(scope: str, registry: scopes.inject) -> models.ScopesSnapshot:
    if not registry.unregister(scope):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Scope {scope} is not registered")
    return registry.snapshot()


@router.get("/flow/{auth_state}", responses={status.HTTP_404_NOT_FOUND: {"model": HTTPError}})
def get_flow_state(auth_state: str, repository: repo.inject) -> models.FlowStateResponse:
    """Progress of an authorization of the mock OpenID issuance"""
    try:
        flow_state = repository.get_flow_state(auth_state)
    except DataNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Authorization {auth_state} not found")
    return models.FlowStateResponse(auth_state=auth_state, flow_state=flow_state)
