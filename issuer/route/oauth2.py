# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
OpenID Connect login of the DIDComm presentation demo.

The web page requests an authentication url for a scope, the provider returns the user
to the callback which shows the verified id token claims.
Failures of the callback are shown on the same page.
"""

import json
import uuid
import logging

import fastapi
import jinja2
from fastapi.responses import HTMLResponse

from common import httpx_wrapper

import issuer.config as conf
import issuer.cache.repository as repo
import issuer.clients.oidc as oidc
from issuer import models
from issuer.cache.transient_store import StoreError
from issuer.exception.oidc_errors import InvalidRequestError, InternalError
from issuer.logging import IssuerOperationsLogEntry

TAG = "OpenID Connect"

_logger = logging.getLogger(__name__)

router = fastapi.APIRouter(tags=[TAG])


def _log(message: str, success: bool = True) -> None:
    entry = IssuerOperationsLogEntry(
        message=message,
        status=IssuerOperationsLogEntry.Status.success if success else IssuerOperationsLogEntry.Status.error,
        operation=IssuerOperationsLogEntry.Operation.authorization,
        step=IssuerOperationsLogEntry.Step.oidc_login,
    )
    if success:
        _logger.info(entry)
    else:
        _logger.error(entry)


def _render_result(request: fastapi.Request, config: conf.IssuerConfig, data: str) -> HTMLResponse:
    try:
        return config.get_template_resource().TemplateResponse(request, config.didcomm_vp_template, {"data": data})
    except jinja2.TemplateNotFound:
        _logger.exception(f"Presentation Template not found: {config.template_directory}/{config.didcomm_vp_template}")
        raise InternalError("unable to load html")


@router.get("/oauth2/request")
def create_oidc_request(
    oidc_client: oidc.inject,
    repository: repo.inject,
    scope: str = "",
) -> models.OIDCRequestResponse:
    """Authentication url at the provider, the state is remembered for the callback"""
    if not scope:
        raise InvalidRequestError("missing scope")

    state = str(uuid.uuid4())
    try:
        redirect_url = oidc_client.create_request(state, scope)
    except ValueError as e:
        raise InternalError(f"failed to create oidc request : {e}")

    try:
        repository.put_oidc_state(state)
    except StoreError as e:
        raise InternalError(f"failed to write state to transient store : {e}")

    return models.OIDCRequestResponse(request=redirect_url)


@router.get("/oauth2/callback", response_class=HTMLResponse)
def handle_oidc_callback(
    request: fastapi.Request,
    config: conf.inject,
    repository: repo.inject,
    oidc_client: oidc.inject,
    state: str = "",
    code: str = "",
):
    if not state:
        _log("OIDC callback without state", success=False)
        return _render_result(request, config, "missing state")
    if not code:
        _log("OIDC callback without code", success=False)
        return _render_result(request, config, "missing code")

    try:
        known = repository.has_oidc_state(state)
    except StoreError as e:
        _logger.exception("Looking up the oidc state failed")
        return _render_result(request, config, f"failed to query transient store for state : {e}")
    if not known:
        _log("OIDC callback with unknown state", success=False)
        return _render_result(request, config, "invalid state parameter")

    try:
        claims = oidc_client.handle_callback(code)
    except httpx_wrapper.REQUEST_ERRORS as e:
        _log(f"OIDC callback failed: {e}", success=False)
        return _render_result(request, config, f"failed to handle oidc callback: {e}")

    _log("OIDC login completed")
    return _render_result(request, config, json.dumps(claims))
