# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Endpoints of the mock OpenID4VCI issuance

A wallet is handed a deep link by `/oidc/issuance`, discovers the issuer through its
well-known configuration and runs authorize, login, token and credential.
"""

import logging
from typing import Annotated

import fastapi
from fastapi import status, Cookie, Form, Header
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from common import parsing

import issuer.config as conf
import issuer.issuance as issuance
import issuer.oidc4vci as oidc4vci
import issuer.cache.repository as repo
import issuer.signer as sig
from issuer import models
from issuer.cache.transient_store import DataNotFoundError, StoreError
from issuer.exception.oidc_errors import InternalError, OIDCErrorBody, NO_STORE_HEADERS

TAG = "OpenID4VCI"

STATE_COOKIE = "state"
STATE_COOKIE_MAX_AGE = 5 * 60
"""Seconds the user has to log in"""

_logger = logging.getLogger(__name__)

router = fastapi.APIRouter(tags=[TAG])

_oidc_error_responses = {
    status.HTTP_400_BAD_REQUEST: {"model": OIDCErrorBody},
    status.HTTP_403_FORBIDDEN: {"model": OIDCErrorBody},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": OIDCErrorBody},
}


@router.post("/oidc/issuance", response_class=PlainTextResponse)
def initiate_issuance(
    issuance_request: models.IssuanceRequest,
    config: conf.inject,
    repository: repo.inject,
) -> PlainTextResponse:
    """
    Sets up a new issuer for the credential and returns the deep link to hand to the wallet.
    """
    try:
        wallet_link = issuance.initiate_issuance(issuance_request, repository, config.wallet_url)
    except StoreError as e:
        _logger.exception("Failed to store issuer server configuration")
        raise InternalError(f"failed to store issuer server configuration : {e}")
    except ValueError as e:
        raise InternalError(f"failed to parse wallet init issuance URL : {e}")
    return PlainTextResponse(wallet_link)


@router.get("/{issuer_id}/.well-known/openid-configuration")
def get_well_known_configuration(issuer_id: str, repository: repo.inject) -> Response:
    try:
        document = repository.get_issuer_configuration(issuer_id)
    except DataNotFoundError:
        raise InternalError(f"failed to read well known configuration : {issuer_id} not found")
    return Response(
        content=document,
        media_type="application/json",
        headers={"Access-Control-Allow-Origin": "*"},
    )


@router.get("/{issuer_id}/oidc/authorize", response_class=RedirectResponse, status_code=status.HTTP_302_FOUND)
def authorize(
    issuer_id: str,
    config: conf.inject,
    repository: repo.inject,
    claims: str = "",
    scope: str = "",
    state: str = "",
    response_type: str = "",
    client_id: str = "",
    redirect_uri: str = "",
):
    """
    https://openid.net/specs/openid-4-verifiable-credential-issuance-1_0-11.html#name-authorization-request

    Redirects to the login page, the authorization is tracked in the `state` cookie.
    """
    auth_state = oidc4vci.authorize(
        repository,
        claims=parsing.path_unescape(claims),
        scope=scope,
        state=state,
        response_type=response_type,
        client_id=client_id,
        redirect_uri=parsing.path_unescape(redirect_uri),
    )
    response = RedirectResponse(config.oidc_login_path, status_code=status.HTTP_302_FOUND)
    response.set_cookie(STATE_COOKIE, auth_state, max_age=STATE_COOKIE_MAX_AGE, expires=STATE_COOKIE_MAX_AGE, path="/")
    return response


@router.get("/oidc/login", include_in_schema=False)
def render_login_page(request: fastapi.Request, config: conf.inject):
    return config.get_template_resource().TemplateResponse(request, config.login_template, {})


@router.post("/oidc/authorize-request", response_class=RedirectResponse, status_code=status.HTTP_302_FOUND)
def send_authorize_response(repository: repo.inject, state: Annotated[str | None, Cookie()] = None):
    """Completes the login, redirects back to the wallet with the authorization code."""
    redirect_to = oidc4vci.send_authorize_response(repository, state)
    return RedirectResponse(redirect_to, status_code=status.HTTP_302_FOUND)


@router.post("/{issuer_id}/oidc/token", responses=_oidc_error_responses)
def token(
    issuer_id: str,
    config: conf.inject,
    repository: repo.inject,
    code: Annotated[str, Form()] = "",
    redirect_uri: Annotated[str, Form()] = "",
    grant_type: Annotated[str, Form()] = "",
) -> models.TokenResponse:
    """
    https://www.rfc-editor.org/rfc/rfc6749#section-4.1.3
    """
    token_response = oidc4vci.exchange_code(
        repository,
        issuer_id,
        code=code,
        redirect_uri=redirect_uri,
        grant_type=grant_type,
        single_use_codes=config.single_use_auth_codes,
    )
    return JSONResponse(token_response.model_dump(), headers=NO_STORE_HEADERS)


@router.post("/{issuer_id}/oidc/credential", responses=_oidc_error_responses)
def credential(
    issuer_id: str,
    repository: repo.inject,
    signer: sig.inject,
    format: Annotated[str, Form()] = "",
    authorization: Annotated[str | None, Header()] = None,
) -> models.CredentialResponse:
    """
    https://openid.net/specs/openid-4-verifiable-credential-issuance-1_0-11.html#name-credential-endpoint

    Delivers the credential of the issuer signed with an `Ed25519Signature2018` proof.
    """
    credential_response = oidc4vci.deliver_credential(repository, signer, issuer_id, format, authorization)
    return JSONResponse(credential_response.model_dump(), headers=NO_STORE_HEADERS)
