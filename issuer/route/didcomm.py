# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Hand over of user data to the DIDComm issuer adapter.

The user is redirected to the adapter with a `state`, which the adapter trades for a token
at `/didcomm/token`. The token grants access to the user data and its assurance data.
Adapters holding an OAuth2 access token of the user instead use it as Bearer token.
"""

import uuid
import logging
import urllib.parse
from typing import Annotated

import fastapi
import jinja2
from fastapi import status, Body, Cookie, Header, Query
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from common import httpx_wrapper

import issuer.config as conf
import issuer.scopes as scopes
import issuer.cache.repository as repo
import issuer.clients.cms as cms
import issuer.clients.oauth as oauth
from issuer import models
from issuer.credential import VC_METADATA, VC_CREDENTIAL_SUBJECT
from issuer.cache.transient_store import DataNotFoundError, StoreError
from issuer.exception.oidc_errors import PlainTextError, InvalidRequestError, InternalError
from issuer.logging import IssuerOperationsLogEntry

TAG = "DIDComm"

ADAPTER_PROFILE_COOKIE = "adapterProfile"
ASSURANCE_SCOPE_COOKIE = "assuranceScope"

_logger = logging.getLogger(__name__)

router = fastapi.APIRouter(tags=[TAG])


def _log(message: str, success: bool = True) -> None:
    entry = IssuerOperationsLogEntry(
        message=message,
        status=IssuerOperationsLogEntry.Status.success if success else IssuerOperationsLogEntry.Status.error,
        operation=IssuerOperationsLogEntry.Operation.issuance,
        step=IssuerOperationsLogEntry.Step.didcomm,
    )
    if success:
        _logger.info(entry)
    else:
        _logger.error(entry)


def _has_bearer_token(authorization: str | None) -> bool:
    return bool(authorization) and authorization.startswith("Bearer ")


def _introspect(token_resolver: oauth.TokenResolver, authorization: str | None) -> tuple[models.Introspection, str]:
    """
    Resolves the Bearer token of the request.
    Returns the introspection and the raw access token.
    """
    if not _has_bearer_token(authorization):
        _logger.info("Rejected request lacking Bearer token")
        raise PlainTextError("missing bearer token", status.HTTP_401_UNAUTHORIZED, headers={"WWW-Authenticate": "Bearer"})
    access_token = authorization.removeprefix("Bearer ")

    try:
        info = token_resolver.resolve(access_token)
    except httpx_wrapper.REQUEST_ERRORS as e:
        raise InvalidRequestError(f"failed to get token info: {e}")

    if not info.active:
        _logger.info("Rejected request with invalid token")
        raise PlainTextError('Bearer error="invalid_token"', status.HTTP_401_UNAUTHORIZED)
    return info, access_token


def _load_user_data(repository: repo.IssuanceRepository, data_request: models.AdapterDataRequest | None) -> models.UserDataMap:
    if data_request is None:
        raise InvalidRequestError("invalid request: missing token")
    try:
        return repository.get_user_data(data_request.token)
    except DataNotFoundError as e:
        raise InvalidRequestError(f"failed to get token data : {e}")
    except repo.CorruptRecordError as e:
        raise InternalError(f"user data unmarshal failed : {e}")


def _hand_over(
    config: conf.IssuerConfig,
    repository: repo.IssuanceRepository,
    user_id: str,
    subject: dict,
    adapter_profile: str,
    assurance_scope: str | None,
) -> RedirectResponse:
    state = str(uuid.uuid4())
    try:
        repository.put_user_data(state, models.UserDataMap(id=user_id, data=subject, assurance_scope=assurance_scope or ""))
    except StoreError as e:
        raise InternalError(f"failed to store state subject mapping : {e}")

    _log(f"User data handed over to adapter profile {adapter_profile}")
    return RedirectResponse(
        f"{config.issuer_adapter_url}/{adapter_profile}/connect/wallet?state={state}",
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/didcomm/init", response_class=RedirectResponse, status_code=status.HTTP_302_FOUND)
def initiate_connection(
    config: conf.inject,
    registry: scopes.inject,
    adapter_profile: Annotated[str, Query(alias="adapterProfile")] = "",
    didcomm_scope: Annotated[str, Query(alias="didCommScope")] = "",
):
    """Initiates a DIDComm connection from the issuer adapter to the wallet of the user"""
    if not adapter_profile:
        raise InvalidRequestError("missing adapterProfile")
    if not didcomm_scope:
        raise InvalidRequestError("missing didCommScope")
    if not registry.is_registered(didcomm_scope):
        _log(f"DIDComm connection requested for unregistered scope {didcomm_scope}", success=False)
        raise InvalidRequestError(f"unsupported didCommScope: {didcomm_scope}")

    return RedirectResponse(
        f"{config.issuer_adapter_url}/{adapter_profile}/connect/wallet?cred={didcomm_scope}",
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/didcomm/cb", response_class=HTMLResponse, include_in_schema=False)
def render_connected_page(request: fastapi.Request, config: conf.inject):
    try:
        return config.get_template_resource().TemplateResponse(request, config.didcomm_template, {})
    except jinja2.TemplateNotFound:
        _logger.exception(f"DIDComm Template not found: {config.template_directory}/{config.didcomm_template}")
        raise InternalError("unable to load didcomm html")


@router.get("/getCreditScore", response_class=RedirectResponse, status_code=status.HTTP_302_FOUND)
def get_credit_score(
    config: conf.inject,
    repository: repo.inject,
    cms_client: cms.inject,
    given_name: Annotated[str, Query(alias="givenName")] = "",
    family_name: Annotated[str, Query(alias="familyName")] = "",
    didcomm_scope: Annotated[str, Query(alias="didCommScope")] = "",
    adapter_profile: Annotated[str, Query(alias="adapterProfile")] = "",
    adapter_profile_cookie: Annotated[str | None, Cookie(alias=ADAPTER_PROFILE_COOKIE)] = None,
    assurance_scope_cookie: Annotated[str | None, Cookie(alias=ASSURANCE_SCOPE_COOKIE)] = None,
):
    """Looks the user up by name and hands the data of the scope over to the issuer adapter"""
    if not given_name or not family_name or not didcomm_scope:
        raise InvalidRequestError("givenName, familyName and didCommScope are mandatory")

    adapter_profile = adapter_profile or adapter_profile_cookie
    if not adapter_profile:
        raise InvalidRequestError("failed to get adapterProfile")

    search_query = urllib.parse.urlencode({"name": f"{given_name} {family_name}"})
    try:
        user_id, subject = cms_client.get_subject_data(search_query, didcomm_scope)
    except httpx_wrapper.REQUEST_ERRORS as e:
        raise InvalidRequestError(f"failed to get cms data: {e}")

    return _hand_over(config, repository, user_id, subject, adapter_profile, assurance_scope_cookie)


@router.post("/didcomm/token")
def create_adapter_token(
    token_request: models.AdapterTokenRequest,
    repository: repo.inject,
) -> models.AdapterTokenResponse:
    """Trades the `state` of the hand over for a token granting access to the user data"""
    try:
        user_data = repository.get_user_data(token_request.state)
    except DataNotFoundError as e:
        raise InvalidRequestError(f"invalid state : {e}")
    except repo.CorruptRecordError as e:
        raise InternalError(f"failed to read user state info : {e}")

    token = str(uuid.uuid4())
    try:
        repository.put_user_data(token, user_data)
    except StoreError as e:
        raise InternalError(f"failed to store adapter token and userID mapping : {e}")

    _log("Adapter token created")
    return models.AdapterTokenResponse(token=token, userid=user_data.id)


@router.post("/didcomm/data")
def get_user_data(
    repository: repo.inject,
    registry: scopes.inject,
    token_resolver: oauth.inject_token_resolver,
    cms_client: cms.inject,
    data_request: Annotated[models.AdapterDataRequest | None, Body()] = None,
    authorization: Annotated[str | None, Header()] = None,
) -> JSONResponse:
    """User data of an adapter token, or of the user of a Bearer access token"""
    if not _has_bearer_token(authorization):
        return JSONResponse(_load_user_data(repository, data_request).data)

    info, access_token = _introspect(token_resolver, authorization)
    credential_scopes = " ".join(registry.filter_registered(info.scope))
    if not credential_scopes:
        raise InternalError("no valid credential scope")

    try:
        _, subject = cms_client.get_subject_data(f"email={info.subject}", credential_scopes, token=access_token)
    except httpx_wrapper.REQUEST_ERRORS as e:
        raise InternalError(f"failed to get cms data: {e}")

    subject.pop(VC_METADATA, None)
    subject.pop(VC_CREDENTIAL_SUBJECT, None)
    return JSONResponse(subject)


@router.post("/didcomm/assurance")
def get_assurance_data(
    repository: repo.inject,
    registry: scopes.inject,
    token_resolver: oauth.inject_token_resolver,
    cms_client: cms.inject,
    data_request: Annotated[models.AdapterDataRequest | None, Body()] = None,
    authorization: Annotated[str | None, Header()] = None,
) -> JSONResponse:
    """Assurance data of an adapter token, or of the user of a Bearer access token"""
    if not _has_bearer_token(authorization):
        user_data = _load_user_data(repository, data_request)
        user_id, assurance_scope = user_data.id, user_data.assurance_scope
        if not assurance_scope:
            raise InternalError("no assurance scope for token")
    else:
        info, access_token = _introspect(token_resolver, authorization)
        try:
            user_id = cms_client.get_user(f"email={info.subject}", token=access_token).userid
        except httpx_wrapper.REQUEST_ERRORS as e:
            raise InternalError(f"failed to get cms user: {e}")

        credential_scopes = registry.filter_registered(info.scope)
        assurance_scope = registry.assurance_scope_for(credential_scopes)
        if not assurance_scope:
            raise InternalError(f"no assurance scope for credential scopes {credential_scopes}")

    try:
        assurance_data = cms_client.get_user_data(assurance_scope, user_id)
    except httpx_wrapper.REQUEST_ERRORS as e:
        raise InternalError(f"failed to get assurance data : {e}")
    return JSONResponse(assurance_data)


@router.get("/didcomm/uid", response_model_exclude_none=True)
def get_user_id(
    token_resolver: oauth.inject_token_resolver,
    cms_client: cms.inject,
    authorization: Annotated[str | None, Header()] = None,
) -> models.AdapterTokenResponse:
    """CMS user id of the user of a Bearer access token"""
    info, access_token = _introspect(token_resolver, authorization)
    try:
        user = cms_client.get_user(f"email={info.subject}", token=access_token)
    except httpx_wrapper.REQUEST_ERRORS as e:
        raise InternalError(f"failed to get cms user: {e}")
    return models.AdapterTokenResponse(userid=user.userid)
