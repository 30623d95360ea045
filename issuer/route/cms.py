# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Issuance of CMS held credentials through the vc service.

The user logs in at the identity provider guarding the CMS, the CMS record matching
the login is assembled into a credential which the vc service signs for the holder.
"""

import uuid
import urllib.parse
import logging
from typing import Annotated

import fastapi
import jinja2
from fastapi import status, Cookie, Query
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from common import httpx_wrapper

import issuer.config as conf
import issuer.cache.repository as repo
import issuer.clients.cms as cms
import issuer.clients.oauth as oauth
import issuer.clients.vcs as vcs
from issuer import models
from issuer.credential import prepare_credential, CredentialAssemblyError, EXTERNAL_SUBJECT_DATA_SCOPE, VC_CREDENTIAL_SUBJECT
from issuer.cache.transient_store import DataNotFoundError, StoreError
from issuer.exception.oidc_errors import PlainTextError, InvalidRequestError, InternalError
from issuer.logging import IssuerOperationsLogEntry

TAG = "CMS Issuance"

VCS_PROFILE_COOKIE = "vcsProfile"
CALLBACK_URL_COOKIE = "callbackURL"
COOKIE_MAX_AGE = 24 * 60 * 60

_logger = logging.getLogger(__name__)

router = fastapi.APIRouter(tags=[TAG])


def _scope_for_login(scope: str) -> str:
    # The external data source is guarded by the permanent resident card scope
    return "PermanentResidentCard" if scope == EXTERNAL_SUBJECT_DATA_SCOPE else scope


def _issue(vcs_client: vcs.VCSClient, subject: dict, scope: str, vcs_profile: str, holder: str) -> Response:
    try:
        unsigned = prepare_credential(subject, scope, vcs_profile, vcs_client)
    except CredentialAssemblyError as e:
        raise InternalError(f"failed to create credential: {e}")

    try:
        signed = vcs_client.issue_credential(vcs_profile, holder, unsigned)
    except httpx_wrapper.REQUEST_ERRORS as e:
        _logger.error(
            IssuerOperationsLogEntry(
                message=f"Signing through vcs profile {vcs_profile} failed",
                status=IssuerOperationsLogEntry.Status.error,
                operation=IssuerOperationsLogEntry.Operation.issuance,
                step=IssuerOperationsLogEntry.Step.vcs_issue,
            )
        )
        raise InternalError(f"failed to sign credential: {e}")

    _logger.info(
        IssuerOperationsLogEntry(
            message=f"Credential issued through vcs profile {vcs_profile}",
            status=IssuerOperationsLogEntry.Status.success,
            operation=IssuerOperationsLogEntry.Operation.issuance,
            step=IssuerOperationsLogEntry.Step.vcs_issue,
        )
    )
    return Response(content=signed, media_type="application/json")


@router.get("/login", response_class=RedirectResponse, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
def login(
    token_issuer: oauth.inject_token_issuer,
    scope: str = "",
    vcs_profile: Annotated[str, Query(alias="vcsProfile")] = "",
):
    """Redirects to the identity provider, the vc service profile to issue with is kept in a cookie"""
    if not vcs_profile:
        raise InvalidRequestError("vcs profile is empty")

    redirect_to = token_issuer.auth_code_url()
    if scope:
        redirect_to += f"&scope={_scope_for_login(scope)}"

    response = RedirectResponse(redirect_to, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    response.set_cookie(VCS_PROFILE_COOKIE, vcs_profile, max_age=COOKIE_MAX_AGE)
    response.set_cookie(CALLBACK_URL_COOKIE, "", max_age=COOKIE_MAX_AGE)
    return response


@router.get("/settings", response_class=RedirectResponse, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
def settings(config: conf.inject, vcs_profile: Annotated[str, Query(alias="vcsProfile")] = ""):
    """Selects the vc service profile for the following issuance, then returns to the home page"""
    if not vcs_profile:
        raise InvalidRequestError("vcs profile is empty")

    response = RedirectResponse(config.home_page, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    response.set_cookie(VCS_PROFILE_COOKIE, vcs_profile, max_age=COOKIE_MAX_AGE)
    return response


@router.get("/auth", response_class=RedirectResponse, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
def auth(
    token_issuer: oauth.inject_token_issuer,
    scope: str = "",
    callback_url: Annotated[str, Query(alias="callbackURL")] = "",
    referrer: str = "",
):
    """Login for relying web apps, which receive a `txnID` on their callback url instead of the credential"""
    for name, value in [("scope", scope), ("callbackURL", callback_url), ("referrer", referrer)]:
        if not value:
            raise InvalidRequestError(f"{name} is mandatory")

    login_url = f"{token_issuer.auth_code_url()}&scope={scope}"
    redirect_page = router.url_path_for("render_redirect_page", referrer=referrer)
    response = RedirectResponse(
        f"{redirect_page}?{urllib.parse.urlencode({'url': login_url})}",
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    )
    response.set_cookie(CALLBACK_URL_COOKIE, callback_url, max_age=COOKIE_MAX_AGE)
    return response


@router.get("/oidc/redirect/{referrer}", response_class=HTMLResponse, include_in_schema=False)
def render_redirect_page(request: fastapi.Request, referrer: str, config: conf.inject, url: str = ""):
    """Client side redirect keeping the referrer of the relying web app"""
    if not url:
        raise InvalidRequestError("url is mandatory")
    try:
        return config.get_template_resource().TemplateResponse(request, config.redirect_template, {"url": url})
    except jinja2.TemplateNotFound:
        _logger.exception(f"Redirect Template not found: {config.template_directory}/{config.redirect_template}")
        raise InternalError("unable to load html")


@router.get("/callback")
def callback(
    config: conf.inject,
    repository: repo.inject,
    token_issuer: oauth.inject_token_issuer,
    token_resolver: oauth.inject_token_resolver,
    cms_client: cms.inject,
    vcs_client: vcs.inject,
    code: str = "",
    error: str = "",
    vcs_profile: Annotated[str | None, Cookie(alias=VCS_PROFILE_COOKIE)] = None,
    callback_url: Annotated[str | None, Cookie(alias=CALLBACK_URL_COOKIE)] = None,
):
    """OAuth2 callback of the identity provider"""
    if error == "access_denied":
        return RedirectResponse(config.home_page, status_code=status.HTTP_307_TEMPORARY_REDIRECT)

    if vcs_profile is None:
        raise InvalidRequestError("failed to get cookie: vcsProfile")

    try:
        access_token = token_issuer.exchange(code)
    except httpx_wrapper.REQUEST_ERRORS as e:
        raise InvalidRequestError(f"failed to exchange code for token while getting data from cms : {e}")

    try:
        info = token_resolver.resolve(access_token)
    except httpx_wrapper.REQUEST_ERRORS as e:
        raise InvalidRequestError(f"failed to get token info: {e}")

    try:
        user_id, subject = cms_client.get_subject_data(f"email={info.subject}", info.scope, token=access_token)
    except httpx_wrapper.REQUEST_ERRORS as e:
        raise InvalidRequestError(f"failed to get cms data: {e}")

    if callback_url:
        txn_id = str(uuid.uuid4())
        try:
            repository.put_txn_data(txn_id, models.TxnData(user_id=user_id, scope=info.scope, token=access_token))
        except StoreError as e:
            raise InternalError(f"failed to save txn data: {e}")
        return RedirectResponse(f"{callback_url}?txnID={txn_id}", status_code=status.HTTP_307_TEMPORARY_REDIRECT)

    try:
        unsigned = prepare_credential(subject, info.scope, vcs_profile, vcs_client)
    except CredentialAssemblyError as e:
        raise InternalError(f"failed to create credential: {e}")
    return Response(content=unsigned, media_type="application/json")


@router.get("/search")
def search(
    repository: repo.inject,
    cms_client: cms.inject,
    txn_id: Annotated[str, Query(alias="txnID")] = "",
) -> dict[str, str]:
    """Loads the CMS record of a finished login, returns the id to generate the credential with"""
    if not txn_id:
        raise InvalidRequestError("txnID is mandatory")

    try:
        txn = repository.get_txn_data(txn_id)
    except (DataNotFoundError, repo.CorruptRecordError) as e:
        raise InvalidRequestError(f"failed to get txn data: {e}")

    try:
        user_data = cms_client.get_user_data(cms.collection_for_scope(txn.scope), txn.user_id, token=txn.token)
    except httpx_wrapper.REQUEST_ERRORS as e:
        raise InternalError(f"failed to get user data : {e}")

    search_id = str(uuid.uuid4())
    try:
        repository.put_search_data(search_id, models.SearchData(scope=txn.scope, user_data=user_data))
    except StoreError as e:
        raise InternalError(f"failed to save user data : {e}")
    return {"id": search_id}


@router.post("/credential")
def create_credential(
    credential_request: models.CreateCredentialRequest,
    cms_client: cms.inject,
    vcs_client: vcs.inject,
):
    """Issues the credential of a CMS record, optionally with additional subject data"""
    try:
        user_data = cms_client.get_user_data(credential_request.collection, credential_request.user_id)
    except httpx_wrapper.REQUEST_ERRORS as e:
        raise InternalError(f"failed to get cms user data : {e}")

    if credential_request.custom_subject_data:
        existing = user_data.get(VC_CREDENTIAL_SUBJECT)
        if isinstance(existing, dict):
            existing.update(credential_request.custom_subject_data)
        elif existing is None:
            user_data[VC_CREDENTIAL_SUBJECT] = dict(credential_request.custom_subject_data)

    return _issue(vcs_client, user_data, credential_request.scope, credential_request.vcs_profile, credential_request.holder)


@router.post("/credential/generate")
def generate_credential(
    generate_request: models.GenerateCredentialRequest,
    repository: repo.inject,
    vcs_client: vcs.inject,
):
    """Issues the credential of a record loaded by `/search`"""
    try:
        search_data = repository.get_search_data(generate_request.id)
    except DataNotFoundError:
        raise InvalidRequestError(f"failed to get user data using id '{generate_request.id}'")
    except repo.CorruptRecordError:
        raise PlainTextError("failed to unmarshal user data", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return _issue(vcs_client, search_data.user_data, search_data.scope, generate_request.vcs_profile, generate_request.holder)
