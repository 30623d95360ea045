# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Web wallet demo pages.

The wallet authenticates its holder with a DID authentication presentation bound to a
challenge of the page. Credentials issued here are signed and kept by the vc service,
revoking a presented credential sets its entry in the status list of the issuer profile.
"""

import logging
from typing import Annotated

import fastapi
import jinja2
from fastapi import Cookie, Form
from fastapi.responses import HTMLResponse, Response

from common import httpx_wrapper

import issuer.config as conf
import issuer.clients.vcs as vcs
from issuer import models, presentation
from issuer.exception.oidc_errors import InvalidRequestError, InternalError
from issuer.logging import IssuerOperationsLogEntry
from issuer.route.cms import VCS_PROFILE_COOKIE

TAG = "Wallet Demo"

REVOKED_MESSAGE = "VC is revoked"

_logger = logging.getLogger(__name__)

router = fastapi.APIRouter(tags=[TAG])


def _render(request: fastapi.Request, config: conf.IssuerConfig, template: str, context: dict) -> HTMLResponse:
    try:
        return config.get_template_resource().TemplateResponse(request, template, context)
    except jinja2.TemplateNotFound:
        _logger.exception(f"Template not found: {config.template_directory}/{template}")
        raise InternalError("unable to load html")


@router.post("/verify/didauth")
def verify_did_auth(auth_request: models.VerifyDIDAuthRequest):
    """Checks the DID authentication response of a wallet, answers with an empty body if valid"""
    try:
        presentation.validate_auth_response(auth_request.auth_resp, auth_request.holder, auth_request.domain, auth_request.challenge)
    except ValueError as e:
        _logger.info(
            IssuerOperationsLogEntry(
                message=f"Rejected DID auth response: {e}",
                status=IssuerOperationsLogEntry.Status.error,
                operation=IssuerOperationsLogEntry.Operation.authorization,
                step=IssuerOperationsLogEntry.Step.did_auth,
            )
        )
        raise InvalidRequestError(f"failed to validate did auth resp : {e}")
    return Response()


@router.post("/generate", response_class=HTMLResponse)
def generate_vc(
    request: fastapi.Request,
    config: conf.inject,
    vcs_client: vcs.inject,
    cred: Annotated[str | None, Form()] = None,
    holder: Annotated[str | None, Form()] = None,
    authresp: Annotated[str | None, Form()] = None,
    domain: Annotated[str | None, Form()] = None,
    challenge: Annotated[str | None, Form()] = None,
    vcs_profile: Annotated[str | None, Cookie(alias=VCS_PROFILE_COOKIE)] = None,
):
    """Issues the posted credential to the holder authenticated by `authresp`"""
    if vcs_profile is None:
        raise InvalidRequestError(f"failed to get cookie: {VCS_PROFILE_COOKIE}")

    form = {"cred": cred, "holder": holder, "authresp": authresp, "domain": domain, "challenge": challenge}
    for key, value in form.items():
        if value is None:
            raise InvalidRequestError(f"invalid request argument: invalid '{key}'")

    try:
        presentation.validate_auth_response(authresp, holder, domain, challenge)
    except ValueError as e:
        raise InternalError(f"failed to create verifiable credential: DID Auth failed: {e}")

    try:
        signed = vcs_client.issue_credential(vcs_profile, holder, cred.encode())
    except httpx_wrapper.REQUEST_ERRORS as e:
        raise InternalError(f"failed to create verifiable credential: {e}")

    try:
        vcs_client.store_credential(signed, vcs_profile)
    except httpx_wrapper.REQUEST_ERRORS as e:
        raise InternalError(f"failed to store credential: {e}")

    _logger.info(
        IssuerOperationsLogEntry(
            message=f"Credential issued and stored through vcs profile {vcs_profile}",
            status=IssuerOperationsLogEntry.Status.success,
            operation=IssuerOperationsLogEntry.Operation.issuance,
            step=IssuerOperationsLogEntry.Step.vcs_issue,
        )
    )
    return _render(request, config, config.receive_vc_template, {"data": signed.decode()})


@router.post("/revoke", response_class=HTMLResponse)
def revoke_vc(
    request: fastapi.Request,
    config: conf.inject,
    vcs_client: vcs.inject,
    vc_data_input: Annotated[str, Form(alias="vcDataInput")] = "",
):
    """Revokes every credential of the posted presentation"""
    try:
        vp = presentation.parse_presentation(vc_data_input)
    except presentation.InvalidPresentationError as e:
        raise InternalError(f"failed to parse presentation: {e}")

    for credential in presentation.credentials(vp):
        if not isinstance(credential, dict):
            raise InternalError("failed to cast credential")
        try:
            issuer_name = presentation.issuer_name(credential)
        except presentation.InvalidPresentationError as e:
            raise InternalError(f"failed to parse credentials: {e}")

        try:
            vcs_client.update_credential_status(issuer_name, str(credential.get("id", "")))
        except httpx_wrapper.REQUEST_ERRORS as e:
            raise InvalidRequestError(f"failed to update vc status: {e}")

        _logger.info(
            IssuerOperationsLogEntry(
                message=f"Credential revoked in the status list of {issuer_name}",
                status=IssuerOperationsLogEntry.Status.success,
                operation=IssuerOperationsLogEntry.Operation.revocation,
                step=IssuerOperationsLogEntry.Step.vcs_status,
            )
        )

    return _render(request, config, config.vc_template, {"msg": REVOKED_MESSAGE, "data": vc_data_input})
