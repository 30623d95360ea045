# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
OpenID4CI demo pages

The pages initiate an interaction on the vc service, show the credential offer as QR code
and poll the progress events the vc service sends to the webhook.
"""

import uuid
import logging

import fastapi
import jinja2
from fastapi import status
from fastapi.responses import HTMLResponse

from common import httpx_wrapper

import issuer.config as conf
import issuer.events as events
import issuer.clients.vcs as vcs
from issuer import models
from issuer.cache.repository import CorruptRecordError
from issuer.cache.transient_store import StoreError
from issuer.exception.oidc_errors import InternalError, InvalidRequestError
from issuer.logging import IssuerOperationsLogEntry

TAG = "OpenID4CI Demo"

DEMO_CREDENTIAL_TYPE = "VerifiedEmployee"
DEMO_CLAIM_DATA = {
    "displayName": "John Doe",
    "givenName": "John",
    "jobTitle": "Software Developer",
    "surname": "Doe",
    "preferredLanguage": "English",
    "mail": "john.doe@foo.bar",
}

_logger = logging.getLogger(__name__)

router = fastapi.APIRouter(tags=[TAG])


def _success_text(initiate_request: models.InitiateOIDC4CIRequest, client_id: str) -> str:
    text = f"Credentials with template [{initiate_request.credential_template_id}] and type [{DEMO_CREDENTIAL_TYPE}] "
    if initiate_request.claim_data:
        text += "and claims: " + "".join(f"{key}:{value} " for key, value in initiate_request.claim_data.items())
    return text + f"was successfully issued by [{client_id}]"


def _render_initiate_page(
    request: fastapi.Request,
    config: conf.IssuerConfig,
    vcs_api: vcs.VCSApiClient,
    initiate_request: models.InitiateOIDC4CIRequest,
    template: str,
) -> HTMLResponse:
    try:
        initiated = vcs_api.initiate_oidc(initiate_request)
    except httpx_wrapper.REQUEST_ERRORS as e:
        _logger.exception("Initiating the OpenID4CI interaction failed")
        raise InternalError(f"unable to send request for initiate: {e}")

    try:
        return config.get_template_resource().TemplateResponse(
            request,
            template,
            {
                "url": initiated.offer_credential_url,
                "tx_id": initiated.tx_id,
                "success_text": _success_text(initiate_request, config.vcs_api_access_token_client_id),
                "pin": initiated.user_pin or "",
            },
        )
    except jinja2.TemplateNotFound:
        _logger.exception(f"Template not found: {config.template_directory}/{template}")
        raise InternalError("unable to load html")


@router.get("/pre-authorize", response_class=HTMLResponse)
def pre_authorize(
    request: fastapi.Request,
    config: conf.inject,
    vcs_api: vcs.inject_api,
    require_pin: str = "",
):
    """Pre-authorized code flow, the user pin is required unless `require_pin=false`"""
    initiate_request = models.InitiateOIDC4CIRequest(
        user_pin_required=require_pin.lower() != "false",
        claim_data=dict(DEMO_CLAIM_DATA),
    )
    return _render_initiate_page(request, config, vcs_api, initiate_request, config.pre_authorize_template)


@router.get("/auth-code-flow", response_class=HTMLResponse)
def auth_code_flow(
    request: fastapi.Request,
    config: conf.inject,
    vcs_api: vcs.inject_api,
):
    initiate_request = models.InitiateOIDC4CIRequest(
        grant_type="authorization_code",
        response_type="code",
        scope=["openid", "profile"],
        op_state=str(uuid.uuid4()),
        claim_endpoint=config.vcs_claim_data_url,
    )
    return _render_initiate_page(request, config, vcs_api, initiate_request, config.auth_code_flow_template)


@router.post("/verify/openid4ci/webhook", status_code=status.HTTP_200_OK)
def receive_event(event: models.VCSEvent, topic: events.inject) -> None:
    """Receives the progress events of the vc service"""
    transaction_id = event.transaction_id()
    if not transaction_id:
        raise InvalidRequestError("missing transaction id")
    try:
        topic.publish(transaction_id, event)
    except StoreError as e:
        raise InternalError(f"failed to save event : {e}")
    _logger.info(
        IssuerOperationsLogEntry(
            message=f"Received {event.type} event",
            status=IssuerOperationsLogEntry.Status.success,
            operation=IssuerOperationsLogEntry.Operation.issuance,
            step=IssuerOperationsLogEntry.Step.event,
        )
    )


@router.get("/verify/openid4ci/webhook/check")
def check_event(topic: events.inject, tx: str = "") -> models.EventCheckResponse | dict:
    """Returns and removes the latest event of the transaction, an empty object if there is none"""
    if not tx:
        raise InvalidRequestError("missing tx")
    try:
        return topic.consume(tx) or {}
    except (StoreError, CorruptRecordError) as e:
        raise InternalError(f"failed to read event : {e}")
