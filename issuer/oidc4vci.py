# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Mock OpenID4VCI authorization server.

An authorization runs through the states
`REQUESTED -> LOGGED_IN -> CODE_ISSUED -> TOKEN_ISSUED -> DELIVERED`,
recorded next to the authorization request for inspection.
The server gives none of the security guarantees of OpenID Connect:
no PKCE, no nonces and access tokens are plain random values.
Authorization codes can be exchanged repeatedly unless single use codes are enabled.
"""

import json
import uuid
import logging
import urllib.parse

from fastapi import status

from issuer import models
from issuer import signer as sig
from issuer.cache.repository import IssuanceRepository, CorruptRecordError
from issuer.cache.transient_store import DataNotFoundError, StoreError
from issuer.exception.oidc_errors import OIDCError, PlainTextError, InvalidRequestError, InternalError
from issuer.logging import IssuerOperationsLogEntry

_logger = logging.getLogger(__name__)

GRANT_TYPE_AUTHORIZATION_CODE = "authorization_code"
SUPPORTED_FORMATS = ("", "ldp_vc")
ACCESS_TOKEN_EXPIRES_IN = 3600
"""Lifetime of the access tokens in seconds, as announced to the wallet"""


def _log(message: str, step: IssuerOperationsLogEntry.Step, success: bool = True) -> None:
    entry = IssuerOperationsLogEntry(
        message=message,
        status=IssuerOperationsLogEntry.Status.success if success else IssuerOperationsLogEntry.Status.error,
        operation=IssuerOperationsLogEntry.Operation.authorization,
        step=step,
    )
    if success:
        _logger.info(entry)
    else:
        _logger.warning(entry)


def authorize(
    repository: IssuanceRepository,
    claims: str,
    scope: str,
    state: str,
    response_type: str,
    client_id: str,
    redirect_uri: str,
) -> str:
    """
    Stores the authorization request and returns the id of the new authorization (`auth_state`).
    The caller hands the id to the login page in the `state` cookie.
    """
    if not claims or not redirect_uri or not client_id or not state:
        _log("Authorization request is missing required parameters", IssuerOperationsLogEntry.Step.authorize, success=False)
        raise InvalidRequestError()

    auth_state = str(uuid.uuid4())
    request = models.AuthorizationRequestState(
        claims=claims,
        scope=scope,
        state=state,
        response_type=response_type,
        client_id=client_id,
        redirect_uri=redirect_uri,
    )
    try:
        repository.put_auth_state(auth_state, request)
        repository.put_flow_state(auth_state, models.FlowState.requested)
    except StoreError as e:
        _logger.exception("Failed to store authorization request")
        raise InternalError(f"failed to save state : {e}")
    _log(f"Authorization {auth_state} requested", IssuerOperationsLogEntry.Step.authorize)
    return auth_state


def send_authorize_response(repository: IssuanceRepository, auth_state: str | None) -> str:
    """
    Issues an authorization code once the user logged in
    and returns the redirect back to the wallet.
    """
    if not auth_state:
        raise PlainTextError("invalid state", status.HTTP_403_FORBIDDEN)

    try:
        request = repository.get_auth_state(auth_state)
    except DataNotFoundError:
        raise InvalidRequestError("invalid request")
    except CorruptRecordError:
        _logger.exception(f"Authorization request {auth_state} is corrupt")
        raise InternalError("failed to read request")

    if not request.redirect_uri:
        raise InternalError("failed to redirect, invalid URL")
    if not request.state:
        raise InternalError("failed to redirect, invalid state")

    code = str(uuid.uuid4())
    try:
        repository.put_flow_state(auth_state, models.FlowState.logged_in)
        repository.put_auth_code(code, auth_state)
        repository.put_flow_state(auth_state, models.FlowState.code_issued)
    except StoreError:
        _logger.exception("Failed to store authorization code")
        raise InternalError("failed to store state cookie value")

    # TODO: select the credential to deliver from the requested claims instead of the one fixed at initiation
    _log(f"Authorization code issued for {auth_state}", IssuerOperationsLogEntry.Step.authorize_response)
    return f"{request.redirect_uri}?{urllib.parse.urlencode({'code': code, 'state': request.state})}"


def exchange_code(
    repository: IssuanceRepository,
    issuer_id: str,
    code: str,
    redirect_uri: str,
    grant_type: str,
    single_use_codes: bool = False,
) -> models.TokenResponse:
    """Exchanges an authorization code for an access token bound to the issuer id"""
    if grant_type != GRANT_TYPE_AUTHORIZATION_CODE:
        raise OIDCError("unsupported grant type")

    try:
        auth_state = repository.get_auth_code(code)
    except DataNotFoundError:
        raise OIDCError("invalid state")

    try:
        request = repository.get_auth_state(auth_state)
    except DataNotFoundError:
        raise OIDCError("invalid request")
    except CorruptRecordError:
        _logger.exception(f"Authorization request {auth_state} is corrupt")
        raise OIDCError("failed to read request", status.HTTP_500_INTERNAL_SERVER_ERROR)

    # Kept as 500 although the client is at fault
    if request.redirect_uri != redirect_uri:
        _log(f"Redirect uri mismatch for {auth_state}", IssuerOperationsLogEntry.Step.token, success=False)
        raise OIDCError("request validation failed", status.HTTP_500_INTERNAL_SERVER_ERROR)

    access_token = str(uuid.uuid4())
    try:
        if single_use_codes:
            repository.delete_auth_code(code)
        repository.put_access_token(access_token, models.AccessTokenRecord(issuer_id=issuer_id, auth_state=auth_state))
        repository.put_flow_state(auth_state, models.FlowState.token_issued)
    except StoreError:
        _logger.exception("Failed to store access token")
        raise OIDCError("failed to save token state", status.HTTP_500_INTERNAL_SERVER_ERROR)

    _log(f"Access token issued for {auth_state}", IssuerOperationsLogEntry.Step.token)
    return models.TokenResponse(access_token=access_token, expires_in=ACCESS_TOKEN_EXPIRES_IN)


def parse_bearer_token(authorization: str | None) -> str:
    """
    Extracts the token of an `Authorization: Bearer {token}` header
    """
    parts = (authorization or "").split("Bearer ")
    if len(parts) != 2:
        raise OIDCError("malformed token")
    if not parts[1]:
        raise OIDCError("invalid token", status.HTTP_403_FORBIDDEN)
    return parts[1]


def load_credential(raw: bytes) -> dict:
    """
    Throws ValueError if the pending credential is no verifiable credential
    """
    credential = json.loads(raw)
    if not isinstance(credential, dict) or "@context" not in credential or "type" not in credential:
        raise ValueError("pending credential is not a verifiable credential")
    return credential


def deliver_credential(
    repository: IssuanceRepository,
    signer: sig.Signer,
    issuer_id: str,
    credential_format: str,
    authorization: str | None,
) -> models.CredentialResponse:
    """Signs and returns the credential of the issuer the access token was issued for"""
    if credential_format not in SUPPORTED_FORMATS:
        raise OIDCError("unsupported format requested")

    token = parse_bearer_token(authorization)

    try:
        token_record = repository.get_access_token(token)
    except (DataNotFoundError, CorruptRecordError):
        raise OIDCError("invalid token")

    if token_record.issuer_id != issuer_id:
        _log("Access token used for another issuer", IssuerOperationsLogEntry.Step.delivery, success=False)
        raise OIDCError("invalid transaction", status.HTTP_403_FORBIDDEN)

    try:
        raw_credential = repository.get_pending_credential(issuer_id)
    except DataNotFoundError:
        raise OIDCError("failed to get credential", status.HTTP_500_INTERNAL_SERVER_ERROR)

    try:
        credential = load_credential(raw_credential)
    except ValueError:
        _logger.exception(f"Pending credential of {issuer_id} can not be parsed")
        raise OIDCError("failed to prepare credential", status.HTTP_500_INTERNAL_SERVER_ERROR)

    try:
        signed_credential = sig.add_linked_data_proof(credential, signer)
    except sig.SigningError:
        _logger.exception(f"Signing the credential of {issuer_id} failed")
        raise OIDCError("failed to issue credential", status.HTTP_500_INTERNAL_SERVER_ERROR)

    try:
        repository.put_flow_state(token_record.auth_state, models.FlowState.delivered)
    except StoreError:
        _logger.exception(f"Failed to record delivery of {token_record.auth_state}")

    _log(f"Credential delivered for {token_record.auth_state}", IssuerOperationsLogEntry.Step.delivery)
    return models.CredentialResponse(format=credential_format, credential=signed_credential)
