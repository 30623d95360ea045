# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


###################
# Stored records  #
###################


class FlowState(Enum):
    """Progress of one authorization in the mock OpenID issuance."""

    requested = "REQUESTED"
    logged_in = "LOGGED_IN"
    code_issued = "CODE_ISSUED"
    token_issued = "TOKEN_ISSUED"
    delivered = "DELIVERED"


class AuthorizationRequestState(BaseModel):
    """Authorization request as received by the authorize endpoint. Never changed after storing."""

    claims: str
    scope: str = ""
    state: str
    response_type: str = ""
    client_id: str
    redirect_uri: str


class AccessTokenRecord(BaseModel):
    issuer_id: str
    """Issuer id of the path the token was requested on"""
    auth_state: str
    """Authorization the token was minted for"""


class TxnData(BaseModel):
    """Bridges the OAuth2 callback to the following search call"""

    user_id: str
    scope: str
    token: str


class SearchData(BaseModel):
    scope: str
    user_data: dict[str, Any] = Field(alias="userData")

    model_config = ConfigDict(populate_by_name=True)


class UserDataMap(BaseModel):
    """User data handed over to the DIDComm issuer adapter"""

    id: str = ""
    data: Any = None
    assurance_scope: str = Field(default="", alias="assuranceScope")

    model_config = ConfigDict(populate_by_name=True)


###########################
# OpenID issuance surface #
###########################


class IssuanceRequest(BaseModel):
    wallet_init_issuance_url: str | None = Field(default=None, alias="walletInitIssuanceURL")
    credential_types: str = Field(default="", alias="credentialTypes")
    """Comma separated list of credential types"""
    manifest_ids: str = Field(default="", alias="manifestIDs")
    """Comma separated list of manifest ids"""
    issuer_url: str = Field(default="", alias="issuerURL")
    cred_manifest: Any = Field(default=None, alias="credManifest")
    credential: Any = None
    """Credential to issue once the wallet completes the flow. A JSON string is stored as is, any other JSON value serialized."""


class IssuerWellKnownConfiguration(BaseModel):
    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    credential_endpoint: str
    credential_manifests: Any = None


class TokenResponse(BaseModel):
    token_type: str = "Bearer"
    access_token: str
    expires_in: int


class CredentialResponse(BaseModel):
    format: str
    credential: dict[str, Any]


##############################
# Collaborating service data #
##############################


class IssuerProfile(BaseModel):
    """Issuer profile as provided by the vc service"""

    did: str = ""
    name: str = ""
    uri: str = ""

    model_config = ConfigDict(extra="ignore")


class OAuthTokenResponse(BaseModel):
    """https://datatracker.ietf.org/doc/html/rfc6749#section-5.1"""

    access_token: str
    token_type: str = ""
    expires_in: int | None = None
    scope: str | None = None

    model_config = ConfigDict(extra="ignore")


class Introspection(BaseModel):
    """OAuth2 token introspection, https://datatracker.ietf.org/doc/html/rfc7662#section-2.2"""

    active: bool = False
    subject: str = Field(default="", alias="sub")
    scope: str = ""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CMSUser(BaseModel):
    userid: str
    name: str = ""
    email: str = ""

    model_config = ConfigDict(extra="ignore")


class InitiateOIDC4CIRequest(BaseModel):
    """Request initiating an OpenID4CI interaction on the vc service"""

    credential_template_id: str = "templateID"
    grant_type: str | None = None
    response_type: str | None = None
    scope: list[str] | None = None
    op_state: str | None = None
    claim_endpoint: str | None = None
    user_pin_required: bool | None = None
    claim_data: dict[str, Any] | None = None


class InitiateOIDC4CIResponse(BaseModel):
    offer_credential_url: str = ""
    tx_id: str = ""
    user_pin: str | None = None

    model_config = ConfigDict(extra="ignore")


class StoreCredentialRequest(BaseModel):
    credential: str
    """Signed credential as serialized JSON"""
    profile: str | None = None


class CredentialStatus(BaseModel):
    type: str = "StatusList2021Entry"
    status: str


class UpdateCredentialStatusRequest(BaseModel):
    credential_id: str = Field(alias="credentialID")
    credential_status: CredentialStatus = Field(alias="credentialStatus")

    model_config = ConfigDict(populate_by_name=True)


###########################
# Issuer adapter surface  #
###########################


class CreateCredentialRequest(BaseModel):
    collection: str
    user_id: str = Field(alias="userID")
    scope: str
    vcs_profile: str = Field(alias="vcsProfile")
    holder: str = ""
    custom_subject_data: dict[str, Any] | None = Field(default=None, alias="customSubjectData")


class GenerateCredentialRequest(BaseModel):
    id: str
    vcs_profile: str = Field(alias="vcsProfile")
    holder: str = ""


class AdapterTokenRequest(BaseModel):
    state: str = ""


class AdapterTokenResponse(BaseModel):
    token: str | None = None
    userid: str


class AdapterDataRequest(BaseModel):
    token: str = ""


###########################
# Wallet demo pages       #
###########################


class VerifyDIDAuthRequest(BaseModel):
    """DID authentication response of a wallet, checked against the challenge handed out before"""

    holder: str = ""
    domain: str = ""
    challenge: str = ""
    auth_resp: Any = Field(default=None, alias="authResp")
    """Verifiable presentation, as JSON object or serialized"""


class OIDCRequestResponse(BaseModel):
    request: str


##########
# Events #
##########


class VCSEvent(BaseModel):
    """OpenID4CI progress event sent by the vc service"""

    id: str = ""
    type: str
    source: str | None = None
    time: str | None = None
    txnid: str | None = None
    data: dict[str, Any] | None = None

    model_config = ConfigDict(extra="allow")

    def transaction_id(self) -> str | None:
        if self.txnid:
            return self.txnid
        if self.data and self.data.get("txnID"):
            return str(self.data["txnID"])
        return None


class EventCheckResponse(BaseModel):
    type: str
    description: str
    event: dict[str, Any]


##########
# Admin  #
##########


class ScopesSnapshot(BaseModel):
    didcomm_scopes: list[str]
    assurance_scopes: dict[str, str]


class FlowStateResponse(BaseModel):
    auth_state: str
    flow_state: FlowState
