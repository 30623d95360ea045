# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Client of the vc service (VCS) which holds the issuer profiles and signs the credentials
of the CMS driven issuance, and of its api driving the OpenID4CI interactions.
"""

import json
import logging
from typing import Annotated

import httpx
from fastapi import Depends, status

from common import httpx_wrapper
import issuer.config as conf
from issuer import models
from issuer.clients import oauth

_logger = logging.getLogger(__name__)


class InvalidCredentialSubjectError(ValueError):
    """The credential has no subject the holder can be set on."""


def bind_holder(credential: dict, holder: str) -> dict:
    """Sets the holder as id of the (first) credential subject"""
    if not isinstance(credential, dict):
        raise InvalidCredentialSubjectError("invalid credential")
    subject = credential.get("credentialSubject")
    if isinstance(subject, list) and subject and isinstance(subject[0], dict):
        subject[0]["id"] = holder
    elif isinstance(subject, dict):
        subject["id"] = holder
    elif isinstance(subject, str):
        credential["credentialSubject"] = {"id": subject}
    else:
        raise InvalidCredentialSubjectError("invalid credential subject")
    return credential


class VCSClient:
    def __init__(self, client: httpx.Client, vcs_url: str, request_token: str | None) -> None:
        self.client = client
        self.vcs_url = vcs_url
        self.request_token = request_token

    def get_profile(self, profile_name: str) -> models.IssuerProfile:
        response = httpx_wrapper.send(
            self.client,
            "GET",
            f"{self.vcs_url}/profile/{profile_name}",
            token=self.request_token,
        )
        return models.IssuerProfile.model_validate(response.json())

    def issue_credential(self, profile_name: str, holder: str, credential: bytes) -> bytes:
        """Has the credential signed by the profile, returns the signed credential as received"""
        unsigned = bind_holder(json.loads(credential), holder)
        response = httpx_wrapper.send(
            self.client,
            "POST",
            f"{self.vcs_url}/{profile_name}/credentials/issue",
            json={"credential": unsigned},
            token=self.request_token,
            expected_status=status.HTTP_201_CREATED,
        )
        return response.content

    def store_credential(self, credential: bytes, profile: str) -> None:
        """Keeps a signed credential on the vc service"""
        request = models.StoreCredentialRequest(credential=credential.decode(), profile=profile or None)
        httpx_wrapper.send(
            self.client,
            "POST",
            f"{self.vcs_url}/store",
            json=request.model_dump(exclude_none=True),
            token=self.request_token,
        )

    def update_credential_status(self, issuer_name: str, credential_id: str) -> None:
        """Revokes the credential in the status list of the issuer profile"""
        request = models.UpdateCredentialStatusRequest(
            credential_id=credential_id,
            credential_status=models.CredentialStatus(status="1"),
        )
        httpx_wrapper.send(
            self.client,
            "POST",
            f"{self.vcs_url}/{issuer_name}/credentials/status",
            json=request.model_dump(by_alias=True),
            token=self.request_token,
        )


class VCSApiClient:
    """OpenID4CI interactions of a demo issuer profile"""

    def __init__(
        self,
        client: httpx.Client,
        api_url: str,
        demo_issuer: str,
        token_host: str,
        client_id: str,
        client_secret: str,
        token_claim: str,
    ) -> None:
        self.client = client
        self.api_url = api_url
        self.demo_issuer = demo_issuer
        self.token_host = token_host
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_claim = token_claim

    def get_access_token(self) -> str:
        return oauth.client_credentials_token(
            self.client,
            f"{self.token_host}/oauth2/token",
            self.client_id,
            self.client_secret,
            [self.token_claim],
        )

    def initiate_oidc(self, request: models.InitiateOIDC4CIRequest) -> models.InitiateOIDC4CIResponse:
        response = httpx_wrapper.send(
            self.client,
            "POST",
            f"{self.api_url}/issuer/profiles/{self.demo_issuer}/interactions/initiate-oidc",
            json=request.model_dump(exclude_none=True),
            token=self.get_access_token(),
        )
        return models.InitiateOIDC4CIResponse.model_validate(response.json())


def get_vcs_client(config: conf.inject) -> VCSClient:
    return VCSClient(config.get_http_client(), config.vcs_url, config.vcs_request_token)


def get_vcs_api_client(config: conf.inject) -> VCSApiClient:
    return VCSApiClient(
        config.get_http_client(),
        api_url=config.vcs_api_url,
        demo_issuer=config.vcs_demo_issuer,
        token_host=config.vcs_api_access_token_host,
        client_id=config.vcs_api_access_token_client_id,
        client_secret=config.vcs_api_access_token_client_secret,
        token_claim=config.vcs_api_access_token_claim,
    )


inject = Annotated[VCSClient, Depends(get_vcs_client)]
inject_api = Annotated[VCSApiClient, Depends(get_vcs_api_client)]
