# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
OAuth 2.0 clients of the identity provider guarding the CMS
and of the authorization server of the vc service api.

https://datatracker.ietf.org/doc/html/rfc6749
https://datatracker.ietf.org/doc/html/rfc7662
"""

import uuid
import logging
import urllib.parse
from typing import Annotated

import httpx
from fastapi import Depends

from common import httpx_wrapper
import issuer.config as conf
from issuer import models

_logger = logging.getLogger(__name__)


class TokenIssuer:
    """Authorization code grant against the identity provider"""

    def __init__(
        self,
        client: httpx.Client,
        auth_url: str,
        token_url: str,
        client_id: str,
        client_secret: str,
        redirect_url: str,
    ) -> None:
        self.client = client
        self.auth_url = auth_url
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_url = redirect_url

    def auth_code_url(self, state: str | None = None) -> str:
        """Authorization url without scope, callers append `&scope=...`"""
        query = urllib.parse.urlencode(
            {
                "response_type": "code",
                "client_id": self.client_id,
                "redirect_uri": self.redirect_url,
                "state": state or str(uuid.uuid4()),
            }
        )
        separator = "&" if "?" in self.auth_url else "?"
        return f"{self.auth_url}{separator}{query}"

    def exchange(self, code: str) -> str:
        """Exchanges the authorization code, returns the access token"""
        response = httpx_wrapper.send(
            self.client,
            "POST",
            self.token_url,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_url,
            },
            auth=(self.client_id, self.client_secret),
        )
        return models.OAuthTokenResponse.model_validate(response.json()).access_token


class TokenResolver:
    """Token introspection at the identity provider"""

    def __init__(self, client: httpx.Client, introspection_url: str) -> None:
        self.client = client
        self.introspection_url = introspection_url

    def resolve(self, token: str) -> models.Introspection:
        response = httpx_wrapper.send(self.client, "POST", self.introspection_url, data={"token": token})
        return models.Introspection.model_validate(response.json())


def client_credentials_token(client: httpx.Client, token_url: str, client_id: str, client_secret: str, scopes: list[str]) -> str:
    """Client credentials grant with the credentials in the authorization header"""
    response = httpx_wrapper.send(
        client,
        "POST",
        token_url,
        data={"grant_type": "client_credentials", "scope": " ".join(scopes)},
        auth=(client_id, client_secret),
    )
    return models.OAuthTokenResponse.model_validate(response.json()).access_token


def get_token_issuer(config: conf.inject) -> TokenIssuer:
    return TokenIssuer(
        config.get_http_client(),
        auth_url=config.oauth_auth_url,
        token_url=config.oauth_token_url,
        client_id=config.oauth_client_id,
        client_secret=config.oauth_client_secret,
        redirect_url=config.oauth_redirect_url,
    )


def get_token_resolver(config: conf.inject) -> TokenResolver:
    return TokenResolver(config.get_http_client(), config.oauth_introspection_url)


inject_token_issuer = Annotated[TokenIssuer, Depends(get_token_issuer)]
inject_token_resolver = Annotated[TokenResolver, Depends(get_token_resolver)]
