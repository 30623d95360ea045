# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
OpenID Connect login of the DIDComm presentation demo.

https://openid.net/specs/openid-connect-core-1_0.html#CodeFlowAuth
"""

import json
import logging
import urllib.parse
from typing import Annotated

import httpx
from fastapi import Depends
from jwcrypto import jwk, jwt
from jwcrypto.common import JWException

from common import httpx_wrapper
import issuer.config as conf

_logger = logging.getLogger(__name__)


class IdTokenError(ValueError):
    """The id token of the provider is missing or does not verify."""


class OIDCClient:
    def __init__(
        self,
        client: httpx.Client,
        auth_url: str,
        token_url: str,
        jwks_url: str,
        client_id: str,
        client_secret: str,
        callback_url: str,
    ) -> None:
        self.client = client
        self.auth_url = auth_url
        self.token_url = token_url
        self.jwks_url = jwks_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.callback_url = callback_url

    def create_request(self, state: str, scope: str) -> str:
        """Authentication request url, the `openid` scope is always requested"""
        if not self.auth_url:
            raise ValueError("no oidc provider configured")
        query = urllib.parse.urlencode(
            {
                "response_type": "code",
                "client_id": self.client_id,
                "redirect_uri": self.callback_url,
                "scope": f"openid {scope}",
                "state": state,
            }
        )
        separator = "&" if "?" in self.auth_url else "?"
        return f"{self.auth_url}{separator}{query}"

    def handle_callback(self, code: str) -> dict:
        """Exchanges the authorization code, returns the claims of the verified id token"""
        response = httpx_wrapper.send(
            self.client,
            "POST",
            self.token_url,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.callback_url,
            },
            auth=(self.client_id, self.client_secret),
        )
        id_token = response.json().get("id_token")
        if not id_token or not isinstance(id_token, str):
            raise IdTokenError("missing id_token")
        return self.verify_id_token(id_token)

    def verify_id_token(self, id_token: str) -> dict:
        """
        Checks the signature against the key set of the provider and the audience.
        Expiry is checked when the token carries `exp`.
        """
        response = httpx_wrapper.send(self.client, "GET", self.jwks_url)
        try:
            keys = jwk.JWKSet.from_json(response.text)
            token = jwt.JWT(jwt=id_token, key=keys, expected_type="JWS")
        except (JWException, ValueError) as e:
            raise IdTokenError(f"failed to verify id_token: {e}") from e

        claims = json.loads(token.claims)
        audience = claims.get("aud")
        if isinstance(audience, str):
            audience = [audience]
        if not isinstance(audience, list) or self.client_id not in audience:
            raise IdTokenError("id_token not issued for this client")
        return claims


def get_oidc_client(config: conf.inject) -> OIDCClient:
    return OIDCClient(
        config.get_http_client(),
        auth_url=config.oidc_auth_url,
        token_url=config.oidc_token_url,
        jwks_url=config.oidc_jwks_url,
        client_id=config.oidc_client_id,
        client_secret=config.oidc_client_secret,
        callback_url=config.oidc_callback_url,
    )


inject = Annotated[OIDCClient, Depends(get_oidc_client)]
