# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import os
import json
import logging
from typing import Annotated
from functools import cache

import httpx

from fastapi import Depends, templating

import common.config as conf
from common.parsing import interpret_as_bool, load_json_env, split_comma_separated

_logger = logging.getLogger(__name__)

VCS_ISSUER_REQUEST_TOKEN = "vcs_issuer"
"""Name of the request token used towards the vc service"""


class IssuerConfig(conf.Config):
    def __init__(self):
        super().__init__()
        self.app_name = os.getenv("APP_NAME", "Sandbox Issuer")

        # Collaborators
        self.wallet_url = os.getenv("WALLET_URL", "")
        """Default wallet deep link used when an issuance request does not bring its own"""
        self.vcs_url = os.getenv("VCS_URL", "")
        """Base url of the vc service issuing and signing the credentials"""
        self.cms_url = os.getenv("CMS_URL", "")
        """Base url of the content management system holding the user data"""
        self.issuer_adapter_url = os.getenv("ISSUER_ADAPTER_URL", "")
        """Base url of the DIDComm issuer adapter"""
        self.home_page = os.getenv("HOME_PAGE", "/")

        try:
            self.request_tokens: dict[str, str] = load_json_env(os.getenv("REQUEST_TOKENS"), {})
            """Bearer tokens for the collaborators, by name. `vcs_issuer` is used for the vc service."""
        except json.JSONDecodeError:
            _logger.error("REQUEST_TOKENS is not valid JSON, no request tokens configured.")
            self.request_tokens = {}

        # OIDC4VCI mock issuance
        self.oidc_login_path = os.getenv("OIDC4VCI_LOGIN_PATH", "/oidc/login")
        """Page the wallet is redirected to after the authorize request"""
        self.single_use_auth_codes: bool = interpret_as_bool(os.getenv("OIDC4VCI_SINGLE_USE_AUTH_CODES", "False"))
        """Delete authorization codes on their first exchange. Default: False, codes can be replayed."""
        self.store_url = os.getenv("STORE_URL")
        """Redis url of the transient store. An in process fake redis is used if unset."""

        # OAuth2 login against the identity provider guarding the CMS
        self.oauth_auth_url = os.getenv("OAUTH_AUTH_URL", "")
        self.oauth_token_url = os.getenv("OAUTH_TOKEN_URL", "")
        self.oauth_introspection_url = os.getenv("OAUTH_INTROSPECTION_URL", "")
        self.oauth_client_id = os.getenv("OAUTH_CLIENT_ID", "")
        self.oauth_client_secret = os.getenv("OAUTH_CLIENT_SECRET", "")
        self.oauth_redirect_url = os.getenv("OAUTH_REDIRECT_URL", "")

        # OpenID Connect login demo, its id token claims are shown on the DIDComm presentation page
        self.oidc_auth_url = os.getenv("OIDC_AUTH_URL", "")
        self.oidc_token_url = os.getenv("OIDC_TOKEN_URL", "")
        self.oidc_jwks_url = os.getenv("OIDC_JWKS_URL", "")
        """Key set the id tokens of the provider are signed with"""
        self.oidc_client_id = os.getenv("OIDC_CLIENT_ID", "")
        self.oidc_client_secret = os.getenv("OIDC_CLIENT_SECRET", "")
        self.oidc_callback_url = os.getenv("OIDC_CALLBACK_URL", "")

        # OIDC4CI demo pages driven through the vc service api
        self.vcs_api_access_token_host = os.getenv("VCS_API_ACCESS_TOKEN_HOST", "")
        self.vcs_api_access_token_client_id = os.getenv("VCS_API_ACCESS_TOKEN_CLIENT_ID", "")
        self.vcs_api_access_token_client_secret = os.getenv("VCS_API_ACCESS_TOKEN_CLIENT_SECRET", "")
        self.vcs_api_access_token_claim = os.getenv("VCS_API_ACCESS_TOKEN_CLAIM", "")
        self.vcs_api_url = os.getenv("VCS_API_URL", "")
        self.vcs_claim_data_url = os.getenv("VCS_CLAIM_DATA_URL", "")
        self.vcs_demo_issuer = os.getenv("VCS_DEMO_ISSUER", "")

        # Scopes seeding the scope registry
        self.didcomm_scopes: list[str] = split_comma_separated(os.getenv("DIDCOMM_SCOPES"))
        """Credential scopes a DIDComm connection may be initiated for"""
        try:
            self.assurance_scopes: dict[str, str] = load_json_env(os.getenv("ASSURANCE_SCOPES"), {})
            """Map from DIDComm scope to the CMS collection holding its assurance data"""
        except json.JSONDecodeError:
            _logger.error("ASSURANCE_SCOPES is not valid JSON, no assurance scopes configured.")
            self.assurance_scopes = {}

        # Templates
        self.template_directory = os.getenv("TEMPLATE_BASE_DIR", os.path.join(os.path.dirname(__file__), "templates"))
        """Base directory for jinja"""
        self.login_template = os.getenv("TEMPLATE_LOGIN", "login.html")
        self.pre_authorize_template = os.getenv("TEMPLATE_PRE_AUTHORIZE", "pre_authorize.html")
        self.auth_code_flow_template = os.getenv("TEMPLATE_AUTH_CODE_FLOW", "auth_code_flow.html")
        self.redirect_template = os.getenv("TEMPLATE_REDIRECT", "redirect.html")
        self.didcomm_template = os.getenv("TEMPLATE_DIDCOMM", "didcomm.html")
        self.didcomm_vp_template = os.getenv("TEMPLATE_DIDCOMM_VP", "didcomm_vp.html")
        self.receive_vc_template = os.getenv("TEMPLATE_RECEIVE_VC", "receive_vc.html")
        self.vc_template = os.getenv("TEMPLATE_VC", "vc.html")

    @property
    def vcs_request_token(self) -> str | None:
        return self.request_tokens.get(VCS_ISSUER_REQUEST_TOKEN)

    def get_template_resource(self) -> templating.Jinja2Templates:
        return get_template_resource(self.template_directory)

    def get_http_client(self) -> httpx.Client:
        return get_http_client(self.enable_ssl_verification)


@cache
def get_template_resource(directory: str) -> templating.Jinja2Templates:
    return templating.Jinja2Templates(directory)


@cache
def get_http_client(verify: bool) -> httpx.Client:
    """
    httpx client for the collaborating services, shared by all requests.
    The config is created per request, the connection pool lives as long as the process.
    """
    return httpx.Client(verify=verify)


inject = Annotated[IssuerConfig, Depends(IssuerConfig)]
