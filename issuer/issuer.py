# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Sandbox Credential Issuer
Using Specifications

# OpenID4VCI Draft 11
https://openid.net/specs/openid-4-verifiable-credential-issuance-1_0-11.html

W3C Verifiable Credential
https://www.w3.org/TR/vc-data-model/

Ed25519 Signature 2018
https://w3c-ccg.github.io/lds-ed25519-2018/

JWS Unencoded Payload Option
https://datatracker.ietf.org/doc/html/rfc7797

OAuth 2.0
https://datatracker.ietf.org/doc/html/rfc6749

OAuth 2.0 Token Introspection
https://datatracker.ietf.org/doc/html/rfc7662
"""

# FastAPI
from asgi_correlation_id import CorrelationIdMiddleware

from common.fastapi_extensions import ExtendedFastAPI


from issuer.exception.handler import configure_exception_handlers
import issuer.route.oidc4vci as oidc4vci
import issuer.route.openid4ci as openid4ci
import issuer.route.cms as cms
import issuer.route.didcomm as didcomm
import issuer.route.oauth2 as oauth2
import issuer.route.chapi as chapi
import issuer.route.admin as admin
import issuer.route.health as health
import issuer.config as conf

app = ExtendedFastAPI(conf.IssuerConfig)

app.include_router(health.router)
app.include_router(admin.router)
app.include_router(oidc4vci.router)
app.include_router(openid4ci.router)
app.include_router(cms.router)
app.include_router(didcomm.router)
app.include_router(oauth2.router)
app.include_router(chapi.router)

# Errors of the issuance endpoints are plain text or the compact OpenID envelope
configure_exception_handlers(app)

app.add_middleware(
    CorrelationIdMiddleware,
)
