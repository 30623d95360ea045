# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Fixtures running the issuer against an in process fake redis
with the collaborating services (CMS, vc service, identity provider) mocked.
"""

from unittest import mock

import fakeredis
import pytest
from fastapi.testclient import TestClient

import common.config
import issuer.config as conf
import issuer.events as events
import issuer.scopes as scopes
import issuer.cache.transient_store as ts
import issuer.clients.cms as cms
import issuer.clients.oauth as oauth
import issuer.clients.oidc as oidc
import issuer.clients.vcs as vcs
from issuer.cache.repository import IssuanceRepository

API_KEY = "tergum_dev_key"
ISSUER_URL = "https://issuer.example"
WALLET_URL = "https://wallet.example/initiate"
ADAPTER_URL = "https://adapter.example"


def t_config() -> conf.IssuerConfig:
    """
    Overriding Configuration injection function with parameters
    """
    config = conf.IssuerConfig()
    config.api_key = API_KEY
    config.external_url = ISSUER_URL
    config.wallet_url = WALLET_URL
    config.issuer_adapter_url = ADAPTER_URL
    config.vcs_url = "https://vcs.example"
    config.cms_url = "https://cms.example"
    config.home_page = "https://issuer.example/home"
    config.single_use_auth_codes = False
    config.vcs_api_access_token_client_id = "demo-client"
    return config


@pytest.fixture()
def store() -> ts.TransientStore:
    return ts.TransientStore(fakeredis.FakeStrictRedis(server=fakeredis.FakeServer()))


@pytest.fixture()
def repository(store: ts.TransientStore) -> IssuanceRepository:
    return IssuanceRepository(store)


@pytest.fixture()
def scope_registry() -> scopes.ScopeRegistry:
    return scopes.ScopeRegistry(["StudentCard"], {"CreditCardStatement": "creditscores"})


@pytest.fixture()
def events_topic(repository: IssuanceRepository) -> events.EventsTopic:
    return events.EventsTopic(repository)


@pytest.fixture()
def cms_client() -> mock.Mock:
    return mock.create_autospec(cms.CMSClient, instance=True)


@pytest.fixture()
def vcs_client() -> mock.Mock:
    return mock.create_autospec(vcs.VCSClient, instance=True)


@pytest.fixture()
def vcs_api_client() -> mock.Mock:
    return mock.create_autospec(vcs.VCSApiClient, instance=True)


@pytest.fixture()
def token_issuer() -> mock.Mock:
    return mock.create_autospec(oauth.TokenIssuer, instance=True)


@pytest.fixture()
def token_resolver() -> mock.Mock:
    return mock.create_autospec(oauth.TokenResolver, instance=True)


@pytest.fixture()
def oidc_client() -> mock.Mock:
    return mock.create_autospec(oidc.OIDCClient, instance=True)


@pytest.fixture()
def client(
    store: ts.TransientStore,
    scope_registry: scopes.ScopeRegistry,
    events_topic: events.EventsTopic,
    cms_client: mock.Mock,
    vcs_client: mock.Mock,
    vcs_api_client: mock.Mock,
    token_issuer: mock.Mock,
    token_resolver: mock.Mock,
    oidc_client: mock.Mock,
) -> TestClient:
    from issuer.issuer import app

    app.dependency_overrides[conf.IssuerConfig] = t_config
    app.dependency_overrides[common.config.Config] = t_config
    app.dependency_overrides[ts.get_transient_store] = lambda: store
    app.dependency_overrides[scopes.get_scope_registry] = lambda: scope_registry
    app.dependency_overrides[events.get_events_topic] = lambda: events_topic
    app.dependency_overrides[cms.get_cms_client] = lambda: cms_client
    app.dependency_overrides[vcs.get_vcs_client] = lambda: vcs_client
    app.dependency_overrides[vcs.get_vcs_api_client] = lambda: vcs_api_client
    app.dependency_overrides[oauth.get_token_issuer] = lambda: token_issuer
    app.dependency_overrides[oauth.get_token_resolver] = lambda: token_resolver
    app.dependency_overrides[oidc.get_oidc_client] = lambda: oidc_client

    client = TestClient(app, headers={"x-api-key": API_KEY})
    yield client
    client.close()
    app.dependency_overrides.clear()
