# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Tests for the admin api managing the DIDComm scopes and the health probes
"""

from unittest import mock

import pytest
from fastapi.testclient import TestClient

import issuer.cache.transient_store as ts
from issuer.issuer import app


def test_get_scopes(client: TestClient):
    response = client.get("/admin/scopes")
    assert response.status_code == 200
    assert response.json() == {
        "didcomm_scopes": ["CreditCardStatement", "StudentCard"],
        "assurance_scopes": {"CreditCardStatement": "creditscores"},
    }


def test_register_scope(client: TestClient):
    params = {"adapterProfile": "adapter-1", "didCommScope": "DriversLicense"}
    assert client.get("/didcomm/init", params=params, follow_redirects=False).status_code == 400

    response = client.put("/admin/scopes/didcomm/DriversLicense", params={"assurance_scope": "driverlicenses"})
    assert response.status_code == 200
    snapshot = response.json()
    assert "DriversLicense" in snapshot["didcomm_scopes"]
    assert snapshot["assurance_scopes"]["DriversLicense"] == "driverlicenses"

    assert client.get("/didcomm/init", params=params, follow_redirects=False).status_code == 302


def test_unregister_scope(client: TestClient):
    response = client.delete("/admin/scopes/didcomm/StudentCard")
    assert response.status_code == 200
    assert response.json()["didcomm_scopes"] == ["CreditCardStatement"]

    params = {"adapterProfile": "adapter-1", "didCommScope": "StudentCard"}
    assert client.get("/didcomm/init", params=params, follow_redirects=False).status_code == 400

    assert client.delete("/admin/scopes/didcomm/StudentCard").status_code == 404


@pytest.mark.parametrize("headers", [{"x-api-key": "wrong"}, {"x-api-key": ""}])
def test_admin_requires_api_key(client: TestClient, headers: dict):
    assert client.get("/admin/scopes", headers=headers).status_code == 401
    assert client.put("/admin/scopes/didcomm/Other", headers=headers).status_code == 401


def test_health_probes(client: TestClient):
    response = client.get("/health/readiness")
    assert response.status_code == 200
    assert response.json() == {"http_server_connectivity": "HEALTHY", "store_connectivity": "HEALTHY"}

    response = client.get("/health/liveness")
    assert response.status_code == 200
    assert response.json()["signing_key_is_available"] == "HEALTHY"

    response = client.get("/health/debug")
    assert response.status_code == 200
    assert response.json() == {
        "http_server_connectivity": "HEALTHY",
        "config_vcs_url_present": "HEALTHY",
        "config_cms_url_present": "HEALTHY",
        "config_wallet_url_present": "HEALTHY",
    }


def test_readiness_store_unreachable(client: TestClient):
    unreachable = mock.create_autospec(ts.TransientStore, instance=True)
    unreachable.ping.side_effect = ts.StoreError("store unreachable")
    app.dependency_overrides[ts.get_transient_store] = lambda: unreachable

    response = client.get("/health/readiness")
    assert response.status_code == 503
    assert response.json()["store_connectivity"] == "UNHEALTHY"
