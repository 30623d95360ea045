# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Tests for the mock OpenID4VCI issuance using pytest & starlette / fastapi
"""

import json
import re
import urllib.parse

import pytest
from fastapi.testclient import TestClient
from jwcrypto.common import base64url_decode

import issuer.config as conf
import issuer.signer as sig
import issuer.cache.transient_store as ts
from issuer import models
from issuer.cache.repository import IssuanceRepository
from issuer.test.conftest import t_config, ISSUER_URL, WALLET_URL

REDIRECT_URI = "https://wallet.example/cb"
CLIENT_STATE = "wallet-state"

CREDENTIAL = {
    "@context": ["https://www.w3.org/2018/credentials/v1"],
    "type": ["VerifiableCredential", "VerifiedEmployee"],
    "issuer": "did:example:issuer",
    "issuanceDate": "2024-01-01T00:00:00Z",
    "credentialSubject": {"id": "did:example:holder", "displayName": "John Doe"},
}
MANIFEST = {"id": "m1", "output_descriptors": [{"id": "od1", "schema": "VerifiedEmployee"}]}


def _initiate(client: TestClient, credential=None, **kwargs) -> tuple[str, str]:
    """
    Initiates an issuance, returns the wallet link and the issuer id
    """
    body = {
        "credentialTypes": "VerifiedEmployee",
        "manifestIDs": "m1",
        "issuerURL": ISSUER_URL,
        "credManifest": MANIFEST,
        "credential": json.dumps(CREDENTIAL) if credential is None else credential,
    }
    body.update(kwargs)
    response = client.post("/oidc/issuance", json=body)
    assert response.status_code == 200, response.text
    match = re.search(rf"issuer={re.escape(ISSUER_URL)}/([0-9a-f-]+)", response.text)
    assert match, f"Wallet link should name the issuer - {response.text}"
    return response.text, match.group(1)


def _authorize(client: TestClient, issuer_id: str, **overrides):
    params = {
        "claims": '{"credential_type": "VerifiedEmployee"}',
        "redirect_uri": REDIRECT_URI,
        "scope": "openid",
        "state": CLIENT_STATE,
        "response_type": "code",
        "client_id": "wallet",
    }
    params.update(overrides)
    return client.get(f"/{issuer_id}/oidc/authorize", params=params, follow_redirects=False)


def _login(client: TestClient) -> str:
    """Logs in with the `state` cookie, returns the authorization code"""
    response = client.post("/oidc/authorize-request", follow_redirects=False)
    assert response.status_code == 302, response.text
    location = urllib.parse.urlsplit(response.headers["location"])
    assert f"{location.scheme}://{location.netloc}{location.path}" == REDIRECT_URI
    query = urllib.parse.parse_qs(location.query)
    assert query["state"] == [CLIENT_STATE], "The state of the wallet must be handed back"
    return query["code"][0]


def _token(client: TestClient, issuer_id: str, code: str, redirect_uri: str = REDIRECT_URI, grant_type: str = "authorization_code"):
    return client.post(
        f"/{issuer_id}/oidc/token",
        data={"code": code, "redirect_uri": redirect_uri, "grant_type": grant_type},
    )


def _credential(client: TestClient, issuer_id: str, access_token: str, credential_format: str = "ldp_vc"):
    return client.post(
        f"/{issuer_id}/oidc/credential",
        data={"format": credential_format},
        headers={"Authorization": f"Bearer {access_token}"},
    )


def _run_until_token(client: TestClient, issuer_id: str) -> str:
    assert _authorize(client, issuer_id).status_code == 302
    code = _login(client)
    response = _token(client, issuer_id, code)
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


def _verify_proof(credential: dict) -> None:
    """Recomputes the signing input and verifies the detached JWS with the demo key"""
    proof = dict(credential["proof"])
    header, _, signature = proof.pop("jws").split(".")
    document = {key: value for key, value in credential.items() if key != "proof"}
    expected_header, signing_input = sig.create_signing_input(document, proof)
    assert header == expected_header
    # Raises InvalidSignature if the proof does not match
    sig.get_signer().public_key().verify(base64url_decode(signature), signing_input)


def test_initiate_issuance_and_well_known(client: TestClient):
    wallet_link, issuer_id = _initiate(client)
    assert wallet_link.startswith(f"{WALLET_URL}?")
    assert f"issuer={ISSUER_URL}/{issuer_id}&credential_type=VerifiedEmployee&manifest_id=m1" in wallet_link

    response = client.get(f"/{issuer_id}/.well-known/openid-configuration")
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    well_known = response.json()
    issuer = f"{ISSUER_URL}/{issuer_id}"
    assert well_known["issuer"] == issuer
    assert well_known["authorization_endpoint"] == f"{issuer}/oidc/authorize"
    assert well_known["token_endpoint"] == f"{issuer}/oidc/token"
    assert well_known["credential_endpoint"] == f"{issuer}/oidc/credential"
    assert well_known["credential_manifests"] == MANIFEST
    assert "\n\t" in response.text, "Document is indented with tabs"


def test_initiate_issuance_with_wallet_url(client: TestClient):
    wallet_link, issuer_id = _initiate(
        client,
        walletInitIssuanceURL="https://other-wallet.example/start?lang=en&issuer=stale",
        credentialTypes="A,B",
        manifestIDs="",
    )
    parsed = urllib.parse.urlsplit(wallet_link)
    assert parsed.netloc == "other-wallet.example"
    query = urllib.parse.parse_qs(parsed.query)
    assert query["lang"] == ["en"]
    assert query["issuer"] == [f"{ISSUER_URL}/{issuer_id}"], "Issuer of the wallet url is replaced"
    assert query["credential_type"] == ["A", "B"]
    assert "manifest_id" not in query


def test_initiate_issuance_with_credential_object(client: TestClient, repository: IssuanceRepository):
    _, issuer_id = _initiate(client, credential=CREDENTIAL)
    assert json.loads(repository.get_pending_credential(issuer_id)) == CREDENTIAL


def test_initiate_issuance_malformed_body(client: TestClient):
    response = client.post("/oidc/issuance", content=b"{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert response.text.startswith("failed to decode request")


def test_well_known_unknown_issuer(client: TestClient):
    response = client.get("/unknown/.well-known/openid-configuration")
    assert response.status_code == 500


def test_authorize_stores_request(client: TestClient, repository: IssuanceRepository):
    _, issuer_id = _initiate(client)
    response = _authorize(client, issuer_id, redirect_uri=urllib.parse.quote(REDIRECT_URI, safe=""))
    assert response.status_code == 302
    assert response.headers["location"] == t_config().oidc_login_path
    auth_state = client.cookies.get("state")
    assert auth_state

    stored = repository.get_auth_state(auth_state)
    assert stored == models.AuthorizationRequestState(
        claims='{"credential_type": "VerifiedEmployee"}',
        scope="openid",
        state=CLIENT_STATE,
        response_type="code",
        client_id="wallet",
        redirect_uri=REDIRECT_URI,
    ), "Escaped redirect uris are stored unescaped"
    assert repository.get_flow_state(auth_state) == models.FlowState.requested


@pytest.mark.parametrize("missing", ["claims", "redirect_uri", "client_id", "state"])
def test_authorize_missing_parameter(client: TestClient, store: ts.TransientStore, missing: str):
    response = _authorize(client, "some-issuer", **{missing: ""})
    assert response.status_code == 400
    assert store.client.dbsize() == 0, "Nothing may be stored for an invalid request"


def test_login_page(client: TestClient):
    response = client.get("/oidc/login")
    assert response.status_code == 200
    assert 'action="/oidc/authorize-request"' in response.text


def test_authorize_response_without_cookie(client: TestClient):
    response = client.post("/oidc/authorize-request", follow_redirects=False)
    assert response.status_code == 403
    assert response.text == "invalid state"


def test_authorize_response_unknown_state(client: TestClient):
    client.cookies.set("state", "unknown")
    response = client.post("/oidc/authorize-request", follow_redirects=False)
    assert response.status_code == 400


def test_authorize_response_corrupt_request(client: TestClient, store: ts.TransientStore):
    store.put("authstate_corrupt", b"{not json")
    client.cookies.set("state", "corrupt")
    response = client.post("/oidc/authorize-request", follow_redirects=False)
    assert response.status_code == 500


def test_token_unsupported_grant_type(client: TestClient, store: ts.TransientStore):
    response = _token(client, "some-issuer", "some-code", grant_type="client_credentials")
    assert response.status_code == 400
    assert response.json() == {"error": "unsupported grant type"}
    assert response.headers["cache-control"] == "no-store"
    assert store.client.dbsize() == 0


def test_token_unknown_code(client: TestClient):
    response = _token(client, "some-issuer", "unknown")
    assert response.status_code == 400
    assert response.json() == {"error": "invalid state"}


def test_token_code_can_be_replayed(client: TestClient):
    _, issuer_id = _initiate(client)
    _authorize(client, issuer_id)
    code = _login(client)

    first = _token(client, issuer_id, code)
    assert first.status_code == 200
    token_response = first.json()
    assert token_response["token_type"] == "Bearer"
    assert token_response["expires_in"] == 3600
    assert re.fullmatch(r"[0-9a-f-]{36}", token_response["access_token"])
    assert first.headers["cache-control"] == "no-store"
    assert first.headers["pragma"] == "no-cache"

    second = _token(client, issuer_id, code)
    assert second.status_code == 200, "Codes are not single use unless configured"
    assert second.json()["access_token"] != token_response["access_token"]


def test_token_single_use_codes(client: TestClient):
    from issuer.issuer import app

    def single_use_config() -> conf.IssuerConfig:
        config = t_config()
        config.single_use_auth_codes = True
        return config

    app.dependency_overrides[conf.IssuerConfig] = single_use_config
    _, issuer_id = _initiate(client)
    _authorize(client, issuer_id)
    code = _login(client)

    assert _token(client, issuer_id, code).status_code == 200
    replay = _token(client, issuer_id, code)
    assert replay.status_code == 400
    assert replay.json() == {"error": "invalid state"}


def test_token_redirect_uri_mismatch(client: TestClient):
    _, issuer_id = _initiate(client)
    _authorize(client, issuer_id)
    code = _login(client)

    response = _token(client, issuer_id, code, redirect_uri="https://attacker.example/cb")
    # Regression: the mismatch is reported as server error
    assert response.status_code == 500
    assert response.json() == {"error": "request validation failed"}


def test_full_flow(client: TestClient, repository: IssuanceRepository):
    _, issuer_id = _initiate(client)
    access_token = _run_until_token(client, issuer_id)
    auth_state = client.cookies.get("state")
    assert repository.get_flow_state(auth_state) == models.FlowState.token_issued

    response = _credential(client, issuer_id, access_token)
    assert response.status_code == 200, response.text
    assert response.headers["cache-control"] == "no-store"
    body = response.json()
    assert body["format"] == "ldp_vc"
    credential = body["credential"]
    assert credential["credentialSubject"] == CREDENTIAL["credentialSubject"]
    assert credential["proof"]["type"] == "Ed25519Signature2018"
    assert credential["proof"]["proofPurpose"] == "assertionMethod"
    assert credential["proof"]["verificationMethod"] == sig.DEMO_VERIFICATION_METHOD
    _verify_proof(credential)

    assert repository.get_flow_state(auth_state) == models.FlowState.delivered
    assert json.loads(repository.get_pending_credential(issuer_id)) == CREDENTIAL, "Pending credential stays unchanged"


def test_credential_for_other_issuer(client: TestClient):
    _, issuer_id = _initiate(client)
    _, other_issuer_id = _initiate(client)
    access_token = _run_until_token(client, issuer_id)

    response = _credential(client, other_issuer_id, access_token)
    assert response.status_code == 403
    assert response.json() == {"error": "invalid transaction"}


@pytest.mark.parametrize(
    "authorization,status_code,error",
    [
        (None, 400, "malformed token"),
        ("Basic abc", 400, "malformed token"),
        ("Bearer ", 403, "invalid token"),
        ("Bearer unknown", 400, "invalid token"),
    ],
)
def test_credential_bad_token(client: TestClient, authorization: str | None, status_code: int, error: str):
    headers = {"Authorization": authorization} if authorization is not None else {}
    response = client.post("/some-issuer/oidc/credential", data={"format": "ldp_vc"}, headers=headers)
    assert response.status_code == status_code
    assert response.json() == {"error": error}


def test_credential_unsupported_format(client: TestClient):
    response = _credential(client, "some-issuer", "token", credential_format="jwt_vc")
    assert response.status_code == 400
    assert response.json() == {"error": "unsupported format requested"}


def test_credential_default_format(client: TestClient):
    _, issuer_id = _initiate(client)
    access_token = _run_until_token(client, issuer_id)
    response = _credential(client, issuer_id, access_token, credential_format="")
    assert response.status_code == 200
    assert response.json()["format"] == ""


def test_credential_not_a_credential(client: TestClient):
    _, issuer_id = _initiate(client, credential='"just a string"')
    access_token = _run_until_token(client, issuer_id)
    response = _credential(client, issuer_id, access_token)
    assert response.status_code == 500
    assert response.json() == {"error": "failed to prepare credential"}


def test_credential_array_is_stored_and_rejected_at_delivery(client: TestClient, repository: IssuanceRepository):
    _, issuer_id = _initiate(client, credential=[CREDENTIAL])
    assert json.loads(repository.get_pending_credential(issuer_id)) == [CREDENTIAL]

    access_token = _run_until_token(client, issuer_id)
    response = _credential(client, issuer_id, access_token)
    assert response.status_code == 500
    assert response.json() == {"error": "failed to prepare credential"}


def test_flow_state_admin(client: TestClient):
    _, issuer_id = _initiate(client)
    _authorize(client, issuer_id)
    auth_state = client.cookies.get("state")

    response = client.get(f"/admin/flow/{auth_state}")
    assert response.status_code == 200
    assert response.json() == {"auth_state": auth_state, "flow_state": "REQUESTED"}

    _login(client)
    assert client.get(f"/admin/flow/{auth_state}").json()["flow_state"] == "CODE_ISSUED"

    assert client.get("/admin/flow/unknown").status_code == 404
    assert client.get(f"/admin/flow/{auth_state}", headers={"x-api-key": "wrong"}).status_code == 401
