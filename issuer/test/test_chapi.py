# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Tests for the web wallet demo pages: DID authentication, issuance and revocation
"""

import json
from unittest import mock

import httpx
import pytest
from fastapi.testclient import TestClient

from common import httpx_wrapper
from issuer import presentation
from issuer.clients import vcs

HOLDER = "did:example:holder"
DOMAIN = "issuer.example"
CHALLENGE = "c0ffee"
CREDENTIAL = {
    "@context": ["https://www.w3.org/2018/credentials/v1"],
    "type": ["VerifiableCredential", "StudentCard"],
    "credentialSubject": {"name": "Jane Doe"},
}
SIGNED = b'{"id": "urn:uuid:vc-1", "proof": {"type": "Ed25519Signature2018"}}'


def _auth_response(holder: str = HOLDER, **proof) -> dict:
    return {
        "@context": ["https://www.w3.org/2018/credentials/v1"],
        "type": "VerifiablePresentation",
        "holder": holder,
        "proof": {"type": "Ed25519Signature2018", "challenge": CHALLENGE, "domain": DOMAIN, **proof},
    }


def _issued(credential_id: str, issuer_name: str = "Example Issuer") -> dict:
    return {
        "id": credential_id,
        "type": ["VerifiableCredential"],
        "issuer": {"id": "did:example:issuer", "name": issuer_name},
        "credentialSubject": {"id": HOLDER},
    }


def _presentation(credentials) -> str:
    return json.dumps({"type": ["VerifiablePresentation"], "verifiableCredential": credentials})


#################
# DID auth      #
#################


def test_verify_did_auth(client: TestClient):
    for auth_resp in [_auth_response(), json.dumps(_auth_response())]:
        response = client.post(
            "/verify/didauth",
            json={"holder": HOLDER, "domain": DOMAIN, "challenge": CHALLENGE, "authResp": auth_resp},
        )
        assert response.status_code == 200
        assert response.content == b""


@pytest.mark.parametrize(
    "auth_resp,message",
    [
        (_auth_response(holder="did:example:other"), "invalid auth response, invalid holder proof"),
        (_auth_response(challenge=None), "invalid auth response proof, missing challenge"),
        (_auth_response(domain=42), "invalid auth response proof, missing domain"),
        (_auth_response(challenge="replayed"), "invalid proof and challenge in response"),
        ({**_auth_response(), "proof": []}, "invalid auth response, missing proof"),
    ],
)
def test_verify_did_auth_rejected(client: TestClient, auth_resp: dict, message: str):
    response = client.post(
        "/verify/didauth",
        json={"holder": HOLDER, "domain": DOMAIN, "challenge": CHALLENGE, "authResp": auth_resp},
    )
    assert response.status_code == 400
    assert response.text == f"failed to validate did auth resp : {message}"


def test_verify_did_auth_not_a_presentation(client: TestClient):
    response = client.post("/verify/didauth", json={"holder": HOLDER, "authResp": {"type": "VerifiableCredential"}})
    assert response.status_code == 400
    assert response.text.startswith("failed to validate did auth resp")

    response = client.post("/verify/didauth", content=b"{not json", headers={"content-type": "application/json"})
    assert response.status_code == 400
    assert response.text.startswith("failed to decode request")


def test_first_proof_of_list_is_checked():
    auth_resp = _auth_response()
    auth_resp["proof"] = [auth_resp["proof"], {"type": "Ed25519Signature2018", "challenge": "other"}]
    presentation.validate_auth_response(auth_resp, HOLDER, DOMAIN, CHALLENGE)

    auth_resp["proof"].reverse()
    with pytest.raises(presentation.InvalidAuthResponseError):
        presentation.validate_auth_response(auth_resp, HOLDER, DOMAIN, CHALLENGE)


#################
# Generate      #
#################


def _generate_form(**overrides) -> dict:
    form = {
        "cred": json.dumps(CREDENTIAL),
        "holder": HOLDER,
        "authresp": json.dumps(_auth_response()),
        "domain": DOMAIN,
        "challenge": CHALLENGE,
    }
    form.update(overrides)
    return {key: value for key, value in form.items() if value is not None}


def test_generate(client: TestClient, vcs_client: mock.Mock):
    vcs_client.issue_credential.return_value = SIGNED
    client.cookies.set("vcsProfile", "profile-1")

    response = client.post("/generate", data=_generate_form())
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "urn:uuid:vc-1" in response.text

    profile, holder, credential = vcs_client.issue_credential.call_args.args
    assert (profile, holder) == ("profile-1", HOLDER)
    assert json.loads(credential) == CREDENTIAL
    vcs_client.store_credential.assert_called_once_with(SIGNED, "profile-1")


def test_generate_without_profile(client: TestClient, vcs_client: mock.Mock):
    response = client.post("/generate", data=_generate_form())
    assert response.status_code == 400
    assert response.text == "failed to get cookie: vcsProfile"
    vcs_client.issue_credential.assert_not_called()


@pytest.mark.parametrize("missing", ["cred", "holder", "authresp", "domain", "challenge"])
def test_generate_missing_form_value(client: TestClient, missing: str):
    client.cookies.set("vcsProfile", "profile-1")
    response = client.post("/generate", data=_generate_form(**{missing: None}))
    assert response.status_code == 400
    assert response.text == f"invalid request argument: invalid '{missing}'"


def test_generate_did_auth_failed(client: TestClient, vcs_client: mock.Mock):
    client.cookies.set("vcsProfile", "profile-1")
    response = client.post("/generate", data=_generate_form(challenge="other"))
    assert response.status_code == 500
    assert response.text == "failed to create verifiable credential: DID Auth failed: invalid proof and challenge in response"
    vcs_client.issue_credential.assert_not_called()


def test_generate_signing_failed(client: TestClient, vcs_client: mock.Mock):
    vcs_client.issue_credential.side_effect = httpx_wrapper.UnexpectedStatusError("POST", "https://vcs.example", 500, "down")
    client.cookies.set("vcsProfile", "profile-1")

    response = client.post("/generate", data=_generate_form())
    assert response.status_code == 500
    assert response.text.startswith("failed to create verifiable credential")
    vcs_client.store_credential.assert_not_called()


def test_generate_store_failed(client: TestClient, vcs_client: mock.Mock):
    vcs_client.issue_credential.return_value = SIGNED
    vcs_client.store_credential.side_effect = httpx.ConnectError("connection refused")
    client.cookies.set("vcsProfile", "profile-1")

    response = client.post("/generate", data=_generate_form())
    assert response.status_code == 500
    assert response.text == "failed to store credential: connection refused"


#################
# Revoke        #
#################


def test_revoke(client: TestClient, vcs_client: mock.Mock):
    vc_data = _presentation([_issued("urn:uuid:vc-1"), _issued("urn:uuid:vc-2", "Other Issuer")])

    response = client.post("/revoke", data={"vcDataInput": vc_data})
    assert response.status_code == 200
    assert "VC is revoked" in response.text
    assert vcs_client.update_credential_status.call_args_list == [
        mock.call("Example Issuer", "urn:uuid:vc-1"),
        mock.call("Other Issuer", "urn:uuid:vc-2"),
    ]


def test_revoke_single_credential(client: TestClient, vcs_client: mock.Mock):
    response = client.post("/revoke", data={"vcDataInput": _presentation(_issued("urn:uuid:vc-1"))})
    assert response.status_code == 200
    vcs_client.update_credential_status.assert_called_once_with("Example Issuer", "urn:uuid:vc-1")


@pytest.mark.parametrize(
    "vc_data,message",
    [
        ("", "failed to parse presentation"),
        (json.dumps(_issued("urn:uuid:vc-1")), "failed to parse presentation"),
        (_presentation(["eyJhbGciOiJFZERTQSJ9.e30.sig"]), "failed to cast credential"),
        (_presentation([{"id": "urn:uuid:vc-1", "issuer": "did:example:issuer"}]), "failed to parse credentials"),
    ],
)
def test_revoke_invalid_presentation(client: TestClient, vcs_client: mock.Mock, vc_data: str, message: str):
    response = client.post("/revoke", data={"vcDataInput": vc_data})
    assert response.status_code == 500
    assert response.text.startswith(message)
    vcs_client.update_credential_status.assert_not_called()


def test_revoke_status_update_failed(client: TestClient, vcs_client: mock.Mock):
    vcs_client.update_credential_status.side_effect = httpx_wrapper.UnexpectedStatusError("POST", "https://vcs.example", 404, "unknown")
    response = client.post("/revoke", data={"vcDataInput": _presentation([_issued("urn:uuid:vc-1")])})
    assert response.status_code == 400
    assert response.text.startswith("failed to update vc status")


#################
# VCSClient     #
#################


def _recording_vcs(requests: list[httpx.Request]) -> vcs.VCSClient:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200)

    return vcs.VCSClient(httpx.Client(transport=httpx.MockTransport(handler)), "https://vcs.example", "vcs-token")


def test_vcs_store_credential():
    requests: list[httpx.Request] = []
    _recording_vcs(requests).store_credential(SIGNED, "profile-1")

    assert str(requests[0].url) == "https://vcs.example/store"
    assert requests[0].headers["authorization"] == "Bearer vcs-token"
    assert json.loads(requests[0].content) == {"credential": SIGNED.decode(), "profile": "profile-1"}


def test_vcs_update_credential_status():
    requests: list[httpx.Request] = []
    _recording_vcs(requests).update_credential_status("Example Issuer", "urn:uuid:vc-1")

    assert requests[0].url.path == "/Example Issuer/credentials/status"
    assert json.loads(requests[0].content) == {
        "credentialID": "urn:uuid:vc-1",
        "credentialStatus": {"type": "StatusList2021Entry", "status": "1"},
    }
