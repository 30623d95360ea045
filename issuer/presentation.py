# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Verifiable presentations posted by the wallets of the demo pages.

Proofs are not checked cryptographically. A DID authentication response is accepted
when its holder and its first proof match the holder, domain and challenge handed out before.

https://www.w3.org/TR/vc-data-model/#presentations-0
"""

import json
from typing import Any

VP_TYPE = "VerifiablePresentation"


class InvalidPresentationError(ValueError):
    """Not a verifiable presentation"""


class InvalidAuthResponseError(ValueError):
    """The presentation does not authenticate the holder for the challenge"""


def parse_presentation(raw: Any) -> dict:
    """Accepts the presentation as JSON object or serialized"""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InvalidPresentationError(f"invalid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise InvalidPresentationError("presentation is not a JSON object")

    types = raw.get("type")
    if isinstance(types, str):
        types = [types]
    if not isinstance(types, list) or VP_TYPE not in types:
        raise InvalidPresentationError(f"type {VP_TYPE} is missing")
    return raw


def credentials(presentation: dict) -> list:
    """Credentials of the presentation, a single credential is not wrapped in a list"""
    embedded = presentation.get("verifiableCredential")
    if embedded is None:
        return []
    if isinstance(embedded, list):
        return embedded
    return [embedded]


def _proofs(presentation: dict) -> list:
    proof = presentation.get("proof")
    if isinstance(proof, dict):
        return [proof]
    if isinstance(proof, list):
        return proof
    return []


def _proof_value(proof: dict, name: str) -> str:
    value = proof.get(name)
    if not isinstance(value, str):
        raise InvalidAuthResponseError(f"invalid auth response proof, missing {name}")
    return value


def validate_auth_response(auth_resp: Any, holder: str, domain: str, challenge: str) -> None:
    """
    Throws InvalidPresentationError if auth_resp is no presentation
    and InvalidAuthResponseError if it does not match holder, domain and challenge.
    """
    presentation = parse_presentation(auth_resp)
    if presentation.get("holder") != holder:
        raise InvalidAuthResponseError("invalid auth response, invalid holder proof")

    proofs = _proofs(presentation)
    if not proofs or not isinstance(proofs[0], dict):
        raise InvalidAuthResponseError("invalid auth response, missing proof")

    proof_challenge = _proof_value(proofs[0], "challenge")
    proof_domain = _proof_value(proofs[0], "domain")
    if proof_challenge != challenge or proof_domain != domain:
        raise InvalidAuthResponseError("invalid proof and challenge in response")


def issuer_name(credential: dict) -> str:
    """Name of the issuer profile, which is also the path of its status list on the vc service"""
    credential_issuer = credential.get("issuer")
    name = credential_issuer.get("name") if isinstance(credential_issuer, dict) else None
    if not isinstance(name, str) or not name:
        raise InvalidPresentationError("credential issuer has no name")
    return name
