# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Signing of credentials delivered by the mock OpenID issuance.

Credentials get an `Ed25519Signature2018` linked data proof carrying a detached JWS
(https://www.rfc-editor.org/rfc/rfc7797) over the hashes of the proof options and the document.
Documents are canonicalized as sorted, compact JSON instead of URDNA2015 as no JSON-LD
processor is involved.
"""

import abc
import hashlib
import datetime
import logging
from typing import Annotated
from functools import cache

import base58
from cryptography.hazmat.primitives.asymmetric import ed25519
from fastapi import Depends
from jwcrypto import jwk
from jwcrypto.common import base64url_encode, json_encode

_logger = logging.getLogger(__name__)

DEMO_PRIVATE_KEY_BASE58 = "2MP5gWCnf67jvW3E4Lz8PpVrDWAXMYY1sDxjnkEnKhkkbKD7yP2mkVeyVpu5nAtr3TeDgMNjBPirk2XcQacs3dvZ"
"""Publicly known demo key, base58 encoded seed followed by the public key"""
DEMO_VERIFICATION_METHOD = "did:key:z6MknC1wwS6DEYwtGbZZo2QvjQjkh2qSBjb4GYmbye8dv4S5#z6MknC1wwS6DEYwtGbZZo2QvjQjkh2qSBjb4GYmbye8dv4S5"

PROOF_TYPE = "Ed25519Signature2018"
PROOF_PURPOSE = "assertionMethod"
JWS_HEADER = {"alg": "EdDSA", "b64": False, "crit": ["b64"]}


class SigningError(Exception):
    """The credential could not be signed."""


class Signer(abc.ABC):
    """Key used to sign the delivered credentials."""

    verification_method: str
    """Key reference put into the proof"""

    @abc.abstractmethod
    def sign(self, data: bytes) -> bytes:
        pass

    @abc.abstractmethod
    def get_public_jwk(self) -> jwk.JWK:
        pass


class Ed25519Signer(Signer):
    def __init__(self, private_key: ed25519.Ed25519PrivateKey, verification_method: str) -> None:
        self._private_key = private_key
        self.verification_method = verification_method

    @classmethod
    def from_base58(cls, encoded_key: str, verification_method: str) -> "Ed25519Signer":
        """Loads a base58 encoded key, either the 32 byte seed or the 64 byte seed & public key pair"""
        raw = base58.b58decode(encoded_key)
        if len(raw) not in (32, 64):
            raise ValueError(f"ed25519: bad private key length {len(raw)}")
        return cls(ed25519.Ed25519PrivateKey.from_private_bytes(raw[:32]), verification_method)

    def sign(self, data: bytes) -> bytes:
        return self._private_key.sign(data)

    def get_public_jwk(self) -> jwk.JWK:
        return jwk.JWK.from_pyca(self._private_key.public_key())

    def public_key(self) -> ed25519.Ed25519PublicKey:
        return self._private_key.public_key()


def _canonical_hash(document: dict) -> bytes:
    return hashlib.sha256(json_encode(document).encode()).digest()


def create_signing_input(document: dict, proof_options: dict) -> tuple[str, bytes]:
    """
    Returns the encoded JWS header and the bytes to sign for the document,
    the document itself must not yet contain a proof.
    """
    header = base64url_encode(json_encode(JWS_HEADER))
    return header, header.encode() + b"." + _canonical_hash(proof_options) + _canonical_hash(document)


def add_linked_data_proof(credential: dict, signer: Signer, created: datetime.datetime | None = None) -> dict:
    """
    Returns a copy of the credential with an attached `Ed25519Signature2018` proof.

    Throws SigningError if the signer fails.
    """
    created = created or datetime.datetime.now(tz=datetime.timezone.utc)
    document = {key: value for key, value in credential.items() if key != "proof"}
    proof = {
        "type": PROOF_TYPE,
        "created": created.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "verificationMethod": signer.verification_method,
        "proofPurpose": PROOF_PURPOSE,
    }
    header, signing_input = create_signing_input(document, proof)
    try:
        signature = signer.sign(signing_input)
    except Exception as e:
        raise SigningError("failed to sign credential") from e
    proof["jws"] = f"{header}..{base64url_encode(signature)}"
    return {**document, "proof": proof}


@cache
def get_signer() -> Signer:
    _logger.info(f"Signing credentials with demo key {DEMO_VERIFICATION_METHOD}")
    return Ed25519Signer.from_base58(DEMO_PRIVATE_KEY_BASE58, DEMO_VERIFICATION_METHOD)


inject = Annotated[Signer, Depends(get_signer)]
