# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Set up of a mock OpenID issuance.

Every initiated issuance gets its own issuer id. The issuer publishes its well-known
configuration under `{issuer_url}/{issuer_id}` and keeps the credential to deliver
until the wallet completes the authorization flow.
"""

import json
import uuid
import logging
import urllib.parse

from common.parsing import split_comma_separated

from issuer import models
from issuer.cache.repository import IssuanceRepository
from issuer.logging import IssuerOperationsLogEntry

_logger = logging.getLogger(__name__)


def create_issuer_configuration(issuer: str, credential_manifests) -> bytes:
    """Well-known document of the issuer, indented with one tab"""
    document = models.IssuerWellKnownConfiguration(
        issuer=issuer,
        authorization_endpoint=f"{issuer}/oidc/authorize",
        token_endpoint=f"{issuer}/oidc/token",
        credential_endpoint=f"{issuer}/oidc/credential",
        credential_manifests=credential_manifests,
    )
    return json.dumps(document.model_dump(), indent="\t").encode()


def serialize_credential(credential) -> bytes:
    """Credentials arrive either already serialized or as JSON value"""
    if credential is None:
        return b""
    if isinstance(credential, str):
        return credential.encode()
    return json.dumps(credential).encode()


def create_wallet_link(wallet_url: str, issuer: str, credential_types: list[str], manifest_ids: list[str]) -> str:
    """
    Adds the issuer, one `credential_type` per type and one `manifest_id` per manifest id
    to the wallet url. Other query parameters of the wallet url are kept.

    Throws ValueError if the wallet url can not be parsed.
    """
    parts = urllib.parse.urlsplit(wallet_url)
    query = [(name, value) for name, value in urllib.parse.parse_qsl(parts.query, keep_blank_values=True) if name != "issuer"]
    query.append(("issuer", issuer))
    query.extend(("credential_type", credential_type) for credential_type in credential_types)
    query.extend(("manifest_id", manifest_id) for manifest_id in manifest_ids)
    return urllib.parse.urlunsplit(parts._replace(query=urllib.parse.urlencode(query, safe=":/")))


def initiate_issuance(request: models.IssuanceRequest, repository: IssuanceRepository, default_wallet_url: str) -> str:
    """
    Stores the issuer configuration and the credential of a new issuance
    and returns the deep link for the wallet.

    Throws StoreError if the records can not be stored and ValueError on an unparsable wallet url.
    """
    issuer_id = str(uuid.uuid4())
    issuer = f"{request.issuer_url}/{issuer_id}"

    repository.put_issuer_configuration(issuer_id, create_issuer_configuration(issuer, request.cred_manifest))
    repository.put_pending_credential(issuer_id, serialize_credential(request.credential))

    wallet_link = create_wallet_link(
        request.wallet_init_issuance_url or default_wallet_url,
        issuer,
        split_comma_separated(request.credential_types),
        split_comma_separated(request.manifest_ids),
    )
    _logger.info(
        IssuerOperationsLogEntry(
            message=f"Initiated issuance {issuer_id}",
            status=IssuerOperationsLogEntry.Status.success,
            operation=IssuerOperationsLogEntry.Operation.issuance,
            step=IssuerOperationsLogEntry.Step.initiation,
        )
    )
    return wallet_link
