# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Assembly of unsigned verifiable credentials from CMS records.

https://www.w3.org/TR/vc-data-model/
"""

import json
import uuid
import datetime
import logging

from common import httpx_wrapper

from issuer.clients.vcs import VCSClient
from issuer.logging import IssuerOperationsLogEntry

_logger = logging.getLogger(__name__)

CREDENTIAL_CONTEXT = "https://www.w3.org/2018/credentials/v1"
TRUSTBLOC_EXAMPLE_CONTEXT = "https://trustbloc.github.io/context/vc/examples-ext-v1.jsonld"
CITIZENSHIP_CONTEXT = "https://w3id.org/citizenship/v1"

EXTERNAL_SUBJECT_DATA_SCOPE = "subject_data"
"""Scope of records coming from the external data source instead of the CMS"""

DEFAULT_TYPES = ["VerifiableCredential", "PermanentResidentCard"]
DEFAULT_CONTEXT = [CREDENTIAL_CONTEXT, TRUSTBLOC_EXAMPLE_CONTEXT]

CMS_INTERNAL_FIELDS = ("created_at", "updated_at", "userid", "vcmetadata")
VC_METADATA = "vcmetadata"
VC_CREDENTIAL_SUBJECT = "vccredentialsubject"


class CredentialAssemblyError(Exception):
    """The credential could not be assembled, e.g. the issuer profile is unavailable."""


def _custom_metadata(subject: dict) -> tuple[list[str], dict]:
    """Context and display fields defined by the `vcmetadata` of a CMS record"""
    context = list(DEFAULT_CONTEXT)
    custom_fields = {}
    metadata = subject.get(VC_METADATA)
    if isinstance(metadata, dict):
        if isinstance(metadata.get("@context"), list):
            context = [str(entry) for entry in metadata["@context"]]
        for field in ("name", "description"):
            if field in metadata:
                custom_fields[field] = metadata[field]
    return context, custom_fields


def prepare_credential(subject: dict, scope: str, vcs_profile: str, vcs_client: VCSClient) -> bytes:
    """
    Builds the unsigned credential for the CMS record of a user.

    The record is changed in place: its id is blanked (the holder is bound at issuance)
    and the CMS bookkeeping fields are removed.

    Throws CredentialAssemblyError if the issuer profile can not be loaded.
    """
    subject["id"] = ""
    context, custom_fields = _custom_metadata(subject)
    for field in CMS_INTERNAL_FIELDS:
        subject.pop(field, None)

    try:
        profile = vcs_client.get_profile(vcs_profile)
    except httpx_wrapper.REQUEST_ERRORS as e:
        _logger.error(
            IssuerOperationsLogEntry(
                message=f"Retrieving issuer profile {vcs_profile} failed",
                status=IssuerOperationsLogEntry.Status.error,
                operation=IssuerOperationsLogEntry.Operation.issuance,
                step=IssuerOperationsLogEntry.Step.assembly,
            )
        )
        raise CredentialAssemblyError(f"retrieve profile - name={vcs_profile} err={e}") from e

    if scope == EXTERNAL_SUBJECT_DATA_SCOPE:
        types = list(DEFAULT_TYPES)
        context = [CREDENTIAL_CONTEXT, CITIZENSHIP_CONTEXT]
        credential_subject = subject.get("subjectData")
        custom_fields["name"] = "Permanent Resident Card"
    else:
        types = ["VerifiableCredential", scope]
        credential_subject = subject

    # Complex subjects are stored as single JSON entity in the CMS
    if isinstance(subject.get(VC_CREDENTIAL_SUBJECT), dict):
        credential_subject = subject[VC_CREDENTIAL_SUBJECT]

    credential = {
        "@context": context,
        "type": types,
        "id": f"{profile.uri}/{uuid.uuid4()}",
        "issuer": {"id": profile.did, "name": profile.name},
        "issuanceDate": datetime.datetime.now(tz=datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "credentialSubject": credential_subject,
        **custom_fields,
    }
    return json.dumps(credential).encode()
