# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Relay of the OpenID4CI progress events sent by the vc service to the polling demo pages.

Only the latest event of a transaction is kept in the transient store, so every worker
sharing the store sees it. A polling page receives it once.
"""

import logging
from typing import Annotated

from fastapi import Depends

from issuer import models
import issuer.cache.repository as repo
from issuer.cache.transient_store import DataNotFoundError

_logger = logging.getLogger(__name__)

EVENT_DESCRIPTIONS = {
    "oidc_interaction_initiated": "awaiting QR code scan",
    "oidc_interaction_qr_scanned": "QR code scanned",
    "oidc_interaction_authorization_request_prepared": "authorization request prepared",
    "oidc_interaction_authorization_code_stored": "authorization code stored",
    "oidc_interaction_authorization_code_exchanged": "authorization code exchanged for access token",
    "oidc_interaction_succeeded": "issued successfully",
    "oidc_interaction_failed": "issuance failed",
}


def describe(event_type: str) -> str:
    return EVENT_DESCRIPTIONS.get(event_type, event_type)


class EventsTopic:
    def __init__(self, repository: repo.IssuanceRepository) -> None:
        self.repository = repository

    def publish(self, transaction_id: str, event: models.VCSEvent) -> None:
        """Replaces any pending event of the transaction. Throws StoreError"""
        self.repository.put_event(transaction_id, event)
        _logger.debug(f"Received event {event.type} for transaction {transaction_id}")

    def consume(self, transaction_id: str) -> models.EventCheckResponse | None:
        """
        Removes and returns the pending event of the transaction, None if there is none.
        Throws StoreError and CorruptRecordError
        """
        try:
            event = self.repository.pop_event(transaction_id)
        except DataNotFoundError:
            return None
        return models.EventCheckResponse(
            type=event.type,
            description=describe(event.type),
            event=event.model_dump(exclude_none=True),
        )


def get_events_topic(repository: repo.inject) -> EventsTopic:
    return EventsTopic(repository)


inject = Annotated[EventsTopic, Depends(get_events_topic)]
