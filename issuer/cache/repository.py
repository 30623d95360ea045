# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Typed access to the records of the issuance flows.

All records share the flat namespace of the transient store. The prefixes of the
record kinds only appear in here:

| record                       | key                        |
|------------------------------|----------------------------|
| issuer well-known document   | `{issuer_id}`              |
| pending credential           | `cred_store_{issuer_id}`   |
| authorization request        | `authstate_{auth_state}`   |
| authorization code           | `authcode_{code}`          |
| access token                 | `access_token_{token}`     |
| flow state                   | `flowstate_{auth_state}`   |
| latest vc service event      | `events_{tx}`              |
| OIDC login state             | `oidcstate_{state}`        |
| txn, search & DIDComm data   | `{uuid}`                   |
"""

from typing import Annotated

import pydantic
from fastapi import Depends

from issuer import models
from issuer.cache import transient_store as ts

AUTH_STATE_PREFIX = "authstate_"
AUTH_CODE_PREFIX = "authcode_"
ACCESS_TOKEN_PREFIX = "access_token_"
CREDENTIAL_PREFIX = "cred_store_"
FLOW_STATE_PREFIX = "flowstate_"
EVENT_PREFIX = "events_"
OIDC_STATE_PREFIX = "oidcstate_"


class CorruptRecordError(ValueError):
    """A stored record can not be read back into its model."""


class IssuanceRepository:
    def __init__(self, store: ts.TransientStore) -> None:
        self.store = store

    def _get_model(self, key: str, model: type[pydantic.BaseModel]):
        raw = self.store.get(key)
        try:
            return model.model_validate_json(raw)
        except pydantic.ValidationError as e:
            raise CorruptRecordError(key) from e

    # Issuer session

    def put_issuer_configuration(self, issuer_id: str, document: bytes) -> None:
        self.store.put(issuer_id, document)

    def get_issuer_configuration(self, issuer_id: str) -> bytes:
        return self.store.get(issuer_id)

    def put_pending_credential(self, issuer_id: str, credential: bytes) -> None:
        self.store.put(f"{CREDENTIAL_PREFIX}{issuer_id}", credential)

    def get_pending_credential(self, issuer_id: str) -> bytes:
        return self.store.get(f"{CREDENTIAL_PREFIX}{issuer_id}")

    # Authorization

    def put_auth_state(self, auth_state: str, request: models.AuthorizationRequestState) -> None:
        self.store.put(f"{AUTH_STATE_PREFIX}{auth_state}", request.model_dump_json())

    def get_auth_state(self, auth_state: str) -> models.AuthorizationRequestState:
        """
        Throws DataNotFoundError for unknown authorizations and CorruptRecordError for unreadable ones
        """
        return self._get_model(f"{AUTH_STATE_PREFIX}{auth_state}", models.AuthorizationRequestState)

    def put_auth_code(self, code: str, auth_state: str) -> None:
        self.store.put(f"{AUTH_CODE_PREFIX}{code}", auth_state)

    def get_auth_code(self, code: str) -> str:
        return self.store.get(f"{AUTH_CODE_PREFIX}{code}").decode()

    def delete_auth_code(self, code: str) -> None:
        self.store.delete(f"{AUTH_CODE_PREFIX}{code}")

    def put_access_token(self, token: str, record: models.AccessTokenRecord) -> None:
        self.store.put(f"{ACCESS_TOKEN_PREFIX}{token}", record.model_dump_json())

    def get_access_token(self, token: str) -> models.AccessTokenRecord:
        return self._get_model(f"{ACCESS_TOKEN_PREFIX}{token}", models.AccessTokenRecord)

    def put_flow_state(self, auth_state: str, state: models.FlowState) -> None:
        self.store.put(f"{FLOW_STATE_PREFIX}{auth_state}", state.value)

    def get_flow_state(self, auth_state: str) -> models.FlowState:
        raw = self.store.get(f"{FLOW_STATE_PREFIX}{auth_state}").decode()
        try:
            return models.FlowState(raw)
        except ValueError as e:
            raise CorruptRecordError(f"{FLOW_STATE_PREFIX}{auth_state}") from e

    # CMS & DIDComm hand over data

    def put_txn_data(self, txn_id: str, data: models.TxnData) -> None:
        self.store.put(txn_id, data.model_dump_json())

    def get_txn_data(self, txn_id: str) -> models.TxnData:
        return self._get_model(txn_id, models.TxnData)

    def put_search_data(self, search_id: str, data: models.SearchData) -> None:
        self.store.put(search_id, data.model_dump_json(by_alias=True))

    def get_search_data(self, search_id: str) -> models.SearchData:
        return self._get_model(search_id, models.SearchData)

    def put_user_data(self, key: str, data: models.UserDataMap) -> None:
        self.store.put(key, data.model_dump_json(by_alias=True))

    def get_user_data(self, key: str) -> models.UserDataMap:
        return self._get_model(key, models.UserDataMap)

    # OpenID4CI events

    def put_event(self, transaction_id: str, event: models.VCSEvent) -> None:
        self.store.put(f"{EVENT_PREFIX}{transaction_id}", event.model_dump_json(exclude_none=True))

    def pop_event(self, transaction_id: str) -> models.VCSEvent:
        """
        Throws DataNotFoundError if no event is pending for the transaction
        """
        raw = self.store.pop(f"{EVENT_PREFIX}{transaction_id}")
        try:
            return models.VCSEvent.model_validate_json(raw)
        except pydantic.ValidationError as e:
            raise CorruptRecordError(f"{EVENT_PREFIX}{transaction_id}") from e

    # OIDC login

    def put_oidc_state(self, state: str) -> None:
        self.store.put(f"{OIDC_STATE_PREFIX}{state}", state)

    def has_oidc_state(self, state: str) -> bool:
        """
        Throws StoreError if the store can not be queried
        """
        try:
            self.store.get(f"{OIDC_STATE_PREFIX}{state}")
        except ts.DataNotFoundError:
            return False
        return True


def get_repository(store: ts.inject) -> IssuanceRepository:
    return IssuanceRepository(store)


inject = Annotated[IssuanceRepository, Depends(get_repository)]
