# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Transient key value store of the issuance transactions.

All records of the issuer share one flat namespace. The store does not expire records;
expiry, if wanted, is configured on the redis server. When no `STORE_URL` is configured
an in process fakeredis instance is used.
"""

import logging
from typing import Annotated
from functools import cache

import fakeredis
import redis
from fastapi import Depends

from issuer.config import IssuerConfig

_logger = logging.getLogger(__name__)


class DataNotFoundError(KeyError):
    """No record is stored under the requested key."""


class StoreError(Exception):
    """The underlying storage provider failed."""


class TransientStore:
    def __init__(self, client: redis.Redis, namespace: str = "issuer_txn") -> None:
        """
        * client: redis compatible client, e.g. `fakeredis.FakeStrictRedis`
        * namespace: prefix of all keys in the redis database
        """
        self.client = client
        self.namespace = namespace

    def _get_key(self, key: str) -> str:
        return f'{self.namespace}:{key}'

    def put(self, key: str, value: bytes | str) -> None:
        try:
            self.client.set(self._get_key(key), value)
        except redis.RedisError as e:
            raise StoreError(f"failed to store {key}") from e

    def get(self, key: str) -> bytes:
        """
        Throws DataNotFoundError if nothing is stored under the key
        """
        try:
            value = self.client.get(self._get_key(key))
        except redis.RedisError as e:
            raise StoreError(f"failed to read {key}") from e
        if value is None:
            raise DataNotFoundError(key)
        return value

    def pop(self, key: str) -> bytes:
        """
        Reads and deletes the record in one step, a concurrent reader never gets the same record.
        Throws DataNotFoundError if nothing is stored under the key
        """
        try:
            value = self.client.getdel(self._get_key(key))
        except redis.RedisError as e:
            raise StoreError(f"failed to pop {key}") from e
        if value is None:
            raise DataNotFoundError(key)
        return value

    def delete(self, key: str) -> None:
        try:
            self.client.delete(self._get_key(key))
        except redis.RedisError as e:
            raise StoreError(f"failed to delete {key}") from e

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            raise StoreError("store unreachable") from e


def create_client(store_url: str | None) -> redis.Redis:
    if store_url:
        _logger.info("Using redis transient store.")
        return redis.Redis.from_url(store_url)
    _logger.info("No STORE_URL configured, using in process fake redis store.")
    return fakeredis.FakeStrictRedis(version=7)


@cache
def get_transient_store() -> TransientStore:
    return TransientStore(create_client(IssuerConfig().store_url))


inject = Annotated[TransientStore, Depends(get_transient_store)]
