# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Client of the content management system (CMS) holding users and their credential data.

Every collection answers a query with a JSON array, exactly one record is expected.
"""

import logging
from typing import Annotated

import httpx
from fastapi import Depends

from common import httpx_wrapper
import issuer.config as conf
from issuer import models

_logger = logging.getLogger(__name__)


class RecordNotUniqueError(ValueError):
    """The CMS returned no or more than one record."""


def _single(records: list, what: str) -> dict:
    if not isinstance(records, list):
        raise ValueError(f"expected a list of {what}s")
    if not records:
        raise RecordNotUniqueError(f"{what} not found")
    if len(records) > 1:
        raise RecordNotUniqueError(f"multiple {what}s found")
    return records[0]


def collection_for_scope(scope: str) -> str:
    """Credential scope `StudentCard` is held in the CMS collection `studentcards`"""
    return f"{scope.lower()}s"


class CMSClient:
    def __init__(self, client: httpx.Client, cms_url: str) -> None:
        self.client = client
        self.cms_url = cms_url

    def get_user(self, search_query: str, token: str | None = None) -> models.CMSUser:
        """Looks up a user by a raw query string, e.g. `email=jane@example.com`"""
        response = httpx_wrapper.send(self.client, "GET", f"{self.cms_url}/users?{search_query}", token=token)
        return models.CMSUser.model_validate(_single(response.json(), "user"))

    def get_user_data(self, collection: str, user_id: str, token: str | None = None) -> dict:
        _logger.debug(f"Loading {collection} record from the CMS")
        response = httpx_wrapper.send(
            self.client,
            "GET",
            f"{self.cms_url}/{collection}",
            params={"userid": user_id},
            token=token,
        )
        return _single(response.json(), "record")

    def get_subject_data(self, search_query: str, scope: str, token: str | None = None) -> tuple[str, dict]:
        """Returns the user id and the credential data of the user for the scope"""
        user = self.get_user(search_query, token)
        return user.userid, self.get_user_data(collection_for_scope(scope), user.userid, token)


def get_cms_client(config: conf.inject) -> CMSClient:
    return CMSClient(config.get_http_client(), config.cms_url)


inject = Annotated[CMSClient, Depends(get_cms_client)]
