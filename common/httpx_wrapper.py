# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""Wrapper for httpx calls to the collaborating services, adds context to failures"""

import httpx
from httpx import ConnectError


class UnexpectedStatusError(Exception):
    """Collaborator answered with a status code other than the expected one."""

    def __init__(self, method: str, url: str, status_code: int, body: str) -> None:
        super().__init__(f"{method} {url} answered {status_code}: {body}")
        self.status_code = status_code
        self.body = body


REQUEST_ERRORS = (httpx.HTTPError, UnexpectedStatusError, ValueError)
"""Failures of a collaborator call: transport, status or unparsable response"""


def send(
    client: httpx.Client,
    method: str,
    url: str,
    *,
    token: str | None = None,
    expected_status: int = 200,
    **kwargs,
) -> httpx.Response:
    """Sends a request and checks the response status.

    * token: if set, sent as `Authorization: Bearer {token}`
    * expected_status: the only status code accepted as success

    Throws httpx.ConnectError with the URL on failure to reach the service
    and `UnexpectedStatusError` carrying the response body on any other status.
    """
    headers = dict(kwargs.pop("headers", None) or {})
    if token:
        headers["Authorization"] = f"Bearer {token}"
    try:
        response = client.request(method, url, headers=headers, **kwargs)
    except ConnectError as e:
        e.add_note(f"Failed to {method} {url=}")
        raise
    if response.status_code != expected_status:
        raise UnexpectedStatusError(method, url, response.status_code, response.text)
    return response
