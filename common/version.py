# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import os

commit_hash = os.getenv("COMMIT_HASH", "no hash")
commit_time = os.getenv("COMMIT_TIMESTAMP", "no timestamp")
version = os.getenv("VERSION", "0.1.0")


def get_version() -> str:
    """Version shown as title suffix of the openapi documentation."""
    return f"{version} ({commit_hash} {commit_time})"
