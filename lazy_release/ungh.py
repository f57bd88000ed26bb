"""Client for the ungh.cc GitHub user lookup service.

Two endpoints are used: /users/find/{query} resolves an email address (or
any other query) to a GitHub username, /users/{username} returns the
profile including the display name. Lookups are best effort; any failure
reads as "not found".
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)


class UnghClient:
    """Small synchronous client for https://ungh.cc"""

    BASE_URL = "https://ungh.cc"

    def __init__(self, client: httpx.Client | None = None, timeout: float = 10.0):
        self.client = client or httpx.Client(base_url=self.BASE_URL, timeout=timeout)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> UnghClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _get_user(self, path: str) -> dict[str, Any]:
        try:
            response = self.client.get(path)
        except httpx.HTTPError as e:
            logger.warning("User lookup %s failed: %s", path, e)
            return {}

        if not response.is_success:
            logger.info("User lookup %s returned %d", path, response.status_code)
            return {}

        try:
            data = response.json()
        except ValueError:
            logger.warning("User lookup %s returned invalid JSON", path)
            return {}
        user = data.get("user") if isinstance(data, dict) else None
        return user if isinstance(user, dict) else {}

    def find_username(self, query: str) -> str | None:
        """GitHub username for an email address, if ungh knows it."""
        return self._get_user(f"/users/find/{quote(query, safe='@')}").get("username") or None

    def find_name(self, username: str) -> str | None:
        """Display name of a GitHub user, if set."""
        return self._get_user(f"/users/{quote(username, safe='')}").get("name") or None
