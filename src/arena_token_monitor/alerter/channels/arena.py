"""Arena timeline channel."""

from __future__ import annotations

from typing import Any

import httpx

from arena_token_monitor.alerter.channels.base import ChannelError
from arena_token_monitor.profiler.resolver import ARENA_SOCIAL_ORIGIN, DEFAULT_SOCIAL_API_URL

DEFAULT_TIMEOUT_SECONDS = 15.0


class ArenaChannel:
    """Publishes posts to the Arena timeline as the configured account."""

    def __init__(
        self,
        bearer_token: str,
        *,
        base_url: str = DEFAULT_SOCIAL_API_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._bearer_token = bearer_token
        self._url = f"{base_url.rstrip('/')}/threads"
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout_seconds)

    async def post(self, content: str) -> dict[str, Any]:
        """Publish a timeline post.

        Raises:
            ChannelError: On a transport failure or a non-2xx response.
        """
        headers = {
            "Authorization": f"Bearer {self._bearer_token}",
            "Content-Type": "application/json",
            "Origin": ARENA_SOCIAL_ORIGIN,
            "Referer": f"{ARENA_SOCIAL_ORIGIN}/",
        }
        body = {"content": content, "POST": [], "privacyType": 0}
        try:
            response = await self._client.post(self._url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise ChannelError(f"Arena post failed: {e}") from e

        if not response.is_success:
            raise ChannelError(
                f"Arena post failed: HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            data = {}
        return data if isinstance(data, dict) else {"data": data}

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
