"""Spotify currently-playing source."""

from __future__ import annotations

import base64
import logging
import time
from typing import Any

import httpx

from ..common.exceptions import MediaSourceError
from ..core.state import MediaSnapshot
from .base import MediaStatusSource

logger = logging.getLogger(__name__)

TOKEN_URL = "https://accounts.spotify.com/api/token"
API_BASE_URL = "https://api.spotify.com/v1"

# Refresh this long before the token actually expires
_EXPIRY_MARGIN_S = 60.0


class SpotifyMediaSource(MediaStatusSource):
    """Polls the Spotify Web API using a long-lived refresh token."""

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        refresh_token: str | None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._access_token: str | None = None
        self._token_expiry = 0.0

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.refresh_token)

    async def poll(self) -> MediaSnapshot | None:
        if not self.configured:
            return MediaSnapshot()
        try:
            return await self._currently_playing()
        except (httpx.HTTPError, MediaSourceError, ValueError) as e:
            logger.warning("Spotify poll failed: %s", e)
            return None

    async def close(self) -> None:
        await self._client.aclose()

    async def _get_access_token(self) -> str:
        if self._access_token and time.monotonic() < self._token_expiry:
            return self._access_token

        basic = base64.b64encode(
            f"{self.client_id}:{self.client_secret}".encode("utf-8")
        ).decode("ascii")
        resp = await self._client.post(
            TOKEN_URL,
            headers={"Authorization": f"Basic {basic}"},
            data={"grant_type": "refresh_token", "refresh_token": self.refresh_token},
        )
        resp.raise_for_status()
        data = resp.json()
        token = data.get("access_token")
        if not token:
            raise MediaSourceError("Token response did not include an access token")

        expires_in = float(data.get("expires_in", 3600))
        self._access_token = token
        self._token_expiry = time.monotonic() + expires_in - _EXPIRY_MARGIN_S
        logger.debug("Refreshed Spotify access token (expires in %.0fs)", expires_in)
        return token

    async def _currently_playing(self) -> MediaSnapshot:
        token = await self._get_access_token()
        resp = await self._client.get(
            f"{API_BASE_URL}/me/player/currently-playing",
            headers={"Authorization": f"Bearer {token}"},
        )
        if resp.status_code in (204, 404):
            return MediaSnapshot()
        if resp.status_code == 401:
            # Token revoked early; refresh on the next poll
            self._access_token = None
        resp.raise_for_status()
        return parse_currently_playing(resp.json())


def parse_currently_playing(data: dict[str, Any] | None) -> MediaSnapshot:
    """Map a currently-playing response body onto a MediaSnapshot."""
    if not data or not data.get("item"):
        return MediaSnapshot()

    item = data["item"]
    artists = item.get("artists") or []
    album = item.get("album") or {}
    images = album.get("images") or []
    return MediaSnapshot(
        is_playing=bool(data.get("is_playing")),
        title=item.get("name") or "",
        artist=(artists[0].get("name") or "") if artists else "",
        album=album.get("name") or "",
        cover_url=(images[0].get("url") or "") if images else "",
        progress_ms=int(data.get("progress_ms") or 0),
    )
