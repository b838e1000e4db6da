# moodpicks/spotify.py
# ---------------------------------------------------------------------------
# Best-effort playlist lookup: client-credentials token + playlist search.
# HTTP failures and malformed payloads mean "no playlist".
# ---------------------------------------------------------------------------

from __future__ import annotations

import base64
import logging
import random
from typing import Any, Dict, List, Optional

import httpx

from moodpicks.errors import ProviderError

log = logging.getLogger(__name__)

SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_SEARCH_URL = "https://api.spotify.com/v1/search"

SEARCH_LIMIT = 10
PICK_FROM_TOP = 5


class SpotifyPlaylistClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        http: httpx.AsyncClient,
        market: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._http = http
        self._market = market
        self._rng = rng or random

    async def get_token(self) -> str:
        auth = base64.b64encode(f"{self._client_id}:{self._client_secret}".encode()).decode()
        r = await self._http.post(
            SPOTIFY_TOKEN_URL,
            headers={"Authorization": f"Basic {auth}"},
            data={"grant_type": "client_credentials"},
        )
        r.raise_for_status()
        data = r.json()
        token = data.get("access_token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise ProviderError("Spotify token response has no access_token")
        return token

    async def search_playlists(self, token: str, query: str) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"q": query, "type": "playlist", "limit": SEARCH_LIMIT}
        if self._market:
            params["market"] = self._market
        r = await self._http.get(
            SPOTIFY_SEARCH_URL,
            headers={"Authorization": f"Bearer {token}"},
            params=params,
        )
        r.raise_for_status()
        data = r.json()
        if not isinstance(data, dict):
            raise ProviderError("Spotify search returned an unexpected payload")
        playlists = data.get("playlists")
        items = playlists.get("items") if isinstance(playlists, dict) else None
        if not isinstance(items, list):
            return []
        # the search endpoint can return null entries
        return [
            pl for pl in items
            if isinstance(pl, dict)
            and isinstance(pl.get("external_urls"), dict)
            and isinstance(pl["external_urls"].get("spotify"), str)
        ]

    async def find_playlist(self, query: str) -> Optional[str]:
        query = (query or "").strip()
        if not query:
            return None
        if not self._client_id or not self._client_secret:
            log.info("Spotify credentials not configured; skipping playlist lookup.")
            return None
        try:
            token = await self.get_token()
            playlists = await self.search_playlists(token, query)
        except (httpx.HTTPError, ProviderError, ValueError) as e:
            log.warning("Spotify playlist lookup failed for %r: %s", query, e)
            return None

        if not playlists:
            log.info("No Spotify playlists for %r", query)
            return None
        pick = self._rng.choice(playlists[:PICK_FROM_TOP])
        return pick["external_urls"]["spotify"]
