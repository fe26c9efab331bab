#!/usr/bin/env python3
"""
External Service Adapters

Lyrics providers hide protocol complexity behind one capability:

    await provider.search(artist, title) -> Optional[ProviderResult]

Providers fail soft: timeouts, transport errors and bad responses are
logged and reported as "no result", never raised.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .domain_types import clean_for_search

logger = logging.getLogger(__name__)

USER_AGENT = "RekordKaraoke/1.0"


@dataclass(frozen=True)
class ProviderResult:
    """Raw timed-text content returned by a provider."""
    content: str
    format: str
    provider: str
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> Optional[float]:
        value = self.meta.get('duration')
        return float(value) if value else None


class LyricsProvider(Protocol):
    """Capability every lyrics backend implements."""
    name: str

    async def search(self, artist: str, title: str) -> Optional[ProviderResult]:
        ...


# =============================================================================
# LRCLIB - https://lrclib.net/api
# =============================================================================

@dataclass
class LrclibConfig:
    """LRCLIB provider settings. Timeout is per request, in seconds."""
    enabled: bool = True
    base_url: str = "https://lrclib.net/api"
    timeout: float = 5.0
    retries: int = 2
    backoff_factor: float = 0.5


class LrclibProvider:
    """
    Synced lyrics from LRCLIB.

    Strategy:
    - /search with the literal artist/title
    - /search again with cleaned names ("Song (Extended Mix)" -> "Song")
    - only synced lyrics count; plain-only results are a miss

    HTTP runs in a worker thread so the event loop keeps decoding OSC.
    Transient failures (connect/read errors, 429, 5xx) are retried with
    exponential backoff by urllib3 before giving up.
    """

    name = "lrclib"

    def __init__(self, config: Optional[LrclibConfig] = None,
                 session: Optional[requests.Session] = None):
        self._config = config or LrclibConfig()
        self._session = session or self._build_session()

    @property
    def config(self) -> LrclibConfig:
        return self._config

    def _build_session(self) -> requests.Session:
        session = requests.Session()
        session.headers["User-Agent"] = USER_AGENT
        retry = Retry(
            total=self._config.retries,
            connect=self._config.retries,
            read=self._config.retries,
            backoff_factor=self._config.backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def search(self, artist: str, title: str) -> Optional[ProviderResult]:
        """Search as-is, then with cleaned names if they differ."""
        result = await asyncio.to_thread(self._search_sync, artist, title)
        if result:
            return result

        clean_artist = clean_for_search(artist)
        clean_title = clean_for_search(title)
        if (clean_artist, clean_title) != (artist, title) and clean_artist and clean_title:
            logger.debug(f"LRCLIB fallback search: {clean_artist} - {clean_title}")
            return await asyncio.to_thread(self._search_sync, clean_artist, clean_title)
        return None

    async def get(self, artist: str, title: str, album: str = "",
                  duration: float = 0) -> Optional[ProviderResult]:
        """Exact lookup via /get (album and duration improve matching)."""
        return await asyncio.to_thread(self._get_sync, artist, title, album, duration)

    def close(self) -> None:
        self._session.close()

    # =========================================================================
    # PRIVATE
    # =========================================================================

    def _request(self, endpoint: str, params: Dict[str, str],
                 artist: str, title: str) -> Optional[Any]:
        """GET an endpoint and return decoded JSON, or None on any failure."""
        try:
            resp = self._session.get(
                f"{self._config.base_url}/{endpoint}",
                params=params,
                timeout=self._config.timeout,
            )
        except requests.Timeout:
            logger.info(f"LRCLIB timeout for {artist} - {title}")
            return None
        except requests.RequestException as e:
            logger.info(f"LRCLIB {type(e).__name__} for {artist} - {title}: {e}")
            return None

        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            logger.info(f"LRCLIB {endpoint} failed: HTTP {resp.status_code} for {artist} - {title}")
            return None
        try:
            return resp.json()
        except ValueError as e:
            logger.info(f"LRCLIB returned invalid JSON for {artist} - {title}: {e}")
            return None

    def _search_sync(self, artist: str, title: str) -> Optional[ProviderResult]:
        data = self._request(
            "search", {"artist_name": artist, "track_name": title}, artist, title
        )
        if not isinstance(data, list) or not data:
            return None

        items = [item for item in data if isinstance(item, dict)]
        synced = next((item for item in items if item.get('syncedLyrics')), None)
        if synced:
            return self._to_result(synced)

        if any(item.get('plainLyrics') for item in items):
            logger.info(f"LRCLIB: only plain lyrics for {artist} - {title}")
        return None

    def _get_sync(self, artist: str, title: str, album: str,
                  duration: float) -> Optional[ProviderResult]:
        params = {"artist_name": artist, "track_name": title}
        if album:
            params["album_name"] = album
        if duration > 0:
            params["duration"] = str(int(round(duration)))

        data = self._request("get", params, artist, title)
        if not isinstance(data, dict) or not data.get('syncedLyrics'):
            return None
        return self._to_result(data)

    def _to_result(self, item: Dict[str, Any]) -> ProviderResult:
        return ProviderResult(
            content=item['syncedLyrics'],
            format='lrc',
            provider=self.name,
            meta={
                'id': item.get('id'),
                'artist': item.get('artistName'),
                'title': item.get('trackName'),
                'album': item.get('albumName'),
                'duration': item.get('duration'),
            },
        )


def build_providers(lrclib: Optional[LrclibConfig] = None) -> List[LyricsProvider]:
    """Providers in priority order, from configuration."""
    providers: List[LyricsProvider] = []
    lrclib = lrclib or LrclibConfig()
    if lrclib.enabled:
        providers.append(LrclibProvider(lrclib))
    return providers
