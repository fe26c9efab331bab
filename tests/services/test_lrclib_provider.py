"""
Tests for the LRCLIB provider.

HTTP is mocked at the requests.Session level; the live test needs internet.
"""
import logging
from unittest.mock import MagicMock

import pytest
import requests

from rk_karaoke.adapters import (
    USER_AGENT,
    LrclibConfig,
    LrclibProvider,
    build_providers,
)

SYNCED = "[00:01.00]Is this the real life?\n[00:05.00]Is this just fantasy?"


def _response(status=200, payload=None):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = payload
    return resp


def _provider(*responses):
    session = MagicMock()
    session.get.side_effect = list(responses)
    return LrclibProvider(LrclibConfig(base_url="https://lrclib.test/api", timeout=3.0), session), session


class TestSearch:

    @pytest.mark.asyncio
    async def test_first_synced_result_wins(self):
        provider, session = _provider(_response(payload=[
            {"id": 1, "plainLyrics": "plain only"},
            {"id": 2, "syncedLyrics": SYNCED, "duration": 354, "trackName": "Bohemian Rhapsody"},
            {"id": 3, "syncedLyrics": "[00:00.00]other"},
        ]))

        result = await provider.search("Queen", "Bohemian Rhapsody")

        assert result.content == SYNCED
        assert result.format == "lrc"
        assert result.provider == "lrclib"
        assert result.meta["id"] == 2
        assert result.duration == 354.0

        url = session.get.call_args.args[0]
        assert url == "https://lrclib.test/api/search"
        kwargs = session.get.call_args.kwargs
        assert kwargs["params"] == {"artist_name": "Queen", "track_name": "Bohemian Rhapsody"}
        assert kwargs["timeout"] == 3.0

    @pytest.mark.asyncio
    async def test_plain_only_is_a_miss(self, caplog):
        caplog.set_level(logging.INFO)
        provider, session = _provider(_response(payload=[{"plainLyrics": "words"}]))
        assert await provider.search("Queen", "Bohemian Rhapsody") is None
        assert session.get.call_count == 1
        assert "only plain lyrics" in caplog.text

    @pytest.mark.asyncio
    async def test_cleaned_query_fallback(self):
        provider, session = _provider(
            _response(payload=[]),
            _response(payload=[{"syncedLyrics": SYNCED}]),
        )

        result = await provider.search("Daft Punk feat. X", "Around The World (Extended Mix)")

        assert result is not None
        assert session.get.call_count == 2
        params = session.get.call_args.kwargs["params"]
        assert params == {"artist_name": "Daft Punk", "track_name": "Around The World"}

    @pytest.mark.asyncio
    async def test_timeout_is_no_result(self, caplog):
        caplog.set_level(logging.INFO)
        provider, session = _provider(requests.Timeout("slow"))
        assert await provider.search("Queen", "Bohemian Rhapsody") is None
        assert "timeout" in caplog.text

    @pytest.mark.asyncio
    async def test_connection_error_is_no_result(self):
        provider, _ = _provider(requests.ConnectionError("refused"))
        assert await provider.search("Queen", "Bohemian Rhapsody") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 500, 429])
    async def test_http_errors_are_no_result(self, status):
        provider, _ = _provider(_response(status=status))
        assert await provider.search("Queen", "Bohemian Rhapsody") is None

    @pytest.mark.asyncio
    async def test_non_object_items_are_skipped(self):
        provider, _ = _provider(_response(payload=["junk", None, 7, {"syncedLyrics": SYNCED}]))
        result = await provider.search("Queen", "Bohemian Rhapsody")
        assert result.content == SYNCED

    @pytest.mark.asyncio
    async def test_only_non_object_items_is_no_result(self):
        provider, _ = _provider(_response(payload=["junk", ["nested"]]))
        assert await provider.search("Queen", "Bohemian Rhapsody") is None

    @pytest.mark.asyncio
    async def test_invalid_json_is_no_result(self):
        resp = _response()
        resp.json.side_effect = ValueError("not json")
        provider, _ = _provider(resp)
        assert await provider.search("Queen", "Bohemian Rhapsody") is None


class TestGet:

    @pytest.mark.asyncio
    async def test_exact_lookup_params(self):
        provider, session = _provider(_response(payload={"syncedLyrics": SYNCED, "duration": 354.2}))

        result = await provider.get("Queen", "Bohemian Rhapsody", album="A Night at the Opera",
                                    duration=354.2)

        assert result.content == SYNCED
        assert session.get.call_args.args[0].endswith("/get")
        assert session.get.call_args.kwargs["params"] == {
            "artist_name": "Queen",
            "track_name": "Bohemian Rhapsody",
            "album_name": "A Night at the Opera",
            "duration": "354",
        }

    @pytest.mark.asyncio
    async def test_get_without_synced_lyrics(self):
        provider, _ = _provider(_response(payload={"plainLyrics": "words"}))
        assert await provider.get("Queen", "Bohemian Rhapsody") is None


class TestSession:

    def test_default_session_sends_user_agent_and_retries(self):
        provider = LrclibProvider(LrclibConfig(retries=3))
        session = provider._session
        try:
            assert session.headers["User-Agent"] == USER_AGENT
            retry = session.get_adapter("https://lrclib.net").max_retries
            assert retry.total == 3
            assert 503 in retry.status_forcelist
        finally:
            provider.close()

    def test_build_providers_respects_enabled(self):
        assert build_providers(LrclibConfig(enabled=False)) == []
        providers = build_providers(LrclibConfig())
        assert [p.name for p in providers] == ["lrclib"]
        providers[0].close()


class TestLive:

    @pytest.mark.asyncio
    async def test_fetches_synced_lyrics_for_known_song(self, requires_internet):
        """Fetches synced lyrics for a well-known song."""
        provider = LrclibProvider()
        try:
            result = await provider.search("Queen", "Bohemian Rhapsody")
        finally:
            provider.close()

        assert result is not None, "Should find synced lyrics for Queen - Bohemian Rhapsody"
        assert result.content.lstrip().startswith("[")
        print(f"\nFetched {len(result.content.splitlines())} lines")
