"""
Shared fixtures.

Network tests use `requires_internet` and are skipped offline. Everything
else runs against temp directories and in-memory fake providers.
"""
import asyncio
import socket
from typing import Dict, List, Optional, Tuple

import pytest

from rk_karaoke.adapters import LrclibConfig, ProviderResult
from rk_karaoke.infra import AppConfig, PathsConfig
from rk_karaoke.osc.bridge import BridgeConfig
from rk_karaoke.services import Library, Resolver, Store

SAMPLE_LRC = "[ar:Daft Punk]\n[00:01.00]Hello\n[00:03.50]World\n"


class FakeProvider:
    """In-memory provider recording every search call."""

    def __init__(self, name: str = "fake", results: Optional[Dict[Tuple[str, str], str]] = None,
                 default: Optional[str] = None, error: Optional[Exception] = None,
                 duration: Optional[float] = None):
        self.name = name
        self.results = results or {}
        self.default = default
        self.error = error
        self.duration = duration
        self.calls: List[Tuple[str, str]] = []
        self.gate: Optional[asyncio.Event] = None
        self.closed = False

    def close(self) -> None:
        self.closed = True

    async def search(self, artist: str, title: str) -> Optional[ProviderResult]:
        self.calls.append((artist, title))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        content = self.results.get((artist, title), self.default)
        if content is None:
            return None
        meta = {"duration": self.duration} if self.duration else {}
        return ProviderResult(content=content, format="lrc", provider=self.name, meta=meta)


def is_online(host: str = "lrclib.net") -> bool:
    try:
        with socket.create_connection((host, 443), timeout=5):
            return True
    except OSError:
        return False


@pytest.fixture
def requires_internet():
    """Check internet connectivity (no prompt needed)."""
    if not is_online():
        pytest.skip("No internet connection")


@pytest.fixture
def paths(tmp_path) -> PathsConfig:
    return PathsConfig.under(tmp_path / "data")


@pytest.fixture
def app_config(paths) -> AppConfig:
    """Offline config: ephemeral OSC port, LRCLIB disabled."""
    return AppConfig(
        osc=BridgeConfig(host="127.0.0.1", port=0, debounce_ms=10),
        paths=paths,
        lrclib=LrclibConfig(enabled=False),
    )


@pytest.fixture
def store(paths) -> Store:
    return Store(paths.lyrics_raw, paths.lyrics_json)


@pytest.fixture
def library(paths) -> Library:
    return Library(paths.library)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider(default=SAMPLE_LRC)


@pytest.fixture
def make_resolver(library, store):
    def _make(*providers) -> Resolver:
        return Resolver(library, store, providers=list(providers))
    return _make
