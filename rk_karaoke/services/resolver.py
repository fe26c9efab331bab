"""
Resolver - finds synced lyrics for a track.

Order, stopping at the first hit:
    1. library index
    2. staged raw files named after the track (.lrc, then .srt)
    3. providers in priority order

Hits are saved through the Store and recorded in the Library. A miss is
not remembered; the next resolve for the track runs the whole pipeline
again. Concurrent resolves for the same normalized key share a single
in-flight task.
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, TYPE_CHECKING

from .. import parsers
from ..adapters import LyricsProvider, build_providers
from ..domain_types import LibraryEntry, make_key, make_safe_filename
from .library import Library
from .store import Store

if TYPE_CHECKING:
    from ..infra import AppConfig

logger = logging.getLogger(__name__)

LOCAL_PROVIDER = "local"


class Resolver:
    """
    Resolution pipeline with per-key request deduplication.

    Simple interface:
        await resolver.init()
        entry = await resolver.resolve(artist, title)   # LibraryEntry or None
        doc = await resolver.store.load(entry.json_path)
    """

    def __init__(self, library: Library, store: Store,
                 providers: Optional[Sequence[LyricsProvider]] = None,
                 raw_dir: Optional[Path] = None):
        self._library = library
        self._store = store
        self._providers: List[LyricsProvider] = list(providers or [])
        self._raw_dir = Path(raw_dir) if raw_dir else store.raw_dir
        self._pending: Dict[str, "asyncio.Task[Optional[LibraryEntry]]"] = {}

    @classmethod
    def from_config(cls, config: "AppConfig") -> "Resolver":
        paths = config.paths
        return cls(
            library=Library(paths.library),
            store=Store(paths.lyrics_raw, paths.lyrics_json),
            providers=build_providers(config.lrclib),
            raw_dir=paths.lyrics_raw,
        )

    @property
    def library(self) -> Library:
        return self._library

    @property
    def store(self) -> Store:
        return self._store

    @property
    def providers(self) -> List[LyricsProvider]:
        return list(self._providers)

    def pending_keys(self) -> List[str]:
        """Keys with a resolution currently in flight."""
        return list(self._pending)

    async def init(self) -> None:
        """Create storage directories and load the library (once)."""
        await self._store.init()
        if not self._library.loaded:
            await self._library.load()

    def close(self) -> None:
        """Release provider resources (HTTP sessions)."""
        for provider in self._providers:
            close = getattr(provider, "close", None)
            if close:
                close()

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def resolve(self, artist: str, title: str, skip_local: bool = False,
                      skip_providers: bool = False) -> Optional[LibraryEntry]:
        """
        Resolve lyrics for a track. Returns the library entry or None.

        If the same normalized key is already being resolved, waits for that
        run instead of starting another one (options of the later call are
        ignored). Persistence errors propagate.
        """
        key = make_key(artist, title)
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(
                self._run(key, artist, title, skip_local, skip_providers)
            )
            self._pending[key] = task
        else:
            logger.debug(f"Joining in-flight resolve: {artist} - {title}")
        # Shielded so a cancelled waiter does not cancel the shared run
        return await asyncio.shield(task)

    async def check_local_files(self, artist: str, title: str) -> Optional[LibraryEntry]:
        """Import a staged raw file named after the track, if one exists."""
        base_name = make_safe_filename(artist, title)
        for ext in parsers.SUPPORTED_FORMATS:
            raw_path = self._raw_dir / f"{base_name}{ext}"
            if not await asyncio.to_thread(raw_path.is_file):
                continue
            logger.info(f"Found local file: {raw_path}")
            content = await asyncio.to_thread(raw_path.read_text, encoding='utf-8-sig')
            stored = await self._store.save(artist, title, content, ext)
            return await self._library.add(
                artist, title,
                raw_path=stored.raw_path,
                json_path=stored.json_path,
                format=stored.format,
                lines_count=stored.lines_count,
                provider=LOCAL_PROVIDER,
            )
        return None

    # =========================================================================
    # PRIVATE
    # =========================================================================

    async def _run(self, key: str, artist: str, title: str, skip_local: bool,
                   skip_providers: bool) -> Optional[LibraryEntry]:
        try:
            return await self._resolve_uncached(artist, title, skip_local, skip_providers)
        finally:
            self._pending.pop(key, None)

    async def _resolve_uncached(self, artist: str, title: str, skip_local: bool,
                                skip_providers: bool) -> Optional[LibraryEntry]:
        if not skip_local:
            cached = self._library.find(artist, title)
            if cached:
                logger.debug(f"Library hit: {artist} - {title}")
                return cached

            local = await self.check_local_files(artist, title)
            if local:
                return local

        if not skip_providers:
            found = await self._query_providers(artist, title)
            if found:
                return found

        logger.info(f"Not found: {artist} - {title}")
        return None

    async def _query_providers(self, artist: str, title: str) -> Optional[LibraryEntry]:
        for provider in self._providers:
            logger.debug(f"Trying provider: {provider.name}")
            try:
                result = await provider.search(artist, title)
            except Exception as e:
                logger.info(f"Provider {provider.name} failed for {artist} - {title}: "
                            f"{type(e).__name__}: {e}")
                continue
            if not result:
                continue

            logger.info(f"Found via {provider.name}: {artist} - {title}")
            stored = await self._store.save(
                artist, title, result.content, result.format, duration=result.duration
            )
            return await self._library.add(
                artist, title,
                raw_path=stored.raw_path,
                json_path=stored.json_path,
                format=stored.format,
                lines_count=stored.lines_count,
                provider=provider.name,
            )
        return None
