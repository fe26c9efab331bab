"""
Library - persistent index of resolved tracks.

One JSON object on disk, normalized key -> entry:

    {
      "daft punk::around the world": {
        "artist": "Daft Punk", "title": "Around The World",
        "rawPath": "...", "jsonPath": "...", "format": "lrc",
        "linesCount": 42, "provider": "lrclib", "addedAt": "..."
      }
    }

Loaded once at startup, rewritten atomically on every addition.
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..domain_types import LibraryEntry, make_key
from ..infra import read_json_safe, write_json_atomic

logger = logging.getLogger(__name__)


class Library:
    """Normalized-key index of resolved lyrics. Last write wins per key."""

    def __init__(self, library_path: Path):
        self._path = Path(library_path)
        self._index: Dict[str, LibraryEntry] = {}
        self._loaded = False
        self._save_lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def loaded(self) -> bool:
        return self._loaded

    def __len__(self) -> int:
        return len(self._index)

    async def load(self) -> None:
        """Read the index file. A missing file is an empty library."""
        data = await asyncio.to_thread(read_json_safe, self._path, {})
        if not isinstance(data, dict):
            raise ValueError(f"Library file {self._path} is not a JSON object")
        self._index = {key: LibraryEntry.from_dict(value) for key, value in data.items()}
        self._loaded = True
        logger.info(f"Library loaded: {len(self._index)} tracks")

    async def save(self) -> None:
        async with self._save_lock:
            await self._write(self._index)

    async def _write(self, index: Dict[str, LibraryEntry]) -> None:
        snapshot = {key: entry.to_dict() for key, entry in index.items()}
        await asyncio.to_thread(write_json_atomic, self._path, snapshot)

    def find(self, artist: str, title: str) -> Optional[LibraryEntry]:
        return self._index.get(make_key(artist, title))

    def find_key(self, key: str) -> Optional[LibraryEntry]:
        return self._index.get(key)

    def has(self, artist: str, title: str) -> bool:
        return self.find(artist, title) is not None

    def entries(self) -> List[Tuple[str, LibraryEntry]]:
        return list(self._index.items())

    async def add(self, artist: str, title: str, *, raw_path: str, json_path: str,
                  format: str, lines_count: int, provider: str) -> LibraryEntry:
        """Insert or replace the entry for this track and persist the index."""
        entry = LibraryEntry(
            artist=artist,
            title=title,
            raw_path=raw_path,
            json_path=json_path,
            format=format,
            lines_count=lines_count,
            provider=provider,
            added_at=datetime.now(timezone.utc).isoformat(timespec='milliseconds'),
        )
        key = make_key(artist, title)
        # Index changes only after the file write succeeded
        async with self._save_lock:
            await self._write({**self._index, key: entry})
            self._index[key] = entry
        logger.info(f"Library: added {artist} - {title} ({provider})")
        return entry
