"""
Store - raw lyric files and their parsed JSON documents.

    <raw_dir>/<Artist>_-_<Title>.lrc    as fetched / staged
    <json_dir>/<Artist>_-_<Title>.json  TimedLyricsDocument
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .. import parsers
from ..domain_types import TimedLyricsDocument, make_safe_filename
from ..infra import write_json_atomic, write_text_atomic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredArtifact:
    """Where a saved track landed and what it contains."""
    raw_path: str
    json_path: str
    format: str
    lines_count: int


def _read_json(path: Path) -> dict:
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


class Store:
    """Writes raw + JSON artifacts atomically; loads JSON for rendering."""

    def __init__(self, raw_dir: Path, json_dir: Path):
        self._raw_dir = Path(raw_dir)
        self._json_dir = Path(json_dir)

    @property
    def raw_dir(self) -> Path:
        return self._raw_dir

    @property
    def json_dir(self) -> Path:
        return self._json_dir

    async def init(self) -> None:
        for directory in (self._raw_dir, self._json_dir):
            await asyncio.to_thread(directory.mkdir, parents=True, exist_ok=True)

    def raw_path_for(self, artist: str, title: str, fmt: str) -> Path:
        return self._raw_dir / f"{make_safe_filename(artist, title)}.{parsers.format_name(fmt)}"

    def json_path_for(self, artist: str, title: str) -> Path:
        return self._json_dir / f"{make_safe_filename(artist, title)}.json"

    async def save(self, artist: str, title: str, content: str, fmt: str,
                   duration: Optional[float] = None) -> StoredArtifact:
        """
        Parse content, then persist raw text and JSON document.

        Each file is replaced atomically. OSError propagates to the caller.
        """
        fmt_name = parsers.format_name(fmt)
        document = parsers.parse(content, fmt_name, duration=duration)
        document = document.with_track(artist, title, fmt_name)

        raw_path = self.raw_path_for(artist, title, fmt_name)
        await asyncio.to_thread(write_text_atomic, raw_path, content)
        logger.debug(f"Saved raw: {raw_path}")

        json_path = self.json_path_for(artist, title)
        await asyncio.to_thread(write_json_atomic, json_path, document.to_dict())
        logger.debug(f"Saved json: {json_path}")

        return StoredArtifact(
            raw_path=str(raw_path),
            json_path=str(json_path),
            format=fmt_name,
            lines_count=len(document.lines),
        )

    async def load(self, json_path: str) -> TimedLyricsDocument:
        """Load a saved document for rendering."""
        data = await asyncio.to_thread(_read_json, Path(json_path))
        return TimedLyricsDocument.from_dict(data)
