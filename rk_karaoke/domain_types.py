"""
Domain Models and Pure Functions

Pure calculations with no side effects - immutable data structures
and stateless functions for track identity and timed lyrics.
"""

import re
from dataclasses import dataclass, field, replace, asdict
from typing import Any, Dict, List, Optional, Tuple


# =============================================================================
# NORMALIZATION PATTERNS - Constant data for key derivation
# =============================================================================

_BRACKETED = re.compile(r'\s*[(\[][^)\]]*[)\]]\s*')
_SPECIAL_CHARS = re.compile(r'[^\w\s]')
_FEATURING = re.compile(r'\s*\b(?:featuring|feat|ft)\s+.*$')
_FEATURING_DOTTED = re.compile(r'\s*\b(?:featuring|feat\.?|ft\.?)\s+.*$', re.IGNORECASE)
_MIX_SUFFIX = re.compile(
    r'\s+-\s+[^-]*\b(?:mix|edit|remix|version|remaster(?:ed)?)\b[^-]*$',
    re.IGNORECASE,
)
_WHITESPACE = re.compile(r'\s+')
_UNSAFE_FILENAME = re.compile(r'[<>:"/\\|?*]')

KEY_SEPARATOR = "::"
SAFE_NAME_LIMIT = 50


# =============================================================================
# IMMUTABLE DATA STRUCTURES - Pure domain models
# =============================================================================

@dataclass(frozen=True)
class TrackIdentity:
    """Artist/title pair as reported by the DJ application. Immutable."""
    artist: str
    title: str

    @property
    def key(self) -> str:
        """Normalized lookup key; equal keys mean the same track."""
        return make_key(self.artist, self.title)


@dataclass(frozen=True)
class TimedLine:
    """A single lyric line with start and end time in seconds. Immutable."""
    time: float
    end_time: float
    text: str

    def shifted(self, offset_sec: float) -> 'TimedLine':
        """Create new instance moved by offset, clamped at zero."""
        return replace(
            self,
            time=max(0.0, self.time + offset_sec),
            end_time=max(0.0, self.end_time + offset_sec),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"time": self.time, "endTime": self.end_time, "text": self.text}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TimedLine':
        return cls(
            time=float(data["time"]),
            end_time=float(data["endTime"]),
            text=str(data["text"]),
        )


@dataclass(frozen=True)
class TimedLyricsDocument:
    """
    Canonical timed-lyrics document produced by every parser.

    Lines are sorted ascending by time. The on-disk JSON shape is
    {meta, lines: [{time, endTime, text}], duration?, artist, title, format}.
    """
    lines: Tuple[TimedLine, ...] = ()
    meta: Dict[str, str] = field(default_factory=dict)
    duration: Optional[float] = None
    artist: str = ""
    title: str = ""
    format: str = ""

    def with_track(self, artist: str, title: str, fmt: str) -> 'TimedLyricsDocument':
        """Create new instance tagged with track identity and source format."""
        return replace(self, artist=artist, title=title, format=fmt)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "meta": dict(self.meta),
            "lines": [line.to_dict() for line in self.lines],
        }
        if self.duration is not None:
            data["duration"] = self.duration
        data["artist"] = self.artist
        data["title"] = self.title
        data["format"] = self.format
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TimedLyricsDocument':
        duration = data.get("duration")
        return cls(
            lines=tuple(TimedLine.from_dict(item) for item in data.get("lines", [])),
            meta={str(k): str(v) for k, v in data.get("meta", {}).items()},
            duration=float(duration) if duration is not None else None,
            artist=data.get("artist", ""),
            title=data.get("title", ""),
            format=data.get("format", ""),
        )


@dataclass(frozen=True)
class LibraryEntry:
    """
    Resolved-track record stored in the library index. Immutable.

    Persisted with camelCase keys so existing index files stay readable.
    """
    artist: str
    title: str
    raw_path: str
    json_path: str
    format: str
    lines_count: int
    provider: str
    added_at: str

    _JSON_KEYS = (
        ("artist", "artist"),
        ("title", "title"),
        ("raw_path", "rawPath"),
        ("json_path", "jsonPath"),
        ("format", "format"),
        ("lines_count", "linesCount"),
        ("provider", "provider"),
        ("added_at", "addedAt"),
    )

    def to_dict(self) -> Dict[str, Any]:
        values = asdict(self)
        return {json_key: values[attr] for attr, json_key in self._JSON_KEYS}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LibraryEntry':
        return cls(
            artist=data.get("artist", ""),
            title=data.get("title", ""),
            raw_path=data.get("rawPath", ""),
            json_path=data.get("jsonPath", ""),
            format=data.get("format", ""),
            lines_count=int(data.get("linesCount", 0)),
            provider=data.get("provider", ""),
            added_at=data.get("addedAt", ""),
        )


@dataclass
class BridgeState:
    """
    Last-known transport state of the master deck.

    Mutable, single writer (the OSC bridge). Never persisted.
    """
    artist: str = ""
    title: str = ""
    time: float = 0.0
    bpm: float = 0.0
    beat: float = 0.0

    @property
    def track_key(self) -> str:
        """Raw (non-normalized) key used for change detection."""
        return f"{self.artist}{KEY_SEPARATOR}{self.title}"

    @property
    def has_track(self) -> bool:
        return bool(self.artist and self.title)

    def snapshot(self) -> 'BridgeState':
        return replace(self)


# =============================================================================
# PURE FUNCTIONS - Calculations with no side effects
# =============================================================================

def normalize(text: Optional[str]) -> str:
    """
    Normalize free text for lookup keys. Pure and idempotent.

    Lower-cases, strips (...) and [...] annotations, drops anything that is
    not a word character or whitespace, strips feat./ft. tails and
    collapses whitespace.
    """
    if not text:
        return ''
    result = text.lower()
    result = _BRACKETED.sub(' ', result)
    result = _SPECIAL_CHARS.sub('', result)
    result = _FEATURING.sub('', result)
    result = _WHITESPACE.sub(' ', result)
    return result.strip()


def make_key(artist: Optional[str], title: Optional[str]) -> str:
    """Build the normalized library key for an artist/title pair."""
    return f"{normalize(artist)}{KEY_SEPARATOR}{normalize(title)}"


def clean_for_search(text: Optional[str]) -> str:
    """
    Strip DJ-library noise from a query while keeping case.

    "Song (Original Mix) feat. X" -> "Song"
    "Song - Extended Mix" -> "Song"
    """
    if not text:
        return ''
    result = _BRACKETED.sub(' ', text)
    result = _FEATURING_DOTTED.sub('', result)
    result = _MIX_SUFFIX.sub('', result)
    result = _WHITESPACE.sub(' ', result)
    return result.strip()


def _safe_part(text: Optional[str]) -> str:
    safe = _UNSAFE_FILENAME.sub('_', text or 'unknown')
    safe = _WHITESPACE.sub('_', safe)
    return safe[:SAFE_NAME_LIMIT]


def make_safe_filename(artist: Optional[str], title: Optional[str]) -> str:
    """
    Create a filesystem-safe base name from artist and title.

    Reserved path characters become underscores, whitespace runs become a
    single underscore, each part is capped at 50 characters.
    """
    return f"{_safe_part(artist)}_-_{_safe_part(title)}"


def get_active_line_index(lines: List[TimedLine], position: float) -> int:
    """
    Find the active line index for current position. Pure function.
    Returns -1 if no active line.
    """
    active = -1
    for i, line in enumerate(lines):
        if line.time <= position:
            active = i
        else:
            break
    return active
