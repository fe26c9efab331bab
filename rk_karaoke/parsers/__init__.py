"""
Timed-text parsers.

Public API:
    parse(content, fmt, **options) -> TimedLyricsDocument
    get_parser(fmt) -> parse function or None
    SUPPORTED_FORMATS - raw file extensions in lookup order

Usage:
    from rk_karaoke.parsers import parse

    doc = parse("[00:01.00]Hello", "lrc", duration=180.0)
    doc = parse(srt_text, ".srt")
"""

from typing import Callable, Dict, Optional

from ..domain_types import TimedLyricsDocument
from . import lrc, srt

ParseFn = Callable[..., TimedLyricsDocument]

SUPPORTED_FORMATS = (".lrc", ".srt")

_PARSERS: Dict[str, ParseFn] = {
    "lrc": lrc.parse,
    "srt": srt.parse,
}


class UnsupportedFormatError(ValueError):
    """Raised when no parser handles the requested format."""


def format_name(fmt: str) -> str:
    """Canonical format name: '.LRC' -> 'lrc'."""
    return fmt.lower().lstrip('.')


def get_parser(fmt: str) -> Optional[ParseFn]:
    return _PARSERS.get(format_name(fmt))


def parse(content: str, fmt: str, **options) -> TimedLyricsDocument:
    parser = get_parser(fmt)
    if parser is None:
        raise UnsupportedFormatError(f"Unsupported format: {fmt}")
    return parser(content, **options)


__all__ = [
    "SUPPORTED_FORMATS",
    "UnsupportedFormatError",
    "format_name",
    "get_parser",
    "parse",
    "lrc",
    "srt",
]
