"""
LRC parser (bracketed-timestamp format).

    [ar:Artist]
    [offset:+250]
    [00:12.34]First line
    [00:15.00][01:02.50]Repeated line
"""

import re
from typing import Dict, List, Optional, Tuple

from ..domain_types import TimedLine, TimedLyricsDocument

DEFAULT_TAIL_SEC = 30.0

_META = re.compile(r'^\[([A-Za-z][\w-]*):([^\]]+)\]$')
_LEADING_TIMESTAMP = re.compile(r'^\[(\d+:\d+[.:]\d+)\]')
_TIMESTAMP = re.compile(r'(\d+):(\d+)[.:](\d+)')
_LENGTH = re.compile(r'(\d+):(\d+)')
_OFFSET = re.compile(r'^\s*([+-]?\d+)')


def parse_timestamp(ts: str) -> Optional[float]:
    """
    Parse mm:ss.cc (or mm:ss:cc) into seconds.

    The fraction is read as milliseconds: padded or truncated to three
    digits, so ".5" is 500 ms and ".1234" is 123 ms.
    """
    match = _TIMESTAMP.search(ts)
    if not match:
        return None
    minutes, seconds, fraction = match.groups()
    millis = int(fraction.ljust(3, '0')[:3])
    return int(minutes) * 60 + int(seconds) + millis / 1000.0


def _parse_length(value: str) -> Optional[float]:
    match = _LENGTH.search(value)
    if not match:
        return None
    return float(int(match.group(1)) * 60 + int(match.group(2)))


def _parse_offset_ms(value: str) -> int:
    match = _OFFSET.match(value)
    return int(match.group(1)) if match else 0


def _split_timestamps(line: str) -> Tuple[List[float], str]:
    """Peel leading [mm:ss.cc] tags off a line, returning (times, text)."""
    times: List[float] = []
    text = line
    while True:
        match = _LEADING_TIMESTAMP.match(text)
        if not match:
            break
        ts = parse_timestamp(match.group(1))
        if ts is not None:
            times.append(ts)
        text = text[match.end():]
    return times, text.strip()


def parse(content: str, duration: Optional[float] = None,
          tail: float = DEFAULT_TAIL_SEC) -> TimedLyricsDocument:
    """
    Parse LRC text into a TimedLyricsDocument. Pure function.

    Each line ends where the next one starts. The last line ends at the
    track duration (argument, else [length:mm:ss]) or `tail` seconds after
    it starts. An [offset:ms] tag shifts every line, clamped at zero.
    """
    meta: Dict[str, str] = {}
    timed: List[Tuple[float, str]] = []

    for line in content.splitlines():
        meta_match = _META.match(line)
        if meta_match:
            key, value = meta_match.groups()
            meta[key.lower()] = value.strip()
            continue

        times, text = _split_timestamps(line)
        if not times or not text:
            continue
        timed.extend((t, text) for t in times)

    timed.sort(key=lambda item: item[0])

    track_duration = duration
    if not track_duration and meta.get('length'):
        track_duration = _parse_length(meta['length'])
    track_duration = float(track_duration) if track_duration else None

    lines: List[TimedLine] = []
    for i, (time_sec, text) in enumerate(timed):
        if i < len(timed) - 1:
            end_time = timed[i + 1][0]
        elif track_duration is not None:
            end_time = max(time_sec, track_duration)
        else:
            end_time = time_sec + tail
        lines.append(TimedLine(time=time_sec, end_time=end_time, text=text))

    if meta.get('offset'):
        offset_sec = _parse_offset_ms(meta['offset']) / 1000.0
        if offset_sec:
            lines = [line.shifted(offset_sec) for line in lines]

    return TimedLyricsDocument(lines=tuple(lines), meta=meta, duration=track_duration)
