"""
SRT parser (block/range-timestamp format).

    1
    00:00:12,340 --> 00:00:15,670
    Subtitle text
"""

import re
from typing import List, Optional

from ..domain_types import TimedLine, TimedLyricsDocument

_BLOCK_SEPARATOR = re.compile(r'\r?\n\s*\r?\n')
_TIMESTAMP = re.compile(r'(\d+):(\d+):(\d+)[,.](\d+)')


def parse_timestamp(ts: str) -> Optional[float]:
    """Parse hh:mm:ss,ms (comma or period) into seconds."""
    match = _TIMESTAMP.search(ts)
    if not match:
        return None
    hours, minutes, seconds, fraction = match.groups()
    millis = int(fraction.ljust(3, '0')[:3])
    return int(hours) * 3600 + int(minutes) * 60 + int(seconds) + millis / 1000.0


def _parse_block(block: str) -> Optional[TimedLine]:
    rows = block.splitlines()
    range_idx = next((i for i, row in enumerate(rows) if '-->' in row), None)
    if range_idx is None:
        return None

    start_ts, _, end_ts = rows[range_idx].partition('-->')
    start = parse_timestamp(start_ts.strip())
    end = parse_timestamp(end_ts.strip())
    if start is None or end is None:
        return None

    text = ' '.join(row.strip() for row in rows[range_idx + 1:] if row.strip())
    if not text:
        return None
    return TimedLine(time=start, end_time=end, text=text)


def parse(content: str, duration: Optional[float] = None) -> TimedLyricsDocument:
    """
    Parse SRT text into a TimedLyricsDocument. Pure function.

    End times come straight from each cue's range. Blocks without a
    parseable range or without text are dropped.
    """
    lines: List[TimedLine] = []
    for block in _BLOCK_SEPARATOR.split(content.strip()):
        line = _parse_block(block)
        if line is not None:
            lines.append(line)

    lines.sort(key=lambda line: line.time)
    return TimedLyricsDocument(
        lines=tuple(lines),
        duration=float(duration) if duration else None,
    )
