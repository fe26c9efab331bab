#!/usr/bin/env python3
"""
Prefetch lyrics for a whole set before the gig.

Usage:
    rk-karaoke-prefetch playlist.m3u8
    rk-karaoke-prefetch set.txt            # "Artist - Title" per line
    rk-karaoke-prefetch rekordbox.xml      # rekordbox collection export
    rk-karaoke-prefetch --all              # every playlist in data/playlists

Writes a JSON report into the reports directory.
"""

import argparse
import asyncio
import logging
import re
import sys
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..infra import AppConfig, load_config, setup_logging, write_json_atomic
from ..services.resolver import Resolver

logger = logging.getLogger(__name__)

PLAYLIST_EXTENSIONS = ('.m3u8', '.m3u', '.txt', '.xml')
PAUSE_SEC = 0.2

_EXTINF = re.compile(r'#EXTINF:[^,]*,\s*(.+?)\s*-\s*(.+)')
_DASH = re.compile(r'\s+-\s+')
_LOOSE_DASH = re.compile(r'\s*-\s*')


@dataclass(frozen=True)
class PlaylistTrack:
    artist: str
    title: str


# =============================================================================
# PLAYLIST PARSING
# =============================================================================

def parse_m3u(content: str) -> List[PlaylistTrack]:
    """Tracks from `#EXTINF:<secs>,Artist - Title` lines."""
    tracks = []
    for line in content.splitlines():
        line = line.strip()
        if not line.startswith('#EXTINF:'):
            continue
        match = _EXTINF.match(line)
        if match:
            tracks.append(PlaylistTrack(match.group(1).strip(), match.group(2).strip()))
    return tracks


def parse_txt(content: str) -> List[PlaylistTrack]:
    """One `Artist - Title` per line; `#` starts a comment line."""
    tracks = []
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        # Prefer a spaced dash so names like "Jay-Z" survive
        parts = _DASH.split(line, maxsplit=1)
        if len(parts) < 2:
            parts = _LOOSE_DASH.split(line, maxsplit=1)
        if len(parts) == 2 and parts[0].strip() and parts[1].strip():
            tracks.append(PlaylistTrack(parts[0].strip(), parts[1].strip()))
    return tracks


def parse_rekordbox_xml(content: str) -> List[PlaylistTrack]:
    """TRACK elements carrying both Artist and Name attributes."""
    root = ET.fromstring(content)
    tracks = []
    for node in root.iter('TRACK'):
        artist = (node.get('Artist') or '').strip()
        title = (node.get('Name') or '').strip()
        if artist and title:
            tracks.append(PlaylistTrack(artist, title))
    return tracks


def parse_playlist(content: str, ext: str) -> List[PlaylistTrack]:
    ext = ext.lower()
    if ext == '.xml':
        return parse_rekordbox_xml(content)
    if ext in ('.m3u', '.m3u8'):
        return parse_m3u(content)
    return parse_txt(content)


def read_playlist(path: Path) -> List[PlaylistTrack]:
    content = Path(path).read_text(encoding='utf-8-sig')
    return parse_playlist(content, Path(path).suffix)


def collect_playlists(directory: Path) -> List[PlaylistTrack]:
    """Tracks from every supported playlist file in a directory."""
    tracks: List[PlaylistTrack] = []
    for path in sorted(Path(directory).iterdir()):
        if path.suffix.lower() not in PLAYLIST_EXTENSIONS:
            continue
        try:
            found = read_playlist(path)
        except (OSError, ET.ParseError) as e:
            logger.error(f"Skipping playlist {path.name}: {e}")
            continue
        logger.info(f"Playlist {path.name}: {len(found)} tracks")
        tracks.extend(found)
    return tracks


def dedupe(tracks: Iterable[PlaylistTrack]) -> List[PlaylistTrack]:
    """Drop repeats, comparing artist and title case-insensitively."""
    seen = set()
    unique = []
    for track in tracks:
        key = (track.artist.lower(), track.title.lower())
        if key in seen:
            continue
        seen.add(key)
        unique.append(track)
    return unique


# =============================================================================
# RUN
# =============================================================================

async def prefetch(resolver: Resolver, tracks: List[PlaylistTrack],
                   pause_sec: float = PAUSE_SEC) -> Dict[str, Any]:
    """Resolve tracks one after another and build the report."""
    report: Dict[str, Any] = {
        'timestamp': datetime.now(timezone.utc).isoformat(timespec='milliseconds'),
        'total': len(tracks),
        'found': 0,
        'notFound': 0,
        'errors': 0,
        'results': [],
    }

    for i, track in enumerate(tracks):
        progress = f"[{i + 1}/{len(tracks)}]"
        base = {'artist': track.artist, 'title': track.title}
        try:
            entry = await resolver.resolve(track.artist, track.title)
        except (OSError, ValueError) as e:
            report['errors'] += 1
            report['results'].append({**base, 'status': 'error', 'error': str(e)})
            logger.error(f"{progress} ! {track.artist} - {track.title}: {e}")
        else:
            if entry:
                report['found'] += 1
                report['results'].append({**entry.to_dict(), **base, 'status': 'found'})
                logger.info(f"{progress} + {track.artist} - {track.title}")
            else:
                report['notFound'] += 1
                report['results'].append({**base, 'status': 'not_found'})
                logger.warning(f"{progress} - {track.artist} - {track.title}")

        if pause_sec and i < len(tracks) - 1:
            await asyncio.sleep(pause_sec)

    return report


def write_report(report: Dict[str, Any], reports_dir: Path) -> Path:
    stamp = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H-%M-%S-%f')[:-3]
    path = Path(reports_dir) / f"prefetch_{stamp}Z.json"
    write_json_atomic(path, report)
    return path


def print_summary(report: Dict[str, Any], report_path: Optional[Path]) -> None:
    total = report['total']
    percent = round(report['found'] / total * 100) if total else 0
    print("\n=== SUMMARY ===")
    print(f"Total:     {total}")
    print(f"Found:     {report['found']} ({percent}%)")
    print(f"Not found: {report['notFound']}")
    print(f"Errors:    {report['errors']}")
    if report_path:
        print(f"Report:    {report_path}")


async def _run(config: AppConfig, playlist: Optional[Path], all_playlists: bool) -> int:
    if all_playlists:
        tracks = collect_playlists(config.paths.playlists)
    else:
        tracks = read_playlist(playlist)

    tracks = dedupe(tracks)
    logger.info(f"Total unique tracks: {len(tracks)}")

    resolver = Resolver.from_config(config)
    await resolver.init()
    try:
        report = await prefetch(resolver, tracks)
    finally:
        resolver.close()

    report_path = write_report(report, config.paths.reports)
    print_summary(report, report_path)
    return 0


def main():
    parser = argparse.ArgumentParser(description="Prefetch synced lyrics for a playlist")
    parser.add_argument("playlist", nargs="?", help="Playlist file (.m3u8, .m3u, .txt, .xml)")
    parser.add_argument("--all", action="store_true",
                        help="Every playlist in the configured playlists directory")
    parser.add_argument("--config", "-c", default=None, help="Path to config.json")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    if not args.playlist and not args.all:
        parser.print_usage()
        sys.exit(1)

    setup_logging(args.verbose)
    config = load_config(args.config)
    playlist = Path(args.playlist) if args.playlist else None

    try:
        sys.exit(asyncio.run(_run(config, playlist, args.all)))
    except (OSError, ET.ParseError) as e:
        logger.error(f"Prefetch failed: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nStopped by user")


if __name__ == "__main__":
    main()
