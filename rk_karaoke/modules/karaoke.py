"""
Karaoke Module - rkbx_link track changes to published lyrics.

Wires LinkBridge events into the Resolver and keeps the state viewers
render from. Every change is published through `on_event(type, data)`:

    state   full snapshot (see get_state)
    track   {artist, title, status: "loading"}
    lyrics  {status: "found", lyrics: {...}} or {status: "not_found"}
    line    {index, time, endTime, text} when the active line changes
    time / bpm / beat   float

Usage as module:
    from rk_karaoke.modules.karaoke import KaraokeModule

    karaoke = KaraokeModule()
    karaoke.on_event = lambda kind, data: print(kind, data)
    await karaoke.start()
    ...
    await karaoke.stop()

Standalone CLI:
    rk-karaoke --port 4460 --verbose
"""
import argparse
import asyncio
import json
import logging
import signal
import sys
from typing import Any, Callable, Dict, Optional, Set

from ..domain_types import TimedLyricsDocument, get_active_line_index
from ..infra import AppConfig, load_config, setup_logging
from ..osc.bridge import LinkBridge
from ..services.resolver import Resolver
from .base import Module

logger = logging.getLogger(__name__)

STATUS_NONE = "none"
STATUS_LOADING = "loading"
STATUS_FOUND = "found"
STATUS_NOT_FOUND = "not_found"

OnEvent = Callable[[str, Any], None]


class KaraokeModule(Module):
    """
    Karaoke engine composition.

    Provides:
    - OSC listener for rkbx_link (master deck)
    - Lyrics resolution on every debounced track change
    - Active line tracking from /time/master
    - Event publishing for the viewer transport
    """

    def __init__(self, config: Optional[AppConfig] = None,
                 resolver: Optional[Resolver] = None,
                 bridge: Optional[LinkBridge] = None):
        super().__init__()
        self._config = config or AppConfig()
        self._resolver = resolver or Resolver.from_config(self._config)
        self._bridge = bridge or LinkBridge(self._config.osc)

        self._artist = ""
        self._title = ""
        self._time = 0.0
        self._bpm = 0.0
        self._lyrics: Optional[TimedLyricsDocument] = None
        self._lyrics_status = STATUS_NONE
        self._active_index = -1

        self._loads: Set[asyncio.Task] = set()
        self._on_event: Optional[OnEvent] = None

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def resolver(self) -> Resolver:
        return self._resolver

    @property
    def bridge(self) -> LinkBridge:
        return self._bridge

    @property
    def lyrics(self) -> Optional[TimedLyricsDocument]:
        return self._lyrics

    @property
    def lyrics_status(self) -> str:
        return self._lyrics_status

    @property
    def active_index(self) -> int:
        return self._active_index

    @property
    def on_event(self) -> Optional[OnEvent]:
        return self._on_event

    @on_event.setter
    def on_event(self, callback: Optional[OnEvent]) -> None:
        self._on_event = callback

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def attach(self) -> None:
        """Route bridge callbacks into this module."""
        self._bridge.on_track_changed = self.handle_track_changed
        self._bridge.on_time = self.handle_time
        self._bridge.on_bpm = self.handle_bpm
        self._bridge.on_beat = self.handle_beat

    async def start(self) -> bool:
        if self._started:
            return True

        await self._resolver.init()
        self.attach()
        if not await self._bridge.start():
            return False

        self._started = True
        logger.info("Waiting for OSC from rkbx_link...")
        return True

    async def stop(self) -> None:
        if not self._started:
            return

        self._bridge.stop()
        for task in list(self._loads):
            task.cancel()
        if self._loads:
            await asyncio.gather(*self._loads, return_exceptions=True)
        self._resolver.close()
        self._started = False

    async def wait_idle(self) -> None:
        """Wait until all lyric loads triggered so far have finished."""
        while self._loads:
            await asyncio.gather(*list(self._loads), return_exceptions=True)

    # =========================================================================
    # BRIDGE EVENTS
    # =========================================================================

    def handle_track_changed(self, artist: str, title: str) -> None:
        self._artist = artist
        self._title = title
        self._lyrics = None
        self._lyrics_status = STATUS_LOADING
        self._active_index = -1
        self._publish("track", {"artist": artist, "title": title, "status": STATUS_LOADING})

        task = asyncio.ensure_future(self._load_lyrics(artist, title))
        self._loads.add(task)
        task.add_done_callback(self._loads.discard)

    def handle_time(self, time_sec: float) -> None:
        self._time = time_sec
        self._publish("time", time_sec)
        self._update_active_line(time_sec)

    def handle_bpm(self, bpm: float) -> None:
        self._bpm = bpm
        self._publish("bpm", bpm)

    def handle_beat(self, beat: float) -> None:
        self._publish("beat", beat)

    # =========================================================================
    # PRIVATE
    # =========================================================================

    def _is_current(self, artist: str, title: str) -> bool:
        return (artist, title) == (self._artist, self._title)

    async def _load_lyrics(self, artist: str, title: str) -> None:
        try:
            entry = await self._resolver.resolve(artist, title)
            lyrics = await self._resolver.store.load(entry.json_path) if entry else None
        except Exception:
            logger.exception(f"Failed to load lyrics for {artist} - {title}")
            lyrics = None

        if not self._is_current(artist, title):
            logger.debug(f"Dropping stale lyrics result: {artist} - {title}")
            return

        if lyrics is None:
            self._lyrics_status = STATUS_NOT_FOUND
            self._publish("lyrics", {"status": STATUS_NOT_FOUND})
            return

        self._lyrics = lyrics
        self._lyrics_status = STATUS_FOUND
        self._publish("lyrics", {"status": STATUS_FOUND, "lyrics": lyrics.to_dict()})
        self._update_active_line(self._time)

    def _update_active_line(self, position: float) -> None:
        if not self._lyrics or not self._lyrics.lines:
            return
        lines = list(self._lyrics.lines)
        index = get_active_line_index(lines, position)
        if index == self._active_index:
            return
        self._active_index = index
        if index < 0:
            return
        self._publish("line", {"index": index, **lines[index].to_dict()})

    def _publish(self, kind: str, data: Any) -> None:
        if not self._on_event:
            return
        try:
            self._on_event(kind, data)
        except Exception:
            logger.exception(f"Event handler failed for {kind}")

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================

    def get_state(self) -> Dict[str, Any]:
        """Full state for a newly connected viewer."""
        return {
            "artist": self._artist,
            "title": self._title,
            "time": self._time,
            "bpm": self._bpm,
            "lyrics": self._lyrics.to_dict() if self._lyrics else None,
            "lyricsStatus": self._lyrics_status,
        }

    def get_status(self) -> Dict[str, Any]:
        status = super().get_status()
        status["listening"] = self._bridge.is_running
        status["library_size"] = len(self._resolver.library)
        status["lyrics_status"] = self._lyrics_status
        status["pending"] = self._resolver.pending_keys()
        if self._artist and self._title:
            status["current_track"] = f"{self._artist} - {self._title}"
        if self._lyrics:
            status["line_count"] = len(self._lyrics.lines)
            status["active_index"] = self._active_index
        return status


async def _run(config: AppConfig, quiet_ticks: bool) -> int:
    karaoke = KaraokeModule(config)

    def on_event(kind: str, data: Any) -> None:
        if quiet_ticks and kind in ("time", "beat"):
            return
        if kind == "lyrics" and data.get("lyrics"):
            data = {"status": data["status"], "lines": len(data["lyrics"]["lines"])}
        print(json.dumps({"type": kind, "data": data}, ensure_ascii=False), flush=True)

    karaoke.on_event = on_event

    if not await karaoke.start():
        print("Failed to start karaoke engine", file=sys.stderr)
        return 1
    on_event("state", karaoke.get_state())

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass

    try:
        await stop_event.wait()
    finally:
        await karaoke.stop()
    return 0


def main():
    """CLI entry point for the karaoke engine."""
    parser = argparse.ArgumentParser(
        description="Karaoke engine - rkbx_link OSC in, synced lyrics out"
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to config.json (default: ./config.json if present)"
    )
    parser.add_argument(
        "--host",
        default=None,
        help="OSC listen host (default from config: 127.0.0.1)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="OSC listen port (default from config: 4460)"
    )
    parser.add_argument(
        "--show-ticks",
        action="store_true",
        help="Also print time/beat events"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging"
    )
    args = parser.parse_args()

    setup_logging(args.verbose)
    config = load_config(args.config)
    if args.host:
        config.osc.host = args.host
    if args.port:
        config.osc.port = args.port

    try:
        sys.exit(asyncio.run(_run(config, quiet_ticks=not args.show_ticks)))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
