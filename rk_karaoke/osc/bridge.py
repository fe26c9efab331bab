"""
Link Bridge - receives OSC from rkbx_link.

Expected messages:
    /track/master/artist (string)
    /track/master/title  (string)
    /time/master         (float) - position in seconds
    /bpm/master/current  (float)
    /beat/master         (float)

Artist and title arrive as two separate messages in any order, so track
changes are debounced: a change is only reported once both fields are set
and stayed put for `debounce_ms`.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from ..domain_types import BridgeState
from .decoder import OscDecodeError, OscMessage, decode_message

logger = logging.getLogger(__name__)

ADDR_ARTIST = "/track/master/artist"
ADDR_TITLE = "/track/master/title"
ADDR_TIME = "/time/master"
ADDR_BPM = "/bpm/master/current"
ADDR_BEAT = "/beat/master"

OnTrackChanged = Callable[[str, str], None]
OnValue = Callable[[float], None]


@dataclass
class BridgeConfig:
    """OSC listener configuration."""
    host: str = "127.0.0.1"
    port: int = 4460
    debounce_ms: int = 50


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class _BridgeProtocol(asyncio.DatagramProtocol):
    def __init__(self, bridge: "LinkBridge"):
        self._bridge = bridge

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        self._bridge.handle_datagram(data)

    def error_received(self, exc: Exception) -> None:
        logger.error(f"OSC socket error: {exc}")


class LinkBridge:
    """
    Decodes rkbx_link datagrams into master-deck state and events.

    Events (callback properties):
    - on_track_changed(artist, title) - debounced, once per new track
    - on_time(seconds), on_bpm(bpm), on_beat(beat) - every message, in order
    """

    def __init__(self, config: Optional[BridgeConfig] = None):
        self._config = config or BridgeConfig()
        self._state = BridgeState()
        self._last_track_key = ""
        self._pending_confirm: Optional[asyncio.TimerHandle] = None
        self._transport: Optional[asyncio.DatagramTransport] = None

        self._on_track_changed: Optional[OnTrackChanged] = None
        self._on_time: Optional[OnValue] = None
        self._on_bpm: Optional[OnValue] = None
        self._on_beat: Optional[OnValue] = None

        self._handlers: Dict[str, Callable[[OscMessage], None]] = {
            ADDR_ARTIST: self._handle_artist,
            ADDR_TITLE: self._handle_title,
            ADDR_TIME: self._handle_time,
            ADDR_BPM: self._handle_bpm,
            ADDR_BEAT: self._handle_beat,
        }

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._transport is not None

    @property
    def last_track_key(self) -> str:
        return self._last_track_key

    @property
    def pending_confirm(self) -> bool:
        """True while a track change is waiting for its debounce timer."""
        return self._pending_confirm is not None

    @property
    def on_track_changed(self) -> Optional[OnTrackChanged]:
        return self._on_track_changed

    @on_track_changed.setter
    def on_track_changed(self, callback: Optional[OnTrackChanged]) -> None:
        self._on_track_changed = callback

    @property
    def on_time(self) -> Optional[OnValue]:
        return self._on_time

    @on_time.setter
    def on_time(self, callback: Optional[OnValue]) -> None:
        self._on_time = callback

    @property
    def on_bpm(self) -> Optional[OnValue]:
        return self._on_bpm

    @on_bpm.setter
    def on_bpm(self, callback: Optional[OnValue]) -> None:
        self._on_bpm = callback

    @property
    def on_beat(self) -> Optional[OnValue]:
        return self._on_beat

    @on_beat.setter
    def on_beat(self, callback: Optional[OnValue]) -> None:
        self._on_beat = callback

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> bool:
        """Bind the UDP listener. Returns True on success."""
        if self._transport is not None:
            return True
        loop = asyncio.get_running_loop()
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _BridgeProtocol(self),
                local_addr=(self._config.host, self._config.port),
            )
        except OSError as exc:
            logger.error(f"LinkBridge bind failed on {self._config.host}:{self._config.port}: {exc}")
            return False
        self._transport = transport
        logger.info(f"LinkBridge listening on {self._config.host}:{self._config.port}")
        return True

    def stop(self) -> None:
        """Close the listener and drop any pending track change."""
        self._cancel_pending()
        if self._transport is not None:
            self._transport.close()
            self._transport = None
            logger.info("LinkBridge stopped")

    def get_state(self) -> BridgeState:
        """Copy of the current master-deck state."""
        return self._state.snapshot()

    # =========================================================================
    # INBOUND
    # =========================================================================

    def handle_datagram(self, data: bytes) -> None:
        """Decode and dispatch one datagram. Never raises."""
        try:
            message = decode_message(data)
        except OscDecodeError as exc:
            logger.error(f"OSC parse error: {exc}")
            return
        try:
            self.handle_message(message)
        except Exception:
            logger.exception(f"OSC handler error for {message.address}")

    def handle_message(self, message: OscMessage) -> None:
        handler = self._handlers.get(message.address)
        if handler is not None:
            handler(message)

    def _handle_artist(self, message: OscMessage) -> None:
        if message.args and isinstance(message.args[0], str) and message.args[0]:
            self._state.artist = message.args[0]
            self._check_track_change()

    def _handle_title(self, message: OscMessage) -> None:
        if message.args and isinstance(message.args[0], str) and message.args[0]:
            self._state.title = message.args[0]
            self._check_track_change()

    def _handle_time(self, message: OscMessage) -> None:
        if message.args and _is_number(message.args[0]):
            self._state.time = float(message.args[0])
            self._emit(self._on_time, self._state.time)

    def _handle_bpm(self, message: OscMessage) -> None:
        if message.args and _is_number(message.args[0]):
            self._state.bpm = float(message.args[0])
            self._emit(self._on_bpm, self._state.bpm)

    def _handle_beat(self, message: OscMessage) -> None:
        if message.args and _is_number(message.args[0]):
            self._state.beat = float(message.args[0])
            self._emit(self._on_beat, self._state.beat)

    # =========================================================================
    # TRACK CHANGE DEBOUNCE
    # =========================================================================

    def _is_new_track(self) -> bool:
        return self._state.has_track and self._state.track_key != self._last_track_key

    def _check_track_change(self) -> None:
        if not self._is_new_track():
            return
        self._cancel_pending()
        loop = asyncio.get_running_loop()
        self._pending_confirm = loop.call_later(
            self._config.debounce_ms / 1000.0, self._confirm_track_change
        )

    def _confirm_track_change(self) -> None:
        self._pending_confirm = None
        if not self._is_new_track():
            return
        self._last_track_key = self._state.track_key
        artist, title = self._state.artist, self._state.title
        logger.info(f"Track changed: {artist} - {title}")
        if self._on_track_changed:
            try:
                self._on_track_changed(artist, title)
            except Exception:
                logger.exception("trackChanged callback failed")

    def _cancel_pending(self) -> None:
        if self._pending_confirm is not None:
            self._pending_confirm.cancel()
            self._pending_confirm = None

    @staticmethod
    def _emit(callback: Optional[OnValue], value: float) -> None:
        if callback is None:
            return
        try:
            callback(value)
        except Exception:
            logger.exception("Bridge callback failed")
