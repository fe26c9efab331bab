"""
OSC Module - rkbx_link input for the karaoke engine

Public API:
    Classes:
        LinkBridge - UDP listener, master-deck state, debounced track changes
        BridgeConfig - host/port/debounce for the listener
        OscMessage - decoded message (address, args)
        OscDecodeError - malformed datagram

    Functions:
        decode_message - bytes -> OscMessage
        encode_message - build a datagram (python-osc)

Usage:
    from rk_karaoke.osc import LinkBridge, BridgeConfig

    bridge = LinkBridge(BridgeConfig(port=4460))
    bridge.on_track_changed = lambda artist, title: print(artist, title)
    bridge.on_time = lambda t: print(f"{t:.2f}s")
    await bridge.start()
"""

from .bridge import (
    ADDR_ARTIST,
    ADDR_BEAT,
    ADDR_BPM,
    ADDR_TIME,
    ADDR_TITLE,
    BridgeConfig,
    LinkBridge,
)
from .decoder import (
    OscDecodeError,
    OscMessage,
    decode_message,
    encode_message,
)

__all__ = [
    "ADDR_ARTIST",
    "ADDR_BEAT",
    "ADDR_BPM",
    "ADDR_TIME",
    "ADDR_TITLE",
    "BridgeConfig",
    "LinkBridge",
    "OscDecodeError",
    "OscMessage",
    "decode_message",
    "encode_message",
]
