"""
OSC wire decoder for rkbx_link datagrams.

Only what rkbx_link sends is understood: float32 ('f'), int32 ('i') and
string ('s') arguments. Any other type tag is skipped without consuming
argument bytes, so a message carrying e.g. a double ('d') before a float
reads the float from the double's bytes. Consumers already rely on this,
keep it.
"""

import struct
from dataclasses import dataclass, field
from typing import Any, List, Sequence, Tuple, Union

from pythonosc.osc_message_builder import OscMessageBuilder

OscArg = Union[str, float, int]

_FLOAT = struct.Struct('>f')
_INT = struct.Struct('>i')
_TYPE_TAG_START = ord(',')


class OscDecodeError(ValueError):
    """Malformed or truncated OSC datagram."""


@dataclass(frozen=True)
class OscMessage:
    """Decoded OSC message."""
    address: str
    args: List[OscArg] = field(default_factory=list)


def _padded(end: int) -> int:
    """Offset of the next 4-byte boundary after a null at `end`."""
    return (end + 4) // 4 * 4


def _read_cstring(data: bytes, offset: int, what: str) -> Tuple[str, int]:
    end = data.find(b'\x00', offset)
    if end == -1:
        raise OscDecodeError(f"{what}: missing null terminator")
    return data[offset:end].decode('utf-8', errors='replace'), _padded(end)


def decode_message(data: bytes) -> OscMessage:
    """
    Decode a single OSC message.

    Raises OscDecodeError on a missing terminator, a type-tag string that
    does not start with ',' or a buffer that ends inside an argument.
    """
    address, offset = _read_cstring(data, 0, "address")

    if offset >= len(data) or data[offset] != _TYPE_TAG_START:
        raise OscDecodeError(f"{address}: missing type tag string")
    tags, offset = _read_cstring(data, offset, f"{address} type tags")

    args: List[OscArg] = []
    for tag in tags[1:]:
        if tag == 'f':
            if offset + 4 > len(data):
                raise OscDecodeError(f"{address}: truncated float argument")
            args.append(_FLOAT.unpack_from(data, offset)[0])
            offset += 4
        elif tag == 'i':
            if offset + 4 > len(data):
                raise OscDecodeError(f"{address}: truncated int argument")
            args.append(_INT.unpack_from(data, offset)[0])
            offset += 4
        elif tag == 's':
            if offset > len(data):
                raise OscDecodeError(f"{address}: truncated string argument")
            # An unterminated trailing string runs to the end of the buffer
            end = data.find(b'\x00', offset)
            if end == -1:
                end = len(data)
            args.append(data[offset:end].decode('utf-8', errors='replace'))
            offset = _padded(end)
    return OscMessage(address=address, args=args)


def encode_message(address: str, args: Sequence[Any] = (), types: str = "") -> bytes:
    """
    Build an OSC datagram with python-osc.

    `types` optionally pins each argument's tag (e.g. "f" to send 128 as a
    float); otherwise python-osc infers it.
    """
    builder = OscMessageBuilder(address=address)
    for i, arg in enumerate(args):
        if i < len(types):
            builder.add_arg(arg, types[i])
        else:
            builder.add_arg(arg)
    return builder.build().dgram
