"""
MessagePack codec for WebSocket frames.

Outgoing snapshots are pydantic models dumped in JSON mode and packed.
Incoming client frames are small control messages, so decoding enforces
tight size limits.
"""

from typing import Any

import msgpack
from pydantic import BaseModel


def _stringify_keys(obj: object) -> object:
    """
    Recursively convert integer dict keys to strings.

    Turn assignments are keyed by participant number, but clients expect
    string map keys.
    """
    if isinstance(obj, dict):
        return {str(k) if isinstance(k, int) else k: _stringify_keys(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_stringify_keys(item) for item in obj]
    return obj


def encode(data: dict[str, Any]) -> bytes:
    return msgpack.packb(_stringify_keys(data))


def encode_model(message: BaseModel) -> bytes:
    """Pack a message model, rendering enums and datetimes as JSON scalars."""
    return encode(message.model_dump(mode="json"))


class DecodeError(Exception):
    """Frame is not valid MessagePack, not a map, or exceeds the limits below."""


# Client frames only carry a message type and a few scalars.
MAX_BUFFER_LEN = 4 * 1024
MAX_STR_LEN = 1024
MAX_BIN_LEN = 1024
MAX_ARRAY_LEN = 64
MAX_MAP_LEN = 32
MAX_EXT_LEN = 0


def decode(data: bytes) -> dict[str, Any]:
    """
    Decode one client frame.

    Raises DecodeError if data is invalid, not a dict, or exceeds size limits.
    """
    if len(data) > MAX_BUFFER_LEN:
        raise DecodeError(f"payload too large: {len(data)} bytes (max {MAX_BUFFER_LEN})")
    try:
        result = msgpack.unpackb(
            data,
            raw=False,
            max_str_len=MAX_STR_LEN,
            max_bin_len=MAX_BIN_LEN,
            max_array_len=MAX_ARRAY_LEN,
            max_map_len=MAX_MAP_LEN,
            max_ext_len=MAX_EXT_LEN,
        )
    except (msgpack.UnpackException, ValueError) as e:
        raise DecodeError(f"failed to decode MessagePack data: {e}") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected dict, got {type(result).__name__}")

    return result
