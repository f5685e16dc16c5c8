"""
State Transfer Codec

Binary form of `extract_state()` for moving records between processes:

    [version:u8][flags:u8][payload]

The payload is JSON `{hash: record-dict}`; when it reaches the
compression threshold it is LZ4-frame compressed and FLAG_COMPRESSED is
set. Keys and data must be JSON-representable; tuples come back as lists.
"""

from __future__ import annotations

import json
import logging
import struct
from typing import Any, Mapping, Union

import lz4.frame

from datamirror.core import constants as C
from datamirror.core.errors import HydrationError
from datamirror.mirror.snapshots import Snapshot

logger = logging.getLogger(__name__)

_HEADER = struct.Struct(">BB")


def encode_state(
    state: Mapping[str, Union[Snapshot, Mapping[str, Any]]],
    compression_threshold: int = C.STATE_COMPRESSION_THRESHOLD,
) -> bytes:
    """Serialize an extracted state mapping to bytes."""
    records = {
        record_hash: record.to_dict() if isinstance(record, Snapshot) else dict(record)
        for record_hash, record in state.items()
    }
    payload = json.dumps(records, separators=(",", ":"), default=str).encode("utf-8")

    flags = 0
    if len(payload) >= compression_threshold:
        payload = lz4.frame.compress(payload)
        flags |= C.STATE_FLAG_COMPRESSED

    logger.debug(f"Encoded {len(records)} record(s) into {len(payload)} byte(s)")
    return _HEADER.pack(C.STATE_FORMAT_VERSION, flags) + payload


def decode_state(data: bytes) -> dict[str, dict[str, Any]]:
    """
    Deserialize bytes produced by encode_state().

    Raises:
        HydrationError: Bad header or undecodable payload
    """
    if len(data) < C.STATE_HEADER_BYTES:
        raise HydrationError.corrupt(f"payload too short ({len(data)} bytes)")

    version, flags = _HEADER.unpack(data[:C.STATE_HEADER_BYTES])
    if version != C.STATE_FORMAT_VERSION:
        raise HydrationError.corrupt(f"unsupported format version {version:#04x}")

    payload = data[C.STATE_HEADER_BYTES:]
    try:
        if flags & C.STATE_FLAG_COMPRESSED:
            payload = lz4.frame.decompress(payload)
        records = json.loads(payload.decode("utf-8"))
    except (RuntimeError, ValueError) as e:
        raise HydrationError.corrupt(str(e), cause=e) from e

    if not isinstance(records, dict):
        raise HydrationError.corrupt(f"expected an object, got {type(records).__name__}")
    return records
