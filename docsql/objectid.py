"""Object identifiers and their generation."""

from __future__ import annotations

import itertools
import os
import struct
import threading
import time
from dataclasses import dataclass

_OBJECT_ID_LEN = 12


@dataclass(frozen=True)
class ObjectID:
    """A 12-byte document identifier."""

    raw: bytes

    def __post_init__(self) -> None:
        raw = bytes(self.raw)
        if len(raw) != _OBJECT_ID_LEN:
            raise ValueError(f"ObjectID must be {_OBJECT_ID_LEN} bytes, got {len(raw)}")
        object.__setattr__(self, "raw", raw)

    @classmethod
    def from_hex(cls, text: str) -> "ObjectID":
        """Build an ObjectID from its 24-character hex form."""
        return cls(bytes.fromhex(text))

    @property
    def hex(self) -> str:
        return self.raw.hex()

    def to_json(self) -> str:
        """Return the JSON form used in stored documents."""
        return '{"oid":"' + self.hex + '"}'

    def __str__(self) -> str:
        return self.hex


_process = os.urandom(5)
_counter = itertools.count(int.from_bytes(os.urandom(4), "big") + 1)
_lock = threading.Lock()


def generate_object_id() -> ObjectID:
    """Create a new ObjectID from the time, a per-process value and a counter."""
    with _lock:
        count = next(_counter) & 0xFFFFFFFF
    seconds = int(time.time()) & 0xFFFFFFFF
    raw = struct.pack(">I", seconds) + _process + (count & 0xFFFFFF).to_bytes(3, "big")
    return ObjectID(raw)