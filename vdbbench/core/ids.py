"""
Deterministic mapping between integer indices and v4-shaped UUIDs.

Backends store document ids and labels as UUIDs. The mapping is pure so the
same index always maps to the same UUID, and it is invertible for indices
below 2**56.
"""

import uuid
from typing import Union


def index_to_fake_uuid(index: int) -> uuid.UUID:
    """
    Map an index to a UUID.

    The 8 big-endian bytes of ``index`` are repeated twice and the RFC 4122
    version 4 and variant bits are applied, e.g. 12 maps to
    ``00000000-0000-400c-8000-00000000000c``.
    """
    if index < 0:
        raise ValueError(f"index must be non-negative, got {index}")
    raw = int(index).to_bytes(8, "big")
    return uuid.UUID(bytes=raw * 2, version=4)


def fake_uuid_to_index(value: Union[str, uuid.UUID]) -> int:
    """Inverse of ``index_to_fake_uuid``."""
    if not isinstance(value, uuid.UUID):
        value = uuid.UUID(str(value))
    low = bytearray(value.bytes[8:])
    # variant bits
    low[0] = 0
    return int.from_bytes(bytes(low), "big")


def label_to_str(index: int) -> str:
    return str(index_to_fake_uuid(index))
