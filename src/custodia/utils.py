from __future__ import annotations

import hashlib
import re
from datetime import datetime, timezone

from eth_hash.auto import keccak

_HEX32 = re.compile(r"^0x[0-9a-fA-F]{64}$")


def sha256_digest(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def keccak256(data: bytes) -> bytes:
    # NOTE: Keccak-256 != SHA3-256 (NIST). Never use hashlib.sha3_256 here.
    return keccak(data)


def to_hex32(value: bytes) -> str:
    if len(value) != 32:
        raise ValueError(f"Expected 32 bytes, got {len(value)}")
    return "0x" + value.hex()


def from_hex32(value: str) -> bytes:
    if not _HEX32.match(value):
        raise ValueError(f"Not a 0x-prefixed 32-byte hex string: {value!r}")
    return bytes.fromhex(value[2:])


def is_hex32(value: str) -> bool:
    return bool(_HEX32.match(value))


def utc_from_timestamp(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def format_remaining(seconds: int) -> str:
    """Render a countdown the way the share page shows it."""
    if seconds <= 0:
        return "expired"
    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    return f"{minutes}m {secs}s"
