"""
Content identifiers.

CIDv1 with the ``raw`` codec and a sha2-256 multihash, multibase
base32-lower encoded (the ``b...`` form IPFS prints for
``--cid-version=1 --raw-leaves``).  Identical bytes always map to the same
CID.
"""

from __future__ import annotations

import base64
import re

from ..utils import sha256_digest

CID_VERSION = 0x01
RAW_CODEC = 0x55
SHA2_256 = 0x12
SHA2_256_LEN = 0x20

_CID_PATTERN = re.compile(r"^(Qm[1-9A-HJ-NP-Za-km-z]{44}|b[a-z2-7]{10,})$")


def compute_cid(data: bytes) -> str:
    digest = sha256_digest(data)
    raw = bytes([CID_VERSION, RAW_CODEC, SHA2_256, SHA2_256_LEN]) + digest
    return "b" + base64.b32encode(raw).decode("ascii").lower().rstrip("=")


def is_cid(value: str) -> bool:
    """Cheap shape check for CIDv0 (``Qm...``) and base32 CIDv1 strings."""
    return bool(_CID_PATTERN.match(value))
