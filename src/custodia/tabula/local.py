"""
Local fallback registry.

Same operations, field semantics and errors as the ledger registry, held
in a JSON file (or in memory) for offline and test use.  Every mutation is
a read-modify-write of the whole state under one lock per file, so
concurrent verifications of one grant never lose an increment.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import os
import threading
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Optional

from eth_abi import encode

from ..errors import Expired, InvalidPassword, NotFound, Unauthorized, UpstreamUnavailable
from ..sigil.crypto import ZERO_DIGEST, digests_match
from ..utils import is_hex32, keccak256, to_hex32
from .models import AccessGrant, GrantDetails, check_digest, check_duration

logger = logging.getLogger(__name__)

_PATH_LOCKS: dict[str, threading.Lock] = {}
_PATH_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Optional[Path]) -> threading.Lock:
    if path is None:
        return threading.Lock()
    key = str(path.expanduser().resolve())
    with _PATH_LOCKS_GUARD:
        return _PATH_LOCKS.setdefault(key, threading.Lock())


def _grant_to_json(grant: AccessGrant) -> dict[str, Any]:
    record = grant.to_audit_record()
    record["passwordDigest"] = grant.password_digest.hex() if grant.password_digest else None
    return record


def _grant_from_json(record: dict[str, Any]) -> AccessGrant:
    digest = record.get("passwordDigest")
    return AccessGrant(
        id=record["id"],
        owner=record["owner"],
        content_id=record["contentId"],
        expiry_time=int(record["expiryTime"]),
        has_password=bool(record["hasPassword"]),
        password_digest=bytes.fromhex(digest) if digest else None,
        access_count=int(record["accessCount"]),
        is_active=bool(record["isActive"]),
        created_at=int(record["createdAt"]),
    )


@dataclass
class LocalRegistry:
    """
    Access registry backed by a local JSON file.

    Attributes:
        caller: Identity acting on the registry; becomes ``owner`` of the
            grants it creates and is checked on revoke/extend
        path: JSON state file; ``None`` keeps state in memory only
        clock: Time source in unix seconds
    """

    caller: str
    path: Optional[Path] = None
    clock: Callable[[], float] = time.time
    _lock: threading.Lock = field(default=None, repr=False, compare=False)  # type: ignore[assignment]
    _memory: dict[str, dict[str, Any]] = field(default_factory=dict, repr=False, compare=False)
    _counter: itertools.count = field(default_factory=itertools.count, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self._lock is None:
            self._lock = _lock_for(self.path)

    def for_caller(self, caller: str) -> "LocalRegistry":
        """Same backing state, acting as a different identity."""
        return replace(self, caller=caller)

    # ============ Registry contract ============

    async def create_access_grant(
        self,
        content_id: str,
        duration_seconds: int,
        password_digest: Optional[bytes],
    ) -> str:
        check_duration(duration_seconds)
        check_digest(password_digest)
        return await asyncio.to_thread(
            self._create_sync, content_id, duration_seconds, password_digest
        )

    async def verify_access(self, grant_id: str, password: str) -> str:
        return await asyncio.to_thread(self._verify_sync, grant_id, password)

    async def get_access_grant_details(self, grant_id: str) -> GrantDetails:
        grant = await self.get_access_record(grant_id)
        return grant.details

    async def get_access_record(self, grant_id: str) -> AccessGrant:
        return await asyncio.to_thread(self._get_sync, grant_id)

    async def revoke(self, grant_id: str) -> None:
        await asyncio.to_thread(self._revoke_sync, grant_id)

    async def extend(self, grant_id: str, new_expiry: int) -> None:
        await asyncio.to_thread(self._extend_sync, grant_id, new_expiry)

    async def list_grants(self, owner: Optional[str] = None) -> list[AccessGrant]:
        """All grants, newest first, optionally only those of ``owner``."""
        return await asyncio.to_thread(self._list_sync, owner)

    # ============ Locked operations ============

    def _create_sync(
        self,
        content_id: str,
        duration_seconds: int,
        password_digest: Optional[bytes],
    ) -> str:
        with self._lock:
            state = self._load()
            created_at = int(self.clock())
            grant_id = self._new_id(content_id, duration_seconds, password_digest, created_at)
            while grant_id in state:
                grant_id = self._new_id(content_id, duration_seconds, password_digest, created_at)

            grant = AccessGrant(
                id=grant_id,
                owner=self.caller,
                content_id=content_id,
                expiry_time=created_at + duration_seconds,
                has_password=password_digest is not None,
                password_digest=password_digest,
                access_count=0,
                is_active=True,
                created_at=created_at,
            )
            state[grant_id] = _grant_to_json(grant)
            self._save(state)

        logger.info("created local grant %s for %s", grant_id, content_id)
        return grant_id

    def _verify_sync(self, grant_id: str, password: str) -> str:
        with self._lock:
            state = self._load()
            grant = self._require(state, grant_id)

            if not grant.is_active or self.clock() > grant.expiry_time:
                raise Expired("Access grant has expired")
            if grant.has_password and not digests_match(grant.password_digest, password):
                raise InvalidPassword("Invalid password")

            state[grant.id] = _grant_to_json(replace(grant, access_count=grant.access_count + 1))
            self._save(state)

        logger.info("verified local grant %s", grant_id)
        return grant.content_id

    def _get_sync(self, grant_id: str) -> AccessGrant:
        with self._lock:
            return self._require(self._load(), grant_id)

    def _revoke_sync(self, grant_id: str) -> None:
        with self._lock:
            state = self._load()
            grant = self._require_writable(state, grant_id)
            state[grant.id] = _grant_to_json(replace(grant, is_active=False))
            self._save(state)
        logger.info("revoked local grant %s", grant_id)

    def _extend_sync(self, grant_id: str, new_expiry: int) -> None:
        with self._lock:
            state = self._load()
            grant = self._require_writable(state, grant_id)
            if new_expiry <= grant.expiry_time:
                raise ValueError("new expiry must be later than the current one")
            state[grant.id] = _grant_to_json(replace(grant, expiry_time=int(new_expiry)))
            self._save(state)
        logger.info("extended local grant %s to %d", grant_id, new_expiry)

    def _list_sync(self, owner: Optional[str]) -> list[AccessGrant]:
        with self._lock:
            grants = [_grant_from_json(record) for record in self._load().values()]
        if owner is not None:
            grants = [g for g in grants if g.owner.lower() == owner.lower()]
        return sorted(grants, key=lambda g: g.created_at, reverse=True)

    # ============ Helpers ============

    def _require(self, state: dict[str, dict[str, Any]], grant_id: str) -> AccessGrant:
        key = grant_id.lower()
        if not is_hex32(key) or key not in state:
            raise NotFound("Access grant not found")
        return _grant_from_json(state[key])

    def _require_writable(self, state: dict[str, dict[str, Any]], grant_id: str) -> AccessGrant:
        grant = self._require(state, grant_id)
        if grant.owner.lower() != self.caller.lower():
            raise Unauthorized("Only owner can modify access grant")
        if not grant.is_active or self.clock() > grant.expiry_time:
            raise Expired("Access grant has expired")
        return grant

    def _new_id(
        self,
        content_id: str,
        duration_seconds: int,
        password_digest: Optional[bytes],
        created_at: int,
    ) -> str:
        # Per-call counter and randomness keep identical arguments apart.
        payload = encode(
            ["string", "string", "uint256", "bytes32", "uint256", "uint256", "bytes32"],
            [
                self.caller,
                content_id,
                duration_seconds,
                password_digest or ZERO_DIGEST,
                created_at,
                next(self._counter),
                os.urandom(32),
            ],
        )
        return to_hex32(keccak256(payload))

    def _load(self) -> dict[str, dict[str, Any]]:
        if self.path is None:
            return dict(self._memory)
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise UpstreamUnavailable(f"Local registry unreadable: {self.path}") from exc
        return data.get("grants", {})

    def _save(self, state: dict[str, dict[str, Any]]) -> None:
        if self.path is None:
            self._memory.clear()
            self._memory.update(state)
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            try:
                with tmp.open("w", encoding="utf-8") as handle:
                    json.dump({"grants": state}, handle, indent=2, sort_keys=True)
                    handle.flush()
                    os.fsync(handle.fileno())
                tmp.replace(self.path)
            except Exception:
                tmp.unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise UpstreamUnavailable(f"Local registry write failed: {exc}") from exc
        if os.name != "nt":
            self.path.chmod(0o600)
