from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol


@dataclass(frozen=True)
class GrantDetails:
    """Read-only projection of a grant; needs no password to obtain."""

    owner: str
    content_id: str
    expiry_time: int
    has_password: bool

    def is_expired(self, now: float) -> bool:
        return now > self.expiry_time

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "contentId": self.content_id,
            "expiryTime": self.expiry_time,
            "hasPassword": self.has_password,
        }


@dataclass(frozen=True)
class AccessGrant:
    """
    A record authorizing access to one content id until ``expiry_time``.

    Attributes:
        id: 0x-prefixed 32-byte hex handle, unique per creation call
        owner: Address of the creator; the only identity allowed to
            revoke or extend
        content_id: CID of the (possibly encrypted) payload
        expiry_time: Unix seconds; usable while ``now <= expiry_time``
        has_password: Whether verification needs a password
        password_digest: Keccak-256 of the password iff ``has_password``
        access_count: Successful verifications so far
        is_active: False once the owner revokes
        created_at: Unix seconds, always before ``expiry_time``
    """

    id: str
    owner: str
    content_id: str
    expiry_time: int
    has_password: bool
    password_digest: Optional[bytes]
    access_count: int
    is_active: bool
    created_at: int

    def __post_init__(self) -> None:
        if self.has_password != (self.password_digest is not None):
            raise ValueError("password_digest must be set if and only if has_password")
        if self.access_count < 0:
            raise ValueError("access_count cannot be negative")
        if self.created_at >= self.expiry_time:
            raise ValueError("created_at must be before expiry_time")

    @property
    def details(self) -> GrantDetails:
        return GrantDetails(
            owner=self.owner,
            content_id=self.content_id,
            expiry_time=self.expiry_time,
            has_password=self.has_password,
        )

    def status(self, now: float) -> str:
        if not self.is_active:
            return "revoked"
        if now > self.expiry_time:
            return "expired"
        return "active"

    def to_audit_record(self) -> dict[str, Any]:
        """Record handed to the access-log dashboard."""
        return {
            "id": self.id,
            "contentId": self.content_id,
            "owner": self.owner,
            "expiryTime": self.expiry_time,
            "hasPassword": self.has_password,
            "accessCount": self.access_count,
            "isActive": self.is_active,
            "createdAt": self.created_at,
        }


class AccessRegistry(Protocol):
    """
    Contract shared by the ledger registry and the local fallback.

    Both raise the same taxonomy from :mod:`custodia.errors`, so callers
    never branch on which one they hold.
    """

    async def create_access_grant(
        self,
        content_id: str,
        duration_seconds: int,
        password_digest: Optional[bytes],
    ) -> str:
        ...

    async def verify_access(self, grant_id: str, password: str) -> str:
        ...

    async def get_access_grant_details(self, grant_id: str) -> GrantDetails:
        ...

    async def get_access_record(self, grant_id: str) -> AccessGrant:
        ...

    async def revoke(self, grant_id: str) -> None:
        ...

    async def extend(self, grant_id: str, new_expiry: int) -> None:
        ...


def check_duration(duration_seconds: int) -> None:
    if isinstance(duration_seconds, bool) or not isinstance(duration_seconds, int):
        raise ValueError("duration_seconds must be an integer")
    if duration_seconds <= 0:
        raise ValueError("duration_seconds must be positive")


def check_digest(password_digest: Optional[bytes]) -> None:
    if password_digest is not None and len(password_digest) != 32:
        raise ValueError("password_digest must be 32 bytes")
