"""
Share - Create and consume time-limited, optionally password-protected
access to content.

Create:
1. Serialize content behind a one-byte kind tag (bytes as-is, anything
   else as RFC 8785 JSON)
2. Encrypt under the password, if one is given
3. Upload to the content store → content id
4. Register an access grant (password digest only, never the password)
5. Return a share handle ``{origin}/shared/{grant_id}``

Consume:
1. Verify the grant with the registry (authoritative; errors pass through)
2. Fetch the payload by content id
3. Decrypt when the grant is password-protected
4. Deserialize by kind tag, so bytes come back as bytes

The workflow performs no retries; callers own timeout/retry policy.
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Optional
from urllib.parse import urlparse

import httpx
import rfc8785

from .arca.storage import ContentStore, IpfsContentStore, LocalContentStore
from .catena.rpc import RpcClient
from .config import Settings
from .errors import DecryptionFailure
from .sigil.crypto import decrypt, encrypt, password_digest
from .sigil.eth import get_account
from .tabula.ledger import LedgerRegistry
from .tabula.local import LocalRegistry
from .tabula.models import AccessRegistry
from .utils import is_hex32

logger = logging.getLogger(__name__)

SHARE_PATH = "/shared/"
LOCAL_CALLER = "local"

# First byte of every serialized payload.
KIND_BYTES = b"\x00"
KIND_JSON = b"\x01"

# Duration presets offered when sharing, in seconds.
DURATION_PRESETS: dict[str, int] = {
    "1h": 3600,
    "1d": 86400,
    "1w": 604800,
    "30d": 2592000,
}


@dataclass(frozen=True)
class ShareHandle:
    grant_id: str
    content_id: str
    url: str


@dataclass(frozen=True)
class ShareInfo:
    """Pre-flight view of a share for display; not an access decision."""

    grant_id: str
    owner: str
    expiry_time: int
    has_password: bool
    seconds_left: int

    @property
    def expired(self) -> bool:
        return self.seconds_left <= 0


def share_url(origin: str, grant_id: str) -> str:
    return f"{origin.rstrip('/')}{SHARE_PATH}{grant_id}"


def parse_share_url(value: str) -> str:
    """Accept a share URL or a bare grant id; return the grant id."""
    candidate = value.strip()
    if "://" in candidate:
        path = urlparse(candidate).path
        if SHARE_PATH not in path:
            raise ValueError(f"Not a share link: {value}")
        candidate = path.split(SHARE_PATH, 1)[1].strip("/")
    if not is_hex32(candidate):
        raise ValueError(f"Not an access grant id: {candidate}")
    return candidate.lower()


def serialize_content(content: Any) -> bytes:
    """Kind tag, then the bytes as-is or the value as canonical JSON."""
    if isinstance(content, (bytes, bytearray)):
        return KIND_BYTES + bytes(content)
    return KIND_JSON + rfc8785.dumps(content)


def deserialize_content(data: bytes) -> Any:
    kind, body = data[:1], data[1:]
    if kind == KIND_BYTES:
        return body
    if kind == KIND_JSON:
        try:
            return json.loads(body.decode("utf-8"))
        except ValueError as exc:
            raise DecryptionFailure("Shared content is not valid JSON") from exc
    raise DecryptionFailure("Shared content has an unknown format")


@dataclass
class ShareWorkflow:
    """
    Ties a content store and an access registry together.

    Both collaborators are injected; the workflow holds no other state.
    """

    registry: AccessRegistry
    store: ContentStore
    origin: str = "http://localhost:3000"
    clock: Callable[[], float] = time.time

    async def create_share(
        self,
        content: Any,
        duration_seconds: int,
        password: Optional[str] = None,
    ) -> ShareHandle:
        data = serialize_content(content)
        if password:
            data = encrypt(data, password).encode("ascii")

        content_id = await self.store.put(data)
        digest = password_digest(password) if password else None
        grant_id = await self.registry.create_access_grant(content_id, duration_seconds, digest)

        logger.info("shared %s as grant %s", content_id, grant_id)
        return ShareHandle(
            grant_id=grant_id,
            content_id=content_id,
            url=share_url(self.origin, grant_id),
        )

    async def consume_share(
        self,
        grant_id: str,
        password: Optional[str] = None,
    ) -> Any:
        """
        Verify access and return the shared content.

        Args:
            grant_id: Access grant id
            password: Password, for protected grants

        Returns:
            The shared value: bytes for bytes shares, else the JSON value

        Raises:
            NotFound, Expired, InvalidPassword: From the registry, unchanged
            DecryptionFailure: Payload does not decrypt under ``password``
                or is not a serialized share
            UpstreamUnavailable: Registry or store unreachable
        """
        content_id = await self.registry.verify_access(grant_id, password or "")
        details = await self.registry.get_access_grant_details(grant_id)

        data = await self.store.get(content_id)
        if details.has_password:
            data = decrypt(data, password or "")

        return deserialize_content(data)

    async def inspect_share(self, grant_id: str) -> ShareInfo:
        details = await self.registry.get_access_grant_details(grant_id)
        return ShareInfo(
            grant_id=grant_id,
            owner=details.owner,
            expiry_time=details.expiry_time,
            has_password=details.has_password,
            seconds_left=int(details.expiry_time - self.clock()),
        )

    async def revoke_share(self, grant_id: str) -> None:
        await self.registry.revoke(grant_id)

    async def extend_share(self, grant_id: str, new_expiry: int) -> None:
        await self.registry.extend(grant_id, new_expiry)


def build_store(settings: Settings, client: Optional[httpx.AsyncClient] = None) -> ContentStore:
    if settings.ipfs_api_url:
        return IpfsContentStore(
            api_url=settings.ipfs_api_url,
            gateway=settings.ipfs_gateway,
            client=client,
            timeout=settings.timeout,
        )
    return LocalContentStore(root=settings.store_dir)


async def select_registry(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
    clock: Callable[[], float] = time.time,
) -> AccessRegistry:
    """Ledger registry when configured and reachable, else the local fallback."""
    if settings.ledger_configured:
        registry = LedgerRegistry(
            rpc=RpcClient(url=settings.rpc_url, timeout=settings.timeout, client=client),
            contract_address=settings.contract_address,
            account=get_account(settings.private_key),
            chain_id=settings.chain_id,
        )
        if await registry.ping():
            return registry
        logger.warning(
            "ledger at %s unreachable, falling back to local registry %s",
            settings.rpc_url,
            settings.registry_path,
        )
    else:
        logger.warning("no ledger contract configured, using local registry %s", settings.registry_path)

    caller = get_account(settings.private_key).address if settings.private_key else LOCAL_CALLER
    return LocalRegistry(caller=caller, path=settings.registry_path, clock=clock)


@asynccontextmanager
async def open_workflow(
    settings: Settings,
    clock: Callable[[], float] = time.time,
) -> AsyncIterator[ShareWorkflow]:
    """Workflow over one pooled HTTP client, closed on exit."""
    async with httpx.AsyncClient(timeout=settings.timeout) as client:
        registry = await select_registry(settings, client=client, clock=clock)
        yield ShareWorkflow(
            registry=registry,
            store=build_store(settings, client=client),
            origin=settings.origin,
            clock=clock,
        )
