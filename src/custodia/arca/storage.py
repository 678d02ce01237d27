from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

import httpx

from ..errors import NotFound, UpstreamUnavailable
from .cid import compute_cid, is_cid

logger = logging.getLogger(__name__)


class ContentStore(Protocol):
    async def put(self, data: bytes) -> str:
        ...

    async def get(self, content_id: str) -> bytes:
        ...

    def gateway_url(self, content_id: str) -> str:
        ...


@dataclass(frozen=True)
class LocalContentStore:
    """Content-addressed blobs in a local directory (offline / tests)."""

    root: Path
    gateway: Optional[str] = None

    def blob_path(self, content_id: str) -> Path:
        if not is_cid(content_id):
            raise NotFound(f"Content not found: {content_id}")
        return self.root / "blobs" / content_id

    async def put(self, data: bytes) -> str:
        content_id = compute_cid(data)
        await asyncio.to_thread(self._put_sync, content_id, data)
        logger.debug("stored %d bytes as %s", len(data), content_id)
        return content_id

    async def get(self, content_id: str) -> bytes:
        path = self.blob_path(content_id)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise NotFound(f"Content not found: {content_id}") from exc
        except OSError as exc:
            raise UpstreamUnavailable(f"Local store read failed: {exc}") from exc

    def gateway_url(self, content_id: str) -> str:
        if self.gateway:
            return f"{self.gateway.rstrip('/')}/{content_id}"
        return self.blob_path(content_id).resolve().as_uri()

    def _put_sync(self, content_id: str, data: bytes) -> None:
        target = self.blob_path(content_id)
        if target.is_file():
            # Same id means same bytes.
            return
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            self._atomic_write(target, data)
        except OSError as exc:
            raise UpstreamUnavailable(f"Local store write failed: {exc}") from exc

    def _atomic_write(self, path: Path, data: bytes) -> None:
        tmp = path.with_suffix(path.suffix + f".{os.getpid()}.tmp")
        try:
            with tmp.open("wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            tmp.replace(path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise


@dataclass
class IpfsContentStore:
    """
    IPFS node reached through its HTTP RPC API (``/api/v0``).

    Uploads use ``cid-version=1`` with raw leaves, so small blobs get the
    same id :func:`compute_cid` would give them.

    Attributes:
        api_url: Base URL of the node API, e.g. ``http://127.0.0.1:5001``
        gateway: Public gateway used by :meth:`gateway_url`
        client: Optional shared ``httpx.AsyncClient``; one is opened per
            call when omitted
        timeout: Per-request timeout in seconds
    """

    api_url: str
    gateway: str = "https://ipfs.io/ipfs"
    client: Optional[httpx.AsyncClient] = None
    timeout: float = 30.0

    async def put(self, data: bytes) -> str:
        resp = await self._post(
            "/api/v0/add",
            params={"cid-version": "1", "raw-leaves": "true", "pin": "true"},
            files={"file": ("blob", data, "application/octet-stream")},
        )
        try:
            content_id = resp.json()["Hash"]
        except (ValueError, KeyError) as exc:
            raise UpstreamUnavailable(f"Unexpected IPFS add response: {resp.text[:200]}") from exc
        logger.debug("uploaded %d bytes to IPFS as %s", len(data), content_id)
        return content_id

    async def get(self, content_id: str) -> bytes:
        if not is_cid(content_id):
            raise NotFound(f"Content not found: {content_id}")
        resp = await self._post("/api/v0/cat", params={"arg": content_id})
        return resp.content

    def gateway_url(self, content_id: str) -> str:
        return f"{self.gateway.rstrip('/')}/{content_id}"

    async def _post(self, path: str, **kwargs) -> httpx.Response:
        url = f"{self.api_url.rstrip('/')}{path}"
        try:
            if self.client is not None:
                resp = await self.client.post(url, timeout=self.timeout, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.post(url, **kwargs)
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(f"IPFS request failed: {exc}") from exc

        if resp.status_code == 200:
            return resp

        message = _ipfs_error_message(resp)
        if resp.status_code == 404 or "not found" in message.lower():
            raise NotFound(f"Content not found: {message}")
        raise UpstreamUnavailable(f"IPFS error: {resp.status_code} - {message}")


def _ipfs_error_message(resp: httpx.Response) -> str:
    try:
        return str(resp.json().get("Message", resp.text))
    except ValueError:
        return resp.text
