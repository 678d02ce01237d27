"""
Authoritative access registry on the AccessControl ledger contract.

Writes are transactions signed by the configured account, which is
therefore the ``owner`` of every grant it creates.  Each write is first
simulated with ``eth_call`` so a doomed call fails with its revert reason
instead of burning gas, and so the taxonomy is the same whether the
rejection comes from the simulation or the mined transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from eth_account.signers.local import LocalAccount

from ..catena.abi import ACCESS_CONTROL_ABI, event_topic
from ..catena.rpc import ContractRevert, RpcClient
from ..catena.tx import send_contract_tx
from ..errors import (
    CustodiaError,
    Expired,
    InvalidPassword,
    NotFound,
    Unauthorized,
    UpstreamUnavailable,
)
from ..sigil.crypto import ZERO_DIGEST, password_digest
from ..utils import from_hex32
from .models import AccessGrant, GrantDetails, check_digest, check_duration

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40


def revert_to_error(reason: str) -> Exception:
    """Map a contract require() message onto the shared error taxonomy."""
    lowered = reason.lower()
    if "not found" in lowered:
        return NotFound(reason)
    if "expired" in lowered or "inactive" in lowered or "revoked" in lowered:
        return Expired(reason)
    if "password" in lowered:
        return InvalidPassword(reason)
    if "owner" in lowered:
        return Unauthorized(reason)
    if "duration" in lowered or "expiry" in lowered:
        return ValueError(reason)
    return CustodiaError(f"Ledger rejected call: {reason}")


@dataclass
class LedgerRegistry:
    """
    Access registry client for the deployed AccessControl contract.

    Attributes:
        rpc: Ledger JSON-RPC client
        contract_address: 0x-prefixed AccessControl address
        account: Signing account (grant owner, pays gas)
        chain_id: EIP-155 chain id of the ledger
        receipt_timeout: Seconds to wait for a transaction to be mined
    """

    rpc: RpcClient
    contract_address: str
    account: LocalAccount
    chain_id: int
    receipt_timeout: float = 120
    abi: list[dict[str, Any]] = field(default_factory=lambda: ACCESS_CONTROL_ABI, repr=False)

    @property
    def caller(self) -> str:
        return self.account.address

    async def ping(self) -> bool:
        """True when the ledger answers on the expected chain."""
        try:
            remote_chain = await self.rpc.chain_id()
        except UpstreamUnavailable as exc:
            logger.debug("ledger ping failed: %s", exc)
            return False
        if remote_chain != self.chain_id:
            logger.warning(
                "ledger chain id %d does not match configured %d", remote_chain, self.chain_id
            )
            return False
        return True

    # ============ Registry contract ============

    async def create_access_grant(
        self,
        content_id: str,
        duration_seconds: int,
        password_digest: Optional[bytes],
    ) -> str:
        check_duration(duration_seconds)
        check_digest(password_digest)

        receipt = await self._transact(
            "createAccess", [content_id, duration_seconds, password_digest or ZERO_DIGEST]
        )
        grant_id = self._grant_id_from_receipt(receipt)
        logger.info("created ledger grant %s for %s", grant_id, content_id)
        return grant_id

    async def verify_access(self, grant_id: str, password: str) -> str:
        raw_id = self._raw_id(grant_id)
        # The password only ever travels in the eth_call, which is not
        # published.  The transaction that bumps accessCount carries its
        # digest, which the ledger already holds from createAccess.
        content_id = await self._read("verifyAccess", [raw_id, password])
        await self._transact("recordAccess", [raw_id, password_digest(password)])
        logger.info("verified ledger grant %s", grant_id)
        return content_id

    async def get_access_grant_details(self, grant_id: str) -> GrantDetails:
        result = await self._read("getAccessGrantDetails", [self._raw_id(grant_id)])
        if result is None:
            raise NotFound("Access grant not found")
        owner, content_id, expiry_time, has_password = result
        if str(owner).lower() == ZERO_ADDRESS:
            raise NotFound("Access grant not found")
        return GrantDetails(
            owner=str(owner),
            content_id=content_id,
            expiry_time=int(expiry_time),
            has_password=bool(has_password),
        )

    async def get_access_record(self, grant_id: str) -> AccessGrant:
        result = await self._read("getAccessRecord", [self._raw_id(grant_id)])
        if result is None:
            raise NotFound("Access grant not found")
        (
            owner,
            content_id,
            expiry_time,
            has_password,
            password_hash,
            access_count,
            is_active,
            created_at,
        ) = result
        if str(owner).lower() == ZERO_ADDRESS:
            raise NotFound("Access grant not found")
        return AccessGrant(
            id=grant_id.lower(),
            owner=str(owner),
            content_id=content_id,
            expiry_time=int(expiry_time),
            has_password=bool(has_password),
            password_digest=bytes(password_hash) if has_password else None,
            access_count=int(access_count),
            is_active=bool(is_active),
            created_at=int(created_at),
        )

    async def revoke(self, grant_id: str) -> None:
        await self._transact("revokeAccess", [self._raw_id(grant_id)])
        logger.info("revoked ledger grant %s", grant_id)

    async def extend(self, grant_id: str, new_expiry: int) -> None:
        if new_expiry <= 0:
            raise ValueError("new expiry must be a positive unix timestamp")
        await self._transact("extendAccess", [self._raw_id(grant_id), int(new_expiry)])
        logger.info("extended ledger grant %s to %d", grant_id, new_expiry)

    # ============ Helpers ============

    def _raw_id(self, grant_id: str) -> bytes:
        try:
            return from_hex32(grant_id)
        except ValueError as exc:
            raise NotFound("Access grant not found") from exc

    async def _read(self, function_name: str, args: list) -> Any:
        try:
            return await self.rpc.read_contract(
                self.contract_address,
                self.abi,
                function_name,
                args,
                sender=self.account.address,
            )
        except ContractRevert as exc:
            raise revert_to_error(exc.reason) from exc

    async def _transact(self, function_name: str, args: list) -> dict:
        await self._read(function_name, args)

        try:
            result = await send_contract_tx(
                self.rpc,
                self.account,
                self.chain_id,
                self.contract_address,
                self.abi,
                function_name,
                args,
                timeout=self.receipt_timeout,
            )
        except ContractRevert as exc:
            raise revert_to_error(exc.reason) from exc

        if result.get("status") != 1:
            # Mined but reverted.  If state moved between simulation and
            # inclusion the re-simulation raises the real reason; otherwise
            # it ran out of gas, which the caller may retry.
            await self._read(function_name, args)
            raise UpstreamUnavailable(
                f"Ledger transaction {result['tx_hash']} failed without a revert reason"
            )
        return result["receipt"]

    def _grant_id_from_receipt(self, receipt: dict) -> str:
        topic = event_topic(self.abi, "AccessCreated")
        for log in receipt.get("logs", []):
            topics = log.get("topics", [])
            if (
                topics
                and topics[0].lower() == topic
                and str(log.get("address", "")).lower() == self.contract_address.lower()
                and len(topics) > 1
            ):
                return topics[1].lower()
        raise CustodiaError("AccessCreated event missing from transaction receipt")
