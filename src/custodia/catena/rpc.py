"""
Async JSON-RPC client for the access ledger.

Lightweight alternative to web3.py: httpx for HTTP + eth-abi for encoding.
Every request carries a timeout and is cancellable from the awaiting task.
Transport failures surface as :class:`UpstreamUnavailable`; contract
reverts surface as :class:`ContractRevert` with the decoded reason.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from ..errors import UpstreamUnavailable
from .abi import decode_result, decode_revert_reason, encode_call

logger = logging.getLogger(__name__)

_REASON_PATTERNS = (
    re.compile(r"reverted with reason string '(.*)'"),
    re.compile(r"execution reverted: (.*)"),
)


class ContractRevert(Exception):
    """The ledger rejected a call; ``reason`` is the require() message."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def _revert_reason(error: dict) -> str | None:
    """Pull a revert reason out of a JSON-RPC error object, if it is one."""
    data = error.get("data")
    if isinstance(data, dict):
        data = data.get("data") or data.get("result")
    if isinstance(data, str) and data.startswith("0x") and len(data) > 10:
        reason = decode_revert_reason(data)
        if reason is not None:
            return reason

    message = str(error.get("message", ""))
    for pattern in _REASON_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(1).strip()
    if error.get("code") == 3 or "revert" in message.lower():
        return message
    return None


@dataclass
class RpcClient:
    """
    JSON-RPC endpoint of the ledger.

    Attributes:
        url: RPC endpoint URL
        timeout: Per-request timeout in seconds
        client: Optional shared ``httpx.AsyncClient``; one is opened per
            call when omitted
    """

    url: str
    timeout: float = 30.0
    client: Optional[httpx.AsyncClient] = None
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1), repr=False)

    async def call(self, method: str, params: list) -> Any:
        """
        Make a JSON-RPC call.

        Returns:
            Result field from the RPC response

        Raises:
            ContractRevert: If the node reports a revert
            UpstreamUnavailable: On transport or non-revert RPC errors
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }
        logger.debug("rpc %s", method)

        try:
            if self.client is not None:
                response = await self.client.post(self.url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(f"Ledger RPC unreachable: {exc}") from exc
        except ValueError as exc:
            raise UpstreamUnavailable("Ledger RPC returned invalid JSON") from exc

        if "error" in data:
            error = data["error"] if isinstance(data["error"], dict) else {"message": str(data["error"])}
            reason = _revert_reason(error)
            if reason is not None:
                raise ContractRevert(reason)
            raise UpstreamUnavailable(f"RPC error: {error}")

        return data.get("result")

    async def chain_id(self) -> int:
        return int(await self.call("eth_chainId", []), 16)

    async def read_contract(
        self,
        contract_address: str,
        abi: list,
        function_name: str,
        args: Optional[list] = None,
        sender: Optional[str] = None,
    ) -> Any:
        """
        Call a contract function without a transaction (eth_call).

        ``sender`` sets ``msg.sender`` for the simulation.
        """
        call: dict[str, Any] = {
            "to": contract_address,
            "data": encode_call(abi, function_name, args or []),
        }
        if sender:
            call["from"] = sender

        result = await self.call("eth_call", [call, "latest"])
        if result is None or result == "0x":
            return None
        return decode_result(abi, function_name, result)

    async def get_nonce(self, address: str) -> int:
        result = await self.call("eth_getTransactionCount", [address, "pending"])
        return int(result, 16)

    async def get_gas_price(self) -> int:
        return int(await self.call("eth_gasPrice", []), 16)

    async def send_raw_transaction(self, raw_tx: str) -> str:
        return await self.call("eth_sendRawTransaction", [raw_tx])

    async def wait_for_receipt(
        self,
        tx_hash: str,
        timeout: float = 120,
        poll_interval: float = 1.0,
    ) -> dict:
        """
        Poll until the transaction is mined.

        Raises:
            UpstreamUnavailable: If no receipt shows up within ``timeout``
        """
        deadline = time.monotonic() + timeout
        while True:
            receipt = await self.call("eth_getTransactionReceipt", [tx_hash])
            if receipt is not None:
                return receipt
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            await asyncio.sleep(min(poll_interval, remaining))

        raise UpstreamUnavailable(f"Transaction {tx_hash} not confirmed within {timeout}s")
