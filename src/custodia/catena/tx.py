"""
Transaction Builder - Build, sign, and send ledger transactions.

Uses eth-account for signing and the async JSON-RPC client for sending.
All gas is paid by the signing account.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from eth_account.signers.local import LocalAccount

from ..utils import keccak256
from .abi import encode_call
from .rpc import RpcClient

logger = logging.getLogger(__name__)

DEFAULT_GAS_LIMIT = 300_000


def to_checksum_address(address: str) -> str:
    """Convert an address to EIP-55 checksummed format.

    eth-account requires checksummed addresses in transaction fields.
    """
    addr = address.lower().replace("0x", "")
    addr_hash = keccak256(addr.encode("utf-8")).hex()
    result = "0x"
    for i, c in enumerate(addr):
        if c in "abcdef":
            result += c.upper() if int(addr_hash[i], 16) >= 8 else c
        else:
            result += c
    return result


async def build_contract_tx(
    rpc: RpcClient,
    account: LocalAccount,
    chain_id: int,
    contract_address: str,
    abi: list,
    function_name: str,
    args: list,
    gas_limit: Optional[int] = None,
) -> dict:
    """
    Build a contract call transaction (unsigned).

    Args:
        rpc: Ledger RPC client (nonce and gas price lookups)
        account: Sending account
        chain_id: EIP-155 chain id
        contract_address: 0x-prefixed contract address
        abi: Contract ABI
        function_name: Function to call
        args: Function arguments
        gas_limit: Gas limit (default: DEFAULT_GAS_LIMIT)

    Returns:
        Unsigned transaction dict
    """
    calldata = encode_call(abi, function_name, args)
    nonce = await rpc.get_nonce(account.address)
    gas_price = await rpc.get_gas_price()

    return {
        "to": to_checksum_address(contract_address),
        "data": calldata,
        "value": 0,
        "nonce": nonce,
        "gas": gas_limit or DEFAULT_GAS_LIMIT,
        "gasPrice": gas_price,
        "chainId": chain_id,
    }


async def sign_and_send(
    rpc: RpcClient,
    account: LocalAccount,
    tx: dict,
    wait: bool = True,
    timeout: float = 120,
) -> dict:
    """
    Sign a transaction and send it.

    Returns:
        Dict with tx_hash and, when waiting, receipt and status
    """
    signed = account.sign_transaction(tx)
    raw_tx = "0x" + signed.raw_transaction.hex().removeprefix("0x")

    tx_hash = await rpc.send_raw_transaction(raw_tx)
    logger.debug("sent transaction %s", tx_hash)
    result: dict[str, Any] = {"tx_hash": tx_hash}

    if wait:
        receipt = await rpc.wait_for_receipt(tx_hash, timeout=timeout)
        result["receipt"] = receipt
        result["status"] = int(receipt.get("status", "0x0"), 16)

    return result


async def send_contract_tx(
    rpc: RpcClient,
    account: LocalAccount,
    chain_id: int,
    contract_address: str,
    abi: list,
    function_name: str,
    args: list,
    gas_limit: Optional[int] = None,
    wait: bool = True,
    timeout: float = 120,
) -> dict:
    """Build, sign, and send a contract call transaction.

    ``timeout`` bounds the wait for the receipt.
    """
    tx = await build_contract_tx(
        rpc,
        account,
        chain_id,
        contract_address,
        abi,
        function_name,
        args,
        gas_limit=gas_limit,
    )
    return await sign_and_send(rpc, account, tx, wait=wait, timeout=timeout)
