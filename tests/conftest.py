"""
Shared fixtures: an in-process AccessControl ledger behind a JSON-RPC
endpoint, served through ``httpx.MockTransport``.

The fake node implements just enough of eth_* to drive the ledger
registry: it executes calls against an in-memory contract, decodes signed
legacy transactions, mines them instantly and emits AccessCreated logs.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
import pytest
import rlp
from eth_abi import decode, encode
from eth_account import Account

from custodia.catena.abi import ACCESS_CONTROL_ABI, ERROR_STRING_SELECTOR, event_topic, function_selector
from custodia.utils import keccak256

CHAIN_ID = 31337
CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
ZERO_ADDRESS = "0x" + "0" * 40


class Revert(Exception):
    pass


def _function(name: str) -> dict[str, Any]:
    return next(e for e in ACCESS_CONTROL_ABI if e["type"] == "function" and e["name"] == name)


_BY_SELECTOR = {
    function_selector(ACCESS_CONTROL_ABI, entry["name"]): entry
    for entry in ACCESS_CONTROL_ABI
    if entry["type"] == "function"
}


@dataclass
class FakeLedger:
    """AccessControl contract plus the JSON-RPC node hosting it."""

    now: int = 1_700_000_000
    chain_id: int = CHAIN_ID
    grants: dict[bytes, dict[str, Any]] = field(default_factory=dict)
    receipts: dict[str, dict[str, Any]] = field(default_factory=dict)
    nonces: dict[str, int] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)
    raw_transactions: list[bytes] = field(default_factory=list)
    down: bool = False
    # Transactions are accepted but never mined.
    stalled: bool = False
    # Transactions are mined with status 0 and no state change (out of gas).
    out_of_gas: bool = False

    # ============ Contract ============

    def execute(self, sender: str, data: bytes, commit: bool) -> tuple[bytes, list[dict]]:
        entry = _BY_SELECTOR[data[:4]]
        args = decode([i["type"] for i in entry["inputs"]], data[4:])
        handler = getattr(self, "_" + entry["name"])
        result, logs = handler(sender, commit, *args)
        outputs = [o["type"] for o in entry["outputs"]]
        return (encode(outputs, list(result)) if outputs else b""), logs

    def _createAccess(self, sender, commit, cid, duration, password_hash):
        if duration == 0:
            raise Revert("Duration must be greater than 0")
        access_id = keccak256(encode(["address", "string", "uint256", "uint256"], [sender, cid, self.now, len(self.grants)]))
        if commit:
            self.grants[access_id] = {
                "owner": sender,
                "cid": cid,
                "expiry": self.now + duration,
                "has_password": password_hash != b"\x00" * 32,
                "password_hash": password_hash,
                "count": 0,
                "active": True,
                "created": self.now,
            }
        log = {
            "address": CONTRACT.lower(),
            "topics": [
                event_topic(ACCESS_CONTROL_ABI, "AccessCreated"),
                "0x" + access_id.hex(),
                "0x" + "0" * 24 + sender[2:].lower(),
            ],
            "data": "0x" + encode(["string", "uint256"], [cid, self.now + duration]).hex(),
        }
        return (access_id,), [log]

    def _verifyAccess(self, sender, commit, access_id, password):
        grant = self._require(access_id)
        if not grant["active"] or self.now > grant["expiry"]:
            raise Revert("Access grant has expired")
        if grant["has_password"] and keccak256(password.encode("utf-8")) != grant["password_hash"]:
            raise Revert("Invalid password")
        return (grant["cid"],), []

    def _recordAccess(self, sender, commit, access_id, password_hash):
        grant = self._require(access_id)
        if not grant["active"] or self.now > grant["expiry"]:
            raise Revert("Access grant has expired")
        if grant["has_password"] and password_hash != grant["password_hash"]:
            raise Revert("Invalid password")
        if commit:
            grant["count"] += 1
        log = {
            "address": CONTRACT.lower(),
            "topics": [
                event_topic(ACCESS_CONTROL_ABI, "AccessVerified"),
                "0x" + access_id.hex(),
                "0x" + "0" * 24 + sender[2:].lower(),
            ],
            "data": "0x",
        }
        return (), [log]

    def _getAccessGrantDetails(self, sender, commit, access_id):
        grant = self.grants.get(access_id)
        if grant is None:
            return (ZERO_ADDRESS, "", 0, False), []
        return (grant["owner"], grant["cid"], grant["expiry"], grant["has_password"]), []

    def _getAccessRecord(self, sender, commit, access_id):
        grant = self.grants.get(access_id)
        if grant is None:
            return (ZERO_ADDRESS, "", 0, False, b"\x00" * 32, 0, False, 0), []
        return (
            grant["owner"],
            grant["cid"],
            grant["expiry"],
            grant["has_password"],
            grant["password_hash"],
            grant["count"],
            grant["active"],
            grant["created"],
        ), []

    def _revokeAccess(self, sender, commit, access_id):
        grant = self._require_owner(access_id, sender)
        if commit:
            grant["active"] = False
        return (), []

    def _extendAccess(self, sender, commit, access_id, new_expiry):
        grant = self._require_owner(access_id, sender)
        if new_expiry <= grant["expiry"]:
            raise Revert("New expiry must be later than current expiry")
        if commit:
            grant["expiry"] = new_expiry
        return (), []

    def _require(self, access_id: bytes) -> dict[str, Any]:
        grant = self.grants.get(access_id)
        if grant is None:
            raise Revert("Access grant not found")
        return grant

    def _require_owner(self, access_id: bytes, sender: str) -> dict[str, Any]:
        grant = self._require(access_id)
        if grant["owner"].lower() != sender.lower():
            raise Revert("Only owner can modify access grant")
        if not grant["active"] or self.now > grant["expiry"]:
            raise Revert("Access grant has expired")
        return grant

    # ============ JSON-RPC ============

    def handle(self, request: httpx.Request) -> httpx.Response:
        if self.down:
            raise httpx.ConnectError("connection refused", request=request)
        body = json.loads(request.content)
        method, params = body["method"], body["params"]
        self.calls.append(method)
        try:
            result = self._dispatch(method, params)
        except Revert as exc:
            reason = str(exc)
            error = {
                "code": 3,
                "message": f"execution reverted: {reason}",
                "data": "0x" + (ERROR_STRING_SELECTOR + encode(["string"], [reason])).hex(),
            }
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": error})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    def _dispatch(self, method: str, params: list) -> Any:
        if method == "eth_chainId":
            return hex(self.chain_id)
        if method == "eth_gasPrice":
            return hex(1_000_000_000)
        if method == "eth_getTransactionCount":
            return hex(self.nonces.get(params[0].lower(), 0))
        if method == "eth_call":
            call = params[0]
            sender = call.get("from", ZERO_ADDRESS)
            output, _ = self.execute(sender, bytes.fromhex(call["data"][2:]), commit=False)
            return "0x" + output.hex()
        if method == "eth_sendRawTransaction":
            return self._send_raw(params[0])
        if method == "eth_getTransactionReceipt":
            return self.receipts.get(params[0])
        raise AssertionError(f"unexpected RPC method {method}")

    def _send_raw(self, raw_tx: str) -> str:
        raw = bytes.fromhex(raw_tx[2:])
        self.raw_transactions.append(raw)
        sender = Account.recover_transaction(raw)
        # Legacy transaction: [nonce, gasPrice, gas, to, value, data, v, r, s]
        fields = rlp.decode(raw)
        data = fields[5]
        tx_hash = "0x" + keccak256(raw).hex()
        self.nonces[sender.lower()] = self.nonces.get(sender.lower(), 0) + 1
        if self.stalled:
            return tx_hash
        try:
            if self.out_of_gas:
                raise Revert("out of gas")
            _, logs = self.execute(sender, data, commit=True)
            status = "0x1"
        except Revert:
            logs, status = [], "0x0"
        self.receipts[tx_hash] = {"transactionHash": tx_hash, "status": status, "logs": logs}
        return tx_hash

    # ============ Helpers ============

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def grant(self, grant_id: str) -> Optional[dict[str, Any]]:
        return self.grants.get(bytes.fromhex(grant_id[2:]))


@pytest.fixture()
def fake_ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture()
def owner_key() -> str:
    return "0x" + os.urandom(32).hex()
