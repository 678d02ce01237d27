"""
AccessControl contract ABI and call encoding.

The ABI is embedded rather than loaded from a build directory: the
registry only ever talks to this one contract.
"""

from __future__ import annotations

from typing import Any

from eth_abi import decode, encode

from ..utils import keccak256

ACCESS_CONTROL_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "createAccess",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_ipfsCid", "type": "string"},
            {"name": "_durationSeconds", "type": "uint256"},
            {"name": "_passwordHash", "type": "bytes32"},
        ],
        "outputs": [{"name": "accessId", "type": "bytes32"}],
    },
    {
        "type": "function",
        "name": "verifyAccess",
        "stateMutability": "view",
        "inputs": [
            {"name": "_accessId", "type": "bytes32"},
            {"name": "_passwordInput", "type": "string"},
        ],
        "outputs": [{"name": "ipfsCid", "type": "string"}],
    },
    {
        "type": "function",
        "name": "recordAccess",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_accessId", "type": "bytes32"},
            {"name": "_passwordHash", "type": "bytes32"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "getAccessGrantDetails",
        "stateMutability": "view",
        "inputs": [{"name": "_accessId", "type": "bytes32"}],
        "outputs": [
            {"name": "owner", "type": "address"},
            {"name": "ipfsCid", "type": "string"},
            {"name": "expiryTime", "type": "uint256"},
            {"name": "hasPassword", "type": "bool"},
        ],
    },
    {
        "type": "function",
        "name": "getAccessRecord",
        "stateMutability": "view",
        "inputs": [{"name": "_accessId", "type": "bytes32"}],
        "outputs": [
            {"name": "owner", "type": "address"},
            {"name": "ipfsCid", "type": "string"},
            {"name": "expiryTime", "type": "uint256"},
            {"name": "hasPassword", "type": "bool"},
            {"name": "passwordHash", "type": "bytes32"},
            {"name": "accessCount", "type": "uint256"},
            {"name": "isActive", "type": "bool"},
            {"name": "createdAt", "type": "uint256"},
        ],
    },
    {
        "type": "function",
        "name": "revokeAccess",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "_accessId", "type": "bytes32"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "extendAccess",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_accessId", "type": "bytes32"},
            {"name": "_newExpiryTime", "type": "uint256"},
        ],
        "outputs": [],
    },
    {
        "type": "event",
        "name": "AccessCreated",
        "anonymous": False,
        "inputs": [
            {"name": "accessId", "type": "bytes32", "indexed": True},
            {"name": "owner", "type": "address", "indexed": True},
            {"name": "ipfsCid", "type": "string", "indexed": False},
            {"name": "expiryTime", "type": "uint256", "indexed": False},
        ],
    },
    {
        "type": "event",
        "name": "AccessVerified",
        "anonymous": False,
        "inputs": [
            {"name": "accessId", "type": "bytes32", "indexed": True},
            {"name": "viewer", "type": "address", "indexed": True},
        ],
    },
    {
        "type": "event",
        "name": "AccessRevoked",
        "anonymous": False,
        "inputs": [
            {"name": "accessId", "type": "bytes32", "indexed": True},
            {"name": "owner", "type": "address", "indexed": True},
        ],
    },
    {
        "type": "event",
        "name": "AccessExtended",
        "anonymous": False,
        "inputs": [
            {"name": "accessId", "type": "bytes32", "indexed": True},
            {"name": "newExpiryTime", "type": "uint256", "indexed": False},
        ],
    },
]

# Error(string) selector used by Solidity require/revert
ERROR_STRING_SELECTOR = bytes.fromhex("08c379a0")


def _find(abi: list, kind: str, name: str) -> dict[str, Any]:
    for entry in abi:
        if entry.get("type") == kind and entry.get("name") == name:
            return entry
    raise ValueError(f"{kind.capitalize()} {name} not found in ABI")


def _signature(entry: dict[str, Any]) -> str:
    input_types = [inp["type"] for inp in entry.get("inputs", [])]
    return f"{entry['name']}({','.join(input_types)})"


def function_selector(abi: list, function_name: str) -> bytes:
    return keccak256(_signature(_find(abi, "function", function_name)).encode("utf-8"))[:4]


def event_topic(abi: list, event_name: str) -> str:
    return "0x" + keccak256(_signature(_find(abi, "event", event_name)).encode("utf-8")).hex()


def encode_call(abi: list, function_name: str, args: list) -> str:
    """
    ABI-encode a function call.

    Returns:
        0x-prefixed hex encoded calldata
    """
    func = _find(abi, "function", function_name)
    input_types = [inp["type"] for inp in func.get("inputs", [])]
    selector = function_selector(abi, function_name)
    encoded_args = encode(input_types, args) if args else b""
    return "0x" + selector.hex() + encoded_args.hex()


def decode_result(abi: list, function_name: str, data: str) -> Any:
    """
    ABI-decode a function call result.

    Returns:
        Decoded result (single value, tuple, or None for no outputs)
    """
    func = _find(abi, "function", function_name)
    output_types = [out["type"] for out in func.get("outputs", [])]
    if not output_types:
        return None

    raw = bytes.fromhex(data[2:]) if data.startswith("0x") else bytes.fromhex(data)
    decoded = decode(output_types, raw)

    if len(decoded) == 1:
        return decoded[0]
    return decoded


def decode_revert_reason(data: str) -> str | None:
    """Extract the message of an ``Error(string)`` revert payload."""
    raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
    if raw[:4] != ERROR_STRING_SELECTOR:
        return None
    try:
        (reason,) = decode(["string"], raw[4:])
    except Exception:  # noqa: BLE001
        return None
    return reason
