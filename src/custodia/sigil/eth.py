"""
ECDSA / secp256k1 Key Management for Custodia.

The wallet key is the owner identity of every access grant:
- signs ledger transactions (createAccess, revokeAccess, extendAccess)
- names the owner of grants held by the local fallback registry

Keys are stored in ~/.custodia/.env as PRIVATE_KEY (hex format).
"""

from __future__ import annotations

import os
import secrets
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from eth_account import Account
from eth_account.signers.local import LocalAccount

from ..config import CUSTODIA_ENV, read_env_file, write_env_file


def generate_eoa() -> tuple[str, str]:
    """
    Generate a new ECDSA/secp256k1 keypair (EOA).

    Returns:
        Tuple of (private_key_hex, address)
        - private_key_hex: 0x-prefixed hex private key (66 chars)
        - address: 0x-prefixed checksummed Ethereum address (42 chars)
    """
    private_key = "0x" + secrets.token_hex(32)
    account = Account.from_key(private_key)
    return private_key, account.address


def save_private_key(private_key: str, env_path: Optional[Path] = None) -> Path:
    """
    Save private key to .env file, preserving other entries.

    Args:
        private_key: 0x-prefixed hex private key
        env_path: Path to .env file (default: ~/.custodia/.env)

    Returns:
        Path to the saved .env file
    """
    env_path = env_path or CUSTODIA_ENV
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing = read_env_file(env_path)
    existing["PRIVATE_KEY"] = private_key
    write_env_file(env_path, existing)
    return env_path


def load_private_key(env_path: Optional[Path] = None) -> str:
    """
    Load private key from .env file or environment.

    Raises:
        ValueError: If PRIVATE_KEY is not set anywhere
    """
    env_path = env_path or CUSTODIA_ENV

    if env_path.exists():
        load_dotenv(env_path, override=False)

    private_key = os.environ.get("PRIVATE_KEY")
    if not private_key:
        raise ValueError(
            f"PRIVATE_KEY not found. Run 'custodia init' or set "
            f"PRIVATE_KEY in {env_path}"
        )

    if not private_key.startswith("0x"):
        private_key = "0x" + private_key

    return private_key


def get_account(private_key: Optional[str] = None) -> LocalAccount:
    """Get an eth-account LocalAccount; loads the key from .env when None."""
    if private_key is None:
        private_key = load_private_key()
    return Account.from_key(private_key)


def get_address(private_key: Optional[str] = None) -> str:
    """0x-prefixed checksummed address for a private key."""
    return get_account(private_key).address
