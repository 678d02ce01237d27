"""
Runtime configuration.

Values come from the process environment, with ``~/.custodia/.env`` loaded
first as a fallback (real environment variables win).  ``custodia init``
writes the defaults below into that file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

CUSTODIA_DIR = Path.home() / ".custodia"
CUSTODIA_ENV = CUSTODIA_DIR / ".env"

DEFAULT_RPC_URL = "http://127.0.0.1:8545"
DEFAULT_CHAIN_ID = 31337  # hardhat / anvil
DEFAULT_IPFS_GATEWAY = "https://ipfs.io/ipfs"
DEFAULT_ORIGIN = "http://localhost:3000"
DEFAULT_TIMEOUT = 30.0

DEFAULTS: dict[str, str] = {
    "CUSTODIA_RPC_URL": DEFAULT_RPC_URL,
    "CUSTODIA_CHAIN_ID": str(DEFAULT_CHAIN_ID),
    "CUSTODIA_IPFS_GATEWAY": DEFAULT_IPFS_GATEWAY,
    "CUSTODIA_ORIGIN": DEFAULT_ORIGIN,
}


@dataclass(frozen=True)
class Settings:
    rpc_url: str = DEFAULT_RPC_URL
    chain_id: int = DEFAULT_CHAIN_ID
    contract_address: Optional[str] = None
    private_key: Optional[str] = None
    ipfs_api_url: Optional[str] = None
    ipfs_gateway: str = DEFAULT_IPFS_GATEWAY
    store_dir: Path = CUSTODIA_DIR / "store"
    registry_path: Path = CUSTODIA_DIR / "grants.json"
    origin: str = DEFAULT_ORIGIN
    timeout: float = DEFAULT_TIMEOUT

    @property
    def ledger_configured(self) -> bool:
        return bool(self.contract_address and self.private_key)

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None) -> "Settings":
        """Build settings from the environment (after loading the .env file)."""
        env_path = env_path or CUSTODIA_ENV
        if env_path.exists():
            load_dotenv(env_path, override=False)

        env = os.environ
        private_key = env.get("PRIVATE_KEY") or None
        if private_key and not private_key.startswith("0x"):
            private_key = "0x" + private_key

        return cls(
            rpc_url=env.get("CUSTODIA_RPC_URL", DEFAULT_RPC_URL),
            chain_id=int(env.get("CUSTODIA_CHAIN_ID", str(DEFAULT_CHAIN_ID))),
            contract_address=env.get("CUSTODIA_CONTRACT_ADDRESS") or None,
            private_key=private_key,
            ipfs_api_url=env.get("CUSTODIA_IPFS_API") or None,
            ipfs_gateway=env.get("CUSTODIA_IPFS_GATEWAY", DEFAULT_IPFS_GATEWAY),
            store_dir=Path(env.get("CUSTODIA_STORE_DIR", str(CUSTODIA_DIR / "store"))).expanduser(),
            registry_path=Path(
                env.get("CUSTODIA_REGISTRY_PATH", str(CUSTODIA_DIR / "grants.json"))
            ).expanduser(),
            origin=env.get("CUSTODIA_ORIGIN", DEFAULT_ORIGIN).rstrip("/"),
            timeout=float(env.get("CUSTODIA_TIMEOUT", str(DEFAULT_TIMEOUT))),
        )


def ensure_defaults(env_path: Optional[Path] = None) -> Path:
    """Add missing default keys to the .env file, keeping user overrides."""
    env_path = env_path or CUSTODIA_ENV
    env_path.parent.mkdir(parents=True, exist_ok=True)
    existing = read_env_file(env_path)

    updated = False
    for key, value in DEFAULTS.items():
        if key not in existing:
            existing[key] = value
            updated = True

    if updated:
        write_env_file(env_path, existing)
    return env_path


def read_env_file(env_path: Path) -> dict[str, str]:
    existing: dict[str, str] = {}
    if env_path.exists():
        for line in env_path.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if stripped and not stripped.startswith("#") and "=" in stripped:
                k, v = stripped.split("=", 1)
                existing[k.strip()] = v.strip()
    return existing


def write_env_file(env_path: Path, values: dict[str, str]) -> None:
    lines = [f"{k}={v}" for k, v in values.items()]
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    # Set secure permissions on Unix
    if os.name != "nt":
        env_path.chmod(0o600)
