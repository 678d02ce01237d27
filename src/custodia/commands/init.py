"""
Init - Create the local identity and default configuration.

Identity is a single ECDSA/secp256k1 wallet key: it signs ledger
transactions and owns every grant created from this machine.
"""

from __future__ import annotations

import click

from .. import config
from ..sigil.eth import generate_eoa, get_address, load_private_key, save_private_key


@click.command()
def init() -> None:
    """Create a wallet (if missing) and write default settings."""
    click.echo("=== Custodia Init ===")
    click.echo("")

    env_path = config.CUSTODIA_ENV
    try:
        private_key = load_private_key(env_path)
        address = get_address(private_key)
        click.echo("  Wallet already exists.")
    except ValueError:
        private_key, address = generate_eoa()
        save_private_key(private_key, env_path)
        click.secho("  New wallet created.", fg="green")

    config.ensure_defaults(env_path)

    click.echo(f"  Address: {address}")
    click.echo(f"  Config:  {env_path}")
    click.echo("")
    click.echo("  Set CUSTODIA_CONTRACT_ADDRESS to use the ledger registry;")
    click.echo("  without it, grants are kept in the local registry.")
    click.echo("")
    click.echo("=== Init Complete ===")
