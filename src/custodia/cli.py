"""
Custodia CLI

Command-line interface for time-limited, password-protected content sharing.

Content is encrypted client-side (AES-256-GCM) when a password is set,
stored by content id (IPFS or a local store) and gated by an access grant
kept in the ledger registry, or the local fallback registry when no ledger
is configured or reachable.

Commands:
  init     - Create a wallet and default settings
  share    - Share a file or text behind a time-limited link
  open     - Open a share link and retrieve its content
  inspect  - Show a share's owner, expiry and password requirement
  revoke   - Deactivate a share (owner only)
  extend   - Push a share's expiry back (owner only)
  logs     - List local access records
  whoami   - Show current wallet address
  info     - Show system information
"""

from __future__ import annotations

import logging
import sys

import click

from .config import Settings
from .sigil.eth import get_address, load_private_key


# ============ Constants ============

VERSION = "0.1.0"


# ============ Banner ============


def _print_banner() -> None:
    """Print the Custodia CLI banner."""
    border = click.style("  ◆ ═══════════════════════════════════════ ◆", fg="cyan")
    click.echo()
    click.echo(border)
    click.echo()
    click.echo(
        click.style("        C U S T O D I A", fg="bright_white", bold=True)
        + click.style(f"        v{VERSION}", dim=True)
    )
    click.secho("        ─── Time-limited content sharing ───", fg="cyan")
    click.echo()
    click.echo(border)
    click.echo()


# ============ Main CLI Group ============


@click.group(invoke_without_command=True)
@click.version_option(version=VERSION, prog_name="custodia")
@click.option("--verbose", "-v", count=True, help="Log progress (-vv for debug output)")
@click.pass_context
def cli(ctx: click.Context, verbose: int) -> None:
    """Custodia - time-limited, password-protected sharing."""
    level = {0: logging.ERROR, 1: logging.INFO}.get(verbose, logging.DEBUG)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    if ctx.invoked_subcommand is None:
        _print_banner()
        click.echo(ctx.get_help())


# ============ Top-level Commands ============

from .commands.init import init
from .commands.share import share
from .commands.consume import open_share
from .commands.manage import extend, inspect, logs, revoke

cli.add_command(init)
cli.add_command(share)
cli.add_command(open_share)
cli.add_command(inspect)
cli.add_command(revoke)
cli.add_command(extend)
cli.add_command(logs)


# ============ Identity ============


@cli.command()
def whoami() -> None:
    """Show current wallet identity."""
    try:
        pk = load_private_key()
        address = get_address(pk)
        click.echo(f"Address: {address}")
    except ValueError:
        click.echo("No wallet found.")
        click.echo("Run 'custodia init' to create one.")
        sys.exit(1)


# ============ Info ============


@cli.command()
def info() -> None:
    """Show system information."""
    _print_banner()
    settings = Settings.from_env()

    # ── Status ──
    click.secho("  Status ─────────────────────────────────", fg="cyan")
    click.echo()

    if settings.private_key:
        click.echo(
            click.style("  Address:     ", dim=True)
            + click.style(get_address(settings.private_key), fg="bright_white")
        )
    else:
        click.echo(
            click.style("  Address:     ", dim=True)
            + click.style("not initialized", fg="yellow")
            + click.style("  (run: custodia init)", dim=True)
        )

    if settings.ledger_configured:
        registry_text = click.style(
            f"ledger {settings.contract_address} @ {settings.rpc_url}", fg="green"
        )
    else:
        registry_text = click.style(f"local {settings.registry_path}", fg="yellow")
    click.echo(click.style("  Registry:    ", dim=True) + registry_text)

    if settings.ipfs_api_url:
        store_text = click.style(f"ipfs {settings.ipfs_api_url}", fg="green")
    else:
        store_text = click.style(f"local {settings.store_dir}", fg="yellow")
    click.echo(click.style("  Store:       ", dim=True) + store_text)
    click.echo(
        click.style("  Links:       ", dim=True)
        + click.style(settings.origin, fg="bright_white")
    )

    click.echo()

    # ── Commands ──
    click.secho("  Commands ───────────────────────────────", fg="cyan")
    click.echo()

    commands = [
        ("init   ", "Create a wallet and default settings"),
        ("share  ", "Share content behind a time-limited link"),
        ("open   ", "Open a share link"),
        ("inspect", "Show expiry and password requirement"),
        ("revoke ", "Deactivate a share"),
        ("extend ", "Push a share's expiry back"),
        ("logs   ", "List local access records"),
        ("whoami ", "Show current wallet address"),
    ]
    for cmd, desc in commands:
        click.echo(
            click.style("  ", dim=True)
            + click.style(cmd, fg="bright_white", bold=True)
            + click.style("  ◇  ", fg="cyan")
            + click.style(desc, dim=True)
        )

    click.echo()


# ============ Entry Points ============


def main() -> None:
    """Custodia CLI entry point."""
    # Ensure UTF-8 output on Windows (for Unicode box-drawing / symbols)
    if sys.platform == "win32":
        try:
            sys.stdout.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
            sys.stderr.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
        except (AttributeError, OSError):
            pass
    cli()


if __name__ == "__main__":
    main()
