"""
Share - Publish content behind a time-limited access grant.

Flow:
1. Read content (a file, or --text)
2. Encrypt under the password when one is set
3. Upload to the content store (IPFS or local)
4. Register the grant on the ledger (or the local fallback)
5. Print the share link
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import click

from ..config import Settings
from ..share import open_workflow
from ..utils import utc_from_timestamp
from ._common import parse_duration, run


def _load_content(source: Optional[str], text: Optional[str]) -> Any:
    if text is not None:
        return text
    path = Path(source).expanduser()
    if not path.is_file():
        raise click.BadParameter(f"File not found: {path}", param_hint="SOURCE")
    if path.suffix == ".json":
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except ValueError as exc:
            raise click.BadParameter(f"Invalid JSON in {path}: {exc}", param_hint="SOURCE")
    return path.read_bytes()


@click.command()
@click.argument("source", required=False)
@click.option("--text", default=None, help="Share this text instead of a file")
@click.option(
    "--duration",
    "-d",
    default="1d",
    show_default=True,
    help="How long the share stays valid: 1h, 1d, 1w, 30d or seconds",
)
@click.option("--password", default=None, help="Protect the share with a password")
@click.option("--ask-password", is_flag=True, help="Prompt for the password")
def share(
    source: Optional[str],
    text: Optional[str],
    duration: str,
    password: Optional[str],
    ask_password: bool,
) -> None:
    """Share a file (or --text) behind a time-limited link.

    JSON files are shared as structured data; anything else byte for byte.
    """
    if (source is None) == (text is None):
        raise click.UsageError("Give either SOURCE or --text.")

    content = _load_content(source, text)
    seconds = parse_duration(duration)
    if ask_password:
        password = click.prompt("Password", hide_input=True, confirmation_prompt=True)

    settings = Settings.from_env()

    async def _share():
        async with open_workflow(settings) as workflow:
            handle = await workflow.create_share(content, seconds, password or None)
            info = await workflow.inspect_share(handle.grant_id)
            gateway = workflow.store.gateway_url(handle.content_id)
        return handle, info, gateway

    click.echo("=== Custodia Share ===")
    click.echo("")
    handle, info, gateway = run(_share())

    click.secho(f"  Link:       {handle.url}", fg="green")
    click.echo(f"  Grant ID:   {handle.grant_id}")
    click.echo(f"  Content ID: {handle.content_id}")
    click.echo(f"  Gateway:    {gateway}")
    click.echo(f"  Expires:    {utc_from_timestamp(info.expiry_time)}")
    click.echo(f"  Password:   {'yes' if info.has_password else 'no'}")
    click.echo("")
    click.echo("=== Share Complete ===")
