"""
Open - Verify a share and retrieve its content.

The registry decides access; the pre-flight read only tells us whether to
prompt for a password.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import click

from ..config import Settings
from ..share import open_workflow
from ._common import grant_id_argument, run


def _as_text(content) -> Optional[str]:
    """Printable form of shared content; None for non-UTF-8 bytes."""
    if isinstance(content, bytes):
        try:
            return content.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if isinstance(content, str):
        return content
    return json.dumps(content, indent=2, ensure_ascii=False)


@click.command("open")
@click.argument("link")
@click.option("--password", default=None, help="Password for protected shares")
@click.option("--output", "-o", default=None, help="Write content to this file")
def open_share(link: str, password: Optional[str], output: Optional[str]) -> None:
    """Open a share link (or grant id) and print its content."""
    grant_id = grant_id_argument(link)
    settings = Settings.from_env()

    async def _open():
        async with open_workflow(settings) as workflow:
            info = await workflow.inspect_share(grant_id)
            secret = password
            if info.has_password and secret is None and not info.expired:
                secret = click.prompt("Password", hide_input=True)
            return await workflow.consume_share(grant_id, secret)

    content = run(_open())
    text = _as_text(content)

    if output:
        target = Path(output).expanduser()
        data = content if isinstance(content, bytes) else text.encode("utf-8")
        target.write_bytes(data)
        click.secho(f"Saved {len(data)} bytes to {target}", fg="green")
        return

    if text is None:
        click.secho("Content is binary; use --output to save it.", fg="yellow")
        return
    click.echo(text)
