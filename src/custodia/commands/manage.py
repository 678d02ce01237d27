"""
Manage - Inspect, revoke, extend and list access grants.
"""

from __future__ import annotations

from typing import Optional

import click

from ..config import Settings
from ..share import open_workflow
from ..tabula.local import LocalRegistry
from ..utils import format_remaining, utc_from_timestamp
from ._common import grant_id_argument, parse_duration, run


@click.command()
@click.argument("link")
def inspect(link: str) -> None:
    """Show who shared a link, until when, and whether it needs a password."""
    grant_id = grant_id_argument(link)
    settings = Settings.from_env()

    async def _inspect():
        async with open_workflow(settings) as workflow:
            info = await workflow.inspect_share(grant_id)
            record = None
            if info.owner.lower() == getattr(workflow.registry, "caller", "").lower():
                record = await workflow.registry.get_access_record(grant_id)
            return info, record

    info, record = run(_inspect())

    click.echo(f"  Grant:     {info.grant_id}")
    click.echo(f"  Owner:     {info.owner}")
    click.echo(f"  Expires:   {utc_from_timestamp(info.expiry_time)}")
    click.echo(f"  Password:  {'required' if info.has_password else 'none'}")
    if info.expired:
        click.secho("  Status:    expired", fg="red")
    else:
        click.secho(f"  Time left: {format_remaining(info.seconds_left)}", fg="green")

    if record is not None:
        click.echo(f"  Content:   {record.content_id}")
        click.echo(f"  Accessed:  {record.access_count} time(s)")
        if not record.is_active:
            click.secho("  Revoked by owner", fg="yellow")


@click.command()
@click.argument("link")
@click.confirmation_option(prompt="Revoke this share? Anyone holding the link loses access.")
def revoke(link: str) -> None:
    """Deactivate a share before it expires (owner only)."""
    grant_id = grant_id_argument(link)
    settings = Settings.from_env()

    async def _revoke():
        async with open_workflow(settings) as workflow:
            await workflow.revoke_share(grant_id)

    run(_revoke())
    click.secho(f"Revoked {grant_id}", fg="green")


@click.command()
@click.argument("link")
@click.option("--by", "by", default="1d", show_default=True, help="Extra time: 1h, 1d, 1w, 30d or seconds")
def extend(link: str, by: str) -> None:
    """Push a share's expiry back (owner only)."""
    grant_id = grant_id_argument(link)
    extra = parse_duration(by)
    settings = Settings.from_env()

    async def _extend():
        async with open_workflow(settings) as workflow:
            info = await workflow.inspect_share(grant_id)
            new_expiry = info.expiry_time + extra
            await workflow.extend_share(grant_id, new_expiry)
            return new_expiry

    new_expiry = run(_extend())
    click.secho(f"Extended {grant_id} until {utc_from_timestamp(new_expiry)}", fg="green")


@click.command()
@click.option("--all", "show_all", is_flag=True, help="Include grants owned by others")
@click.option("--limit", default=20, show_default=True, type=int, help="Maximum rows to show")
def logs(show_all: bool, limit: int) -> None:
    """List access records from the local registry."""
    settings = Settings.from_env()

    async def _logs():
        async with open_workflow(settings) as workflow:
            registry = workflow.registry
            if not isinstance(registry, LocalRegistry):
                return None
            owner: Optional[str] = None if show_all else registry.caller
            return await registry.list_grants(owner=owner), workflow.clock()

    result = run(_logs())
    if result is None:
        click.secho("Access logs are only kept by the local registry.", fg="yellow")
        return

    grants, now = result
    if not grants:
        click.echo("No access grants.")
        return

    click.echo(f"Access grants: {len(grants)}")
    for grant in grants[:limit]:
        status = grant.status(now)
        colour = {"active": "green", "expired": "red", "revoked": "yellow"}[status]
        click.echo(
            f"  {grant.id[:18]}…  "
            + click.style(f"{status:<8}", fg=colour)
            + f"  {grant.access_count:>4} views  "
            + f"{'pw ' if grant.has_password else '   '}"
            + f"expires {utc_from_timestamp(grant.expiry_time)}"
        )
