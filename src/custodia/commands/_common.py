from __future__ import annotations

import asyncio
import sys
from typing import Any, Awaitable

import click

from ..errors import CustodiaError
from ..share import DURATION_PRESETS, parse_share_url


def run(coro: Awaitable[Any]) -> Any:
    """Run a command coroutine, turning errors into a red line and an exit code."""
    try:
        return asyncio.run(coro)
    except CustodiaError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(exc.exit_code)
    except ValueError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)


def parse_duration(value: str) -> int:
    """``1h``/``1d``/``1w``/``30d`` or a number of seconds."""
    if value in DURATION_PRESETS:
        return DURATION_PRESETS[value]
    try:
        seconds = int(value)
    except ValueError:
        raise click.BadParameter(
            f"use one of {', '.join(DURATION_PRESETS)} or a number of seconds"
        )
    if seconds <= 0:
        raise click.BadParameter("duration must be positive")
    return seconds


def grant_id_argument(value: str) -> str:
    try:
        return parse_share_url(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc))
