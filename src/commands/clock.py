"""Current server time in the configured time zone."""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.registry import CommandContext

name = "!time"
aliases = ["time", "date", "clock"]
description = "Show the current time"


def now_in(zone_name: str) -> tuple[datetime, str]:
    try:
        return datetime.now(ZoneInfo(zone_name)), zone_name
    except (ZoneInfoNotFoundError, ValueError):
        return datetime.now(timezone.utc), "UTC"


async def run(ctx: CommandContext) -> None:
    now, zone_name = now_in(ctx.profile.timezone)
    await ctx.reply(f"\U0001F552 Current time ({zone_name}): {now.strftime('%Y-%m-%d %H:%M:%S')}")
