"""Latency check."""

from __future__ import annotations

from datetime import datetime, timezone

from core.registry import CommandContext

name = "!ping"
aliases = ["ping", "pong", "!test", "test"]
description = "Measure bot response time"


async def run(ctx: CommandContext) -> None:
    sent_at = ctx.message.date
    if sent_at.tzinfo is None:
        sent_at = sent_at.replace(tzinfo=timezone.utc)
    latency_ms = int((datetime.now(timezone.utc) - sent_at).total_seconds() * 1000)
    await ctx.reply(f"\U0001F3D3 Pong! ~{max(latency_ms, 0)}ms")
