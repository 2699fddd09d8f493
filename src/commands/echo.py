"""Repeat the arguments back to the chat."""

from __future__ import annotations

from core.registry import CommandContext


async def command(ctx: CommandContext) -> None:
    """Repeat the given text"""
    text = " ".join(ctx.arguments)
    if not text:
        await ctx.reply("Usage: `!echo <text>`")
        return
    await ctx.reply(text)
