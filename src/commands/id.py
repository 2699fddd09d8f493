"""Chat and sender identifiers."""

from __future__ import annotations

from core.registry import CommandContext


async def command(ctx: CommandContext) -> None:
    """Show chat and sender ids"""
    await ctx.reply(
        f"\U0001F194 Chat: `{ctx.chat_id}`\n"
        f"\U0001F464 Sender: `{ctx.sender_id}`\n"
        f"\U0001F465 Group: {'yes' if ctx.is_group else 'no'}"
    )
