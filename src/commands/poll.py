"""Single-choice poll: ``!poll question | option 1, option 2, ...``."""

from __future__ import annotations

from typing import Optional

from core.registry import CommandContext

name = "!poll"
aliases = ["poll", "!polls", "polls"]
description = "Create a poll: question | a, b, c"

USAGE = "Usage: `!poll question | option 1, option 2, option 3`"
MIN_OPTIONS = 2
MAX_OPTIONS = 10


def parse_poll(arguments: list[str]) -> Optional[tuple[str, list[str]]]:
    """Split raw arguments into a question and its options."""

    raw = " ".join(arguments)
    question, separator, options_part = raw.partition("|")
    question = question.strip()
    if not separator or not question or not options_part.strip():
        return None
    options = [option.strip() for option in options_part.split(",") if option.strip()]
    return question, options


async def run(ctx: CommandContext) -> None:
    parsed = parse_poll(ctx.arguments)
    if parsed is None:
        await ctx.reply(USAGE)
        return
    question, options = parsed
    if len(options) < MIN_OPTIONS:
        await ctx.reply("Please give at least two options.")
        return
    if len(options) > MAX_OPTIONS:
        await ctx.reply(f"A poll can have at most {MAX_OPTIONS} options.")
        return
    try:
        await ctx.transport.send_poll(ctx.chat_id, question, options, reply_to=ctx.message)
    except Exception:
        ctx.logger.exception("Poll send failed")
        await ctx.reply("❌ Could not create the poll, please try again later.")
