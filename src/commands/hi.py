"""Greeting."""

from __future__ import annotations

from core.registry import CommandContext

name = "!hi"
aliases = ["hi", "hello", "hey", "salam"]
description = "Say hello"


async def run(ctx: CommandContext) -> None:
    owner = f" run by **{ctx.profile.owner}**" if ctx.profile.owner else ""
    await ctx.reply(
        f"\U0001F44B Hello! I'm **{ctx.profile.name}**, an automated assistant{owner}.\n"
        "How can I help? Send **help** to see the commands."
    )
