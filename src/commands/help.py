"""Command list built from the registry."""

from __future__ import annotations

from core.registry import CommandContext

name = "!help"
aliases = ["help", "menu", "commands"]
description = "This list"


def format_help(ctx: CommandContext) -> str:
    lines = [f"\U0001F916 **{ctx.profile.name} commands**", ""]
    definitions = ctx.registry.definitions() if ctx.registry is not None else []
    for definition in sorted(definitions, key=lambda item: item.name):
        entry = f"• `{definition.name}`"
        if definition.description:
            entry += f" - {definition.description}"
        lines.append(entry)
    lines.extend(["", "The `!` prefix is optional."])
    return "\n".join(lines)


async def run(ctx: CommandContext) -> None:
    await ctx.reply(format_help(ctx))
