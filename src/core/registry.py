"""Command registry (core domain).

Command modules come in a few shapes: a bare coroutine function, or an object
(usually the module itself) exposing ``run`` plus optional ``name`` and
``aliases``. The loader normalizes every shape into one ``CommandDefinition``
so nothing past this module has to inspect command objects at runtime.
"""

from __future__ import annotations

import importlib
import logging
import pkgutil
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Optional

from core.config import BotProfile
from core.models import InboundMessage

if TYPE_CHECKING:
    from core.ports import TransportPort

LOGGER = logging.getLogger(__name__)

COMMAND_PREFIX = "!"


@dataclass
class CommandContext:
    """Everything a command handler may use to answer one message."""

    transport: "TransportPort"
    message: InboundMessage
    arguments: list[str]
    chat_id: str
    sender_id: str
    is_group: bool
    logger: logging.Logger
    profile: BotProfile = field(default_factory=BotProfile)
    registry: Optional["CommandRegistry"] = None

    async def reply(self, text: str) -> None:
        await self.transport.send_text(self.chat_id, text, reply_to=self.message)


CommandHandler = Callable[[CommandContext], Awaitable[None]]


@dataclass(frozen=True)
class CommandDefinition:
    """Normalized command: primary token, extra tokens and the handler."""

    name: str
    aliases: tuple[str, ...]
    handler: CommandHandler
    description: str = ""


def toggle_prefix(token: str) -> str:
    """Return the token with the command prefix stripped or added."""

    if token.startswith(COMMAND_PREFIX):
        return token[len(COMMAND_PREFIX):]
    return f"{COMMAND_PREFIX}{token}"


def token_variants(token: str) -> set[str]:
    """Lower-cased token plus its prefix-toggled counterpart."""

    lowered = (token or "").strip().lower()
    if not lowered:
        return set()
    return {variant for variant in (lowered, toggle_prefix(lowered)) if variant}


def _first_doc_line(obj: Any) -> str:
    lines = (getattr(obj, "__doc__", None) or "").strip().splitlines()
    return lines[0] if lines else ""


def _from_callable(export: CommandHandler, base_name: str) -> CommandDefinition:
    return CommandDefinition(
        name=f"{COMMAND_PREFIX}{base_name}",
        aliases=(base_name,),
        handler=export,
        description=_first_doc_line(export),
    )


def _from_object(export: Any, base_name: str) -> CommandDefinition:
    name = getattr(export, "name", None) or f"{COMMAND_PREFIX}{base_name}"
    aliases = getattr(export, "aliases", None)
    if aliases is None:
        aliases = [base_name]
    elif isinstance(aliases, str):
        aliases = [aliases]
    return CommandDefinition(
        name=str(name),
        aliases=tuple(str(alias) for alias in aliases),
        handler=export.run,
        description=str(getattr(export, "description", "") or ""),
    )


def normalize_command(export: Any, base_name: str) -> Optional[CommandDefinition]:
    """Normalize one raw command export, or return None if it is unusable."""

    if callable(getattr(export, "run", None)):
        return _from_object(export, base_name)
    if callable(export):
        return _from_callable(export, base_name)
    LOGGER.warning("Invalid command shape in %r (no run function), skipping", base_name)
    return None


class CommandRegistry:
    """Maps normalized command tokens to command definitions.

    Every name and alias is stored lower-cased in both its prefixed and
    unprefixed form, so ``!ping`` and ``ping`` resolve to the same command.
    When two definitions claim the same token the later registration wins.
    """

    def __init__(self) -> None:
        self._commands: dict[str, CommandDefinition] = {}
        self._definitions: list[CommandDefinition] = []
        self._frozen = False

    def register(self, definition: CommandDefinition) -> None:
        if self._frozen:
            raise RuntimeError("Command registry is frozen")
        tokens: set[str] = set()
        for raw in (definition.name, *definition.aliases):
            tokens.update(token_variants(raw))
        for token in sorted(tokens):
            existing = self._commands.get(token)
            if existing is not None and existing is not definition:
                LOGGER.warning(
                    "Command token %r of %s overrides %s",
                    token,
                    definition.name,
                    existing.name,
                )
            self._commands[token] = definition
        self._definitions.append(definition)

    def freeze(self) -> None:
        self._frozen = True

    def resolve(self, token: str) -> Optional[CommandDefinition]:
        return self._commands.get((token or "").strip().lower())

    def tokens(self) -> frozenset[str]:
        return frozenset(self._commands)

    def definitions(self) -> list[CommandDefinition]:
        """Definitions still reachable through at least one token."""

        live = {id(definition) for definition in self._commands.values()}
        return [definition for definition in self._definitions if id(definition) in live]

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and token.strip().lower() in self._commands

    def __len__(self) -> int:
        return len(self._commands)


def load_commands(exports: Iterable[tuple[str, Any]]) -> CommandRegistry:
    """Build a frozen registry from ``(base_name, export)`` pairs."""

    registry = CommandRegistry()
    for base_name, export in exports:
        definition = normalize_command(export, base_name)
        if definition is None:
            continue
        registry.register(definition)
        LOGGER.info("Loaded command: %s (%s)", definition.name, base_name)
    registry.freeze()
    return registry


def load_package(package_name: str = "commands") -> CommandRegistry:
    """Import every module of a package (sorted by name) and load its command.

    A module may define ``command`` (bare handler or object); otherwise the
    module itself is treated as the command object. Modules that fail to
    import are logged and skipped.
    """

    package = importlib.import_module(package_name)
    exports: list[tuple[str, Any]] = []
    module_names = sorted(info.name for info in pkgutil.iter_modules(package.__path__))
    for module_name in module_names:
        if module_name.startswith("_"):
            continue
        try:
            module = importlib.import_module(f"{package_name}.{module_name}")
        except Exception:
            LOGGER.exception("Failed to load command module %s", module_name)
            continue
        exports.append((module_name, getattr(module, "command", module)))
    return load_commands(exports)
