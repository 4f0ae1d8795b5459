"""
Command table, parsing and dispatch.
"""
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, Optional, Tuple

from .exceptions import InvalidCommandError
from .models import IncomingMessage, Reply

Handler = Callable[[IncomingMessage, str], Awaitable[Optional[Reply]]]


@dataclass
class CommandSpec:
    """
    One entry of the command table.

    The dispatcher drops admin_only commands from senders outside the
    admin allow-list before anything else happens.
    """
    name: str
    handler: Handler
    takes_args: bool = False
    admin_only: bool = False
    aliases: Tuple[str, ...] = field(default_factory=tuple)


@dataclass
class ParsedCommand:
    spec: CommandSpec
    args: str

    @property
    def name(self) -> str:
        return self.spec.name


class CommandRouter:
    """
    Maps command text to handlers.

    The first word after the prefix is matched case-insensitively against
    whole command names, so commands sharing a stem (teaching, teachings)
    never shadow each other. Arguments keep their original case.
    """

    def __init__(self, commands: Iterable[CommandSpec], prefix: str = "!"):
        if not prefix:
            raise InvalidCommandError("Command prefix cannot be empty")
        self.prefix = prefix
        self.logger = logging.getLogger(__name__)
        self._table: Dict[str, CommandSpec] = {}
        for spec in commands:
            self.register(spec)

    def register(self, spec: CommandSpec) -> None:
        for name in (spec.name,) + tuple(spec.aliases):
            key = name.lower()
            if not key or any(ch.isspace() for ch in key):
                raise InvalidCommandError(f"Invalid command name: {name!r}")
            if key in self._table:
                raise InvalidCommandError(f"Duplicate command name: {name!r}")
            self._table[key] = spec

    def command_names(self):
        return list(self._table.keys())

    def parse(self, text: str) -> Optional[ParsedCommand]:
        """
        Parse text into a command and its argument string.

        Returns:
            ParsedCommand, or None if the text is not a known command
        """
        if not isinstance(text, str):
            return None
        stripped = text.strip()
        if not stripped.startswith(self.prefix):
            return None

        body = stripped[len(self.prefix):]
        parts = body.split(None, 1)
        if not parts:
            return None

        spec = self._table.get(parts[0].lower())
        if spec is None:
            return None

        args = parts[1].strip() if len(parts) > 1 else ""
        if args and not spec.takes_args:
            return None
        return ParsedCommand(spec=spec, args=args)

    async def dispatch(self, parsed: ParsedCommand, message: IncomingMessage) -> Optional[Reply]:
        self.logger.debug(f"Chat {message.chat_id}: {parsed.name} from {message.sender_name}")
        return await parsed.spec.handler(message, parsed.args)

    async def route(self, message: IncomingMessage) -> Optional[Reply]:
        """Parse and run a command; ordinary chat text yields None."""
        parsed = self.parse(message.text)
        if parsed is None:
            return None
        return await self.dispatch(parsed, message)
