"""
Public/private mode gate with a static admin allow-list.
"""
import logging
from typing import Iterable, Optional

from .models import BotMode

MODE_COMMANDS = frozenset({"private", "public"})


def normalize_identity(raw) -> str:
    """
    Reduce a platform identity to its bare id.

    Strips mention wrappers ("<@123>", "<@!123>"), platform suffixes
    ("15551234567@c.us"), a leading "+" and surrounding whitespace.
    """
    if raw is None:
        return ""
    identity = str(raw).strip()
    if identity.startswith("<@") and identity.endswith(">"):
        identity = identity[2:-1].lstrip("!&")
    identity = identity.split("@", 1)[0]
    return identity.strip().lstrip("+")


class ModeGate:
    """Gates commands while the bot is in private mode."""

    def __init__(self, admin_ids: Iterable[str] = (), mode: BotMode = BotMode.PUBLIC):
        self.logger = logging.getLogger(__name__)
        self._admins = {normalize_identity(admin) for admin in admin_ids if normalize_identity(admin)}
        self._mode = mode

    @property
    def mode(self) -> BotMode:
        return self._mode

    def is_admin(self, sender_id) -> bool:
        return normalize_identity(sender_id) in self._admins

    def is_allowed(self, sender_id, command_name: Optional[str] = None) -> bool:
        """
        Check whether a sender may run a command in the current mode.

        Admins and the mode toggle commands always pass.
        """
        if self._mode is BotMode.PUBLIC:
            return True
        if command_name in MODE_COMMANDS:
            return True
        return self.is_admin(sender_id)

    def set_mode(self, mode: BotMode, sender_id) -> bool:
        """
        Switch the process-wide mode.

        Returns:
            False without changing anything if the sender is not an admin
        """
        if not self.is_admin(sender_id):
            self.logger.warning(f"Ignored {mode.value} mode request from non-admin {sender_id}")
            return False
        if self._mode is not mode:
            self.logger.info(f"Bot mode changed {self._mode.value} -> {mode.value} by {sender_id}")
        self._mode = mode
        return True
