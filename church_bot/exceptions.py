"""
Exception hierarchy for the Church Bot.
"""


class ChurchBotError(Exception):
    """Base exception for church bot errors."""
    pass


class PersistenceError(ChurchBotError):
    """Raised when a data document cannot be written."""
    pass


class ParticipantLookupError(ChurchBotError):
    """Raised when the members of a chat cannot be resolved."""
    pass


class InvalidCommandError(ChurchBotError):
    """Raised when a command table entry is malformed."""
    pass
