"""
Core data models for the Church Bot.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union


class Difficulty(Enum):
    """Difficulty tags partitioning the trivia bank."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def parse(cls, value: str) -> Optional["Difficulty"]:
        """Return the difficulty for a case-insensitive tag, or None."""
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @classmethod
    def tags(cls) -> List[str]:
        return [difficulty.value for difficulty in cls]


class BotMode(Enum):
    """Process-wide mode gating non-admin commands."""
    PUBLIC = "public"
    PRIVATE = "private"


@dataclass
class TriviaQuestion:
    """Represents a single trivia question."""
    question: str
    answer: str


TriviaBank = Dict[str, List[TriviaQuestion]]


@dataclass
class PendingDifficulty:
    """Chat has issued the quiz command and awaits a difficulty tag."""
    started_at: datetime = field(default_factory=datetime.now)


@dataclass
class ActiveQuiz:
    """A single question awaiting a matching answer."""
    question: str
    answer: str
    difficulty: str = Difficulty.EASY.value
    started_at: datetime = field(default_factory=datetime.now)


@dataclass
class BestOfTen:
    """A ten question run; current_index points at the unanswered question."""
    questions: List[TriviaQuestion]
    difficulty: str = Difficulty.EASY.value
    current_index: int = 0
    score: int = 0
    started_at: datetime = field(default_factory=datetime.now)

    @property
    def current_question(self) -> Optional[TriviaQuestion]:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    @property
    def total(self) -> int:
        return len(self.questions)


@dataclass
class BattleSession:
    """Head-to-head trivia between two players taking alternate turns."""
    player1: str
    player2: str
    score1: int = 0
    score2: int = 0
    turn: int = 1
    turns_played: int = 0
    current: Optional[TriviaQuestion] = None
    started_at: datetime = field(default_factory=datetime.now)

    @property
    def current_player(self) -> str:
        return self.player1 if self.turn == 1 else self.player2

    def add_point(self, player_number: int) -> None:
        if player_number == 1:
            self.score1 += 1
        else:
            self.score2 += 1

    def leader(self) -> Optional[str]:
        """Return the leading player's name, or None on a tie."""
        if self.score1 > self.score2:
            return self.player1
        if self.score2 > self.score1:
            return self.player2
        return None


ChatSession = Union[PendingDifficulty, ActiveQuiz, BestOfTen, BattleSession]


@dataclass
class Reply:
    """Reply payload handed to the transport."""
    text: str
    mentions: List[str] = field(default_factory=list)


@dataclass
class IncomingMessage:
    """A transport-neutral inbound chat message."""
    chat_id: str
    sender_id: str
    sender_name: str
    text: str


@dataclass
class Participant:
    """A chat member as resolved by the participant directory."""
    identity: str
    display_name: str
    mention: str


@dataclass
class BotSettings:
    """Runtime configuration for the bot."""
    command_prefix: str = "!"
    admin_ids: List[str] = field(default_factory=list)
    data_directory: str = "./data/"
    data_files: Dict[str, str] = field(default_factory=dict)
    session_timeout_minutes: Optional[int] = None
    battle_target_score: int = 3
    battle_max_turns: int = 10
