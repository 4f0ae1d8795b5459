"""
Content store for trivia, lyrics, leaderboard, teachings and team rosters.
"""
import logging
from typing import Dict, List, Optional, Tuple

from .models import Difficulty, TriviaBank, TriviaQuestion
from .storage import JsonStore


class ContentStore:
    """
    Read-through/write-through access to the bot's data tables.

    Trivia and lyrics are read-only input data. The leaderboard, teachings
    and team rosters are updated in memory first and then written back as
    whole documents; a failed write raises PersistenceError with the
    in-memory update kept, so the next successful write carries it.
    """

    def __init__(self, store: JsonStore):
        self.store = store
        self.logger = logging.getLogger(__name__)
        self.load_errors: List[str] = []
        self.trivia: TriviaBank = {}
        self.lyrics: Dict[str, object] = {}
        self.leaderboard: Dict[str, int] = {}
        self.teachings: Dict[str, str] = {}
        self.teams: Dict[str, List[str]] = {}
        self.reload()

    def reload(self) -> None:
        """Load every document from the store."""
        self.load_errors.clear()
        self.trivia = self._parse_trivia(self.store.load("trivia", {}))
        self.lyrics = self.store.load("lyrics", {})
        self.leaderboard = self._parse_leaderboard(self.store.load("leaderboard", {}))
        self.teachings = self._parse_teachings(self.store.load("teachings", {}))
        self.teams = self._parse_teams(self.store.load("teams", {}))

        counts = ", ".join(f"{tag}={len(self.trivia[tag])}" for tag in Difficulty.tags())
        self.logger.info(
            f"Loaded trivia ({counts}), {len(self.lyrics)} songs, "
            f"{len(self.leaderboard)} scores, {len(self.teachings)} teachings, {len(self.teams)} teams"
        )
        if self.load_errors:
            self.logger.warning(f"Encountered {len(self.load_errors)} loading errors")

    def _parse_trivia(self, data: dict) -> TriviaBank:
        """
        Build the trivia bank from the raw document.

        Expected structure:
        {
            "easy": [{"question": str, "answer": str}, ...],
            "medium": [...],
            "hard": [...]
        }

        Entries that are not objects with string question and answer fields
        are skipped and reported. Unknown difficulty keys are ignored.
        """
        bank: TriviaBank = {tag: [] for tag in Difficulty.tags()}

        for key in data:
            if Difficulty.parse(key) is None:
                self.load_errors.append(f"Unknown difficulty '{key}' in trivia data")

        for tag in Difficulty.tags():
            entries = data.get(tag, [])
            if not isinstance(entries, list):
                self.load_errors.append(f"Trivia '{tag}' must be an array")
                continue

            for i, entry in enumerate(entries):
                if not isinstance(entry, dict):
                    self.load_errors.append(f"Trivia {tag}[{i}] must be an object")
                    continue
                question = entry.get("question")
                answer = entry.get("answer")
                if not isinstance(question, str) or not question.strip():
                    self.load_errors.append(f"Trivia {tag}[{i}] missing 'question' text")
                    continue
                # Numeric answers are common in hand-written files
                if isinstance(answer, (int, float)) and not isinstance(answer, bool):
                    answer = str(answer)
                if not isinstance(answer, str) or not answer.strip():
                    self.load_errors.append(f"Trivia {tag}[{i}] missing 'answer' text")
                    continue
                bank[tag].append(TriviaQuestion(question=question, answer=answer))

        return bank

    def _parse_leaderboard(self, data: dict) -> Dict[str, int]:
        leaderboard = {}
        for name, score in data.items():
            if isinstance(score, bool) or not isinstance(score, int):
                self.load_errors.append(f"Leaderboard score for '{name}' is not an integer")
                continue
            leaderboard[name] = score
        return leaderboard

    def _parse_teachings(self, data: dict) -> Dict[str, str]:
        teachings = {}
        for title, body in data.items():
            if not isinstance(body, str):
                self.load_errors.append(f"Teaching '{title}' is not text")
                continue
            teachings[title] = body
        return teachings

    def _parse_teams(self, data: dict) -> Dict[str, List[str]]:
        teams = {}
        for team, members in data.items():
            if not isinstance(members, list):
                self.load_errors.append(f"Team '{team}' members must be an array")
                continue
            roster = []
            for member in members:
                if isinstance(member, str) and member not in roster:
                    roster.append(member)
            teams[team] = roster
        return teams

    def get_load_errors(self) -> List[str]:
        return self.load_errors.copy()

    # Trivia

    def get_questions(self, difficulty: str) -> List[TriviaQuestion]:
        """Return a copy of the questions for a difficulty tag."""
        return list(self.trivia.get(difficulty, []))

    def question_count(self, difficulty: str) -> int:
        return len(self.trivia.get(difficulty, []))

    def all_questions(self) -> List[TriviaQuestion]:
        questions = []
        for tag in Difficulty.tags():
            questions.extend(self.trivia.get(tag, []))
        return questions

    # Lyrics

    def get_lyrics(self, name: str) -> Optional[Tuple[str, str]]:
        """
        Look up a song by its exact key.

        Returns:
            (title, lyrics) or None if the song is unknown
        """
        entry = self.lyrics.get(name)
        if entry is None:
            return None
        if isinstance(entry, str):
            return name, entry
        if isinstance(entry, dict) and isinstance(entry.get("lyrics"), str):
            return entry.get("title") or name, entry["lyrics"]
        self.logger.warning(f"Malformed lyrics entry for '{name}'")
        return None

    # Leaderboard

    def add_points(self, name: str, points: int) -> int:
        """
        Add points to a player's total and persist the leaderboard.

        Returns:
            The player's new total

        Raises:
            PersistenceError: If the leaderboard cannot be written
        """
        self.leaderboard[name] = self.leaderboard.get(name, 0) + points
        total = self.leaderboard[name]
        self.logger.info(f"Leaderboard: {name} +{points} -> {total}")
        self.store.save("leaderboard", self.leaderboard)
        return total

    def get_score(self, name: str) -> int:
        return self.leaderboard.get(name, 0)

    def top_scores(self, limit: int = 5) -> List[Tuple[str, int]]:
        """Highest scores first; ties keep insertion order."""
        ranked = sorted(self.leaderboard.items(), key=lambda item: item[1], reverse=True)
        return ranked[:limit]

    def reset_leaderboard(self) -> None:
        self.leaderboard = {}
        self.logger.info("Leaderboard reset")
        self.store.save("leaderboard", self.leaderboard)

    # Teachings

    def add_teaching(self, title: str, body: str) -> bool:
        """
        Store a teaching, replacing any teaching with the same title.

        Returns:
            True if an existing teaching was overwritten
        """
        replaced = title in self.teachings
        self.teachings[title] = body
        self.logger.info(f"Teaching '{title}' {'updated' if replaced else 'added'}")
        self.store.save("teachings", self.teachings)
        return replaced

    def get_teaching(self, title: str) -> Optional[str]:
        return self.teachings.get(title)

    def list_teachings(self) -> List[str]:
        return list(self.teachings.keys())

    # Teams

    def join_team(self, team: str, member: str) -> bool:
        """
        Add a member to a team roster.

        Returns:
            False if the member already belongs to the team (nothing written)
        """
        roster = self.teams.setdefault(team, [])
        if member in roster:
            return False
        roster.append(member)
        self.logger.info(f"{member} joined team '{team}'")
        self.store.save("teams", self.teams)
        return True

    def get_team(self, team: str) -> List[str]:
        return list(self.teams.get(team, []))

    def team_member_counts(self) -> List[Tuple[str, int]]:
        """Teams with their member counts, largest first."""
        counts = [(team, len(members)) for team, members in self.teams.items()]
        return sorted(counts, key=lambda item: item[1], reverse=True)
