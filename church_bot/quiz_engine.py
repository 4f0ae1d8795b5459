"""
Question selection for quizzes and battles.
"""
import random
from typing import List, Optional

from .models import TriviaQuestion


class QuizEngine:
    """Picks questions from a bank."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._random = rng or random.Random()

    def pick_question(self, questions: List[TriviaQuestion]) -> TriviaQuestion:
        """
        Pick one question uniformly at random.

        Raises:
            ValueError: If questions list is empty
        """
        if not questions:
            raise ValueError("Cannot pick a question from an empty list")
        return self._random.choice(questions)

    def sample_questions(self, questions: List[TriviaQuestion], count: int) -> List[TriviaQuestion]:
        """
        Draw count distinct questions, uniformly and without replacement.

        Args:
            questions: Available questions
            count: Number of questions to draw

        Returns:
            New list of count questions in random order

        Raises:
            ValueError: If fewer than count questions are available
        """
        if count < 1:
            return []
        if len(questions) < count:
            raise ValueError(f"Need {count} questions, only {len(questions)} available")
        return self._random.sample(questions, count)
