"""
Quiz session controller for the Church Bot.
Drives the per-chat quiz, best-of-ten and battle sessions.
"""
import logging
from typing import Optional

from .answer_normalizer import answers_match
from .content_store import ContentStore
from .exceptions import PersistenceError
from .models import (
    ActiveQuiz,
    BattleSession,
    BestOfTen,
    BotSettings,
    Difficulty,
    PendingDifficulty,
    Reply,
)
from .quiz_engine import QuizEngine
from .session_registry import SessionRegistry

BEST_OF_COUNT = 10

SAVE_WARNING = "⚠️ Your points were counted but could not be saved right now."


class QuizController:
    """
    Orchestrates quiz sessions across chats.

    Every method applies one session transition for one chat and returns
    the reply to send. Each chat can have at most one session at a time;
    starting a session replaces whatever the chat had before.
    """

    def __init__(
        self,
        content: ContentStore,
        sessions: SessionRegistry,
        settings: Optional[BotSettings] = None,
        engine: Optional[QuizEngine] = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.content = content
        self.sessions = sessions
        self.settings = settings or BotSettings()
        self.engine = engine or QuizEngine()

    @property
    def prefix(self) -> str:
        return self.settings.command_prefix

    def _award(self, player: str, points: int) -> Optional[str]:
        """Add points to the leaderboard; return a warning if saving failed."""
        try:
            self.content.add_points(player, points)
        except PersistenceError as e:
            self.logger.error(f"Failed to save leaderboard after awarding {player}: {e}")
            return SAVE_WARNING
        return None

    # Single question quiz

    def start_quiz(self, chat_id: str) -> Reply:
        self.sessions.set(chat_id, PendingDifficulty())
        return Reply("📚 Select a difficulty: *easy*, *medium*, *hard*.")

    def select_difficulty(self, chat_id: str, text: str) -> Reply:
        """
        Interpret text as the difficulty for a pending quiz.

        An unknown tag or an empty bank leaves the chat waiting for a
        difficulty so the user can try again.
        """
        difficulty = Difficulty.parse(text)
        if difficulty is None or not self.content.question_count(difficulty.value):
            return Reply("❌ Invalid difficulty! Choose: *easy*, *medium*, *hard*.")

        question = self.engine.pick_question(self.content.get_questions(difficulty.value))
        self.sessions.set(
            chat_id,
            ActiveQuiz(question=question.question, answer=question.answer, difficulty=difficulty.value),
        )
        self.logger.info(f"Chat {chat_id}: {difficulty.value} quiz started")
        return Reply(f"📖 *{difficulty.value.upper()} Quiz*\n\n{question.question}")

    def answer_quiz(self, chat_id: str, session: ActiveQuiz, sender_name: str, text: str) -> Reply:
        if not answers_match(text, session.answer):
            return Reply(f"❌ Incorrect! Try again or type *{self.prefix}quiz* for a new question.")

        self.sessions.clear(chat_id)
        warning = self._award(sender_name, 1)
        lines = [f"🎉 Correct! Type *{self.prefix}quiz* for another."]
        if warning:
            lines.append(warning)
        return Reply("\n".join(lines))

    # Best of ten

    def start_best_of_ten(self, chat_id: str, difficulty_tag: str) -> Reply:
        usage = (
            f"❌ Invalid difficulty! Type: *{self.prefix}bestof10 easy*, "
            f"*{self.prefix}bestof10 medium*, or *{self.prefix}bestof10 hard*."
        )
        difficulty = Difficulty.parse(difficulty_tag)
        if difficulty is None:
            return Reply(usage)

        available = self.content.question_count(difficulty.value)
        if available < BEST_OF_COUNT:
            return Reply(
                f"❌ Not enough *{difficulty.value}* questions for Best of {BEST_OF_COUNT} "
                f"({available} available)."
            )

        questions = self.engine.sample_questions(self.content.get_questions(difficulty.value), BEST_OF_COUNT)
        session = BestOfTen(questions=questions, difficulty=difficulty.value)
        self.sessions.set(chat_id, session)
        self.logger.info(f"Chat {chat_id}: best of {BEST_OF_COUNT} ({difficulty.value}) started")
        return Reply(
            f"📖 *Best of {BEST_OF_COUNT} - {difficulty.value.upper()}*\n\n"
            f"*Question 1/{session.total}*\n\n{questions[0].question}"
        )

    def answer_best_of_ten(self, chat_id: str, session: BestOfTen, sender_name: str, text: str) -> Reply:
        question = session.current_question
        if question is not None and answers_match(text, question.answer):
            session.score += 1
        session.current_index += 1

        if session.current_index < session.total:
            return Reply(
                f"📖 *Question {session.current_index + 1}/{session.total}*\n\n"
                f"{session.current_question.question}"
            )

        self.sessions.clear(chat_id)
        warning = self._award(sender_name, session.score)
        self.logger.info(f"Chat {chat_id}: best of {session.total} finished, {sender_name} scored {session.score}")
        lines = [f"🎉 *Best of {session.total} Completed!*\nYou scored *{session.score}/{session.total}*!"]
        if warning:
            lines.append(warning)
        return Reply("\n".join(lines))

    # Battle

    def start_battle(self, chat_id: str, challenger: str, opponent_ref: str) -> Reply:
        """
        Open a battle between the challenger and an @-referenced opponent.

        Players take alternate turns answering their own question. The first
        to reach the target score wins; after the turn limit the higher
        score wins and equal scores are a draw.
        """
        opponent_ref = (opponent_ref or "").strip()
        opponent = opponent_ref[1:].strip() if opponent_ref.startswith("@") else ""
        if not opponent:
            return Reply(f"❌ Mention your opponent: *{self.prefix}battle @name*")
        if opponent.casefold() == challenger.casefold():
            return Reply("❌ You can't battle yourself!")

        questions = self.content.all_questions()
        if not questions:
            return Reply("❌ No trivia questions are available for a battle.")

        session = BattleSession(player1=challenger, player2=opponent)
        session.current = self.engine.pick_question(questions)
        self.sessions.set(chat_id, session)
        self.logger.info(f"Chat {chat_id}: battle {challenger} vs {opponent} started")
        return Reply(
            f"⚔️ *Battle started!* {challenger} vs {opponent}\n"
            f"First to {self.settings.battle_target_score} correct answers wins.\n\n"
            f"🎯 *{session.current_player}*, your question:\n\n{session.current.question}"
        )

    def answer_battle(self, chat_id: str, session: BattleSession, sender_name: str, text: str) -> Optional[Reply]:
        """Score the current player's answer; messages from anyone else are ignored."""
        player = session.current_player
        if sender_name.casefold() != player.casefold():
            return None

        question = session.current
        if question is not None and answers_match(text, question.answer):
            session.add_point(session.turn)
            result = f"✅ Correct, {player}!"
        else:
            answer = question.answer if question is not None else "?"
            result = f"❌ Wrong, {player}! The answer was *{answer}*."
        session.turns_played += 1

        scoreboard = f"📊 {session.player1} {session.score1} - {session.score2} {session.player2}"
        target = self.settings.battle_target_score
        if (session.score1 >= target or session.score2 >= target
                or session.turns_played >= self.settings.battle_max_turns):
            return self._finish_battle(chat_id, session, [result, scoreboard])

        session.turn = 2 if session.turn == 1 else 1
        session.current = self.engine.pick_question(self.content.all_questions())
        return Reply(
            f"{result}\n{scoreboard}\n\n"
            f"🎯 *{session.current_player}*, your question:\n\n{session.current.question}"
        )

    def _finish_battle(self, chat_id: str, session: BattleSession, lines) -> Reply:
        self.sessions.clear(chat_id)
        winner = session.leader()
        lines = list(lines)
        if winner is None:
            lines.append("\n🤝 *The battle ends in a draw!*")
        else:
            points = session.score1 if winner == session.player1 else session.score2
            lines.append(f"\n🏆 *{winner} wins the battle!* (+{points} points)")
            warning = self._award(winner, points)
            if warning:
                lines.append(warning)
        self.logger.info(
            f"Chat {chat_id}: battle finished {session.score1}-{session.score2}, winner {winner or 'none'}"
        )
        return Reply("\n".join(lines))
