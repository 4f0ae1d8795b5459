"""
End-to-end message flows through the MessageDispatcher.
"""
import asyncio
import json
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from church_bot.dispatcher import PRIVATE_MODE_NOTICE, build_dispatcher
from church_bot.exceptions import ParticipantLookupError, PersistenceError
from church_bot.handlers import NOT_SAVED
from church_bot.models import ActiveQuiz, BattleSession, BestOfTen, BotMode, Participant, PendingDifficulty
from church_bot.quiz_controller import SAVE_WARNING
from church_bot.session_registry import SessionState
from tests.test_fixtures import ADMIN_ID, CHAT_ID, USER_ID, TestFixtures, async_test


class DispatcherTestCase(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        TestFixtures.write_data_files(self.temp_dir)
        self.participants = [
            Participant("2002", "Alice", "<@2002>"),
            Participant("2003", "Bob", "<@2003>"),
        ]
        self.dispatcher = TestFixtures.create_dispatcher(self.temp_dir, self.participants)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    async def send(self, text, **kwargs):
        return await self.dispatcher.handle(TestFixtures.message(text, **kwargs))

    def read_json(self, name):
        with open(Path(self.temp_dir) / name, encoding='utf-8') as f:
            return json.load(f)


class TestQuizFlow(DispatcherTestCase):
    """Test cases for the quiz command and difficulty prompt."""

    @async_test
    async def test_quiz_right_answer_updates_leaderboard(self):
        reply = await self.send("!quiz")
        self.assertIn("Select a difficulty", reply.text)

        reply = await self.send("easy")
        session = self.dispatcher.sessions.get(CHAT_ID)
        self.assertIsInstance(session, ActiveQuiz)
        self.assertIn(session.question, reply.text)

        reply = await self.send(f"  {session.answer.upper()} ")
        self.assertIn("Correct", reply.text)
        self.assertEqual(self.dispatcher.sessions.state(CHAT_ID), SessionState.NONE)
        self.assertEqual(self.read_json("leaderboard.json"), {"Alice": 1})

    @async_test
    async def test_wrong_answer_keeps_quiz(self):
        await self.send("!quiz")
        await self.send("easy")
        session = self.dispatcher.sessions.get(CHAT_ID)

        reply = await self.send("not even close")

        self.assertIn("Incorrect", reply.text)
        self.assertIs(self.dispatcher.sessions.get(CHAT_ID), session)
        self.assertEqual(self.dispatcher.content.top_scores(), [])

    @async_test
    async def test_number_word_answer(self):
        self.dispatcher.sessions.set(CHAT_ID, ActiveQuiz(question="How many tribes?", answer="12 tribes"))

        reply = await self.send("Twelve tribes")

        self.assertIn("Correct", reply.text)
        self.assertEqual(self.dispatcher.content.get_score("Alice"), 1)

    @async_test
    async def test_spoken_large_number_answers(self):
        self.dispatcher.sessions.set(CHAT_ID, ActiveQuiz(question="Days of the prophecy?", answer="1260"))
        reply = await self.send("a thousand two hundred sixty")
        self.assertIn("Correct", reply.text)

        self.dispatcher.sessions.set(CHAT_ID, ActiveQuiz(question="Age?", answer="105"))
        reply = await self.send("one hundred and five")
        self.assertIn("Correct", reply.text)

        self.assertEqual(self.dispatcher.content.get_score("Alice"), 2)

    @async_test
    async def test_unconvertible_number_words_are_wrong_not_fatal(self):
        self.dispatcher.sessions.set(CHAT_ID, ActiveQuiz(question="Q?", answer="1002"))

        reply = await self.send("thousand two")

        self.assertIn("Incorrect", reply.text)
        self.assertIsInstance(self.dispatcher.sessions.get(CHAT_ID), ActiveQuiz)

    @async_test
    async def test_chat_locks_released_after_handling(self):
        await self.send("!quiz", chat_id="chat-a")
        await self.send("hello", chat_id="chat-b")

        self.assertEqual(self.dispatcher.sessions.lock_count(), 0)

    @async_test
    async def test_invalid_difficulty_stays_pending(self):
        await self.send("!quiz")

        for text in ["impossible", "hard", "!xyz"]:
            reply = await self.send(text)
            self.assertIn("Invalid difficulty", reply.text)
            self.assertIsInstance(self.dispatcher.sessions.get(CHAT_ID), PendingDifficulty)

    @async_test
    async def test_command_cancels_pending_difficulty(self):
        await self.send("!quiz")

        reply = await self.send("!leaderboard")

        self.assertIn("Leaderboard", reply.text)
        self.assertIsNone(self.dispatcher.sessions.get(CHAT_ID))

    @async_test
    async def test_quiz_during_pending_is_an_invalid_difficulty(self):
        await self.send("!quiz")
        reply = await self.send("!quiz")

        self.assertIn("Invalid difficulty", reply.text)
        self.assertIsInstance(self.dispatcher.sessions.get(CHAT_ID), PendingDifficulty)

        reply = await self.send("easy")
        self.assertIsInstance(self.dispatcher.sessions.get(CHAT_ID), ActiveQuiz)

    @async_test
    async def test_non_admin_command_keeps_pending_prompt(self):
        await self.send("!quiz")

        for command in ["!private", "!public", "!resetleaderboard"]:
            self.assertIsNone(await self.send(command))
            self.assertIsInstance(self.dispatcher.sessions.get(CHAT_ID), PendingDifficulty)

    @async_test
    async def test_commands_during_quiz_do_not_count_as_answers(self):
        await self.send("!quiz")
        await self.send("easy")
        session = self.dispatcher.sessions.get(CHAT_ID)

        reply = await self.send("!lyrics Amazing Grace")

        self.assertIn("Amazing grace!", reply.text)
        self.assertIs(self.dispatcher.sessions.get(CHAT_ID), session)

    @async_test
    async def test_chat_without_session_is_ignored(self):
        for text in ["hello", "12", "   ", ""]:
            self.assertIsNone(await self.send(text))

    @async_test
    async def test_sessions_are_per_chat(self):
        await self.send("!quiz", chat_id="chat-a")
        await self.send("!bestof10 easy", chat_id="chat-b")

        self.assertIsInstance(self.dispatcher.sessions.get("chat-a"), PendingDifficulty)
        self.assertIsInstance(self.dispatcher.sessions.get("chat-b"), BestOfTen)
        self.assertEqual(self.dispatcher.sessions.active_count(), 2)


class TestSingleSessionInvariant(DispatcherTestCase):
    """Starting any session replaces the chat's previous one."""

    @async_test
    async def test_new_session_replaces_old(self):
        await self.send("!quiz")
        await self.send("easy")
        self.assertIsInstance(self.dispatcher.sessions.get(CHAT_ID), ActiveQuiz)

        await self.send("!bestof10 easy")
        self.assertIsInstance(self.dispatcher.sessions.get(CHAT_ID), BestOfTen)

        await self.send("!battle @Bob")
        self.assertIsInstance(self.dispatcher.sessions.get(CHAT_ID), BattleSession)

        await self.send("!quiz")
        self.assertIsInstance(self.dispatcher.sessions.get(CHAT_ID), PendingDifficulty)
        self.assertEqual(self.dispatcher.sessions.active_count(), 1)

    @async_test
    async def test_concurrent_messages_are_serialized(self):
        await self.send("!bestof10 easy")
        session = self.dispatcher.sessions.get(CHAT_ID)
        answers = [question.answer for question in session.questions]

        replies = await asyncio.gather(*(self.send(answer) for answer in answers))

        self.assertIn("10/10", replies[-1].text)
        self.assertEqual(self.dispatcher.content.get_score("Alice"), 10)


class TestBestOfTen(DispatcherTestCase):
    """Test cases for the best of ten command."""

    @async_test
    async def test_run_adds_correct_count(self):
        reply = await self.send("!bestof10 EASY")
        self.assertIn("Question 1/10", reply.text)
        session = self.dispatcher.sessions.get(CHAT_ID)

        for i, question in enumerate(session.questions):
            answer = question.answer if i < 7 else "wrong"
            reply = await self.send(answer)

        self.assertIn("7/10", reply.text)
        self.assertEqual(self.read_json("leaderboard.json"), {"Alice": 7})
        self.assertIsNone(self.dispatcher.sessions.get(CHAT_ID))

    @async_test
    async def test_too_few_questions_rejected(self):
        reply = await self.send("!bestof10 medium")

        self.assertIn("Not enough", reply.text)
        self.assertIn("3 available", reply.text)
        self.assertIsNone(self.dispatcher.sessions.get(CHAT_ID))

    @async_test
    async def test_missing_difficulty_shows_usage(self):
        reply = await self.send("!bestof10")

        self.assertIn("!bestof10 easy", reply.text)
        self.assertIsNone(self.dispatcher.sessions.get(CHAT_ID))


class TestLyrics(DispatcherTestCase):
    """Test cases for the lyrics command."""

    @async_test
    async def test_lyrics_found(self):
        reply = await self.send("!lyrics doxology")
        self.assertIn("Praise God", reply.text)

    @async_test
    async def test_lyrics_not_found(self):
        reply = await self.send("!lyrics Unknown Song")
        self.assertIn('"Unknown Song" not found', reply.text)

    @async_test
    async def test_lyrics_usage(self):
        reply = await self.send("!lyrics")
        self.assertIn("Usage", reply.text)


class TestLeaderboard(DispatcherTestCase):
    """Test cases for the leaderboard commands."""

    def setUp(self):
        super().setUp()
        TestFixtures.write_data_files(self.temp_dir, leaderboard={"A": 5, "B": 9, "C": 9, "D": 1})
        self.dispatcher = TestFixtures.create_dispatcher(self.temp_dir)

    @async_test
    async def test_ordering_with_ties(self):
        reply = await self.send("!leaderboard")

        lines = reply.text.split("\n")[2:]
        self.assertEqual(lines, [
            "*1.* B - 9 points",
            "*2.* C - 9 points",
            "*3.* A - 5 points",
            "*4.* D - 1 points",
        ])

    @async_test
    async def test_reset_is_admin_only(self):
        self.assertIsNone(await self.send("!resetleaderboard"))
        self.assertEqual(self.dispatcher.content.get_score("B"), 9)

        reply = await self.send("!resetleaderboard", sender_id=ADMIN_ID)

        self.assertIn("reset", reply.text)
        self.assertEqual(self.read_json("leaderboard.json"), {})
        reply = await self.send("!leaderboard")
        self.assertIn("No scores yet", reply.text)


class TestTeachings(DispatcherTestCase):
    """Test cases for teaching commands."""

    @async_test
    async def test_add_then_read(self):
        reply = await self.send("!addteaching Faith: Hope")
        self.assertIn("Faith", reply.text)

        reply = await self.send("!teaching Faith")
        self.assertIn("Hope", reply.text)
        self.assertEqual(self.read_json("teachings.json"), {"Faith": "Hope"})

    @async_test
    async def test_add_overwrites_and_body_keeps_colons(self):
        await self.send("!addteaching Grace: first")
        reply = await self.send("!addteaching Grace: Time: 10:30")

        self.assertIn("updated", reply.text)
        self.assertEqual(self.dispatcher.content.get_teaching("Grace"), "Time: 10:30")

    @async_test
    async def test_add_requires_colon(self):
        reply = await self.send("!addteaching Faith Hope")

        self.assertIn("Usage", reply.text)
        self.assertEqual(self.dispatcher.content.list_teachings(), [])

    @async_test
    async def test_list_and_missing(self):
        reply = await self.send("!teachings")
        self.assertIn("No teachings", reply.text)

        await self.send("!addteaching Love: Patient and kind")
        reply = await self.send("!teachings")
        self.assertIn("• Love", reply.text)

        reply = await self.send("!teaching Wisdom")
        self.assertIn('"Wisdom" not found', reply.text)


class TestTeams(DispatcherTestCase):
    """Test cases for team commands."""

    @async_test
    async def test_join_twice(self):
        reply = await self.send("!jointeam Lions")
        self.assertIn("joined team *Lions*", reply.text)

        reply = await self.send("!jointeam Lions")
        self.assertIn("already a member", reply.text)
        self.assertEqual(self.read_json("teams.json"), {"Lions": ["Alice"]})

    @async_test
    async def test_team_leaderboard(self):
        await self.send("!jointeam Eagles")
        await self.send("!jointeam Lions", sender_name="Bob")
        await self.send("!jointeam Lions", sender_name="Carol")

        reply = await self.send("!teamleaderboard")

        self.assertIn("*1.* Lions - 2 members", reply.text)
        self.assertIn("*2.* Eagles - 1 member", reply.text)


class TestTagAll(DispatcherTestCase):
    """Test cases for mentioning every participant."""

    @async_test
    async def test_mentions_everyone(self):
        reply = await self.send("!tagall")

        self.assertIn("<@2002> <@2003>", reply.text)
        self.assertEqual(reply.mentions, ["2002", "2003"])

    @async_test
    async def test_lookup_failure(self):
        async def failing(chat_id):
            raise ParticipantLookupError("no members")
        self.dispatcher = build_dispatcher(TestFixtures.create_settings(self.temp_dir), failing)

        reply = await self.send("!tagall")

        self.assertIn("Could not get the members", reply.text)
        self.assertEqual(reply.mentions, [])


class TestBattle(DispatcherTestCase):
    """Test cases for battles through the dispatcher."""

    @async_test
    async def test_battle_flow(self):
        reply = await self.send("!battle @Bob")
        self.assertIn("Alice vs Bob", reply.text)
        session = self.dispatcher.sessions.get(CHAT_ID)

        self.assertIsNone(await self.send("cheering", sender_name="Carol"))
        self.assertIsNone(await self.send(session.current.answer, sender_name="Bob"))

        reply = await self.send(session.current.answer)
        self.assertIn("Correct, Alice", reply.text)
        self.assertEqual(session.current_player, "Bob")

    @async_test
    async def test_battle_requires_opponent(self):
        reply = await self.send("!battle")

        self.assertIn("Mention your opponent", reply.text)
        self.assertIsNone(self.dispatcher.sessions.get(CHAT_ID))


class TestModeGate(DispatcherTestCase):
    """Test cases for private and public mode."""

    @async_test
    async def test_non_admin_cannot_change_mode(self):
        self.assertIsNone(await self.send("!private"))
        self.assertIs(self.dispatcher.mode_gate.mode, BotMode.PUBLIC)

    @async_test
    async def test_private_mode_blocks_non_admin_commands(self):
        reply = await self.send("!private", sender_id=ADMIN_ID)
        self.assertIn("private", reply.text)

        reply = await self.send("!menu")
        self.assertEqual(reply.text, PRIVATE_MODE_NOTICE)
        self.assertIsNone(await self.send("just chatting"))

        reply = await self.send("!menu", sender_id=ADMIN_ID)
        self.assertIn("Church Bot Commands", reply.text)

        self.assertIsNone(await self.send("!public"))
        self.assertIs(self.dispatcher.mode_gate.mode, BotMode.PRIVATE)

        reply = await self.send("!public", sender_id=ADMIN_ID)
        self.assertIn("public", reply.text)
        reply = await self.send("!menu", sender_id=USER_ID)
        self.assertIn("Church Bot Commands", reply.text)

    @async_test
    async def test_private_mode_ignores_non_admin_answers(self):
        await self.send("!quiz", sender_id=ADMIN_ID)
        await self.send("easy", sender_id=ADMIN_ID)
        await self.send("!private", sender_id=ADMIN_ID)
        session = self.dispatcher.sessions.get(CHAT_ID)

        self.assertIsNone(await self.send(session.answer))
        self.assertIs(self.dispatcher.sessions.get(CHAT_ID), session)


class TestPersistenceFailures(DispatcherTestCase):
    """Failed writes keep the in-memory change and warn the user."""

    @async_test
    async def test_quiz_points_kept_when_save_fails(self):
        await self.send("!quiz")
        await self.send("easy")
        answer = self.dispatcher.sessions.get(CHAT_ID).answer

        with patch.object(self.dispatcher.content.store, "save", side_effect=PersistenceError("read-only")):
            reply = await self.send(answer)

        self.assertIn(SAVE_WARNING, reply.text)
        self.assertEqual(self.dispatcher.content.get_score("Alice"), 1)

        self.dispatcher.sessions.set(CHAT_ID, ActiveQuiz(question="Q?", answer="Noah"))
        await self.send("noah")
        self.assertEqual(self.read_json("leaderboard.json"), {"Alice": 2})

    @async_test
    async def test_teaching_save_failure(self):
        with patch.object(self.dispatcher.content.store, "save", side_effect=PersistenceError("read-only")):
            reply = await self.send("!addteaching Faith: Hope")

        self.assertEqual(reply.text, NOT_SAVED)
        self.assertEqual(self.dispatcher.content.get_teaching("Faith"), "Hope")


if __name__ == '__main__':
    unittest.main()
