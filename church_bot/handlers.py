"""
Command handlers for the Church Bot.
"""
import logging
from typing import Awaitable, Callable, List, Optional

from .command_router import CommandSpec
from .content_store import ContentStore
from .exceptions import ParticipantLookupError, PersistenceError
from .mode_gate import ModeGate
from .models import BotMode, IncomingMessage, Participant, Reply
from .quiz_controller import QuizController

ParticipantResolver = Callable[[str], Awaitable[List[Participant]]]

NOT_SAVED = "⚠️ The change was made but could not be saved right now. It will be written with the next update."


class CommandHandlers:
    """One handler per chat command."""

    def __init__(
        self,
        content: ContentStore,
        controller: QuizController,
        mode_gate: ModeGate,
        participant_resolver: Optional[ParticipantResolver] = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.content = content
        self.controller = controller
        self.mode_gate = mode_gate
        self.participant_resolver = participant_resolver

    @property
    def prefix(self) -> str:
        return self.controller.prefix

    def command_specs(self) -> List[CommandSpec]:
        """Build the command table."""
        return [
            CommandSpec("menu", self.handle_menu, aliases=("help",)),
            CommandSpec("quiz", self.handle_quiz),
            CommandSpec("bestof10", self.handle_best_of_ten, takes_args=True),
            CommandSpec("lyrics", self.handle_lyrics, takes_args=True),
            CommandSpec("leaderboard", self.handle_leaderboard),
            CommandSpec("addteaching", self.handle_add_teaching, takes_args=True),
            CommandSpec("teachings", self.handle_teachings),
            CommandSpec("teaching", self.handle_teaching, takes_args=True),
            CommandSpec("jointeam", self.handle_join_team, takes_args=True),
            CommandSpec("teamleaderboard", self.handle_team_leaderboard),
            CommandSpec("tagall", self.handle_tag_all),
            CommandSpec("battle", self.handle_battle, takes_args=True),
            CommandSpec("private", self.handle_private, admin_only=True),
            CommandSpec("public", self.handle_public, admin_only=True),
            CommandSpec("resetleaderboard", self.handle_reset_leaderboard, admin_only=True),
        ]

    def menu_text(self) -> str:
        p = self.prefix
        return (
            f"📜 *Church Bot Commands* 📜\n\n"
            f"✨ *Bible Quiz*\n"
            f"   ➤ *{p}quiz* - Start a Bible quiz\n"
            f"   ➤ *{p}bestof10 <difficulty>* - Play 10 quiz questions in a row (easy/medium/hard)\n"
            f"   ➤ *{p}battle @name* - Challenge someone to a quiz battle\n\n"
            f"🎵 *Golden Bells Songs*\n"
            f"   ➤ *{p}lyrics <song name>* - Get Golden Bells song lyrics\n\n"
            f"🏆 *Leaderboard & Scores*\n"
            f"   ➤ *{p}leaderboard* - View top quiz scores\n\n"
            f"📖 *Teachings*\n"
            f"   ➤ *{p}addteaching <title>: <message>* - Save a teaching\n"
            f"   ➤ *{p}teachings* - List all teachings\n"
            f"   ➤ *{p}teaching <title>* - Read a teaching\n\n"
            f"👥 *Teams*\n"
            f"   ➤ *{p}jointeam <name>* - Join a team\n"
            f"   ➤ *{p}teamleaderboard* - View team sizes\n"
            f"   ➤ *{p}tagall* - Mention everyone in this chat\n\n"
            f"🔐 *Admin*\n"
            f"   ➤ *{p}private* / *{p}public* - Restrict or open the bot\n"
            f"   ➤ *{p}resetleaderboard* - Clear all scores\n\n"
            f"ℹ️ *General Commands*\n"
            f"   ➤ *{p}menu* or *{p}help* - Display this help menu"
        )

    async def handle_menu(self, message: IncomingMessage, args: str) -> Reply:
        return Reply(self.menu_text())

    async def handle_quiz(self, message: IncomingMessage, args: str) -> Reply:
        return self.controller.start_quiz(message.chat_id)

    async def handle_best_of_ten(self, message: IncomingMessage, args: str) -> Reply:
        return self.controller.start_best_of_ten(message.chat_id, args)

    async def handle_lyrics(self, message: IncomingMessage, args: str) -> Reply:
        if not args:
            return Reply(f"❌ Usage: *{self.prefix}lyrics <song name>*")
        song = self.content.get_lyrics(args)
        if song is None:
            return Reply(f"❌ Song \"{args}\" not found.")
        title, lyrics = song
        return Reply(f"🎶 *{title}*\n\n{lyrics}")

    async def handle_leaderboard(self, message: IncomingMessage, args: str) -> Reply:
        top = self.content.top_scores(5)
        if not top:
            return Reply("🏆 *Leaderboard*\n\nNo scores yet.")
        lines = [f"*{i}.* {name} - {score} points" for i, (name, score) in enumerate(top, start=1)]
        return Reply("🏆 *Leaderboard*\n\n" + "\n".join(lines))

    async def handle_add_teaching(self, message: IncomingMessage, args: str) -> Reply:
        usage = f"❌ Usage: *{self.prefix}addteaching <title>: <message>*"
        if ":" not in args:
            return Reply(usage)
        title, body = args.split(":", 1)
        title, body = title.strip(), body.strip()
        if not title or not body:
            return Reply(usage)

        try:
            replaced = self.content.add_teaching(title, body)
        except PersistenceError as e:
            self.logger.error(f"Failed to save teaching '{title}': {e}")
            return Reply(NOT_SAVED)
        verb = "updated" if replaced else "saved"
        return Reply(f"✅ Teaching *{title}* {verb}.")

    async def handle_teachings(self, message: IncomingMessage, args: str) -> Reply:
        titles = self.content.list_teachings()
        if not titles:
            return Reply("📭 No teachings have been added yet.")
        return Reply("📜 *Teachings*\n\n" + "\n".join(f"• {title}" for title in titles))

    async def handle_teaching(self, message: IncomingMessage, args: str) -> Reply:
        if not args:
            return Reply(f"❌ Usage: *{self.prefix}teaching <title>*")
        body = self.content.get_teaching(args)
        if body is None:
            return Reply(f"❌ Teaching \"{args}\" not found.")
        return Reply(f"📜 *{args}*\n\n{body}")

    async def handle_join_team(self, message: IncomingMessage, args: str) -> Reply:
        if not args:
            return Reply(f"❌ Usage: *{self.prefix}jointeam <team name>*")
        name = message.sender_name
        try:
            joined = self.content.join_team(args, name)
        except PersistenceError as e:
            self.logger.error(f"Failed to save team '{args}': {e}")
            return Reply(NOT_SAVED)
        if not joined:
            return Reply(f"ℹ️ {name}, you are already a member of team *{args}*.")
        return Reply(f"✅ {name} joined team *{args}*!")

    async def handle_team_leaderboard(self, message: IncomingMessage, args: str) -> Reply:
        counts = self.content.team_member_counts()
        if not counts:
            return Reply("👥 *Team Leaderboard*\n\nNo teams yet.")
        lines = []
        for i, (team, count) in enumerate(counts, start=1):
            noun = "member" if count == 1 else "members"
            lines.append(f"*{i}.* {team} - {count} {noun}")
        return Reply("👥 *Team Leaderboard*\n\n" + "\n".join(lines))

    async def handle_tag_all(self, message: IncomingMessage, args: str) -> Reply:
        failure = Reply("❌ Could not get the members of this chat.")
        if self.participant_resolver is None:
            return failure
        try:
            participants = await self.participant_resolver(message.chat_id)
        except ParticipantLookupError as e:
            self.logger.warning(f"Participant lookup failed for chat {message.chat_id}: {e}")
            return failure
        if not participants:
            return failure

        mentions = " ".join(participant.mention for participant in participants)
        return Reply(
            f"📢 *Attention everyone!*\n\n{mentions}",
            mentions=[participant.identity for participant in participants],
        )

    async def handle_battle(self, message: IncomingMessage, args: str) -> Reply:
        return self.controller.start_battle(message.chat_id, message.sender_name, args)

    async def handle_private(self, message: IncomingMessage, args: str) -> Reply:
        self.mode_gate.set_mode(BotMode.PRIVATE, message.sender_id)
        return Reply("🔒 Bot is now in *private* mode. Only admins can use commands.")

    async def handle_public(self, message: IncomingMessage, args: str) -> Reply:
        self.mode_gate.set_mode(BotMode.PUBLIC, message.sender_id)
        return Reply("🔓 Bot is now in *public* mode. Everyone can use commands.")

    async def handle_reset_leaderboard(self, message: IncomingMessage, args: str) -> Reply:
        try:
            self.content.reset_leaderboard()
        except PersistenceError as e:
            self.logger.error(f"Failed to save reset leaderboard: {e}")
            return Reply(NOT_SAVED)
        return Reply("🧹 Leaderboard has been reset.")
