"""
Inbound message dispatch: mode gate, session input, then commands.
"""
import logging
from typing import Optional

from .command_router import CommandRouter
from .content_store import ContentStore
from .handlers import CommandHandlers, ParticipantResolver
from .mode_gate import ModeGate
from .models import ActiveQuiz, BattleSession, BestOfTen, BotSettings, IncomingMessage, PendingDifficulty, Reply
from .quiz_controller import QuizController
from .session_registry import SessionRegistry
from .storage import JsonStore

QUIZ_COMMAND = "quiz"

PRIVATE_MODE_NOTICE = "🔒 The bot is in private mode. Only admins can use commands right now."


class MessageDispatcher:
    """
    Owns the application state and decides how each message is handled.

    Per message, in order:
      1. private mode rejects commands from non-admins (other chatter is ignored)
      2. admin-only commands from non-admins are dropped without a reply
      3. a pending difficulty prompt is cancelled by any command except the
         quiz command, which is read as a (wrong) difficulty like other text
      4. while a quiz, best-of-ten or battle runs, commands are still routed
         and any other text is taken as an answer
      5. otherwise the text is routed as a command, or silently ignored
    Messages of the same chat are handled one at a time.
    """

    def __init__(
        self,
        content: ContentStore,
        sessions: SessionRegistry,
        mode_gate: ModeGate,
        controller: QuizController,
        router: CommandRouter,
    ):
        self.logger = logging.getLogger(__name__)
        self.content = content
        self.sessions = sessions
        self.mode_gate = mode_gate
        self.controller = controller
        self.router = router

    async def handle(self, message: IncomingMessage) -> Optional[Reply]:
        if not message.text or not message.text.strip():
            return None
        async with self.sessions.lock(message.chat_id):
            return await self._handle_locked(message)

    async def _handle_locked(self, message: IncomingMessage) -> Optional[Reply]:
        chat_id = message.chat_id
        parsed = self.router.parse(message.text)

        if not self.mode_gate.is_allowed(message.sender_id, parsed.name if parsed else None):
            if parsed is None:
                return None
            self.logger.info(f"Rejected {parsed.name} from {message.sender_id} in private mode")
            return Reply(PRIVATE_MODE_NOTICE)

        if parsed is not None and parsed.spec.admin_only and not self.mode_gate.is_admin(message.sender_id):
            self.logger.warning(f"Ignored admin command {parsed.name} from non-admin {message.sender_id}")
            return None

        session = self.sessions.get(chat_id)

        if isinstance(session, PendingDifficulty):
            if parsed is not None and parsed.name != QUIZ_COMMAND:
                self.sessions.clear(chat_id)
                self.logger.debug(f"Chat {chat_id}: difficulty prompt cancelled by {parsed.name}")
                return await self.router.dispatch(parsed, message)
            return self.controller.select_difficulty(chat_id, message.text)

        if parsed is not None:
            return await self.router.dispatch(parsed, message)

        if isinstance(session, ActiveQuiz):
            return self.controller.answer_quiz(chat_id, session, message.sender_name, message.text)
        if isinstance(session, BestOfTen):
            return self.controller.answer_best_of_ten(chat_id, session, message.sender_name, message.text)
        if isinstance(session, BattleSession):
            return self.controller.answer_battle(chat_id, session, message.sender_name, message.text)

        return None


def build_dispatcher(
    settings: BotSettings,
    participant_resolver: Optional[ParticipantResolver] = None,
) -> MessageDispatcher:
    """Wire up the stores, registry, gate, controller and router."""
    store = JsonStore(settings.data_directory, settings.data_files)
    content = ContentStore(store)
    sessions = SessionRegistry(settings.session_timeout_minutes)
    mode_gate = ModeGate(settings.admin_ids)
    controller = QuizController(content, sessions, settings)
    handlers = CommandHandlers(content, controller, mode_gate, participant_resolver)
    router = CommandRouter(handlers.command_specs(), settings.command_prefix)
    return MessageDispatcher(content, sessions, mode_gate, controller, router)
