import discord
from discord.ext import commands, tasks
import logging
import os
from pathlib import Path
from typing import List, Optional

from .config_manager import ConfigManager
from .dispatcher import MessageDispatcher, build_dispatcher
from .exceptions import ParticipantLookupError
from .models import IncomingMessage, Participant, Reply

# Discord rejects messages longer than this
MESSAGE_LIMIT = 2000

SESSION_SWEEP_MINUTES = 5

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO", log_directory: str = "./logs/"):
    """Set up console, file and error logging."""
    logs_dir = Path(log_directory)
    logs_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(logs_dir / "bot.log", encoding='utf-8'),
        ]
    )

    error_handler = logging.FileHandler(logs_dir / "errors.log", encoding='utf-8')
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logging.getLogger().addHandler(error_handler)

    # Reduce discord.py noise
    logging.getLogger('discord').setLevel(logging.WARNING)
    logging.getLogger('discord.http').setLevel(logging.WARNING)

    return logging.getLogger(__name__)


def split_message(text: str, limit: int = MESSAGE_LIMIT) -> List[str]:
    """Split text into chunks under the message limit, preferring line breaks."""
    if len(text) <= limit:
        return [text]
    chunks = []
    current = ""
    for line in text.split("\n"):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            chunks.append(current)
            current = line
        else:
            current = candidate
    if current:
        chunks.append(current)
    return chunks


class ChurchBot(commands.Bot):
    """Discord transport for the church bot's chat commands"""

    def __init__(self, config=None):
        intents = discord.Intents.default()
        intents.message_content = True  # Commands and answers are plain messages
        intents.members = True  # Needed to list channel members for tagall

        self.app_config = config or {}
        self.config_manager = ConfigManager()
        self.config_manager.apply_config(self.app_config)
        settings = self.config_manager.get_settings()

        super().__init__(
            command_prefix=settings.command_prefix,
            intents=intents,
            help_command=None
        )

        self.dispatcher: Optional[MessageDispatcher] = None

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            validation = self.config_manager.validate_settings()
            for issue in validation['issues']:
                logger.warning(f"Configuration issue: {issue}")

            self.dispatcher = build_dispatcher(
                self.config_manager.get_settings(),
                self.resolve_participants
            )
            for error in self.dispatcher.content.get_load_errors():
                logger.warning(f"Data loading issue: {error}")

            if self.config_manager.get_settings().session_timeout_minutes:
                self.session_sweep.start()

            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    @tasks.loop(minutes=SESSION_SWEEP_MINUTES)
    async def session_sweep(self):
        """Drop expired sessions across all chats"""
        if self.dispatcher is None:
            return
        removed = self.dispatcher.sessions.cleanup_expired()
        if removed:
            logger.info(f"Session sweep removed {removed} expired sessions")

    async def close(self):
        if self.session_sweep.is_running():
            self.session_sweep.cancel()
        await super().close()

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")
        print(f"🤖 {self.user} is Ready and Online!")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    def to_incoming(self, message: discord.Message) -> IncomingMessage:
        """Convert a Discord message; clean_content renders user mentions as @Name."""
        return IncomingMessage(
            chat_id=str(message.channel.id),
            sender_id=str(message.author.id),
            sender_name=message.author.display_name or "friend",
            text=message.clean_content,
        )

    async def on_message(self, message: discord.Message):
        """Dispatch every human message; one failing message never stops the bot"""
        if message.author.bot or self.dispatcher is None:
            return

        try:
            reply = await self.dispatcher.handle(self.to_incoming(message))
            if reply is not None:
                await self.send_reply(message, reply)
        except Exception:
            logger.exception(f"Error handling message {message.id} in channel {message.channel.id}")

    async def send_reply(self, message: discord.Message, reply: Reply) -> bool:
        """
        Reply to a message, falling back to a plain channel send.

        Returns:
            True if every chunk was delivered
        """
        allowed_mentions = (
            discord.AllowedMentions(everyone=False, roles=False, users=True)
            if reply.mentions
            else discord.AllowedMentions.none()
        )
        delivered = True
        for index, chunk in enumerate(split_message(reply.text)):
            if index == 0:
                try:
                    await message.reply(chunk, mention_author=False, allowed_mentions=allowed_mentions)
                    continue
                except discord.HTTPException as e:
                    logger.warning(f"Reply failed in channel {message.channel.id}, sending directly: {e}")
            try:
                await message.channel.send(chunk, allowed_mentions=allowed_mentions)
            except discord.HTTPException as e:
                logger.error(f"Failed to deliver reply in channel {message.channel.id}: {e}")
                delivered = False
                break
        return delivered

    async def resolve_participants(self, chat_id: str) -> List[Participant]:
        """
        List the human members of a chat.

        Raises:
            ParticipantLookupError: If the chat or its members cannot be resolved
        """
        try:
            channel_id = int(chat_id)
        except (TypeError, ValueError) as e:
            raise ParticipantLookupError(f"Invalid chat id {chat_id!r}") from e

        channel = self.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self.fetch_channel(channel_id)
            except discord.HTTPException as e:
                raise ParticipantLookupError(f"Cannot fetch channel {chat_id}: {e}") from e

        if isinstance(channel, discord.DMChannel):
            if channel.recipient is None:
                raise ParticipantLookupError(f"DM channel {chat_id} has no recipient")
            users = [channel.recipient]
        else:
            users = getattr(channel, "members", None)
            if not users:
                raise ParticipantLookupError(f"No members visible in channel {chat_id}")

        return [
            Participant(identity=str(user.id), display_name=user.display_name, mention=user.mention)
            for user in users
            if not user.bot
        ]


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = ChurchBot(config)

    try:
        logger.info("Starting Church Bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.PrivilegedIntentsRequired:
        logger.error("Enable the message content and server members intents in the Discord Developer Portal")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
