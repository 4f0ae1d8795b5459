"""
Configuration manager for Church Bot settings.
"""
import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .mode_gate import normalize_identity
from .models import BotSettings
from .storage import DEFAULT_FILES


class ConfigManager:
    """Manages bot configuration settings."""

    DEFAULT_COMMAND_PREFIX = "!"
    DEFAULT_DATA_DIRECTORY = "./data/"
    DEFAULT_BATTLE_TARGET_SCORE = 3
    DEFAULT_BATTLE_MAX_TURNS = 10

    # Validation limits
    MAX_PREFIX_LENGTH = 3
    MIN_SESSION_TIMEOUT = 1
    MAX_SESSION_TIMEOUT = 24 * 60
    MIN_BATTLE_TARGET_SCORE = 1
    MAX_BATTLE_TARGET_SCORE = 20
    MIN_BATTLE_MAX_TURNS = 2
    MAX_BATTLE_MAX_TURNS = 100

    ADMINS_ENV_VAR = "CHURCH_BOT_ADMINS"

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._settings = BotSettings()

    def get_settings(self) -> BotSettings:
        """Return a copy of the current settings."""
        return replace(
            self._settings,
            admin_ids=list(self._settings.admin_ids),
            data_files=dict(self._settings.data_files),
        )

    def _ok(self, message: str, user_message: str) -> Dict[str, Any]:
        self.logger.info(message)
        return {'success': True, 'message': message, 'user_message': user_message}

    def _fail(self, error: str, user_message: str) -> Dict[str, Any]:
        self.logger.error(error)
        return {'success': False, 'error': error, 'user_message': user_message}

    def set_command_prefix(self, prefix: str) -> Dict[str, Any]:
        """
        Set the command prefix.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(prefix, str):
            return self._fail(
                f"Command prefix must be a string, got {type(prefix).__name__}",
                "❌ Invalid input: Expected a prefix such as '!'"
            )
        if not prefix or prefix != prefix.strip() or len(prefix) > self.MAX_PREFIX_LENGTH:
            return self._fail(
                f"Invalid command prefix: {prefix!r}",
                f"❌ The prefix must be 1-{self.MAX_PREFIX_LENGTH} characters without spaces"
            )
        self._settings.command_prefix = prefix
        return self._ok(f"Command prefix set to {prefix}", f"✅ Commands now start with {prefix}")

    def set_admin_ids(self, admin_ids: Iterable[Any]) -> Dict[str, Any]:
        """
        Replace the admin allow-list. Identities are normalized on the way in.
        """
        if isinstance(admin_ids, (str, bytes)) or not isinstance(admin_ids, (list, tuple, set)):
            return self._fail(
                f"Admin ids must be a list, got {type(admin_ids).__name__}",
                "❌ Invalid input: Expected a list of admin ids"
            )
        normalized: List[str] = []
        for admin in admin_ids:
            identity = normalize_identity(admin)
            if identity and identity not in normalized:
                normalized.append(identity)
        self._settings.admin_ids = normalized
        return self._ok(f"Admin allow-list set to {len(normalized)} ids", f"✅ {len(normalized)} admins configured")

    def add_admin(self, admin_id: Any) -> Dict[str, Any]:
        identity = normalize_identity(admin_id)
        if not identity:
            return self._fail(f"Invalid admin id: {admin_id!r}", "❌ Admin id cannot be empty")
        if identity not in self._settings.admin_ids:
            self._settings.admin_ids.append(identity)
        return self._ok(f"Admin {identity} added", f"✅ {identity} is an admin")

    def set_data_directory(self, directory: str) -> Dict[str, Any]:
        if not isinstance(directory, str) or not directory.strip():
            return self._fail(f"Invalid data directory: {directory!r}", "❌ Directory path cannot be empty")
        try:
            normalized_path = str(Path(directory).resolve())
        except (OSError, ValueError) as e:
            return self._fail(f"Invalid directory path format: {e}", f"❌ Invalid path format: {directory}")
        self._settings.data_directory = normalized_path
        return self._ok(f"Data directory set to {normalized_path}", f"✅ Data directory set to {normalized_path}")

    def set_data_files(self, files: Dict[str, str]) -> Dict[str, Any]:
        """Override document file names; only known document keys are accepted."""
        if not isinstance(files, dict):
            return self._fail(
                f"Data files must be an object, got {type(files).__name__}",
                "❌ Invalid input: Expected a mapping of document names to files"
            )
        unknown = [key for key in files if key not in DEFAULT_FILES]
        if unknown:
            return self._fail(f"Unknown data documents: {', '.join(unknown)}", "❌ Unknown data documents")
        bad = [key for key, name in files.items() if not isinstance(name, str) or not name.strip()]
        if bad:
            return self._fail(f"Invalid file names for: {', '.join(bad)}", "❌ File names cannot be empty")
        self._settings.data_files = dict(files)
        return self._ok(f"Data files set for {', '.join(files) or 'no documents'}", "✅ Data files updated")

    def set_session_timeout(self, minutes: Optional[int]) -> Dict[str, Any]:
        """
        Set the idle session timeout, or None to keep sessions until resolved.
        """
        if minutes is None:
            self._settings.session_timeout_minutes = None
            return self._ok("Session timeout disabled", "✅ Sessions never expire")
        if isinstance(minutes, bool) or not isinstance(minutes, int):
            return self._fail(
                f"Session timeout must be an integer, got {type(minutes).__name__}",
                f"❌ Invalid input: Expected a number, got {type(minutes).__name__}"
            )
        if not self.MIN_SESSION_TIMEOUT <= minutes <= self.MAX_SESSION_TIMEOUT:
            return self._fail(
                f"Session timeout must be between {self.MIN_SESSION_TIMEOUT} and {self.MAX_SESSION_TIMEOUT} minutes",
                f"❌ Timeout must be {self.MIN_SESSION_TIMEOUT}-{self.MAX_SESSION_TIMEOUT} minutes"
            )
        self._settings.session_timeout_minutes = minutes
        return self._ok(f"Session timeout set to {minutes} minutes", f"✅ Sessions expire after {minutes} minutes")

    def _set_bounded_int(self, attr: str, label: str, value: Any, low: int, high: int) -> Dict[str, Any]:
        if isinstance(value, bool) or not isinstance(value, int):
            return self._fail(
                f"{label} must be an integer, got {type(value).__name__}",
                f"❌ Invalid input: Expected a number, got {type(value).__name__}"
            )
        if not low <= value <= high:
            return self._fail(f"{label} must be between {low} and {high}", f"❌ {label} must be {low}-{high}")
        setattr(self._settings, attr, value)
        return self._ok(f"{label} set to {value}", f"✅ {label} set to {value}")

    def set_battle_target_score(self, score: int) -> Dict[str, Any]:
        return self._set_bounded_int(
            "battle_target_score", "Battle target score", score,
            self.MIN_BATTLE_TARGET_SCORE, self.MAX_BATTLE_TARGET_SCORE
        )

    def set_battle_max_turns(self, turns: int) -> Dict[str, Any]:
        return self._set_bounded_int(
            "battle_max_turns", "Battle turn limit", turns,
            self.MIN_BATTLE_MAX_TURNS, self.MAX_BATTLE_MAX_TURNS
        )

    def apply_config(self, config: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> List[str]:
        """
        Apply a parsed config.json. Invalid values keep their defaults.

        Args:
            config: Parsed configuration dictionary
            environ: Environment mapping, defaults to os.environ

        Returns:
            List of user-friendly messages for rejected values
        """
        environ = os.environ if environ is None else environ
        bot_config = config.get('bot', {}) or {}
        data_config = config.get('data', {}) or {}
        session_config = config.get('sessions', {}) or {}
        battle_config = config.get('battle', {}) or {}

        results = []
        if 'command_prefix' in bot_config:
            results.append(self.set_command_prefix(bot_config['command_prefix']))

        admin_ids = list(bot_config.get('admin_ids', []) or [])
        env_admins = environ.get(self.ADMINS_ENV_VAR, "")
        admin_ids.extend(admin.strip() for admin in env_admins.split(",") if admin.strip())
        results.append(self.set_admin_ids(admin_ids))

        if 'directory' in data_config:
            results.append(self.set_data_directory(data_config['directory']))
        if 'files' in data_config:
            results.append(self.set_data_files(data_config['files']))
        if 'timeout_minutes' in session_config:
            results.append(self.set_session_timeout(session_config['timeout_minutes']))
        if 'target_score' in battle_config:
            results.append(self.set_battle_target_score(battle_config['target_score']))
        if 'max_turns' in battle_config:
            results.append(self.set_battle_max_turns(battle_config['max_turns']))

        rejected = [result['user_message'] for result in results if not result['success']]
        if rejected:
            self.logger.warning(f"{len(rejected)} configuration values rejected, defaults kept")
        return rejected

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._settings = BotSettings()
        self.logger.info("All settings reset to default values")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }
        settings = self._settings

        if not settings.command_prefix or len(settings.command_prefix) > self.MAX_PREFIX_LENGTH:
            validation_result["issues"].append(f"Invalid command prefix: {settings.command_prefix!r}")

        if not settings.admin_ids:
            validation_result["issues"].append("No admin ids configured")

        if not isinstance(settings.data_directory, str) or not settings.data_directory.strip():
            validation_result["issues"].append(f"Invalid data directory: {settings.data_directory}")

        timeout = settings.session_timeout_minutes
        if timeout is not None and not self.MIN_SESSION_TIMEOUT <= timeout <= self.MAX_SESSION_TIMEOUT:
            validation_result["issues"].append(f"Invalid session timeout: {timeout}")

        if settings.battle_target_score * 2 > settings.battle_max_turns + 1:
            validation_result["issues"].append(
                f"Battle target score {settings.battle_target_score} cannot be reached "
                f"by both players within {settings.battle_max_turns} turns"
            )

        validation_result["valid"] = not validation_result["issues"]
        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        settings = self._settings
        timeout = (
            f"{settings.session_timeout_minutes} minutes"
            if settings.session_timeout_minutes is not None
            else "never"
        )
        return (
            f"Bot Settings:\n"
            f"• Prefix: {settings.command_prefix}\n"
            f"• Admins: {len(settings.admin_ids)}\n"
            f"• Data Directory: {settings.data_directory}\n"
            f"• Session Expiry: {timeout}\n"
            f"• Battle: first to {settings.battle_target_score}, max {settings.battle_max_turns} turns"
        )
