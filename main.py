#!/usr/bin/env python3
"""
Church Bot - Main Entry Point

This script runs the Discord church bot. Configure your bot token in
config.json or set the DISCORD_BOT_TOKEN environment variable.

Usage:
    python main.py

Configuration:
    1. Copy config.json and set your Discord bot token
    2. Or set DISCORD_BOT_TOKEN environment variable
    3. List admin user ids under bot.admin_ids (or CHURCH_BOT_ADMINS)
    4. Put trivia.json and golden_bells_lyrics.json in the data directory

Environment Variables:
    DISCORD_BOT_TOKEN: Your Discord bot token (overrides config.json)
    CHURCH_BOT_ADMINS: Comma separated admin user ids (added to config.json's list)
"""

import asyncio
import sys
import os
import json
from pathlib import Path

from church_bot.bot import run_bot, setup_logging


def load_config(config_path: Path = Path("config.json")):
    """Load configuration from config.json file."""
    if not config_path.exists():
        print("❌ Error: config.json not found!")
        print("Please copy config.json and configure your Discord bot token.")
        sys.exit(1)

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        print(f"❌ Error: Invalid JSON in config.json: {e}")
        sys.exit(1)
    except OSError as e:
        print(f"❌ Error loading config.json: {e}")
        sys.exit(1)

    if not isinstance(config, dict):
        print("❌ Error: config.json must contain a JSON object")
        sys.exit(1)
    return config


def get_bot_token(config):
    """Get bot token from environment variable or config file."""
    # Environment variable takes precedence
    token = os.getenv('DISCORD_BOT_TOKEN')
    if token:
        return token

    token = config.get('bot', {}).get('token')
    if not token or token == "YOUR_DISCORD_BOT_TOKEN_HERE":
        print("❌ Error: Discord bot token not configured!")
        print("Either:")
        print("  1. Set DISCORD_BOT_TOKEN environment variable")
        print("  2. Update the 'token' field in config.json")
        sys.exit(1)

    return token


async def run_bot_with_config():
    """Run the bot with configuration."""
    config = load_config()

    log_config = config.get('logging', {})
    setup_logging(log_config.get('level', 'INFO'), log_config.get('log_directory', './logs/'))

    token = get_bot_token(config)
    await run_bot(token, config)


if __name__ == "__main__":
    try:
        print("🤖 Starting Church Bot...")
        asyncio.run(run_bot_with_config())
    except KeyboardInterrupt:
        print("\n👋 Bot stopped by user")
