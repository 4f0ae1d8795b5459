"""
Church Bot - a Discord chat assistant for Bible quizzes, Golden Bells lyrics,
teachings, teams and leaderboards.
"""

__version__ = "1.0.0"
