# API endpoints
from . import auth, users, organisations, leaderboards, private_leagues, quizzes, completions, achievements, billing

__all__ = [
    "auth", "users", "organisations", "leaderboards", "private_leagues",
    "quizzes", "completions", "achievements", "billing",
]
