"""Team CTF backend: challenges, team solves and the leaderboard."""

from .database import Base, SessionLocal, engine, get_db  # noqa: F401

__all__ = ["Base", "SessionLocal", "engine", "get_db"]
