# app/services/scoring.py
"""Flag checking and team solve bookkeeping.

A solve is stored once per (team, challenge). The uniqueness is enforced by
the ``uq_submissions_team_challenge`` constraint and the write is a single
``INSERT ... ON CONFLICT DO NOTHING`` (:func:`app.database.insert_or_ignore`),
so teammates racing each other with the same flag end up with one row and a definitive answer each.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import insert_or_ignore
from app.flag_storage import verify_flag
from app.models.challenge import Challenge
from app.models.profile import Profile
from app.models.submission import Submission

logger = logging.getLogger("scoring")

DEFAULT_FLAG_PREFIX = "KCTF"
MAX_FLAG_BODY = 80


class ScoringError(Exception):
    """Base class for submissions that cannot be scored."""

    message = "Submission rejected"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message


class InvalidFlagFormat(ScoringError):
    message = "Invalid flag format"


class ChallengeUnavailable(ScoringError):
    # Unknown and deactivated challenges look the same to the caller.
    message = "Challenge not found"


class ProfileNotFound(ScoringError):
    message = "Profile not found"


class NoTeamAssigned(ScoringError):
    message = "Join a team first."


class SubmissionStorageError(ScoringError):
    message = "Could not record submission"


@dataclass(frozen=True)
class SubmissionVerdict:
    correct: bool
    already_solved: bool = False
    points: Optional[int] = None
    message: Optional[str] = None


def flag_prefix() -> str:
    return os.getenv("FLAG_PREFIX", DEFAULT_FLAG_PREFIX).strip() or DEFAULT_FLAG_PREFIX


@lru_cache(maxsize=8)
def _flag_pattern(prefix: str) -> re.Pattern[str]:
    return re.compile(re.escape(prefix) + r"\{[A-Za-z0-9_]{1,%d}\}" % MAX_FLAG_BODY)


def validate_flag_format(raw_flag: str) -> str:
    """Trim ``raw_flag`` and check it looks like ``PREFIX{body}``.

    Returns the trimmed flag. The prefix is case-sensitive.
    """

    if not isinstance(raw_flag, str):
        raise InvalidFlagFormat()
    prefix = flag_prefix()
    flag = raw_flag.strip()
    if not _flag_pattern(prefix).fullmatch(flag):
        raise InvalidFlagFormat(f"Invalid flag format (use {prefix}{{ANSWER}})")
    return flag


async def _record_solve(
    db: AsyncSession, *, user_id: str, team_id: str, challenge_id: str
) -> bool:
    """Insert the team solve unless it already exists. True when this call created it."""

    inserted_id = await insert_or_ignore(
        db,
        Submission,
        {"user_id": user_id, "team_id": team_id, "challenge_id": challenge_id},
        conflict_columns=("team_id", "challenge_id"),
        returning=Submission.id,
    )
    await db.commit()
    return inserted_id is not None


async def submit_flag(
    db: AsyncSession, user_id: str, challenge_id: str, raw_flag: str
) -> SubmissionVerdict:
    """Check ``raw_flag`` for ``challenge_id`` and record the team's first solve."""

    flag = validate_flag_format(raw_flag)

    challenge = (
        await db.execute(
            select(Challenge.id, Challenge.points, Challenge.flag_hash, Challenge.is_active)
            .where(Challenge.id == challenge_id)
        )
    ).first()
    if challenge is None or not challenge.is_active:
        raise ChallengeUnavailable()

    profile = (
        await db.execute(select(Profile.id, Profile.team_id).where(Profile.id == user_id))
    ).first()
    if profile is None:
        logger.warning("Submission from user %s without a profile", user_id)
        raise ProfileNotFound()
    if not profile.team_id:
        raise NoTeamAssigned()

    if not verify_flag(flag, challenge.flag_hash):
        return SubmissionVerdict(correct=False, message="Incorrect flag.")

    try:
        created = await _record_solve(
            db, user_id=user_id, team_id=profile.team_id, challenge_id=challenge.id
        )
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error(
            "Failed to record solve team=%s challenge=%s",
            profile.team_id,
            challenge.id,
            exc_info=True,
        )
        raise SubmissionStorageError() from exc

    points = int(challenge.points or 0)
    if not created:
        return SubmissionVerdict(
            correct=True,
            already_solved=True,
            points=points,
            message="Correct, but your team already solved this.",
        )

    logger.info("Team %s solved challenge %s (+%s)", profile.team_id, challenge.id, points)
    return SubmissionVerdict(correct=True, points=points, message="Correct!")


async def team_solves(db: AsyncSession, user_id: str) -> list[str]:
    """Challenge ids solved by ``user_id``'s team; empty when the user has no team."""

    team_id = await db.scalar(select(Profile.team_id).where(Profile.id == user_id))
    if not team_id:
        return []
    rows = await db.execute(
        select(Submission.challenge_id)
        .where(Submission.team_id == team_id)
        .order_by(Submission.created_at, Submission.id)
    )
    return list(rows.scalars().all())
