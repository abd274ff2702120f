# app/routes/teams.py

import logging
import os
import secrets
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.database import get_db, insert_or_ignore
from app.identity import RequestIdentity, get_request_identity, resolve_user_id
from app.models.profile import Profile
from app.models.team import Team
from app.schemas import TeamCreate, TeamEnvelope, TeamJoin, TeamRead

logger = logging.getLogger("teams")

# No 0/O or 1/I: codes are read aloud and typed by hand.
JOIN_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------

def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def generate_join_code(length: Optional[int] = None) -> str:
    length = length or _int_env("TEAM_CODE_LENGTH", 6)
    return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(length))


async def _load_profile(db: AsyncSession, user_id: str) -> Profile:
    profile = await db.get(Profile, user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


async def _assign_with_room(db: AsyncSession, team: Team, user_id: str) -> bool:
    """Move ``user_id`` into ``team`` unless that would exceed TEAM_MAX_MEMBERS.

    The member count and the assignment are one UPDATE, so concurrent joins
    cannot both take the last seat. Returns False when the team is full.
    """
    stmt = update(Profile).where(Profile.id == user_id).values(team_id=team.id)

    max_members = _int_env("TEAM_MAX_MEMBERS", 3)
    if max_members > 0:
        others = aliased(Profile)
        other_members = (
            select(func.count(others.id))
            .where(others.team_id == team.id, others.id != user_id)
            .scalar_subquery()
        )
        # A current member may always rejoin.
        stmt = stmt.where(or_(Profile.team_id == team.id, other_members < max_members))

    result = await db.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount > 0

# -------------------------------------------------------------------
# Router
# -------------------------------------------------------------------

router = APIRouter(tags=["Teams"])

# Create team --------------------------------------------------------

@router.post("/teams/create", response_model=TeamEnvelope)
async def create_team(
    payload: TeamCreate,
    db: AsyncSession = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    user_id = resolve_user_id(payload.user_id, identity)
    profile = await _load_profile(db, user_id)

    max_attempts = max(1, _int_env("TEAM_CODE_MAX_ATTEMPTS", 5))
    try:
        for attempt in range(1, max_attempts + 1):
            team_id, code = str(uuid.uuid4()), generate_join_code()
            inserted = await insert_or_ignore(
                db,
                Team,
                {"id": team_id, "name": payload.name, "code": code, "created_by": user_id},
                conflict_columns=("code",),
                returning=Team.id,
            )
            if inserted is not None:
                break
            logger.warning("Join code collision (attempt %s/%s)", attempt, max_attempts)
        else:
            raise HTTPException(status_code=503, detail="Could not allocate a join code, try again.")

        # Creating a team moves the creator into it, even out of another team.
        profile.team_id = team_id
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.error("Error creating team", exc_info=True)
        raise HTTPException(status_code=500, detail="Create team failed.")

    logger.info("Team %s created by %s", team_id, user_id)
    return TeamEnvelope(team=TeamRead(id=team_id, name=payload.name, code=code))

# Join team ----------------------------------------------------------

@router.post("/teams/join", response_model=TeamEnvelope)
async def join_team(
    payload: TeamJoin,
    db: AsyncSession = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    user_id = resolve_user_id(payload.user_id, identity)

    # The row lock serializes joins to one team on Postgres; SQLite already
    # runs one writer at a time.
    team = (
        await db.execute(
            select(Team).where(Team.code == payload.join_code).with_for_update()
        )
    ).scalar_one_or_none()
    if team is None:
        raise HTTPException(status_code=404, detail="Team not found")

    await _load_profile(db, user_id)

    try:
        # Last write wins: joining again moves the profile to this team.
        assigned = await _assign_with_room(db, team, user_id)
        if not assigned:
            await db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Team is full")
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.error("Error joining team", exc_info=True)
        raise HTTPException(status_code=500, detail="Join team failed.")

    return TeamEnvelope(team=TeamRead.model_validate(team))

# Current team -------------------------------------------------------

@router.get("/me/team", response_model=Optional[TeamRead])
async def my_team(
    user_id: str = Query(..., alias="userId", min_length=1),
    db: AsyncSession = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    user_id = resolve_user_id(user_id, identity)
    team = (
        await db.execute(
            select(Team).join(Profile, Profile.team_id == Team.id).where(Profile.id == user_id)
        )
    ).scalar_one_or_none()
    return TeamRead.model_validate(team) if team else None
