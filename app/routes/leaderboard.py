# app/routes/leaderboard.py
from __future__ import annotations

from typing import Iterable, Mapping

from fastapi import APIRouter, Depends, Response
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.challenge import Challenge
from app.models.profile import Profile
from app.models.submission import Submission
from app.models.team import Team
from app.schemas import LeaderboardEntry, MaxScore

router = APIRouter(prefix="/leaderboard", tags=["Leaderboard"])

NO_STORE = {"Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate"}


# --------- helpers ---------
def build_leaderboard(
    teams: Iterable,
    members: Iterable,
    scores: Mapping[str, int],
) -> list[dict]:
    """Assemble ranked standings.

    ``teams`` rows have ``id``/``name``; ``members`` rows have ``id``,
    ``display_name`` and ``team_id``; ``scores`` maps team id to points.
    Every team is listed, scoreless ones with 0. Equal scores are ordered by
    team name and still get consecutive ranks.
    """

    by_team: dict[str, list[dict]] = {}
    for m in members:
        if not m.team_id:
            continue
        name = (m.display_name or "").strip() or "Unnamed"
        by_team.setdefault(m.team_id, []).append({"id": m.id, "display_name": name})

    rows = [
        {
            "id": t.id,
            "name": t.name,
            "score": int(scores.get(t.id) or 0),
            "members": sorted(by_team.get(t.id, []), key=lambda m: m["display_name"].lower()),
        }
        for t in teams
    ]
    rows.sort(key=lambda r: (-r["score"], (r["name"] or "").lower(), r["id"]))
    return [{**r, "rank": position} for position, r in enumerate(rows, start=1)]


# --------- GET /leaderboard ---------
@router.get("", response_model=list[LeaderboardEntry])
async def get_leaderboard(response: Response, db: AsyncSession = Depends(get_db)):
    response.headers.update(NO_STORE)

    teams = (await db.execute(select(Team.id, Team.name))).all()
    members = (
        await db.execute(
            select(Profile.id, Profile.display_name, Profile.team_id).where(Profile.team_id.is_not(None))
        )
    ).all()
    # One submission row per (team, challenge), so this sums distinct solves.
    score_rows = (
        await db.execute(
            select(Submission.team_id, func.coalesce(func.sum(Challenge.points), 0).label("score"))
            .join(Challenge, Challenge.id == Submission.challenge_id)
            .group_by(Submission.team_id)
        )
    ).all()

    return build_leaderboard(teams, members, {r.team_id: r.score for r in score_rows})


# --------- GET /leaderboard/max-score ---------
@router.get("/max-score", response_model=MaxScore)
async def get_max_score(db: AsyncSession = Depends(get_db)):
    """Sum of all active challenge points, never below 1 so it can be divided by."""
    total = await db.scalar(
        select(func.coalesce(func.sum(Challenge.points), 0)).where(Challenge.is_active == True)  # noqa: E712
    )
    return MaxScore(max_score=max(int(total or 0), 1))
