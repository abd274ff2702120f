from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.challenge import Challenge
from app.routes.submissions import NO_STORE
from app.schemas import ChallengeDetail, ChallengeSummary

router = APIRouter(prefix="/challenges", tags=["Challenges"])


def _challenge_to_detail(challenge: Challenge) -> ChallengeDetail:
    return ChallengeDetail(
        id=challenge.id,
        title=challenge.title,
        description=challenge.description,
        points=challenge.points or 0,
        attachment_url=challenge.attachment_url,
        link_url=challenge.link_url,
    )


@router.get("", response_model=List[ChallengeSummary])
async def list_challenges(db: AsyncSession = Depends(get_db)):
    """Active challenges, cheapest first."""
    rows = await db.execute(
        select(Challenge.id, Challenge.title, Challenge.points)
        .where(Challenge.is_active == True)  # noqa: E712
        .order_by(Challenge.points.asc(), Challenge.title.asc())
    )
    return [ChallengeSummary(id=r.id, title=r.title, points=r.points or 0) for r in rows.all()]


@router.get("/{challenge_id}", response_model=ChallengeDetail)
async def get_challenge(challenge_id: str, response: Response, db: AsyncSession = Depends(get_db)):
    response.headers.update(NO_STORE)
    challenge = await db.get(Challenge, challenge_id)
    # Inactive challenges are indistinguishable from unknown ones.
    if challenge is None or not challenge.is_active:
        raise HTTPException(status_code=404, detail="Not found")
    return _challenge_to_detail(challenge)
