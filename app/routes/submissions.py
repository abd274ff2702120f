# app/routes/submissions.py

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.identity import RequestIdentity, get_request_identity, resolve_user_id
from app.rate_limiter import get_submission_rate_limiter
from app.schemas import FlagSubmission, SubmissionResult
from app.services import scoring

router = APIRouter(tags=["Submissions"])

NO_STORE = {"Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate"}

_ERROR_STATUS = {
    scoring.InvalidFlagFormat: status.HTTP_400_BAD_REQUEST,
    scoring.ChallengeUnavailable: status.HTTP_404_NOT_FOUND,
    scoring.ProfileNotFound: status.HTTP_400_BAD_REQUEST,
    scoring.NoTeamAssigned: status.HTTP_400_BAD_REQUEST,
    scoring.SubmissionStorageError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _to_http_error(exc: scoring.ScoringError) -> HTTPException:
    code = _ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=code, detail=exc.message, headers=NO_STORE)


# -------------------------------------------------------------------
# POST /submissions – check a flag and record the team's first solve
# -------------------------------------------------------------------
@router.post(
    "/submissions",
    response_model=SubmissionResult,
    response_model_exclude_none=True,
)
async def submit_flag(
    submission: FlagSubmission,
    response: Response,
    db: AsyncSession = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    response.headers.update(NO_STORE)
    user_id = resolve_user_id(submission.user_id, identity)

    limiter = get_submission_rate_limiter()
    if limiter and not await limiter.try_acquire(f"user:{user_id}"):
        raise HTTPException(status_code=429, detail="Too many submissions. Please slow down.")

    try:
        verdict = await scoring.submit_flag(db, user_id, submission.challenge_id, submission.flag)
    except scoring.ScoringError as exc:
        raise _to_http_error(exc) from exc

    return SubmissionResult(
        correct=verdict.correct,
        already_solved=True if verdict.already_solved else None,
        points=verdict.points,
        message=verdict.message,
    )


# -------------------------------------------------------------------
# GET /me/solves – challenge ids the caller's team has solved
# -------------------------------------------------------------------
@router.get("/me/solves", response_model=list[str])
async def my_team_solves(
    response: Response,
    user_id: str = Query(..., alias="userId", min_length=1),
    db: AsyncSession = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    response.headers.update(NO_STORE)
    return await scoring.team_solves(db, resolve_user_id(user_id, identity))
