from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db, insert_or_ignore
from app.identity import RequestIdentity, get_request_identity, require_identity, resolve_user_id
from app.models.profile import Profile
from app.schemas import ProfileProvision, ProfileRead

router = APIRouter(prefix="/me", tags=["Profiles"])


@router.post("/profile", response_model=ProfileRead)
async def provision_profile(
    payload: ProfileProvision,
    identity: RequestIdentity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    """Create the caller's profile after signup. Calling it again changes nothing."""
    fallback_name = (identity.email or "").split("@")[0] or None
    await insert_or_ignore(
        db,
        Profile,
        {
            "id": identity.user_id,
            "display_name": payload.display_name or fallback_name,
            "email": identity.email,
        },
        conflict_columns=("id",),
        returning=Profile.id,
    )
    await db.commit()
    return ProfileRead.model_validate(await db.get(Profile, identity.user_id))


@router.get("/profile", response_model=ProfileRead)
async def read_profile(
    user_id: str = Query(..., alias="userId", min_length=1),
    identity: RequestIdentity = Depends(get_request_identity),
    db: AsyncSession = Depends(get_db),
):
    profile = await db.get(Profile, resolve_user_id(user_id, identity))
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return ProfileRead.model_validate(profile)
