import pytest
from fastapi import HTTPException, Response

from app.models.challenge import Challenge
from app.routes.challenges import _challenge_to_detail, get_challenge, list_challenges

pytestmark = pytest.mark.anyio


async def test_list_is_active_only_and_cheapest_first(ctf):
    async with ctf() as session:
        session.add_all(
            [
                Challenge(id="c3", title="Hard", points=500, is_active=True),
                Challenge(id="c4", title="Free", points=0, is_active=True),
            ]
        )
        await session.commit()
        listed = await list_challenges(db=session)

    assert [(c.id, c.points) for c in listed] == [("c4", 0), ("c1", 100), ("c3", 500)]
    assert set(listed[0].model_dump()) == {"id", "title", "points"}


async def test_list_is_empty_without_challenges(session_factory):
    async with session_factory() as session:
        assert await list_challenges(db=session) == []


async def test_detail_never_exposes_flag_hash(ctf):
    async with ctf() as session:
        response = Response()
        detail = await get_challenge("c1", response, db=session)

    dumped = detail.model_dump()
    assert dumped == {
        "id": "c1",
        "title": "Warmup",
        "description": "Say hi",
        "points": 100,
        "attachment_url": None,
        "link_url": None,
    }
    assert "flag_hash" not in detail.model_dump_json()
    assert "no-store" in response.headers["Cache-Control"]


def test_detail_conversion_ignores_secret_attributes():
    challenge = Challenge(
        id="x", title="T", description="d", points=5, is_active=True, flag_hash="ab" * 32
    )
    assert "flag_hash" not in _challenge_to_detail(challenge).model_dump()


@pytest.mark.parametrize("challenge_id", ["c2", "missing"])
async def test_inactive_or_unknown_detail_is_not_found(ctf, challenge_id):
    async with ctf() as session:
        with pytest.raises(HTTPException) as excinfo:
            await get_challenge(challenge_id, Response(), db=session)
    assert excinfo.value.status_code == 404
