import sys
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import app.models  # noqa: E402,F401 (registers tables)
from app.database import Base, build_session_factory  # noqa: E402
from app.flag_storage import hash_flag  # noqa: E402
from app.models.challenge import Challenge  # noqa: E402
from app.models.profile import Profile  # noqa: E402
from app.models.team import Team  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def session_factory(tmp_path):
    """A fresh file-backed SQLite database per test."""

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ctf.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
async def ctf(session_factory):
    """One active 100-point challenge, one inactive one, team t1 with u1/u2 and a teamless u3."""

    async with session_factory() as session:
        session.add_all(
            [
                Challenge(id="c1", title="Warmup", description="Say hi", points=100,
                          is_active=True, flag_hash=hash_flag("KCTF{abc_123}")),
                Challenge(id="c2", title="Retired", points=300,
                          is_active=False, flag_hash=hash_flag("KCTF{old}")),
                Team(id="t1", name="Alpha", code="ALPHA2", created_by="u1"),
                Profile(id="u1", display_name="Ada", team_id="t1"),
                Profile(id="u2", display_name="Bob", team_id="t1"),
                Profile(id="u3", display_name="Cy"),
            ]
        )
        await session.commit()
    return session_factory
