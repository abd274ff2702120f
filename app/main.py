import asyncio
import logging
import os
from dotenv import load_dotenv  # load .env variables

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sqlalchemy.exc import DBAPIError, OperationalError

import app.database as database

# ----- Load environment variables -----
load_dotenv()

# ----- Logging -----
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)
logger = logging.getLogger("ctf")

# ----- Routers -----
from app.routes.challenges import router as challenge_router
from app.routes.submissions import router as submission_router
from app.routes.teams import router as team_router
from app.routes.leaderboard import router as leaderboard_router
from app.routes.attachments import router as attachments_router
from app.routes.profiles import router as profile_router

# ----- FastAPI app -----
app = FastAPI(
    title="Team CTF Backend",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# ----- CORS (enabled only if ALLOWED_ORIGINS is set) -----
raw_origins = os.getenv("ALLOWED_ORIGINS", "").strip()
if raw_origins:
    allowed_origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "Origin"],
        expose_headers=["Content-Disposition"],
        max_age=86400,
    )

# ----- Include routers -----
app.include_router(challenge_router)
app.include_router(submission_router)
app.include_router(team_router)
app.include_router(leaderboard_router)
app.include_router(attachments_router)
app.include_router(profile_router)


def sqlite_fallback_allowed() -> bool:
    """Decide if startup may fall back to the bundled SQLite database."""

    configured = os.getenv("DB_ALLOW_SQLITE_FALLBACK")
    if configured is not None:
        return configured.lower() in {"1", "true", "yes", "on"}
    # Without an explicit opt-in a misconfigured server URL should fail loudly.
    return database.CURRENT_DATABASE_URL == database.DEFAULT_SQLITE_URL


@app.on_event("startup")
async def on_startup():
    """Ensure database connectivity with simple retry logic."""

    max_attempts = int(os.getenv("DB_INIT_MAX_ATTEMPTS", "10"))
    base_delay = float(os.getenv("DB_INIT_RETRY_SECONDS", "1.0"))

    attempt = 0
    while True:
        attempt += 1
        try:
            await database.init_models()
        except (OperationalError, DBAPIError, OSError) as exc:  # pragma: no cover - depends on timing
            if attempt >= max_attempts:
                if sqlite_fallback_allowed() and (
                    database.CURRENT_DATABASE_URL != database.DEFAULT_SQLITE_URL
                ):
                    logger.error(
                        "Database not reachable after %s attempts: %s."
                        " Falling back to local SQLite for development.",
                        attempt,
                        exc,
                    )
                    await database.engine.dispose()
                    database.configure_engine(database.DEFAULT_SQLITE_URL)
                    attempt = 0
                    continue

                logger.exception("Database not reachable after %s attempts", attempt)
                raise

            wait_time = base_delay * min(2 ** (attempt - 1), 8)
            logger.warning(
                "Database not ready (attempt %s/%s): %s. Retrying in %.1f seconds...",
                attempt,
                max_attempts,
                exc,
                wait_time,
            )
            await asyncio.sleep(wait_time)
        else:
            logger.info("CTF backend started and database tables ensured.")
            break


@app.on_event("shutdown")
async def on_shutdown():
    await database.engine.dispose()


# ----- Health check endpoint -----
@app.get("/health", tags=["meta"])
async def health():
    return {"ok": True}

# Never log DATABASE_URL or secrets themselves, only whether they are set.
if os.getenv("DATABASE_URL"):
    logger.info("DATABASE_URL loaded.")
if os.getenv("IDENTITY_JWT_SECRET"):
    logger.info("IDENTITY_JWT_SECRET loaded.")
