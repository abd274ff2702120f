# app/schemas.py
# ------------------------------------------------------------
# Pydantic v2 schemas, organized by domain
# ------------------------------------------------------------
import re
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


_CONTROL_CHAR_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")
_SCRIPT_TAG_RE = re.compile(r"<\s*/?\s*script", re.IGNORECASE)


def _sanitize_single_line_text(value: str | None, *, allow_empty: bool = False) -> str | None:
    if value is None:
        return value
    if not isinstance(value, str):
        raise ValueError("Expected string input")
    cleaned = _CONTROL_CHAR_RE.sub("", value).strip()
    if not allow_empty and not cleaned:
        raise ValueError("Value cannot be empty")
    if any(ch in {"\n", "\r"} for ch in cleaned):
        raise ValueError("Value must be a single line of text")
    if "<" in cleaned or ">" in cleaned:
        raise ValueError("HTML tags are not allowed in this field")
    if _SCRIPT_TAG_RE.search(cleaned):
        raise ValueError("Script tags are not allowed")
    return cleaned


def _strip_identifier(value):
    return value.strip() if isinstance(value, str) else value


class _CamelModel(BaseModel):
    """Request bodies use the camelCase keys the web client sends."""

    model_config = ConfigDict(populate_by_name=True)


# ============================================================
# Challenges
# ============================================================

class ChallengeSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    points: int


class ChallengeDetail(BaseModel):
    # No flag_hash field: whatever the row carries, it cannot be serialised.
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: Optional[str] = None
    points: int
    attachment_url: Optional[str] = None
    link_url: Optional[str] = None


# ============================================================
# Submissions
# ============================================================

class FlagSubmission(_CamelModel):
    user_id: str = Field(alias="userId", min_length=1, max_length=64)
    challenge_id: str = Field(alias="challengeId", min_length=1, max_length=64)
    # Shape is checked by the scoring core so malformed flags get a 400.
    flag: str = Field(max_length=256)

    @field_validator("user_id", "challenge_id", mode="before")
    @classmethod
    def _clean_ids(cls, value: str) -> str:
        return _strip_identifier(value)


class SubmissionResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    correct: bool
    already_solved: Optional[bool] = Field(default=None, alias="alreadySolved")
    points: Optional[int] = None
    message: Optional[str] = None


# ============================================================
# Teams
# ============================================================

class TeamCreate(_CamelModel):
    name: str = Field(min_length=1, max_length=64)
    user_id: str = Field(alias="userId", min_length=1, max_length=64)

    @field_validator("name", mode="before")
    @classmethod
    def _clean_name(cls, value: str) -> str:
        return _sanitize_single_line_text(value)

    @field_validator("user_id", mode="before")
    @classmethod
    def _clean_user_id(cls, value: str) -> str:
        return _strip_identifier(value)


class TeamJoin(_CamelModel):
    join_code: str = Field(alias="joinCode", min_length=1, max_length=16)
    user_id: str = Field(alias="userId", min_length=1, max_length=64)

    @field_validator("join_code", mode="before")
    @classmethod
    def _normalize_code(cls, value: str) -> str:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("user_id", mode="before")
    @classmethod
    def _clean_user_id(cls, value: str) -> str:
        return _strip_identifier(value)


class TeamRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    code: str


class TeamEnvelope(BaseModel):
    team: TeamRead


# ============================================================
# Leaderboard
# ============================================================

class MemberRead(BaseModel):
    id: str
    display_name: str


class LeaderboardEntry(BaseModel):
    id: str
    name: str
    score: int
    rank: int
    members: List[MemberRead] = []


class MaxScore(BaseModel):
    max_score: int


# ============================================================
# Profiles
# ============================================================

class ProfileProvision(BaseModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=64)

    @field_validator("display_name", mode="before")
    @classmethod
    def _clean_display_name(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize_single_line_text(value) if value is not None else value


class ProfileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    display_name: Optional[str] = None
    team_id: Optional[str] = None


# ============================================================
# Attachments
# ============================================================

class SignUrlRequest(BaseModel):
    path: str = Field(max_length=512)


class SignedUrl(BaseModel):
    url: str
