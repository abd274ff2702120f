# app/models/submission.py

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, func

from app.database import Base


class Submission(Base):
    """A team solve: one row per (team, challenge), written on the first correct flag."""

    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Attribution only; the solve belongs to the team.
    user_id = Column(String(64), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    challenge_id = Column(String(36), ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at = Column(DateTime, default=func.now(), nullable=False)

    __table_args__ = (
        # The scoring core relies on this constraint for its insert-if-absent.
        UniqueConstraint("team_id", "challenge_id", name="uq_submissions_team_challenge"),
    )

    def __repr__(self) -> str:
        return f"<Submission id={self.id} team={self.team_id} chal={self.challenge_id}>"
