from typing import TYPE_CHECKING

from sqlalchemy import Column, DateTime, ForeignKey, String, func
from sqlalchemy.orm import relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.team import Team


class Profile(Base):
    __tablename__ = "profiles"

    # Same identifier the identity provider issues for the user.
    id = Column(String(64), primary_key=True)
    display_name = Column(String(64), nullable=True)
    email = Column(String(255), nullable=True)
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, default=func.now())

    team = relationship("Team", back_populates="members", foreign_keys=[team_id])

    def __repr__(self) -> str:
        return f"<Profile id={self.id} team={self.team_id}>"
