import uuid

from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.orm import relationship

from app.database import Base


class Team(Base):
    __tablename__ = "teams"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(64), nullable=False)
    # Join code handed out to teammates; never changes once issued.
    code = Column(String(16), unique=True, nullable=False, index=True)
    # Plain column: a FK here would make profiles and teams reference each other.
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=func.now())

    members = relationship("Profile", back_populates="team", foreign_keys="Profile.team_id")

    def __repr__(self) -> str:
        return f"<Team id={self.id} code={self.code}>"
