import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String, Text, func

from app.database import Base


class Challenge(Base):
    __tablename__ = "challenges"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(100), nullable=False)
    description = Column(Text)
    points = Column(Integer, nullable=False, default=0)
    attachment_url = Column(String(512), nullable=True)
    link_url = Column(String(512), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default="1")
    # Hex SHA-256 of the flag (see app.flag_storage). Never serialised.
    flag_hash = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=func.now())

    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_challenges_points_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Challenge id={self.id} points={self.points} active={self.is_active}>"
