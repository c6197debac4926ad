from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from app.core.utils import utcnow
from app.db.base_class import Base

ROLE_PARTICIPANT = "participant"
ROLE_ADMIN = "admin"
ROLES = (ROLE_PARTICIPANT, ROLE_ADMIN)

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Stored lowercased, see normalize_username
    username = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=ROLE_PARTICIPANT)
    active_device_id = Column(String(128), nullable=True)
    # Cache of accepted points; the scoreboard recomputes from answers
    total_points = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    answers = relationship("Answer", back_populates="user", foreign_keys="Answer.user_id")

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
