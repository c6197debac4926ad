from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, CheckConstraint
from sqlalchemy.orm import relationship
from app.core.utils import utcnow
from app.db.base_class import Base

class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (CheckConstraint("points > 0", name="ck_questions_points_positive"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    text = Column(Text, nullable=False)
    points = Column(Integer, nullable=False)
    requires_image = Column(Boolean, nullable=False, default=False)
    is_bonus = Column(Boolean, nullable=False, default=False, index=True)
    image_ref = Column(String(255), nullable=True)
    # Ordering within its track (normal questions only are served in order)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    # Relationships
    answers = relationship("Answer", back_populates="question")
