from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from app.core.utils import utcnow
from app.db.base_class import Base

STATUS_PENDING = "pending"
STATUS_ACCEPTED = "accepted"
STATUS_REJECTED = "rejected"

class Answer(Base):
    __tablename__ = "answers"
    # One answer per (user, question); this constraint is what makes submit exclusive
    __table_args__ = (UniqueConstraint("user_id", "question_id", name="uq_answers_user_question"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)
    text_answer = Column(Text, nullable=True)
    image_ref = Column(String(255), nullable=True)
    submitted_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    status = Column(String(20), nullable=False, default=STATUS_PENDING, index=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    # Copied from the question at submission time
    points = Column(Integer, nullable=False)

    # Relationships
    user = relationship("User", back_populates="answers", foreign_keys=[user_id])
    question = relationship("Question", back_populates="answers")
