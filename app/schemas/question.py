from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

class QuestionOut(BaseModel):
    id: int
    question: str
    points: int
    requires_image: bool
    is_bonus: bool
    position: int
    image_url: Optional[str] = None

class QuestionAdminOut(QuestionOut):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class QuestionEnvelope(BaseModel):
    success: bool = True
    question: QuestionAdminOut

class QuestionList(BaseModel):
    success: bool = True
    questions: List[QuestionAdminOut]

class NextQuestionOut(BaseModel):
    success: bool = True
    question: Optional[QuestionOut] = None
    isBonus: bool = False
    questionNumber: int
    totalQuestions: int
    completed: bool = False
    normalAnswered: int
    bonusAnswered: int
    bonusAvailable: bool
    bonusMilestone: int
