from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

class SubmitOut(BaseModel):
    success: bool = True
    answerId: int
    status: str

class ReviewIn(BaseModel):
    is_accepted: bool

class AnswerOut(BaseModel):
    id: int
    username: Optional[str] = None
    question_id: int
    question: str
    is_bonus: bool
    points: int
    text_answer: Optional[str] = None
    image_answer_url: Optional[str] = None
    status: str
    is_reviewed: bool
    submitted_at: datetime
    reviewed_at: Optional[datetime] = None

class ReviewOut(BaseModel):
    success: bool = True
    answer: AnswerOut

class AnswerList(BaseModel):
    success: bool = True
    username: str
    answers: List[AnswerOut]
