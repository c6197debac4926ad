from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.config import settings
from app.core.errors import BonusLocked
from app.core.security import get_current_user
from app.core.storage import LocalImageStore, get_image_store
from app.db.session import get_db
from app.models.user import User
from app.routes.questions import question_to_dict
from app.schemas.answer import SubmitOut
from app.schemas.question import NextQuestionOut
from app.schemas.results import EventOut
from app.services import sequencer, submissions

router = APIRouter()

@router.get("/current-question", response_model=NextQuestionOut)
async def current_question(
    is_bonus: bool = Query(False),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: LocalImageStore = Depends(get_image_store),
):
    """Next unanswered question of the normal or bonus track."""
    milestone = settings.BONUS_MILESTONE
    if is_bonus and settings.ENFORCE_BONUS_MILESTONES:
        progress = await sequencer.get_progress(db, current_user.id)
        if sequencer.bonus_locked(progress, milestone):
            raise BonusLocked(
                f"Answer {milestone} normal questions to unlock each bonus question"
            )

    nxt = await sequencer.next_question(db, current_user, want_bonus=is_bonus)
    return {
        "success": True,
        "question": question_to_dict(nxt.question, store) if nxt.question else None,
        "isBonus": nxt.is_bonus,
        "questionNumber": nxt.question_number,
        "totalQuestions": nxt.total_questions,
        "completed": nxt.completed,
        "normalAnswered": nxt.progress.normal_answered,
        "bonusAnswered": nxt.progress.bonus_answered,
        "bonusAvailable": sequencer.bonus_offerable(nxt.progress, milestone),
        "bonusMilestone": milestone,
    }

@router.post("/submit/{question_id}", response_model=SubmitOut)
async def submit_answer(
    question_id: int,
    text_answer: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: LocalImageStore = Depends(get_image_store),
):
    answer = await submissions.submit(db, store, current_user, question_id, text_answer, image)
    return {"success": True, "answerId": answer.id, "status": answer.status}

@router.get("/event", response_model=EventOut)
async def event_info():
    """Event end time for the client countdown; not enforced server-side."""
    end_time = None
    if settings.EVENT_END_TIME:
        end_time = datetime.fromisoformat(settings.EVENT_END_TIME)
    return {"success": True, "eventEndTime": end_time, "bonusMilestone": settings.BONUS_MILESTONE}
