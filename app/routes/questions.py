from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.security import get_current_admin
from app.core.storage import LocalImageStore, get_image_store
from app.db.session import get_db
from app.models.question import Question
from app.models.user import User
from app.schemas.auth import SuccessOut
from app.schemas.question import QuestionEnvelope, QuestionList
from app.services import question_bank

router = APIRouter()

def question_to_dict(question: Question, store: LocalImageStore, admin: bool = False) -> dict:
    data = {
        "id": question.id,
        "question": question.text,
        "points": question.points,
        "requires_image": question.requires_image,
        "is_bonus": question.is_bonus,
        "position": question.position,
        "image_url": store.url_for(question.image_ref),
    }
    if admin:
        data["created_at"] = question.created_at
        data["updated_at"] = question.updated_at
    return data

@router.get("/questions", response_model=QuestionList)
async def list_questions(
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    store: LocalImageStore = Depends(get_image_store),
):
    """Whole question bank, normal track first."""
    questions = await question_bank.list_questions(db)
    return {"success": True, "questions": [question_to_dict(q, store, admin=True) for q in questions]}

@router.post("/questions", response_model=QuestionEnvelope)
async def create_question(
    question: str = Form(...),
    points: int = Form(...),
    requires_image: bool = Form(False),
    is_bonus: bool = Form(False),
    position: Optional[int] = Form(None),
    image: Optional[UploadFile] = File(None),
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    store: LocalImageStore = Depends(get_image_store),
):
    created = await question_bank.create_question(
        db, store,
        text=question,
        points=points,
        requires_image=requires_image,
        is_bonus=is_bonus,
        position=position,
        image=image,
    )
    return {"success": True, "question": question_to_dict(created, store, admin=True)}

@router.get("/questions/{question_id}", response_model=QuestionEnvelope)
async def get_question(
    question_id: int,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    store: LocalImageStore = Depends(get_image_store),
):
    question = await question_bank.get_question(db, question_id)
    return {"success": True, "question": question_to_dict(question, store, admin=True)}

@router.put("/questions/{question_id}", response_model=QuestionEnvelope)
async def update_question(
    question_id: int,
    question: Optional[str] = Form(None),
    points: Optional[int] = Form(None),
    requires_image: Optional[bool] = Form(None),
    is_bonus: Optional[bool] = Form(None),
    position: Optional[int] = Form(None),
    remove_image: bool = Form(False),
    image: Optional[UploadFile] = File(None),
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    store: LocalImageStore = Depends(get_image_store),
):
    updated = await question_bank.update_question(
        db, store, question_id,
        text=question,
        points=points,
        requires_image=requires_image,
        is_bonus=is_bonus,
        position=position,
        image=image,
        remove_image=remove_image,
    )
    return {"success": True, "question": question_to_dict(updated, store, admin=True)}

@router.delete("/questions/{question_id}", response_model=SuccessOut)
async def delete_question(
    question_id: int,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    store: LocalImageStore = Depends(get_image_store),
):
    await question_bank.delete_question(db, store, question_id)
    return {"success": True}
