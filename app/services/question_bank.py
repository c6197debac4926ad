import logging
from typing import Optional

from fastapi import UploadFile
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidPoints, NotFoundError, QuestionInUse, ValidationError
from app.core.storage import LocalImageStore, has_upload
from app.core.utils import clean_text
from app.models.answer import Answer
from app.models.question import Question

logger = logging.getLogger(__name__)


def _check_points(points) -> int:
    if points is None or isinstance(points, bool) or not isinstance(points, int) or points <= 0:
        raise InvalidPoints()
    return points


async def _next_position(db: AsyncSession, is_bonus: bool) -> int:
    result = await db.execute(
        select(func.max(Question.position)).where(Question.is_bonus.is_(is_bonus))
    )
    current = result.scalar()
    return 1 if current is None else current + 1


async def _has_answers(db: AsyncSession, question_id: int) -> bool:
    result = await db.execute(select(Answer.id).where(Answer.question_id == question_id).limit(1))
    return result.first() is not None


async def list_questions(db: AsyncSession) -> list[Question]:
    result = await db.execute(
        select(Question).order_by(Question.is_bonus.asc(), Question.position.asc(), Question.id.asc())
    )
    return list(result.scalars().all())


async def get_question(db: AsyncSession, question_id: int) -> Question:
    result = await db.execute(select(Question).where(Question.id == question_id))
    question = result.scalar_one_or_none()
    if question is None:
        raise NotFoundError(f"Question {question_id} does not exist")
    return question


async def create_question(
    db: AsyncSession,
    store: LocalImageStore,
    text: str,
    points: int,
    requires_image: bool = False,
    is_bonus: bool = False,
    position: Optional[int] = None,
    image: Optional[UploadFile] = None,
) -> Question:
    text = clean_text(text)
    if text is None:
        raise ValidationError("Question text is required")
    points = _check_points(points)
    if position is None:
        position = await _next_position(db, is_bonus)

    image_ref = await store.save(image) if has_upload(image) else None
    question = Question(
        text=text,
        points=points,
        requires_image=requires_image,
        is_bonus=is_bonus,
        position=position,
        image_ref=image_ref,
    )
    db.add(question)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        await store.delete(image_ref)
        raise
    await db.refresh(question)
    logger.info(f"Created {'bonus' if is_bonus else 'normal'} question {question.id} ({points} points)")
    return question


async def update_question(
    db: AsyncSession,
    store: LocalImageStore,
    question_id: int,
    text: Optional[str] = None,
    points: Optional[int] = None,
    requires_image: Optional[bool] = None,
    is_bonus: Optional[bool] = None,
    position: Optional[int] = None,
    image: Optional[UploadFile] = None,
    remove_image: bool = False,
) -> Question:
    """Partial edit. Point changes never reach answers already submitted."""
    question = await get_question(db, question_id)

    if is_bonus is not None and is_bonus != question.is_bonus:
        # Solved counts per track join through this flag
        if await _has_answers(db, question_id):
            raise QuestionInUse("Cannot move an answered question to another track")
        question.is_bonus = is_bonus
    if text is not None:
        text = clean_text(text)
        if text is None:
            raise ValidationError("Question text cannot be empty")
        question.text = text
    if points is not None:
        question.points = _check_points(points)
    if requires_image is not None:
        question.requires_image = requires_image
    if position is not None:
        question.position = position

    old_ref = question.image_ref
    new_ref = None
    if has_upload(image):
        new_ref = await store.save(image)
        question.image_ref = new_ref
    elif remove_image:
        question.image_ref = None

    try:
        await db.commit()
    except Exception:
        await db.rollback()
        await store.delete(new_ref)
        raise
    if old_ref and old_ref != question.image_ref:
        await store.delete(old_ref)

    await db.refresh(question)
    logger.info(f"Updated question {question_id}")
    return question


async def delete_question(db: AsyncSession, store: LocalImageStore, question_id: int):
    """Delete an unanswered question; answered ones are kept for history."""
    question = await get_question(db, question_id)
    if await _has_answers(db, question_id):
        raise QuestionInUse()

    image_ref = question.image_ref
    try:
        await db.execute(delete(Question).where(Question.id == question_id))
        await db.commit()
    except IntegrityError:
        # An answer arrived after the check above
        await db.rollback()
        raise QuestionInUse()
    await store.delete(image_ref)
    logger.info(f"Deleted question {question_id}")
