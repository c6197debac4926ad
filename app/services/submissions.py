import logging
from typing import Optional

from fastapi import UploadFile
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.errors import (
    AlreadyAnswered,
    AlreadyReviewed,
    BonusLocked,
    EmptyAnswer,
    MissingImage,
    NotFoundError,
    QuestionNotCurrent,
)
from app.core.storage import LocalImageStore, has_upload
from app.core.utils import clean_text, utcnow
from app.models.answer import STATUS_ACCEPTED, STATUS_PENDING, STATUS_REJECTED, Answer
from app.models.question import Question
from app.models.user import User
from app.services import sequencer

logger = logging.getLogger(__name__)


async def _answer_exists(db: AsyncSession, user_id: int, question_id: int) -> bool:
    result = await db.execute(
        select(Answer.id).where(Answer.user_id == user_id, Answer.question_id == question_id)
    )
    return result.first() is not None


async def _question_exists(db: AsyncSession, question_id: int) -> bool:
    result = await db.execute(select(Question.id).where(Question.id == question_id))
    return result.first() is not None


async def _check_turn(db: AsyncSession, user: User, question: Question):
    """Only the current normal question or an unlocked bonus question may be answered."""
    if question.is_bonus:
        if not settings.ENFORCE_BONUS_MILESTONES:
            return
        progress = await sequencer.get_progress(db, user.id)
        if not sequencer.bonus_locked(progress, settings.BONUS_MILESTONE):
            return
        error = BonusLocked()
    else:
        if await sequencer.current_question_id(db, user.id) == question.id:
            return
        error = QuestionNotCurrent()
    # A concurrent submit of this same question moves the turn on
    if await _answer_exists(db, user.id, question.id):
        raise AlreadyAnswered()
    raise error


async def submit(
    db: AsyncSession,
    store: LocalImageStore,
    user: User,
    question_id: int,
    text_answer: Optional[str] = None,
    image: Optional[UploadFile] = None,
) -> Answer:
    """Store a pending answer with the question's current points.

    The unique (user, question) constraint decides between concurrent
    submissions; the earlier existence check only avoids a wasted upload.
    """
    username = user.username
    result = await db.execute(select(Question).where(Question.id == question_id))
    question = result.scalar_one_or_none()
    if question is None:
        raise NotFoundError(f"Question {question_id} does not exist")

    if await _answer_exists(db, user.id, question_id):
        raise AlreadyAnswered()
    await _check_turn(db, user, question)

    text_answer = clean_text(text_answer)
    with_image = has_upload(image)
    if question.requires_image and not with_image:
        raise MissingImage()
    if text_answer is None and not with_image:
        raise EmptyAnswer()

    image_ref = await store.save(image) if with_image else None

    answer = Answer(
        user_id=user.id,
        question_id=question.id,
        text_answer=text_answer,
        image_ref=image_ref,
        status=STATUS_PENDING,
        points=question.points,
        submitted_at=utcnow(),
    )
    db.add(answer)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        await store.delete(image_ref)
        # The foreign key fails when the question was deleted after it was read
        if not await _question_exists(db, question_id):
            raise NotFoundError(f"Question {question_id} does not exist")
        logger.warning(f"Duplicate submission by {username} for question {question_id}")
        raise AlreadyAnswered()
    except Exception:
        await db.rollback()
        await store.delete(image_ref)
        raise

    logger.info(f"{username} submitted answer {answer.id} for question {question_id}")
    return answer


async def review(db: AsyncSession, admin: User, answer_id: int, accept: bool, username: Optional[str] = None) -> Answer:
    """Move a pending answer to accepted or rejected, exactly once.

    The transition is a conditional UPDATE on ``status = 'pending'``; when
    two reviews race only one of them matches a row.
    """
    stmt = select(Answer).where(Answer.id == answer_id)
    if username is not None:
        stmt = stmt.join(User, User.id == Answer.user_id).where(User.username == username)
    result = await db.execute(stmt)
    answer = result.scalar_one_or_none()
    if answer is None:
        raise NotFoundError(f"Answer {answer_id} does not exist")
    user_id, points = answer.user_id, answer.points

    new_status = STATUS_ACCEPTED if accept else STATUS_REJECTED
    transition = await db.execute(
        update(Answer)
        .where(Answer.id == answer_id, Answer.status == STATUS_PENDING)
        .values(status=new_status, reviewed_at=utcnow(), reviewed_by_id=admin.id)
        .execution_options(synchronize_session=False)
    )
    if transition.rowcount != 1:
        await db.rollback()
        logger.warning(f"Answer {answer_id} was already reviewed")
        raise AlreadyReviewed()

    if accept:
        # Same transaction as the transition, so the cached total never drifts
        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(total_points=User.total_points + points)
            .execution_options(synchronize_session=False)
        )
    await db.commit()

    answer = await get_answer(db, answer_id)
    logger.info(f"Admin {admin.username} {new_status} answer {answer_id} ({answer.points} points)")
    return answer


async def get_answer(db: AsyncSession, answer_id: int) -> Answer:
    result = await db.execute(
        select(Answer)
        .options(selectinload(Answer.question), selectinload(Answer.user))
        .where(Answer.id == answer_id)
        .execution_options(populate_existing=True)
    )
    answer = result.scalar_one_or_none()
    if answer is None:
        raise NotFoundError(f"Answer {answer_id} does not exist")
    return answer


async def list_answers_for_user(db: AsyncSession, username: str) -> list[Answer]:
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError(f"Team {username} does not exist")

    result = await db.execute(
        select(Answer)
        .options(selectinload(Answer.question))
        .where(Answer.user_id == user.id)
        .order_by(Answer.submitted_at.desc(), Answer.id.desc())
    )
    return list(result.scalars().all())
