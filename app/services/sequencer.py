"""Picks the next question for a participant.

Sequencing is a pure read: it never writes, so two concurrent calls for the
same participant simply return the same question. Exclusivity is enforced
when the answer is stored (see ``submissions.submit``).
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.answer import Answer
from app.models.question import Question
from app.models.user import User


@dataclass
class Progress:
    normal_answered: int = 0
    bonus_answered: int = 0
    normal_total: int = 0
    bonus_total: int = 0

    @property
    def bonus_remaining(self) -> int:
        return max(self.bonus_total - self.bonus_answered, 0)


@dataclass
class NextQuestion:
    question: Optional[Question]
    is_bonus: bool
    question_number: int
    total_questions: int
    progress: Progress

    @property
    def completed(self) -> bool:
        return self.question is None


def answered_question_ids(user_id: int):
    return select(Answer.question_id).where(Answer.user_id == user_id)


async def get_progress(db: AsyncSession, user_id: int) -> Progress:
    """Answer counts per track (any review state) and track sizes."""
    answered = await db.execute(
        select(
            func.coalesce(func.sum(case((Question.is_bonus.is_(False), 1), else_=0)), 0),
            func.coalesce(func.sum(case((Question.is_bonus.is_(True), 1), else_=0)), 0),
        )
        .select_from(Answer)
        .join(Question, Question.id == Answer.question_id)
        .where(Answer.user_id == user_id)
    )
    normal_answered, bonus_answered = answered.one()

    totals = await db.execute(
        select(
            func.coalesce(func.sum(case((Question.is_bonus.is_(False), 1), else_=0)), 0),
            func.coalesce(func.sum(case((Question.is_bonus.is_(True), 1), else_=0)), 0),
        )
    )
    normal_total, bonus_total = totals.one()

    return Progress(
        normal_answered=int(normal_answered),
        bonus_answered=int(bonus_answered),
        normal_total=int(normal_total),
        bonus_total=int(bonus_total),
    )


def _unanswered(user_id: int, want_bonus: bool):
    return (
        select(Question)
        .where(
            Question.is_bonus.is_(bool(want_bonus)),
            Question.id.not_in(answered_question_ids(user_id)),
        )
        .order_by(Question.position.asc(), Question.id.asc())
        .limit(1)
    )


async def current_question_id(db: AsyncSession, user_id: int) -> Optional[int]:
    """Id of the normal-track question the participant must answer next."""
    result = await db.execute(_unanswered(user_id, False).with_only_columns(Question.id))
    return result.scalar_one_or_none()


async def next_question(db: AsyncSession, user: User, want_bonus: bool = False) -> NextQuestion:
    """Lowest-position unanswered question of the requested track.

    Question number and total are for progress display only.
    """
    result = await db.execute(_unanswered(user.id, want_bonus))
    question = result.scalar_one_or_none()
    progress = await get_progress(db, user.id)

    if want_bonus:
        answered, total = progress.bonus_answered, progress.bonus_total
    else:
        answered, total = progress.normal_answered, progress.normal_total

    return NextQuestion(
        question=question,
        is_bonus=bool(want_bonus),
        question_number=answered + 1 if question is not None else answered,
        total_questions=total,
        progress=progress,
    )


def milestones_reached(normal_answered: int, milestone: int) -> int:
    if milestone <= 0:
        return 0
    return normal_answered // milestone


def bonus_offerable(progress: Progress, milestone: int) -> bool:
    """Whether a bonus question may be offered right now.

    Each block of ``milestone`` normal answers unlocks one bonus question.
    Unclaimed unlocks accumulate until the bonus pool runs out.
    """
    if progress.bonus_remaining == 0:
        return False
    return milestones_reached(progress.normal_answered, milestone) > progress.bonus_answered


def bonus_locked(progress: Progress, milestone: int) -> bool:
    """A bonus question is left but no unclaimed milestone covers it."""
    return progress.bonus_remaining > 0 and not bonus_offerable(progress, milestone)
