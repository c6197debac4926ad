"""Leaderboard derived from accepted answers.

Totals are recomputed from the answers table in a single aggregate query,
so a review is either fully visible or not visible at all.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import results_cache
from app.models.answer import STATUS_ACCEPTED, Answer
from app.models.question import Question
from app.models.user import ROLE_PARTICIPANT, User


@dataclass
class ScoreboardEntry:
    username: str
    total_points: int
    normal_solved: int
    bonus_solved: int
    # Latest submission time among accepted answers
    last_submission: Optional[datetime]
    rank: int = 0


def ranking_key(entry: ScoreboardEntry):
    # Points desc, then earliest last accepted submission, then username.
    # Teams with nothing accepted sort after everyone on the same points.
    return (
        -entry.total_points,
        entry.last_submission is None,
        entry.last_submission or datetime.min,
        entry.username,
    )


async def compute_results(db: AsyncSession) -> list[ScoreboardEntry]:
    accepted = Answer.status == STATUS_ACCEPTED
    stmt = (
        select(
            User.username,
            func.coalesce(func.sum(case((accepted, Answer.points), else_=0)), 0),
            func.coalesce(func.sum(case((and_(accepted, Question.is_bonus.is_(False)), 1), else_=0)), 0),
            func.coalesce(func.sum(case((and_(accepted, Question.is_bonus.is_(True)), 1), else_=0)), 0),
            func.max(case((accepted, Answer.submitted_at), else_=None)),
        )
        .select_from(User)
        .outerjoin(Answer, Answer.user_id == User.id)
        .outerjoin(Question, Question.id == Answer.question_id)
        .where(User.role == ROLE_PARTICIPANT)
        .group_by(User.id, User.username)
    )
    result = await db.execute(stmt)

    entries = [
        ScoreboardEntry(
            username=username,
            total_points=int(points),
            normal_solved=int(normal),
            bonus_solved=int(bonus),
            last_submission=last,
        )
        for username, points, normal, bonus, last in result.all()
    ]
    entries.sort(key=ranking_key)
    for rank, entry in enumerate(entries, start=1):
        entry.rank = rank
    return entries


async def results(db: AsyncSession) -> list[ScoreboardEntry]:
    """Cached leaderboard for polling clients."""
    return await results_cache.get_or_compute(lambda: compute_results(db))
