from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.cache import results_cache
from app.core.security import get_current_admin, get_current_user
from app.core.storage import LocalImageStore, get_image_store
from app.core.utils import normalize_username
from app.core.websocket import manager
from app.db.session import get_db
from app.models.answer import STATUS_PENDING, Answer
from app.models.user import User
from app.schemas.answer import AnswerList, ReviewIn, ReviewOut
from app.schemas.results import ResultsOut, TeamList
from app.services import identity, scoreboard, submissions

router = APIRouter()

def results_to_list(entries) -> list:
    return [
        {
            "rank": e.rank,
            "username": e.username,
            "totalPoints": e.total_points,
            "normalSolved": e.normal_solved,
            "bonusSolved": e.bonus_solved,
            "lastSubmission": e.last_submission.isoformat() if e.last_submission else None,
        }
        for e in entries
    ]

def answer_to_dict(answer: Answer, store: LocalImageStore, username: str = None) -> dict:
    return {
        "id": answer.id,
        "username": username,
        "question_id": answer.question_id,
        "question": answer.question.text,
        "is_bonus": answer.question.is_bonus,
        "points": answer.points,
        "text_answer": answer.text_answer,
        "image_answer_url": store.url_for(answer.image_ref),
        "status": answer.status,
        "is_reviewed": answer.status != STATUS_PENDING,
        "submitted_at": answer.submitted_at,
        "reviewed_at": answer.reviewed_at,
    }

@router.get("/teams/results", response_model=ResultsOut)
async def team_results(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Leaderboard. Safe to poll; may lag a review by the cache TTL."""
    entries = await scoreboard.results(db)
    return {"success": True, "results": results_to_list(entries)}

@router.get("/teams", response_model=TeamList)
async def list_teams(
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    teams = await identity.list_participants(db)
    return {
        "success": True,
        "teams": [
            {
                "id": t.id,
                "username": t.username,
                "totalPoints": t.total_points,
                "isOnline": t.active_device_id is not None,
                "createdAt": t.created_at,
            }
            for t in teams
        ],
    }

@router.get("/teams/{username}/answers", response_model=AnswerList)
async def team_answers(
    username: str,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    store: LocalImageStore = Depends(get_image_store),
):
    name = normalize_username(username)
    answers = await submissions.list_answers_for_user(db, name)
    return {
        "success": True,
        "username": name,
        "answers": [answer_to_dict(a, store, name) for a in answers],
    }

@router.post("/teams/{username}/answers/{answer_id}/review", response_model=ReviewOut)
async def review_answer(
    username: str,
    answer_id: int,
    payload: ReviewIn,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    store: LocalImageStore = Depends(get_image_store),
):
    name = normalize_username(username)
    answer = await submissions.review(db, admin, answer_id, payload.is_accepted, username=name)
    results_cache.invalidate()

    if manager.has_listeners:
        entries = await scoreboard.compute_results(db)
        active = await identity.active_devices(db, manager.user_ids)
        await manager.broadcast({"type": "results_update", "results": results_to_list(entries)}, active)

    return {"success": True, "answer": answer_to_dict(answer, store, name)}
