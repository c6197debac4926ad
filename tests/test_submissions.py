import asyncio
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select

from conftest import PNG_BYTES, TEST_MAX_IMAGE_BYTES, add_question, add_track, register_and_login
from app.core.config import settings
from app.core.errors import (
    AlreadyAnswered,
    BonusLocked,
    EmptyAnswer,
    MissingImage,
    NotFoundError,
    QuestionNotCurrent,
)
from app.models.answer import Answer
from app.services import question_bank, submissions


async def test_scenario_submit_once(client, db):
    await add_track(db, 3)
    await client.post("/api/users/register", json={"username": "teamA", "password": "pw", "role": "participant"})
    login = await client.post("/api/users/login", json={"username": "teamA", "password": "pw", "deviceId": "d1"})
    assert login.json()["token"]
    headers = {"Authorization": f"Bearer {login.json()['token']}"}

    current = (await client.get("/api/current-question", headers=headers)).json()
    assert current["questionNumber"] == 1
    qid = current["question"]["id"]

    first = await client.post(f"/api/submit/{qid}", data={"text_answer": "42"}, headers=headers)
    assert first.status_code == 200
    assert first.json()["success"] is True
    assert first.json()["status"] == "pending"
    assert isinstance(first.json()["answerId"], int)

    again = await client.post(f"/api/submit/{qid}", data={"text_answer": "43"}, headers=headers)
    assert again.status_code == 409
    assert again.json()["error"] == "AlreadyAnswered"


async def test_concurrent_duplicate_submissions(client, db, session_factory):
    q = await add_question(db, position=1)
    headers = await register_and_login(client, "racer")

    responses = await asyncio.gather(*[
        client.post(f"/api/submit/{q.id}", data={"text_answer": "same"}, headers=headers)
        for _ in range(6)
    ])
    codes = sorted(r.status_code for r in responses)
    assert codes == [200] + [409] * 5
    assert all(r.json()["error"] == "AlreadyAnswered" for r in responses if r.status_code == 409)

    async with session_factory() as session:
        count = await session.scalar(select(func.count(Answer.id)).where(Answer.question_id == q.id))
    assert count == 1


async def test_missing_image_rejected(client, db, team_headers):
    q = await add_question(db, requires_image=True)
    resp = await client.post(f"/api/submit/{q.id}", data={"text_answer": "a photo, honest"}, headers=team_headers)
    assert resp.status_code == 422
    assert resp.json()["error"] == "MissingImage"

    # A corrected resubmission is accepted
    resp = await client.post(
        f"/api/submit/{q.id}",
        files={"image": ("proof.png", PNG_BYTES, "image/png")},
        headers=team_headers,
    )
    assert resp.status_code == 200


async def test_empty_answer_rejected(client, db, team_headers):
    q = await add_question(db)
    resp = await client.post(f"/api/submit/{q.id}", data={"text_answer": "   "}, headers=team_headers)
    assert resp.status_code == 422
    assert resp.json()["error"] == "EmptyAnswer"


async def test_unknown_question(client, team_headers):
    resp = await client.post("/api/submit/999", data={"text_answer": "x"}, headers=team_headers)
    assert resp.status_code == 404
    assert resp.json()["error"] == "NotFound"


async def test_image_answer_is_stored(client, db, store, team_headers, admin_headers):
    q = await add_question(db, requires_image=True)
    resp = await client.post(
        f"/api/submit/{q.id}",
        data={"text_answer": "see picture"},
        files={"image": ("proof.png", PNG_BYTES, "image/png")},
        headers=team_headers,
    )
    assert resp.status_code == 200

    answers = (await client.get("/api/teams/teama/answers", headers=admin_headers)).json()["answers"]
    url = answers[0]["image_answer_url"]
    assert url.startswith("/uploads/")
    assert store.exists(url.rsplit("/", 1)[1])


async def test_non_image_upload_rejected(client, db, team_headers):
    q = await add_question(db, requires_image=True)
    resp = await client.post(
        f"/api/submit/{q.id}",
        files={"image": ("notes.txt", b"hello", "text/plain")},
        headers=team_headers,
    )
    assert resp.status_code == 422
    assert resp.json()["error"] == "InvalidImage"


async def test_oversized_image_rejected(client, db, team_headers):
    q = await add_question(db, requires_image=True)
    big = PNG_BYTES + b"\x00" * TEST_MAX_IMAGE_BYTES
    resp = await client.post(
        f"/api/submit/{q.id}",
        files={"image": ("big.png", big, "image/png")},
        headers=team_headers,
    )
    assert resp.status_code == 422
    assert resp.json()["error"] == "InvalidImage"


async def test_points_snapshot_taken_at_submission(db, store, participant):
    q = await add_question(db, points=10)
    answer = await submissions.submit(db, store, participant, q.id, "x")

    q.points = 50
    await db.commit()

    fresh = await submissions.get_answer(db, answer.id)
    assert fresh.points == 10


async def test_service_errors_are_distinct(db, store, participant):
    txt_q = await add_question(db, position=1)
    img_q = await add_question(db, requires_image=True, position=2)

    with pytest.raises(EmptyAnswer):
        await submissions.submit(db, store, participant, txt_q.id, None)
    with pytest.raises(NotFoundError):
        await submissions.submit(db, store, participant, 12345, "x")
    with pytest.raises(QuestionNotCurrent):
        await submissions.submit(db, store, participant, img_q.id, "x")

    await submissions.submit(db, store, participant, txt_q.id, "x")
    with pytest.raises(AlreadyAnswered):
        await submissions.submit(db, store, participant, txt_q.id, "y")
    with pytest.raises(MissingImage):
        await submissions.submit(db, store, participant, img_q.id, "text only")


async def test_normal_track_answered_in_order(client, db, team_headers):
    q1, q2, _ = await add_track(db, 3)

    ahead = await client.post(f"/api/submit/{q2.id}", data={"text_answer": "x"}, headers=team_headers)
    assert ahead.status_code == 422
    assert ahead.json()["error"] == "QuestionNotCurrent"

    assert (await client.post(f"/api/submit/{q1.id}", data={"text_answer": "x"}, headers=team_headers)).status_code == 200
    assert (await client.post(f"/api/submit/{q2.id}", data={"text_answer": "x"}, headers=team_headers)).status_code == 200


async def test_locked_bonus_cannot_be_submitted(client, db, team_headers):
    await add_track(db, 3)
    bonus = await add_question(db, points=100, is_bonus=True)

    resp = await client.post(f"/api/submit/{bonus.id}", data={"text_answer": "x"}, headers=team_headers)
    assert resp.status_code == 422
    assert resp.json()["error"] == "BonusLocked"

    current = await client.get("/api/current-question", headers=team_headers)
    assert current.json()["bonusAnswered"] == 0


async def test_bonus_submit_follows_milestones(db, store, participant, monkeypatch):
    monkeypatch.setattr(settings, "BONUS_MILESTONE", 2)
    q1, q2 = await add_track(db, 2)
    first, second = await add_track(db, 2, is_bonus=True, points=100)

    await submissions.submit(db, store, participant, q1.id, "x")
    with pytest.raises(BonusLocked):
        await submissions.submit(db, store, participant, first.id, "b")

    await submissions.submit(db, store, participant, q2.id, "x")
    await submissions.submit(db, store, participant, first.id, "b")
    # One milestone reached, one bonus claimed
    with pytest.raises(BonusLocked):
        await submissions.submit(db, store, participant, second.id, "b")
    with pytest.raises(AlreadyAnswered):
        await submissions.submit(db, store, participant, first.id, "again")


async def test_question_deleted_during_submit(db, session_factory, store, participant, monkeypatch):
    q = await add_question(db, requires_image=True)
    question_id = q.id

    async def save_after_delete(upload):
        async with session_factory() as other:
            await question_bank.delete_question(other, store, question_id)
        return "late.png"

    monkeypatch.setattr(store, "save", save_after_delete)
    with pytest.raises(NotFoundError):
        await submissions.submit(
            db, store, participant, question_id, "x", SimpleNamespace(filename="proof.png")
        )

    async with session_factory() as session:
        count = await session.scalar(select(func.count(Answer.id)))
    assert count == 0
