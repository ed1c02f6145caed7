from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from assessment.api.deps import get_notifier
from assessment.core.database import get_db
from assessment.core.security import create_access_token
from assessment.main import app
from assessment.services.notifications import RecordingNotifier
from assessment.utils.timeutils import utcnow

from conftest import ALICE, BOB, COHORT, MALLORY, two_question_payload


def auth(user_id, role):
    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}


TEACHER_H = auth(1, "teacher")
OTHER_TEACHER_H = auth(2, "teacher")
ADMIN_H = auth(3, "admin")
ALICE_H = auth(ALICE, "student")
BOB_H = auth(BOB, "student")
MALLORY_H = auth(MALLORY, "student")


@pytest.fixture
def api_notifier():
    return RecordingNotifier()


@pytest.fixture
def client(session_factory, api_notifier):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: api_notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


def quiz_body(**overrides):
    now = utcnow()
    body = two_question_payload(
        start_time=(now - timedelta(hours=1)).isoformat(),
        end_time=(now + timedelta(hours=1)).isoformat(),
    )
    body.update(overrides)
    return body


@pytest.fixture
def enrolled(client):
    for learner in (ALICE, BOB):
        response = client.put(f"/api/v1/cohorts/{COHORT}/members/{learner}", headers=TEACHER_H)
        assert response.status_code == 204


@pytest.fixture
def class_quiz(client, enrolled):
    response = client.post("/api/v1/quizzes", json=quiz_body(), headers=TEACHER_H)
    assert response.status_code == 201, response.text
    return response.json()


def answers(quiz, *texts):
    return [
        {"question_id": q["id"], "submitted_answer": text}
        for q, text in zip(quiz["questions"], texts)
    ]


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

    detailed = client.get("/api/v1/health/detailed").json()
    assert detailed["checks"]["database"] == "healthy"
    assert "resources" in detailed["checks"]


def test_requests_need_a_valid_token(client):
    response = client.get("/api/v1/quizzes")
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "AUTHENTICATION_ERROR"

    response = client.get("/api/v1/quizzes", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_students_cannot_author(client):
    response = client.post("/api/v1/quizzes", json=quiz_body(), headers=ALICE_H)
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "AUTHORIZATION_ERROR"


def test_create_quiz(client, class_quiz, api_notifier):
    assert class_quiz["total_marks"] == 10
    assert class_quiz["status"] == "active"
    assert class_quiz["question_count"] == 2
    assert class_quiz["questions"][0]["options"][0] == {"text": "Paris", "is_correct": True}
    assert len(api_notifier.events) == 1


def test_invalid_questions_are_reported_per_index(client):
    body = quiz_body(questions=[two_question_payload()["questions"][0], {"text": "", "marks": 0}])
    response = client.post("/api/v1/quizzes", json=body, headers=TEACHER_H)
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"]["errors"][0]["index"] == 1


def test_malformed_body_is_422(client):
    response = client.post("/api/v1/quizzes", json={"name": "x"}, headers=TEACHER_H)
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_class_quiz_flow(client, class_quiz, api_notifier):
    quiz_id = class_quiz["id"]

    view = client.get(f"/api/v1/quizzes/{quiz_id}", headers=ALICE_H).json()
    assert view["answers_revealed"] is False
    assert all(o["is_correct"] is None for q in view["questions"] for o in q["options"])

    started = client.post(f"/api/v1/quizzes/{quiz_id}/start", headers=ALICE_H)
    assert started.status_code == 200
    assert started.json()["duration_minutes"] == 30

    again = client.post(f"/api/v1/quizzes/{quiz_id}/start", headers=ALICE_H)
    assert again.status_code == 400
    assert again.json()["error"]["code"] == "CONFLICT"
    assert again.json()["error"]["message"] == "Quiz already started or submitted"

    submitted = client.post(
        f"/api/v1/quizzes/{quiz_id}/submit",
        json={"answers": answers(class_quiz, "Paris", "Seville")},
        headers=ALICE_H,
    )
    assert submitted.status_code == 200
    assert submitted.json() == {
        "total_marks": 5.0,
        "percentage": 50.0,
        "passed": True,
        "time_taken": 0,
        "status": "graded",
    }

    view = client.get(f"/api/v1/quizzes/{quiz_id}", headers=ALICE_H).json()
    assert view["answers_revealed"] is True
    assert view["attempt_status"] == "graded"

    history = client.get("/api/v1/quizzes/my-submissions", headers=ALICE_H).json()
    assert [h["quiz_id"] for h in history] == [quiz_id]

    results = client.get(f"/api/v1/quizzes/{quiz_id}/results", headers=TEACHER_H).json()
    assert results["stats"]["total_submissions"] == 1
    assert results["results"][0]["learner_id"] == ALICE

    assert client.get(f"/api/v1/quizzes/{quiz_id}/results", headers=OTHER_TEACHER_H).status_code == 403
    assert any(e.type == "attempt_submitted" for e in api_notifier.events)


def test_submit_before_start_is_404(client, class_quiz):
    response = client.post(
        f"/api/v1/quizzes/{class_quiz['id']}/submit", json={"answers": []}, headers=BOB_H
    )
    assert response.status_code == 404


def test_outsiders_cannot_start(client, class_quiz):
    response = client.post(f"/api/v1/quizzes/{class_quiz['id']}/start", headers=MALLORY_H)
    assert response.status_code == 403


def test_question_edits_after_attempts_are_refused(client, class_quiz):
    quiz_id = class_quiz["id"]
    client.post(f"/api/v1/quizzes/{quiz_id}/start", headers=BOB_H)

    response = client.put(
        f"/api/v1/quizzes/{quiz_id}",
        json={"questions": two_question_payload()["questions"][:1]},
        headers=TEACHER_H,
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "CONFLICT"

    response = client.put(f"/api/v1/quizzes/{quiz_id}", json={"name": "Renamed"}, headers=TEACHER_H)
    assert response.status_code == 200
    assert response.json()["name"] == "Renamed"


def test_status_changes_and_delete(client, enrolled):
    draft = client.post("/api/v1/quizzes", json=quiz_body(status="draft"), headers=TEACHER_H).json()

    response = client.post(
        f"/api/v1/quizzes/{draft['id']}/status", json={"status": "completed"}, headers=TEACHER_H
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_STATE"

    response = client.post(
        f"/api/v1/quizzes/{draft['id']}/status", json={"status": "active"}, headers=TEACHER_H
    )
    assert response.json()["status"] == "active"

    assert client.delete(f"/api/v1/quizzes/{draft['id']}", headers=OTHER_TEACHER_H).status_code == 403
    assert client.delete(f"/api/v1/quizzes/{draft['id']}", headers=TEACHER_H).status_code == 204
    assert client.get(f"/api/v1/quizzes/{draft['id']}", headers=TEACHER_H).status_code == 404


def test_override_and_regrade(client, class_quiz):
    quiz_id = class_quiz["id"]
    client.post(f"/api/v1/quizzes/{quiz_id}/start", headers=ALICE_H)
    client.post(
        f"/api/v1/quizzes/{quiz_id}/submit",
        json={"answers": answers(class_quiz, "Lyon", "Seville")},
        headers=ALICE_H,
    )

    response = client.patch(
        f"/api/v1/quizzes/{quiz_id}/attempts/{ALICE}",
        json={"marks_obtained": 6, "feedback": "Good reasoning"},
        headers=TEACHER_H,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["total_marks_obtained"] == 6
    assert body["percentage"] == 60
    assert body["passed"] is True
    assert body["feedback"] == "Good reasoning"

    regrade = client.post(f"/api/v1/quizzes/{quiz_id}/regrade", headers=TEACHER_H).json()
    assert regrade == {"quiz_id": quiz_id, "regraded": 0}


def test_battle_flow_and_leaderboard(client, enrolled):
    battle = client.post(
        "/api/v1/quizzes", json=quiz_body(variant="battle", cohort_id=None), headers=TEACHER_H
    ).json()

    pool = client.get("/api/v1/battle/quizzes", headers=ALICE_H).json()
    assert [q["id"] for q in pool] == [battle["id"]]

    response = client.post(
        f"/api/v1/battle/quizzes/{battle['id']}/submit",
        json={"answers": answers(battle, "Paris", "Madrid"), "time_spent": 30},
        headers=ALICE_H,
    )
    assert response.status_code == 201
    body = response.json()
    assert body["score"] == 10
    assert body["correct_answers"] == 2
    assert body["quiz"]["answers_revealed"] is True

    client.post(
        f"/api/v1/battle/quizzes/{battle['id']}/submit",
        json={"answers": answers(battle, "Paris", "Seville")},
        headers=BOB_H,
    )

    stats = client.get("/api/v1/battle/my-stats", headers=ALICE_H).json()
    assert stats["total_attempts"] == 1
    assert stats["win_rate"] == 100

    board = client.get(f"/api/v1/leaderboard/cohorts/{COHORT}", headers=BOB_H).json()
    assert [row["learner_id"] for row in board["leaderboard"]] == [ALICE, BOB]
    assert board["current_user"]["rank"] == 2
    assert board["current_user"]["percentile"] == 0

    assert client.get(f"/api/v1/leaderboard/cohorts/{COHORT}", headers=MALLORY_H).status_code == 403
    assert client.get("/api/v1/leaderboard/cohorts/999", headers=TEACHER_H).status_code == 404


def test_roster_admin(client, enrolled):
    members = client.get(f"/api/v1/cohorts/{COHORT}/members", headers=ADMIN_H).json()
    assert members == {"cohort_id": COHORT, "learner_ids": [ALICE, BOB]}

    assert client.delete(f"/api/v1/cohorts/{COHORT}/members/{BOB}", headers=ADMIN_H).status_code == 204
    assert client.delete(f"/api/v1/cohorts/{COHORT}/members/{BOB}", headers=ADMIN_H).status_code == 404
    assert client.get(f"/api/v1/cohorts/{COHORT}/members", headers=ALICE_H).status_code == 403


def test_request_id_is_echoed(client):
    response = client.get("/api/v1/health", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"


def test_teachers_only_list_their_own_quizzes(client, enrolled):
    draft = client.post("/api/v1/quizzes", json=quiz_body(status="draft"), headers=TEACHER_H).json()

    own = client.get("/api/v1/quizzes", headers=TEACHER_H).json()
    assert [q["id"] for q in own] == [draft["id"]]
    assert own[0]["submission_count"] == 0

    assert client.get("/api/v1/quizzes", headers=OTHER_TEACHER_H).json() == []
    assert [q["id"] for q in client.get("/api/v1/quizzes", headers=ADMIN_H).json()] == [draft["id"]]
    assert client.get("/api/v1/quizzes?mine=true", headers=ADMIN_H).json() == []


def test_battle_pool_hides_other_cohorts_from_students(client, enrolled):
    open_battle = client.post(
        "/api/v1/quizzes", json=quiz_body(variant="battle", cohort_id=None), headers=TEACHER_H
    ).json()
    cohort_battle = client.post(
        "/api/v1/quizzes", json=quiz_body(variant="battle", cohort_id=COHORT), headers=TEACHER_H
    ).json()

    alice_pool = {q["id"] for q in client.get("/api/v1/battle/quizzes", headers=ALICE_H).json()}
    assert alice_pool == {open_battle["id"], cohort_battle["id"]}

    mallory_pool = [q["id"] for q in client.get("/api/v1/battle/quizzes", headers=MALLORY_H).json()]
    assert mallory_pool == [open_battle["id"]]

    listed = [q["id"] for q in client.get("/api/v1/quizzes", headers=MALLORY_H).json()]
    assert listed == [open_battle["id"]]
