import json

import pytest
from fastapi.testclient import TestClient

from lecture_qa.api.live_quiz import get_memory_backend
from lecture_qa.core.config import settings
from lecture_qa.main import app


def create(client, lecture_id="geo", title="Capitals live", host_id="host_1"):
    response = client.post(
        "/api/live/sessions",
        json={"title": title, "lectureId": lecture_id, "hostId": host_id},
    )
    assert response.status_code == 201, response.text
    return response.json()


def join(client, access_code, participant_id, name=None):
    return client.post(
        "/api/live/sessions/join",
        json={
            "accessCode": access_code,
            "participantId": participant_id,
            "participantName": name or participant_id,
        },
    )


def submit(client, session_id, participant_id, index, text, time_spent=1):
    return client.post(
        f"/api/live/sessions/{session_id}/answers",
        json={
            "participantId": participant_id,
            "questionIndex": index,
            "answer": text,
            "timeSpent": time_spent,
        },
    )


def test_root_endpoint(client):
    response = client.get("/")

    assert response.json()["status"] == "operational"
    assert "X-Process-Time-Ms" in response.headers


def test_health_with_memory_storage(client, monkeypatch):
    monkeypatch.setattr(settings, "storage_backend", "memory")

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["components"]["storage"]["status"] == "healthy"


def test_create_session(client):
    created = create(client)

    assert created["sessionId"].startswith("live_")
    assert len(created["accessCode"]) == 6


def test_create_session_unknown_lecture(client):
    response = client.post(
        "/api/live/sessions",
        json={"title": "Quiz", "lectureId": "missing", "hostId": "host_1"},
    )

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "lecture_not_found"


def test_create_session_blank_title(client):
    response = client.post(
        "/api/live/sessions",
        json={"title": "   ", "lectureId": "geo", "hostId": "host_1"},
    )

    assert response.status_code == 422


def test_join_with_lowercase_code(client):
    created = create(client)

    response = join(client, created["accessCode"].lower(), "p1", "Alice")

    assert response.status_code == 200
    assert response.json() == {"sessionId": created["sessionId"]}


def test_join_errors_are_distinguishable(client):
    created = create(client)
    join(client, created["accessCode"], "p1")

    duplicate = join(client, created["accessCode"], "p1")
    unknown = join(client, "ZZZZZZ", "p2")

    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["error"] == "already_joined"
    assert unknown.status_code == 404
    assert unknown.json()["detail"]["error"] == "session_not_found"


def test_unknown_session_reads_return_null(client):
    assert client.get("/api/live/sessions/live_missing").json() is None
    assert client.get("/api/live/sessions/live_missing/results").json() is None


def test_unknown_session_mutations_return_404(client):
    for action in ("start", "next", "end"):
        response = client.post(f"/api/live/sessions/live_missing/{action}")
        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "session_not_found"


def test_session_view_hides_answer_unless_requested(client):
    created = create(client)
    client.post(f"/api/live/sessions/{created['sessionId']}/start")

    participant_view = client.get(f"/api/live/sessions/{created['sessionId']}").json()
    host_view = client.get(
        f"/api/live/sessions/{created['sessionId']}", params={"includeAnswer": "true"}
    ).json()

    assert participant_view["currentQuestion"]["qaId"] == "geo_q0"
    assert "answer" not in participant_view["currentQuestion"]
    assert participant_view["currentAnswer"] is None
    assert host_view["currentAnswer"] == "paris"
    assert host_view["lecture"]["title"] == "Capitals"
    assert host_view["status"] == "active"


def test_start_twice_conflicts(client):
    created = create(client)
    client.post(f"/api/live/sessions/{created['sessionId']}/start")

    response = client.post(f"/api/live/sessions/{created['sessionId']}/start")

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "invalid_session_state"


def test_submit_unknown_question(client):
    created = create(client)
    client.post(f"/api/live/sessions/{created['sessionId']}/start")

    response = submit(client, created["sessionId"], "p1", 9, "paris")

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "question_not_found"


@pytest.mark.parametrize("payload", [
    {"participantId": "p1", "questionIndex": -1, "answer": "paris", "timeSpent": 1},
    {"participantId": "p1", "questionIndex": 0, "answer": "paris", "timeSpent": -2},
    {"participantId": "", "questionIndex": 0, "answer": "paris", "timeSpent": 1},
])
def test_submit_rejects_invalid_payload(client, payload):
    created = create(client)

    response = client.post(f"/api/live/sessions/{created['sessionId']}/answers", json=payload)

    assert response.status_code == 422


def test_full_live_session_flow(client):
    created = create(client)
    session_id = created["sessionId"]
    assert join(client, created["accessCode"], "p1", "Alice").status_code == 200
    assert join(client, created["accessCode"], "p2", "Bob").status_code == 200
    assert client.post(f"/api/live/sessions/{session_id}/start").json()["status"] == "active"

    assert submit(client, session_id, "p1", 0, " Paris ", 3).json() == {"isCorrect": True}
    assert submit(client, session_id, "p2", 0, "Pariss", 2).json() == {"isCorrect": False}

    answers = client.get(
        f"/api/live/sessions/{session_id}/answers", params={"questionIndex": 0}
    ).json()
    assert [(a["participantId"], a["isCorrect"]) for a in answers] == [("p1", True), ("p2", False)]

    advanced = client.post(f"/api/live/sessions/{session_id}/next").json()
    assert advanced["currentQuestionIndex"] == 1
    assert submit(client, session_id, "p1", 1, "berlin", 5).json() == {"isCorrect": True}

    ended = client.post(f"/api/live/sessions/{session_id}/next").json()
    assert ended["status"] == "ended"

    after_end = submit(client, session_id, "p2", 1, "berlin")
    assert after_end.status_code == 409

    results = client.get(f"/api/live/sessions/{session_id}/results").json()
    assert [(r["id"], r["correctAnswers"], r["score"]) for r in results["ranking"]] == [
        ("p1", 2, 2),
        ("p2", 0, 0),
    ]
    assert results["totalQuestions"] == 1.5

    hosted = client.get("/api/live/hosts/host_1/sessions").json()
    assert [s["sessionId"] for s in hosted] == [session_id]
    assert hosted[0]["lecture"]["lectureId"] == "geo"


def test_end_session_early_blocks_joining(client):
    created = create(client)

    ended = client.post(f"/api/live/sessions/{created['sessionId']}/end")

    assert ended.status_code == 200
    assert ended.json()["status"] == "ended"
    assert join(client, created["accessCode"], "p1").status_code == 404


@pytest.fixture
def memory_app(monkeypatch, tmp_path):
    seed = tmp_path / "lectures.json"
    seed.write_text(json.dumps({
        "lectures": [{
            "lectureId": "geo",
            "title": "Capitals",
            "questions": [{"qaId": "q1", "question": "Capital of France?", "answer": "Paris"}],
        }]
    }), encoding="utf-8")
    monkeypatch.setattr(settings, "storage_backend", "memory")
    monkeypatch.setattr(settings, "lecture_seed_file", str(seed))
    get_memory_backend.cache_clear()
    yield app
    get_memory_backend.cache_clear()


def test_memory_storage_serves_lectures_from_seed_file(memory_app):
    with TestClient(memory_app) as client:
        created = create(client, lecture_id="geo")
        assert join(client, created["accessCode"], "p1").status_code == 200
        client.post(f"/api/live/sessions/{created['sessionId']}/start")

        assert submit(client, created["sessionId"], "p1", 0, " paris ").json() == {"isCorrect": True}
        session = client.get(f"/api/live/sessions/{created['sessionId']}").json()
        assert session["lecture"]["title"] == "Capitals"


def test_memory_storage_fails_startup_on_missing_seed_file(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "storage_backend", "memory")
    monkeypatch.setattr(settings, "lecture_seed_file", str(tmp_path / "missing.json"))
    get_memory_backend.cache_clear()

    with pytest.raises(FileNotFoundError):
        with TestClient(app):
            pass
    get_memory_backend.cache_clear()


def test_host_sessions_route_documents_error_responses(client):
    schema = client.get("/openapi.json").json()

    responses = schema["paths"]["/api/live/hosts/{host_id}/sessions"]["get"]["responses"]
    assert {"400", "404", "409", "500", "503"} <= set(responses)
