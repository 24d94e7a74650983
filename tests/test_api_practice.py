"""API tests for the practice endpoints."""

import pytest
from fastapi.testclient import TestClient

from adaptive_practice.core.config import settings
from adaptive_practice.integrations.pool import ItemPool
from adaptive_practice.learning_engine.contracts import GeneratedItem
from adaptive_practice.main import create_app
from tests.helpers.seed import seed_curriculum

PREFIX = f"{settings.API_PREFIX}/practice"


@pytest.fixture
def client(orchestrator, session_factory):
    app = create_app(orchestrator=orchestrator, session_factory=session_factory)
    return TestClient(app)


class TestNextItem:
    def test_serves_first_topic(self, client, db):
        seed_curriculum(db)

        resp = client.get(f"{PREFIX}/next", params={"student_id": 1})

        assert resp.status_code == 200
        body = resp.json()
        assert body["error"] is False
        assert body["strategy_code"] == "SKILL_ADVANCE"
        assert body["strategy"] == "New skill"
        assert body["item"]["id"] == 11
        assert body["item"]["topic_id"] == 1
        assert "X-Request-ID" in resp.headers

    def test_exhausted_is_not_an_http_error(self, client):
        resp = client.get(f"{PREFIX}/next", params={"student_id": 1})
        assert resp.status_code == 200
        body = resp.json()
        assert body["error"] is True
        assert body["retryable"] is True
        assert body["message"] == "We're preparing your next question. Please try again in a moment."
        assert body["item"] is None

    def test_invalid_student_id(self, client):
        resp = client.get(f"{PREFIX}/next", params={"student_id": 0})
        assert resp.status_code == 422
        assert resp.json()["error_code"] == "VALIDATION_ERROR"

    def test_engine_not_ready(self, session_factory):
        app = create_app()
        app.state.session_factory = session_factory
        resp = TestClient(app).get(f"{PREFIX}/next", params={"student_id": 1})
        assert resp.status_code == 503
        assert resp.json()["error_code"] == "ENGINE_NOT_READY"


class TestSubmit:
    def test_records_answer(self, client, db):
        seed_curriculum(db)

        resp = client.post(
            f"{PREFIX}/submit",
            json={"student_id": 1, "item_id": 11, "correct": False, "duration_ms": 40000},
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["topic_id"] == 1
        assert body["quality"] == 1
        assert body["p_mastery"] == pytest.approx(0.14576, abs=1e-4)
        assert set(body["steps"]) == {"mastery", "ledger", "drill", "review", "event"}
        assert all(step["status"] == "ok" for step in body["steps"].values())

    def test_unknown_item_is_rejected(self, client, db):
        seed_curriculum(db)
        resp = client.post(f"{PREFIX}/submit", json={"student_id": 1, "item_id": 999, "correct": True})
        assert resp.status_code == 422
        assert resp.json()["error_code"] == "VALIDATION_ERROR"
        assert resp.json()["details"] == {"item_id": 999}

    def test_negative_duration_rejected(self, client, db):
        resp = client.post(
            f"{PREFIX}/submit",
            json={"student_id": 1, "item_id": 11, "correct": True, "duration_ms": -1},
        )
        assert resp.status_code == 422

    def test_skipped_step_reported(self, client, db, cache):
        seed_curriculum(db)
        cache.fail_ops.add("zincrby")
        resp = client.post(f"{PREFIX}/submit", json={"student_id": 1, "item_id": 11, "correct": False})
        assert resp.status_code == 200
        assert resp.json()["steps"]["ledger"]["status"] == "skipped"


class TestWeights:
    def test_defaults(self, client):
        resp = client.get(f"{PREFIX}/weights/1")
        assert resp.status_code == 200
        assert resp.json() == {"mistake": 30, "weakness": 30, "review": 20, "advance": 20}

    def test_update_and_read_back(self, client):
        weights = {"mistake": 100, "weakness": 0, "review": 0, "advance": 0}
        assert client.put(f"{PREFIX}/weights/1", json=weights).json() == weights
        assert client.get(f"{PREFIX}/weights/1").json() == weights
        assert client.get(f"{PREFIX}/weights/2").json()["mistake"] == 30

    def test_must_sum_to_100(self, client):
        resp = client.put(f"{PREFIX}/weights/1", json={"mistake": 50, "weakness": 30, "review": 10, "advance": 0})
        assert resp.status_code == 422
        assert resp.json()["error_code"] == "VALIDATION_ERROR"


class TestReportingEndpoints:
    def test_mastery_and_prediction(self, client, db):
        seed_curriculum(db)
        client.post(f"{PREFIX}/submit", json={"student_id": 1, "item_id": 11, "correct": True})

        mastery = client.get(f"{PREFIX}/mastery/1").json()
        assert [m["topic_id"] for m in mastery] == [1]
        assert mastery[0]["n_attempts"] == 1

        prediction = client.get(f"{PREFIX}/prediction/1").json()
        assert prediction["practice_count"] == 1
        assert prediction["coverage"] == 0.25


class TestHealth:
    def test_health(self, client):
        assert client.get(f"{settings.API_PREFIX}/health").json() == {"status": "ok"}

    def test_ready(self, client):
        body = client.get(f"{settings.API_PREFIX}/ready").json()
        assert body["status"] == "ok"
        assert set(body["checks"]) == {"db", "cache"}

    def test_ready_reports_cache_down(self, client, cache):
        cache.fail_ops.add("get")
        body = client.get(f"{settings.API_PREFIX}/ready").json()
        assert body["status"] == "down"
        assert body["checks"]["cache"]["status"] == "down"


def test_pool_item_served_over_api(client, db, cache, orchestrator):
    orchestrator.pool = ItemPool(cache)
    orchestrator.pool.push("math", [GeneratedItem(stem="Fallback question")])

    body = client.get(f"{PREFIX}/next", params={"student_id": 5}).json()

    assert body["strategy_code"] == "POOL"
    assert body["item"]["stem"] == "Fallback question"
