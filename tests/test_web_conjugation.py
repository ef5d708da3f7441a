"""Tests for conjugation endpoints."""

import pytest

from escribiendo.core.conjugation_rules import CONJUGATION_RULES
from escribiendo.db import conjugation_repository as repo
from escribiendo.llm.client import LLMError

DRILLS = [
    {
        "sentence": "Yo ___ (hablar) con Ana.",
        "verb": "hablar",
        "pronoun": "yo",
        "tense": "present",
        "correctAnswer": "hablo",
        "ruleId": "regular-present-ar",
        "difficulty": 1,
    },
    {
        "sentence": "Nosotros ___ (cantar) en la fiesta.",
        "verb": "cantar",
        "pronoun": "nosotros",
        "tense": "present",
        "correctAnswer": "cantamos",
        "ruleId": "regular-present-ar",
        "difficulty": 2,
    },
]


@pytest.fixture
def generated(client, fake_llm):
    fake_llm.simple_json.return_value = DRILLS
    response = client.post("/api/conjugation/drills/generate", json={"user_id": "ana"})
    assert response.status_code == 200
    return response.json()


class TestRules:
    """Tests for /api/conjugation/rules."""

    def test_seeded_on_startup(self, client):
        rules = client.get("/api/conjugation/rules").json()
        assert len(rules) == len(CONJUGATION_RULES)
        assert rules[0]["id"] == "regular-present-ar"
        assert rules[0]["is_unlocked"] is True

    def test_create_rule(self, client):
        payload = {
            "id": "vosotros-present",
            "name": "Vosotros present",
            "description": "habláis, coméis, vivís",
            "category": "regular",
            "tenses": ["present"],
            "order": 25,
        }
        response = client.post("/api/conjugation/rules", json=payload)
        assert response.status_code == 201
        assert response.json()["examples"] == []
        assert client.post("/api/conjugation/rules", json=payload).status_code == 400

    def test_create_rule_bad_tense(self, client):
        payload = {
            "id": "x",
            "name": "x",
            "description": "x",
            "category": "regular",
            "tenses": ["pluperfect"],
            "order": 30,
        }
        assert client.post("/api/conjugation/rules", json=payload).status_code == 400


class TestGenerate:
    """Tests for drill generation."""

    def test_generate(self, generated):
        assert len(generated["drills"]) == 2
        assert generated["session"]["status"] == "active"
        assert generated["session"]["drill_ids"] == [d["id"] for d in generated["drills"]]

    def test_generation_failure(self, client, fake_llm):
        fake_llm.simple_json.side_effect = LLMError("down")
        response = client.post("/api/conjugation/drills/generate", json={"user_id": "ana"})
        assert response.status_code == 500

    def test_count_bounds(self, client):
        response = client.post(
            "/api/conjugation/drills/generate", json={"user_id": "ana", "count": 50}
        )
        assert response.status_code == 400

    def test_unknown_model(self, client):
        response = client.post(
            "/api/conjugation/drills/generate", json={"user_id": "ana", "model": "gpt-9"}
        )
        assert response.status_code == 400


class TestAttempts:
    """Tests for /api/conjugation/drills/attempt."""

    def test_computes_correctness(self, client, generated):
        drill = generated["drills"][0]
        response = client.post(
            "/api/conjugation/drills/attempt",
            json={"user_id": "ana", "drill_id": drill["id"], "user_answer": " Hablo "},
        )
        data = response.json()
        assert response.status_code == 200
        assert data["attempt"]["is_correct"] is True
        assert data["correct_answer"] == "hablo"
        assert data["unlock_result"] is None

    def test_explicit_flag_wins(self, client, generated):
        drill = generated["drills"][0]
        data = client.post(
            "/api/conjugation/drills/attempt",
            json={
                "user_id": "ana",
                "drill_id": drill["id"],
                "user_answer": "hablo",
                "is_correct": False,
                "time_spent": 2300,
            },
        ).json()
        assert data["attempt"]["is_correct"] is False
        assert data["attempt"]["time_spent"] == 2300

    def test_unlock_reported(self, client, generated):
        drill = generated["drills"][0]
        data = None
        for _ in range(20):
            data = client.post(
                "/api/conjugation/drills/attempt",
                json={"user_id": "ana", "drill_id": drill["id"], "user_answer": "hablo"},
            ).json()

        unlock = data["unlock_result"]
        assert unlock["unlocked_rule"]["id"] == "regular-present-er"
        assert unlock["accuracy"] == 100

    def test_unknown_drill(self, client):
        response = client.post(
            "/api/conjugation/drills/attempt",
            json={"user_id": "ana", "drill_id": "drill-nope", "user_answer": "x"},
        )
        assert response.status_code == 404


class TestProgress:
    """Tests for progress endpoints."""

    def test_progress_with_active_session(self, client, generated):
        data = client.get("/api/conjugation/progress/ana").json()
        assert data["user_id"] == "ana"
        assert data["progress"][0]["rule"]["id"] == "regular-present-ar"
        assert data["active_session"]["id"] == generated["session"]["id"]

    def test_new_user(self, client):
        data = client.get("/api/conjugation/progress/luis").json()
        assert len(data["progress"]) == 1
        assert data["active_session"] is None

    def test_unlock_action(self, client):
        response = client.post(
            "/api/conjugation/progress/ana", json={"action": "unlock_rule", "rule_id": "ir-present"}
        )
        assert response.status_code == 200
        assert response.json()["is_unlocked"] is True
        assert "ir-present" in repo.get_unlocked_rule_ids("ana")

    def test_unlock_unknown_rule(self, client):
        response = client.post(
            "/api/conjugation/progress/ana", json={"action": "unlock_rule", "rule_id": "nope"}
        )
        assert response.status_code == 404

    def test_unknown_action(self, client):
        response = client.post(
            "/api/conjugation/progress/ana", json={"action": "reset", "rule_id": "ir-present"}
        )
        assert response.status_code == 400

    def test_rule_unlock_progress(self, client):
        data = client.get("/api/conjugation/progress/ana/rules/regular-present-ar").json()
        assert data["attempts_needed"] == 20
        assert data["accuracy_needed"] == 0.9


class TestSessions:
    """Tests for session endpoints."""

    def test_get_session_with_drills(self, client, generated):
        session_id = generated["session"]["id"]
        data = client.get(f"/api/conjugation/sessions/{session_id}", params={"user_id": "ana"}).json()
        assert [d["id"] for d in data["drills"]] == generated["session"]["drill_ids"]

    def test_other_user_cannot_read(self, client, generated):
        session_id = generated["session"]["id"]
        response = client.get(f"/api/conjugation/sessions/{session_id}", params={"user_id": "luis"})
        assert response.status_code == 404

    def test_complete(self, client, generated):
        session_id = generated["session"]["id"]
        response = client.patch(
            f"/api/conjugation/sessions/{session_id}",
            json={"action": "complete", "user_id": "ana"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

        sessions = client.get("/api/conjugation/sessions", params={"user_id": "ana"}).json()
        assert [s["status"] for s in sessions] == ["completed"]

    def test_user_id_required(self, client):
        assert client.get("/api/conjugation/sessions").status_code == 400
