"""
Tests for the plan and generation HTTP routes.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("EXTERNAL_MODEL", "false")

import pytest
from fastapi.testclient import TestClient

from fitplan.server.main import app
from fitplan.services.plan_service import PlanGenerationService
from fitplan.services.providers import (
    FinishReason,
    GenerationMeta,
    GenerationProvider,
    GenerationResult,
    ProviderExhausted,
)

PREFS = {
    "daysPerWeek": 4,
    "minutesPerSession": 60,
    "equipment": "full",
    "level": "intermediate",
    "goal": "build_muscle",
}
HEADERS = {"X-User-Id": "user-42"}


class ScriptedProvider(GenerationProvider):
    kind = "scripted"

    def __init__(self, text="", finish=FinishReason.COMPLETE, block_reason=None, error=None):
        self.text = text
        self.finish = finish
        self.block_reason = block_reason
        self.error = error

    async def generate(self, messages, temperature=0.6):
        if self.error:
            raise self.error
        return GenerationResult(
            text=self.text,
            meta=GenerationMeta(
                provider_kind=self.kind,
                model_id="s1",
                finish_reason=self.finish,
                block_reason=self.block_reason,
            ),
        )

    async def list_models(self):
        return [{"id": "s1"}]


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def _use(provider: GenerationProvider) -> None:
    app.state.plan_service = PlanGenerationService(provider)


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    body = r.json()
    assert "system" in body
    assert body["provider"]["kind"] == "mock"


def test_owner_header_is_required(client):
    r = client.post("/api/v1/workout/plan", json=PREFS)
    assert r.status_code == 401


def test_overlong_owner_id_is_rejected(client):
    shared = "u" * 64
    r = client.post("/api/v1/workout/plan", json=PREFS, headers={"X-User-Id": shared + "a"})
    assert r.status_code == 400

    r = client.post("/api/v1/workout/plan", json=PREFS, headers={"X-User-Id": shared})
    assert r.status_code == 200
    r = client.get("/api/v1/workout/plans", headers={"X-User-Id": shared + "b"})
    assert r.status_code == 400


def test_invalid_preferences_return_400(client):
    r = client.post("/api/v1/workout/plan", json={**PREFS, "equipment": "fullGym"}, headers=HEADERS)
    assert r.status_code == 400
    assert "equipment" in r.json()["error"]

    r = client.post("/api/v1/ai/workout-plan", json=[1, 2], headers=HEADERS)
    assert r.status_code == 400


def test_plan_lifecycle(client):
    r = client.post("/api/v1/workout/plan", json=PREFS, headers=HEADERS)
    assert r.status_code == 200
    plan = r.json()
    assert plan["daysPerWeek"] == 4
    assert [d["focus"] for d in plan["days"]] == ["Upper", "Lower", "Upper", "Lower"]
    first = plan["days"][0]["exercises"][0]
    assert set(first) >= {"seq", "name", "sets", "repsOrTime", "restSec", "notes"}

    r = client.get(f"/api/v1/workout/plan/{plan['id']}", headers=HEADERS)
    assert r.status_code == 200
    assert r.json()["days"] == plan["days"]

    r = client.get(f"/api/v1/workout/plan/{plan['id']}", headers={"X-User-Id": "intruder"})
    assert r.status_code == 404

    r = client.get("/api/v1/workout/plan/latest", headers=HEADERS)
    assert r.json()["id"] == plan["id"]

    r = client.get("/api/v1/workout/plans", headers=HEADERS)
    assert [p["id"] for p in r.json()] == [plan["id"]]
    assert "createdAt" in r.json()[0]

    r = client.delete(f"/api/v1/workout/plan/{plan['id']}", headers=HEADERS)
    assert r.json() == {"ok": True}
    r = client.delete(f"/api/v1/workout/plan/{plan['id']}", headers=HEADERS)
    assert r.status_code == 404
    assert client.get("/api/v1/workout/plan/latest", headers=HEADERS).json() is None


def test_ai_plan_uses_generated_days(client):
    _use(
        ScriptedProvider(
            '{"title": "Gen", "days": [{"focus": "Chest", "exercises": [{"name": "Dip"}]}]}'
        )
    )
    r = client.post("/api/v1/ai/workout-plan", json=PREFS, headers=HEADERS)
    assert r.status_code == 200
    plan = r.json()
    assert plan["title"] == "Gen"
    assert plan["days"][0]["focus"] == "Chest"
    assert len(plan["days"]) == 4


def test_ai_plan_exhausted_returns_503(client):
    _use(ScriptedProvider(error=ProviderExhausted("down")))
    r = client.post("/api/v1/ai/workout-plan", json=PREFS, headers=HEADERS)
    assert r.status_code == 503


def test_suggest_ok(client):
    _use(ScriptedProvider("Day 1: squats"))
    r = client.post("/api/v1/ai/workout-suggest", json=PREFS, headers=HEADERS)
    assert r.json()["ok"] is True
    assert r.json()["text"] == "Day 1: squats"


def test_suggest_blocked(client):
    _use(ScriptedProvider(finish=FinishReason.BLOCKED, block_reason="SAFETY"))
    r = client.post("/api/v1/ai/workout-suggest", json=PREFS, headers=HEADERS)
    assert r.json() == {"ok": False, "error": {"reason": "BLOCKED", "blockReason": "SAFETY"}}


def test_suggest_truncated(client):
    _use(ScriptedProvider("partial", finish=FinishReason.TRUNCATED))
    body = client.post("/api/v1/ai/workout-suggest", json=PREFS, headers=HEADERS).json()
    assert body["ok"] is False
    assert body["error"]["reason"] == "NON_STOP_FINISH"
    assert body["partialText"] == "partial"
    assert body["canContinue"] is True


def test_suggest_empty(client):
    _use(ScriptedProvider("  "))
    body = client.post("/api/v1/ai/workout-suggest", json=PREFS, headers=HEADERS).json()
    assert body == {"ok": False, "error": {"reason": "EMPTY_OUTPUT"}}


def test_models(client):
    _use(ScriptedProvider())
    body = client.get("/api/v1/ai/models").json()
    assert body == {"provider": "scripted", "count": 1, "models": [{"id": "s1"}]}
