import json

import httpx
import pytest

from fitplan.preferences import PreferenceError
from fitplan.services.plan_service import PlanGenerationService
from fitplan.services.providers import (
    Candidate,
    FinishReason,
    GenerationMeta,
    GenerationProvider,
    GenerationResult,
    MockProvider,
    MultiModelProvider,
    ProviderExhausted,
    RetryPolicy,
)

RAW = {
    "daysPerWeek": 3,
    "minutesPerSession": 45,
    "equipment": "minimal",
    "level": "beginner",
    "goal": "general_fitness",
    "addCore": True,
    "addCardio": True,
}


class StaticProvider(GenerationProvider):
    kind = "static"

    def __init__(self, text: str, block_reason: str | None = None) -> None:
        self.text = text
        self.block_reason = block_reason
        self.calls = 0

    async def generate(self, messages, temperature=0.6):
        self.calls += 1
        finish = FinishReason.BLOCKED if self.block_reason else FinishReason.COMPLETE
        return GenerationResult(
            text=self.text,
            meta=GenerationMeta(
                provider_kind=self.kind,
                model_id="static-1",
                finish_reason=finish,
                block_reason=self.block_reason,
            ),
        )


async def _no_sleep(_: float) -> None:
    return None


@pytest.mark.asyncio
async def test_mock_provider_gives_deterministic_full_body_plan(db):
    plan = await PlanGenerationService(MockProvider()).create("user-1", RAW)

    assert plan.title == "General Fitness • 3d x 45m (beginner)"
    assert [d.day_order for d in plan.days] == [1, 2, 3]
    for day in plan.days:
        assert day.focus == "Full-Body"
        names = [e.name for e in day.exercises]
        assert names[:3] == ["Dumbbell Goblet Squat", "DB Bench Press", "DB Row"]
        assert all((e.sets, e.rest_sec) == (3, 60) for e in day.exercises[:4])
        assert "Plank" in names
        assert "Steady Jog / Bike / Row" in names

    stored = await db.fetch_plan(plan.id, "user-1")
    assert stored is not None and stored.days == plan.days


@pytest.mark.asyncio
async def test_fenced_single_day_reply_is_padded_to_three_days(db):
    reply = (
        "Here is your plan:\n```json\n"
        + json.dumps(
            {
                "title": "Coach Plan",
                "days": [
                    {
                        "dayOrder": 1,
                        "focus": "Upper",
                        "exercises": [
                            {"name": "Push-up", "sets": 3, "repsOrTime": "10", "restSec": 60}
                        ],
                    }
                ],
            }
        )
        + "\n```"
    )
    plan = await PlanGenerationService(StaticProvider(reply)).create("user-1", RAW)

    assert plan.title == "Coach Plan"
    assert [d.day_order for d in plan.days] == [1, 2, 3]
    assert plan.days[0].focus == "Upper"
    assert [e.name for e in plan.days[0].exercises] == ["Push-up"]
    assert plan.days[1].focus == "Full-Body"
    assert plan.days[2].focus == "Full-Body"


@pytest.mark.asyncio
async def test_truncated_reply_is_continued_before_extraction(db):
    full = json.dumps(
        {
            "title": "Continued",
            "days": [
                {"dayOrder": i, "focus": f"Day {i}", "exercises": [{"name": f"Move {i}"}]}
                for i in (1, 2, 3)
            ],
        }
    )
    head, tail = full[:40], full[40:]
    replies = iter(
        [
            {"candidates": [{"content": {"parts": [{"text": head}]}, "finishReason": "MAX_TOKENS"}]},
            {"candidates": [{"content": {"parts": [{"text": tail}]}, "finishReason": "STOP"}]},
        ]
    )

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=next(replies))

    provider = MultiModelProvider(
        [Candidate("https://g.test/v1", "m1")],
        api_key="k",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        retry=RetryPolicy(sleep=_no_sleep),
        max_continue_rounds=1,
    )
    plan = await PlanGenerationService(provider).create("user-1", RAW)
    await provider.aclose()

    assert plan.title == "Continued"
    assert [d.focus for d in plan.days] == ["Day 1", "Day 2", "Day 3"]


@pytest.mark.asyncio
async def test_blocked_generation_falls_back_to_builder(db):
    provider = StaticProvider('{"title": "Ignored", "days": []}', block_reason="SAFETY")
    plan = await PlanGenerationService(provider).create("user-1", RAW)
    assert plan.title.startswith("General Fitness")
    assert all(d.focus == "Full-Body" for d in plan.days)


@pytest.mark.asyncio
async def test_invalid_preferences_skip_generation_and_storage(db):
    provider = StaticProvider("{}")
    with pytest.raises(PreferenceError):
        await PlanGenerationService(provider).create("user-1", {**RAW, "daysPerWeek": 7})
    assert provider.calls == 0
    assert await db.latest_plan("user-1") is None


@pytest.mark.asyncio
async def test_fail_closed_exhaustion_propagates(db):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": "down"})

    provider = MultiModelProvider(
        [Candidate("https://g.test/v1", "m1")],
        api_key="k",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        retry=RetryPolicy(max_retries=1, sleep=_no_sleep),
    )
    with pytest.raises(ProviderExhausted):
        await PlanGenerationService(provider).create("user-1", RAW)
    await provider.aclose()
    assert await db.latest_plan("user-1") is None


@pytest.mark.asyncio
async def test_create_deterministic_never_calls_provider(db):
    provider = StaticProvider("{}")
    plan = await PlanGenerationService(provider).create_deterministic("user-1", RAW)
    assert provider.calls == 0
    assert len(plan.days) == 3


@pytest.mark.asyncio
async def test_preview_returns_generation_result():
    result = await PlanGenerationService(MockProvider()).preview(RAW)
    assert result.meta.finish_reason is FinishReason.COMPLETE
    assert "Full-Body" in result.text
