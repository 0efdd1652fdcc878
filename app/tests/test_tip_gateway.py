from __future__ import annotations

import asyncio
import json

import pytest

from app.models.gateway import GatewayError, GatewayErrorKind
from app.services.tip_gateway import WELLNESS_SYSTEM_PROMPT, WellnessTipGateway, describe_goal
from app.tests.helpers import SAMPLE_DETAILS, SAMPLE_TIPS_JSON, FakeChatModel


def test_generate_sends_system_instruction_and_profile_prompt() -> None:
    llm = FakeChatModel(SAMPLE_TIPS_JSON)
    gateway = WellnessTipGateway(llm=llm)

    result = asyncio.run(gateway.generate(age=34, gender="female", goal="better-sleep"))

    assert isinstance(result, list) and len(result) == 5
    assert result[0] == {"title": "Hydrate First Thing", "summary": "Drink water right after waking up.", "icon": "💧"}

    system_message, human_message = llm.calls[-1]
    assert system_message.content == WELLNESS_SYSTEM_PROMPT
    assert "Generate exactly 5 concise, actionable wellness tips" in human_message.content
    assert "34-year-old female aiming for improved sleep quality and restful nights" in human_message.content
    assert "max 6 words" in human_message.content
    assert '"icon": "relevant emoji"' in human_message.content


def test_unknown_goal_is_passed_through_verbatim() -> None:
    assert describe_goal("better-posture") == "better-posture"
    assert describe_goal("fitness") == "improved fitness and physical strength"


def test_details_prompt_mentions_title_and_action_plan() -> None:
    llm = FakeChatModel(json.dumps(SAMPLE_DETAILS))
    gateway = WellnessTipGateway(llm=llm)

    result = asyncio.run(gateway.details("Hydrate First Thing"))

    assert result == SAMPLE_DETAILS
    _, human_message = llm.calls[-1]
    assert 'wellness tip: "Hydrate First Thing"' in human_message.content
    assert "3-5 step action plan" in human_message.content


@pytest.mark.parametrize(
    "reply",
    [
        f"```json\n{SAMPLE_TIPS_JSON}\n```",
        f"```\n{SAMPLE_TIPS_JSON}\n```",
    ],
)
def test_generate_strips_code_fences(reply: str) -> None:
    gateway = WellnessTipGateway(llm=FakeChatModel(reply))

    result = asyncio.run(gateway.generate(age=40, gender="male", goal="fitness"))

    assert [item["icon"] for item in result] == ["💧", "🚶", "📵", "🌙", "⏰"]


@pytest.mark.parametrize("reply", ["not-json", "", "```json\n```"])
def test_unparseable_reply_raises_format_error(reply: str) -> None:
    gateway = WellnessTipGateway(llm=FakeChatModel(reply))

    with pytest.raises(GatewayError) as excinfo:
        asyncio.run(gateway.generate(age=40, gender="male", goal="fitness"))

    assert excinfo.value.kind is GatewayErrorKind.FORMAT
    assert excinfo.value.message == "Invalid response format from AI"
    assert excinfo.value.status_code == 500


@pytest.mark.parametrize(
    "reply",
    [
        f"Here are your tips:\n{SAMPLE_TIPS_JSON}\nEnjoy!",
        "Sorry, I can only answer in English [1].",
    ],
)
def test_json_wrapped_in_prose_is_a_format_error(reply: str) -> None:
    gateway = WellnessTipGateway(llm=FakeChatModel(reply))

    with pytest.raises(GatewayError) as excinfo:
        asyncio.run(gateway.generate(age=40, gender="male", goal="fitness"))

    assert excinfo.value.kind is GatewayErrorKind.FORMAT


def test_deeply_nested_reply_is_a_format_error() -> None:
    gateway = WellnessTipGateway(llm=FakeChatModel("[" * 5000))

    with pytest.raises(GatewayError) as excinfo:
        asyncio.run(gateway.details("Walk After Dinner"))

    assert excinfo.value.kind is GatewayErrorKind.FORMAT
    assert excinfo.value.message == "Invalid response format from AI"


def test_upstream_gateway_errors_propagate_unchanged() -> None:
    error = GatewayError(GatewayErrorKind.RATE_LIMIT, "Rate limit exceeded. Please try again in a moment.")
    gateway = WellnessTipGateway(llm=FakeChatModel(error))

    with pytest.raises(GatewayError) as excinfo:
        asyncio.run(gateway.details("Walk After Dinner"))

    assert excinfo.value is error


def test_unexpected_llm_failures_become_unknown_errors() -> None:
    gateway = WellnessTipGateway(llm=FakeChatModel(ConnectionError("socket closed")))

    with pytest.raises(GatewayError) as excinfo:
        asyncio.run(gateway.generate(age=22, gender="non-binary", goal="stress-relief"))

    assert excinfo.value.kind is GatewayErrorKind.UNKNOWN
    assert "socket closed" in excinfo.value.message


def test_handle_dispatches_on_request_type() -> None:
    llm = FakeChatModel(json.dumps(SAMPLE_DETAILS), SAMPLE_TIPS_JSON)
    gateway = WellnessTipGateway(llm=llm)

    details = asyncio.run(gateway.handle("details", tip_title="Cool Dark Bedroom"))
    tips = asyncio.run(gateway.handle(age=30, gender="female", goal="energy-boost"))

    assert details["actionPlan"][0].startswith("Step 1")
    assert len(tips) == 5


@pytest.mark.parametrize(
    ("request_type", "fields"),
    [
        ("generate", {"gender": "female", "goal": "fitness"}),
        ("generate", {"age": 30, "goal": "fitness"}),
        ("details", {}),
    ],
)
def test_handle_rejects_missing_fields(request_type: str, fields: dict) -> None:
    llm = FakeChatModel(SAMPLE_TIPS_JSON)
    gateway = WellnessTipGateway(llm=llm)

    with pytest.raises(GatewayError) as excinfo:
        asyncio.run(gateway.handle(request_type, **fields))

    assert excinfo.value.kind is GatewayErrorKind.FORMAT
    assert llm.calls == []
