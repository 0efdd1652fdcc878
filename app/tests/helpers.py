"""Test doubles shared across the suite."""

from __future__ import annotations

import copy
from typing import Any

from langchain_core.messages import AIMessage

from app.models.wellness import WellnessTip


SAMPLE_TIPS_JSON = """
[
  {"title": "Hydrate First Thing", "summary": "Drink water right after waking up.", "icon": "💧"},
  {"title": "Walk After Dinner", "summary": "A short walk helps digestion and sleep.", "icon": "🚶"},
  {"title": "Screens Off Early", "summary": "Stop screens an hour before bed.", "icon": "📵"},
  {"title": "Cool Dark Bedroom", "summary": "Keep your room cool and dark at night.", "icon": "🌙"},
  {"title": "Consistent Wake Time", "summary": "Wake up at the same time every day.", "icon": "⏰"}
]
""".strip()

SAMPLE_DETAILS = {
    "details": "Hydration supports every system.\n\nStart small and build the habit.",
    "actionPlan": ["Step 1: Keep a glass by the bed", "Step 2: Drink it on waking", "Step 3: Track for a week"],
}


class FakeChatModel:
    """Async stand-in for a LangChain chat model returning canned replies."""

    def __init__(self, *responses: str | Exception) -> None:
        self._responses = list(responses) or [""]
        self.calls: list[Any] = []

    async def ainvoke(self, input: Any, **_: Any) -> AIMessage:
        self.calls.append(input)
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, Exception):
            raise response
        return AIMessage(content=response)


class StubTransport:
    """Tip transport returning queued replies (or raising queued errors)."""

    def __init__(self, *replies: Any) -> None:
        self._replies = list(replies)
        self.bodies: list[dict[str, Any]] = []

    async def send(self, body: dict[str, Any]) -> Any:
        self.bodies.append(dict(body))
        reply = self._replies.pop(0) if len(self._replies) > 1 else self._replies[0]
        if isinstance(reply, Exception):
            raise reply
        return copy.deepcopy(reply)


def build_tip(index: int, *, batch: str = "1700000000000", details: str | None = None) -> WellnessTip:
    return WellnessTip(
        id=f"{batch}-{index}",
        title=f"Tip {index}",
        summary=f"Summary {index}",
        icon="🌿",
        details=details,
    )
