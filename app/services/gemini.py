"""Chat clients that back the tip gateway: Gemini over REST, or an offline stub."""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Sequence

import httpx
from langchain_core.messages import AIMessage

from app.models.gateway import GatewayError, GatewayErrorKind
from app.models.wellness import WellnessGoal

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_TEMPERATURE = 0.8
DEFAULT_TIMEOUT = 30.0


class GeminiHTTPChat:
    """Minimal async client for the Gemini ``generateContent`` endpoint.

    Accepts LangChain messages (or ``{"role", "content"}`` mappings), sends the
    system messages as ``system_instruction`` and everything else as user
    content, and returns the reply text wrapped in an ``AIMessage``. Upstream
    failures surface as ``GatewayError`` so callers can branch on the kind.
    """

    def __init__(
        self,
        model: str = DEFAULT_GEMINI_MODEL,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.model = model
        self.api_key = api_key if api_key is not None else os.getenv("GEMINI_API_KEY")
        self.base_url = (base_url or os.getenv("WELLNESS_GEMINI_URL") or DEFAULT_GEMINI_URL).rstrip("/")
        self.temperature = temperature
        self.timeout = timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def ainvoke(self, messages: Any, **_: Any) -> AIMessage:
        if not self.api_key:
            raise GatewayError(GatewayErrorKind.CONFIGURATION, "GEMINI_API_KEY is not configured")

        payload = self._build_payload(messages)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.endpoint,
                    json=payload,
                    headers={"x-goog-api-key": self.api_key},
                )
        except httpx.HTTPError as exc:
            logger.exception("Gemini request failed", extra={"event": "gemini.transport_error"})
            raise GatewayError(GatewayErrorKind.UNKNOWN, f"Failed to reach Gemini API: {exc}") from exc

        if response.is_error:
            logger.error(
                "Gemini AI error: %s %s",
                response.status_code,
                response.text,
                extra={"event": "gemini.http_error", "status_code": response.status_code},
            )
            raise GatewayError.for_status(response.status_code)

        try:
            data = response.json()
        except ValueError as exc:
            raise GatewayError.invalid_format() from exc
        return AIMessage(content=self._extract_text(data))

    def _build_payload(self, messages: Any) -> dict[str, Any]:
        system_parts: list[dict[str, str]] = []
        user_parts: list[dict[str, str]] = []
        for role, content in self._normalize_messages(messages):
            if role == "system":
                system_parts.append({"text": content})
            else:
                user_parts.append({"text": content})

        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": user_parts}],
            "generationConfig": {"temperature": self.temperature},
        }
        if system_parts:
            payload["system_instruction"] = {"parts": system_parts}
        return payload

    @staticmethod
    def _normalize_messages(messages: Any) -> list[tuple[str, str]]:
        if isinstance(messages, str):
            return [("user", messages)]

        if hasattr(messages, "to_messages"):
            messages = messages.to_messages()

        normalized: list[tuple[str, str]] = []
        if isinstance(messages, Sequence):
            for message in messages:
                if isinstance(message, dict):
                    role = message.get("role") or message.get("type") or "user"
                    content = message.get("content")
                else:
                    role = getattr(message, "type", getattr(message, "role", "user"))
                    content = getattr(message, "content", None)
                text = content if isinstance(content, str) else ""
                normalized.append(("system" if role == "system" else "user", text))
        else:
            normalized.append(("user", str(messages)))
        return normalized

    @staticmethod
    def _extract_text(data: Any) -> str:
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as exc:
            raise GatewayError.invalid_format() from exc

        texts = [part.get("text", "") for part in parts if isinstance(part, dict)]
        text = "".join(item for item in texts if isinstance(item, str))
        if not text:
            raise GatewayError.invalid_format()
        return text


class LocalWellnessResponder:
    """Deterministic responder that fabricates gateway JSON for offline development."""

    async def ainvoke(self, messages: Any, **_: Any) -> AIMessage:
        prompt = _extract_human_prompt(messages)
        if "action plan" in prompt.lower():
            payload: Any = self._details_payload(prompt)
        else:
            payload = self._tips_payload(prompt)
        return AIMessage(content=json.dumps(payload, ensure_ascii=False))

    @staticmethod
    def _tips_payload(prompt: str) -> list[dict[str, str]]:
        goal = next(
            (item for item in WellnessGoal if item.description in prompt),
            WellnessGoal.ENERGY_BOOST,
        )
        focus = goal.label.lower()
        return [
            {"title": "Start With Water", "summary": f"Drink a glass of water on waking to support {focus}.", "icon": "💧"},
            {"title": "Walk After Meals", "summary": "A ten-minute walk after eating steadies energy levels.", "icon": "🚶"},
            {"title": "Protect Your Bedtime", "summary": "Keep a consistent bedtime, even on weekends.", "icon": "🌙"},
            {"title": "Breathe Before Reacting", "summary": "Take three slow breaths when stress starts to build.", "icon": "🌬️"},
            {"title": "Plan One Vegetable", "summary": "Add one extra vegetable to your main meal today.", "icon": "🥦"},
        ]

    @staticmethod
    def _details_payload(prompt: str) -> dict[str, Any]:
        title = prompt.split('"')[1] if prompt.count('"') >= 2 else "this tip"
        return {
            "details": (
                f"{title} is a small habit that compounds over time. Offline responses are "
                "generated locally because no language model is configured.\n\n"
                "Treat this as general guidance and check with a healthcare professional "
                "before making significant changes."
            ),
            "actionPlan": [
                "Step 1: Pick a consistent time of day for the habit.",
                "Step 2: Set a reminder on your phone.",
                "Step 3: Note how you feel after one week.",
            ],
        }


def _extract_human_prompt(messages: Any) -> str:
    if isinstance(messages, str):
        return messages.strip()

    if hasattr(messages, "to_messages"):
        messages = messages.to_messages()

    if isinstance(messages, Sequence):
        for message in reversed(messages):
            if isinstance(message, dict):
                role = message.get("role") or message.get("type")
                content = message.get("content")
            else:
                role = getattr(message, "type", getattr(message, "role", ""))
                content = getattr(message, "content", "")
            if role in {"human", "user"} and isinstance(content, str):
                return content.strip()
    return ""


def create_wellness_llm(provider: str | None = None, *, model_name: str | None = None) -> Any:
    """Construct the chat client used by the tip gateway."""

    provider_key = (provider or os.getenv("WELLNESS_LLM_PROVIDER") or "gemini").strip().lower()

    if provider_key == "gemini":
        return GeminiHTTPChat(
            model=model_name or os.getenv("WELLNESS_GEMINI_MODEL") or DEFAULT_GEMINI_MODEL,
            temperature=float(os.getenv("WELLNESS_MODEL_TEMPERATURE", str(DEFAULT_TEMPERATURE))),
            timeout=float(os.getenv("WELLNESS_LLM_TIMEOUT", str(DEFAULT_TIMEOUT))),
        )

    if provider_key == "local":
        return LocalWellnessResponder()

    raise RuntimeError(f"Unsupported LLM provider: {provider_key}")


__all__ = [
    "DEFAULT_GEMINI_MODEL",
    "GeminiHTTPChat",
    "LocalWellnessResponder",
    "create_wellness_llm",
]
