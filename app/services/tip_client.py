"""Client-side access to the tip gateway, in-process or through the HTTP proxy."""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
import time
from typing import Any, Callable, Protocol

import httpx

from app.models.gateway import GatewayError, GatewayErrorKind
from app.models.wellness import TipDetails, UserProfile, WellnessTip
from app.services.tip_gateway import WellnessTipGateway

logger = logging.getLogger(__name__)


class TipTransport(Protocol):
    """Deliver a proxy request body and return the decoded JSON reply."""

    async def send(self, body: dict[str, Any]) -> Any:
        """Raise ``GatewayError`` on failure."""


@dataclass(slots=True)
class InProcessTipTransport:
    """Call the gateway directly when the proxy runs in the same process."""

    gateway: WellnessTipGateway

    async def send(self, body: dict[str, Any]) -> Any:
        return await self.gateway.handle(
            body.get("type", "generate"),
            age=body.get("age"),
            gender=body.get("gender"),
            goal=body.get("goal"),
            tip_title=body.get("tipTitle"),
        )


class HTTPProxyTipTransport:
    """POST requests to a deployed proxy endpoint and decode its error bodies."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def send(self, body: dict[str, Any]) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=body)
        except httpx.HTTPError as exc:
            raise GatewayError(GatewayErrorKind.UNKNOWN, f"Failed to reach tip proxy: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            if response.is_error:
                raise GatewayError(
                    GatewayErrorKind.from_status(response.status_code),
                    f"Tip proxy error: {response.status_code}",
                ) from exc
            raise GatewayError.invalid_format() from exc

        if response.is_error:
            raise self._decode_error(response.status_code, payload)
        return payload

    @staticmethod
    def _decode_error(status_code: int, payload: Any) -> GatewayError:
        fallback = GatewayErrorKind.from_status(status_code)
        if status_code >= 500 and fallback is GatewayErrorKind.UPSTREAM:
            fallback = GatewayErrorKind.UNKNOWN
        if not isinstance(payload, dict):
            return GatewayError(fallback, f"Tip proxy error: {status_code}")
        kind = GatewayErrorKind.parse(payload.get("kind"), default=fallback)
        message = payload.get("error")
        return GatewayError(kind, message if isinstance(message, str) else f"Tip proxy error: {status_code}")


def _milliseconds() -> int:
    return time.time_ns() // 1_000_000


@dataclass(slots=True)
class TipIdFactory:
    """Hand out ``<batch>-<index>`` ids whose batch number never repeats.

    The batch number is the millisecond clock, bumped past the previous batch
    when two batches are requested within the same millisecond.
    """

    clock: Callable[[], int] = _milliseconds
    _last: int = field(default=0, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def next_batch(self) -> int:
        with self._lock:
            stamp = max(int(self.clock()), self._last + 1)
            self._last = stamp
            return stamp

    def assign(self, count: int) -> list[str]:
        batch = self.next_batch()
        return [f"{batch}-{index}" for index in range(count)]


def _clean_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


@dataclass(slots=True)
class TipClient:
    """Generate tips and expand tip details for the views."""

    transport: TipTransport
    ids: TipIdFactory = field(default_factory=TipIdFactory)

    async def generate(self, profile: UserProfile) -> list[WellnessTip]:
        """Return freshly generated tips for ``profile`` with ids assigned."""

        body = {"type": "generate", **profile.as_payload()}
        data = await self.transport.send(body)
        if not isinstance(data, list):
            raise GatewayError.invalid_format("Invalid response format")

        if not all(isinstance(item, dict) for item in data):
            logger.warning("Tip reply contains non-object entries", extra={"event": "tips.invalid_entry"})
            raise GatewayError.invalid_format("Invalid response format")

        items = list(data)
        tip_ids = self.ids.assign(len(items))
        return [
            WellnessTip(
                id=tip_id,
                title=_clean_text(item.get("title")),
                summary=_clean_text(item.get("summary")),
                icon=_clean_text(item.get("icon")),
            )
            for tip_id, item in zip(tip_ids, items)
        ]

    async def expand_details(self, tip_title: str) -> TipDetails:
        """Return the details and action plan for a tip title."""

        data = await self.transport.send({"type": "details", "tipTitle": tip_title})
        if not isinstance(data, dict) or not data.get("details") or not data.get("actionPlan"):
            raise GatewayError.invalid_format("Invalid response format")

        details = data["details"]
        action_plan = data["actionPlan"]
        if not isinstance(details, str) or not isinstance(action_plan, list):
            raise GatewayError.invalid_format("Invalid response format")

        steps = [step.strip() for step in action_plan if isinstance(step, str) and step.strip()]
        return TipDetails(details=details.strip(), action_plan=steps)


__all__ = [
    "HTTPProxyTipTransport",
    "InProcessTipTransport",
    "TipClient",
    "TipIdFactory",
    "TipTransport",
]
