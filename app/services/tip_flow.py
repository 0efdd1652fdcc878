"""View-level flows that call the tip client and fold the results into session state."""
from __future__ import annotations

import logging

from app.models.gateway import GatewayError, GatewayErrorKind
from app.models.wellness import WellnessTip
from app.services.tip_client import TipClient
from app.services.wellness_state import WellnessState

logger = logging.getLogger(__name__)

GENERATE_OPERATION = "generate"
DETAILS_OPERATION = "details"

_GENERATE_FAILURES: dict[GatewayErrorKind, tuple[str, str]] = {
    GatewayErrorKind.RATE_LIMIT: ("Slow down there!", "Please wait a moment before generating new tips."),
    GatewayErrorKind.QUOTA: ("Usage limit reached", "Please add credits to continue using AI features."),
}
_GENERIC_FAILURE = ("Oops!", "Failed to generate tips. Please try again.")


async def refresh_tips(state: WellnessState, client: TipClient) -> bool:
    """Replace the session's tips with a freshly generated batch.

    Returns ``True`` when new tips were applied. A failed or abandoned call
    leaves the previous tips in place.
    """

    profile = state.profile
    if profile is None:
        return False

    token = state.begin_operation(GENERATE_OPERATION)
    state.set_is_loading(True)
    try:
        tips = await client.generate(profile)
    except GatewayError as exc:
        if state.is_current(token):
            logger.warning(
                "Tip generation failed: %s",
                exc.message,
                extra={"event": "tips.generate_failed", "kind": exc.kind.value},
            )
            title, description = _GENERATE_FAILURES.get(exc.kind, _GENERIC_FAILURE)
            state.notify(title, description, variant="destructive")
        return False
    else:
        if not state.is_current(token):
            logger.info("Discarding tips for an abandoned request", extra={"event": "tips.discarded"})
            return False
        state.set_tips(tips)
        state.notify("✨ Tips generated!", "Here are your personalized wellness recommendations")
        return True
    finally:
        if state.finish_operation(token):
            state.set_is_loading(False)


async def ensure_tip_details(state: WellnessState, client: TipClient, tip_id: str) -> WellnessTip | None:
    """Expand ``tip_id`` with details once; tips that already have details are returned as-is."""

    tip = state.get_tip(tip_id)
    if tip is None or tip.details:
        return tip

    token = state.begin_operation(f"{DETAILS_OPERATION}:{tip_id}")
    try:
        expanded = await client.expand_details(tip.title)
    except GatewayError as exc:
        if state.is_current(token):
            logger.warning(
                "Loading tip details failed: %s",
                exc.message,
                extra={"event": "tips.details_failed", "kind": exc.kind.value},
            )
            state.notify("Failed to load details", "Please try again", variant="destructive")
        return tip
    else:
        if not state.is_current(token):
            logger.info("Discarding details for an abandoned request", extra={"event": "tips.discarded"})
            return state.get_tip(tip_id)
        return state.update_tip(tip_id, details=expanded.details, action_plan=expanded.action_plan)
    finally:
        state.finish_operation(token)


def toggle_favorite(state: WellnessState, tip: WellnessTip) -> bool:
    """Flip the saved state of ``tip``; returns ``True`` when it is now a favourite."""

    if state.is_favorite(tip.id):
        state.remove_favorite(tip.id)
        state.notify("Removed from favorites", "Tip removed from your saved collection")
        return False

    state.add_favorite(tip)
    state.notify("❤️ Added to favorites!", "You can find this in your favorites")
    return True


__all__ = ["ensure_tip_details", "refresh_tips", "toggle_favorite"]
