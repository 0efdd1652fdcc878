"""Domain models for profiles, generated tips and saved favourites."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Sequence


def _now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def _string_items(value: Any) -> list[str]:
    """Return the string members of a stored list, ignoring anything else."""

    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [item for item in value if isinstance(item, str)]
    return []


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _text_value(value: Any) -> str:
    return value if isinstance(value, str) else ""


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    NON_BINARY = "non-binary"
    PREFER_NOT_TO_SAY = "prefer-not-to-say"

    @property
    def label(self) -> str:
        return _GENDER_LABELS[self]


class WellnessGoal(str, Enum):
    WEIGHT_LOSS = "weight-loss"
    STRESS_RELIEF = "stress-relief"
    BETTER_SLEEP = "better-sleep"
    ENERGY_BOOST = "energy-boost"
    FITNESS = "fitness"
    MENTAL_CLARITY = "mental-clarity"

    @property
    def label(self) -> str:
        return _GOAL_OPTIONS[self][0]

    @property
    def icon(self) -> str:
        return _GOAL_OPTIONS[self][1]

    @property
    def description(self) -> str:
        """Phrase used when describing the goal to the language model."""
        return _GOAL_OPTIONS[self][2]


_GENDER_LABELS: dict[Gender, str] = {
    Gender.MALE: "Male",
    Gender.FEMALE: "Female",
    Gender.NON_BINARY: "Non-binary",
    Gender.PREFER_NOT_TO_SAY: "Prefer not to say",
}

_GOAL_OPTIONS: dict[WellnessGoal, tuple[str, str, str]] = {
    WellnessGoal.WEIGHT_LOSS: ("Weight Loss", "⚖️", "weight loss and healthy body composition"),
    WellnessGoal.STRESS_RELIEF: ("Stress Relief", "🧘", "stress reduction and relaxation"),
    WellnessGoal.BETTER_SLEEP: ("Better Sleep", "😴", "improved sleep quality and restful nights"),
    WellnessGoal.ENERGY_BOOST: ("Energy Boost", "⚡", "increased energy and vitality"),
    WellnessGoal.FITNESS: ("Fitness", "💪", "improved fitness and physical strength"),
    WellnessGoal.MENTAL_CLARITY: ("Mental Clarity", "🧠", "enhanced mental clarity and focus"),
}

MIN_AGE = 1
MAX_AGE = 119


@dataclass(slots=True, frozen=True)
class UserProfile:
    """The age/gender/goal triple that drives tip generation."""

    age: int
    gender: Gender
    goal: WellnessGoal

    def as_payload(self) -> dict[str, object]:
        """Serialise the profile for a ``generate`` gateway request."""

        return {
            "age": self.age,
            "gender": self.gender.value,
            "goal": self.goal.value,
        }


@dataclass(slots=True)
class TipDetails:
    """Expanded explanation and action plan for a single tip."""

    details: str
    action_plan: list[str] = field(default_factory=list)


@dataclass(slots=True)
class WellnessTip:
    """A single generated wellness recommendation."""

    id: str
    title: str
    summary: str
    icon: str
    details: str | None = None
    action_plan: list[str] | None = None

    @property
    def has_details(self) -> bool:
        return bool(self.details)

    def to_document(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "icon": self.icon,
        }
        if self.details is not None:
            payload["details"] = self.details
        if self.action_plan is not None:
            payload["actionPlan"] = list(self.action_plan)
        return payload

    @classmethod
    def from_document(cls, data: dict[str, Any], *, tip_id: str | None = None) -> "WellnessTip":
        action_plan = data.get("actionPlan", data.get("action_plan"))
        return cls(
            id=tip_id or _text_value(data.get("id")),
            title=_text_value(data.get("title")),
            summary=_text_value(data.get("summary")),
            icon=_text_value(data.get("icon")),
            details=_optional_str(data.get("details")),
            action_plan=_string_items(action_plan) if action_plan is not None else None,
        )


@dataclass(slots=True)
class FavoriteTip(WellnessTip):
    """A tip saved by the user, stamped with the moment it was saved."""

    saved_at: str = field(default_factory=_now_iso)

    @property
    def saved_date(self) -> datetime | None:
        text = self.saved_at.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None

    def to_document(self) -> dict[str, Any]:
        payload = WellnessTip.to_document(self)
        payload["savedAt"] = self.saved_at
        return payload

    @classmethod
    def from_tip(cls, tip: WellnessTip, *, saved_at: str | None = None) -> "FavoriteTip":
        return cls(
            id=tip.id,
            title=tip.title,
            summary=tip.summary,
            icon=tip.icon,
            details=tip.details,
            action_plan=list(tip.action_plan) if tip.action_plan is not None else None,
            saved_at=saved_at or _now_iso(),
        )

    @classmethod
    def from_document(cls, data: dict[str, Any], *, tip_id: str | None = None) -> "FavoriteTip":
        tip = WellnessTip.from_document(data, tip_id=tip_id)
        return cls.from_tip(tip, saved_at=_text_value(data.get("savedAt") or data.get("saved_at")) or None)


__all__ = [
    "FavoriteTip",
    "Gender",
    "MAX_AGE",
    "MIN_AGE",
    "TipDetails",
    "UserProfile",
    "WellnessGoal",
    "WellnessTip",
]
