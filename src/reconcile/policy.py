"""Notification policy applied to each poll result."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from src.status.client import is_ready
from src.tracker.models import TrackedApplication


class Action(str, Enum):
    """What a poll result means for a tracked application."""

    READY = "ready"
    CHANGED = "changed"
    STALE = "stale"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class Decision:
    """Outcome of comparing a poll result with the stored record.

    Attributes:
        action: Which branch of the policy applies.
        updates: Fields to persist (empty for READY, which deletes instead).
        message_id: Catalog message to send, or None for a silent update.
    """

    action: Action
    updates: dict[str, Any]
    message_id: str | None = None


def decide(record: TrackedApplication, polled_status: str, threshold: int) -> Decision:
    """Apply the change/stale throttle to one poll result.

    A changed status is always reported and resets the counter. An
    unchanged status increments the counter; when it reaches
    ``threshold`` a reminder is sent and the counter starts over.
    """
    if is_ready(polled_status):
        return Decision(Action.READY, {}, "your_document_is_ready")

    if polled_status != record.status:
        return Decision(
            Action.CHANGED,
            {"status": polled_status, "checks_since_change": 0},
            "application_status_changed",
        )

    checks = record.checks_since_change + 1
    if checks >= threshold:
        return Decision(
            Action.STALE,
            {"checks_since_change": 0},
            "application_status_not_changed",
        )
    return Decision(Action.UNCHANGED, {"checks_since_change": checks})
