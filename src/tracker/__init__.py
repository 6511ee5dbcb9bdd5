"""Tracked passport applications and their storage.

Public API:
- ApplicationRepository: Database repository for tracked applications
- TrackedApplication: Data model for one user's application
- Category: Passport validity class
- IntakeState: Position of a record in the intake conversation
"""

from src.tracker.models import (
    UNSET_APPLICATION_NUMBER,
    UNSET_CITY_ID,
    Category,
    IntakeState,
    TrackedApplication,
)
from src.tracker.repository import ApplicationRepository

__all__ = [
    "ApplicationRepository",
    "TrackedApplication",
    "Category",
    "IntakeState",
    "UNSET_APPLICATION_NUMBER",
    "UNSET_CITY_ID",
]
