"""Data models for the application tracker."""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

# Values stored until the user supplies the real identifier
UNSET_APPLICATION_NUMBER = "0"
UNSET_CITY_ID = 0


class Category(str, Enum):
    """Passport validity class; the value is the inline button payload."""

    SHORT_VALIDITY = "5"
    LONG_VALIDITY = "10"


class IntakeState(str, Enum):
    """Where a tracked application stands in the intake conversation."""

    AWAITING_NUMBER = "awaiting_number"
    AWAITING_CITY = "awaiting_city"
    TRACKING = "tracking"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class TrackedApplication:
    """A passport application followed on behalf of one chat user.

    Attributes:
        user_id: Chat id of the owner. One record per user.
        category: Validity class chosen by the user; decides the intake steps.
        id: Opaque identifier assigned at creation.
        application_number: Number supplied by the user, or the unset sentinel.
        city_id: City identifier (long validity only), or the unset sentinel.
        state: Current intake state.
        status: Last status text seen at the status source.
        checks_since_change: Polls since the status last changed or since the
            last "unchanged" reminder.
        created_at: When the user selected the category.
        updated_at: When the record was last written.
    """

    user_id: int
    category: Category
    id: str = field(default_factory=_new_id)
    application_number: str = UNSET_APPLICATION_NUMBER
    city_id: int = UNSET_CITY_ID
    state: IntakeState = IntakeState.AWAITING_NUMBER
    status: str = ""
    checks_since_change: int = 0
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def has_application_number(self) -> bool:
        return self.application_number != UNSET_APPLICATION_NUMBER

    @property
    def has_city(self) -> bool:
        return self.city_id != UNSET_CITY_ID

    def is_eligible(self) -> bool:
        """Whether the reconciliation loop may poll this record.

        Requires the tracking state and every identifier the category needs.
        """
        if not self.user_id or self.state != IntakeState.TRACKING:
            return False
        if not self.has_application_number:
            return False
        if self.category == Category.LONG_VALIDITY and not self.has_city:
            return False
        return True

    def to_dict(self) -> dict:
        """Serialize the record to a dictionary.

        Returns:
            Dictionary representation of the record.
        """
        return {
            "id": self.id,
            "user_id": self.user_id,
            "category": self.category.value,
            "application_number": self.application_number,
            "city_id": self.city_id,
            "state": self.state.value,
            "status": self.status,
            "checks_since_change": self.checks_since_change,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TrackedApplication":
        """Deserialize a record from a dictionary.

        Args:
            data: Dictionary containing record data.

        Returns:
            TrackedApplication instance.
        """

        def parse_datetime(value: str | datetime | None) -> datetime:
            if value is None:
                return _utcnow()
            if isinstance(value, datetime):
                return value
            return datetime.fromisoformat(value)

        return cls(
            id=data["id"],
            user_id=int(data["user_id"]),
            category=Category(str(data["category"])),
            application_number=str(
                data.get("application_number", UNSET_APPLICATION_NUMBER)
            ),
            city_id=int(data.get("city_id", UNSET_CITY_ID)),
            state=IntakeState(data.get("state", IntakeState.AWAITING_NUMBER.value)),
            status=data.get("status") or "",
            checks_since_change=int(data.get("checks_since_change", 0)),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
        )
