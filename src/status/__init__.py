"""Status source adapter."""

from src.status.client import (
    NOT_FOUND_STATUS,
    READY_STATUS,
    StatusSourceClient,
    is_not_found,
    is_ready,
)

__all__ = [
    "NOT_FOUND_STATUS",
    "READY_STATUS",
    "StatusSourceClient",
    "is_not_found",
    "is_ready",
]
