"""Health-check HTTP endpoints."""

from src.health.api import HealthChecker, create_health_app

__all__ = ["HealthChecker", "create_health_app"]
