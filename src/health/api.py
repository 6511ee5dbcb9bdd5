"""Health-check endpoints.

``/health`` answers as long as the process is alive; ``/ready`` runs the
registered readiness checks (database reachable, reconciliation running)
and answers 503 when one of them fails.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import FastAPI, HTTPException

from src import __version__

ReadinessCheck = Callable[[], Awaitable[bool]]


class HealthChecker:
    """Liveness and readiness state for the service."""

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.startup_time = time.time()
        self.readiness_checks: dict[str, ReadinessCheck] = {}
        self.details: dict[str, Callable[[], Any]] = {}
        self._is_shutting_down = False

    def add_readiness_check(self, name: str, check_func: ReadinessCheck) -> None:
        """Register an async check returning True when ready."""
        self.readiness_checks[name] = check_func

    def add_detail(self, name: str, provider: Callable[[], Any]) -> None:
        """Register extra information included in the readiness answer."""
        self.details[name] = provider

    async def check_liveness(self) -> dict[str, Any]:
        if self._is_shutting_down:
            raise HTTPException(status_code=503, detail="Service is shutting down")

        return {
            "status": "healthy",
            "service": self.service_name,
            "version": __version__,
            "uptime_seconds": int(time.time() - self.startup_time),
        }

    async def check_readiness(self) -> dict[str, Any]:
        if self._is_shutting_down:
            raise HTTPException(status_code=503, detail="Service is shutting down")

        checks: dict[str, str] = {}
        all_ready = True
        for name, check_func in self.readiness_checks.items():
            try:
                result = await check_func()
            except Exception as e:
                checks[name] = f"error: {e}"
                all_ready = False
                continue
            checks[name] = "ready" if result else "not_ready"
            all_ready = all_ready and bool(result)

        if not all_ready:
            raise HTTPException(
                status_code=503,
                detail={"status": "not_ready", "service": self.service_name, "checks": checks},
            )

        return {
            "status": "ready",
            "service": self.service_name,
            "checks": checks,
            **{name: provider() for name, provider in self.details.items()},
        }

    def shutdown(self) -> None:
        self._is_shutting_down = True


def create_health_app(service_name: str = "passport-tracker") -> tuple[FastAPI, HealthChecker]:
    """Build the FastAPI app serving the health endpoints.

    Returns:
        The app and its HealthChecker, on which readiness checks are registered.
    """
    app = FastAPI(title=service_name, version=__version__)
    health_checker = HealthChecker(service_name)

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, Any]:
        """Liveness probe."""
        return await health_checker.check_liveness()

    @app.get("/ready", tags=["health"])
    async def ready() -> dict[str, Any]:
        """Readiness probe."""
        return await health_checker.check_readiness()

    return app, health_checker
