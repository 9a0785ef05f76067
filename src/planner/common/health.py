"""Health check contract for the planner API.

Provides standardized health check responses for load balancer probes
and monitoring systems.
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from planner.common.database import check_database_connection


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health status of a single component."""

    name: str
    status: HealthStatus
    message: str | None = None
    latency_ms: float | None = None


@dataclass
class HealthResponse:
    """Complete health check response."""

    status: HealthStatus
    timestamp: datetime
    service: str
    version: str
    components: list[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "service": self.service,
            "version": self.version,
            "components": [
                {
                    "name": c.name,
                    "status": c.status.value,
                    "message": c.message,
                    "latency_ms": c.latency_ms,
                }
                for c in self.components
            ],
        }


CheckFunc = Callable[[], Awaitable[ComponentHealth]]


class HealthChecker:
    """Health check manager for a service."""

    def __init__(
        self,
        service_name: str,
        version: str,
        database_check: Callable[[], Awaitable[bool]] = check_database_connection,
    ) -> None:
        self.service_name = service_name
        self.version = version
        self._database_check = database_check
        self._checks: list[tuple[str, CheckFunc]] = []

    def register_check(self, name: str, check_func: CheckFunc) -> None:
        """Register an additional async component check."""
        self._checks.append((name, check_func))

    async def check_database(self) -> ComponentHealth:
        """Check database connectivity."""
        start = time.perf_counter()
        is_healthy = await self._database_check()
        latency = round((time.perf_counter() - start) * 1000, 2)

        if is_healthy:
            return ComponentHealth(
                name="database",
                status=HealthStatus.HEALTHY,
                message="Database connection successful",
                latency_ms=latency,
            )
        return ComponentHealth(
            name="database",
            status=HealthStatus.UNHEALTHY,
            message="Database connection failed",
            latency_ms=latency,
        )

    async def readiness(self) -> HealthResponse:
        """Readiness probe - can the service handle requests?

        Checks the database plus any registered component checks.
        """
        components = [await self.check_database()]
        overall_status = components[0].status

        for name, check_func in self._checks:
            try:
                component_health = await check_func()
            except Exception as e:
                component_health = ComponentHealth(
                    name=name,
                    status=HealthStatus.UNHEALTHY,
                    message=f"Check failed: {type(e).__name__}",
                )
            components.append(component_health)

            if component_health.status == HealthStatus.UNHEALTHY:
                overall_status = HealthStatus.UNHEALTHY
            elif (
                component_health.status == HealthStatus.DEGRADED
                and overall_status == HealthStatus.HEALTHY
            ):
                overall_status = HealthStatus.DEGRADED

        return HealthResponse(
            status=overall_status,
            timestamp=datetime.now(UTC),
            service=self.service_name,
            version=self.version,
            components=components,
        )
