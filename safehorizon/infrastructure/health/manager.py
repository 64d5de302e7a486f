"""
Health check management.

Named checks run on demand or periodically; a check that raises is reported
as unhealthy rather than propagating.
"""

from typing import Dict, Optional

import structlog

from safehorizon.core.domain.entities import HealthStatus
from safehorizon.core.domain.interfaces import HealthCheck
from safehorizon.infrastructure.scheduling import PeriodicTask
from safehorizon.shared.config import HealthConfig
from safehorizon.shared.types import HealthState

logger = structlog.get_logger(__name__)

_SEVERITY = {
    HealthState.HEALTHY: 0,
    HealthState.DEGRADED: 1,
    HealthState.UNHEALTHY: 2,
}


class HealthCheckManager:
    """Registry and runner for named health checks."""

    def __init__(self, config: Optional[HealthConfig] = None):
        self.config = config or HealthConfig()
        self._checks: Dict[str, HealthCheck] = {}
        self._last_results: Dict[str, HealthStatus] = {}
        self._check_task = PeriodicTask("health-checks", self.config.check_interval_seconds, self._scheduled_run)

    async def initialize(self) -> None:
        self._check_task.start()

    async def close(self) -> None:
        await self._check_task.stop()

    def register(self, name: str, check: HealthCheck) -> None:
        self._checks[name] = check
        logger.info("Registered health check", name=name)

    def unregister(self, name: str) -> None:
        if self._checks.pop(name, None) is not None:
            self._last_results.pop(name, None)
            logger.info("Unregistered health check", name=name)

    @property
    def last_results(self) -> Dict[str, HealthStatus]:
        return dict(self._last_results)

    async def run_checks(self) -> Dict[str, HealthStatus]:
        """Run every registered check and return its status by name."""
        results: Dict[str, HealthStatus] = {}

        for name, check in list(self._checks.items()):
            try:
                status = await check.check()
            except Exception as e:
                status = HealthStatus.unhealthy(f"Health check failed: {e}")
                logger.error("Health check error", name=name, error=str(e))
            else:
                if not status.is_healthy:
                    logger.error(
                        "Health check failed",
                        name=name,
                        state=status.state.value,
                        message=status.message
                    )
            results[name] = status

        self._last_results = results
        return results

    async def get_health_status(self) -> Dict[str, HealthStatus]:
        return await self.run_checks()

    async def get_overall_status(self) -> HealthStatus:
        """Worst state across all checks, with each check's result in the details."""
        results = await self.run_checks()
        details = {name: status.to_dict() for name, status in results.items()}
        worst = max((status.state for status in results.values()), key=_SEVERITY.get, default=HealthState.HEALTHY)

        if worst == HealthState.HEALTHY:
            return HealthStatus.healthy("All components healthy", details)

        failing = sorted(name for name, status in results.items() if status.state == worst)
        message = f"Components {worst.value}: {', '.join(failing)}"
        if worst == HealthState.DEGRADED:
            return HealthStatus.degraded(message, details)
        return HealthStatus.unhealthy(message, details)

    async def _scheduled_run(self) -> None:
        await self.run_checks()
