"""
=============================================================================
HEALTH CHECK HANDLERS
=============================================================================

Liveness and readiness endpoints over the Server's shared dependencies.

    /health/live    Is the process running?           always 200
    /health/ready   Can it serve traffic right now?   200 or 503

Readiness runs every registered check; a check that returns False or raises
makes the instance "not ready". Responses are never cached.

    health = HealthHandler()
    health.add_check("store", store.ping)
    health.add_check("mailer", mailer.ping)

    router.register("GET", "/health/live", health.liveness)
    router.register("GET", "/health/ready", health)

=============================================================================
"""

import logging
import time
from typing import Any, Callable, Dict

from ..http.request import HTTPRequest
from ..http.response import write_json
from ..http.status_codes import HTTPStatus
from ..http.writer import ResponseWriter
from .base import Handler


logger = logging.getLogger(__name__)

HealthCheck = Callable[[], bool]


class HealthHandler(Handler):
    """Readiness handler; ``liveness`` is exposed as a second handler."""

    def __init__(self):
        self._checks: Dict[str, HealthCheck] = {}
        self._start_time = time.monotonic()

    def add_check(self, name: str, check: HealthCheck) -> "HealthHandler":
        """Register a check. Keep checks fast: they run on every probe."""
        self._checks[name] = check
        return self

    def run_checks(self) -> Dict[str, Dict[str, Any]]:
        results: Dict[str, Dict[str, Any]] = {}
        for name, check in self._checks.items():
            try:
                healthy = bool(check())
                results[name] = {"status": "healthy" if healthy else "unhealthy"}
            except Exception as e:
                logger.warning(f"Health check {name!r} raised {type(e).__name__}: {e}")
                results[name] = {"status": "unhealthy", "error": str(e)}
        return results

    def handle(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        results = self.run_checks()
        ready = all(r["status"] == "healthy" for r in results.values())

        writer.headers["Cache-Control"] = "no-store"
        write_json(
            writer,
            HTTPStatus.OK if ready else HTTPStatus.SERVICE_UNAVAILABLE,
            {
                "status": "ready" if ready else "not ready",
                "uptime_seconds": int(self.uptime),
                "checks": results,
            },
        )

    def liveness(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        writer.headers["Cache-Control"] = "no-store"
        write_json(writer, HTTPStatus.OK, {"status": "alive"})

    @property
    def uptime(self) -> float:
        return time.monotonic() - self._start_time
