"""
Health and metrics endpoints.

Response shape follows the "Health Check Response Format for HTTP APIs"
draft: an overall status plus one entry per checked component.
"""

import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

import psutil
import redis
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from marketplace.core_settings import get_settings

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ServiceHealth:
    """Health probes for the API process and the services it depends on"""

    def __init__(self, service_name: str, engine: Engine, version: Optional[str] = None):
        self.service_name = service_name
        self.engine = engine
        self.version = version or get_settings().SERVICE_VERSION
        self.start_time = time.time()
        self.checks_performed = 0

    def create_health_router(self) -> APIRouter:
        router = APIRouter(tags=["health"])

        @router.get("/health", status_code=status.HTTP_200_OK)
        async def health_check() -> Dict[str, Any]:
            """Lightweight liveness check for load balancers"""
            return {
                "status": HealthStatus.PASS,
                "service": self.service_name,
                "version": self.version,
                "timestamp": _now(),
            }

        @router.get("/health/live", status_code=status.HTTP_200_OK)
        async def liveness() -> Dict[str, Any]:
            return {"status": "alive"}

        @router.get("/health/ready")
        async def readiness() -> JSONResponse:
            checks = self.readiness_checks()
            overall = self._overall_status(checks)
            # WARN still serves traffic; only a failed dependency takes us out
            status_code = (
                status.HTTP_503_SERVICE_UNAVAILABLE if overall == HealthStatus.FAIL else status.HTTP_200_OK
            )
            return JSONResponse(
                status_code=status_code,
                content={
                    "status": overall,
                    "version": self.version,
                    "serviceId": self.service_name,
                    "checks": checks,
                    "timestamp": _now(),
                },
            )

        @router.get("/health/startup")
        async def startup():
            checks = self.startup_checks()
            if self._overall_status(checks) == HealthStatus.FAIL:
                return JSONResponse(
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                    content={"status": "starting", "checks": checks},
                )
            return {"status": "started", "checks": checks}

        @router.get("/metrics")
        async def metrics() -> Dict[str, Any]:
            process = psutil.Process()
            memory = process.memory_info()
            return {
                "service": self.service_name,
                "version": self.version,
                "uptime_seconds": time.time() - self.start_time,
                "checks_performed": self.checks_performed,
                "timestamp": _now(),
                "system": {
                    "memory_rss_bytes": memory.rss,
                    "memory_vms_bytes": memory.vms,
                    "cpu_percent": process.cpu_percent(),
                    "num_threads": process.num_threads(),
                },
            }

        return router

    def readiness_checks(self) -> Dict[str, Dict[str, Any]]:
        self.checks_performed += 1
        checks = {"database:connectivity": self._check_database()}
        if get_settings().REDIS_URL:
            checks["cache:connectivity"] = self._check_redis()
        checks["payments:stripe"] = self._check_stripe_config()
        checks["storage:disk_space"] = self._check_disk_space()
        checks["system:memory"] = self._check_memory()
        return checks

    def startup_checks(self) -> Dict[str, Dict[str, Any]]:
        return {
            "database:schema": self._check_schema(),
            "config:secrets": self._check_secrets(),
        }

    def _check_database(self) -> Dict[str, Any]:
        start_time = time.time()
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": HealthStatus.FAIL, "componentType": "datastore", "output": str(e), "time": _now()}
        return {
            "status": HealthStatus.PASS,
            "componentType": "datastore",
            "observedValue": f"{(time.time() - start_time) * 1000:.2f}",
            "observedUnit": "ms",
            "time": _now(),
        }

    def _check_redis(self) -> Dict[str, Any]:
        start_time = time.time()
        try:
            client = redis.from_url(get_settings().REDIS_URL, socket_connect_timeout=1)
            client.ping()
        except redis.RedisError as e:
            # The dashboard cache falls back to process memory
            return {"status": HealthStatus.WARN, "componentType": "cache", "output": str(e), "time": _now()}
        return {
            "status": HealthStatus.PASS,
            "componentType": "cache",
            "observedValue": f"{(time.time() - start_time) * 1000:.2f}",
            "observedUnit": "ms",
            "time": _now(),
        }

    def _check_stripe_config(self) -> Dict[str, Any]:
        settings = get_settings()
        missing = [
            name for name in ("STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET")
            if not getattr(settings, name)
        ]
        if missing:
            return {
                "status": HealthStatus.WARN,
                "componentType": "configuration",
                "output": f"Not configured: {', '.join(missing)} (checkout runs in mock mode)",
                "time": _now(),
            }
        return {"status": HealthStatus.PASS, "componentType": "configuration", "time": _now()}

    def _check_disk_space(self) -> Dict[str, Any]:
        free_gb = psutil.disk_usage('/').free / (1024 ** 3)
        if free_gb < 1:
            status_val = HealthStatus.FAIL
        elif free_gb < 5:
            status_val = HealthStatus.WARN
        else:
            status_val = HealthStatus.PASS
        return {
            "status": status_val,
            "componentType": "system",
            "observedValue": f"{free_gb:.2f}",
            "observedUnit": "GB",
            "time": _now(),
        }

    def _check_memory(self) -> Dict[str, Any]:
        available_mb = psutil.virtual_memory().available / (1024 ** 2)
        if available_mb < 100:
            status_val = HealthStatus.FAIL
        elif available_mb < 500:
            status_val = HealthStatus.WARN
        else:
            status_val = HealthStatus.PASS
        return {
            "status": status_val,
            "componentType": "system",
            "observedValue": f"{available_mb:.2f}",
            "observedUnit": "MB",
            "time": _now(),
        }

    def _check_schema(self) -> Dict[str, Any]:
        """Tables exist; alembic_version is only expected when migrations run."""
        try:
            tables = set(inspect(self.engine).get_table_names())
        except SQLAlchemyError as e:
            return {"status": HealthStatus.FAIL, "componentType": "datastore", "output": str(e), "time": _now()}
        if "orders" not in tables:
            return {
                "status": HealthStatus.FAIL,
                "componentType": "datastore",
                "output": "Schema not created",
                "time": _now(),
            }
        if get_settings().RUN_MIGRATIONS and "alembic_version" not in tables:
            return {
                "status": HealthStatus.WARN,
                "componentType": "datastore",
                "output": "Migrations table not found",
                "time": _now(),
            }
        return {"status": HealthStatus.PASS, "componentType": "datastore", "time": _now()}

    def _check_secrets(self) -> Dict[str, Any]:
        settings = get_settings()
        if settings.ENVIRONMENT == "production" and settings.JWT_SECRET == "change-me":
            return {
                "status": HealthStatus.FAIL,
                "componentType": "configuration",
                "output": "JWT_SECRET must be set in production",
                "time": _now(),
            }
        return {"status": HealthStatus.PASS, "componentType": "configuration", "time": _now()}

    def _overall_status(self, checks: Dict[str, Dict[str, Any]]) -> HealthStatus:
        statuses = [check.get("status", HealthStatus.PASS) for check in checks.values()]
        if HealthStatus.FAIL in statuses:
            return HealthStatus.FAIL
        if HealthStatus.WARN in statuses:
            return HealthStatus.WARN
        return HealthStatus.PASS
