# File: manga_api/services/status_service.py

"""
Status reporting.

Builds the health document served by ``GET /api/status`` from:
  - live checks (database round trip, upload directory access)
  - the request metrics recorder
  - the route registry populated by ``main.create_application``

Plain (non-detailed) documents are cached for a few seconds so that
frequent polling does not hammer the database and filesystem. Detailed
documents are always rebuilt.
"""

import logging
import os
import shutil
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import inspect, text
from sqlalchemy.orm import sessionmaker

from manga_api.core.config import Settings
from manga_api.core.errors import GENERIC_ERROR_MESSAGE
from manga_api.services.metrics import MetricsRecorder

logger = logging.getLogger(__name__)

STATUS_OPERATIONAL = "operational"
STATUS_DEGRADED = "degraded"
STATUS_CRITICAL = "critical"

HTTP_STATUS_FOR = {
    STATUS_OPERATIONAL: 200,
    STATUS_DEGRADED: 503,
    STATUS_CRITICAL: 500,
}

# Served when the registry cannot be read
FALLBACK_ROUTES = [
    {"path": "/api/auth/login", "methods": ["POST"]},
    {"path": "/api/auth/logout", "methods": ["POST"]},
    {"path": "/api/auth/register", "methods": ["POST"]},
    {"path": "/api/auth/verify", "methods": ["POST"]},
    {"path": "/api/status", "methods": ["GET"]},
    {"path": "/api/users", "methods": ["GET"]},
    {"path": "/api/users/{user_id}", "methods": ["DELETE", "GET", "PUT"]},
    {"path": "/healthz", "methods": ["GET"]},
]


@dataclass
class RouteRegistry:
    """
    Declarative list of (full path, methods) pairs exposed by the API.

    Also maps each endpoint callable back to its full path template, which
    is how the metrics middleware names the route a request hit.
    """

    _routes: dict[str, set[str]] = field(default_factory=dict)
    _templates: dict[Any, str] = field(default_factory=dict)

    def register(self, path: str, methods: Iterable[str], endpoint: Any = None) -> None:
        methods = {m.upper() for m in methods}
        self._routes.setdefault(path, set()).update(methods - {"HEAD", "OPTIONS"} or methods)
        if endpoint is not None:
            self._templates[endpoint] = path

    def register_routes(self, routes: Iterable[tuple[str, Iterable[str], Any]]) -> None:
        for path, methods, endpoint in routes:
            self.register(path, methods, endpoint)

    def template_for(self, endpoint: Any) -> Optional[str]:
        if endpoint is None:
            return None
        return self._templates.get(endpoint)

    def endpoints(self) -> list[dict]:
        return [
            {"path": path, "methods": sorted(methods)}
            for path, methods in sorted(self._routes.items())
        ]

    def __len__(self) -> int:
        return len(self._routes)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def count_by_method(endpoints: list[dict]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for endpoint in endpoints:
        for method in endpoint["methods"]:
            counts[method] = counts.get(method, 0) + 1
    return counts


class StatusReporter:
    def __init__(
        self,
        *,
        settings: Settings,
        metrics: MetricsRecorder,
        session_factory: sessionmaker,
        registry: RouteRegistry,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.metrics = metrics
        self.session_factory = session_factory
        self.registry = registry
        self.clock = clock
        self.started_at = clock()
        self._cache: Optional[tuple[float, int, dict]] = None

    # ---------- helpers ----------

    def _error_text(self, exc: BaseException) -> str:
        if self.settings.is_production:
            return GENERIC_ERROR_MESSAGE
        return str(exc) or exc.__class__.__name__

    @property
    def upload_root(self) -> Path:
        return Path(self.settings.upload_base_path)

    def clear_cache(self) -> None:
        self._cache = None

    # ---------- live checks ----------

    def check_database(self) -> dict:
        result = {"status": "unknown", "responseTime": None, "error": None}
        started = time.perf_counter()
        try:
            with self.session_factory() as db:
                db.execute(text("SELECT 1"))
        except Exception as exc:
            logger.error("Database health check failed: %s", exc)
            result["status"] = "disconnected"
            result["error"] = self._error_text(exc)
        else:
            result["status"] = "connected"
            result["responseTime"] = round((time.perf_counter() - started) * 1000)
        return result

    def _assert_storage_access(self) -> None:
        root = self.upload_root
        if not root.is_dir():
            raise FileNotFoundError(f"Upload directory does not exist: {root}")
        if not os.access(root, os.R_OK | os.W_OK):
            raise PermissionError(f"Upload directory is not readable/writable: {root}")

    def check_storage(self) -> dict:
        result = {"status": "unknown", "accessible": False, "error": None}
        try:
            self._assert_storage_access()
        except OSError as exc:
            logger.error("Storage health check failed: %s", exc)
            result["status"] = "inaccessible"
            result["error"] = self._error_text(exc)
        else:
            result["status"] = "accessible"
            result["accessible"] = True
        return result

    def route_inventory(self) -> dict:
        try:
            endpoints = self.registry.endpoints()
        except Exception as exc:
            logger.warning("Route registry unavailable, serving fallback list: %s", exc)
            endpoints = []
        if not endpoints:
            return {
                "total": len(FALLBACK_ROUTES),
                "endpoints": FALLBACK_ROUTES,
                "fallback": True,
            }
        return {"total": len(endpoints), "endpoints": endpoints}

    # ---------- process resources ----------

    @staticmethod
    def memory_usage() -> dict:
        if sys.platform == "win32":
            return {"peak": None, "unit": "MB"}
        import resource

        # ru_maxrss is the high-water mark: KiB on Linux, bytes on macOS
        peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
        divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
        return {"peak": round(peak / divisor), "unit": "MB"}

    def disk_usage(self) -> dict:
        target = self.upload_root if self.upload_root.exists() else Path.cwd()
        try:
            usage = shutil.disk_usage(target)
        except OSError as exc:
            return {"error": self._error_text(exc)}
        gib = 1024 ** 3
        return {
            "total": round(usage.total / gib, 2),
            "used": round(usage.used / gib, 2),
            "free": round(usage.free / gib, 2),
            "percent": round(usage.used / usage.total * 100, 1) if usage.total else 0,
            "unit": "GB",
        }

    @staticmethod
    def cpu_usage() -> dict:
        load = list(os.getloadavg()) if hasattr(os, "getloadavg") else None
        return {"loadAverage": load, "cores": os.cpu_count()}

    # ---------- documents ----------

    def build(self, detailed: bool = False) -> tuple[int, dict]:
        """Return ``(http_status, document)``."""
        if not detailed and self._cache is not None:
            cached_at, code, document = self._cache
            if self.clock() - cached_at < self.settings.status_cache_seconds:
                return code, {**document, "cached": True}

        overall = STATUS_OPERATIONAL
        database = self.check_database()
        storage = self.check_storage()
        if database["status"] != "connected" or not storage["accessible"]:
            overall = STATUS_DEGRADED
        if database["status"] == "disconnected":
            overall = STATUS_CRITICAL

        document = {
            "status": overall,
            "timestamp": _utc_timestamp(),
            "uptime": round(self.clock() - self.started_at, 3),
            "database": database,
            "api": {
                "status": STATUS_OPERATIONAL,
                "version": self.settings.api_version,
                "environment": self.settings.environment,
            },
            "storage": storage,
            "memory": self.memory_usage(),
            "routes": self.route_inventory(),
            "metrics": self.metrics.summary(),
        }

        if detailed:
            document["storage"] = {**storage, "path": str(self.upload_root)}
            document["deployment"] = {
                "version": self.settings.api_version,
                "environment": self.settings.environment,
                "deployedAt": self.settings.deploy_timestamp,
                "commit": self.settings.git_commit,
                "rateLimit": {
                    "windowMs": self.settings.rate_limit_window_ms,
                    "max": self.settings.rate_limit_max,
                },
            }
            document["performance"] = self.metrics.performance()
            document["endpoints"] = self.metrics.endpoint_breakdown()
            document["recentErrors"] = self._public_errors(self.metrics.recent_errors())
            document["slowQueries"] = self.metrics.recent_slow_queries()
            document["disk"] = self.disk_usage()
            document["cpu"] = self.cpu_usage()

        code = HTTP_STATUS_FOR[overall]
        if not detailed:
            self._cache = (self.clock(), code, document)
        return code, document

    def _public_errors(self, events: list[dict]) -> list[dict]:
        if not self.settings.is_production:
            return events
        return [{**event, "message": GENERIC_ERROR_MESSAGE} for event in events]

    def database_report(self) -> tuple[int, dict]:
        report = {
            "status": "unknown",
            "timestamp": _utc_timestamp(),
            "connection": {"status": "unknown", "responseTime": None},
            "tables": {"status": "unknown", "count": 0, "list": [], "rowCounts": {}},
            "error": None,
        }
        try:
            started = time.perf_counter()
            with self.session_factory() as db:
                db.execute(text("SELECT 1"))
                report["connection"] = {
                    "status": "connected",
                    "responseTime": round((time.perf_counter() - started) * 1000),
                }
                preparer = db.get_bind().dialect.identifier_preparer
                tables = sorted(inspect(db.get_bind()).get_table_names())
                row_counts = {}
                for table in tables:
                    try:
                        row_counts[table] = db.execute(
                            text(f"SELECT COUNT(*) FROM {preparer.quote(table)}")
                        ).scalar_one()
                    except Exception as exc:
                        logger.warning("Row count failed for %s: %s", table, exc)
                        row_counts[table] = "error"
        except Exception as exc:
            logger.error("Database report failed: %s", exc)
            report["status"] = "error"
            report["error"] = self._error_text(exc)
            return 500, report

        report["tables"] = {
            "status": "available",
            "count": len(tables),
            "list": tables,
            "rowCounts": row_counts,
        }
        report["status"] = STATUS_OPERATIONAL
        return 200, report

    def storage_report(self) -> tuple[int, dict]:
        report = {
            "status": "unknown",
            "timestamp": _utc_timestamp(),
            "directories": [],
            "error": None,
        }
        if not self.settings.is_production:
            report["basePath"] = str(self.upload_root)
        try:
            self._assert_storage_access()
            report["directories"] = sorted(
                entry.name for entry in self.upload_root.iterdir() if entry.is_dir()
            )
        except OSError as exc:
            report["status"] = "inaccessible"
            report["error"] = self._error_text(exc)
            return 500, report
        report["status"] = "accessible"
        return 200, report

    def routes_report(self) -> dict:
        inventory = self.route_inventory()
        return {
            "timestamp": _utc_timestamp(),
            **inventory,
            "byMethod": count_by_method(inventory["endpoints"]),
        }
