import json
import logging
import threading
import time
import uuid
from collections import defaultdict
from typing import DefaultDict

from fastapi import Request
from jose import jwt
from starlette.middleware.base import BaseHTTPMiddleware


logger = logging.getLogger("maintenix.observability")


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _metric(lines: list[str], name: str, kind: str, help_text: str) -> None:
    lines.append(f"# HELP {name} {help_text}")
    lines.append(f"# TYPE {name} {kind}")


class MetricsRegistry:
    """
    Contadores en memoria del proceso, expuestos en ``/metrics`` en formato Prometheus.
    Cubre peticiones HTTP y el resultado de los jobs de importacion.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.http_requests_total = 0
        self.http_request_errors_5xx_total = 0
        self.http_request_duration_ms_sum = 0.0
        self.http_request_duration_ms_count = 0
        self.requests_by_route_method_status: DefaultDict[tuple[str, str, int], int] = defaultdict(int)

        self.import_jobs_by_status: DefaultDict[str, int] = defaultdict(int)
        self.import_rows_by_result: DefaultDict[str, int] = defaultdict(int)

    def observe(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
        include_global: bool = True,
    ) -> None:
        with self._lock:
            if include_global:
                self.http_requests_total += 1
                if status_code >= 500:
                    self.http_request_errors_5xx_total += 1
                self.http_request_duration_ms_sum += duration_ms
                self.http_request_duration_ms_count += 1
            self.requests_by_route_method_status[(path, method, status_code)] += 1

    def observe_import_job(self, status: str, success_rows: int, error_rows: int) -> None:
        with self._lock:
            self.import_jobs_by_status[status] += 1
            self.import_rows_by_result["success"] += success_rows
            self.import_rows_by_result["error"] += error_rows

    def render_prometheus(self) -> str:
        lines: list[str] = []
        with self._lock:
            _metric(lines, "http_requests_total", "counter", "Total number of HTTP requests processed.")
            lines.append(f"http_requests_total {self.http_requests_total}")

            _metric(lines, "http_request_errors_5xx_total", "counter", "Total number of HTTP 5xx responses.")
            lines.append(f"http_request_errors_5xx_total {self.http_request_errors_5xx_total}")

            _metric(lines, "http_request_duration_ms_sum", "counter", "Sum of request durations in milliseconds.")
            lines.append(f"http_request_duration_ms_sum {self.http_request_duration_ms_sum:.3f}")

            _metric(lines, "http_request_duration_ms_count", "counter", "Number of observed request durations.")
            lines.append(f"http_request_duration_ms_count {self.http_request_duration_ms_count}")

            _metric(
                lines,
                "http_requests_by_route_method_status",
                "counter",
                "HTTP requests split by route, method and status code.",
            )
            for (path, method, status_code), count in sorted(self.requests_by_route_method_status.items()):
                lines.append(
                    f'http_requests_by_route_method_status{{path="{_escape_label(path)}",method="{method}",status="{status_code}"}} {count}'
                )

            _metric(lines, "import_jobs_finished_total", "counter", "Import jobs that reached a final status.")
            for status, count in sorted(self.import_jobs_by_status.items()):
                lines.append(f'import_jobs_finished_total{{status="{_escape_label(status)}"}} {count}')

            _metric(lines, "import_rows_total", "counter", "Imported rows split by result.")
            for result, count in sorted(self.import_rows_by_result.items()):
                lines.append(f'import_rows_total{{result="{result}"}} {count}')

        return "\n".join(lines) + "\n"


def _extract_company_from_auth(request: Request) -> str | None:
    auth = request.headers.get("authorization", "")
    if not auth.startswith("Bearer "):
        return None
    token = auth[7:].strip()
    if not token:
        return None
    try:
        claims = jwt.get_unverified_claims(token)
    except Exception:
        return None
    company_id = claims.get("company_id")
    return str(company_id) if company_id is not None else None


class ObservabilityMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, registry: MetricsRegistry, exclude_paths: set[str] | None = None) -> None:
        super().__init__(app)
        self.registry = registry
        self.exclude_paths = exclude_paths or set()

    def _record(self, request: Request, request_id: str, status_code: int, started: float) -> dict:
        duration_ms = (time.perf_counter() - started) * 1000.0
        path = request.url.path
        self.registry.observe(
            method=request.method,
            path=path,
            status_code=status_code,
            duration_ms=duration_ms,
            include_global=(path not in self.exclude_paths),
        )
        return {
            "event": "http_request",
            "request_id": request_id,
            "method": request.method,
            "path": path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 3),
            "client_ip": request.client.host if request.client else None,
            "company_id": _extract_company_from_auth(request),
        }

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(json.dumps(self._record(request, request_id, 500, started), ensure_ascii=False))
            raise

        response.headers["X-Request-ID"] = request_id
        logger.info(
            json.dumps(self._record(request, request_id, response.status_code, started), ensure_ascii=False)
        )
        return response
