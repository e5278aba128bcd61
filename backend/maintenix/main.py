import logging
import os

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
import redis

from maintenix.db import session as db_session
from maintenix.cache.redis_cache import redis_url
from maintenix.core.observability import MetricsRegistry, ObservabilityMiddleware
from maintenix.services.import_factory import build_blob_storage, build_scheduler

from maintenix.api.routes import cron, files, integration

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

app = FastAPI(title="Maintenix Import Pipeline")
metrics_registry = MetricsRegistry()
app.state.metrics = metrics_registry
app.state.blob_storage = build_blob_storage()
app.state.import_scheduler = build_scheduler(metrics=metrics_registry)
COMMON_ERROR_RESPONSES = {
    "400": "Bad Request",
    "401": "Unauthorized",
    "404": "Not Found",
}


cors_origins_env = os.getenv("CORS_ORIGINS", "")
allowed_origins = [o.strip() for o in cors_origins_env.split(",") if o.strip()] or [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)
app.add_middleware(
    ObservabilityMiddleware,
    registry=metrics_registry,
    exclude_paths={"/metrics", "/health"},
)

app.include_router(integration.router)
app.include_router(cron.router)
app.include_router(files.router)

def _error_response(description: str) -> dict:
    return {
        "description": description,
        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/ErrorResponse"}}},
    }


HEALTH_UNAVAILABLE_RESPONSE = {
    "description": "Service Unavailable",
    "content": {
        "application/json": {
            "schema": {
                "type": "object",
                "required": ["status", "checks"],
                "properties": {
                    "status": {"type": "string"},
                    "checks": {"type": "object", "additionalProperties": {}},
                },
            }
        }
    },
}


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    schemas = openapi_schema.setdefault("components", {}).setdefault("schemas", {})
    schemas.setdefault(
        "ErrorResponse",
        {
            "title": "ErrorResponse",
            "type": "object",
            "properties": {
                "detail": {
                    "anyOf": [
                        {"type": "string"},
                        {"type": "array", "items": {"type": "object"}},
                    ]
                }
            },
            "required": ["detail"],
        },
    )

    for path, path_item in openapi_schema.get("paths", {}).items():
        # /health, /metrics y /files no llevan token ni errores de negocio
        if path == "/health":
            path_item["get"].setdefault("responses", {})["503"] = HEALTH_UNAVAILABLE_RESPONSE
            continue
        if not path.startswith(("/integration", "/cron")):
            continue
        for method, operation in path_item.items():
            if method not in {"get", "post"}:
                continue
            responses = operation.setdefault("responses", {})
            for status_code, description in COMMON_ERROR_RESPONSES.items():
                responses.setdefault(status_code, _error_response(description))

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi



@app.get("/health")
def health():
    details = {"api": "ok"}
    failures: list[str] = []

    try:
        with db_session.SessionLocal() as db:
            db.execute(text("SELECT 1"))
        details["db"] = "ok"
    except Exception as exc:
        details["db"] = "error"
        details["db_error"] = str(exc)
        failures.append("db")

    try:
        redis.Redis.from_url(redis_url(), socket_connect_timeout=1).ping()
        details["redis"] = "ok"
    except Exception as exc:
        # la cache es opcional: se informa pero no degrada la API
        details["redis"] = "error"
        details["redis_error"] = str(exc)

    try:
        from maintenix.celery_app import celery_app
        replies = celery_app.control.ping(timeout=1.0)
        worker_count = len(replies or [])
        details["celery"] = "ok" if worker_count > 0 else "error"
        details["celery_workers"] = worker_count
    except Exception as exc:
        details["celery"] = "error"
        details["celery_error"] = str(exc)

    details["local_scheduler"] = "running" if app.state.import_scheduler.is_running else "stopped"

    status = "ok" if not failures else "degraded"
    payload = {"status": status, "checks": details}
    status_code = 200 if not failures else 503
    return JSONResponse(payload, status_code=status_code)


@app.get("/metrics", response_class=PlainTextResponse)
def metrics():
    return PlainTextResponse(
        metrics_registry.render_prometheus(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


@app.on_event("startup")
async def startup_import_scheduler():
    if os.getenv("ENABLE_LOCAL_SCHEDULER", "0") != "1":
        return
    app.state.import_scheduler.start()


@app.on_event("shutdown")
async def shutdown_import_scheduler():
    await app.state.import_scheduler.stop()
