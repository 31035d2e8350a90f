from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Any

import anyio
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from linkmonitor.config import Settings, load_settings
from linkmonitor.db.engine import dispose_engine, ensure_engine
from linkmonitor.log import configure_logging
from linkmonitor.routers.cron import router as cron_router
from linkmonitor.routers.data import router as data_router
from linkmonitor.routers.monitor import router as monitor_router
from linkmonitor.routers.stats import router as stats_router
from linkmonitor.services.ingestion import IssueSource
from linkmonitor.services.maintenance import run_scheduler
from linkmonitor.services.probe import Prober
from linkmonitor.services.recorder import Recorder
from linkmonitor.utils.civil_time import get_zone


logger = structlog.get_logger(__name__)


def create_app_state(settings: Settings) -> Dict[str, Any]:
    return {
        "version": "0.1.0",
        "settings": settings,
        "in_memory_store": {
            "started": False,
        },
    }


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = load_settings()
    configure_logging(settings.log_level)
    runtime = app.state.runtime = create_app_state(settings)
    engine = await ensure_engine(runtime, settings.database_url)
    monitor = settings.monitor
    runtime["prober"] = Prober(timeout_sec=monitor.timeout_ms / 1000.0, rounds=monitor.retry_count)
    runtime["recorder"] = Recorder(engine, tz=get_zone(monitor.timezone), window_days=monitor.window_days)
    runtime["issue_source"] = IssueSource(settings.github, user_agent=monitor.user_agent)
    runtime["in_memory_store"]["started"] = True
    logger.info("service_started", database=engine.url.render_as_string(hide_password=True))
    try:
        async with anyio.create_task_group() as tg:
            tg.start_soon(run_scheduler, app)
            try:
                yield
            finally:
                tg.cancel_scope.cancel()
    finally:
        runtime["in_memory_store"]["started"] = False
        await runtime["prober"].aclose()
        await runtime["issue_source"].aclose()
        await dispose_engine(runtime)
        logger.info("service_stopped")


app = FastAPI(title="Link Monitor", lifespan=lifespan)

# Widgets on other origins read the status endpoints
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": True, "message": message}, status_code=status_code)


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query"))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return _error(400, "; ".join(parts) or "invalid request")


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request_failed", path=request.url.path)
    return _error(500, str(exc) or exc.__class__.__name__)


@app.get("/healthz")
async def healthz() -> JSONResponse:
    runtime = getattr(app.state, "runtime", {})
    body = {
        "ok": True,
        "version": runtime.get("version"),
        "started": runtime.get("in_memory_store", {}).get("started", False),
    }
    return JSONResponse(body)


app.include_router(monitor_router)
app.include_router(cron_router)
app.include_router(data_router)
app.include_router(stats_router)
