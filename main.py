"""FastAPI app: external cron trigger and fallback daily scheduler for the digest."""

import asyncio
import logging
import secrets
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from config import LOCAL_TZ, settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


@dataclass
class RunState:
    """In-process bookkeeping for the most recent digest run."""

    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    last_started: datetime | None = None
    last_finished: datetime | None = None
    last_status: str = "never_run"
    last_message: str = ""


_state = RunState()
_next_scheduled_run: datetime | None = None


def _calc_next_run(now: datetime | None = None) -> datetime:
    """Next generation time (local timezone) strictly after `now`."""
    now = now or datetime.now(LOCAL_TZ)
    target = now.replace(
        hour=settings.generation_hour, minute=settings.generation_minute, second=0, microsecond=0,
    )
    if target <= now:
        target += timedelta(days=1)
    return target


async def _run_digest() -> None:
    """Run the digest pipeline in a worker thread, guarded by a lock."""
    from generate import run_digest

    if _state.lock.locked():
        logger.warning("Digest run already in progress, skipping.")
        return

    async with _state.lock:
        _state.last_started = datetime.now(LOCAL_TZ)
        _state.last_status = "running"
        try:
            document = await asyncio.to_thread(run_digest)
            if document is None:
                _state.last_status = "skipped"
                _state.last_message = "No newsletters in the window."
            else:
                _state.last_status = "success"
                _state.last_message = document.subject
        except Exception as e:
            logger.error("Digest run failed: %s", e)
            _state.last_status = "failed"
            _state.last_message = str(e)
        finally:
            _state.last_finished = datetime.now(LOCAL_TZ)


async def _scheduler() -> None:
    """Fallback daily trigger for days the external cron does not fire."""
    global _next_scheduled_run
    while True:
        _next_scheduled_run = _calc_next_run()
        delay = max((_next_scheduled_run - datetime.now(LOCAL_TZ)).total_seconds(), 0)
        logger.info(
            "Scheduler: next digest %s (%.1f hours away)",
            _next_scheduled_run.isoformat(timespec="minutes"), delay / 3600,
        )
        await asyncio.sleep(delay)
        await _run_digest()


@asynccontextmanager
async def lifespan(app: FastAPI):
    task = asyncio.create_task(_scheduler()) if settings.scheduler_enabled else None
    if task is not None:
        logger.info(
            "Fallback scheduler on: %02d:%02d %s daily",
            settings.generation_hour, settings.generation_minute, settings.local_timezone,
        )
    yield
    if task is not None:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task


app = FastAPI(title="Newsletter Digest", description="Daily newsletter digest", lifespan=lifespan)


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


@app.get("/api/status")
async def api_status():
    """Outcome of the most recent run and the next scheduled time."""
    return {
        "running": _state.lock.locked(),
        "last_status": _state.last_status,
        "last_message": _state.last_message,
        "last_started": _state.last_started.isoformat() if _state.last_started else None,
        "last_finished": _state.last_finished.isoformat() if _state.last_finished else None,
        "next_scheduled_run": _next_scheduled_run.isoformat() if _next_scheduled_run else None,
    }


def _presented_secret(request: Request, query_secret: str) -> str:
    """Secret from the query string, else from an Authorization: Bearer header."""
    if query_secret:
        return query_secret
    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    return token.strip() if scheme.lower() == "bearer" else ""


@app.api_route("/api/cron/generate", methods=["GET", "POST"])
async def api_cron_generate(request: Request, secret: str = Query("")):
    """Start a digest run for an external scheduler such as cron-job.org."""
    if not settings.cron_secret:
        return JSONResponse({"error": "Cron trigger disabled: CRON_SECRET is not set."}, status_code=500)
    if not secrets.compare_digest(_presented_secret(request, secret).encode(), settings.cron_secret.encode()):
        return JSONResponse({"error": "Forbidden."}, status_code=403)

    if _state.lock.locked():
        return JSONResponse({"status": "already_running", "message": "A digest run is in progress."}, status_code=409)

    logger.info("Cron trigger: starting digest run.")
    asyncio.create_task(_run_digest())
    return JSONResponse({"status": "started", "message": "Digest run started via cron."})
