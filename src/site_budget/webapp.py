"""FastAPI application exposing site management and browser event endpoints."""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .config import TrackerSettings
from .enforcement import TabRegistryHost
from .errors import SiteBudgetError
from .paths import get_db_path
from .service import BudgetService, EventOutcome
from .store import StateStore
from .timeutils import MINUTES_PER_DAY

logger = logging.getLogger(__name__)


class TickRunner:
    """Fire the periodic usage tick from a background thread."""

    def __init__(self, service: BudgetService, settings: TrackerSettings) -> None:
        self._service = service
        self._settings = settings
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_loop,
                args=(stop_event,),
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            thread.start()
            logger.info("Tick runner started.")

    def stop(self) -> None:
        thread: Optional[threading.Thread] = None
        with self._lock:
            if not self._thread or not self._thread.is_alive() or not self._stop_event:
                return
            self._stop_event.set()
            thread = self._thread
            self._thread = None
            self._stop_event = None
        if thread:
            thread.join(timeout=10)
            logger.info("Tick runner stopped.")

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    def _run_loop(self, stop_event: threading.Event) -> None:
        interval = self._settings.tick_interval.total_seconds()
        # Sleep in an interruptible manner.
        while not stop_event.wait(interval):
            try:
                self._service.tick()
            except Exception:
                logger.exception("Usage tick failed; retrying on the next interval.")


class SitePayload(BaseModel):
    domain: str
    limit_minutes: float = 0
    period: str = "daily"
    window_start: int = 0
    window_end: int = MINUTES_PER_DAY
    invert_window: bool = False

    model_config = ConfigDict(extra="forbid")


class EnabledPayload(BaseModel):
    enabled: bool

    model_config = ConfigDict(extra="forbid")


class AttentionPayload(BaseModel):
    tab_id: int
    url: str = ""
    window_id: Optional[int] = None

    model_config = ConfigDict(extra="forbid")


class TabClosedPayload(BaseModel):
    tab_id: int = Field(description="Identifier of the closed tab.")

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    host: Optional[TabRegistryHost] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = Path(db_path or get_db_path())
    resolved_settings = settings or TrackerSettings()
    resolved_host = host or TabRegistryHost()
    store = StateStore(resolved_db_path, state_key=resolved_settings.state_key)
    service = BudgetService(store, resolved_host, resolved_settings)
    runner = TickRunner(service, resolved_settings)

    app = FastAPI(title="Site Budget", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.service = service
    app.state.host = resolved_host
    app.state.tick_runner = runner

    @app.exception_handler(SiteBudgetError)
    async def _site_budget_error(_request: Request, exc: SiteBudgetError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.on_event("startup")
    async def _startup() -> None:
        runner.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        runner.stop()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        return {
            "tick_running": request.app.state.tick_runner.is_running(),
            "database_path": str(request.app.state.db_path),
            "tick_seconds": resolved_settings.tick_interval.total_seconds(),
            "badge": asdict(resolved_host.badge),
        }

    @app.get("/api/sites")
    def list_sites() -> Dict[str, Any]:
        return service.list_sites()

    @app.get("/api/sites/{site_id}")
    def get_site(site_id: str) -> Dict[str, Any]:
        return {"site": service.get_site(site_id)}

    @app.post("/api/sites", status_code=201)
    def add_site(payload: SitePayload) -> Dict[str, Any]:
        site = service.add_site(
            payload.domain,
            limit_minutes=payload.limit_minutes,
            period=payload.period,
            window_start=payload.window_start,
            window_end=payload.window_end,
            invert_window=payload.invert_window,
        )
        return {"site": site}

    @app.put("/api/sites/{site_id}")
    def update_site(site_id: str, payload: SitePayload) -> Dict[str, Any]:
        site = service.update_site(
            site_id,
            payload.domain,
            limit_minutes=payload.limit_minutes,
            period=payload.period,
            window_start=payload.window_start,
            window_end=payload.window_end,
            invert_window=payload.invert_window,
        )
        return {"site": site}

    @app.delete("/api/sites/{site_id}")
    def remove_site(site_id: str) -> Dict[str, Any]:
        service.remove_site(site_id)
        return {"success": True}

    @app.post("/api/sites/{site_id}/reset")
    def reset_usage(site_id: str) -> Dict[str, Any]:
        service.reset_usage(site_id)
        return {"success": True}

    @app.post("/api/sites/{site_id}/enabled")
    def set_enabled(site_id: str, payload: EnabledPayload) -> Dict[str, Any]:
        service.set_enabled(site_id, payload.enabled)
        return {"success": True}

    @app.get("/api/stats")
    def stats() -> Dict[str, Any]:
        return service.get_stats()

    @app.post("/api/events/attention")
    def attention(payload: AttentionPayload) -> Dict[str, Any]:
        resolved_host.remember_tab(payload.tab_id, payload.url)
        outcome = service.attention_changed(payload.tab_id, payload.url, payload.window_id)
        return _outcome_payload(outcome)

    @app.post("/api/events/tab-closed")
    def tab_closed(payload: TabClosedPayload) -> Dict[str, Any]:
        resolved_host.forget_tab(payload.tab_id)
        return _outcome_payload(service.tab_closed(payload.tab_id))

    @app.post("/api/events/focus-lost")
    def focus_lost() -> Dict[str, Any]:
        return _outcome_payload(service.focus_lost())

    @app.post("/api/events/tick")
    def tick() -> Dict[str, Any]:
        return _outcome_payload(service.tick())

    @app.get("/api/host/commands")
    def host_commands() -> Dict[str, Any]:
        return {
            "commands": resolved_host.drain_commands(),
            "badge": asdict(resolved_host.badge),
        }

    return app


def _outcome_payload(outcome: EventOutcome) -> Dict[str, Any]:
    return {
        "badge": asdict(outcome.badge),
        "blocked_site_id": outcome.blocked_site_id,
        "blocked_tabs": outcome.blocked_tabs,
    }
