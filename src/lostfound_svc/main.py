"""FastAPI application - Lost & Found Work Request Service.

Start with:
    PYTHONPATH=src uvicorn lostfound_svc.main:app --port 8060

Set LOSTFOUND_CONFIG to a YAML config file (see config.sample.yaml).
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import __version__
from .config import Config
from .directory import routes as directory_routes
from .directory.loader import load_directory_from_yaml
from .errors import (
    AlreadyAdvancedError,
    AlreadyTerminalError,
    NotAuthorizedError,
    NotFoundError,
    RoutingError,
    ValidationError,
)
from .items import routes as item_routes
from .items.loader import load_items_from_yaml
from .items.registry import ItemRegistry
from .workflow import routes as request_routes
from .workflow.loader import load_requests_from_yaml
from .workflow.service import WorkRequestService
from .workflow.store import RequestStore

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "LOSTFOUND_CONFIG"


class HealthResponse(BaseModel):
    status: str
    requests: dict[str, int]
    directory: dict[str, int]


# Global service instance (initialized in lifespan)
_service: WorkRequestService | None = None


def load_config() -> Config:
    """Load config from LOSTFOUND_CONFIG, or defaults when unset."""
    path = os.environ.get(CONFIG_ENV_VAR)
    if not path:
        logger.info(f"{CONFIG_ENV_VAR} not set, using default configuration")
        return Config()
    if path.endswith(".json"):
        return Config.from_json(path)
    return Config.from_yaml(path)


def build_service(config: Config) -> tuple[WorkRequestService, str | None, str | None]:
    """
    Create the directory, stores and service described by a config.

    Returns:
        The service, then the requests and items files to auto-save to
        (None when auto-save is off or the store is in-memory only)
    """
    directory = load_directory_from_yaml(config.directory.definition_file)

    store = RequestStore()
    requests_path = config.storage.requests_file
    if requests_path and Path(requests_path).exists():
        load_requests_from_yaml(requests_path, store)

    items = ItemRegistry()
    items_path = config.storage.items_file
    if items_path and Path(items_path).exists():
        load_items_from_yaml(items_path, items)

    service = WorkRequestService(
        directory=directory,
        store=store,
        policy=config.policy,
        items=items,
    )
    if not config.storage.auto_save:
        return service, None, None
    return service, requests_path, items_path


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    global _service

    logger.info("Starting lost & found work request service...")

    config = load_config()
    app.state.config = config

    _service, requests_path, items_path = build_service(config)
    directory_routes.configure(_service.directory)
    item_routes.configure(_service.items, yaml_path=items_path)
    request_routes.configure(_service, yaml_path=requests_path, items_yaml_path=items_path)

    logger.info(
        f"Work request service started ({len(_service.store)} requests, "
        f"{len(_service.items)} items loaded)"
    )

    yield

    logger.info("Lost & found work request service stopped")


# Create FastAPI app
app = FastAPI(
    title="Lost & Found Work Requests",
    description="Routes claims, transfers and disputes across the lost-and-found network for approval.",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(request_routes.router)
app.include_router(directory_routes.router)
app.include_router(item_routes.router)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "detail": str(exc), "missing": exc.missing},
    )


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    return JSONResponse(
        status_code=404,
        content={"error": "Not found", "detail": str(exc)},
    )


@app.exception_handler(NotAuthorizedError)
async def not_authorized_error_handler(request: Request, exc: NotAuthorizedError):
    return JSONResponse(
        status_code=403,
        content={"error": "Not authorized", "detail": str(exc)},
    )


@app.exception_handler(AlreadyTerminalError)
async def already_terminal_error_handler(request: Request, exc: AlreadyTerminalError):
    return JSONResponse(
        status_code=409,
        content={"error": "Request already closed", "detail": str(exc)},
    )


@app.exception_handler(AlreadyAdvancedError)
async def already_advanced_error_handler(request: Request, exc: AlreadyAdvancedError):
    return JSONResponse(
        status_code=409,
        content={"error": "Request already advanced", "detail": str(exc)},
    )


@app.exception_handler(RoutingError)
async def routing_error_handler(request: Request, exc: RoutingError):
    return JSONResponse(
        status_code=422,
        content={"error": "Routing error", "detail": str(exc)},
    )


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy" if _service else "starting",
        requests=_service.store.count_by_status() if _service else {},
        directory=_service.directory.counts() if _service else {},
    )


@app.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": "Lost & Found Work Requests",
        "version": __version__,
        "endpoints": {
            "/requests": "GET list / POST create work requests",
            "/requests/queue?role=": "Work queue for a role",
            "/requests/mine?email=": "Requests created by a user",
            "/requests/{id}": "GET / PUT a single request",
            "/requests/{id}/approve": "POST - approve the current step",
            "/requests/{id}/reject": "POST - reject with a reason",
            "/requests/{id}/cancel": "POST - cancel (requester only)",
            "/requests/stats": "Counts by status",
            "/requests/overdue": "Open requests past their SLA",
            "/requests/disputes": "Disputes by item_id, email or requiring_police",
            "/requests/{id}/resolve-dispute": "POST - award a disputed item",
            "/items": "GET list / POST report items",
            "/directory/organizations": "Organizations in the network",
            "/directory/enterprises": "Enterprises in the network",
            "/health": "Health check",
        },
    }


def run():
    """Run the service with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()
    uvicorn.run(
        "lostfound_svc.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.reload,
    )


if __name__ == "__main__":
    run()
