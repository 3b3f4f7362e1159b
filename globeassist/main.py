"""FastAPI application for the GlobeAssist API."""

import logging
from contextlib import asynccontextmanager
from typing import Dict

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from globeassist.admin import admin_router
from globeassist.api import api_router
from globeassist.config import load_config
from globeassist.errors import GlobeAssistError, public_message
from globeassist.services import build_services
from globeassist.store import SQLiteStore

logger = logging.getLogger(__name__)

SERVICE_NAME = "GlobeAssist API"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle: startup and shutdown."""
    config = load_config()

    logging.basicConfig(level=getattr(logging, config.log_level))

    limits = httpx.Limits(max_keepalive_connections=20, max_connections=100)
    llm_http = httpx.AsyncClient(
        base_url=config.openrouter_base_url,
        headers={"HTTP-Referer": config.app_url, "Content-Type": "application/json"},
        timeout=httpx.Timeout(config.request_timeout_seconds, connect=10.0),
        limits=limits,
    )
    search_http = httpx.AsyncClient(
        base_url=config.serper_base_url,
        headers={"Content-Type": "application/json"},
        timeout=httpx.Timeout(config.request_timeout_seconds, connect=10.0),
        limits=limits,
    )
    store = SQLiteStore(config.database_path)
    services = build_services(config, store, llm_http, search_http)

    app.state.config = config
    app.state.services = services

    logger.info(
        "GlobeAssist started with %d LLM keys and %d search keys",
        len(config.llm_api_keys),
        len(config.search_api_keys),
    )

    yield

    await services.close()
    await llm_http.aclose()
    await search_http.aclose()
    store.close()
    logger.info("GlobeAssist stopped")


app = FastAPI(title=SERVICE_NAME, lifespan=lifespan)

app.include_router(admin_router)
app.include_router(api_router)


@app.exception_handler(GlobeAssistError)
async def globeassist_error_handler(request: Request, exc: GlobeAssistError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": public_message(exc)},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": GlobeAssistError.public_message},
    )


@app.get("/")
async def root(request: Request) -> Dict[str, object]:
    services = request.app.state.services
    llm = services.llm_pool.get_status()
    search = services.search_pool.get_status()
    return {
        "service": SERVICE_NAME,
        "status": "running",
        "keys_available": llm["available_keys"] + search["available_keys"],
        "total_keys": llm["total_keys"] + search["total_keys"],
    }


@app.get("/health")
async def health_check(request: Request) -> Dict[str, object]:
    """Health check endpoint with key pool status."""
    services = request.app.state.services
    return {
        "status": "healthy",
        "pools": {
            name: {
                "keys_available": status["available_keys"],
                "total_keys": status["total_keys"],
            }
            for name, status in (
                ("openrouter", services.llm_pool.get_status()),
                ("serper", services.search_pool.get_status()),
            )
        },
    }


def run() -> None:
    config = load_config()
    uvicorn.run("globeassist.main:app", host=config.host, port=config.port)
