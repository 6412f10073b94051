"""Entry point for the FastAPI-powered room recommendation service."""

from __future__ import annotations
import json
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .database import Database
from .errors import InvalidInput, RoomServiceError
from .services.kinopoisk import KinopoiskClient
from .services.rooms import RoomService
from .services.store import RoomStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    catalog_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.kinopoisk_api_url),
            timeout=httpx.Timeout(settings.catalog_timeout_seconds, connect=10.0),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    if not settings.kinopoisk_api_key:
        logger.warning("KINOPOISK_API_KEY is not set; catalog requests will be rejected")

    room_service = RoomService(
        settings,
        RoomStore(database.session_factory),
        KinopoiskClient(settings, catalog_http_client),
    )

    fastapi_app.state.room_service = room_service
    fastapi_app.state.database = database

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Group movie picks aggregated from every participant's preferences",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_room_service(app: FastAPI) -> RoomService:
    service = getattr(app.state, "room_service", None)
    if not isinstance(service, RoomService):
        raise RuntimeError("Room service not initialised")
    return service


async def room_error_handler(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, RoomServiceError):  # pragma: no cover - registration guard
        raise exc
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "%s %s failed for room %s: %s",
        request.method,
        request.url.path,
        exc.room_id,
        exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


def register_routes(fastapi_app: FastAPI) -> None:
    fastapi_app.add_exception_handler(RoomServiceError, room_error_handler)

    async def _json_body(request: Request) -> dict[str, Any]:
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise InvalidInput("Request body must be valid JSON") from exc
        if not isinstance(payload, dict):
            raise InvalidInput("Request body must be a JSON object")
        return payload

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.post("/submit-preferences")
    async def submit_preferences(request: Request) -> dict[str, str]:
        service = get_room_service(fastapi_app)
        payload = await _json_body(request)
        status = await service.submit_preferences(
            payload.get("user_id"),
            payload.get("room_id"),
            payload.get("genres"),
            payload.get("years"),
        )
        return {"status": status}

    @fastapi_app.get("/check-status")
    async def check_status(room_id: str | None = None) -> dict[str, str]:
        service = get_room_service(fastapi_app)
        status = await service.check_status(room_id)
        return {"status": status}

    @fastapi_app.get("/room-results")
    async def room_results(room_id: str | None = None) -> dict[str, Any]:
        service = get_room_service(fastapi_app)
        result = await service.get_results(room_id)
        return result.to_payload()

    @fastapi_app.post("/retry-aggregation")
    async def retry_aggregation(request: Request) -> dict[str, str]:
        service = get_room_service(fastapi_app)
        payload = await _json_body(request)
        status = await service.retry_aggregation(payload.get("room_id"))
        return {"status": status}

    @fastapi_app.post("/maintenance/clean-inactive-rooms")
    async def clean_inactive_rooms() -> dict[str, Any]:
        service = get_room_service(fastapi_app)
        removed = await service.clean_inactive_rooms()
        return {"status": "ok", "removed": removed}


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
