"""
Keepwise HTTP Server

Routes:
- GET    /api/memories/recent     Recent memories for the save page (never cached)
- GET    /api/memories            Filtered listing for the database table
- GET    /api/memories/{id}       One memory
- POST   /api/links               Save a link
- PUT    /api/links/{id}          Edit a link
- DELETE /api/links/{id}          Delete a link
- POST   /api/ideas               Save an idea
- PUT    /api/ideas/{id}          Edit an idea
- DELETE /api/ideas/{id}          Delete an idea
- POST   /api/extract-metadata    Prefill data for a URL
- GET    /health

Every /api route requires `Authorization: Bearer <session token>`.
"""

import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional, Union

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from . import __version__
from .actions import ActionResult, MemoryActions
from .auth import resolve_owner
from .config import Settings
from .database import DatabaseManager, create_database
from .errors import AuthenticationError, NotFoundOrForbidden, PersistenceError, ValidationError
from .logging_config import configure_logging, request_logging_middleware
from .memory import MemoryManager
from .metadata import MetadataExtractor
from .schemas import MetadataRequest, validate_payload

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "Surrogate-Control": "no-store",
}


@dataclass
class AppServices:
    """Everything a request handler needs, built once per app."""
    settings: Settings
    db: DatabaseManager
    memory_manager: MemoryManager
    actions: MemoryActions
    extractor: MetadataExtractor


def _services(request: Request) -> AppServices:
    return request.app.state.services


def _owner_id(request: Request) -> str:
    return resolve_owner(
        request.headers.get("Authorization"),
        _services(request).settings.auth_secret
    )


def _no_cache(payload: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(payload, status_code=status_code, headers=NO_CACHE_HEADERS)


def _envelope(result: ActionResult) -> JSONResponse:
    return JSONResponse(result.to_dict(), status_code=result.status)


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Invalid JSON body", {"__root__": "Body must be valid JSON"}) from e


def _parse_limit(raw: Optional[str]) -> Optional[int]:
    """Lenient: anything unparseable means "use the default"."""
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _parse_date(raw: Optional[str], field: str) -> Optional[Union[date, datetime]]:
    if not raw:
        return None
    try:
        if len(raw) == 10:
            return date.fromisoformat(raw)
        return datetime.fromisoformat(raw)
    except ValueError as e:
        raise ValidationError("Invalid filter", {field: "Use an ISO 8601 date or datetime"}) from e


def create_app(
    settings: Optional[Settings] = None,
    db: Optional[DatabaseManager] = None,
    extractor: Optional[MetadataExtractor] = None
) -> FastAPI:
    """
    Build the application around explicitly provided services.

    Args:
        settings: Configuration (defaults to environment-derived Settings)
        db: Store handle (defaults to one built from settings)
        extractor: Metadata extractor (defaults to one built from settings)
    """
    settings = settings or Settings()
    db = db or create_database(settings)
    memory_manager = MemoryManager(
        db,
        default_limit=settings.recent_default_limit,
        max_limit=settings.recent_max_limit
    )
    services = AppServices(
        settings=settings,
        db=db,
        memory_manager=memory_manager,
        actions=MemoryActions(memory_manager),
        extractor=extractor or MetadataExtractor.from_settings(settings),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await services.db.init_db()
        try:
            yield
        finally:
            await services.db.close()

    app = FastAPI(title="Keepwise", version=__version__, lifespan=lifespan)
    app.state.services = services
    app.middleware("http")(request_logging_middleware)

    @app.exception_handler(AuthenticationError)
    async def _unauthenticated(request: Request, exc: AuthenticationError) -> JSONResponse:
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    @app.exception_handler(ValidationError)
    async def _invalid(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            {"error": str(exc), "fieldErrors": exc.field_errors},
            status_code=400
        )

    @app.exception_handler(NotFoundOrForbidden)
    async def _not_found(request: Request, exc: NotFoundOrForbidden) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=404)

    @app.exception_handler(PersistenceError)
    async def _store_failure(request: Request, exc: PersistenceError) -> JSONResponse:
        return JSONResponse({"error": "Could not load memories"}, status_code=500)

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"status": "ok", "version": __version__}

    # -- Reads -------------------------------------------------------------

    @app.get("/api/memories/recent")
    async def recent_memories(
        request: Request,
        limit: Optional[str] = None,
        owner_id: str = Depends(_owner_id)
    ) -> JSONResponse:
        memories = await _services(request).memory_manager.recent_memories(
            owner_id, _parse_limit(limit)
        )
        return _no_cache(memories)

    @app.get("/api/memories")
    async def list_memories(
        request: Request,
        search: Optional[str] = None,
        kind: Optional[str] = None,
        priority: Optional[str] = None,
        tag: Optional[str] = None,
        created_from: Optional[str] = None,
        created_to: Optional[str] = None,
        limit: Optional[str] = None,
        owner_id: str = Depends(_owner_id)
    ) -> JSONResponse:
        memories = await _services(request).memory_manager.list_memories(
            owner_id,
            search=search,
            kind=kind,
            priority=priority,
            tag=tag,
            created_from=_parse_date(created_from, "created_from"),
            created_to=_parse_date(created_to, "created_to"),
            limit=_parse_limit(limit),
        )
        return _no_cache(memories)

    @app.get("/api/memories/{memory_id}")
    async def get_memory(
        request: Request,
        memory_id: str,
        owner_id: str = Depends(_owner_id)
    ) -> JSONResponse:
        memory = await _services(request).memory_manager.get_memory(owner_id, memory_id)
        return _no_cache(memory)

    # -- Links -------------------------------------------------------------

    @app.post("/api/links")
    async def create_link(request: Request, owner_id: str = Depends(_owner_id)) -> JSONResponse:
        payload = await _json_body(request)
        return _envelope(await _services(request).actions.create_link(owner_id, payload))

    @app.put("/api/links/{memory_id}")
    async def update_link(request: Request, memory_id: str, owner_id: str = Depends(_owner_id)) -> JSONResponse:
        payload = await _json_body(request)
        return _envelope(await _services(request).actions.update_link(owner_id, memory_id, payload))

    @app.delete("/api/links/{memory_id}")
    async def delete_link(request: Request, memory_id: str, owner_id: str = Depends(_owner_id)) -> JSONResponse:
        return _envelope(await _services(request).actions.delete_link(owner_id, memory_id))

    # -- Ideas -------------------------------------------------------------

    @app.post("/api/ideas")
    async def create_idea(request: Request, owner_id: str = Depends(_owner_id)) -> JSONResponse:
        payload = await _json_body(request)
        return _envelope(await _services(request).actions.create_idea(owner_id, payload))

    @app.put("/api/ideas/{memory_id}")
    async def update_idea(request: Request, memory_id: str, owner_id: str = Depends(_owner_id)) -> JSONResponse:
        payload = await _json_body(request)
        return _envelope(await _services(request).actions.update_idea(owner_id, memory_id, payload))

    @app.delete("/api/ideas/{memory_id}")
    async def delete_idea(request: Request, memory_id: str, owner_id: str = Depends(_owner_id)) -> JSONResponse:
        return _envelope(await _services(request).actions.delete_idea(owner_id, memory_id))

    # -- Metadata ----------------------------------------------------------

    @app.post("/api/extract-metadata")
    async def extract_metadata(request: Request, owner_id: str = Depends(_owner_id)) -> JSONResponse:
        try:
            body = await _json_body(request)
            url = validate_payload(MetadataRequest, body).url
        except ValidationError as e:
            return JSONResponse(
                {"error": "Invalid request data", "details": e.field_errors},
                status_code=400
            )

        try:
            metadata = await _services(request).extractor.extract(url)
        except Exception:
            logger.exception(f"Unexpected failure extracting metadata for {url}")
            return JSONResponse({"error": "Could not process the request"}, status_code=500)

        return JSONResponse(metadata)

    return app


def main():
    """Run the server with uvicorn."""
    import uvicorn
    from .config import settings

    configure_logging(settings.log_level, settings.log_json)
    logger.info(f"Starting Keepwise on {settings.host}:{settings.port}")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
