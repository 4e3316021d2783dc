import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from notes_service.api.notes import router as notes_router
from notes_service.config import Settings, load_settings
from notes_service.errors import (
    NotesException,
    generic_exception_handler,
    notes_exception_handler,
    request_validation_handler,
)
from notes_service.services.notes_service import NotesService
from notes_service.storage.dynamo_backend import DynamoBackend
from notes_service.storage.event_log import EventLog
from notes_service.storage.file_backend import FileBackend
from notes_service.storage.kv_backend import KeyValueBackend, MemoryBackend
from notes_service.storage.notes_store import NotesStore

logger = logging.getLogger("notes.app")


def build_backend(settings: Settings) -> KeyValueBackend:
    if settings.storage_backend == "dynamodb":
        return DynamoBackend.from_settings(
            settings.table_name,
            region_name=settings.aws_region,
            endpoint_url=settings.dynamodb_endpoint_url,
        )
    if settings.storage_backend == "file":
        return FileBackend(settings.data_dir / "notes")
    return MemoryBackend()


def create_app(settings: Optional[Settings] = None, backend: Optional[KeyValueBackend] = None) -> FastAPI:
    settings = settings or load_settings()
    if not settings.jwt_secret:
        raise RuntimeError("JWT_SECRET is not set")
    logging.basicConfig(level=settings.log_level)

    backend = backend or build_backend(settings)
    event_log = EventLog(settings.data_dir if settings.event_log_to_file else None)

    app = FastAPI(title="Notes API", version="1.0.0")
    app.state.settings = settings
    app.state.notes_service = NotesService(NotesStore(backend), event_log=event_log)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "If-Match"],
    )

    app.add_exception_handler(NotesException, notes_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(notes_router)

    @app.get("/health")
    def health():
        return {"ok": True}

    logger.info("Notes API ready (backend=%s)", settings.storage_backend)
    return app
