"""FastAPI application for the Dear Stranger gateway."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel, ValidationError

from .config import Settings, settings as default_settings
from .errors import MalformedInput, StorageUnavailable
from .models import Message, MessageCreate, Report, ReportCreate
from .moderation import moderate
from .store import MessageStore, MongoStore

logger = logging.getLogger(__name__)
logger.setLevel(default_settings.log_level)

__all__ = ["app", "create_app", "get_store", "get_settings"]


def get_store(request: Request) -> MessageStore:
    """Return the store attached to the running application."""
    return request.app.state.store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def parsed_body(model: type[BaseModel]):
    """Dependency parsing a JSON or form-encoded body into ``model``.

    Form fields arrive as strings and go through the same validation as JSON;
    failures raise :class:`RequestValidationError` like a declared body would.
    """

    async def parse(request: Request):
        content_type = request.headers.get("content-type", "")
        if content_type.startswith(FORM_CONTENT_TYPES):
            data = dict(await request.form())
        else:
            try:
                data = await request.json()
            except ValueError:
                raise RequestValidationError(
                    [{"type": "json_invalid", "loc": ("body",), "msg": "JSON decode error"}]
                )
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise RequestValidationError(
                [{**error, "loc": ("body", *error["loc"])} for error in e.errors()]
            )

    return parse


def _validation_error(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": message, "error_type": "validation_error"},
    )


def _storage_error(e: StorageUnavailable, endpoint: str) -> JSONResponse:
    logger.error(f"Storage error in {endpoint} endpoint: {e}")
    return JSONResponse(
        status_code=503,
        content={"error": "Storage unavailable", "error_type": "storage_unavailable"},
    )


def _internal_error(e: Exception, endpoint: str) -> JSONResponse:
    logger.error(f"Unexpected error in {endpoint} endpoint: {e}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "error_type": "internal_error"},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Acquire the store for the lifetime of the process."""
    if app.state.store is None:
        app.state.store = MongoStore.from_settings(app.state.settings)
    store = app.state.store

    await store.connect()
    ping = getattr(store, "ping", None)
    if ping is not None:
        try:
            await ping()
        except StorageUnavailable:
            logger.exception("Database ping failed; continuing without a verified connection.")
    try:
        yield
    finally:
        await store.close()


def create_app(
    store: MessageStore | None = None, settings: Settings | None = None
) -> FastAPI:
    """Build the API around ``store``.

    When ``store`` is ``None`` a :class:`MongoStore` is created from
    ``settings`` at startup.
    """
    app = FastAPI(title="Dear Stranger API", lifespan=lifespan)
    app.state.store = store
    app.state.settings = settings or default_settings

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log basic information about incoming requests and outgoing responses."""
        logger.info("Request %s %s", request.method, request.url.path)
        response = await call_next(request)
        logger.info("Response %s %s", response.status_code, request.url.path)
        return response

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        """Report missing or mistyped body fields as a client error."""
        problems = []
        for error in exc.errors():
            field = ".".join(str(part) for part in error["loc"][1:])
            problems.append(f"{field}: {error['msg']}" if field else error["msg"])
        message = "; ".join(problems) or "Malformed request body"
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, message)
        return _validation_error(message)

    @app.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        """Liveness check."""
        return "Hello world!"

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint.

        Returns a simple status dictionary indicating the API is running.
        """
        return {"status": "ok"}

    @app.get("/messages", response_model=list[Message])
    async def list_messages(store: MessageStore = Depends(get_store)):
        """Return every stored letter."""
        try:
            return await store.list_messages()
        except StorageUnavailable as e:
            return _storage_error(e, "GET /messages")
        except Exception as e:
            return _internal_error(e, "GET /messages")

    @app.post("/messages", response_model=Message)
    async def create_message(
        payload: MessageCreate = Depends(parsed_body(MessageCreate)),
        store: MessageStore = Depends(get_store),
    ):
        """Store a new letter and echo it back with its identifier."""
        try:
            message = payload.to_message()
        except MalformedInput as e:
            logger.warning(f"Rejected letter: {e}")
            return _validation_error(str(e))

        try:
            created = await store.create_message(message)
        except StorageUnavailable as e:
            return _storage_error(e, "POST /messages")
        except Exception as e:
            return _internal_error(e, "POST /messages")

        logger.info("Created letter %s", created.uuid)
        return created

    @app.delete("/messages/{uuid}", status_code=204)
    async def delete_message(
        uuid: str,
        x_admin_uuid: str | None = Header(default=None),
        store: MessageStore = Depends(get_store),
        settings: Settings = Depends(get_settings),
    ):
        """Remove a letter on behalf of the administrator.

        Deleting an unknown letter succeeds without doing anything.
        """
        if settings.admin_uuid is None or x_admin_uuid != settings.admin_uuid:
            logger.warning("Refused deletion of letter %s", uuid)
            return JSONResponse(
                status_code=403,
                content={"error": "Administrator only", "error_type": "forbidden"},
            )

        try:
            removed = await store.delete_message(uuid)
        except StorageUnavailable as e:
            return _storage_error(e, "DELETE /messages")
        except Exception as e:
            return _internal_error(e, "DELETE /messages")

        logger.info("Administrator deletion of letter %s (removed=%s)", uuid, removed)
        return Response(status_code=204)

    @app.get("/reports", response_model=list[Report])
    async def list_reports(store: MessageStore = Depends(get_store)):
        """Return every stored report."""
        try:
            return await store.list_reports()
        except StorageUnavailable as e:
            return _storage_error(e, "GET /reports")
        except Exception as e:
            return _internal_error(e, "GET /reports")

    @app.post("/reports", response_model=Report)
    async def create_report(
        payload: ReportCreate = Depends(parsed_body(ReportCreate)),
        store: MessageStore = Depends(get_store),
        settings: Settings = Depends(get_settings),
    ):
        """Store a report, then apply moderation to the reported letter.

        The report is echoed back whatever moderation decides or whether it
        could run at all.
        """
        try:
            report = payload.to_report()
        except MalformedInput as e:
            logger.warning(f"Rejected report: {e}")
            return _validation_error(str(e))

        try:
            created = await store.create_report(report)
        except StorageUnavailable as e:
            return _storage_error(e, "POST /reports")
        except Exception as e:
            return _internal_error(e, "POST /reports")

        logger.info("Letter %s reported by %s", created.letter_uuid, created.reporter_uuid)
        await moderate(store, created, settings.admin_uuid)
        return created

    return app


app = create_app()
