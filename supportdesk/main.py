import logging
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from supportdesk.admin.api import router as admin_router
from supportdesk.config import Settings, load_settings
from supportdesk.database import close_pool, create_pool, init_schema
from supportdesk.deps import Services
from supportdesk.modules.assistant.api import router as assistant_router
from supportdesk.modules.assistant.client import SupportAssistant
from supportdesk.modules.handoff.api import router as live_chat_router
from supportdesk.modules.handoff.coordinator import STORE_ERRORS
from supportdesk.modules.handoff.errors import HandoffError, ReadFailed, WriteFailed
from supportdesk.modules.meetings.api import router as meetings_router
from supportdesk.modules.stores.postgres import (
    PostgresChangeFeed,
    PostgresConversationStore,
    PostgresMeetingStore,
    PostgresMessageStore,
    PostgresSessionStore,
    PostgresTicketStore,
)
from supportdesk.modules.tickets.api import router as tickets_router


def error_response(exc: HandoffError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.description,
            "notice": asdict(exc.notice),
            "navigate": exc.navigate_to,
        },
    )


def build_services(settings: Settings, pool) -> Services:
    return Services(
        settings=settings,
        tickets=PostgresTicketStore(pool),
        sessions=PostgresSessionStore(pool),
        messages=PostgresMessageStore(pool),
        meetings=PostgresMeetingStore(pool),
        conversations=PostgresConversationStore(pool),
        feed=PostgresChangeFeed(settings.database_url),
        assistant=SupportAssistant(settings),
    )


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Build the app. Passing services skips the database (used by tests)."""
    settings = settings or (services.settings if services else load_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if services is not None:
            yield
            return

        pool = await create_pool(settings)
        await init_schema(pool)
        app.state.services = build_services(settings, pool)
        try:
            yield
        finally:
            await app.state.services.feed.close()
            await close_pool(pool)

    app = FastAPI(
        title="Supportdesk",
        description="Customer support portal with AI assistant and live-chat hand-off",
        version="0.1.0",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    app.include_router(tickets_router, prefix="/tickets", tags=["tickets"])
    app.include_router(live_chat_router, prefix="/live-chats", tags=["live-chat"])
    app.include_router(meetings_router, tags=["meetings"])
    app.include_router(assistant_router, prefix="/assistant", tags=["assistant"])
    app.include_router(admin_router, prefix="/admin", tags=["admin"])

    @app.exception_handler(HandoffError)
    async def handoff_error_handler(request: Request, exc: HandoffError):
        logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.description)
        return error_response(exc)

    async def store_error_handler(request: Request, exc: Exception):
        logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
        if request.method == "GET":
            return error_response(ReadFailed("Could not load the latest data. Please try again."))
        return error_response(WriteFailed("Failed to save changes. Please try again."))

    for exc_class in STORE_ERRORS:
        app.add_exception_handler(exc_class, store_error_handler)

    @app.get("/health")
    async def health():
        return {"status": "ok", "environment": settings.environment}

    return app


app = create_app()
