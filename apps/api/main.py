import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from apps.api.core.config import get_settings
from apps.api.core.logging import configure_logging, init_tracer, shutdown_tracer
from apps.api.routes import etickets, health
from apps.api.services.etickets import ETicketService, ETicketStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    app.state.logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)
    app.state.tracer_provider = tracer_provider

    store = ETicketStore.from_url(settings.database_url, echo=settings.database_echo)
    app.state.eticket_store = store
    app.state.eticket_service = None
    try:
        await store.ensure_schema()
        app.state.eticket_service = ETicketService(store)
    except Exception:
        logger.exception("Ticket store could not be initialised; ticket routes will answer 503")
    try:
        yield
    finally:
        await store.close()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(health.router)
    app.include_router(etickets.router)
    return app


app = create_app()
