"""
FastAPI application entry point.

WHAT: Main application setup and wiring
WHY: Build the engine once per process and expose it over HTTP
HOW: create_app() registers middleware, routers and handlers; the lifespan
     builds store, provider, state machine and service onto app.state
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.v1.router import api_router
from .core.config import Settings, settings as default_settings
from .core.conversation_store import ConversationStore
from .core.database import Database
from .core.persistence import SqlSessionPersistence
from .engine.state_machine import NegotiationStateMachine
from .llm.completion import CompletionClient
from .llm.provider import LLMProvider
from .llm.provider_factory import create_provider
from .middleware.error_handler import register_exception_handlers
from .services.analytics import AnalyticsContext
from .services.negotiation_service import NegotiationService
from .utils.logger import setup_logging, get_logger

logger = get_logger(__name__)


@dataclass
class AppComponents:
    """Everything the lifespan builds and tears down."""
    service: NegotiationService
    store: ConversationStore
    provider: LLMProvider
    database: Database | None = None


def build_components(settings: Settings, provider: LLMProvider | None = None) -> AppComponents:
    """
    Wire the negotiation engine for one application instance.

    Args:
        settings: Application settings
        provider: LLM provider override; defaults to the configured one

    Returns:
        AppComponents ready to serve requests
    """
    database = None
    persistence = None
    if settings.PERSISTENCE_ENABLED:
        database = Database(settings.DATABASE_URL, echo=settings.DEBUG)
        database.init_db()
        persistence = SqlSessionPersistence(database)

    store = ConversationStore(settings, persistence=persistence)
    provider = provider or create_provider(settings)
    analytics = AnalyticsContext()
    machine = NegotiationStateMachine(
        settings,
        store,
        CompletionClient(provider, timeout=settings.LLM_REQUEST_TIMEOUT),
        analytics=analytics,
    )
    service = NegotiationService(settings, machine, analytics)
    return AppComponents(service=service, store=store, provider=provider, database=database)


def create_app(settings: Settings | None = None, provider: LLMProvider | None = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Settings instance; defaults to the environment-derived one
        provider: LLM provider override (tests inject a scripted provider)
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
        components = build_components(settings, provider)
        app.state.service = components.service
        app.state.provider = components.provider
        app.state.database = components.database
        components.store.start_cleanup()
        logger.info("Application startup complete")

        yield

        logger.info("Shutting down application")
        components.store.stop_cleanup()
        await components.provider.aclose()
        if components.database is not None:
            components.database.close_db()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/")
    async def root():
        return {
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running"
        }

    return app


setup_logging(default_settings)
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "negotiator.main:app",
        host="0.0.0.0",
        port=8000,
        reload=default_settings.DEBUG
    )
