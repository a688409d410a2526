from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine

from receptionist.config import Settings
from receptionist.config import settings as default_settings
from receptionist.database import build_engine, build_session_factory, init_db
from receptionist.logging_config import get_logger, setup_logging
from receptionist.routers import dashboard, hooks, realtime, widget
from receptionist.services.alert_service import Alerter, build_alerter
from receptionist.services.channels import build_adapters
from receptionist.services.completion_service import CompletionGateway
from receptionist.services.dedup_service import Deduplicator, build_redis_client
from receptionist.services.live_notifier import LiveNotifier
from receptionist.services.llm import LLMProvider, build_provider
from receptionist.services.pipeline import InboundPipeline

logger = get_logger("main")


def _cors_origins(value: str) -> list[str]:
    origins = [origin.strip() for origin in value.split(",") if origin.strip()]
    return origins or ["*"]


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    llm_provider: Optional[LLMProvider] = None,
    notifier: Optional[LiveNotifier] = None,
    redis_client=None,
    alerter: Optional[Alerter] = None,
) -> FastAPI:
    """Build the application with its collaborators injected."""
    settings = settings or default_settings
    setup_logging(settings.log_level)

    engine = engine or build_engine(settings.database_url)
    session_factory = build_session_factory(engine)
    notifier = notifier or LiveNotifier()
    gateway = CompletionGateway(
        provider=llm_provider or build_provider(settings),
        fallback_reply=settings.fallback_reply,
        timeout_seconds=settings.completion_timeout_seconds,
        history_limit=settings.history_limit,
        temperature=settings.completion_temperature,
        model=settings.openai_model,
    )
    deduplicator = Deduplicator(
        redis_client=redis_client or build_redis_client(settings.redis_url),
        ttl_seconds=settings.dedup_ttl_seconds,
    )

    app = FastAPI(
        title="Receptionist API",
        description="Multi-tenant webhook ingestion and conversation routing for the AI receptionist",
        version="0.1.0",
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.notifier = notifier
    app.state.adapters = adapters = build_adapters(settings)
    app.state.deduplicator = deduplicator
    app.state.pipeline = InboundPipeline(
        session_factory=session_factory,
        gateway=gateway,
        notifier=notifier,
        deduplicator=deduplicator,
        idle_timeout_minutes=settings.conversation_idle_timeout_minutes or None,
        alerter=alerter or build_alerter(settings),
        adapters=adapters,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(settings.cors_allow_origins),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(hooks.router)
    app.include_router(widget.router)
    app.include_router(dashboard.router)
    app.include_router(realtime.router)

    @app.on_event("startup")
    async def create_tables() -> None:
        init_db(engine)
        logger.info("Database ready")

    @app.on_event("shutdown")
    async def close_clients() -> None:
        await deduplicator.close()

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
