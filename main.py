import inspect
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from openai import AsyncOpenAI

from dal.material_dal import MaterialDAL
from routes.realtime_ws import router as realtime_router
from routes.session_route import router as session_router
from services.openai.companion_chat import CompanionChat
from services.openai.credential_issuer import CredentialIssuer
from services.realtime.dictation_transcriber import DictationTranscriber
from services.realtime.fallback_responder import FallbackResponder
from services.realtime.session_registry import SessionRegistry
from services.realtime.upstream_connector import UpstreamConnector
from services.realtime.ws_session import RealtimeRelay
from utils.database_init import AsyncDatabaseInitializer
from utils.settings import RelaySettings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the materials SQLite database (at DATABASE_DIR/materials.db)
      - the OpenAI async client, when an API key is configured
      - the session registry and the realtime relay that owns it
    and attach them to `app.state`. Live sessions are closed on shutdown.
    """
    settings: RelaySettings = app.state.settings

    db_initializer = AsyncDatabaseInitializer(settings.database_dir)
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer

    openai_client: Optional[AsyncOpenAI] = None
    if settings.openai_api_key:
        try:
            openai_client = AsyncOpenAI(api_key=settings.openai_api_key)
        except Exception as exc:
            raise RuntimeError("Failed to initialize OpenAI Async client") from exc
    else:
        logger.warning("OPENAI_API_KEY is not set; realtime sessions will use canned fallback replies")
    app.state.openai_client = openai_client

    fallback = FallbackResponder(
        chat=CompanionChat(openai_client, model=settings.chat_model) if openai_client else None,
        transcriber=(
            DictationTranscriber(
                openai_client,
                model=settings.transcribe_model,
                language=settings.transcribe_language,
            )
            if openai_client
            else None
        ),
        timeout=settings.external_call_timeout,
    )
    registry = SessionRegistry()
    app.state.session_registry = registry
    app.state.relay = RealtimeRelay(
        registry,
        UpstreamConnector(settings),
        fallback,
        MaterialDAL(db_initializer),
    )
    app.state.credential_issuer = CredentialIssuer(
        settings.openai_api_key,
        timeout=settings.external_call_timeout,
    )

    try:
        yield
    finally:
        await registry.close_all(app.state.relay)
        # Gracefully close the OpenAI client if it exposes a close/aclose method.
        client = getattr(app.state, "openai_client", None)
        if client is not None:
            aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
            if aclose is not None:
                try:
                    result = aclose()
                    if inspect.isawaitable(result):
                        await result
                except Exception as exc:
                    logger.debug("Ignoring error while closing OpenAI client: %s", exc)


def create_app(settings: Optional[RelaySettings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    settings = settings or RelaySettings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check reporting OpenAI availability and live session count.
        """
        has_openai = getattr(request.app.state, "openai_client", None) is not None
        registry = getattr(request.app.state, "session_registry", None)
        return {
            "ok": True,
            "openai_available": has_openai,
            "active_sessions": len(registry) if registry is not None else 0,
        }

    # Register application routers
    app.include_router(realtime_router)
    app.include_router(session_router)

    return app


app = create_app()
