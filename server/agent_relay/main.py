from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agent_relay.agents.registry import SessionRegistry
from agent_relay.api.routes import chat, speech
from agent_relay.core.config import get_settings
from agent_relay.core.exceptions import register_exception_handlers
from agent_relay.core.logging import configure_logging
from agent_relay.core.middleware import RequestContextMiddleware
from agent_relay.services.credentials import CredentialCache


def create_app() -> FastAPI:
    """
    Application factory for the agent relay.

    Session state lives on ``app.state`` for the lifetime of the process and is
    never persisted.
    """

    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.api_title,
        description="Relays per-user conversations into remote agent sessions.",
        version=settings.api_version,
    )
    app.state.session_registry = SessionRegistry()
    app.state.credential_cache = CredentialCache(default_ttl=settings.credential_cache_ttl_sec)

    cors_origins = settings.resolved_cors_origins
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_exception_handlers(app)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(chat.router)
    app.include_router(speech.router)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
