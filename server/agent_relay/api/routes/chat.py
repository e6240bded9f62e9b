from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from agent_relay.agents.orchestrator import GENERIC_FAILURE_MESSAGE, ChatFailedError, ConversationOrchestrator
from agent_relay.core.config import get_settings
from agent_relay.models.chat import ChatRequest, ChatResponse, ErrorResponse
from agent_relay.services.agent_client import AgentSessionClient
from agent_relay.services.credentials import ClientCredentialsProvider
from agent_relay.services.errors import RelayError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


def get_orchestrator(request: Request) -> ConversationOrchestrator:
    settings = get_settings()
    state = request.app.state
    try:
        credentials = ClientCredentialsProvider.from_settings(settings, cache=state.credential_cache)
        agent = AgentSessionClient.from_settings(settings)
    except RelayError as exc:
        logger.error("chat.misconfigured", extra={"error_type": exc.error_type, "error_message": exc.message})
        raise ChatFailedError(GENERIC_FAILURE_MESSAGE) from exc
    return ConversationOrchestrator(
        credentials=credentials,
        registry=state.session_registry,
        agent=agent,
        recover_expired_sessions=settings.session_recovery_enabled,
    )


@router.post("", response_model=ChatResponse, responses={500: {"model": ErrorResponse}})
async def chat_with_agent(
    request: ChatRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> ChatResponse:
    return await orchestrator.run(request)
