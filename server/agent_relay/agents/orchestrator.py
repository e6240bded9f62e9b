from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Protocol

from agent_relay.agents.registry import SessionLease, SessionRegistry
from agent_relay.core.context import bind_user_id, reset_user_id
from agent_relay.core.exceptions import AppError
from agent_relay.models.chat import ChatRequest, ChatResponse
from agent_relay.services.errors import DispatchError, RelayError

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Something went wrong"


class ChatFailedError(AppError):
    status_code = 500
    error_type = "CHAT_FAILED"


class OrchestrationStage(str, Enum):
    authenticating = "authenticating"
    session_resolving = "session_resolving"
    dispatching = "dispatching"
    completed = "completed"
    failed = "failed"


class CredentialSource(Protocol):
    async def fetch(self) -> str:
        ...

    def invalidate(self) -> None:
        ...


class AgentTransport(Protocol):
    async def create_session(self, credential: str) -> str:
        ...

    async def send_message(self, credential: str, session_id: str, text: str, sequence: int) -> str:
        ...


@dataclass
class ConversationOrchestrator:
    """
    Runs one chat turn: authenticate, resolve the user's session, dispatch, reply.

    Stage failures surface as ChatFailedError with a generic message; the
    specific error kind and remote diagnostics only reach the logs.
    """

    credentials: CredentialSource
    registry: SessionRegistry
    agent: AgentTransport
    recover_expired_sessions: bool = False

    async def run(self, request: ChatRequest) -> ChatResponse:
        user_token = bind_user_id(request.userId)
        stage = OrchestrationStage.authenticating
        try:
            credential = await self.credentials.fetch()

            stage = OrchestrationStage.session_resolving
            lease = await self._resolve(request.userId, credential)

            stage = OrchestrationStage.dispatching
            try:
                reply = await self._dispatch(request, credential, lease)
            except DispatchError as exc:
                if not (self.recover_expired_sessions and exc.session_expired):
                    raise
                logger.warning(
                    "chat.session_expired",
                    extra={"session_id": lease.handle, "details": exc.details},
                )
                await self.registry.invalidate(request.userId, lease.handle)
                stage = OrchestrationStage.session_resolving
                lease = await self._resolve(request.userId, credential)
                stage = OrchestrationStage.dispatching
                reply = await self._dispatch(request, credential, lease)

            stage = OrchestrationStage.completed
            logger.info(
                "chat.completed",
                extra={"session_id": lease.handle, "sequence": lease.sequence, "stage": stage.value},
            )
            return ChatResponse(userId=request.userId, sessionId=lease.handle, agentReply=reply)
        except RelayError as exc:
            if exc.details.get("status_code") == 401:
                # The platform refused the bearer token; never reuse it.
                self.credentials.invalidate()
            logger.error(
                "chat.failed",
                extra={
                    "stage": OrchestrationStage.failed.value,
                    "failed_during": stage.value,
                    "error_type": exc.error_type,
                    "error_message": exc.message,
                    "details": exc.details,
                },
            )
            raise ChatFailedError(GENERIC_FAILURE_MESSAGE) from exc
        finally:
            reset_user_id(user_token)

    async def _resolve(self, user_id: str, credential: str) -> SessionLease:
        lease = await self.registry.get_or_create(user_id, partial(self.agent.create_session, credential))
        logger.debug(
            "chat.session_resolved",
            extra={"session_id": lease.handle, "sequence": lease.sequence, "session_created": lease.created},
        )
        return lease

    async def _dispatch(self, request: ChatRequest, credential: str, lease: SessionLease) -> str:
        try:
            return await self.agent.send_message(credential, lease.handle, request.text, lease.sequence)
        except DispatchError as exc:
            # Refused outright by the platform, so the number was never consumed remotely.
            if exc.rejected:
                await self.registry.release(request.userId, lease.handle, lease.sequence)
            raise
