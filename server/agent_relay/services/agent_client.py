from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, FrozenSet

import httpx
from pydantic import ValidationError

from agent_relay.core.config import AppSettings, get_settings
from agent_relay.models.agent import AgentMessagesResponse, SessionCreatedResponse
from agent_relay.services.errors import (
    DispatchError,
    MalformedResponseError,
    SessionCreationError,
    UpstreamTimeoutError,
    response_details,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/einstein/ai-agent/v1"


def new_external_session_key() -> str:
    return f"session-{uuid.uuid4()}"


@dataclass
class AgentSessionClient:
    """
    Thin transport over the agent platform's session and message endpoints.

    Holds no per-user state; sequencing is owned by the session registry.
    """

    api_host: str
    agent_id: str
    instance_url: str
    timezone: str = "America/Los_Angeles"
    locale: str = "en_US"
    timeout: float = 10.0
    expired_status_codes: FrozenSet[int] = field(default_factory=lambda: frozenset({404, 410}))

    @classmethod
    def from_settings(cls, settings: AppSettings | None = None) -> "AgentSessionClient":
        settings = settings or get_settings()
        if not settings.sf_api_host or not settings.agent_id or not settings.sf_instance:
            raise SessionCreationError("SF_API_HOST, AGENT_ID and SF_INSTANCE must be configured.")
        return cls(
            api_host=settings.sf_api_host.rstrip("/"),
            agent_id=settings.agent_id,
            instance_url=settings.sf_instance,
            timezone=settings.agent_timezone,
            locale=settings.agent_locale,
            timeout=float(settings.http_timeout_sec),
            expired_status_codes=frozenset(settings.session_expired_status_codes),
        )

    def session_payload(self) -> dict[str, Any]:
        return {
            "externalSessionKey": new_external_session_key(),
            "instanceConfig": {"endpoint": self.instance_url},
            "tz": self.timezone,
            "variables": [
                {
                    "name": "$Context.EndUserLanguage",
                    "type": "Text",
                    "value": self.locale,
                }
            ],
            "featureSupport": "Streaming",
            "streamingCapabilities": {"chunkTypes": ["Text"]},
            "bypassUser": True,
        }

    async def create_session(self, credential: str) -> str:
        url = f"{self.api_host}{API_PREFIX}/agents/{self.agent_id}/sessions"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=self.session_payload(), headers=_bearer(credential))
        except httpx.TimeoutException as exc:
            raise UpstreamTimeoutError("Session creation timed out.") from exc
        except httpx.RequestError as exc:
            raise SessionCreationError("Agent platform is unreachable.", details={"reason": str(exc)}) from exc

        if response.is_error:
            raise SessionCreationError("Agent session could not be started.", details=response_details(response))

        try:
            created = SessionCreatedResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise SessionCreationError(
                "Session response did not include a sessionId.", details=response_details(response)
            ) from exc

        logger.info("agent.session_created", extra={"session_id": created.sessionId})
        return created.sessionId

    async def send_message(self, credential: str, session_id: str, text: str, sequence: int) -> str:
        url = f"{self.api_host}{API_PREFIX}/sessions/{session_id}/messages"
        payload = {
            "message": {
                "sequenceId": sequence,
                "type": "Text",
                "text": text,
            },
            "variables": [],
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=payload, headers=_bearer(credential))
        except httpx.TimeoutException as exc:
            raise UpstreamTimeoutError("Message dispatch timed out.") from exc
        except httpx.RequestError as exc:
            raise DispatchError("Agent platform is unreachable.", details={"reason": str(exc)}) from exc

        if response.is_error:
            raise DispatchError(
                "Agent platform rejected the message.",
                details=response_details(response),
                # A 5xx may come from a gateway after the platform recorded the message.
                rejected=response.is_client_error,
                session_expired=response.status_code in self.expired_status_codes,
            )

        try:
            reply = AgentMessagesResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise MalformedResponseError(
                "Agent reply did not include a message.", details=response_details(response)
            ) from exc

        return reply.first_reply


def _bearer(credential: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {credential}"}
