"""Wire models for the remote agent platform and its token endpoint."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class AccessTokenResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(..., min_length=1)
    expires_in: float | None = Field(default=None, description="Lifetime in seconds, when the endpoint reports one.")


class SessionCreatedResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    sessionId: str = Field(..., min_length=1)


class AgentMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str | None = None
    message: str


class AgentMessagesResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    messages: List[AgentMessage] = Field(..., min_length=1)

    @property
    def first_reply(self) -> str:
        return self.messages[0].message
