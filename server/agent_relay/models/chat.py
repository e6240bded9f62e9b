from __future__ import annotations

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    userId: str = Field(..., min_length=1, description="Caller-supplied identifier of the end user.")
    text: str = Field(..., min_length=1, description="Message text to relay to the agent.")


class ChatResponse(BaseModel):
    userId: str = Field(..., description="Identifier of the end user the reply belongs to.")
    sessionId: str = Field(..., description="Remote agent session the message was routed into.")
    agentReply: str = Field(..., description="Reply text returned by the agent.")


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Generic failure message.")
