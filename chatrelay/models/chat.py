"""Chat relay wire models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatMessagePayload(BaseModel):
    """One role-tagged message as sent to the relay and forwarded upstream."""

    model_config = ConfigDict(extra="ignore")

    role: str = Field(..., description="Message author role, e.g. `user` or `assistant`")
    content: str = Field(..., description="Message text")


class ChatRequest(BaseModel):
    """Request model for a relayed chat completion."""

    model_config = ConfigDict(populate_by_name=True)

    messages: list[ChatMessagePayload] = Field(
        ...,
        min_length=1,
        description="Conversation in chronological order. Must not be empty.",
    )
    stream: bool = Field(
        default=True,
        description="Stream the reply as Server-Sent Events when `true`, return a single JSON object otherwise.",
    )
    # Logged only: the upstream call always uses the configured values
    temperature: Optional[float] = Field(
        default=None, description="Requested sampling temperature"
    )
    max_tokens: Optional[int] = Field(
        default=None, alias="maxTokens", description="Requested completion token limit"
    )


class ErrorResponse(BaseModel):
    """Error body returned before any stream begins."""

    error: str = Field(..., description="Human readable error summary")
    details: Optional[str] = Field(default=None, description="Additional error context")
