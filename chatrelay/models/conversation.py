"""Conversation state models owned by the session runtime."""

import uuid
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_SESSION_TITLE = "New conversation"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_id() -> str:
    return str(uuid.uuid4())


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Message(_CamelModel):
    """One turn in a conversation."""

    id: str = Field(default_factory=generate_id, frozen=True)
    role: Literal["user", "assistant"] = Field(..., frozen=True)
    content: str = ""
    timestamp: datetime = Field(default_factory=utc_now, frozen=True)
    # Runtime signal only, never persisted
    is_streaming: bool = Field(default=False, exclude=True)

    def to_payload(self) -> dict[str, str]:
        """Reduce to the `{role, content}` pair sent to the relay."""
        return {"role": self.role, "content": self.content}


class ChatSession(_CamelModel):
    """One conversation: ordered messages plus metadata."""

    id: str = Field(default_factory=generate_id)
    title: str = DEFAULT_SESSION_TITLE
    messages: list[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def touch(self) -> None:
        self.updated_at = utc_now()

    def find_message(self, message_id: str) -> tuple[int, Optional[Message]]:
        for index, message in enumerate(self.messages):
            if message.id == message_id:
                return index, message
        return -1, None


class ChatSettings(_CamelModel):
    """Process-wide generation parameters."""

    temperature: float = Field(default=0.7, ge=0, le=2)
    max_tokens: int = Field(default=2048, ge=256, le=4096)
    thinking_mode: bool = False


class PersistedState(_CamelModel):
    """The single record written to the key-value store."""

    sessions: list[ChatSession] = Field(default_factory=list)
    settings: ChatSettings = Field(default_factory=ChatSettings)
