"""
Core relay models.

- Inbound chat request and its role-tagged turns (validated with pydantic)
- Outbound relay events and their server-sent-event encoding
- Upstream configuration and payload shape selection
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError


class MessageRole(Enum):
    """Roles the upstream chat endpoint understands."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class UpstreamShape(Enum):
    """Payload shape of the upstream stream units."""
    AUTO = "auto"
    OLLAMA = "ollama"
    OPENAI = "openai"


class ChatTurn(BaseModel):
    """One role-tagged message of the conversation history."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: StrictStr

    def to_payload(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class ChatRequest(BaseModel):
    """Ordered, non-empty conversation history sent to the relay."""

    model_config = ConfigDict(frozen=True)

    messages: list[ChatTurn] = Field(min_length=1)

    @classmethod
    def from_body(cls, body: Any) -> ChatRequest:
        """
        Validate a decoded request body.

        Raises:
            ValidationError: With the first failing field path in the reason.
        """
        try:
            return cls.model_validate(body)
        except PydanticValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"]) or "body"
            raise ValidationError(f"{location}: {first['msg']}") from e


@dataclass(frozen=True)
class DeltaEvent:
    """Incremental fragment of the assistant reply."""
    content: str

    def to_payload(self) -> dict[str, str]:
        return {"content": self.content}


@dataclass(frozen=True)
class ErrorEvent:
    """Terminal error event; nothing follows it."""
    message: str
    category: str = "relay_error"

    def to_payload(self) -> dict[str, str]:
        return {"error": self.message}


RelayEvent = DeltaEvent | ErrorEvent


def format_sse(event: RelayEvent) -> str:
    """Encode an event as one ``data:`` frame with compact JSON."""
    data = json.dumps(event.to_payload(), separators=(",", ":"), ensure_ascii=False)
    return f"data: {data}\n\n"


@dataclass(frozen=True)
class UpstreamConfig:
    """Connection and payload settings for the completion service."""
    base_url: str
    chat_path: str
    model: str
    shape: UpstreamShape = UpstreamShape.AUTO

    # Connection settings
    connect_timeout: float = 10.0
    read_timeout: float = 120.0
    # Total relay budget in seconds, None for no bound
    max_duration: float | None = None

    # Merged into every upstream request body
    extra_body: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> UpstreamConfig:
        return cls(
            base_url=config["base_url"],
            chat_path=config["chat_path"],
            model=config["model"],
            shape=UpstreamShape(config["shape"]),
            connect_timeout=float(config["connect_timeout"]),
            read_timeout=float(config["read_timeout"]),
            max_duration=(
                float(config["max_duration"])
                if config["max_duration"] is not None
                else None
            ),
            extra_body=dict(config.get("extra_body") or {}),
        )
