# chat_relay/history/models.py
from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

TranscriptRole = Literal["user", "assistant"]


class UserProfile(BaseModel):
    """Optional profile fields captured at registration."""
    first_name: str | None = None
    last_name: str | None = None
    gender: str | None = None
    grade_level: str | None = None
    dob: date | None = None


class UserSummary(BaseModel):
    """User listing row; never carries credentials."""
    user_id: int
    first_name: str | None = None
    last_name: str | None = None
    gender: str | None = None
    grade_level: str | None = None


class TranscriptTurn(BaseModel):
    """
    One side of a conversation turn to persist.

    Accepts both ``role``/``content`` and the ``messageType``/``messageContent``
    names used by the chat frontend.
    """
    model_config = ConfigDict(populate_by_name=True)

    role: TranscriptRole = Field(alias="messageType")
    content: str | None = Field(default=None, alias="messageContent")


class ConversationRecord(BaseModel):
    """A stored conversation row, optionally joined with the user's name."""
    chat_id: int
    user_id: int
    session_id: str
    user_message: str | None = None
    ai_message: str | None = None
    timestamp: datetime
    first_name: str | None = None
    last_name: str | None = None
