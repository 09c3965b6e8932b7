# chat_relay/history/repositories/base.py
from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Protocol

from chat_relay.history.models import (
    ConversationRecord,
    TranscriptTurn,
    UserProfile,
    UserSummary,
)


class UserRepository(Protocol):
    """
    Interface for user accounts.
    """

    async def register_user(
        self, email: str, password: str, profile: UserProfile
    ) -> int:
        """
        Create a user and return its id.  Raises DuplicateEmailError when the
        email is already registered.
        """
        ...

    async def authenticate(self, email: str, password: str) -> int:
        """
        Return the user id for valid credentials.  Raises
        InvalidCredentialsError for an unknown email or a wrong password.
        """
        ...

    async def list_users(self) -> list[UserSummary]:
        """
        Return all users without credentials.
        """
        ...


class ConversationRepository(Protocol):
    """
    Interface for storing and querying conversation transcripts.
    """

    async def save_conversation_batch(
        self, user_id: int, session_id: str, turns: Sequence[TranscriptTurn]
    ) -> int:
        """
        Store the turns of one session atomically and return how many rows
        were written.  On failure nothing is written and BatchSaveError is
        raised.
        """
        ...

    async def list_conversations_by_user(
        self, user_id: int
    ) -> list[ConversationRecord]:
        """
        Return a user's rows ordered by session, then time.
        """
        ...

    async def list_conversations_by_filters(
        self,
        user_id: int | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[ConversationRecord]:
        """
        Return rows matching the optional filters, newest first.  Dates are
        whole days, both ends inclusive.
        """
        ...
