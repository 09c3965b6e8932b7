# chat_relay/history/exceptions.py
from __future__ import annotations


class PersistenceError(Exception):
    """Base error for user and conversation storage."""

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.details = details


class DuplicateEmailError(PersistenceError):
    """Registration with an email that already exists."""

    def __init__(self, email: str):
        super().__init__("Email already registered.")
        self.email = email


class InvalidCredentialsError(PersistenceError):
    """Unknown email or wrong password; callers cannot tell which."""

    def __init__(self) -> None:
        super().__init__("Invalid email or password.")


class InvalidBatchError(PersistenceError):
    """A conversation batch with nothing to save or bad identifiers."""


class BatchSaveError(PersistenceError):
    """A conversation batch failed and was rolled back."""

    def __init__(self, details: str):
        super().__init__("Failed to save conversation session.", details)
