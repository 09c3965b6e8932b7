"""
Request and response bodies for the HTTP API.

Field aliases follow the camelCase names the chat frontend sends.
"""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..history.models import TranscriptTurn, UserProfile
from ..history.passwords import MAX_PASSWORD_BYTES


class RegisterRequest(BaseModel):
    """Request to create an account."""

    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(..., min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=1)
    first_name: str | None = Field(None, alias="firstName")
    last_name: str | None = Field(None, alias="lastName")
    gender: str | None = None
    grade_level: str | None = Field(None, alias="gradeLevel")
    dob: date | None = None

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v

    def profile(self) -> UserProfile:
        return UserProfile(
            first_name=self.first_name,
            last_name=self.last_name,
            gender=self.gender,
            grade_level=self.grade_level,
            dob=self.dob,
        )


class LoginRequest(BaseModel):
    """Request to check credentials."""

    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AuthResponse(BaseModel):
    message: str
    userID: int


class SaveConversationRequest(BaseModel):
    """One chat session's transcript to store in a single transaction."""

    userId: int
    conversationId: str
    messages: list[TranscriptTurn]


class SaveConversationResponse(BaseModel):
    message: str
    saved: int
