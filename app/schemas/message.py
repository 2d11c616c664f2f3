"""Pydantic schemas for outgoing messages."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from app.utils.phone import normalize_phone_number

MAX_MESSAGE_LENGTH = 4096
MAX_CAPTION_LENGTH = 1024


class _RecipientModel(BaseModel):
    to: str = Field(
        ...,
        description="Recipient phone number in international format, digits only after stripping.",
        examples=["5511912345678"],
    )

    @field_validator("to")
    @classmethod
    def _normalize_to(cls, value: str) -> str:
        return normalize_phone_number(value)


class SendTextRequest(_RecipientModel):
    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)


class SendMediaRequest(_RecipientModel):
    """Form fields accompanying a media upload."""

    caption: str | None = Field(default=None, max_length=MAX_CAPTION_LENGTH)


class SendMessageResponse(BaseModel):
    message_id: str
    to: str = Field(..., description="Chat id the message was delivered to.")
