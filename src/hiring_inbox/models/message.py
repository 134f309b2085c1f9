"""Message and notification models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from hiring_inbox.models.enums import Side
from hiring_inbox.models.user import Participant
from hiring_inbox.utils.clock import ensure_utc


class Message(BaseModel):
    """Message exposed over the API."""

    id: int
    conversation_id: int
    sender_side: Side
    sender_id: Optional[int] = None
    body: str
    created_at: datetime

    class Config:
        from_attributes = True

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def sent_by(self, participant: Participant) -> bool:
        return self.sender_side == participant.side and self.sender_id == participant.id


class MessageCreateRequest(BaseModel):
    user_id: int
    body: str


class Notification(BaseModel):
    """Read state of one message for one recipient."""

    id: int
    recipient_id: int
    conversation_id: int
    message_id: int
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("read_at", "created_at")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @property
    def read(self) -> bool:
        return self.read_at is not None
