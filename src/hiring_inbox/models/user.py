"""User and participant models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from hiring_inbox.models.enums import Side


class Participant(BaseModel):
    """One side of a conversation: a developer or a business identity."""

    id: int
    user_id: Optional[int] = None
    name: str
    side: Side

    class Config:
        from_attributes = True

    def same_as(self, other: Optional["Participant"]) -> bool:
        return other is not None and other.side == self.side and other.id == self.id


class User(BaseModel):
    """Account plus the identities it holds."""

    id: int
    email: str
    developer: Optional[Participant] = None
    business: Optional[Participant] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserCreateRequest(BaseModel):
    email: str


class IdentityCreateRequest(BaseModel):
    name: str
