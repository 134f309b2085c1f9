"""Conversation models and the state rules evaluated over them.

Every predicate here is a pure function of an already-loaded conversation,
its messages and the acting user. Nothing in this module touches the
database; read-state lookups that need notifications live in
``ConversationService``.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from hiring_inbox import constants
from hiring_inbox.models.enums import Side
from hiring_inbox.models.message import Message
from hiring_inbox.models.user import Participant, User
from hiring_inbox.utils.clock import ensure_utc, utc_now


class NotAParticipantError(RuntimeError):
    """Raised when a user is on neither side of a conversation."""


class Conversation(BaseModel):
    """Snapshot of a conversation and its messages."""

    id: int
    inbound_email_token: str
    developer: Optional[Participant] = None
    business: Optional[Participant] = None
    developer_blocked_at: Optional[datetime] = None
    business_blocked_at: Optional[datetime] = None
    developer_archived_at: Optional[datetime] = None
    business_archived_at: Optional[datetime] = None
    user_with_unread_messages_id: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    messages: List[Message] = Field(default_factory=list)

    class Config:
        from_attributes = True

    @field_validator(
        "developer_blocked_at",
        "business_blocked_at",
        "developer_archived_at",
        "business_archived_at",
        "created_at",
        "updated_at",
    )
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @field_validator("messages")
    @classmethod
    def order_messages(cls, value: List[Message]) -> List[Message]:
        # Equal timestamps fall back to insertion order.
        return sorted(value, key=lambda message: (message.created_at, message.id))

    # Identity -------------------------------------------------------------------
    def is_orphaned(self) -> bool:
        """True once either participant has been removed."""
        return self.developer is None or self.business is None

    def is_developer_side(self, user: User) -> bool:
        return user.developer is not None and user.developer.same_as(self.developer)

    def is_business_side(self, user: User) -> bool:
        return user.business is not None and user.business.same_as(self.business)

    def side_of(self, user: User) -> Side:
        """Return the side ``user`` acts for, checking the developer side first."""
        if self.is_developer_side(user):
            return Side.DEVELOPER
        if self.is_business_side(user):
            return Side.BUSINESS
        raise NotAParticipantError(f"User {user.id} is not part of conversation {self.id}.")

    def participant_for(self, side: Side) -> Optional[Participant]:
        return self.developer if side == Side.DEVELOPER else self.business

    def other_participant(self, user: User) -> Optional[Participant]:
        """Return the opposite side to ``user``; ``None`` if that side was removed."""
        if self.side_of(user) == Side.DEVELOPER:
            return self.business
        return self.developer

    # Visibility -----------------------------------------------------------------
    def is_blocked(self) -> bool:
        return self.developer_blocked_at is not None or self.business_blocked_at is not None

    def is_visible(self) -> bool:
        return self.developer_blocked_at is None and self.business_blocked_at is None

    def is_unarchived_for(self, user: User) -> bool:
        """True if the conversation is still in ``user``'s active list."""
        return (self.is_business_side(user) and self.business_archived_at is None) or (
            self.is_developer_side(user) and self.developer_archived_at is None
        )

    def archived_at_for(self, side: Side) -> Optional[datetime]:
        return self.developer_archived_at if side == Side.DEVELOPER else self.business_archived_at

    # Unread ---------------------------------------------------------------------
    def has_unread_for(self, user: User) -> bool:
        return self.user_with_unread_messages_id is not None and self.user_with_unread_messages_id == user.id

    # Messages -------------------------------------------------------------------
    def latest_message(self) -> Optional[Message]:
        if not self.messages:
            return None
        return max(self.messages, key=lambda message: (message.created_at, message.id))

    def developer_has_replied(self) -> bool:
        return any(message.sender_side == Side.DEVELOPER for message in self.messages)

    def is_first_reply(self, sender: Participant) -> bool:
        """True while ``sender``'s one and only message is still the newest."""
        sent = [message for message in self.messages if message.sent_by(sender)]
        latest = self.latest_message()
        return len(sent) == 1 and latest is not None and latest.sent_by(sender)

    def hiring_fee_eligible(self, now: Optional[datetime] = None) -> bool:
        """Developer engaged and the grace period since creation has elapsed."""
        now = ensure_utc(now) if now is not None else utc_now()
        return self.developer_has_replied() and self.created_at <= now - constants.HIRING_FEE_GRACE_PERIOD


class ConversationStatus(BaseModel):
    """Every state predicate of a conversation, evaluated for one user."""

    conversation_id: int
    user_id: int
    side: Side
    orphaned: bool
    blocked: bool
    visible: bool
    unarchived: bool
    unread: bool
    developer_replied: bool
    hiring_fee_eligible: bool
    first_reply: bool
    latest_message_read_by_other_recipient: bool
    other_participant: Optional[Participant] = None


class ConversationCreateRequest(BaseModel):
    developer_id: int
    business_id: int


class ConversationActionRequest(BaseModel):
    user_id: int
