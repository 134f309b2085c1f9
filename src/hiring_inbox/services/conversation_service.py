"""Conversation lifecycle, visibility and read-state operations."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hiring_inbox.clients.database import (
    Business as BusinessORM,
    Conversation as ConversationORM,
    Developer as DeveloperORM,
    session_scope,
)
from hiring_inbox.models.conversation import Conversation, ConversationStatus
from hiring_inbox.services.notification_service import NotificationService
from hiring_inbox.services.user_service import ParticipantNotFoundError, UserService
from hiring_inbox.utils.clock import utc_now
from hiring_inbox.utils.tokens import normalize_token

LOG = logging.getLogger(__name__)


class ConversationNotFoundError(RuntimeError):
    """Raised when a conversation id or inbound email token does not resolve."""


class DuplicateConversationError(RuntimeError):
    """Raised when the developer/business pair already has a conversation."""


def _snapshot(conversation: ConversationORM) -> Conversation:
    return Conversation.model_validate(conversation, from_attributes=True)


class ConversationService:
    """Owns the conversation row and every write to its state columns."""

    def __init__(self, users: UserService, notifications: NotificationService) -> None:
        self.users = users
        self.notifications = notifications

    # Lookup ---------------------------------------------------------------------
    def fetch(self, db: Session, conversation_id: int) -> ConversationORM:
        """Return the ORM row inside ``db`` or raise ConversationNotFoundError."""
        conversation = db.get(ConversationORM, conversation_id)
        if not conversation:
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found.")
        return conversation

    def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        with session_scope() as db:
            conversation = db.get(ConversationORM, conversation_id)
            return _snapshot(conversation) if conversation else None

    def require_conversation(self, conversation_id: int) -> Conversation:
        with session_scope() as db:
            return _snapshot(self.fetch(db, conversation_id))

    def find_by_inbound_email_token(self, token: str) -> Conversation:
        """Resolve an inbound email token regardless of case."""
        with session_scope() as db:
            conversation = (
                db.query(ConversationORM)
                .filter(func.lower(ConversationORM.inbound_email_token) == normalize_token(token))
                .first()
            )
            if not conversation:
                raise ConversationNotFoundError("No conversation matches the inbound email token.")
            return _snapshot(conversation)

    # Creation / deletion --------------------------------------------------------
    def create_conversation(self, developer_id: int, business_id: int) -> Conversation:
        with session_scope() as db:
            developer = db.get(DeveloperORM, developer_id)
            if not developer:
                raise ParticipantNotFoundError(f"Developer {developer_id} not found.")
            business = db.get(BusinessORM, business_id)
            if not business:
                raise ParticipantNotFoundError(f"Business {business_id} not found.")
            if self._find_pair(db, developer_id, business_id) is not None:
                raise DuplicateConversationError(
                    f"Developer {developer_id} and business {business_id} already have a conversation."
                )
            conversation = ConversationORM(developer=developer, business=business)
            db.add(conversation)
            try:
                db.flush()
            except IntegrityError as exc:
                raise DuplicateConversationError(
                    f"Developer {developer_id} and business {business_id} already have a conversation."
                ) from exc
            LOG.info(
                "Created conversation %s between developer %s and business %s",
                conversation.id,
                developer_id,
                business_id,
            )
            return _snapshot(conversation)

    def find_or_create_conversation(self, developer_id: int, business_id: int) -> Conversation:
        with session_scope() as db:
            existing = self._find_pair(db, developer_id, business_id)
            if existing is not None:
                return _snapshot(existing)
        return self.create_conversation(developer_id, business_id)

    def delete_conversation(self, conversation_id: int) -> None:
        """Delete the conversation along with its messages and notifications."""
        with session_scope() as db:
            conversation = self.fetch(db, conversation_id)
            db.delete(conversation)
        LOG.info("Deleted conversation %s", conversation_id)

    # Blocking / archival --------------------------------------------------------
    def block(self, conversation_id: int, user_id: int) -> Conversation:
        return self._stamp_side(conversation_id, user_id, "blocked", utc_now())

    def unblock(self, conversation_id: int, user_id: int) -> Conversation:
        return self._stamp_side(conversation_id, user_id, "blocked", None)

    def archive(self, conversation_id: int, user_id: int) -> Conversation:
        return self._stamp_side(conversation_id, user_id, "archived", utc_now())

    def unarchive(self, conversation_id: int, user_id: int) -> Conversation:
        return self._stamp_side(conversation_id, user_id, "archived", None)

    # Listings -------------------------------------------------------------------
    def list_conversations(self, user_id: int, archived: bool = False) -> List[Conversation]:
        """Return the user's active list, or its archive when ``archived`` is set."""
        user = self.users.require_user(user_id)
        filters = []
        if user.developer is not None:
            filters.append(ConversationORM.developer_id == user.developer.id)
        if user.business is not None:
            filters.append(ConversationORM.business_id == user.business.id)
        if not filters:
            return []

        with session_scope() as db:
            rows = db.query(ConversationORM).filter(or_(*filters)).all()
            conversations = [_snapshot(row) for row in rows]

        if archived:
            selected = [c for c in conversations if not c.is_unarchived_for(user)]
            return sorted(
                selected,
                key=lambda c: c.archived_at_for(c.side_of(user)) or c.created_at,
                reverse=True,
            )
        selected = [c for c in conversations if c.is_unarchived_for(user)]
        return sorted(selected, key=lambda c: c.updated_at or c.created_at, reverse=True)

    def list_blocked(self) -> List[Conversation]:
        with session_scope() as db:
            rows = (
                db.query(ConversationORM)
                .filter(
                    or_(
                        ConversationORM.developer_blocked_at.is_not(None),
                        ConversationORM.business_blocked_at.is_not(None),
                    )
                )
                .order_by(ConversationORM.updated_at.desc())
                .all()
            )
            return [_snapshot(row) for row in rows]

    def list_visible(self) -> List[Conversation]:
        with session_scope() as db:
            rows = (
                db.query(ConversationORM)
                .filter(
                    ConversationORM.developer_blocked_at.is_(None),
                    ConversationORM.business_blocked_at.is_(None),
                )
                .order_by(ConversationORM.updated_at.desc())
                .all()
            )
            return [_snapshot(row) for row in rows]

    # Read state -----------------------------------------------------------------
    def mark_notifications_read(self, conversation_id: int, user_id: int) -> int:
        """Mark the user's notifications read and release the unread flag if they hold it.

        Both writes share one transaction. The flag is only released by a
        conditional update that matches the current holder.
        """
        self.users.require_user(user_id)
        with session_scope() as db:
            self.fetch(db, conversation_id)
            marked = self.notifications.mark_conversation_read(db, conversation_id, user_id)
            cleared = db.execute(
                update(ConversationORM)
                .where(
                    ConversationORM.id == conversation_id,
                    ConversationORM.user_with_unread_messages_id == user_id,
                )
                .values(user_with_unread_messages_id=None, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            ).rowcount
        LOG.info(
            "Marked %d notification(s) read for user %s in conversation %s%s",
            marked,
            user_id,
            conversation_id,
            " and cleared unread flag" if cleared else "",
        )
        return marked

    def latest_message_read_by_other_recipient(self, conversation_id: int, user_id: int) -> bool:
        """Whether the other side has read the newest message (that message only)."""
        user = self.users.require_user(user_id)
        conversation = self.require_conversation(conversation_id)
        latest = conversation.latest_message()
        if latest is None:
            return False
        other = conversation.other_participant(user)
        if other is None or other.user_id is None:
            return False
        notification = self.notifications.latest_for_recipient(latest.id, other.user_id)
        return notification is not None and notification.read

    def describe(self, conversation_id: int, user_id: int, now: Optional[datetime] = None) -> ConversationStatus:
        user = self.users.require_user(user_id)
        conversation = self.require_conversation(conversation_id)
        side = conversation.side_of(user)
        acting = conversation.participant_for(side)
        return ConversationStatus(
            conversation_id=conversation.id,
            user_id=user.id,
            side=side,
            orphaned=conversation.is_orphaned(),
            blocked=conversation.is_blocked(),
            visible=conversation.is_visible(),
            unarchived=conversation.is_unarchived_for(user),
            unread=conversation.has_unread_for(user),
            developer_replied=conversation.developer_has_replied(),
            hiring_fee_eligible=conversation.hiring_fee_eligible(now),
            first_reply=acting is not None and conversation.is_first_reply(acting),
            latest_message_read_by_other_recipient=self.latest_message_read_by_other_recipient(
                conversation_id, user_id
            ),
            other_participant=conversation.other_participant(user),
        )

    # Internals ------------------------------------------------------------------
    def _find_pair(self, db: Session, developer_id: int, business_id: int) -> Optional[ConversationORM]:
        return (
            db.query(ConversationORM)
            .filter(
                ConversationORM.developer_id == developer_id,
                ConversationORM.business_id == business_id,
            )
            .first()
        )

    def _stamp_side(
        self, conversation_id: int, user_id: int, state: str, value: Optional[datetime]
    ) -> Conversation:
        """Set or clear ``<side>_<state>_at`` for the side the user acts for."""
        user = self.users.require_user(user_id)
        with session_scope() as db:
            conversation = self.fetch(db, conversation_id)
            side = _snapshot(conversation).side_of(user)
            setattr(conversation, f"{side.value.lower()}_{state}_at", value)
            db.flush()
            LOG.info(
                "Conversation %s %s %s by %s side",
                conversation_id,
                "set" if value else "cleared",
                state,
                side.value.lower(),
            )
            return _snapshot(conversation)
