"""Per-recipient read state of conversation messages."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from hiring_inbox.clients.database import Notification as NotificationORM, session_scope
from hiring_inbox.models.message import Notification
from hiring_inbox.utils.clock import utc_now


class NotificationService:
    """Looks up and updates notification read state."""

    def latest_for_recipient(self, message_id: int, recipient_id: int) -> Optional[Notification]:
        with session_scope() as db:
            notification = (
                db.query(NotificationORM)
                .filter(
                    NotificationORM.message_id == message_id,
                    NotificationORM.recipient_id == recipient_id,
                )
                .order_by(NotificationORM.created_at.desc(), NotificationORM.id.desc())
                .first()
            )
            return Notification.model_validate(notification, from_attributes=True) if notification else None

    def list_unread(self, recipient_id: int, conversation_id: Optional[int] = None) -> List[Notification]:
        with session_scope() as db:
            query = db.query(NotificationORM).filter(
                NotificationORM.recipient_id == recipient_id,
                NotificationORM.read_at.is_(None),
            )
            if conversation_id is not None:
                query = query.filter(NotificationORM.conversation_id == conversation_id)
            notifications = query.order_by(NotificationORM.created_at.asc(), NotificationORM.id.asc()).all()
            return [Notification.model_validate(obj, from_attributes=True) for obj in notifications]

    def mark_conversation_read(self, db: Session, conversation_id: int, recipient_id: int) -> int:
        """Mark every unread notification for the recipient read, inside the caller's transaction."""
        result = db.execute(
            update(NotificationORM)
            .where(
                NotificationORM.conversation_id == conversation_id,
                NotificationORM.recipient_id == recipient_id,
                NotificationORM.read_at.is_(None),
            )
            .values(read_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
