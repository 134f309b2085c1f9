"""Message storage and the send path."""

from __future__ import annotations

import logging
from typing import List

from hiring_inbox.clients.database import (
    Message as MessageORM,
    Notification as NotificationORM,
    session_scope,
)
from hiring_inbox.models.conversation import Conversation
from hiring_inbox.models.enums import Side
from hiring_inbox.models.message import Message
from hiring_inbox.services.conversation_service import ConversationService
from hiring_inbox.services.user_service import UserService

LOG = logging.getLogger(__name__)


class ConversationBlockedError(RuntimeError):
    """Raised when sending into a conversation either side has blocked."""


class ConversationOrphanedError(RuntimeError):
    """Raised when the other participant of a conversation has been removed."""


class MessageService:
    """Appends messages and hands the unread flag to the recipient."""

    def __init__(self, conversations: ConversationService, users: UserService) -> None:
        self.conversations = conversations
        self.users = users

    def list_messages(self, conversation_id: int) -> List[Message]:
        with session_scope() as db:
            self.conversations.fetch(db, conversation_id)
            messages = (
                db.query(MessageORM)
                .filter(MessageORM.conversation_id == conversation_id)
                .order_by(MessageORM.created_at.asc(), MessageORM.id.asc())
                .all()
            )
            return [Message.model_validate(obj, from_attributes=True) for obj in messages]

    def send_message(self, conversation_id: int, user_id: int, body: str) -> Message:
        """Append a message from the user's side and flag the other side unread.

        The message, the recipient's notification and the unread flag are
        written in one transaction.
        """
        user = self.users.require_user(user_id)
        with session_scope() as db:
            conversation = self.conversations.fetch(db, conversation_id)
            snapshot = Conversation.model_validate(conversation, from_attributes=True)
            side = snapshot.side_of(user)
            if snapshot.is_blocked():
                raise ConversationBlockedError(f"Conversation {conversation_id} is blocked.")
            sender = snapshot.participant_for(side)
            recipient = snapshot.other_participant(user)
            if recipient is None or recipient.user_id is None:
                raise ConversationOrphanedError(
                    f"Conversation {conversation_id} has no participant to receive the message."
                )

            message = MessageORM(sender_side=side, sender_id=sender.id, body=body)
            conversation.messages.append(message)
            db.add(
                NotificationORM(
                    recipient_id=recipient.user_id,
                    conversation=conversation,
                    message=message,
                )
            )
            conversation.user_with_unread_messages_id = recipient.user_id
            db.flush()

            sent = Message.model_validate(message, from_attributes=True)
            if side == Side.DEVELOPER and snapshot.model_copy(
                update={"messages": [*snapshot.messages, sent]}
            ).is_first_reply(sender):
                LOG.info("Developer %s sent a first reply in conversation %s", sender.id, conversation_id)

        LOG.info(
            "Message %s sent by %s side in conversation %s",
            sent.id,
            side.value.lower(),
            conversation_id,
        )
        return sent
