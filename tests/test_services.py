import logging
from datetime import timedelta

import pytest

from hiring_inbox.clients.database import (
    Conversation as ConversationORM,
    Message as MessageORM,
    Notification as NotificationORM,
    session_scope,
)
from hiring_inbox.models.conversation import NotAParticipantError
from hiring_inbox.models.enums import Side
from hiring_inbox.services.conversation_service import (
    ConversationNotFoundError,
    DuplicateConversationError,
)
from hiring_inbox.services.message_service import ConversationBlockedError, ConversationOrphanedError
from hiring_inbox.services.user_service import DuplicateUserError, IdentityExistsError
from hiring_inbox.utils.clock import utc_now


def test_create_conversation_generates_token(conversation, parties):
    dev_user, biz_user = parties

    assert len(conversation.inbound_email_token) == 24
    assert conversation.inbound_email_token.isalnum()
    assert conversation.developer.id == dev_user.developer.id
    assert conversation.business.user_id == biz_user.id
    assert conversation.user_with_unread_messages_id is None


def test_duplicate_pair_is_rejected(conversation_service, conversation, parties):
    dev_user, biz_user = parties

    with pytest.raises(DuplicateConversationError):
        conversation_service.create_conversation(dev_user.developer.id, biz_user.business.id)

    same = conversation_service.find_or_create_conversation(dev_user.developer.id, biz_user.business.id)
    assert same.id == conversation.id


def test_user_holds_at_most_one_identity_per_side(user_service, parties):
    dev_user, _ = parties

    with pytest.raises(IdentityExistsError):
        user_service.create_developer(dev_user.id, "Second")


def test_duplicate_email_is_rejected(user_service, parties):
    dev_user, _ = parties

    with pytest.raises(DuplicateUserError):
        user_service.create_user(dev_user.email)

    assert user_service.require_user(dev_user.id).developer is not None


def test_token_lookup_is_case_insensitive(conversation_service, conversation):
    token = conversation.inbound_email_token

    assert conversation_service.find_by_inbound_email_token(token.upper()).id == conversation.id
    assert conversation_service.find_by_inbound_email_token(token.lower()).id == conversation.id

    with pytest.raises(ConversationNotFoundError):
        conversation_service.find_by_inbound_email_token("missing-token")


def test_token_lookup_folds_ascii_case_only(conversation_service, conversation):
    token = "Kq3nZ8mW4xR7tY2vB9cD5fGh"
    with session_scope() as db:
        db.get(ConversationORM, conversation.id).inbound_email_token = token

    assert conversation_service.find_by_inbound_email_token(token.lower()).id == conversation.id

    # KELVIN SIGN lowercases to "k" under Unicode rules.
    with pytest.raises(ConversationNotFoundError):
        conversation_service.find_by_inbound_email_token("\u212a" + token[1:])
    with pytest.raises(ConversationNotFoundError):
        conversation_service.find_by_inbound_email_token(f"  {token} ")


def test_send_message_flags_recipient(message_service, conversation_service, conversation, parties):
    dev_user, biz_user = parties

    message = message_service.send_message(conversation.id, biz_user.id, "Hi Ada, are you available?")

    assert message.sender_side == Side.BUSINESS
    refreshed = conversation_service.require_conversation(conversation.id)
    assert refreshed.has_unread_for(dev_user)
    assert not refreshed.has_unread_for(biz_user)
    assert refreshed.latest_message().id == message.id

    message_service.send_message(conversation.id, dev_user.id, "Yes!")
    refreshed = conversation_service.require_conversation(conversation.id)
    assert refreshed.has_unread_for(biz_user)
    assert not refreshed.has_unread_for(dev_user)


def test_mark_read_clears_holder_and_notifications(
    message_service, conversation_service, notification_service, conversation, parties
):
    dev_user, biz_user = parties
    message_service.send_message(conversation.id, biz_user.id, "First")
    message_service.send_message(conversation.id, biz_user.id, "Second")
    assert len(notification_service.list_unread(dev_user.id, conversation.id)) == 2

    marked = conversation_service.mark_notifications_read(conversation.id, dev_user.id)

    assert marked == 2
    assert notification_service.list_unread(dev_user.id, conversation.id) == []
    refreshed = conversation_service.require_conversation(conversation.id)
    assert refreshed.user_with_unread_messages_id is None


def test_mark_read_by_non_holder_keeps_flag(message_service, conversation_service, conversation, parties):
    dev_user, biz_user = parties
    message_service.send_message(conversation.id, biz_user.id, "Ping")

    marked = conversation_service.mark_notifications_read(conversation.id, biz_user.id)

    assert marked == 0
    refreshed = conversation_service.require_conversation(conversation.id)
    assert refreshed.user_with_unread_messages_id == dev_user.id


def test_mark_read_leaves_other_conversations_unread(
    user_service, message_service, conversation_service, notification_service, conversation, parties
):
    dev_user, biz_user = parties
    other = user_service.create_user("second@example.com")
    other_business = user_service.create_business(other.id, "Initech")
    newer = conversation_service.create_conversation(dev_user.developer.id, other_business.id)
    message_service.send_message(conversation.id, biz_user.id, "From Acme")
    message_service.send_message(newer.id, other.id, "From Initech")

    marked = conversation_service.mark_notifications_read(conversation.id, dev_user.id)

    assert marked == 1
    assert notification_service.list_unread(dev_user.id, conversation.id) == []
    assert len(notification_service.list_unread(dev_user.id, newer.id)) == 1
    assert conversation_service.require_conversation(conversation.id).user_with_unread_messages_id is None
    assert conversation_service.require_conversation(newer.id).user_with_unread_messages_id == dev_user.id


def test_latest_message_read_by_other_recipient(message_service, conversation_service, conversation, parties):
    dev_user, biz_user = parties

    assert conversation_service.latest_message_read_by_other_recipient(conversation.id, biz_user.id) is False

    message_service.send_message(conversation.id, biz_user.id, "Interested?")
    assert conversation_service.latest_message_read_by_other_recipient(conversation.id, biz_user.id) is False

    conversation_service.mark_notifications_read(conversation.id, dev_user.id)
    assert conversation_service.latest_message_read_by_other_recipient(conversation.id, biz_user.id) is True

    # Only the newest message counts.
    message_service.send_message(conversation.id, biz_user.id, "Following up")
    assert conversation_service.latest_message_read_by_other_recipient(conversation.id, biz_user.id) is False
    # The developer sent nothing, so no notification exists for the business.
    assert conversation_service.latest_message_read_by_other_recipient(conversation.id, dev_user.id) is False


def test_block_and_unblock_per_side(message_service, conversation_service, conversation, parties):
    dev_user, biz_user = parties

    blocked = conversation_service.block(conversation.id, dev_user.id)
    assert blocked.developer_blocked_at is not None
    assert blocked.business_blocked_at is None
    assert blocked.is_blocked() and not blocked.is_visible()
    assert [c.id for c in conversation_service.list_blocked()] == [conversation.id]

    with pytest.raises(ConversationBlockedError):
        message_service.send_message(conversation.id, biz_user.id, "Hello?")

    unblocked = conversation_service.unblock(conversation.id, dev_user.id)
    assert unblocked.is_visible()
    assert [c.id for c in conversation_service.list_visible()] == [conversation.id]


def test_outsider_cannot_act(user_service, conversation_service, message_service, conversation):
    outsider = user_service.create_user("outsider@example.com")
    user_service.create_business(outsider.id, "Globex")

    with pytest.raises(NotAParticipantError):
        conversation_service.archive(conversation.id, outsider.id)
    with pytest.raises(NotAParticipantError):
        message_service.send_message(conversation.id, outsider.id, "Hello")


def test_archive_moves_conversation_between_lists(conversation_service, conversation, parties):
    dev_user, biz_user = parties

    archived = conversation_service.archive(conversation.id, biz_user.id)

    assert archived.is_unarchived_for(biz_user) is False
    assert archived.is_unarchived_for(dev_user) is True
    assert conversation_service.list_conversations(biz_user.id) == []
    assert [c.id for c in conversation_service.list_conversations(biz_user.id, archived=True)] == [conversation.id]
    assert [c.id for c in conversation_service.list_conversations(dev_user.id)] == [conversation.id]

    restored = conversation_service.unarchive(conversation.id, biz_user.id)
    assert restored.is_unarchived_for(biz_user)
    assert restored.updated_at >= archived.updated_at


def test_unarchived_list_orders_by_last_update(
    user_service, conversation_service, message_service, conversation, parties
):
    dev_user, biz_user = parties
    other = user_service.create_user("second@example.com")
    other_business = user_service.create_business(other.id, "Initech")
    newer = conversation_service.create_conversation(dev_user.developer.id, other_business.id)

    assert [c.id for c in conversation_service.list_conversations(dev_user.id)] == [newer.id, conversation.id]

    message_service.send_message(conversation.id, biz_user.id, "Bumping this thread")
    assert [c.id for c in conversation_service.list_conversations(dev_user.id)] == [conversation.id, newer.id]


def test_removed_participant_leaves_orphaned_conversation(
    user_service, conversation_service, message_service, conversation, parties
):
    dev_user, biz_user = parties
    message_service.send_message(conversation.id, dev_user.id, "Hello from Ada")

    user_service.remove_developer(dev_user.developer.id)

    orphaned = conversation_service.require_conversation(conversation.id)
    assert orphaned.is_orphaned()
    assert orphaned.developer is None
    assert orphaned.developer_has_replied()
    with pytest.raises(ConversationOrphanedError):
        message_service.send_message(conversation.id, biz_user.id, "Anyone there?")


def test_hiring_fee_after_grace_period(message_service, conversation_service, conversation, parties):
    dev_user, biz_user = parties
    with session_scope() as db:
        db.get(ConversationORM, conversation.id).created_at = utc_now() - timedelta(days=20)

    status = conversation_service.describe(conversation.id, biz_user.id)
    assert status.developer_replied is False
    assert status.hiring_fee_eligible is False

    message_service.send_message(conversation.id, dev_user.id, "Happy to chat")
    status = conversation_service.describe(conversation.id, biz_user.id)
    assert status.developer_replied is True
    assert status.hiring_fee_eligible is True


def test_describe_reports_first_reply(message_service, conversation_service, conversation, parties):
    dev_user, biz_user = parties
    message_service.send_message(conversation.id, biz_user.id, "Hello")
    message_service.send_message(conversation.id, dev_user.id, "Hi")

    status = conversation_service.describe(conversation.id, dev_user.id)

    assert status.side == Side.DEVELOPER
    assert status.first_reply is True
    assert status.other_participant.name == "Acme"
    assert status.unread is False
    assert conversation_service.describe(conversation.id, biz_user.id).unread is True


def test_first_reply_logged_once(caplog, message_service, conversation, parties):
    dev_user, biz_user = parties
    message_service.send_message(conversation.id, biz_user.id, "Hello")

    with caplog.at_level(logging.INFO, logger="hiring_inbox.services.message_service"):
        message_service.send_message(conversation.id, dev_user.id, "Hi")
        message_service.send_message(conversation.id, biz_user.id, "Great")
        message_service.send_message(conversation.id, dev_user.id, "Following up")

    first_replies = [r for r in caplog.records if "sent a first reply" in r.getMessage()]
    assert len(first_replies) == 1


def test_delete_conversation_cascades(message_service, conversation_service, conversation, parties):
    _, biz_user = parties
    message_service.send_message(conversation.id, biz_user.id, "To be deleted")

    conversation_service.delete_conversation(conversation.id)

    assert conversation_service.get_conversation(conversation.id) is None
    with session_scope() as db:
        assert db.query(MessageORM).count() == 0
        assert db.query(NotificationORM).count() == 0
    with pytest.raises(ConversationNotFoundError):
        message_service.list_messages(conversation.id)
