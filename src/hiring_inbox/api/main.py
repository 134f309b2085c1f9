from __future__ import annotations

from typing import List

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, status

from hiring_inbox import constants
from hiring_inbox.clients.database import init_db
from hiring_inbox.models.conversation import (
    Conversation,
    ConversationActionRequest,
    ConversationCreateRequest,
    ConversationStatus,
    NotAParticipantError,
)
from hiring_inbox.models.message import Message, MessageCreateRequest
from hiring_inbox.models.user import IdentityCreateRequest, Participant, User, UserCreateRequest
from hiring_inbox.services.conversation_service import (
    ConversationNotFoundError,
    ConversationService,
    DuplicateConversationError,
)
from hiring_inbox.services.message_service import (
    ConversationBlockedError,
    ConversationOrphanedError,
    MessageService,
)
from hiring_inbox.services.notification_service import NotificationService
from hiring_inbox.services.user_service import (
    DuplicateUserError,
    IdentityExistsError,
    ParticipantNotFoundError,
    UserNotFoundError,
    UserService,
)
from hiring_inbox.utils.logging import setup_logging
from hiring_inbox.utils.pathing import ensure_runtime_directories


app = FastAPI(title="Hiring Inbox API", version="0.1.0")

_ERROR_STATUS = {
    ConversationNotFoundError: status.HTTP_404_NOT_FOUND,
    UserNotFoundError: status.HTTP_404_NOT_FOUND,
    ParticipantNotFoundError: status.HTTP_404_NOT_FOUND,
    DuplicateConversationError: status.HTTP_409_CONFLICT,
    IdentityExistsError: status.HTTP_409_CONFLICT,
    DuplicateUserError: status.HTTP_409_CONFLICT,
    ConversationBlockedError: status.HTTP_403_FORBIDDEN,
    NotAParticipantError: status.HTTP_403_FORBIDDEN,
    ConversationOrphanedError: status.HTTP_400_BAD_REQUEST,
}


def _http_error(exc: RuntimeError) -> HTTPException:
    return HTTPException(status_code=_ERROR_STATUS[type(exc)], detail=str(exc))


def _require_service(name: str):
    service = getattr(app.state, name, None)
    if service is None:
        raise RuntimeError(f"Service '{name}' not initialised.")
    return service


def get_user_service() -> UserService:
    return _require_service("user_service")


def get_conversation_service() -> ConversationService:
    return _require_service("conversation_service")


def get_message_service() -> MessageService:
    return _require_service("message_service")


@app.on_event("startup")
async def startup_event() -> None:
    setup_logging()
    ensure_runtime_directories()
    init_db()
    user_service = UserService()
    notification_service = NotificationService()
    conversation_service = ConversationService(user_service, notification_service)
    message_service = MessageService(conversation_service, user_service)

    app.state.user_service = user_service
    app.state.notification_service = notification_service
    app.state.conversation_service = conversation_service
    app.state.message_service = message_service


@app.get("/health")
async def health() -> dict[str, str]:
    """Lightweight health check."""
    return {"status": "ok"}


@app.post("/users", response_model=User, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreateRequest,
    users: UserService = Depends(get_user_service),
) -> User:
    try:
        return users.create_user(payload.email)
    except DuplicateUserError as exc:
        raise _http_error(exc) from exc


@app.get("/users/{user_id}", response_model=User)
async def get_user(
    user_id: int,
    users: UserService = Depends(get_user_service),
) -> User:
    user = users.get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found.")
    return user


@app.post("/users/{user_id}/developer", response_model=Participant, status_code=status.HTTP_201_CREATED)
async def create_developer(
    user_id: int,
    payload: IdentityCreateRequest,
    users: UserService = Depends(get_user_service),
) -> Participant:
    try:
        return users.create_developer(user_id, payload.name)
    except (UserNotFoundError, IdentityExistsError) as exc:
        raise _http_error(exc) from exc


@app.post("/users/{user_id}/business", response_model=Participant, status_code=status.HTTP_201_CREATED)
async def create_business(
    user_id: int,
    payload: IdentityCreateRequest,
    users: UserService = Depends(get_user_service),
) -> Participant:
    try:
        return users.create_business(user_id, payload.name)
    except (UserNotFoundError, IdentityExistsError) as exc:
        raise _http_error(exc) from exc


@app.delete("/developers/{developer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_developer(
    developer_id: int,
    users: UserService = Depends(get_user_service),
) -> None:
    try:
        users.remove_developer(developer_id)
    except ParticipantNotFoundError as exc:
        raise _http_error(exc) from exc


@app.delete("/businesses/{business_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_business(
    business_id: int,
    users: UserService = Depends(get_user_service),
) -> None:
    try:
        users.remove_business(business_id)
    except ParticipantNotFoundError as exc:
        raise _http_error(exc) from exc


@app.post("/conversations", response_model=Conversation, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    payload: ConversationCreateRequest,
    conversations: ConversationService = Depends(get_conversation_service),
) -> Conversation:
    try:
        return conversations.create_conversation(payload.developer_id, payload.business_id)
    except (ParticipantNotFoundError, DuplicateConversationError) as exc:
        raise _http_error(exc) from exc


@app.get("/conversations", response_model=List[Conversation])
async def list_conversations(
    user_id: int,
    archived: bool = False,
    conversations: ConversationService = Depends(get_conversation_service),
) -> List[Conversation]:
    try:
        return conversations.list_conversations(user_id, archived=archived)
    except UserNotFoundError as exc:
        raise _http_error(exc) from exc


@app.get("/conversations/blocked", response_model=List[Conversation])
async def list_blocked_conversations(
    conversations: ConversationService = Depends(get_conversation_service),
) -> List[Conversation]:
    return conversations.list_blocked()


@app.get("/conversations/by-token/{token}", response_model=Conversation)
async def find_conversation_by_token(
    token: str,
    conversations: ConversationService = Depends(get_conversation_service),
) -> Conversation:
    try:
        return conversations.find_by_inbound_email_token(token)
    except ConversationNotFoundError as exc:
        raise _http_error(exc) from exc


@app.get("/conversations/{conversation_id}", response_model=Conversation)
async def get_conversation(
    conversation_id: int,
    conversations: ConversationService = Depends(get_conversation_service),
) -> Conversation:
    conversation = conversations.get_conversation(conversation_id)
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found.")
    return conversation


@app.delete("/conversations/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: int,
    conversations: ConversationService = Depends(get_conversation_service),
) -> None:
    try:
        conversations.delete_conversation(conversation_id)
    except ConversationNotFoundError as exc:
        raise _http_error(exc) from exc


@app.get("/conversations/{conversation_id}/status", response_model=ConversationStatus)
async def get_conversation_status(
    conversation_id: int,
    user_id: int,
    conversations: ConversationService = Depends(get_conversation_service),
) -> ConversationStatus:
    try:
        return conversations.describe(conversation_id, user_id)
    except (ConversationNotFoundError, UserNotFoundError, NotAParticipantError) as exc:
        raise _http_error(exc) from exc


@app.get("/conversations/{conversation_id}/messages", response_model=List[Message])
async def list_messages(
    conversation_id: int,
    messages: MessageService = Depends(get_message_service),
) -> List[Message]:
    try:
        return messages.list_messages(conversation_id)
    except ConversationNotFoundError as exc:
        raise _http_error(exc) from exc


@app.post(
    "/conversations/{conversation_id}/messages",
    response_model=Message,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: int,
    payload: MessageCreateRequest,
    messages: MessageService = Depends(get_message_service),
) -> Message:
    try:
        return messages.send_message(conversation_id, payload.user_id, payload.body)
    except (
        ConversationNotFoundError,
        UserNotFoundError,
        NotAParticipantError,
        ConversationBlockedError,
        ConversationOrphanedError,
    ) as exc:
        raise _http_error(exc) from exc


@app.post("/conversations/{conversation_id}/read")
async def mark_conversation_read(
    conversation_id: int,
    payload: ConversationActionRequest,
    conversations: ConversationService = Depends(get_conversation_service),
) -> dict[str, int]:
    try:
        marked = conversations.mark_notifications_read(conversation_id, payload.user_id)
    except (ConversationNotFoundError, UserNotFoundError) as exc:
        raise _http_error(exc) from exc
    return {"marked": marked}


@app.post("/conversations/{conversation_id}/block", response_model=Conversation)
async def block_conversation(
    conversation_id: int,
    payload: ConversationActionRequest,
    conversations: ConversationService = Depends(get_conversation_service),
) -> Conversation:
    try:
        return conversations.block(conversation_id, payload.user_id)
    except (ConversationNotFoundError, UserNotFoundError, NotAParticipantError) as exc:
        raise _http_error(exc) from exc


@app.post("/conversations/{conversation_id}/unblock", response_model=Conversation)
async def unblock_conversation(
    conversation_id: int,
    payload: ConversationActionRequest,
    conversations: ConversationService = Depends(get_conversation_service),
) -> Conversation:
    try:
        return conversations.unblock(conversation_id, payload.user_id)
    except (ConversationNotFoundError, UserNotFoundError, NotAParticipantError) as exc:
        raise _http_error(exc) from exc


@app.post("/conversations/{conversation_id}/archive", response_model=Conversation)
async def archive_conversation(
    conversation_id: int,
    payload: ConversationActionRequest,
    conversations: ConversationService = Depends(get_conversation_service),
) -> Conversation:
    try:
        return conversations.archive(conversation_id, payload.user_id)
    except (ConversationNotFoundError, UserNotFoundError, NotAParticipantError) as exc:
        raise _http_error(exc) from exc


@app.post("/conversations/{conversation_id}/unarchive", response_model=Conversation)
async def unarchive_conversation(
    conversation_id: int,
    payload: ConversationActionRequest,
    conversations: ConversationService = Depends(get_conversation_service),
) -> Conversation:
    try:
        return conversations.unarchive(conversation_id, payload.user_id)
    except (ConversationNotFoundError, UserNotFoundError, NotAParticipantError) as exc:
        raise _http_error(exc) from exc


def run() -> None:
    """Serve the API with uvicorn."""
    uvicorn.run(app, host=constants.SERVER_HOST, port=constants.SERVER_PORT)
