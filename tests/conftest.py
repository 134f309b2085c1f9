from contextlib import asynccontextmanager

import pytest
from fastapi.testclient import TestClient

from hiring_inbox import constants
from hiring_inbox.api import main as api_main
from hiring_inbox.clients import database
from hiring_inbox.services.conversation_service import ConversationService
from hiring_inbox.services.message_service import MessageService
from hiring_inbox.services.notification_service import NotificationService
from hiring_inbox.services.user_service import UserService


@pytest.fixture(autouse=True)
def temp_runtime_dirs(tmp_path, monkeypatch):
    """Redirect runtime directories and database into a temp location."""
    home = tmp_path / "runtime" / "home"
    mapping = {
        "HOME_DIR": home,
        "LOG_DIR": home / "logs",
        "DB_DIR": home / "db",
        "DB_FILE": home / "db" / "inbox.db",
    }

    for name, path in mapping.items():
        monkeypatch.setattr(constants, name, path)

    database.init_db()
    yield


@pytest.fixture
def user_service() -> UserService:
    return UserService()


@pytest.fixture
def notification_service() -> NotificationService:
    return NotificationService()


@pytest.fixture
def conversation_service(user_service, notification_service) -> ConversationService:
    return ConversationService(user_service, notification_service)


@pytest.fixture
def message_service(conversation_service, user_service) -> MessageService:
    return MessageService(conversation_service, user_service)


@pytest.fixture
def parties(user_service):
    """A developer user and a business user, reloaded with their identities."""
    dev_user = user_service.create_user("dev@example.com")
    biz_user = user_service.create_user("hiring@example.com")
    user_service.create_developer(dev_user.id, "Ada")
    user_service.create_business(biz_user.id, "Acme")
    return user_service.require_user(dev_user.id), user_service.require_user(biz_user.id)


@pytest.fixture
def conversation(conversation_service, parties):
    dev_user, biz_user = parties
    return conversation_service.create_conversation(dev_user.developer.id, biz_user.business.id)


@pytest.fixture
def api_client(user_service, conversation_service, message_service):
    app = api_main.app

    overrides = {
        api_main.get_user_service: lambda: user_service,
        api_main.get_conversation_service: lambda: conversation_service,
        api_main.get_message_service: lambda: message_service,
    }

    original_overrides = app.dependency_overrides.copy()
    original_lifespan = app.router.lifespan_context

    @asynccontextmanager
    async def noop_lifespan(_app):
        yield

    app.router.lifespan_context = noop_lifespan
    app.dependency_overrides.update(overrides)

    with TestClient(app) as client:
        yield client

    app.dependency_overrides = original_overrides
    app.router.lifespan_context = original_lifespan
