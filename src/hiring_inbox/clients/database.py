"""SQLite database client for Hiring Inbox."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, relationship, sessionmaker

from hiring_inbox import constants
from hiring_inbox.models.enums import Side
from hiring_inbox.utils.clock import utc_now
from hiring_inbox.utils.pathing import ensure_runtime_directories
from hiring_inbox.utils.tokens import generate_inbound_email_token


class BaseModel(DeclarativeBase):
    """Declarative base class for SQLAlchemy models."""


def _build_engine(echo: bool = False):
    ensure_runtime_directories()
    return create_engine(f"sqlite:///{constants.DB_FILE}", echo=echo, future=True)


ENGINE = _build_engine()
SESSION_FACTORY = sessionmaker(bind=ENGINE, autoflush=False, expire_on_commit=False, future=True)


class User(BaseModel):
    """Account that may hold a developer identity, a business identity, or both."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    developer: Mapped[Optional["Developer"]] = relationship(back_populates="user")
    business: Mapped[Optional["Business"]] = relationship(back_populates="user")


class Developer(BaseModel):
    """Developer-side participant identity."""

    __tablename__ = "developers"

    side = Side.DEVELOPER

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    user: Mapped["User"] = relationship(back_populates="developer")
    conversations: Mapped[list["Conversation"]] = relationship(back_populates="developer")


class Business(BaseModel):
    """Business-side participant identity."""

    __tablename__ = "businesses"

    side = Side.BUSINESS

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    user: Mapped["User"] = relationship(back_populates="business")
    conversations: Mapped[list["Conversation"]] = relationship(back_populates="business")


class Conversation(BaseModel):
    """Thread between one developer and one business."""

    __tablename__ = "conversations"
    __table_args__ = (UniqueConstraint("developer_id", "business_id", name="uq_conversation_pair"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    inbound_email_token: Mapped[str] = mapped_column(
        String, unique=True, nullable=False, default=generate_inbound_email_token
    )
    # Participant removal nulls these instead of deleting the thread.
    developer_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("developers.id", ondelete="SET NULL"), nullable=True
    )
    business_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("businesses.id", ondelete="SET NULL"), nullable=True
    )
    developer_blocked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    business_blocked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    developer_archived_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    business_archived_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    user_with_unread_messages_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    developer: Mapped[Optional["Developer"]] = relationship(back_populates="conversations")
    business: Mapped[Optional["Business"]] = relationship(back_populates="conversations")
    user_with_unread_messages: Mapped[Optional["User"]] = relationship()
    messages: Mapped[list["Message"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.created_at",
    )
    notifications: Mapped[list["Notification"]] = relationship(
        back_populates="conversation", cascade="all, delete-orphan"
    )


class Message(BaseModel):
    """Message appended to a conversation by one of its sides."""

    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    conversation_id: Mapped[int] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_side: Mapped[Side] = mapped_column(Enum(Side), nullable=False)
    sender_id: Mapped[Optional[int]] = mapped_column(nullable=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    conversation: Mapped["Conversation"] = relationship(back_populates="messages")
    notifications: Mapped[list["Notification"]] = relationship(
        back_populates="message", cascade="all, delete-orphan"
    )


class Notification(BaseModel):
    """Per-recipient record of a message, read once ``read_at`` is set."""

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    recipient_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    conversation_id: Mapped[int] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    message_id: Mapped[int] = mapped_column(ForeignKey("messages.id", ondelete="CASCADE"), nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    conversation: Mapped["Conversation"] = relationship(back_populates="notifications")
    message: Mapped["Message"] = relationship(back_populates="notifications")


def init_db(echo: bool = False) -> None:
    """Create tables if they do not exist."""
    global ENGINE, SESSION_FACTORY
    ENGINE = _build_engine(echo=echo)
    SESSION_FACTORY = sessionmaker(
        bind=ENGINE,
        autoflush=False,
        expire_on_commit=False,
        future=True,
    )
    BaseModel.metadata.create_all(bind=ENGINE)


@contextmanager
def session_scope() -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""
    session = SESSION_FACTORY()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
