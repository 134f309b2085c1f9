"""Users and the developer/business identities they hold."""

from __future__ import annotations

import logging
from typing import Optional, Type, Union

from sqlalchemy.exc import IntegrityError

from hiring_inbox.clients.database import (
    Business as BusinessORM,
    Developer as DeveloperORM,
    User as UserORM,
    session_scope,
)
from hiring_inbox.models.user import Participant, User

LOG = logging.getLogger(__name__)

ParticipantORM = Union[DeveloperORM, BusinessORM]


class UserNotFoundError(RuntimeError):
    """Raised when a user id does not resolve."""


class ParticipantNotFoundError(RuntimeError):
    """Raised when a developer or business id does not resolve."""


class IdentityExistsError(RuntimeError):
    """Raised when a user already holds the requested identity."""


class DuplicateUserError(RuntimeError):
    """Raised when another user already has the email address."""


class UserService:
    """Resolves users to their developer and business identities."""

    def create_user(self, email: str) -> User:
        user = UserORM(email=email)
        with session_scope() as db:
            if db.query(UserORM).filter(UserORM.email == email).first() is not None:
                raise DuplicateUserError(f"A user with email {email} already exists.")
            db.add(user)
            try:
                db.flush()
            except IntegrityError as exc:
                raise DuplicateUserError(f"A user with email {email} already exists.") from exc
            db.refresh(user)
            LOG.info("Created user %s", user.id)
            return User.model_validate(user, from_attributes=True)

    def get_user(self, user_id: int) -> Optional[User]:
        with session_scope() as db:
            user = db.get(UserORM, user_id)
            return User.model_validate(user, from_attributes=True) if user else None

    def require_user(self, user_id: int) -> User:
        user = self.get_user(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found.")
        return user

    def create_developer(self, user_id: int, name: str) -> Participant:
        return self._create_identity(DeveloperORM, "developer", user_id, name)

    def create_business(self, user_id: int, name: str) -> Participant:
        return self._create_identity(BusinessORM, "business", user_id, name)

    def remove_developer(self, developer_id: int) -> None:
        self._remove_identity(DeveloperORM, developer_id)

    def remove_business(self, business_id: int) -> None:
        self._remove_identity(BusinessORM, business_id)

    def _create_identity(
        self, orm_cls: Type[ParticipantORM], attribute: str, user_id: int, name: str
    ) -> Participant:
        with session_scope() as db:
            user = db.get(UserORM, user_id)
            if not user:
                raise UserNotFoundError(f"User {user_id} not found.")
            if getattr(user, attribute) is not None:
                raise IdentityExistsError(f"User {user_id} already has a {attribute} identity.")
            identity = orm_cls(user_id=user_id, name=name)
            db.add(identity)
            try:
                db.flush()
            except IntegrityError as exc:
                raise IdentityExistsError(f"User {user_id} already has a {attribute} identity.") from exc
            db.refresh(identity)
            LOG.info("Created %s %s for user %s", attribute, identity.id, user_id)
            return Participant.model_validate(identity, from_attributes=True)

    def _remove_identity(self, orm_cls: Type[ParticipantORM], identity_id: int) -> None:
        """Delete a participant; its conversations stay with the reference unset."""
        with session_scope() as db:
            identity = db.get(orm_cls, identity_id)
            if not identity:
                raise ParticipantNotFoundError(f"{orm_cls.__name__} {identity_id} not found.")
            orphaned = len(identity.conversations)
            # Loading the collection lets the unit of work null each back-reference.
            db.delete(identity)
            LOG.info(
                "Removed %s %s, %d conversation(s) orphaned",
                orm_cls.__name__.lower(),
                identity_id,
                orphaned,
            )
