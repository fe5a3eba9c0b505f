"""Operator accounts able to sign in to the back office."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..security import generate_password_hash, load_bootstrap_admin, verify_password

LOGGER = logging.getLogger(__name__)


class UserServiceError(RuntimeError):
    """Raised when a user account cannot be created or modified."""


class UserService:
    @staticmethod
    def get_by_username(db: Session, username: str) -> Optional[models.User]:
        return (
            db.query(models.User)
            .filter(models.User.username == username.strip().lower())
            .first()
        )

    @staticmethod
    def create_user(db: Session, data: schemas.UserCreate) -> models.User:
        if UserService.get_by_username(db, data.username) is not None:
            raise UserServiceError(f"Username '{data.username}' is already registered")

        user = models.User(
            username=data.username,
            name=data.name,
            email=data.email,
            role=data.role,
            password_hash=generate_password_hash(data.password),
            is_active=True,
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise UserServiceError(f"Username '{data.username}' is already registered") from exc
        db.refresh(user)
        LOGGER.info("User %s registered with role %s", user.username, user.role.value)
        return user

    @staticmethod
    def change_password(
        db: Session,
        user: models.User,
        current_password: str,
        new_password: str,
    ) -> None:
        if not verify_password(current_password, user.password_hash):
            raise UserServiceError("The current password is incorrect")
        user.password_hash = generate_password_hash(new_password)
        db.add(user)
        db.commit()
        LOGGER.info("Password changed for user %s", user.username)

    @staticmethod
    def ensure_bootstrap_admin(db: Session) -> Optional[models.User]:
        """Create the configured administrator when the users table is empty."""

        if (db.query(func.count(models.User.id)).scalar() or 0) > 0:
            return None
        credentials = load_bootstrap_admin()
        if credentials is None:
            LOGGER.warning("No users exist and ADMIN_USERNAME/ADMIN_PASSWORD_HASH are not set")
            return None

        username, password_hash = credentials
        user = models.User(
            username=username,
            name="Administrator",
            role=models.UserRole.ADMIN,
            password_hash=password_hash,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        LOGGER.info("Bootstrap administrator '%s' created", username)
        return user
