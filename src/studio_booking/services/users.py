"""User management."""

import logging
import sqlite3
from pathlib import Path

from email_validator import EmailNotValidError, validate_email

from ..db.repositories import UserRepository
from ..errors import UserNotFound, ValidationError
from ..models.user import User, UserRole

logger = logging.getLogger(__name__)


class UserService:
    """Create and look up studio users."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path
        self.users = UserRepository(db_path)

    async def create(self, name: str, email: str, role: UserRole = UserRole.CLIENT) -> User:
        name = name.strip()
        if not name:
            raise ValidationError("Name is required")
        try:
            email = validate_email(email.strip(), check_deliverability=False).normalized.lower()
        except EmailNotValidError as e:
            raise ValidationError(
                f"Invalid email address: {email}", details={"email": email, "reason": str(e)}
            ) from e

        user = User(name=name, email=email, role=role)
        try:
            await self.users.create(user)
        except sqlite3.IntegrityError as e:
            raise ValidationError(
                f"Email {email} is already registered", details={"email": email}
            ) from e

        logger.info("Created user %s (%s)", user.id, role.value)
        return await self.get(user.id)

    async def get(self, user_id: str) -> User:
        user = await self.users.get(user_id)
        if user is None:
            raise UserNotFound(user_id)
        return user

    async def list_users(self) -> list[User]:
        return await self.users.list_all()
