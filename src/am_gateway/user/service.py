"""User domain service: register, login, refresh, profile.

All DB operations use the injected AsyncSession. Transactions are managed
by the caller (router layer) via `async with db.begin()`.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.am_common.enums import UserRole
from src.am_common.errors import (
    AccountDisabledError,
    EmailExistsError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    UsernameExistsError,
    UserNotFoundError,
)
from src.am_gateway.auth.jwt_handler import (
    create_access_token,
    create_refresh_token,
    decode_token,
)
from src.am_gateway.auth.password import hash_password, verify_password
from src.am_gateway.user.db_models import UserModel

logger = logging.getLogger(__name__)


class UserService:
    """Stateless service - instantiate once, reuse across requests."""

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        db: AsyncSession,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> UserModel:
        """Register a new account with role=user."""
        # DB UNIQUE constraints are the final guard
        result = await db.execute(
            select(UserModel).where(UserModel.username == username)
        )
        if result.scalar_one_or_none() is not None:
            raise UsernameExistsError()

        result = await db.execute(
            select(UserModel).where(UserModel.email == email)
        )
        if result.scalar_one_or_none() is not None:
            raise EmailExistsError()

        user = UserModel(
            username=username,
            email=email,
            password_hash=hash_password(password),
            role=UserRole.USER.value,
            first_name=first_name,
            last_name=last_name,
            is_active=True,
        )
        db.add(user)
        await db.flush()  # Get user.id without committing
        logger.info("Registered user %s (%s)", user.id, username)
        return user

    async def login(
        self,
        username: str,
        password: str,
        db: AsyncSession,
    ) -> tuple[UserModel, str, str]:
        """Authenticate and return (user, access_token, refresh_token).

        "User not found" and "wrong password" both raise InvalidCredentialsError
        so usernames cannot be enumerated.
        """
        result = await db.execute(
            select(UserModel).where(UserModel.username == username)
        )
        user = result.scalar_one_or_none()

        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        if not user.is_active:
            raise AccountDisabledError()

        return (
            user,
            create_access_token(str(user.id), user.role),
            create_refresh_token(str(user.id)),
        )

    async def refresh(self, refresh_token: str, db: AsyncSession) -> str:
        """Validate refresh token and return a new access token.

        The account is re-read so a deactivated user cannot mint new tokens.
        """
        payload = decode_token(refresh_token, expected_type="refresh")
        user = await self._find(db, str(payload["sub"]))
        if user is None:
            raise InvalidRefreshTokenError()
        if not user.is_active:
            raise AccountDisabledError()
        return create_access_token(str(user.id), user.role)

    async def update_profile(
        self,
        user: UserModel,
        first_name: str | None,
        last_name: str | None,
        db: AsyncSession,
    ) -> UserModel:
        if first_name is not None:
            user.first_name = first_name
        if last_name is not None:
            user.last_name = last_name
        db.add(user)
        await db.flush()
        return user

    async def get_user(self, db: AsyncSession, user_id: str) -> UserModel:
        user = await self._find(db, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def _find(self, db: AsyncSession, user_id: str) -> UserModel | None:
        try:
            uid = uuid.UUID(user_id)
        except ValueError:
            return None
        result = await db.execute(select(UserModel).where(UserModel.id == uid))
        return result.scalar_one_or_none()
