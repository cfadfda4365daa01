"""User accounts: authentication, admin CRUD and the bootstrap admin."""

from __future__ import annotations

import logging

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from folderhub.config import settings
from folderhub.exceptions import ConflictError, InvalidDataError, NotFoundError
from folderhub.models.base import utcnow
from folderhub.models.folder import folder_permissions
from folderhub.models.user import Role, User
from folderhub.schemas.users import UserCreate, UserUpdate
from folderhub.utils.security import hash_password, verify_password

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "id": User.id,
    "username": User.username,
    "role": User.role,
    "created_at": User.created_at,
}


class UserService:
    async def get(self, db: AsyncSession, user_id: int) -> User:
        user = await db.get(User, user_id, populate_existing=True)
        if user is None:
            raise NotFoundError(f"User not found with id {user_id}")
        return user

    async def get_by_username(self, db: AsyncSession, username: str) -> User | None:
        result = await db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def authenticate(self, db: AsyncSession, username: str, password: str) -> User | None:
        """Return the user when the password matches, recording the login time."""
        user = await self.get_by_username(db, username)
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Failed login for '%s'", username)
            return None
        user.last_login = utcnow()
        await db.commit()
        logger.info("User %s logged in", username)
        return user

    async def list_page(
        self,
        db: AsyncSession,
        page: int = 0,
        size: int = 20,
        username: str | None = None,
        sort_field: str = "username",
        sort_direction: str = "asc",
    ) -> tuple[list[User], int]:
        column = SORT_COLUMNS.get(sort_field)
        if column is None:
            raise InvalidDataError(f"Cannot sort by '{sort_field}'")
        conditions = []
        if username:
            conditions.append(func.lower(User.username).contains(username.lower(), autoescape=True))

        total = (
            await db.execute(select(func.count()).select_from(User).where(*conditions))
        ).scalar_one()
        order = column.desc() if sort_direction.lower() == "desc" else column.asc()
        result = await db.execute(
            select(User).where(*conditions).order_by(order, User.id).offset(page * size).limit(size)
        )
        return list(result.scalars()), total

    async def create(self, db: AsyncSession, data: UserCreate) -> User:
        username = data.username.strip()
        if not username:
            raise InvalidDataError("Username must not be empty")
        if await self.get_by_username(db, username) is not None:
            raise ConflictError(f"Username '{username}' is already taken")
        user = User(
            username=username,
            password_hash=hash_password(data.password),
            role=data.role.value,
        )
        db.add(user)
        await db.commit()
        logger.info("User created: %s (%s)", username, user.role)
        return user

    async def update(self, db: AsyncSession, user_id: int, data: UserUpdate) -> User:
        user = await self.get(db, user_id)
        if data.username is not None and data.username.strip() != user.username:
            username = data.username.strip()
            if await self.get_by_username(db, username) is not None:
                raise ConflictError(f"Username '{username}' is already taken")
            user.username = username
        if data.password and data.password.strip():
            user.password_hash = hash_password(data.password)
        if data.role is not None:
            user.role = data.role.value
        await db.commit()
        logger.info("User %s updated", user.id)
        return user

    async def delete(self, db: AsyncSession, current: User, user_id: int) -> None:
        if current.id == user_id:
            raise InvalidDataError("You cannot delete your own account")
        user = await self.get(db, user_id)
        await db.execute(delete(folder_permissions).where(folder_permissions.c.user_id == user.id))
        await db.delete(user)
        await db.commit()
        logger.info("User deleted: %s by %s", user.username, current.username)

    async def ensure_admin(self, db: AsyncSession) -> None:
        """Seed the bootstrap admin when no account exists yet."""
        count = (await db.execute(select(func.count()).select_from(User))).scalar_one()
        if count:
            return
        db.add(User(
            username=settings.admin_username,
            password_hash=hash_password(settings.admin_password),
            role=Role.ADMIN.value,
        ))
        await db.commit()
        logger.warning(
            "No users found; created bootstrap admin '%s'. Change its password.",
            settings.admin_username,
        )
