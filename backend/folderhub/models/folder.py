"""Folder model: a node of the tree, with its per-user access grants."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Table, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from folderhub.models.base import Base, utcnow

if TYPE_CHECKING:
    from folderhub.models.file import File
    from folderhub.models.user import User


folder_permissions = Table(
    "folder_permissions",
    Base.metadata,
    Column("folder_id", ForeignKey("folders.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Folder(Base):
    __tablename__ = "folders"
    __table_args__ = (
        UniqueConstraint("parent_id", "name", name="uq_folder_sibling_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    path: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("folders.id", ondelete="CASCADE"), nullable=True, index=True
    )
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    creator: Mapped[Optional[User]] = relationship("User", lazy="joined")
    allowed_users: Mapped[list[User]] = relationship(
        "User", secondary=folder_permissions, lazy="selectin", order_by="User.username"
    )
    files: Mapped[list[File]] = relationship(
        "File",
        lazy="selectin",
        passive_deletes=True,
        order_by="File.name",
    )

    @property
    def created_by(self) -> Optional[str]:
        return self.creator.username if self.creator else None

    @property
    def user_ids(self) -> list[int]:
        return [u.id for u in self.allowed_users]

    def grants(self, user: User) -> bool:
        """True when `user` is in this folder's permission set."""
        return any(u.id == user.id for u in self.allowed_users)

    def __repr__(self) -> str:
        return f"<Folder(id={self.id}, path='{self.path}')>"
