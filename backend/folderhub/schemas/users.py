"""User schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from folderhub.models.user import Role


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str


class UserOut(UserSummary):
    role: Role
    created_at: datetime
    last_login: datetime | None = None


class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1)
    role: Role = Role.BASIC


class UserUpdate(BaseModel):
    """Partial update; the password is only changed when given and non-blank."""
    username: str | None = Field(default=None, min_length=1, max_length=100)
    password: str | None = None
    role: Role | None = None


class CurrentUser(BaseModel):
    id: int
    username: str
    role: Role
    root_folder_ids: list[int] = []
