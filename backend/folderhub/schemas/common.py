"""Shared response envelopes."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ErrorMessage(BaseModel):
    """Uniform error body for every non-2xx response."""
    timestamp: datetime
    status: int
    error: str
    message: str
    path: str


class MessageResponse(BaseModel):
    message: str


class Page(BaseModel, Generic[T]):
    """Spring-style page envelope; ``number`` is zero-based."""
    content: list[T]
    total_elements: int
    total_pages: int
    size: int
    number: int
    number_of_elements: int
    first: bool
    last: bool
    empty: bool

    @classmethod
    def build(cls, content: list[T], total: int, page: int, size: int) -> "Page[T]":
        total_pages = math.ceil(total / size) if size > 0 else 0
        return cls(
            content=content,
            total_elements=total,
            total_pages=total_pages,
            size=size,
            number=page,
            number_of_elements=len(content),
            first=page == 0,
            last=page >= total_pages - 1,
            empty=len(content) == 0,
        )
