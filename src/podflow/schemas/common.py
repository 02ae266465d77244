"""Response envelopes shared by every listing endpoint, plus update helpers."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, Field, field_validator

T = TypeVar("T")


class Listing(BaseModel, Generic[T]):
    """A page of rows plus an explicit marker for failed reads.

    ``degraded`` is True when the underlying query failed and ``items`` is
    empty because of that failure, not because there are no rows.
    """

    items: list[T] = Field(default_factory=list)
    total: int = 0
    degraded: bool = False

    @classmethod
    def of(cls, items: list[T]) -> "Listing[T]":
        return cls(items=items, total=len(items))

    @classmethod
    def failed(cls) -> "Listing[T]":
        return cls(items=[], total=0, degraded=True)


class MessageResponse(BaseModel):
    message: str


def non_nullable(*fields: str):
    """Validator for partial-update schemas: an explicit null is refused.

    Omitted fields keep their stored value; defaults are not validated, so
    only a JSON ``null`` sent for one of ``fields`` reaches the check.
    """

    def _reject_null(cls, value):
        if value is None:
            raise ValueError("must not be null")
        return value

    return field_validator(*fields)(classmethod(_reject_null))
