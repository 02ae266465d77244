"""Rate history validation.

A show's rate history is a set of intervals ``[effective_date, end_date)``
where a missing end date means the rate runs indefinitely. Active intervals
for one show never overlap, amounts are always positive, and an interval
must end after it starts.

Checks run in a fixed order (range, amounts, overlap) so a request with
several problems always reports the same reason.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date

from src.podflow.core.errors import ValidationFailed

REASON_OVERLAP = "overlap"
REASON_INVALID_AMOUNT = "invalid_amount"
REASON_INVALID_RANGE = "invalid_range"


class RateValidationError(ValidationFailed):
    """A rate history entry was rejected. ``reason`` names the rule."""


@dataclass(frozen=True)
class RateInterval:
    """Half-open date interval; ``end_date=None`` is open-ended."""

    effective_date: date
    end_date: date | None = None
    id: str | None = None

    def overlaps(self, other: "RateInterval") -> bool:
        starts_before_other_ends = other.end_date is None or self.effective_date < other.end_date
        other_starts_before_self_ends = self.end_date is None or other.effective_date < self.end_date
        return starts_before_other_ends and other_starts_before_self_ends

    def describe(self) -> str:
        end = self.end_date.isoformat() if self.end_date else "open-ended"
        return f"{self.effective_date.isoformat()} to {end}"


def check_range(candidate: RateInterval) -> None:
    if candidate.end_date is not None and candidate.end_date <= candidate.effective_date:
        raise RateValidationError(
            "Rate end date must be after its effective date",
            reason=REASON_INVALID_RANGE,
        )


def check_amounts(amounts: Mapping[str, float | None]) -> None:
    """Every supplied amount must be positive. ``None`` means not set."""
    for name, value in amounts.items():
        if value is None:
            continue
        if value <= 0:
            raise RateValidationError(
                f"{name} must be positive",
                reason=REASON_INVALID_AMOUNT,
                field=name,
            )


def find_overlap(candidate: RateInterval, existing: Iterable[RateInterval]) -> RateInterval | None:
    """Return the first existing interval the candidate collides with.

    The candidate's own row (same id) is ignored so an update can keep
    its dates.
    """
    for interval in existing:
        if candidate.id is not None and interval.id == candidate.id:
            continue
        if candidate.overlaps(interval):
            return interval
    return None


def validate_rate_entry(
    candidate: RateInterval,
    amounts: Mapping[str, float | None],
    existing: Iterable[RateInterval],
) -> None:
    """Raise RateValidationError unless ``candidate`` may be stored.

    Args:
        candidate: The interval being inserted or the updated interval.
        amounts: Rate amounts keyed by field name (base_rate, pre_roll_rate, ...).
        existing: Active intervals already stored for the same show.
    """
    check_range(candidate)
    check_amounts(amounts)
    clash = find_overlap(candidate, existing)
    if clash is not None:
        raise RateValidationError(
            f"Rate period overlaps an existing rate ({clash.describe()})",
            reason=REASON_OVERLAP,
            conflicting_rate_id=clash.id,
        )
