"""Schedule item rules: placement windows and rate-card pricing."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from src.podflow.core.errors import ValidationFailed
from src.podflow.schemas.rates import PlacementType, RateHistoryRead
from src.podflow.schemas.schedules import ScheduleItemCreate
from src.podflow.schemas.shows import EpisodeRead, ShowRead
from src.podflow.services.billing import to_money


@dataclass(frozen=True)
class PricedItem:
    show_id: str
    episode_id: str | None
    air_date: date
    placement_type: PlacementType
    rate_card_price: Decimal
    negotiated_price: Decimal


def effective_rate(rates: Iterable[RateHistoryRead], day: date) -> RateHistoryRead | None:
    """The active rate whose ``[effective_date, end_date)`` contains ``day``."""
    for rate in rates:
        if not rate.is_active:
            continue
        if rate.effective_date <= day and (rate.end_date is None or day < rate.end_date):
            return rate
    return None


def price_schedule_item(
    item: ScheduleItemCreate,
    show: ShowRead,
    episode: EpisodeRead | None,
    rates: Iterable[RateHistoryRead],
) -> PricedItem:
    """Validate one schedule item against its show and fill in prices.

    Raises:
        ValidationFailed: air date outside the show's active window, episode
        from another show, or no rate price available for the air date.
    """
    if not show.airs_on(item.air_date):
        raise ValidationFailed(
            f"Air date {item.air_date.isoformat()} is outside the active window of show '{show.name}'",
            reason="outside_show_window",
        )

    if item.episode_id is not None:
        if episode is None or episode.show_id != show.id:
            raise ValidationFailed(
                "Episode does not belong to the selected show",
                reason="episode_mismatch",
            )

    if item.rate_card_price is not None:
        rate_card_price = to_money(item.rate_card_price)
    else:
        rate = effective_rate(rates, item.air_date)
        if rate is None:
            raise ValidationFailed(
                f"Show '{show.name}' has no rate effective on {item.air_date.isoformat()}",
                reason="no_rate",
            )
        rate_card_price = to_money(rate.rate_for(item.placement_type))

    negotiated = item.negotiated_price if item.negotiated_price is not None else rate_card_price
    return PricedItem(
        show_id=show.id,
        episode_id=item.episode_id,
        air_date=item.air_date,
        placement_type=item.placement_type,
        rate_card_price=rate_card_price,
        negotiated_price=to_money(negotiated),
    )
