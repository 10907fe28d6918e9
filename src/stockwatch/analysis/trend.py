"""Trend segmentation over intraday quote history.

Splits an ordered snapshot series into alternating up/down runs and computes
the same-day trend against the day-open anchor.

Conventions:
- a pair with equal prices counts as "up";
- adjacent runs share their boundary snapshot, so run i's end is run i+1's start.

CRITICAL: All computations use Decimal. Never use float.
"""

from collections.abc import Sequence
from decimal import Decimal

from stockwatch.models import DEFAULT_CURRENCY, QuoteSnapshot, TrendDirection, TrendSequence

_HUNDRED = Decimal("100")


def percent_change(start: Decimal, end: Decimal) -> Decimal:
    """Return (end - start) / start * 100, or 0 when start <= 0."""
    if start <= 0:
        return Decimal("0")
    return (end - start) / start * _HUNDRED


def pair_direction(previous: Decimal, current: Decimal) -> TrendDirection:
    """Direction of one consecutive pair. Ties count as UP."""
    return TrendDirection.UP if current >= previous else TrendDirection.DOWN


def _close_run(
    history: Sequence[QuoteSnapshot], start: int, end: int, direction: TrendDirection
) -> TrendSequence:
    first = history[start]
    last = history[end]
    return TrendSequence(
        start_time=first.refreshed_at,
        end_time=last.refreshed_at,
        start_price=first.price,
        end_price=last.price,
        currency=first.currency or DEFAULT_CURRENCY,
        percent=percent_change(first.price, last.price),
        direction=direction,
    )


def segment_trends(history: Sequence[QuoteSnapshot]) -> list[TrendSequence]:
    """Segment a history ordered oldest -> newest into trend sequences.

    The first pair seeds the run direction. From index 2 onward, a change of
    direction closes the current run at the snapshot before the change, and
    the next run starts at that same snapshot. The last run closes at the
    final snapshot.

    Args:
        history: Snapshots for one symbol, oldest first.

    Returns:
        TrendSequences oldest first. Empty when fewer than 2 snapshots.
    """
    if len(history) < 2:
        return []

    sequences: list[TrendSequence] = []
    run_start = 0
    run_direction = pair_direction(history[0].price, history[1].price)

    for i in range(2, len(history)):
        direction = pair_direction(history[i - 1].price, history[i].price)
        if direction != run_direction:
            sequences.append(_close_run(history, run_start, i - 1, run_direction))
            run_start = i - 1
            run_direction = direction

    sequences.append(_close_run(history, run_start, len(history) - 1, run_direction))
    return sequences


def trend_sequences_newest_first(
    history_newest_first: Sequence[QuoteSnapshot],
) -> list[TrendSequence]:
    """Segment a history as returned by the store (newest first).

    Reverses to chronological order, segments, and returns the sequences
    newest first for presentation.
    """
    chronological = list(reversed(history_newest_first))
    return list(reversed(segment_trends(chronological)))


def compute_daily_trend(
    current_price: Decimal, open_price: Decimal | None
) -> Decimal | None:
    """Same-day trend in percent relative to the day-open price.

    Returns None when there is no day-open anchor or it is zero.
    """
    if open_price is None or open_price == 0:
        return None
    return (current_price - open_price) / open_price * _HUNDRED
