"""Append-only ledger of monthly amount changes for a fixed expense.

A history is never empty and stays ordered by ``changed_at``; its last amount
is always the expense's current ``amount_per_month``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any, Optional

from parsing import parse_amount, parse_timestamp
from snapshot import PricePoint

logger = logging.getLogger(__name__)

AMOUNT_ALIASES = ("amount", "price", "beløp", "value")
CHANGED_AT_ALIASES = ("changedAt", "date", "timestamp")


def seed_history(amount: float, now: datetime) -> list[PricePoint]:
    return [PricePoint(amount=amount, changed_at=now)]


def reset_history(amount: float, now: datetime) -> list[PricePoint]:
    return seed_history(amount, now)


def apply_amount_update(
    history: Sequence[PricePoint], amount: Optional[float], now: datetime
) -> list[PricePoint]:
    if amount is None:
        return list(history)
    if not history:
        return seed_history(amount, now)
    if history[-1].amount == amount:
        return list(history)
    return [*history, PricePoint(amount=amount, changed_at=now)]


def sorted_history(history: Iterable[PricePoint]) -> list[PricePoint]:
    return sorted(history, key=lambda point: point.changed_at)


def has_changed(history: Sequence[PricePoint]) -> bool:
    return len(history) > 1


def _first_present(entry: dict, aliases: tuple[str, ...]) -> Any:
    for key in aliases:
        value = entry.get(key)
        if value is not None and value != "":
            return value
    return None


def _parse_entry(entry: Any) -> Optional[PricePoint]:
    if not isinstance(entry, dict):
        return None
    try:
        amount = parse_amount(_first_present(entry, AMOUNT_ALIASES))
        changed_at = parse_timestamp(_first_present(entry, CHANGED_AT_ALIASES))
    except ValueError:
        return None
    if amount is None or changed_at is None:
        return None
    return PricePoint(amount=amount, changed_at=changed_at)


def normalize_history(
    raw_entries: Any, amount: float, fallback_at: datetime
) -> list[PricePoint]:
    """Rebuild a trustworthy history from externally supplied entries.

    Unusable entries are dropped, the rest sorted, and a trailing entry at
    ``fallback_at`` is added whenever the result would otherwise not end on
    ``amount``.
    """
    entries: list[PricePoint] = []
    dropped = 0
    if isinstance(raw_entries, list):
        for raw in raw_entries:
            point = _parse_entry(raw)
            if point is None:
                dropped += 1
                continue
            entries.append(point)
    if dropped:
        logger.warning(f"price_history_normalize: dropped_entries={dropped}")
    entries = sorted_history(entries)
    if not entries or entries[-1].amount != amount:
        if entries and entries[-1].changed_at > fallback_at:
            fallback_at = entries[-1].changed_at
        entries.append(PricePoint(amount=amount, changed_at=fallback_at))
    return entries
