from datetime import datetime

from price_history import (
    apply_amount_update,
    has_changed,
    normalize_history,
    reset_history,
    seed_history,
)
from snapshot import PricePoint

T0 = datetime(2024, 1, 1, 12, 0)
T1 = datetime(2024, 2, 1, 12, 0)
T2 = datetime(2024, 3, 1, 12, 0)
T3 = datetime(2024, 4, 1, 12, 0)


def test_update_sequence_with_repeat_and_reset() -> None:
    history = seed_history(100, T0)
    history = apply_amount_update(history, 150, T1)
    assert [p.amount for p in history] == [100, 150]

    history = apply_amount_update(history, 150, T2)
    assert [p.amount for p in history] == [100, 150]

    history = reset_history(150, T3)
    assert history == [PricePoint(amount=150, changed_at=T3)]


def test_missing_amount_leaves_history_alone() -> None:
    history = seed_history(100, T0)
    assert apply_amount_update(history, None, T1) == history


def test_empty_history_is_seeded_on_update() -> None:
    assert apply_amount_update([], 80, T1) == [PricePoint(amount=80, changed_at=T1)]


def test_history_never_repeats_consecutive_amounts() -> None:
    history = seed_history(100, T0)
    for now, amount in [(T1, 100), (T2, 120), (T3, 120)]:
        history = apply_amount_update(history, amount, now)
    amounts = [p.amount for p in history]
    assert amounts == [100, 120]
    assert all(a != b for a, b in zip(amounts, amounts[1:]))
    assert has_changed(history)


def test_normalize_accepts_aliases_and_sorts() -> None:
    raw = [
        {"price": "200", "date": "2024-03-01T00:00:00Z"},
        {"beløp": 100, "timestamp": "2024-01-01"},
        {"value": 150, "changedAt": "2024-02-01T10:00:00"},
    ]
    history = normalize_history(raw, 200, T3)
    assert [p.amount for p in history] == [100, 150, 200]
    assert history[0].changed_at == datetime(2024, 1, 1)


def test_normalize_drops_bad_entries_and_appends_current_amount() -> None:
    raw = [
        {"amount": "abc", "changedAt": "2024-01-01"},
        {"amount": 100},
        "not an entry",
        {"amount": 100, "changedAt": "2024-01-01"},
    ]
    history = normalize_history(raw, 130, T3)
    assert [p.amount for p in history] == [100, 130]
    assert history[-1].changed_at == T3


def test_normalize_without_entries_seeds_current_amount() -> None:
    assert normalize_history(None, 90, T0) == [PricePoint(amount=90, changed_at=T0)]


def test_normalize_keeps_order_when_fallback_is_older() -> None:
    raw = [{"amount": 100, "changedAt": "2024-06-01"}]
    history = normalize_history(raw, 110, T0)
    assert [p.amount for p in history] == [100, 110]
    assert history[0].changed_at <= history[1].changed_at
