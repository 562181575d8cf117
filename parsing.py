"""Tolerant value parsing shared by the request models and the importer.

Every parser distinguishes "absent" (returns ``None``) from "present but
unusable" (raises ``ValueError``), so callers can default the former and
reject the latter.
"""

import math
import re
from collections.abc import Iterable
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

_CURRENCY_MARKERS = re.compile(r"(?i)(?:nok|kr)\.?|,-$|\s")
_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_amount(value: Any, *, allow_negative: bool = False) -> Optional[float]:
    if is_blank(value):
        return None
    if isinstance(value, bool):
        raise ValueError("Invalid amount")
    if isinstance(value, (int, float)):
        amount = float(value)
        if not math.isfinite(amount):
            raise ValueError("Invalid amount")
    elif isinstance(value, str):
        clean = _CURRENCY_MARKERS.sub("", value.strip()).replace(",", ".")
        if clean.count(".") > 1:
            parts = clean.split(".")
            clean = "".join(parts[:-1]) + "." + parts[-1]
        try:
            number = Decimal(clean)
        except InvalidOperation as exc:
            raise ValueError("Invalid amount") from exc
        if not number.is_finite():
            raise ValueError("Invalid amount")
        amount = float(number)
    else:
        raise ValueError("Invalid amount")
    if amount < 0 and not allow_negative:
        raise ValueError("Amount must be positive")
    return amount


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value: Any) -> Optional[datetime]:
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        raise ValueError(f"Invalid timestamp: {value!r}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return to_naive_utc(datetime.fromisoformat(text))
    except ValueError:
        pass
    try:
        return datetime.strptime(text, "%d.%m.%Y")
    except ValueError as exc:
        raise ValueError(f"Invalid timestamp: {value}") from exc


def parse_date(value: Any) -> Optional[date]:
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        head = value.strip().split("T", 1)[0]
        if _DATE_ONLY.match(head):
            try:
                return date.fromisoformat(head)
            except ValueError as exc:
                raise ValueError(f"Invalid date: {value}") from exc
    stamp = parse_timestamp(value)
    return stamp.date() if stamp else None


def clean_labels(values: Any) -> list[str]:
    """Trim, drop blanks and non-strings, de-duplicate keeping first occurrence."""
    if isinstance(values, str):
        values = values.split(",")
    if not isinstance(values, Iterable) or isinstance(values, dict):
        return []
    seen: dict[str, None] = {}
    for item in values:
        if not isinstance(item, str):
            continue
        trimmed = item.strip()
        if trimmed:
            seen.setdefault(trimmed, None)
    return list(seen)


def format_date(value: Optional[date]) -> str:
    return value.isoformat() if value else ""


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Naive UTC in, ISO 8601 with a ``Z`` suffix out."""
    if value is None:
        return None
    return to_naive_utc(value).isoformat() + "Z"
