"""Normalization of export documents into canonical store records.

Documents may come from this service or from older versions that used other
field spellings. Every entity has one alias table below; ``resolve_fields``
maps a raw record onto canonical names in a single pass. Normalization is pure
and all-or-nothing: any problem raises :class:`ImportValidationError` before
the caller writes anything.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional, TypeVar

from models import FixedExpenseLevel, TransactionType
from owners import (
    OwnerProfileError,
    normalize_default_owners,
    normalize_owner_profiles,
    parse_owners_input,
)
from parsing import clean_labels, parse_amount, parse_date, parse_timestamp
from price_history import normalize_history
from snapshot import (
    BudgetSettings,
    CategoryRecord,
    FixedExpenseRecord,
    PageRecord,
    StoreSnapshot,
    TransactionRecord,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNNAMED = "Uten navn"
DEFAULT_FIXED_CATEGORY = "Annet"

COLLECTION_ALIASES: dict[str, tuple[str, ...]] = {
    "categories": ("categories",),
    "pages": ("pages",),
    "transactions": ("transactions",),
    "fixedExpenses": ("fixedExpenses", "faste_utgifter"),
    "settings": ("settings",),
}

FIELD_ALIASES: dict[str, dict[str, tuple[str, ...]]] = {
    "category": {
        "id": ("id",),
        "name": ("name",),
        "type": ("type",),
        "color": ("color",),
        "description": ("description",),
    },
    "page": {
        "id": ("id",),
        "name": ("name",),
        "description": ("description",),
        "color": ("color",),
        "metadata": ("metadata",),
    },
    "transaction": {
        "id": ("id",),
        "title": ("title",),
        "amount": ("amount",),
        "type": ("type",),
        "categoryId": ("categoryId", "category_id"),
        "pageId": ("pageId", "page_id"),
        "tags": ("tags",),
        "occurredOn": ("occurredOn", "occurred_on"),
        "notes": ("notes",),
        "metadata": ("metadata",),
    },
    "fixedExpense": {
        "id": ("id",),
        "name": ("name", "navn"),
        "amountPerMonth": ("amountPerMonth", "beløp_per_mnd", "amount_per_mnd", "amount"),
        "category": ("category", "kategori"),
        "owners": ("owners", "eier", "eiere"),
        "level": ("level", "nivå"),
        "startDate": ("startDate", "startdato"),
        "bindingEndDate": ("bindingEndDate", "binding_utløper", "sluttdato"),
        "noticePeriodMonths": ("noticePeriodMonths", "oppsigelsestid_mnd"),
        "note": ("note", "notat"),
        "priceHistory": ("priceHistory",),
        "createdAt": ("createdAt",),
        "updatedAt": ("updatedAt",),
    },
    "settings": {
        "monthlyNetIncome": ("monthlyNetIncome",),
        "ownerProfiles": ("ownerProfiles", "ownerprofiles"),
        "defaultFixedExpensesOwners": ("defaultFixedExpensesOwners",),
        "defaultFixedExpensesOwner": ("defaultFixedExpensesOwner",),
        "bankModeEnabled": ("bankModeEnabled",),
        "bankAccounts": ("bankAccounts",),
    },
}


class ImportValidationError(ValueError):
    pass


@dataclass(frozen=True)
class ImportedStore:
    snapshot: StoreSnapshot
    counters: dict[str, int]
    warnings: tuple[str, ...] = ()


def _present(value: Any) -> bool:
    return value is not None and value != ""


def resolve_fields(raw: dict, aliases: dict[str, tuple[str, ...]]) -> dict[str, Any]:
    resolved: dict[str, Any] = {}
    for canonical, names in aliases.items():
        resolved[canonical] = next(
            (raw[name] for name in names if _present(raw.get(name))), None
        )
    return resolved


def _checked(path: str, parse: Callable[[Any], T], value: Any) -> T:
    try:
        return parse(value)
    except ValueError as exc:
        raise ImportValidationError(f"{path}: {exc}") from exc


def _text(value: Any, default: str = "") -> str:
    if isinstance(value, str):
        return value.strip() or default
    if value is None:
        return default
    return str(value)


def _collection(document: dict, key: str) -> list:
    value = resolve_fields(document, {key: COLLECTION_ALIASES[key]})[key]
    if value is None:
        return []
    if not isinstance(value, list):
        raise ImportValidationError(f"{key}: expected a list")
    for index, item in enumerate(value):
        if not isinstance(item, dict):
            raise ImportValidationError(f"{key}[{index}]: expected an object")
    return value


def _parse_id(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Invalid id: {value!r}")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValueError(f"Invalid id: {value!r}")


def _assign_ids(collection: str, records: list[dict]) -> list[int]:
    """Keep explicit ids; missing ones fall back to position, then to max + 1."""
    explicit: list[Optional[int]] = []
    for index, raw in enumerate(records):
        value = raw.get("id")
        if _present(value):
            explicit.append(_checked(f"{collection}[{index}].id", _parse_id, value))
        else:
            explicit.append(None)
    taken = [ident for ident in explicit if ident is not None]
    if len(taken) != len(set(taken)):
        raise ImportValidationError(f"{collection}: duplicate ids")
    used = set(taken)
    ids: list[int] = []
    for index, ident in enumerate(explicit):
        if ident is None:
            ident = index + 1
            if ident in used:
                ident = max(used) + 1
            used.add(ident)
        ids.append(ident)
    return ids


def _transaction_type(value: Any) -> TransactionType:
    if value is None:
        return TransactionType.expense
    try:
        return TransactionType(str(value).strip().lower())
    except ValueError as exc:
        raise ValueError(f"Unknown transaction type: {value!r}") from exc


def _level(value: Any) -> FixedExpenseLevel:
    if value is None:
        return FixedExpenseLevel.must_have
    try:
        return FixedExpenseLevel(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Unknown level: {value!r}") from exc


def _amount(value: Any) -> float:
    return parse_amount(value) or 0.0


def _notice_months(value: Any) -> Optional[int]:
    amount = parse_amount(value)
    return None if amount is None else int(amount)


def _optional_id(value: Any) -> Optional[int]:
    return _parse_id(value) if _present(value) else None


def _categories(raw_items: list[dict]) -> list[CategoryRecord]:
    ids = _assign_ids("categories", raw_items)
    records = []
    for index, (ident, raw) in enumerate(zip(ids, raw_items)):
        path = f"categories[{index}]"
        fields = resolve_fields(raw, FIELD_ALIASES["category"])
        records.append(
            CategoryRecord(
                id=ident,
                name=_text(fields["name"], UNNAMED),
                type=_checked(f"{path}.type", _transaction_type, fields["type"]),
                color=_text(fields["color"], "#4f46e5"),
                description=_text(fields["description"]),
            )
        )
    return records


def _pages(raw_items: list[dict]) -> list[PageRecord]:
    ids = _assign_ids("pages", raw_items)
    records = []
    for ident, raw in zip(ids, raw_items):
        fields = resolve_fields(raw, FIELD_ALIASES["page"])
        metadata = fields["metadata"]
        records.append(
            PageRecord(
                id=ident,
                name=_text(fields["name"], UNNAMED),
                description=_text(fields["description"]),
                color=_text(fields["color"], "#059669"),
                metadata=metadata if isinstance(metadata, dict) else {},
            )
        )
    return records


def _transactions(
    raw_items: list[dict],
    category_ids: set[int],
    page_ids: set[int],
    now: datetime,
    warnings: list[str],
) -> list[TransactionRecord]:
    ids = _assign_ids("transactions", raw_items)
    import_day = datetime(now.year, now.month, now.day)
    records = []
    for index, (ident, raw) in enumerate(zip(ids, raw_items)):
        path = f"transactions[{index}]"
        fields = resolve_fields(raw, FIELD_ALIASES["transaction"])
        category_id = _checked(f"{path}.categoryId", _optional_id, fields["categoryId"])
        if category_id is not None and category_id not in category_ids:
            warnings.append(f"{path}: unknown category {category_id} cleared")
            category_id = None
        page_id = _checked(f"{path}.pageId", _optional_id, fields["pageId"])
        if page_id is not None and page_id not in page_ids:
            warnings.append(f"{path}: unknown page {page_id} cleared")
            page_id = None
        occurred_on = _checked(
            f"{path}.occurredOn", parse_timestamp, fields["occurredOn"]
        )
        metadata = fields["metadata"]
        records.append(
            TransactionRecord(
                id=ident,
                title=_text(fields["title"]),
                amount=_checked(f"{path}.amount", _amount, fields["amount"]),
                type=_checked(f"{path}.type", _transaction_type, fields["type"]),
                occurred_on=occurred_on or import_day,
                category_id=category_id,
                page_id=page_id,
                tags=tuple(clean_labels(fields["tags"] or [])),
                notes=_text(fields["notes"]),
                metadata=metadata if isinstance(metadata, dict) else {},
            )
        )
    return records


def _fixed_expenses(raw_items: list[dict], now: datetime) -> list[FixedExpenseRecord]:
    ids = _assign_ids("fixedExpenses", raw_items)
    records = []
    for index, (ident, raw) in enumerate(zip(ids, raw_items)):
        path = f"fixedExpenses[{index}]"
        fields = resolve_fields(raw, FIELD_ALIASES["fixedExpense"])
        amount = _checked(f"{path}.amountPerMonth", _amount, fields["amountPerMonth"])
        created_raw = _checked(f"{path}.createdAt", parse_timestamp, fields["createdAt"])
        updated_raw = _checked(f"{path}.updatedAt", parse_timestamp, fields["updatedAt"])
        history = normalize_history(
            fields["priceHistory"], amount, updated_raw or created_raw or now
        )
        records.append(
            FixedExpenseRecord(
                id=ident,
                name=_text(fields["name"], UNNAMED),
                amount_per_month=amount,
                price_history=tuple(history),
                created_at=created_raw or now,
                updated_at=updated_raw or now,
                category=_text(fields["category"], DEFAULT_FIXED_CATEGORY),
                owners=tuple(parse_owners_input(fields["owners"])),
                level=_checked(f"{path}.level", _level, fields["level"]),
                start_date=_checked(f"{path}.startDate", parse_date, fields["startDate"]),
                binding_end_date=_checked(
                    f"{path}.bindingEndDate", parse_date, fields["bindingEndDate"]
                ),
                notice_period_months=_checked(
                    f"{path}.noticePeriodMonths",
                    _notice_months,
                    fields["noticePeriodMonths"],
                ),
                note=_text(fields["note"]),
            )
        )
    return records


def _settings(raw: Any) -> BudgetSettings:
    if raw is None:
        return BudgetSettings()
    if not isinstance(raw, dict):
        raise ImportValidationError("settings: expected an object")
    fields = resolve_fields(raw, FIELD_ALIASES["settings"])
    bank_accounts = clean_labels(fields["bankAccounts"] or [])
    try:
        profiles = normalize_owner_profiles(fields["ownerProfiles"], bank_accounts)
    except OwnerProfileError as exc:
        raise ImportValidationError(f"settings.ownerProfiles: {exc}") from exc
    return BudgetSettings(
        monthly_net_income=_checked(
            "settings.monthlyNetIncome", _amount, fields["monthlyNetIncome"]
        ),
        owner_profiles=tuple(profiles),
        default_owners=tuple(
            normalize_default_owners(
                fields["defaultFixedExpensesOwners"],
                fields["defaultFixedExpensesOwner"],
            )
        ),
        bank_mode_enabled=bool(fields["bankModeEnabled"]),
        bank_accounts=tuple(bank_accounts),
    )


def normalize_document(document: Any, *, now: datetime) -> ImportedStore:
    if not isinstance(document, dict):
        raise ImportValidationError("Import document must be a JSON object")
    warnings: list[str] = []
    categories = _categories(_collection(document, "categories"))
    pages = _pages(_collection(document, "pages"))
    transactions = _transactions(
        _collection(document, "transactions"),
        {category.id for category in categories},
        {page.id for page in pages},
        now,
        warnings,
    )
    fixed_expenses = _fixed_expenses(_collection(document, "fixedExpenses"), now)
    settings_raw = resolve_fields(document, {"settings": COLLECTION_ALIASES["settings"]})
    snapshot = StoreSnapshot(
        categories=tuple(categories),
        pages=tuple(pages),
        transactions=tuple(transactions),
        fixed_expenses=tuple(fixed_expenses),
        settings=_settings(settings_raw["settings"]),
    )
    for warning in warnings:
        logger.warning(f"import_normalize: {warning}")
    return ImportedStore(
        snapshot=snapshot, counters=snapshot.counters(), warnings=tuple(warnings)
    )


def export_document(snapshot: StoreSnapshot) -> dict[str, object]:
    return {
        "categories": [category.as_json() for category in snapshot.categories],
        "pages": [page.as_json() for page in snapshot.pages],
        "transactions": [txn.as_json() for txn in snapshot.transactions],
        "fixedExpenses": [expense.as_json() for expense in snapshot.fixed_expenses],
        "settings": snapshot.settings.as_json(),
        "counters": snapshot.counters(),
    }
