"""Dashboard aggregation over a :class:`snapshot.StoreSnapshot`.

Every function here is pure: the same snapshot and ``today`` always give the
same document.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date
from typing import Optional

from models import FixedExpenseLevel, TransactionType
from owners import resolve_owner_view
from price_history import has_changed, sorted_history
from snapshot import (
    BudgetSettings,
    CategoryRecord,
    FixedExpenseRecord,
    PageRecord,
    StoreSnapshot,
    TransactionRecord,
)

BINDING_ALERT_WINDOW_DAYS = 90
UNCATEGORIZED_COLOR = "#94a3b8"
DEFAULT_FIXED_CATEGORY = "Annet"


def _amount(value: Optional[float]) -> float:
    return value or 0


def transaction_totals(
    transactions: Iterable[TransactionRecord],
) -> tuple[float, float]:
    income = 0.0
    expense = 0.0
    for txn in transactions:
        if txn.type == TransactionType.income:
            income += _amount(txn.amount)
        elif txn.type == TransactionType.expense:
            expense += _amount(txn.amount)
    return income, expense


def category_totals(
    categories: Iterable[CategoryRecord], transactions: Sequence[TransactionRecord]
) -> list[dict[str, object]]:
    # Only expenses count against a category here, income categories show 0.
    spent: dict[int, float] = defaultdict(float)
    for txn in transactions:
        if txn.type == TransactionType.expense and txn.category_id is not None:
            spent[txn.category_id] += _amount(txn.amount)
    return [
        {**category.as_json(), "total": spent.get(category.id, 0)}
        for category in categories
    ]


def monthly_series(
    transactions: Iterable[TransactionRecord],
) -> list[dict[str, object]]:
    buckets: dict[str, dict[str, object]] = {}
    for txn in transactions:
        if txn.occurred_on is None:
            continue
        period = txn.occurred_on.strftime("%Y-%m")
        bucket = buckets.setdefault(
            period, {"period": period, "income": 0, "expenses": 0}
        )
        key = "income" if txn.type == TransactionType.income else "expenses"
        bucket[key] += _amount(txn.amount)
    return [buckets[period] for period in sorted(buckets)]


def tag_totals(transactions: Iterable[TransactionRecord]) -> dict[str, float]:
    totals: dict[str, float] = {}
    for txn in transactions:
        signed = (
            -_amount(txn.amount)
            if txn.type == TransactionType.expense
            else _amount(txn.amount)
        )
        for tag in txn.tags:
            totals[tag] = totals.get(tag, 0) + signed
    return totals


def page_balances(
    pages: Iterable[PageRecord], transactions: Sequence[TransactionRecord]
) -> list[dict[str, object]]:
    out: list[dict[str, object]] = []
    for page in pages:
        income, expense = transaction_totals(
            txn for txn in transactions if txn.page_id == page.id
        )
        out.append(
            {
                "id": page.id,
                "name": page.name,
                "balance": income - expense,
                "totalIncome": income,
                "totalExpense": expense,
            }
        )
    return out


def category_colors(categories: Iterable[CategoryRecord]) -> dict[str, str]:
    return {category.name: category.color for category in categories}


def fixed_category_totals(
    expenses: Iterable[FixedExpenseRecord], colors: dict[str, str]
) -> list[dict[str, object]]:
    totals: dict[str, float] = {}
    for expense in expenses:
        key = expense.category or DEFAULT_FIXED_CATEGORY
        totals[key] = totals.get(key, 0) + _amount(expense.amount_per_month)
    rows = [
        {
            "category": category,
            "total": total,
            "color": colors.get(category, UNCATEGORIZED_COLOR),
        }
        for category, total in totals.items()
    ]
    return sorted(rows, key=lambda row: row["total"], reverse=True)


def fixed_level_totals(
    expenses: Iterable[FixedExpenseRecord],
) -> list[dict[str, object]]:
    totals = {level: 0 for level in FixedExpenseLevel}
    for expense in expenses:
        level = expense.level or FixedExpenseLevel.must_have
        totals[level] += _amount(expense.amount_per_month)
    rows = [{"level": level.value, "total": total} for level, total in totals.items()]
    return sorted(rows, key=lambda row: row["total"], reverse=True)


def binding_expirations(
    expenses: Iterable[FixedExpenseRecord],
    today: date,
    *,
    window_days: int = BINDING_ALERT_WINDOW_DAYS,
) -> list[dict[str, object]]:
    upcoming = []
    for expense in expenses:
        if expense.binding_end_date is None:
            continue
        days_left = (expense.binding_end_date - today).days
        if 0 <= days_left <= window_days:
            upcoming.append((expense, days_left))
    upcoming.sort(key=lambda item: item[0].binding_end_date)
    return [
        {
            "id": expense.id,
            "name": expense.name,
            "bindingEndDate": expense.binding_end_date.isoformat(),
            "category": expense.category,
            "amountPerMonth": expense.amount_per_month,
            "daysLeft": days_left,
        }
        for expense, days_left in upcoming
    ]


def price_history_series(
    expenses: Iterable[FixedExpenseRecord], colors: dict[str, str]
) -> list[dict[str, object]]:
    series = []
    for expense in expenses:
        history = sorted_history(expense.price_history)
        if not has_changed(history):
            continue
        series.append(
            {
                "id": expense.id,
                "name": expense.name,
                "category": expense.category,
                "color": colors.get(expense.category, UNCATEGORIZED_COLOR),
                "priceHistory": [point.as_json() for point in history],
            }
        )
    return series


def bank_mode_summary(
    settings: BudgetSettings, fixed_expense_total: float
) -> dict[str, object]:
    owners = [
        {
            "name": profile.name,
            "monthlyNetIncome": _amount(profile.monthly_net_income),
            "sharedContribution": _amount(profile.shared_contribution),
            "remainingPersonal": _amount(profile.monthly_net_income)
            - _amount(profile.shared_contribution),
        }
        for profile in settings.owner_profiles
    ]
    total_income = sum(owner["monthlyNetIncome"] for owner in owners)
    total_contribution = sum(owner["sharedContribution"] for owner in owners)
    return {
        "enabled": settings.bank_mode_enabled,
        "totalIncome": total_income,
        "totalContribution": total_contribution,
        "freeAfterFixed": total_contribution - fixed_expense_total,
        "remainingPersonal": sum(owner["remainingPersonal"] for owner in owners),
        "owners": owners,
    }


def build_dashboard(
    snapshot: StoreSnapshot,
    *,
    today: date,
    owner_filter: Optional[Iterable[str]] = None,
) -> dict[str, object]:
    transactions = snapshot.transactions
    settings = snapshot.settings
    resolution = resolve_owner_view(
        snapshot.fixed_expenses, settings, owner_filter=owner_filter
    )
    filtered = resolution.fixed_expenses
    colors = category_colors(snapshot.categories)
    total_income, total_expense = transaction_totals(transactions)

    return {
        "totalIncome": total_income,
        "totalExpense": total_expense,
        "net": total_income - total_expense,
        "categoryTotals": category_totals(snapshot.categories, transactions),
        "monthly": monthly_series(transactions),
        "tagTotals": tag_totals(transactions),
        "pageBalances": page_balances(snapshot.pages, transactions),
        "fixedExpenseTotal": resolution.fixed_expense_total,
        "fixedExpenseCategoryTotals": fixed_category_totals(filtered, colors),
        "fixedExpenseLevelTotals": fixed_level_totals(filtered),
        "monthlyNetIncome": _amount(settings.monthly_net_income),
        "activeMonthlyNetIncome": resolution.active_income,
        "freeAfterFixed": resolution.free_after_fixed,
        "bankModeSummary": bank_mode_summary(
            settings, resolution.fixed_expense_total
        ),
        "effectiveFixedExpenseTotal": resolution.fixed_expense_total,
        "bindingExpirations": binding_expirations(filtered, today),
        "fixedExpensesCount": len(snapshot.fixed_expenses),
        "fixedExpensePriceHistory": price_history_series(filtered, colors),
        "activeOwners": list(resolution.owners),
        "missingIncomeOwners": list(resolution.missing_income_owners),
    }
