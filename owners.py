from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from typing import Any, Optional, Protocol

from parsing import clean_labels, parse_amount
from snapshot import BudgetSettings, FixedExpenseRecord, OwnerProfileRecord


class OwnerProfileError(ValueError):
    pass


class HasOwners(Protocol):
    owners: Any


@dataclass(frozen=True)
class OwnerResolution:
    owners: tuple[str, ...]
    fixed_expenses: tuple[FixedExpenseRecord, ...]
    fixed_expense_total: float
    active_income: float
    free_after_fixed: float
    missing_income_owners: tuple[str, ...]


def clean_owner_names(values: Any) -> list[str]:
    if isinstance(values, str):
        return clean_labels([values])
    return clean_labels(values)


def parse_owners_input(value: Any) -> list[str]:
    """Owners arrive as a list or as one comma separated string."""
    if isinstance(value, (list, tuple)):
        return clean_labels([str(owner) for owner in value if owner is not None])
    if isinstance(value, str):
        return clean_labels(value.split(","))
    return []


def _contribution(raw: dict) -> Any:
    for key in ("sharedContribution", "sharedContributionPerMonth"):
        if raw.get(key) is not None:
            return raw[key]
    return None


def _bank_contributions(raw: Any, valid_accounts: set[str]) -> dict[str, float]:
    if not isinstance(raw, dict):
        return {}
    contributions: dict[str, float] = {}
    for account, value in raw.items():
        if not isinstance(account, str) or not account.strip():
            continue
        try:
            amount = parse_amount(value)
        except ValueError:
            continue
        if amount is None:
            continue
        name = account.strip()
        if not valid_accounts or name in valid_accounts:
            contributions[name] = amount
    return contributions


def normalize_owner_profiles(
    raw_profiles: Any, bank_accounts: Iterable[str] = ()
) -> list[OwnerProfileRecord]:
    """Single normalization path for owner profiles from requests and imports.

    Blank names are skipped and the first profile of a name wins. When a
    profile splits its contribution over bank accounts, the account total
    replaces ``sharedContribution``.
    """
    if raw_profiles is None:
        return []
    if not isinstance(raw_profiles, list):
        raise OwnerProfileError("Owner profiles must be a list")
    valid_accounts = set(clean_labels(list(bank_accounts)))
    profiles: dict[str, OwnerProfileRecord] = {}
    for raw in raw_profiles:
        if not isinstance(raw, dict):
            continue
        name = raw.get("name")
        if not isinstance(name, str) or not name.strip():
            continue
        name = name.strip()
        if name in profiles:
            continue
        try:
            income = parse_amount(raw.get("monthlyNetIncome")) or 0.0
        except ValueError as exc:
            raise OwnerProfileError(
                f"Monthly net income for {name} must be a non-negative number"
            ) from exc
        try:
            shared = parse_amount(_contribution(raw)) or 0.0
        except ValueError as exc:
            raise OwnerProfileError(
                f"Shared contribution for {name} must be a non-negative number"
            ) from exc
        contributions = _bank_contributions(
            raw.get("bankContributions"), valid_accounts
        )
        account_total = sum(contributions.values())
        profiles[name] = OwnerProfileRecord(
            name=name,
            monthly_net_income=income,
            shared_contribution=account_total if account_total > 0 else shared,
            bank_contributions=contributions,
        )
    return list(profiles.values())


def normalize_default_owners(owners: Any, legacy_owner: Any = None) -> list[str]:
    """Default owner list, falling back to the single legacy default owner."""
    if isinstance(owners, (list, tuple)):
        return clean_labels(list(owners))
    if isinstance(legacy_owner, str):
        return clean_labels([legacy_owner])
    return []


def active_owner_set(
    owner_filter: Optional[Iterable[str]], default_owners: Iterable[str]
) -> list[str]:
    explicit = clean_owner_names(list(owner_filter or []))
    if explicit:
        return explicit
    return clean_owner_names(list(default_owners))


def filter_fixed_expenses(
    expenses: Iterable[FixedExpenseRecord], owners: Sequence[str]
) -> list[FixedExpenseRecord]:
    if not owners:
        return list(expenses)
    wanted = set(owners)
    return [expense for expense in expenses if wanted.intersection(expense.owners)]


def resolve_owner_view(
    fixed_expenses: Iterable[FixedExpenseRecord],
    settings: BudgetSettings,
    owner_filter: Optional[Iterable[str]] = None,
) -> OwnerResolution:
    owners = active_owner_set(owner_filter, settings.default_owners)
    filtered = filter_fixed_expenses(fixed_expenses, owners)
    fixed_total = sum(expense.amount_per_month or 0 for expense in filtered)
    missing = [owner for owner in owners if settings.profile(owner) is None]

    if settings.bank_mode_enabled:
        # The shared account pools every profile, whatever the filter.
        active_income = sum(
            profile.shared_contribution or 0 for profile in settings.owner_profiles
        )
    elif owners and not missing:
        active_income = sum(
            settings.profile(owner).monthly_net_income or 0 for owner in owners
        )
    else:
        active_income = settings.monthly_net_income or 0

    return OwnerResolution(
        owners=tuple(owners),
        fixed_expenses=tuple(filtered),
        fixed_expense_total=fixed_total,
        active_income=active_income,
        free_after_fixed=active_income - fixed_total,
        missing_income_owners=tuple(missing),
    )


def build_owner_index(expenses: Iterable[HasOwners]) -> dict[str, list[HasOwners]]:
    index: dict[str, list[HasOwners]] = defaultdict(list)
    for expense in expenses:
        for owner in clean_owner_names(expense.owners or []):
            index[owner].append(expense)
    return dict(index)


def rename_owner_in(names: Iterable[str], old: str, new: str) -> list[str]:
    return clean_owner_names(
        [new if name == old else name for name in clean_owner_names(list(names))]
    )


def remove_owner_from(names: Iterable[str], target: str) -> list[str]:
    return [name for name in clean_owner_names(list(names)) if name != target]


def rename_owner_profiles(
    profiles: Iterable[OwnerProfileRecord], old: str, new: str
) -> list[OwnerProfileRecord]:
    renamed: dict[str, OwnerProfileRecord] = {}
    for profile in profiles:
        name = new if profile.name == old else profile.name
        renamed.setdefault(name, replace(profile, name=name))
    return list(renamed.values())
