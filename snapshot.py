from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from models import FixedExpenseLevel, TransactionType
from parsing import format_date, format_timestamp


@dataclass(frozen=True)
class CategoryRecord:
    id: int
    name: str
    type: TransactionType = TransactionType.expense
    color: str = "#4f46e5"
    description: str = ""

    def as_json(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "color": self.color,
            "description": self.description,
        }


@dataclass(frozen=True)
class PageRecord:
    id: int
    name: str
    description: str = ""
    color: str = "#059669"
    metadata: dict = field(default_factory=dict)

    def as_json(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class TransactionRecord:
    id: int
    title: str
    amount: float
    type: TransactionType
    occurred_on: Optional[datetime]
    category_id: Optional[int] = None
    page_id: Optional[int] = None
    tags: tuple[str, ...] = ()
    notes: str = ""
    metadata: dict = field(default_factory=dict)

    def as_json(self) -> dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "amount": self.amount,
            "type": self.type.value,
            "categoryId": self.category_id,
            "pageId": self.page_id,
            "tags": list(self.tags),
            "occurredOn": format_timestamp(self.occurred_on),
            "notes": self.notes,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class PricePoint:
    amount: float
    changed_at: datetime

    def as_json(self) -> dict[str, object]:
        return {"amount": self.amount, "changedAt": format_timestamp(self.changed_at)}


@dataclass(frozen=True)
class FixedExpenseRecord:
    id: int
    name: str
    amount_per_month: float
    price_history: tuple[PricePoint, ...]
    created_at: datetime
    updated_at: datetime
    category: str = "Annet"
    owners: tuple[str, ...] = ()
    level: FixedExpenseLevel = FixedExpenseLevel.must_have
    start_date: Optional[date] = None
    binding_end_date: Optional[date] = None
    notice_period_months: Optional[int] = None
    note: str = ""

    def as_json(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "amountPerMonth": self.amount_per_month,
            "category": self.category,
            "owners": list(self.owners),
            "level": self.level.value,
            "startDate": format_date(self.start_date),
            "bindingEndDate": format_date(self.binding_end_date),
            "noticePeriodMonths": self.notice_period_months,
            "note": self.note,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
            "priceHistory": [point.as_json() for point in self.price_history],
        }


@dataclass(frozen=True)
class OwnerProfileRecord:
    name: str
    monthly_net_income: float = 0.0
    shared_contribution: float = 0.0
    bank_contributions: dict = field(default_factory=dict)

    def as_json(self) -> dict[str, object]:
        return {
            "name": self.name,
            "monthlyNetIncome": self.monthly_net_income,
            "sharedContribution": self.shared_contribution,
            "bankContributions": dict(self.bank_contributions),
        }


@dataclass(frozen=True)
class BudgetSettings:
    monthly_net_income: float = 0.0
    owner_profiles: tuple[OwnerProfileRecord, ...] = ()
    default_owners: tuple[str, ...] = ()
    bank_mode_enabled: bool = False
    bank_accounts: tuple[str, ...] = ()

    def profile(self, name: str) -> Optional[OwnerProfileRecord]:
        for candidate in self.owner_profiles:
            if candidate.name == name:
                return candidate
        return None

    def as_json(self) -> dict[str, object]:
        return {
            "monthlyNetIncome": self.monthly_net_income,
            "ownerProfiles": [profile.as_json() for profile in self.owner_profiles],
            "defaultFixedExpensesOwners": list(self.default_owners),
            "defaultFixedExpensesOwner": self.default_owners[0]
            if self.default_owners
            else "",
            "bankModeEnabled": self.bank_mode_enabled,
            "bankAccounts": list(self.bank_accounts),
        }


@dataclass(frozen=True)
class StoreSnapshot:
    """Everything the aggregation engine reads, captured at one point in time."""

    categories: tuple[CategoryRecord, ...] = ()
    pages: tuple[PageRecord, ...] = ()
    transactions: tuple[TransactionRecord, ...] = ()
    fixed_expenses: tuple[FixedExpenseRecord, ...] = ()
    settings: BudgetSettings = field(default_factory=BudgetSettings)

    def counters(self) -> dict[str, int]:
        return {
            "categories": max((c.id for c in self.categories), default=0),
            "pages": max((p.id for p in self.pages), default=0),
            "transactions": max((t.id for t in self.transactions), default=0),
            "fixedExpenses": max((f.id for f in self.fixed_expenses), default=0),
        }
