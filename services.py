from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.orm import Session, joinedload, selectinload

from aggregation import build_dashboard, page_balances
from config import get_settings
from importer import ImportedStore, export_document, normalize_document
from models import (
    AppSettings,
    Category,
    FixedExpense,
    FixedExpensePrice,
    OwnerProfile,
    Page,
    Transaction,
    TransactionType,
    utcnow,
)
from owners import (
    build_owner_index,
    clean_owner_names,
    normalize_default_owners,
    normalize_owner_profiles,
    remove_owner_from,
    rename_owner_in,
    rename_owner_profiles,
)
from parsing import clean_labels
from price_history import apply_amount_update, reset_history, sorted_history
from schemas import (
    CategoryIn,
    CategoryUpdate,
    FixedExpenseIn,
    FixedExpenseUpdate,
    PageIn,
    PageUpdate,
    SettingsUpdate,
    TransactionIn,
    TransactionUpdate,
)
from snapshot import (
    BudgetSettings,
    CategoryRecord,
    FixedExpenseRecord,
    OwnerProfileRecord,
    PageRecord,
    PricePoint,
    StoreSnapshot,
    TransactionRecord,
)

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1

DEFAULT_CATEGORIES = (
    ("Lønn", TransactionType.income, "#22c55e", "Inntekter og lønn"),
    ("Abonnementer", TransactionType.expense, "#6366f1", "Faste abonnementer"),
    ("Lån", TransactionType.expense, "#f97316", "Lån og kreditt"),
    ("Sparing", TransactionType.expense, "#14b8a6", "Sparing og investering"),
)


class NotFoundError(ValueError):
    pass


def local_today() -> date:
    return datetime.now(ZoneInfo(get_settings().timezone)).date()


def category_record(category: Category) -> CategoryRecord:
    return CategoryRecord(
        id=category.id,
        name=category.name,
        type=category.type,
        color=category.color,
        description=category.description or "",
    )


def page_record(page: Page) -> PageRecord:
    return PageRecord(
        id=page.id,
        name=page.name,
        description=page.description or "",
        color=page.color,
        metadata=dict(page.meta or {}),
    )


def transaction_record(txn: Transaction) -> TransactionRecord:
    return TransactionRecord(
        id=txn.id,
        title=txn.title,
        amount=txn.amount,
        type=txn.type,
        occurred_on=txn.occurred_on,
        category_id=txn.category_id,
        page_id=txn.page_id,
        tags=tuple(txn.tags or ()),
        notes=txn.notes or "",
        metadata=dict(txn.meta or {}),
    )


def _price_points(expense: FixedExpense) -> list[PricePoint]:
    return sorted_history(
        PricePoint(amount=price.amount, changed_at=price.changed_at)
        for price in expense.prices
    )


def fixed_expense_record(expense: FixedExpense) -> FixedExpenseRecord:
    return FixedExpenseRecord(
        id=expense.id,
        name=expense.name,
        amount_per_month=expense.amount_per_month,
        price_history=tuple(_price_points(expense)),
        created_at=expense.created_at,
        updated_at=expense.updated_at,
        category=expense.category,
        owners=tuple(expense.owners or ()),
        level=expense.level,
        start_date=expense.start_date,
        binding_end_date=expense.binding_end_date,
        notice_period_months=expense.notice_period_months,
        note=expense.note or "",
    )


def owner_profile_record(profile: OwnerProfile) -> OwnerProfileRecord:
    return OwnerProfileRecord(
        name=profile.name,
        monthly_net_income=profile.monthly_net_income,
        shared_contribution=profile.shared_contribution,
        bank_contributions=dict(profile.bank_contributions or {}),
    )


def _settings_row(session: Session) -> AppSettings:
    row = session.get(AppSettings, SETTINGS_ROW_ID)
    if row is None:
        row = AppSettings(
            id=SETTINGS_ROW_ID,
            monthly_net_income=0,
            default_owners=[],
            bank_mode_enabled=False,
            bank_accounts=[],
        )
        session.add(row)
        session.flush()
    return row


def _owner_profiles(session: Session) -> list[OwnerProfile]:
    stmt = select(OwnerProfile).order_by(OwnerProfile.position, OwnerProfile.id)
    return list(session.scalars(stmt).all())


def _replace_owner_profiles(
    session: Session, profiles: Iterable[OwnerProfileRecord]
) -> None:
    session.execute(delete(OwnerProfile))
    session.flush()
    for position, profile in enumerate(profiles):
        session.add(
            OwnerProfile(
                name=profile.name,
                position=position,
                monthly_net_income=profile.monthly_net_income,
                shared_contribution=profile.shared_contribution,
                bank_contributions=dict(profile.bank_contributions),
            )
        )


def load_settings(session: Session) -> BudgetSettings:
    row = _settings_row(session)
    return BudgetSettings(
        monthly_net_income=row.monthly_net_income or 0,
        owner_profiles=tuple(
            owner_profile_record(profile) for profile in _owner_profiles(session)
        ),
        default_owners=tuple(clean_owner_names(row.default_owners or [])),
        bank_mode_enabled=bool(row.bank_mode_enabled),
        bank_accounts=tuple(clean_labels(row.bank_accounts or [])),
    )


def load_snapshot(session: Session) -> StoreSnapshot:
    categories = session.scalars(select(Category).order_by(Category.id)).all()
    pages = session.scalars(select(Page).order_by(Page.id)).all()
    transactions = session.scalars(select(Transaction).order_by(Transaction.id)).all()
    fixed_expenses = session.scalars(
        select(FixedExpense)
        .options(selectinload(FixedExpense.prices))
        .order_by(FixedExpense.id)
    ).all()
    return StoreSnapshot(
        categories=tuple(category_record(c) for c in categories),
        pages=tuple(page_record(p) for p in pages),
        transactions=tuple(transaction_record(t) for t in transactions),
        fixed_expenses=tuple(fixed_expense_record(f) for f in fixed_expenses),
        settings=load_settings(session),
    )


def seed_default_categories(session: Session) -> bool:
    if session.scalar(select(func.count(Category.id))):
        return False
    for name, kind, color, description in DEFAULT_CATEGORIES:
        session.add(Category(name=name, type=kind, color=color, description=description))
    session.flush()
    return True


def ensure_defaults(session: Session) -> None:
    _settings_row(session)
    if seed_default_categories(session):
        logger.info(f"ensure_defaults: seeded_categories={len(DEFAULT_CATEGORIES)}")
    session.commit()


class CategoryService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self) -> list[CategoryRecord]:
        stmt = select(Category).order_by(Category.id)
        return [category_record(c) for c in self.session.scalars(stmt).all()]

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category:
            raise NotFoundError("Category not found")
        return category

    def create(self, data: CategoryIn) -> CategoryRecord:
        category = Category(
            name=data.name.strip(),
            type=data.type,
            color=data.color,
            description=data.description,
        )
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category_record(category)

    def update(self, category_id: int, data: CategoryUpdate) -> CategoryRecord:
        category = self.get(category_id)
        changes = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if value is not None
        }
        old_name = category.name
        new_name = changes.get("name", old_name).strip() or old_name
        if new_name != old_name:
            # Fixed expenses reference categories by name.
            result = self.session.execute(
                update(FixedExpense)
                .where(FixedExpense.category == old_name)
                .values(category=new_name, updated_at=utcnow())
            )
            logger.info(
                f"category_rename: id={category_id} fixed_expenses={result.rowcount}"
            )
        category.name = new_name
        for key in ("type", "color", "description"):
            if key in changes:
                setattr(category, key, changes[key])
        self.session.commit()
        self.session.refresh(category)
        return category_record(category)

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        self.session.execute(
            update(Transaction)
            .where(Transaction.category_id == category.id)
            .values(category_id=None)
        )
        self.session.delete(category)
        self.session.commit()


class PageService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, page_id: int) -> Page:
        page = self.session.get(Page, page_id)
        if not page:
            raise NotFoundError("Page not found")
        return page

    def list_with_totals(self) -> list[dict[str, object]]:
        pages = [
            page_record(p)
            for p in self.session.scalars(select(Page).order_by(Page.id)).all()
        ]
        transactions = [
            transaction_record(t)
            for t in self.session.scalars(
                select(Transaction).where(Transaction.page_id.is_not(None))
            ).all()
        ]
        balances = page_balances(pages, transactions)
        return [
            {
                **page.as_json(),
                "totalIncome": balance["totalIncome"],
                "totalExpense": balance["totalExpense"],
                "balance": balance["balance"],
            }
            for page, balance in zip(pages, balances)
        ]

    def create(self, data: PageIn) -> PageRecord:
        page = Page(
            name=data.name.strip(),
            description=data.description,
            color=data.color,
            meta=dict(data.metadata),
        )
        self.session.add(page)
        self.session.commit()
        self.session.refresh(page)
        return page_record(page)

    def update(self, page_id: int, data: PageUpdate) -> PageRecord:
        page = self.get(page_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("name"):
            page.name = changes["name"].strip() or page.name
        if changes.get("description") is not None:
            page.description = changes["description"]
        if changes.get("color") is not None:
            page.color = changes["color"]
        if changes.get("metadata") is not None:
            page.meta = dict(changes["metadata"])
        self.session.commit()
        self.session.refresh(page)
        return page_record(page)

    def delete(self, page_id: int) -> None:
        page = self.get(page_id)
        self.session.execute(
            update(Transaction)
            .where(Transaction.page_id == page.id)
            .values(page_id=None)
        )
        self.session.delete(page)
        self.session.commit()


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    category_id: Optional[int] = None
    page_id: Optional[int] = None
    tag: Optional[str] = None
    search: Optional[str] = None
    sort_by: str = "occurredOn"
    order: str = "DESC"


def transaction_json(txn: Transaction) -> dict[str, object]:
    return {
        **transaction_record(txn).as_json(),
        "categoryName": txn.category.name if txn.category else None,
        "pageName": txn.page.name if txn.page else None,
    }


class TransactionService:
    SORT_COLUMNS = {
        "occurredOn": Transaction.occurred_on,
        "amount": Transaction.amount,
        "title": Transaction.title,
    }

    def __init__(self, session: Session) -> None:
        self.session = session

    def _check_references(
        self, category_id: Optional[int], page_id: Optional[int]
    ) -> None:
        if category_id is not None and not self.session.get(Category, category_id):
            raise ValueError("Category not found")
        if page_id is not None and not self.session.get(Page, page_id):
            raise ValueError("Page not found")

    def list(self, filters: Optional[TransactionFilters] = None) -> list[dict[str, object]]:
        filters = filters or TransactionFilters()
        column = self.SORT_COLUMNS.get(filters.sort_by, Transaction.occurred_on)
        descending = (filters.order or "DESC").upper() == "DESC"
        stmt = select(Transaction).options(
            joinedload(Transaction.category), joinedload(Transaction.page)
        )
        if descending:
            stmt = stmt.order_by(column.desc(), Transaction.id.desc())
        else:
            stmt = stmt.order_by(column.asc(), Transaction.id.asc())
        if filters.type:
            stmt = stmt.where(Transaction.type == filters.type)
        if filters.category_id:
            stmt = stmt.where(Transaction.category_id == filters.category_id)
        if filters.page_id:
            stmt = stmt.where(Transaction.page_id == filters.page_id)
        if filters.search:
            like = f"%{filters.search.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Transaction.title).like(like),
                    func.lower(func.coalesce(Transaction.notes, "")).like(like),
                )
            )
        transactions = self.session.scalars(stmt).all()
        if filters.tag:
            # Tags live in a JSON column; substring match happens here.
            transactions = [
                txn
                for txn in transactions
                if any(filters.tag in tag for tag in txn.tags or [])
            ]
        return [transaction_json(txn) for txn in transactions]

    def get(self, transaction_id: int) -> Transaction:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category), joinedload(Transaction.page))
            .where(Transaction.id == transaction_id)
        )
        txn = self.session.scalar(stmt)
        if not txn:
            raise NotFoundError("Transaction not found")
        return txn

    def create(self, data: TransactionIn) -> dict[str, object]:
        self._check_references(data.category_id, data.page_id)
        txn = Transaction(
            title=data.title.strip(),
            amount=data.amount,
            type=data.type,
            category_id=data.category_id,
            page_id=data.page_id,
            tags=list(data.tags),
            occurred_on=data.occurred_on,
            notes=data.notes,
            meta=dict(data.metadata),
        )
        self.session.add(txn)
        self.session.commit()
        return transaction_json(self.get(txn.id))

    def update(self, transaction_id: int, data: TransactionUpdate) -> dict[str, object]:
        """Partial update: only the fields present in the request change.

        ``categoryId``/``pageId`` sent as null (or "") detach the reference.
        """
        txn = self.get(transaction_id)
        changes = data.model_dump(exclude_unset=True)
        if "category_id" in changes or "page_id" in changes:
            self._check_references(
                changes.get("category_id"), changes.get("page_id")
            )
        if "category_id" in changes:
            txn.category_id = changes["category_id"]
        if "page_id" in changes:
            txn.page_id = changes["page_id"]
        if changes.get("title"):
            txn.title = changes["title"].strip() or txn.title
        for key in ("amount", "type", "occurred_on", "notes"):
            if changes.get(key) is not None:
                setattr(txn, key, changes[key])
        if changes.get("tags") is not None:
            txn.tags = list(changes["tags"])
        if changes.get("metadata") is not None:
            txn.meta = dict(changes["metadata"])
        self.session.commit()
        self.session.expire(txn)
        return transaction_json(self.get(transaction_id))

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()

    def clear(self) -> int:
        count = self.session.scalar(select(func.count(Transaction.id))) or 0
        self.session.execute(delete(Transaction))
        self.session.commit()
        logger.info(f"transactions_clear: deleted={count}")
        return count


class FixedExpenseService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _all(self) -> list[FixedExpense]:
        stmt = (
            select(FixedExpense)
            .options(selectinload(FixedExpense.prices))
            .order_by(FixedExpense.id)
        )
        return list(self.session.scalars(stmt).all())

    def list_all(self) -> list[FixedExpenseRecord]:
        return [fixed_expense_record(expense) for expense in self._all()]

    def get(self, expense_id: int) -> FixedExpense:
        expense = self.session.get(FixedExpense, expense_id)
        if not expense:
            raise NotFoundError("Fixed expense not found")
        return expense

    def _set_history(self, expense: FixedExpense, history: list[PricePoint]) -> None:
        expense.prices = [
            FixedExpensePrice(amount=point.amount, changed_at=point.changed_at)
            for point in history
        ]

    def create(self, data: FixedExpenseIn) -> FixedExpenseRecord:
        now = utcnow()
        expense = FixedExpense(
            name=data.name.strip(),
            amount_per_month=data.amount_per_month,
            category=data.category,
            owners=list(data.owners),
            level=data.level,
            start_date=data.start_date,
            binding_end_date=data.binding_end_date,
            notice_period_months=data.notice_period_months,
            note=data.note,
            created_at=now,
            updated_at=now,
        )
        self._set_history(expense, reset_history(data.amount_per_month, now))
        self.session.add(expense)
        self.session.commit()
        self.session.refresh(expense)
        return fixed_expense_record(expense)

    def update(self, expense_id: int, data: FixedExpenseUpdate) -> FixedExpenseRecord:
        expense = self.get(expense_id)
        changes = data.model_dump(exclude_unset=True)
        now = utcnow()

        history = _price_points(expense)
        amount = changes.get("amount_per_month")
        if data.reset_price_history:
            current = expense.amount_per_month if amount is None else amount
            self._set_history(expense, reset_history(current, now))
        else:
            updated = apply_amount_update(history, amount, now)
            if len(updated) > len(history):
                expense.prices.append(
                    FixedExpensePrice(
                        amount=updated[-1].amount, changed_at=updated[-1].changed_at
                    )
                )
        if amount is not None:
            expense.amount_per_month = amount

        if changes.get("name"):
            expense.name = changes["name"].strip() or expense.name
        if "category" in changes:
            expense.category = changes["category"] or "Annet"
        if changes.get("owners") is not None:
            expense.owners = list(changes["owners"])
        if changes.get("level") is not None:
            expense.level = changes["level"]
        for key in ("start_date", "binding_end_date", "notice_period_months"):
            if key in changes:
                setattr(expense, key, changes[key])
        if changes.get("note") is not None:
            expense.note = changes["note"]
        expense.updated_at = now
        self.session.commit()
        self.session.refresh(expense)
        return fixed_expense_record(expense)

    def reset_price_history(self, expense_id: int) -> FixedExpenseRecord:
        expense = self.get(expense_id)
        now = utcnow()
        self._set_history(expense, reset_history(expense.amount_per_month, now))
        expense.updated_at = now
        self.session.commit()
        self.session.refresh(expense)
        return fixed_expense_record(expense)

    def delete(self, expense_id: int) -> None:
        expense = self.get(expense_id)
        self.session.delete(expense)
        self.session.commit()

    def bulk_add_owners(self, owners: list[str]) -> dict[str, object]:
        wanted = clean_owner_names(owners)
        if not wanted:
            raise ValueError("At least one owner is required")
        now = utcnow()
        updated = 0
        expenses = self._all()
        for expense in expenses:
            existing = clean_owner_names(expense.owners or [])
            merged = clean_owner_names([*existing, *wanted])
            if len(merged) != len(existing):
                expense.owners = merged
                expense.updated_at = now
                updated += 1
        if updated:
            self.session.commit()
            logger.info(f"fixed_expenses_bulk_owners: owners={wanted} updated={updated}")
        return {
            "updated": updated,
            "fixedExpenses": [
                fixed_expense_record(expense).as_json() for expense in expenses
            ],
        }


class SettingsService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self) -> BudgetSettings:
        return load_settings(self.session)

    def update(self, data: SettingsUpdate) -> BudgetSettings:
        row = _settings_row(self.session)
        fields = data.model_fields_set

        if "monthly_net_income" in fields and data.monthly_net_income is not None:
            row.monthly_net_income = data.monthly_net_income

        bank_accounts = clean_labels(row.bank_accounts or [])
        if "bank_accounts" in fields and data.bank_accounts is not None:
            bank_accounts = clean_labels(data.bank_accounts)
            row.bank_accounts = bank_accounts

        raw_profiles = None
        if "owner_profiles" in fields and data.owner_profiles is not None:
            raw_profiles = data.owner_profiles
        elif "bank_accounts" in fields and data.bank_accounts is not None:
            # Stored contributions must follow the new account list.
            raw_profiles = [
                owner_profile_record(profile).as_json()
                for profile in _owner_profiles(self.session)
            ]
        if raw_profiles is not None:
            profiles = normalize_owner_profiles(raw_profiles, bank_accounts)
            _replace_owner_profiles(self.session, profiles)

        if "default_fixed_expenses_owners" in fields:
            row.default_owners = normalize_default_owners(
                data.default_fixed_expenses_owners or []
            )
        elif "default_fixed_expenses_owner" in fields:
            row.default_owners = normalize_default_owners(
                None, data.default_fixed_expenses_owner
            )

        if "bank_mode_enabled" in fields and data.bank_mode_enabled is not None:
            row.bank_mode_enabled = data.bank_mode_enabled

        self.session.commit()
        return load_settings(self.session)


class OwnerService:
    """Owner names are free text spread over fixed expenses, profiles and the
    default owner list; renames and deletes rewrite all three in one commit."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def _expenses_with(self, name: str) -> list[FixedExpense]:
        expenses = self.session.scalars(select(FixedExpense)).all()
        return build_owner_index(expenses).get(name, [])

    def _result(self, changed: bool) -> dict[str, object]:
        settings = load_settings(self.session)
        return {
            "changed": changed,
            "ownerProfiles": [profile.as_json() for profile in settings.owner_profiles],
            "defaultFixedExpensesOwners": list(settings.default_owners),
            "fixedExpenses": [
                expense.as_json()
                for expense in FixedExpenseService(self.session).list_all()
            ],
        }

    def rename(self, old: str, new: str) -> dict[str, object]:
        old, new = old.strip(), new.strip()
        if not old or not new:
            raise ValueError("Both the old and the new name are required")
        if old == new:
            raise ValueError("The name is unchanged")
        now = utcnow()
        changed = False
        for expense in self._expenses_with(old):
            expense.owners = rename_owner_in(expense.owners, old, new)
            expense.updated_at = now
            changed = True

        settings = load_settings(self.session)
        if settings.profile(old) is not None:
            _replace_owner_profiles(
                self.session, rename_owner_profiles(settings.owner_profiles, old, new)
            )
            changed = True
        if old in settings.default_owners:
            row = _settings_row(self.session)
            row.default_owners = rename_owner_in(settings.default_owners, old, new)
            changed = True

        if not changed:
            raise NotFoundError(f"No owner named {old}")
        self.session.commit()
        logger.info(f"owner_rename: from={old} to={new}")
        return self._result(changed)

    def delete(self, name: str) -> dict[str, object]:
        name = name.strip()
        if not name:
            raise ValueError("A name is required to remove an owner")
        now = utcnow()
        changed = False
        for expense in self._expenses_with(name):
            expense.owners = remove_owner_from(expense.owners, name)
            expense.updated_at = now
            changed = True

        settings = load_settings(self.session)
        if settings.profile(name) is not None:
            _replace_owner_profiles(
                self.session,
                [p for p in settings.owner_profiles if p.name != name],
            )
            changed = True
        if name in settings.default_owners:
            row = _settings_row(self.session)
            row.default_owners = remove_owner_from(settings.default_owners, name)
            changed = True

        if not changed:
            raise NotFoundError(f"No owner named {name}")
        self.session.commit()
        logger.info(f"owner_delete: name={name}")
        return self._result(changed)


class DashboardService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def summary(
        self,
        owner_filter: Optional[Iterable[str]] = None,
        today: Optional[date] = None,
    ) -> dict[str, object]:
        snapshot = load_snapshot(self.session)
        return build_dashboard(
            snapshot, today=today or local_today(), owner_filter=owner_filter
        )


class DataTransferService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def export(self) -> dict[str, object]:
        return export_document(load_snapshot(self.session))

    def replace_all(self, document: Any) -> ImportedStore:
        """Replace the whole store with a normalized import document.

        Normalization runs before anything is touched; a failure afterwards
        rolls the session back so the previous store survives.
        """
        imported = normalize_document(document, now=utcnow())
        snapshot = imported.snapshot
        try:
            for model in (
                FixedExpensePrice,
                FixedExpense,
                Transaction,
                Category,
                Page,
                OwnerProfile,
            ):
                self.session.execute(delete(model))
            self.session.flush()

            for record in snapshot.categories:
                self.session.add(
                    Category(
                        id=record.id,
                        name=record.name,
                        type=record.type,
                        color=record.color,
                        description=record.description,
                    )
                )
            for record in snapshot.pages:
                self.session.add(
                    Page(
                        id=record.id,
                        name=record.name,
                        description=record.description,
                        color=record.color,
                        meta=dict(record.metadata),
                    )
                )
            self.session.flush()

            for record in snapshot.transactions:
                self.session.add(
                    Transaction(
                        id=record.id,
                        title=record.title,
                        amount=record.amount,
                        type=record.type,
                        category_id=record.category_id,
                        page_id=record.page_id,
                        tags=list(record.tags),
                        occurred_on=record.occurred_on,
                        notes=record.notes,
                        meta=dict(record.metadata),
                    )
                )
            for record in snapshot.fixed_expenses:
                expense = FixedExpense(
                    id=record.id,
                    name=record.name,
                    amount_per_month=record.amount_per_month,
                    category=record.category,
                    owners=list(record.owners),
                    level=record.level,
                    start_date=record.start_date,
                    binding_end_date=record.binding_end_date,
                    notice_period_months=record.notice_period_months,
                    note=record.note,
                    created_at=record.created_at,
                    updated_at=record.updated_at,
                )
                expense.prices = [
                    FixedExpensePrice(amount=point.amount, changed_at=point.changed_at)
                    for point in record.price_history
                ]
                self.session.add(expense)

            settings = snapshot.settings
            row = _settings_row(self.session)
            row.monthly_net_income = settings.monthly_net_income
            row.default_owners = list(settings.default_owners)
            row.bank_mode_enabled = settings.bank_mode_enabled
            row.bank_accounts = list(settings.bank_accounts)
            _replace_owner_profiles(self.session, settings.owner_profiles)
            self.session.flush()
            seed_default_categories(self.session)
            self.session.commit()
        except Exception:
            self.session.rollback()
            logger.exception("import_replace: failed, store left unchanged")
            raise

        logger.info(
            f"import_replace: categories={len(snapshot.categories)} "
            f"pages={len(snapshot.pages)} transactions={len(snapshot.transactions)} "
            f"fixed_expenses={len(snapshot.fixed_expenses)} "
            f"warnings={len(imported.warnings)}"
        )
        return imported
