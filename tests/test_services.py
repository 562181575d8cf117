from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from database import Base, build_engine
from importer import ImportValidationError
from models import Category, FixedExpense, Transaction, TransactionType
from owners import OwnerProfileError
from schemas import (
    CategoryIn,
    CategoryUpdate,
    FixedExpenseIn,
    FixedExpenseUpdate,
    PageIn,
    SettingsUpdate,
    TransactionIn,
    TransactionUpdate,
)
from services import (
    CategoryService,
    DashboardService,
    DataTransferService,
    FixedExpenseService,
    NotFoundError,
    OwnerService,
    PageService,
    SettingsService,
    TransactionFilters,
    TransactionService,
    ensure_defaults,
)


def make_session():
    engine = build_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def _txn(title: str, amount: float, kind: TransactionType, when: str, **extra):
    return TransactionIn(title=title, amount=amount, type=kind, occurred_on=when, **extra)


def test_defaults_are_seeded_once() -> None:
    session = make_session()
    ensure_defaults(session)
    ensure_defaults(session)
    names = [c.name for c in CategoryService(session).list_all()]
    assert names == ["Lønn", "Abonnementer", "Lån", "Sparing"]
    assert CategoryService(session).list_all()[0].type == TransactionType.income


def test_category_rename_rewrites_fixed_expenses() -> None:
    session = make_session()
    category = CategoryService(session).create(CategoryIn(name="Strøm"))
    expenses = FixedExpenseService(session)
    expense = expenses.create(
        FixedExpenseIn(name="Fjordkraft", amount_per_month=800, category="Strøm")
    )
    CategoryService(session).update(category.id, CategoryUpdate(name="Energi"))
    assert expenses.get(expense.id).category == "Energi"


def test_category_and_page_delete_detach_transactions() -> None:
    session = make_session()
    category = CategoryService(session).create(CategoryIn(name="Mat"))
    page = PageService(session).create(PageIn(name="Ferie"))
    created = TransactionService(session).create(
        _txn("Pizza", 200, TransactionType.expense, "2024-01-02",
             category_id=category.id, page_id=page.id)
    )
    assert created["categoryName"] == "Mat"
    assert created["pageName"] == "Ferie"

    CategoryService(session).delete(category.id)
    PageService(session).delete(page.id)
    txn = session.get(Transaction, created["id"])
    session.refresh(txn)
    assert txn.category_id is None
    assert txn.page_id is None
    with pytest.raises(NotFoundError):
        CategoryService(session).delete(category.id)


def test_page_list_includes_totals() -> None:
    session = make_session()
    page = PageService(session).create(PageIn(name="Hytte"))
    txns = TransactionService(session)
    txns.create(_txn("Leie", 1000, TransactionType.income, "2024-01-01", page_id=page.id))
    txns.create(_txn("Ved", 250, TransactionType.expense, "2024-01-03", page_id=page.id))
    listed = PageService(session).list_with_totals()
    assert listed[0]["name"] == "Hytte"
    assert listed[0]["totalIncome"] == 1000
    assert listed[0]["totalExpense"] == 250
    assert listed[0]["balance"] == 750


def test_transaction_filters_and_sorting() -> None:
    session = make_session()
    txns = TransactionService(session)
    txns.create(_txn("Kaffe", 40, TransactionType.expense, "2024-01-03", tags=["mat"]))
    txns.create(_txn("Lønn", 30000, TransactionType.income, "2024-01-25"))
    txns.create(
        _txn("Middag", 400, TransactionType.expense, "2024-01-10",
             tags=["matbutikk"], notes="Med venner")
    )

    newest_first = [t["title"] for t in txns.list()]
    assert newest_first == ["Lønn", "Middag", "Kaffe"]

    by_amount = txns.list(TransactionFilters(sort_by="amount", order="ASC"))
    assert [t["amount"] for t in by_amount] == [40, 400, 30000]

    expenses = txns.list(TransactionFilters(type=TransactionType.expense))
    assert {t["title"] for t in expenses} == {"Kaffe", "Middag"}

    tagged = txns.list(TransactionFilters(tag="mat"))
    assert {t["title"] for t in tagged} == {"Kaffe", "Middag"}

    searched = txns.list(TransactionFilters(search="VENNER"))
    assert [t["title"] for t in searched] == ["Middag"]


def test_transaction_update_is_partial() -> None:
    session = make_session()
    category = CategoryService(session).create(CategoryIn(name="Mat"))
    txns = TransactionService(session)
    created = txns.create(
        _txn("Pizza", 200, TransactionType.expense, "2024-01-02",
             category_id=category.id, tags=["helg"])
    )
    updated = txns.update(created["id"], TransactionUpdate(amount=250))
    assert updated["amount"] == 250
    assert updated["title"] == "Pizza"
    assert updated["tags"] == ["helg"]
    assert updated["categoryId"] == category.id

    cleared = txns.update(created["id"], TransactionUpdate(category_id=""))
    assert cleared["categoryId"] is None
    assert cleared["categoryName"] is None


def test_transaction_with_unknown_category_is_rejected() -> None:
    session = make_session()
    with pytest.raises(ValueError, match="Category not found"):
        TransactionService(session).create(
            _txn("Pizza", 200, TransactionType.expense, "2024-01-02", category_id=77)
        )


def test_timestamps_are_returned_as_utc() -> None:
    session = make_session()
    created = TransactionService(session).create(
        _txn("Nattmat", 120, TransactionType.expense, "2024-02-01T00:30:00+01:00")
    )
    assert created["occurredOn"] == "2024-01-31T23:30:00Z"

    expense = FixedExpenseService(session).create(
        FixedExpenseIn(name="Strøm", amount_per_month=100)
    )
    payload = expense.as_json()
    assert payload["createdAt"].endswith("Z")
    assert payload["updatedAt"].endswith("Z")
    assert payload["priceHistory"][0]["changedAt"].endswith("Z")


def test_clear_transactions_returns_count() -> None:
    session = make_session()
    txns = TransactionService(session)
    txns.create(_txn("A", 1, TransactionType.expense, "2024-01-01"))
    txns.create(_txn("B", 2, TransactionType.expense, "2024-01-02"))
    assert txns.clear() == 2
    assert txns.list() == []
    with pytest.raises(NotFoundError):
        txns.get(1)


def test_price_history_through_updates_and_reset() -> None:
    session = make_session()
    service = FixedExpenseService(session)
    expense = service.create(FixedExpenseIn(name="Forsikring", amount_per_month=100))
    assert [p.amount for p in expense.price_history] == [100]

    expense = service.update(expense.id, FixedExpenseUpdate(amount_per_month=150))
    expense = service.update(expense.id, FixedExpenseUpdate(amount_per_month=150))
    expense = service.update(expense.id, FixedExpenseUpdate(note="Årlig"))
    assert [p.amount for p in expense.price_history] == [100, 150]
    assert expense.note == "Årlig"

    expense = service.reset_price_history(expense.id)
    assert [p.amount for p in expense.price_history] == [150]
    assert expense.amount_per_month == 150


def test_update_with_reset_flag_starts_from_new_amount() -> None:
    session = make_session()
    service = FixedExpenseService(session)
    expense = service.create(FixedExpenseIn(name="Mobil", amount_per_month=300))
    expense = service.update(
        expense.id, FixedExpenseUpdate(amount_per_month=350, reset_price_history=True)
    )
    assert [p.amount for p in expense.price_history] == [350]


def test_fixed_expense_field_updates() -> None:
    session = make_session()
    service = FixedExpenseService(session)
    expense = service.create(
        FixedExpenseIn(
            name="Lån",
            amount_per_month=5000,
            binding_end_date="2025-01-01",
            notice_period_months="2",
            owners="Ada, Bo",
        )
    )
    assert expense.owners == ("Ada", "Bo")
    assert expense.binding_end_date == date(2025, 1, 1)
    assert expense.notice_period_months == 2

    expense = service.update(
        expense.id,
        FixedExpenseUpdate(category="  ", binding_end_date="", notice_period_months=""),
    )
    assert expense.category == "Annet"
    assert expense.binding_end_date is None
    assert expense.notice_period_months is None


def test_bulk_add_owners_counts_changed_expenses() -> None:
    session = make_session()
    service = FixedExpenseService(session)
    service.create(FixedExpenseIn(name="A", amount_per_month=1, owners=["Ada"]))
    service.create(FixedExpenseIn(name="B", amount_per_month=1, owners=["Bo"]))
    result = service.bulk_add_owners(["Ada"])
    assert result["updated"] == 1
    assert [e["owners"] for e in result["fixedExpenses"]] == [["Ada"], ["Bo", "Ada"]]
    with pytest.raises(ValueError):
        service.bulk_add_owners([" "])


def _owner_setup(session) -> None:
    ensure_defaults(session)
    FixedExpenseService(session).create(
        FixedExpenseIn(name="Husleie", amount_per_month=10000, owners=["Ada", "Bo"])
    )
    SettingsService(session).update(
        SettingsUpdate(
            owner_profiles=[
                {"name": "Ada", "monthlyNetIncome": 40000},
                {"name": "Bo", "monthlyNetIncome": 30000},
            ],
            default_fixed_expenses_owners=["Ada"],
        )
    )


def test_owner_rename_cascades_everywhere() -> None:
    session = make_session()
    _owner_setup(session)
    result = OwnerService(session).rename("Ada", "Anne")
    assert result["changed"] is True
    assert [p["name"] for p in result["ownerProfiles"]] == ["Anne", "Bo"]
    assert result["defaultFixedExpensesOwners"] == ["Anne"]
    assert result["fixedExpenses"][0]["owners"] == ["Anne", "Bo"]


def test_owner_rename_onto_existing_name_merges() -> None:
    session = make_session()
    _owner_setup(session)
    result = OwnerService(session).rename("Bo", "Ada")
    assert [p["name"] for p in result["ownerProfiles"]] == ["Ada"]
    assert result["ownerProfiles"][0]["monthlyNetIncome"] == 40000
    assert result["fixedExpenses"][0]["owners"] == ["Ada"]


def test_owner_rename_errors() -> None:
    session = make_session()
    _owner_setup(session)
    with pytest.raises(NotFoundError):
        OwnerService(session).rename("Cy", "Dag")
    with pytest.raises(ValueError, match="unchanged"):
        OwnerService(session).rename("Ada", "Ada")


def test_owner_delete_cascades_everywhere() -> None:
    session = make_session()
    _owner_setup(session)
    result = OwnerService(session).delete("Ada")
    assert [p["name"] for p in result["ownerProfiles"]] == ["Bo"]
    assert result["defaultFixedExpensesOwners"] == []
    assert result["fixedExpenses"][0]["owners"] == ["Bo"]
    with pytest.raises(NotFoundError):
        OwnerService(session).delete("Ada")


def test_settings_update_rules() -> None:
    session = make_session()
    service = SettingsService(session)
    settings = service.update(
        SettingsUpdate(
            monthly_net_income=55000,
            bank_accounts=["Felles", " Felles ", ""],
            owner_profiles=[
                {
                    "name": "Ada",
                    "monthlyNetIncome": 40000,
                    "bankContributions": {"Felles": 9000, "Annen": 100},
                }
            ],
            bank_mode_enabled=True,
        )
    )
    assert settings.monthly_net_income == 55000
    assert settings.bank_accounts == ("Felles",)
    assert settings.owner_profiles[0].shared_contribution == 9000
    assert settings.owner_profiles[0].bank_contributions == {"Felles": 9000}

    settings = service.update(SettingsUpdate(default_fixed_expenses_owner=" Ada "))
    assert settings.default_owners == ("Ada",)
    assert settings.as_json()["defaultFixedExpensesOwner"] == "Ada"
    assert settings.monthly_net_income == 55000

    with pytest.raises(OwnerProfileError):
        service.update(
            SettingsUpdate(owner_profiles=[{"name": "Bo", "monthlyNetIncome": -1}])
        )


def test_removing_bank_account_trims_stored_contributions() -> None:
    session = make_session()
    service = SettingsService(session)
    service.update(
        SettingsUpdate(
            bank_accounts=["A", "B"],
            bank_mode_enabled=True,
            owner_profiles=[
                {
                    "name": "Ada",
                    "monthlyNetIncome": 100,
                    "bankContributions": {"A": 10, "B": 20},
                }
            ],
        )
    )
    settings = service.update(SettingsUpdate(bank_accounts=["A"]))
    ada = settings.owner_profiles[0]
    assert ada.bank_contributions == {"A": 10}
    assert ada.shared_contribution == 10

    today = date(2024, 6, 1)
    before = DashboardService(session).summary(today=today)
    other = make_session()
    DataTransferService(other).replace_all(DataTransferService(session).export())
    after = DashboardService(other).summary(today=today)
    assert after["bankModeSummary"] == before["bankModeSummary"]
    assert after == before


def test_dashboard_summary_reads_store() -> None:
    session = make_session()
    txns = TransactionService(session)
    txns.create(_txn("Lønn", 1000, TransactionType.income, "2024-01-05"))
    txns.create(_txn("Mat", 400, TransactionType.expense, "2024-01-20"))
    FixedExpenseService(session).create(
        FixedExpenseIn(
            name="Mobil", amount_per_month=300, binding_end_date="2024-02-15"
        )
    )
    summary = DashboardService(session).summary(today=date(2024, 2, 1))
    assert summary["net"] == 600
    assert summary["monthly"] == [{"period": "2024-01", "income": 1000, "expenses": 400}]
    assert summary["fixedExpenseTotal"] == 300
    assert summary["bindingExpirations"][0]["daysLeft"] == 14


def test_import_replaces_store_and_seeds_categories() -> None:
    session = make_session()
    ensure_defaults(session)
    TransactionService(session).create(_txn("Gammel", 1, TransactionType.expense, "2024-01-01"))

    imported = DataTransferService(session).replace_all(
        {
            "transactions": [{"id": 5, "title": "Ny", "amount": 10, "type": "income"}],
            "fixedExpenses": [{"id": 2, "name": "Netflix", "amountPerMonth": 149}],
        }
    )
    assert imported.counters["transactions"] == 5
    titles = [t.title for t in session.scalars(select(Transaction)).all()]
    assert titles == ["Ny"]
    assert len(session.scalars(select(Category)).all()) == 4
    expense = session.get(FixedExpense, 2)
    assert [p.amount for p in expense.prices] == [149]

    created = TransactionService(session).create(
        _txn("Neste", 1, TransactionType.expense, "2024-01-01")
    )
    assert created["id"] == 6


def test_failed_import_leaves_store_untouched() -> None:
    session = make_session()
    TransactionService(session).create(_txn("Behold", 1, TransactionType.expense, "2024-01-01"))
    with pytest.raises(ImportValidationError):
        DataTransferService(session).replace_all(
            {"transactions": [{"amount": "ugyldig"}]}
        )
    titles = [t.title for t in session.scalars(select(Transaction)).all()]
    assert titles == ["Behold"]


def test_export_import_round_trip_preserves_dashboard() -> None:
    session = make_session()
    ensure_defaults(session)
    txns = TransactionService(session)
    txns.create(_txn("Lønn", 1000, TransactionType.income, "2024-01-05", category_id=1))
    txns.create(_txn("Mat", 400, TransactionType.expense, "2024-01-20", tags=["mat"]))
    service = FixedExpenseService(session)
    expense = service.create(
        FixedExpenseIn(name="Strøm", amount_per_month=500, owners=["Ada"], category="Lån")
    )
    service.update(expense.id, FixedExpenseUpdate(amount_per_month=650))
    SettingsService(session).update(
        SettingsUpdate(owner_profiles=[{"name": "Ada", "monthlyNetIncome": 30000}])
    )

    today = date(2024, 6, 1)
    before = DashboardService(session).summary(today=today)
    exported = DataTransferService(session).export()

    other = make_session()
    DataTransferService(other).replace_all(exported)
    after = DashboardService(other).summary(today=today)
    assert after == before
    assert DataTransferService(other).export() == exported
    assert exported["transactions"][0]["occurredOn"] == "2024-01-05T00:00:00Z"
