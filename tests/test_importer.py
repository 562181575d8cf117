from datetime import date, datetime

import pytest

from aggregation import build_dashboard
from importer import ImportValidationError, export_document, normalize_document
from models import FixedExpenseLevel, TransactionType

NOW = datetime(2024, 6, 1, 8, 30)
TODAY = date(2024, 6, 1)


def _document() -> dict:
    return {
        "categories": [
            {"id": 1, "name": "Lønn", "type": "income", "color": "#22c55e"},
            {"id": 2, "name": "Abonnementer"},
        ],
        "pages": [{"id": 4, "name": "Hytte", "metadata": {"icon": "house"}}],
        "transactions": [
            {
                "id": 10,
                "title": "Lønn",
                "amount": "35 000,50",
                "type": "income",
                "categoryId": 1,
                "occurredOn": "2024-05-25T00:00:00Z",
                "tags": ["jobb", " jobb ", ""],
            },
            {
                "title": "Strøm",
                "amount": 900,
                "type": "expense",
                "category_id": 2,
                "page_id": 4,
                "occurred_on": "2024-05-28",
            },
        ],
        "fixedExpenses": [
            {
                "id": 3,
                "name": "Netflix",
                "amountPerMonth": 149,
                "category": "Abonnementer",
                "owners": ["Ada"],
                "level": "Kjekt å ha",
                "bindingEndDate": "2024-07-01",
                "priceHistory": [
                    {"amount": 129, "changedAt": "2023-01-01T00:00:00Z"},
                    {"amount": 149, "changedAt": "2024-01-01T00:00:00Z"},
                ],
                "createdAt": "2023-01-01T00:00:00Z",
                "updatedAt": "2024-01-01T00:00:00Z",
            }
        ],
        "settings": {
            "monthlyNetIncome": 50000,
            "ownerProfiles": [
                {"name": "Ada", "monthlyNetIncome": 40000, "sharedContribution": 12000}
            ],
            "defaultFixedExpensesOwners": ["Ada"],
            "bankModeEnabled": False,
            "bankAccounts": ["Felles"],
        },
    }


def test_normalizes_canonical_document() -> None:
    imported = normalize_document(_document(), now=NOW)
    snapshot = imported.snapshot
    assert [c.id for c in snapshot.categories] == [1, 2]
    assert snapshot.categories[1].color == "#4f46e5"
    first, second = snapshot.transactions
    assert first.amount == 35000.5
    assert first.tags == ("jobb",)
    assert second.id == 2
    assert second.page_id == 4
    assert second.occurred_on == datetime(2024, 5, 28)
    expense = snapshot.fixed_expenses[0]
    assert expense.level == FixedExpenseLevel.nice_to_have
    assert [p.amount for p in expense.price_history] == [129, 149]
    assert snapshot.settings.default_owners == ("Ada",)
    assert imported.counters == {
        "categories": 2,
        "pages": 4,
        "transactions": 10,
        "fixedExpenses": 3,
    }


def test_legacy_fixed_expense_spellings() -> None:
    document = {
        "faste_utgifter": [
            {
                "navn": "Husleie",
                "beløp_per_mnd": "12 000",
                "kategori": "Bolig",
                "eiere": "Ada, Bo",
                "nivå": "Må-ha",
                "binding_utløper": "2025-01-31",
                "oppsigelsestid_mnd": "3",
                "notat": "Kontrakt",
            }
        ],
        "settings": {"defaultFixedExpensesOwner": "Bo"},
    }
    imported = normalize_document(document, now=NOW)
    expense = imported.snapshot.fixed_expenses[0]
    assert expense.id == 1
    assert expense.name == "Husleie"
    assert expense.amount_per_month == 12000
    assert expense.category == "Bolig"
    assert expense.owners == ("Ada", "Bo")
    assert expense.binding_end_date == date(2025, 1, 31)
    assert expense.notice_period_months == 3
    assert expense.note == "Kontrakt"
    assert len(expense.price_history) == 1
    assert expense.price_history[0].amount == 12000
    assert imported.snapshot.settings.default_owners == ("Bo",)


def test_missing_fields_get_defaults() -> None:
    imported = normalize_document(
        {"transactions": [{"amount": 10}], "fixedExpenses": [{}]}, now=NOW
    )
    txn = imported.snapshot.transactions[0]
    assert txn.type == TransactionType.expense
    assert txn.occurred_on == datetime(2024, 6, 1)
    expense = imported.snapshot.fixed_expenses[0]
    assert expense.name == "Uten navn"
    assert expense.category == "Annet"
    assert expense.amount_per_month == 0
    assert expense.level == FixedExpenseLevel.must_have


def test_generated_ids_skip_taken_ones() -> None:
    imported = normalize_document(
        {"categories": [{"id": 2, "name": "A"}, {"name": "B"}]}, now=NOW
    )
    assert [c.id for c in imported.snapshot.categories] == [2, 3]


def test_duplicate_ids_are_rejected() -> None:
    with pytest.raises(ImportValidationError, match="duplicate"):
        normalize_document(
            {"pages": [{"id": 1, "name": "A"}, {"id": "1", "name": "B"}]}, now=NOW
        )


@pytest.mark.parametrize(
    "document, path",
    [
        ({"transactions": [{"amount": "mange"}]}, "transactions[0].amount"),
        ({"transactions": [{"amount": 5, "type": "gift"}]}, "transactions[0].type"),
        ({"fixedExpenses": [{"amountPerMonth": -1}]}, "fixedExpenses[0].amountPerMonth"),
        ({"fixedExpenses": [{"level": "Viktig"}]}, "fixedExpenses[0].level"),
        ({"categories": "nope"}, "categories"),
    ],
)
def test_invalid_values_name_their_path(document, path) -> None:
    with pytest.raises(ImportValidationError) as excinfo:
        normalize_document(document, now=NOW)
    assert str(excinfo.value).startswith(path)


def test_non_object_document_is_rejected() -> None:
    with pytest.raises(ImportValidationError):
        normalize_document(["categories"], now=NOW)


def test_dangling_references_are_cleared_with_warning() -> None:
    imported = normalize_document(
        {"transactions": [{"amount": 1, "categoryId": 9, "pageId": 3}]}, now=NOW
    )
    txn = imported.snapshot.transactions[0]
    assert txn.category_id is None
    assert txn.page_id is None
    assert len(imported.warnings) == 2


def test_export_then_import_gives_same_dashboard() -> None:
    first = normalize_document(_document(), now=NOW).snapshot
    exported = export_document(first)
    assert exported["counters"]["transactions"] == 10

    reimported = normalize_document(exported, now=datetime(2030, 1, 1)).snapshot
    assert reimported == first
    assert build_dashboard(reimported, today=TODAY) == build_dashboard(
        first, today=TODAY
    )
    assert build_dashboard(
        reimported, today=TODAY, owner_filter=["Ada"]
    ) == build_dashboard(first, today=TODAY, owner_filter=["Ada"])
