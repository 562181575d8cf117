import logging
from typing import Any, List, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Query
from fastapi.staticfiles import StaticFiles
from sqlalchemy.orm import Session

from config import get_settings
from database import SessionLocal, init_db
from models import TransactionType
from owners import parse_owners_input
from schemas import (
    BulkOwnersIn,
    CategoryIn,
    CategoryUpdate,
    FixedExpenseIn,
    FixedExpenseUpdate,
    OwnerDeleteIn,
    OwnerRenameIn,
    PageIn,
    PageUpdate,
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
    transaction_json,
)

app = FastAPI(title="Household Budget")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _http_error(exc: ValueError) -> HTTPException:
    status_code = 404 if isinstance(exc, NotFoundError) else 400
    return HTTPException(status_code=status_code, detail=str(exc))


@app.on_event("startup")
def startup_event():
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    init_db()
    with SessionLocal() as session:
        ensure_defaults(session)
    logging.info(
        f"startup: database={settings.database_url} timezone={settings.timezone}"
    )


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.get("/api/categories")
def list_categories(db: Session = Depends(get_db)):
    return [category.as_json() for category in CategoryService(db).list_all()]


@app.post("/api/categories", status_code=201)
def create_category(data: CategoryIn, db: Session = Depends(get_db)):
    return CategoryService(db).create(data).as_json()


@app.put("/api/categories/{category_id}")
def update_category(
    category_id: int, data: CategoryUpdate, db: Session = Depends(get_db)
):
    try:
        return CategoryService(db).update(category_id, data).as_json()
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.delete("/api/categories/{category_id}")
def delete_category(category_id: int, db: Session = Depends(get_db)):
    try:
        CategoryService(db).delete(category_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {"deleted": True}


@app.get("/api/pages")
def list_pages(db: Session = Depends(get_db)):
    return PageService(db).list_with_totals()


@app.post("/api/pages", status_code=201)
def create_page(data: PageIn, db: Session = Depends(get_db)):
    return PageService(db).create(data).as_json()


@app.put("/api/pages/{page_id}")
def update_page(page_id: int, data: PageUpdate, db: Session = Depends(get_db)):
    try:
        return PageService(db).update(page_id, data).as_json()
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.delete("/api/pages/{page_id}")
def delete_page(page_id: int, db: Session = Depends(get_db)):
    try:
        PageService(db).delete(page_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {"deleted": True}


@app.get("/api/transactions")
def list_transactions(
    type: Optional[TransactionType] = None,
    category_id: Optional[int] = Query(None, alias="categoryId"),
    page_id: Optional[int] = Query(None, alias="pageId"),
    tag: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = Query("occurredOn", alias="sortBy"),
    order: str = "DESC",
    db: Session = Depends(get_db),
):
    filters = TransactionFilters(
        type=type,
        category_id=category_id,
        page_id=page_id,
        tag=tag or None,
        search=search or None,
        sort_by=sort_by,
        order=order,
    )
    return TransactionService(db).list(filters)


@app.post("/api/transactions", status_code=201)
def create_transaction(data: TransactionIn, db: Session = Depends(get_db)):
    try:
        return TransactionService(db).create(data)
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.delete("/api/transactions")
def clear_transactions(db: Session = Depends(get_db)):
    return {"deleted": TransactionService(db).clear()}


@app.get("/api/transactions/{transaction_id}")
def get_transaction(transaction_id: int, db: Session = Depends(get_db)):
    try:
        return transaction_json(TransactionService(db).get(transaction_id))
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.put("/api/transactions/{transaction_id}")
def update_transaction(
    transaction_id: int, data: TransactionUpdate, db: Session = Depends(get_db)
):
    try:
        return TransactionService(db).update(transaction_id, data)
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.delete("/api/transactions/{transaction_id}")
def delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    try:
        TransactionService(db).delete(transaction_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {"deleted": True}


@app.get("/api/faste-utgifter")
def list_fixed_expenses(db: Session = Depends(get_db)):
    return [expense.as_json() for expense in FixedExpenseService(db).list_all()]


@app.post("/api/faste-utgifter", status_code=201)
def create_fixed_expense(data: FixedExpenseIn, db: Session = Depends(get_db)):
    return FixedExpenseService(db).create(data).as_json()


@app.post("/api/faste-utgifter/bulk-owners")
def bulk_add_owners(data: BulkOwnersIn, db: Session = Depends(get_db)):
    try:
        return FixedExpenseService(db).bulk_add_owners(data.owners)
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.put("/api/faste-utgifter/{expense_id}")
def update_fixed_expense(
    expense_id: int, data: FixedExpenseUpdate, db: Session = Depends(get_db)
):
    try:
        return FixedExpenseService(db).update(expense_id, data).as_json()
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.post("/api/faste-utgifter/{expense_id}/reset-price-history")
def reset_price_history(expense_id: int, db: Session = Depends(get_db)):
    try:
        return FixedExpenseService(db).reset_price_history(expense_id).as_json()
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.delete("/api/faste-utgifter/{expense_id}")
def delete_fixed_expense(expense_id: int, db: Session = Depends(get_db)):
    try:
        FixedExpenseService(db).delete(expense_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {"deleted": True}


@app.get("/api/settings")
def get_app_settings(db: Session = Depends(get_db)):
    return SettingsService(db).get().as_json()


@app.put("/api/settings")
def update_app_settings(data: SettingsUpdate, db: Session = Depends(get_db)):
    try:
        return SettingsService(db).update(data).as_json()
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.post("/api/owners/rename")
def rename_owner(data: OwnerRenameIn, db: Session = Depends(get_db)):
    try:
        return OwnerService(db).rename(data.from_name, data.to_name)
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.post("/api/owners/delete")
def delete_owner(data: OwnerDeleteIn, db: Session = Depends(get_db)):
    try:
        return OwnerService(db).delete(data.name)
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.get("/api/dashboard")
def dashboard(
    owners: Optional[List[str]] = Query(None),
    db: Session = Depends(get_db),
):
    owner_filter = parse_owners_input(",".join(owners)) if owners else None
    return DashboardService(db).summary(owner_filter=owner_filter)


@app.get("/api/export")
def export_data(db: Session = Depends(get_db)):
    return DataTransferService(db).export()


@app.post("/api/import")
def import_data(document: Any = Body(...), db: Session = Depends(get_db)):
    try:
        imported = DataTransferService(db).replace_all(document)
    except ValueError as exc:
        logging.warning(f"import_rejected: reason={exc}")
        raise _http_error(exc) from exc
    return {
        "status": "ok",
        "counters": imported.counters,
        "warnings": list(imported.warnings),
    }


_client_dir = get_settings().client_dir
if _client_dir.is_dir():
    # Mounted last so the API routes above take precedence.
    app.mount("/", StaticFiles(directory=_client_dir, html=True), name="client")


def main():
    import uvicorn

    settings = get_settings()
    uvicorn.run("main:app", host="0.0.0.0", port=settings.port, reload=False)


if __name__ == "__main__":
    main()
