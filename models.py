from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class FixedExpenseLevel(str, Enum):
    must_have = "Må-ha"
    nice_to_have = "Kjekt å ha"
    luxury = "Luksus"


FIXED_EXPENSE_LEVEL_ENUM = SAEnum(
    FixedExpenseLevel,
    name="fixedexpenselevel",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False, default=TransactionType.expense
    )
    color: Mapped[str] = mapped_column(String(9), nullable=False, default="#4f46e5")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="category"
    )


class Page(Base, TimestampMixin):
    __tablename__ = "pages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    color: Mapped[str] = mapped_column(String(9), nullable=False, default="#059669")
    # "metadata" is reserved on declarative classes.
    meta: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)

    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="page"
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL")
    )
    page_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("pages.id", ondelete="SET NULL")
    )
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    occurred_on: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    meta: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)

    category: Mapped[Optional["Category"]] = relationship(
        "Category", back_populates="transactions"
    )
    page: Mapped[Optional["Page"]] = relationship("Page", back_populates="transactions")

    __table_args__ = (
        Index("ix_transactions_occurred_on", "occurred_on"),
        Index("ix_transactions_type_occurred_on", "type", "occurred_on"),
        CheckConstraint("amount >= 0", name="ck_transactions_amount_positive"),
    )


class FixedExpense(Base, TimestampMixin):
    __tablename__ = "fixed_expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    amount_per_month: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    # Categories are referenced by name, not by id.
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="Annet")
    owners: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    level: Mapped[FixedExpenseLevel] = mapped_column(
        FIXED_EXPENSE_LEVEL_ENUM, nullable=False, default=FixedExpenseLevel.must_have
    )
    start_date: Mapped[Optional[date]] = mapped_column(Date)
    binding_end_date: Mapped[Optional[date]] = mapped_column(Date)
    notice_period_months: Mapped[Optional[int]] = mapped_column(Integer)
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")

    prices: Mapped[list["FixedExpensePrice"]] = relationship(
        "FixedExpensePrice",
        back_populates="fixed_expense",
        cascade="all, delete-orphan",
        order_by="FixedExpensePrice.id",
    )

    __table_args__ = (
        CheckConstraint(
            "amount_per_month >= 0", name="ck_fixed_expense_amount_positive"
        ),
    )


class FixedExpensePrice(Base):
    __tablename__ = "fixed_expense_prices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    fixed_expense_id: Mapped[int] = mapped_column(
        ForeignKey("fixed_expenses.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    changed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    fixed_expense: Mapped["FixedExpense"] = relationship(
        "FixedExpense", back_populates="prices"
    )

    __table_args__ = (
        Index("ix_fixed_expense_prices_expense_at", "fixed_expense_id", "changed_at"),
    )


class OwnerProfile(Base, TimestampMixin):
    __tablename__ = "owner_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    monthly_net_income: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    shared_contribution: Mapped[float] = mapped_column(
        Float, nullable=False, default=0
    )
    bank_contributions: Mapped[dict] = mapped_column(
        JSON, nullable=False, default=dict
    )

    __table_args__ = (
        UniqueConstraint("name", name="uq_owner_profile_name"),
        CheckConstraint("monthly_net_income >= 0", name="ck_owner_income_positive"),
        CheckConstraint(
            "shared_contribution >= 0", name="ck_owner_contribution_positive"
        ),
    )


class AppSettings(Base, TimestampMixin):
    __tablename__ = "app_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    monthly_net_income: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    default_owners: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    bank_mode_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    bank_accounts: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
