from datetime import date, datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from models import FixedExpenseLevel, TransactionType
from owners import parse_owners_input
from parsing import clean_labels, is_blank, parse_date, parse_timestamp


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _optional_reference(value: Any) -> Any:
    # The client sends "" or 0 for "no category/page".
    if is_blank(value) or value == 0:
        return None
    return value


class CategoryIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType = TransactionType.expense
    color: str = Field("#4f46e5", max_length=9)
    description: str = ""

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Category name is required")
        return value.strip()


class CategoryUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[TransactionType] = None
    color: Optional[str] = Field(None, max_length=9)
    description: Optional[str] = None


class PageIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    color: str = Field("#059669", max_length=9)
    metadata: dict[str, Any] = Field(default_factory=dict)


class PageUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=9)
    metadata: Optional[dict[str, Any]] = None


class TransactionIn(ApiModel):
    title: str = Field(..., min_length=1, max_length=200)
    amount: float = Field(..., ge=0)
    type: TransactionType
    category_id: Optional[int] = None
    page_id: Optional[int] = None
    tags: list[str] = Field(default_factory=list)
    occurred_on: datetime
    notes: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("category_id", "page_id", mode="before")
    @classmethod
    def _blank_reference(cls, value: Any) -> Any:
        return _optional_reference(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, value: Any) -> list[str]:
        return clean_labels(value or [])

    @field_validator("occurred_on", mode="before")
    @classmethod
    def _parse_occurred_on(cls, value: Any) -> Any:
        return parse_timestamp(value)


class TransactionUpdate(ApiModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    amount: Optional[float] = Field(None, ge=0)
    type: Optional[TransactionType] = None
    category_id: Optional[int] = None
    page_id: Optional[int] = None
    tags: Optional[list[str]] = None
    occurred_on: Optional[datetime] = None
    notes: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    @field_validator("category_id", "page_id", mode="before")
    @classmethod
    def _blank_reference(cls, value: Any) -> Any:
        return _optional_reference(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, value: Any) -> Optional[list[str]]:
        return None if value is None else clean_labels(value)

    @field_validator("occurred_on", mode="before")
    @classmethod
    def _parse_occurred_on(cls, value: Any) -> Any:
        return parse_timestamp(value)


class FixedExpenseIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=200)
    amount_per_month: float = Field(..., ge=0)
    category: str = "Annet"
    owners: list[str] = Field(default_factory=list)
    level: FixedExpenseLevel = FixedExpenseLevel.must_have
    start_date: Optional[date] = None
    binding_end_date: Optional[date] = None
    notice_period_months: Optional[int] = Field(None, ge=0)
    note: str = ""

    @field_validator("category", mode="before")
    @classmethod
    def _default_category(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "Annet"
        return value.strip() if isinstance(value, str) else value

    @field_validator("owners", mode="before")
    @classmethod
    def _parse_owners(cls, value: Any) -> list[str]:
        return parse_owners_input(value)

    @field_validator("start_date", "binding_end_date", mode="before")
    @classmethod
    def _parse_dates(cls, value: Any) -> Any:
        return parse_date(value)

    @field_validator("notice_period_months", mode="before")
    @classmethod
    def _blank_notice(cls, value: Any) -> Any:
        return None if is_blank(value) else value


class FixedExpenseUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    amount_per_month: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    owners: Optional[list[str]] = None
    level: Optional[FixedExpenseLevel] = None
    start_date: Optional[date] = None
    binding_end_date: Optional[date] = None
    notice_period_months: Optional[int] = Field(None, ge=0)
    note: Optional[str] = None
    reset_price_history: bool = False

    @field_validator("category", mode="before")
    @classmethod
    def _default_category(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or "Annet"
        return value

    @field_validator("owners", mode="before")
    @classmethod
    def _parse_owners(cls, value: Any) -> Optional[list[str]]:
        return None if value is None else parse_owners_input(value)

    @field_validator("start_date", "binding_end_date", mode="before")
    @classmethod
    def _parse_dates(cls, value: Any) -> Any:
        return parse_date(value)

    @field_validator("notice_period_months", mode="before")
    @classmethod
    def _blank_notice(cls, value: Any) -> Any:
        return None if is_blank(value) else value


class BulkOwnersIn(BaseModel):
    owners: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("owners", "owner")
    )

    @field_validator("owners", mode="before")
    @classmethod
    def _parse_owners(cls, value: Any) -> list[str]:
        return parse_owners_input(value)


class SettingsUpdate(ApiModel):
    monthly_net_income: Optional[float] = Field(None, ge=0)
    # Profiles stay raw here; owners.normalize_owner_profiles validates them so
    # that imports and live updates share one code path.
    owner_profiles: Optional[list[Any]] = None
    default_fixed_expenses_owners: Optional[list[Any]] = None
    default_fixed_expenses_owner: Optional[str] = None
    bank_mode_enabled: Optional[bool] = None
    bank_accounts: Optional[list[Any]] = None


class OwnerRenameIn(BaseModel):
    from_name: str = Field(..., validation_alias=AliasChoices("from", "oldName"))
    to_name: str = Field(..., validation_alias=AliasChoices("to", "newName"))

    @field_validator("from_name", "to_name")
    @classmethod
    def _strip(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Both the old and the new name are required")
        return value.strip()


class OwnerDeleteIn(BaseModel):
    name: str = Field(..., validation_alias=AliasChoices("name", "owner"))

    @field_validator("name")
    @classmethod
    def _strip(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("A name is required to remove an owner")
        return value.strip()
