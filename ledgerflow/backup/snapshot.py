"""
Backup Snapshot Models

The versioned, storage-independent form of the whole ledger. Field names
on the wire are camelCase so files written by earlier releases still load.
Identities (UUIDs) are preserved, so re-importing a backup keeps rows
matched to the rows they came from.

Tolerated historical shapes:
- transactions without `categoryName` fall back to the legacy `category`
  enum value, then to "Other"
- fixed payments without `typeName` get "", a legacy `categoryName` is
  ignored, a missing `chargeDay` is derived from `chargeDate`
- accounts without `profileName` / `billingCycleStartDay` get defaults
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Optional
from uuid import UUID

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)
from pydantic.alias_generators import to_camel

from ledgerflow.models.ledger import (
    DEFAULT_CATEGORY_ICON,
    DEFAULT_PROFILE_NAME,
    Account,
    AccountType,
    CustomCategory,
    CustomCategoryKind,
    FixedPayment,
    FixedPaymentFrequency,
    FixedPaymentType,
    Transaction,
    TransactionCategory,
    TransactionType,
)


BACKUP_VERSION = 1


def _to_local_wall_clock(value: datetime) -> datetime:
    """Offset-aware timestamps (e.g. trailing 'Z') become naive local time."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


LocalDateTime = Annotated[datetime, AfterValidator(_to_local_wall_clock)]


class _SnapshotModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class AccountDTO(_SnapshotModel):
    id: UUID
    bank_name: str
    account_name: str
    current_credit: Decimal = Field(ge=0)
    amount: Decimal
    type: AccountType
    color_hex: str
    icon_system_name: str
    is_in_combined_credit_pool: bool
    profile_name: str = DEFAULT_PROFILE_NAME
    billing_cycle_start_day: int = Field(default=1, ge=1, le=31)

    @classmethod
    def from_model(cls, account: Account) -> "AccountDTO":
        return cls(
            id=account.id,
            bank_name=account.bank_name,
            account_name=account.account_name,
            current_credit=account.credit_limit,
            amount=account.balance,
            type=account.type,
            color_hex=account.color_hex,
            icon_system_name=account.icon_system_name,
            is_in_combined_credit_pool=account.is_in_combined_credit_pool,
            profile_name=account.profile_name,
            billing_cycle_start_day=account.billing_cycle_start_day,
        )

    def to_model(self) -> Account:
        return Account(
            id=self.id,
            bank_name=self.bank_name,
            account_name=self.account_name,
            credit_limit=self.current_credit,
            balance=self.amount,
            type=self.type,
            color_hex=self.color_hex,
            icon_system_name=self.icon_system_name,
            is_in_combined_credit_pool=self.is_in_combined_credit_pool,
            profile_name=self.profile_name,
            billing_cycle_start_day=self.billing_cycle_start_day,
        )


class TransactionDTO(_SnapshotModel):
    id: UUID
    type: TransactionType
    amount: Decimal = Field(gt=0)
    account_id: UUID
    category_name: str
    date: LocalDateTime
    note: str

    @model_validator(mode='before')
    @classmethod
    def resolve_category_name(cls, data: Any) -> Any:
        """Accept the legacy enum field when the free-text name is absent."""
        if not isinstance(data, dict):
            return data
        if data.get("categoryName") is not None or data.get("category_name") is not None:
            return data
        data = dict(data)
        legacy = data.pop("category", None)
        if legacy is not None:
            # Unknown legacy values are invalid data, same as any bad enum
            data["categoryName"] = TransactionCategory(legacy).value
        else:
            data["categoryName"] = TransactionCategory.OTHER.value
        return data

    @classmethod
    def from_model(cls, txn: Transaction) -> "TransactionDTO":
        category_name = txn.category_name or (
            txn.category.value if txn.category else TransactionCategory.OTHER.value
        )
        return cls(
            id=txn.id,
            type=txn.type,
            amount=txn.amount,
            account_id=txn.account_id,
            category_name=category_name,
            date=txn.date,
            note=txn.note,
        )

    def to_model(self) -> Transaction:
        return Transaction(
            id=self.id,
            type=self.type,
            amount=self.amount,
            account_id=self.account_id,
            category_name=self.category_name,
            date=self.date,
            note=self.note,
        )


class FixedPaymentDTO(_SnapshotModel):
    id: UUID
    name: str
    amount: Decimal
    outstanding_amount: Optional[Decimal] = Field(default=None, ge=0)
    type: FixedPaymentType
    type_name: str = ""
    frequency: FixedPaymentFrequency
    start_date: LocalDateTime
    end_date: Optional[LocalDateTime] = None
    cycles: Optional[int] = Field(default=None, ge=0)
    charge_account_id: Optional[UUID] = None
    charge_day: Optional[int] = Field(default=None, ge=1, le=31)
    charge_date: Optional[LocalDateTime] = None
    last_charged_at: Optional[LocalDateTime] = None
    profile_name: str = DEFAULT_PROFILE_NAME
    note: str

    @model_validator(mode='after')
    def derive_charge_day(self) -> 'FixedPaymentDTO':
        if self.charge_day is None and self.charge_date is not None:
            self.charge_day = self.charge_date.day
        return self

    @classmethod
    def from_model(cls, payment: FixedPayment) -> "FixedPaymentDTO":
        return cls(**{name: getattr(payment, name) for name in FixedPayment.model_fields})

    def to_model(self) -> FixedPayment:
        return FixedPayment(**{name: getattr(self, name) for name in FixedPayment.model_fields})


class CustomCategoryDTO(_SnapshotModel):
    id: UUID
    name: str = Field(min_length=1, max_length=60)
    kind: CustomCategoryKind
    icon_system_name: str = DEFAULT_CATEGORY_ICON

    @classmethod
    def from_model(cls, category: CustomCategory) -> "CustomCategoryDTO":
        return cls(
            id=category.id,
            name=category.name,
            kind=category.kind,
            icon_system_name=category.icon_system_name,
        )

    def to_model(self) -> CustomCategory:
        return CustomCategory(
            id=self.id,
            name=self.name,
            kind=self.kind,
            icon_system_name=self.icon_system_name,
        )


class BackupSnapshot(_SnapshotModel):
    """
    The whole ledger at one point in time.

    Sections written by newer releases that this engine does not know
    (budgets, savings goals, ...) are ignored on read.
    """

    version: int = BACKUP_VERSION
    exported_at: LocalDateTime
    accounts: list[AccountDTO] = Field(default_factory=list)
    transactions: list[TransactionDTO] = Field(default_factory=list)
    fixed_payments: Optional[list[FixedPaymentDTO]] = None
    custom_categories: Optional[list[CustomCategoryDTO]] = None

    @property
    def item_count(self) -> int:
        return (
            len(self.accounts)
            + len(self.transactions)
            + len(self.fixed_payments or [])
            + len(self.custom_categories or [])
        )

    def to_models(self) -> dict[type, list]:
        """
        Build every entity the snapshot describes, keyed by model type.

        Raises:
            ValidationError: an item breaks an entity invariant
        """
        return {
            Account: [dto.to_model() for dto in self.accounts],
            Transaction: [dto.to_model() for dto in self.transactions],
            FixedPayment: [dto.to_model() for dto in self.fixed_payments or []],
            CustomCategory: [dto.to_model() for dto in self.custom_categories or []],
        }
