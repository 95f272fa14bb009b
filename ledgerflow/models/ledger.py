"""
Core Ledger Models for LedgerFlow

These models define the schemas of everything the engine stores:
accounts, transactions, fixed payment definitions and custom categories.

DESIGN DECISION: Rows are mutable pydantic models. The storage layer hands
out live objects and the Ledger Mutator edits them in place, then commits
once. Anything that needs the "before" state of a row must take a copy
(model_copy) before touching it.

Money is always Decimal. Timestamps are naive local wall-clock datetimes.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


DEFAULT_PROFILE_NAME = "Personal"
FIXED_PAYMENT_CATEGORY = "Fixed Payment"
DEFAULT_CATEGORY_ICON = "tag.fill"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """Kind of account. Values match the backup file format."""
    CASH = "Cash"
    CREDIT = "Credit"

    @property
    def default_icon(self) -> str:
        return "banknote" if self is AccountType.CASH else "creditcard.fill"


class TransactionType(str, Enum):
    """Kind of ledger entry."""
    EXPENSE = "Expense"
    INCOME = "Income"
    TRANSFER = "Transfer"


class TransferLeg(str, Enum):
    """
    Category tag carried by the two rows of a transfer.

    OUT is the debit leg on the source account, IN the credit leg
    on the target account.
    """
    OUT = "Transfer Out"
    IN = "Transfer In"

    @property
    def opposite(self) -> "TransferLeg":
        return TransferLeg.IN if self is TransferLeg.OUT else TransferLeg.OUT


class TransactionCategory(str, Enum):
    """
    Legacy fixed category set.

    Categories are free text today. Older data stored one of these values,
    so they are still accepted on read and used to normalize names.
    """
    FOOD = "Food & Drinks"
    HAWKER = "Hawker & Kopitiam"
    GROCERIES = "Groceries"
    TRANSPORT_PUBLIC = "MRT/Bus"
    TRANSPORT_PRIVATE = "Car/Taxi/Grab"
    HOUSING = "Housing (Rent/Mortgage)"
    UTILITIES = "Utilities"
    TELCO = "Telco/Internet"
    INSURANCE = "Insurance"
    FAMILY = "Family/Children"
    SUBSCRIPTIONS = "Subscriptions"
    DONATIONS = "Donations"
    TRANSPORT = "Transport"
    SHOPPING = "Shopping"
    ENTERTAINMENT = "Entertainment"
    BILLS = "Bills & Utilities"
    HEALTH = "Health"
    EDUCATION = "Education"
    TRAVEL = "Travel"
    SALARY = "Salary"
    BONUS = "Bonus"
    FREELANCE = "Freelance"
    INVESTMENT = "Investment"
    DIVIDENDS = "Dividends"
    INTEREST = "Interest"
    RENTAL = "Rental Income"
    GIFT = "Gift"
    OTHER = "Other"

    @classmethod
    def from_name(cls, name: str) -> Optional["TransactionCategory"]:
        """Exact-match lookup by display name."""
        for category in cls:
            if category.value == name:
                return category
        return None

    @classmethod
    def expense_categories(cls) -> list["TransactionCategory"]:
        return [
            cls.HAWKER, cls.FOOD, cls.GROCERIES, cls.TRANSPORT_PUBLIC,
            cls.TRANSPORT_PRIVATE, cls.HOUSING, cls.UTILITIES, cls.TELCO,
            cls.INSURANCE, cls.HEALTH, cls.EDUCATION, cls.FAMILY,
            cls.SHOPPING, cls.ENTERTAINMENT, cls.SUBSCRIPTIONS, cls.DONATIONS,
            cls.TRAVEL, cls.OTHER,
            # Legacy values kept selectable for older data
            cls.TRANSPORT, cls.BILLS,
        ]

    @classmethod
    def income_categories(cls) -> list["TransactionCategory"]:
        return [
            cls.SALARY, cls.BONUS, cls.FREELANCE, cls.INVESTMENT,
            cls.DIVIDENDS, cls.INTEREST, cls.RENTAL, cls.GIFT, cls.OTHER,
        ]


class FixedPaymentType(str, Enum):
    """What a recurring charge is for."""
    INSTALLMENT = "Installment"
    SUBSCRIPTION = "Subscription"
    INSURANCE = "Insurance"
    ALLOWANCE = "Allowance"
    OTHER = "Other"


class FixedPaymentFrequency(str, Enum):
    """How often a recurring charge fires."""
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"


class CustomCategoryKind(str, Enum):
    """Which picker a custom category shows up in."""
    EXPENSE = "Expense"
    INCOME = "Income"
    FIXED_PAYMENT = "Fixed Payment"


# =============================================================================
# ACCOUNT
# =============================================================================

class Account(BaseModel):
    """
    A cash or credit account.

    For cash accounts `balance` is the stored cash balance.
    For credit accounts `balance` is the initial available-credit baseline
    and `credit_limit` the total limit; spending is derived from the
    account's transaction history, never stored here.

    INVARIANT: cash accounts never carry a credit limit or a pool flag.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Stable account identity"
    )
    bank_name: str = Field(
        default="",
        max_length=100,
        description="Bank name; pooled credit accounts are matched on it"
    )
    account_name: str = Field(
        default="",
        max_length=100,
        description="Account name within the bank"
    )
    type: AccountType = Field(
        ...,
        description="Cash or credit"
    )
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Cash balance, or available-credit baseline for credit accounts"
    )
    credit_limit: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Total credit limit (credit accounts only)"
    )
    is_in_combined_credit_pool: bool = Field(
        default=False,
        description="Shares limit and baseline with same-bank pooled accounts"
    )
    billing_cycle_start_day: int = Field(
        default=1,
        ge=1,
        le=31,
        description="Day of month when the tracking period resets"
    )
    profile_name: str = Field(
        default=DEFAULT_PROFILE_NAME,
        description="Owning profile tag"
    )

    # Presentation tags, carried for backup fidelity only
    color_hex: str = "#0A84FF"
    icon_system_name: str = ""

    @model_validator(mode='after')
    def enforce_cash_invariant(self) -> 'Account':
        """Cash accounts have no credit limit and are never pooled."""
        if self.type == AccountType.CASH:
            self.credit_limit = Decimal("0")
            self.is_in_combined_credit_pool = False
        if not self.icon_system_name:
            self.icon_system_name = self.type.default_icon
        return self

    @property
    def is_cash(self) -> bool:
        return self.type == AccountType.CASH

    @property
    def is_credit(self) -> bool:
        return self.type == AccountType.CREDIT

    @property
    def is_pooled(self) -> bool:
        return self.is_credit and self.is_in_combined_credit_pool

    @property
    def display_name(self) -> str:
        """Bank and account name joined, skipping whichever is blank."""
        bank = self.bank_name.strip()
        name = self.account_name.strip()
        if not bank:
            return name
        if not name:
            return bank
        return f"{bank} {name}"


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """
    A single ledger entry.

    Transfers are stored as two rows: a "Transfer Out" leg on the source
    account and a "Transfer In" leg on the target, sharing amount, date
    and note.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    type: TransactionType
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Always positive; direction comes from the type"
    )
    account_id: UUID = Field(
        ...,
        description="Owning account (weak reference)"
    )
    category_name: str = Field(
        default="",
        description="Free-text category name"
    )
    category: Optional[TransactionCategory] = Field(
        default=None,
        description="Legacy enum value matching category_name, if any"
    )
    date: datetime
    note: str = ""

    @model_validator(mode='after')
    def normalize_category(self) -> 'Transaction':
        """Fill an empty name from the legacy enum and re-derive the enum from the name."""
        if not self.category_name:
            self.category_name = self.category.value if self.category else TransactionCategory.OTHER.value
        self.category = TransactionCategory.from_name(self.category_name)
        return self

    @property
    def is_transfer(self) -> bool:
        return self.type == TransactionType.TRANSFER

    @property
    def transfer_leg(self) -> Optional[TransferLeg]:
        if not self.is_transfer:
            return None
        try:
            return TransferLeg(self.category_name)
        except ValueError:
            return None


# =============================================================================
# FIXED PAYMENT
# =============================================================================

class FixedPayment(BaseModel):
    """
    A recurring charge definition.

    The Fixed-Payment Poster updates last_charged_at, outstanding_amount and
    cycles every time the definition fires, and deletes the definition once
    its end condition is reached.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = ""
    amount: Decimal = Field(
        default=Decimal("0"),
        description="Amount charged per cycle"
    )
    outstanding_amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Remaining balance to repay, when tracked"
    )
    type: FixedPaymentType = FixedPaymentType.OTHER
    type_name: str = Field(
        default="",
        description="Custom type label for FixedPaymentType.OTHER"
    )
    frequency: FixedPaymentFrequency = FixedPaymentFrequency.MONTHLY
    start_date: datetime
    end_date: Optional[datetime] = None
    cycles: Optional[int] = Field(
        default=None,
        ge=0,
        description="Remaining cycles, when tracked"
    )
    charge_account_id: Optional[UUID] = None
    charge_day: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        description="Explicit day of month to charge on"
    )
    charge_date: Optional[datetime] = None
    last_charged_at: Optional[datetime] = None
    profile_name: str = DEFAULT_PROFILE_NAME
    note: str = ""

    @property
    def composed_note(self) -> str:
        """Note written on every posted entry; also part of the dedup key."""
        if self.note:
            return f"{self.name} - {self.note}"
        return self.name


# =============================================================================
# CUSTOM CATEGORY
# =============================================================================

class CustomCategory(BaseModel):
    """A user-defined category name, matched to transactions by name."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=60)
    kind: CustomCategoryKind = CustomCategoryKind.EXPENSE
    icon_system_name: str = DEFAULT_CATEGORY_ICON
