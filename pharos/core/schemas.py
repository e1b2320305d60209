import datetime as dt
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from pharos.core.models import (
    AccountType, Classification, Frequency, GoalStatus, TransactionStatus, TransactionType,
)


class ApiModel(BaseModel):
    # JSON en camelCase (contrato del cliente web), snake_case también se acepta
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# -------------------------
# Auth
# -------------------------
class RegisterIn(ApiModel):
    username: str = Field(min_length=3)
    email: EmailStr
    name: str
    password: str = Field(min_length=6)


class LoginIn(ApiModel):
    email: EmailStr
    password: str


class TokenOut(ApiModel):
    access_token: str
    token_type: str = "bearer"


# -------------------------
# Accounts / cards / categories
# -------------------------
class AccountIn(ApiModel):
    name: str
    type: AccountType = AccountType.checking
    bank_name: Optional[str] = None
    balance: Decimal = Decimal("0.00")


class AccountPatch(ApiModel):
    name: Optional[str] = None
    type: Optional[AccountType] = None
    bank_name: Optional[str] = None
    balance: Optional[Decimal] = None


class AccountOut(ApiModel):
    id: int
    name: str
    type: AccountType
    bank_name: Optional[str]
    balance: Decimal


class TransferIn(ApiModel):
    from_account_id: int
    to_account_id: int
    amount: Decimal = Field(gt=0)
    description: Optional[str] = None


class TransferOut(ApiModel):
    from_account: AccountOut
    to_account: AccountOut


class CreditCardIn(ApiModel):
    name: str
    bank_name: Optional[str] = None
    limit: Decimal = Field(ge=0)
    used_amount: Decimal = Decimal("0.00")
    closing_day: Optional[int] = Field(default=None, ge=1, le=31)
    due_day: Optional[int] = Field(default=None, ge=1, le=31)


class CreditCardOut(ApiModel):
    id: int
    name: str
    bank_name: Optional[str]
    limit: Decimal
    used_amount: Decimal
    closing_day: Optional[int]
    due_day: Optional[int]


class CategoryIn(ApiModel):
    name: str
    classification: Optional[Classification] = None
    transaction_type: TransactionType
    color: str = "#1565C0"
    icon: str = "Circle"
    description: Optional[str] = None


class CategoryPatch(ApiModel):
    name: Optional[str] = None
    classification: Optional[Classification] = None
    transaction_type: Optional[TransactionType] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    description: Optional[str] = None


class CategoryOut(ApiModel):
    id: int
    name: str
    classification: Optional[Classification]
    transaction_type: TransactionType
    color: str
    icon: str
    is_default: bool
    description: Optional[str]


# -------------------------
# Transactions
# -------------------------
class TransactionIn(ApiModel):
    type: TransactionType
    amount: Decimal
    description: str
    category_id: int
    account_id: Optional[int] = None
    credit_card_id: Optional[int] = None
    date: dt.date
    status: TransactionStatus = TransactionStatus.confirmed
    installments: Optional[int] = Field(default=None, ge=1)
    current_installment: Optional[int] = Field(default=None, ge=1)


class TransactionPatch(ApiModel):
    type: Optional[TransactionType] = None
    amount: Optional[Decimal] = None
    description: Optional[str] = None
    category_id: Optional[int] = None
    account_id: Optional[int] = None
    credit_card_id: Optional[int] = None
    date: Optional[dt.date] = None


class TransactionOut(ApiModel):
    id: int
    type: TransactionType
    amount: Decimal
    description: str
    category_id: int
    account_id: Optional[int]
    credit_card_id: Optional[int]
    date: dt.date
    status: TransactionStatus
    recurrence_id: Optional[int]
    installments: Optional[int]
    current_installment: Optional[int]


class ConfirmIn(ApiModel):
    account_id: Optional[int] = None


class ConfirmOut(TransactionOut):
    account_name: str
    account_balance: Decimal


# -------------------------
# Recurrences
# -------------------------
class RecurrenceIn(ApiModel):
    type: TransactionType
    amount: Decimal
    description: str
    category_id: int
    account_id: Optional[int] = None
    credit_card_id: Optional[int] = None
    frequency: Frequency
    start_date: dt.date
    end_date: Optional[dt.date] = None
    is_active: bool = True
    installments: Optional[int] = None


class RecurrencePatch(ApiModel):
    type: Optional[TransactionType] = None
    amount: Optional[Decimal] = None
    description: Optional[str] = None
    category_id: Optional[int] = None
    account_id: Optional[int] = None
    credit_card_id: Optional[int] = None
    frequency: Optional[Frequency] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    is_active: Optional[bool] = None
    installments: Optional[int] = None


class RecurrenceOut(ApiModel):
    id: int
    type: TransactionType
    amount: Decimal
    description: str
    category_id: int
    account_id: Optional[int]
    credit_card_id: Optional[int]
    frequency: Frequency
    start_date: dt.date
    end_date: Optional[dt.date]
    is_active: bool
    installments: Optional[int]
    next_execution_date: dt.date
    last_executed_date: Optional[dt.datetime]


class RecurrenceDetailsOut(ApiModel):
    recurrence: RecurrenceOut
    pending_transactions: List[TransactionOut]
    confirmed_transactions: List[TransactionOut]
    total_pending_amount: Decimal
    total_confirmed_amount: Decimal


class SchedulerRunOut(ApiModel):
    created: int
    skipped: int
    deactivated: int
    failed: int


# -------------------------
# Dashboard / budget
# -------------------------
class DashboardOut(ApiModel):
    total_balance: Decimal
    total_credit_used: Decimal
    monthly_income: Decimal
    monthly_expenses: Decimal
    net: Decimal
    pending_count: int
    pending_amount: Decimal
    recent_transactions: List[TransactionOut]


class BudgetBucketOut(ApiModel):
    classification: Classification
    share: Decimal
    allocated: Decimal
    spent: Decimal
    remaining: Decimal
    status: str


class BudgetOut(ApiModel):
    month: int
    year: int
    income: Decimal
    source: str  # month | default | derived
    planned_income: Optional[Decimal]
    buckets: List[BudgetBucketOut]


class BudgetPlanIn(ApiModel):
    month: int = Field(ge=1, le=12)
    year: int
    is_default: bool = False
    total_income: Decimal = Field(ge=0)
    necessities_budget: Decimal = Field(ge=0)
    wants_budget: Decimal = Field(ge=0)
    savings_budget: Decimal = Field(ge=0)


class BudgetPlanOut(ApiModel):
    id: int
    month: int
    year: int
    is_default: bool
    total_income: Decimal
    necessities_budget: Decimal
    wants_budget: Decimal
    savings_budget: Decimal


# -------------------------
# Goals
# -------------------------
class GoalIn(ApiModel):
    name: str
    target_amount: Decimal = Field(gt=0)
    current_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    target_date: dt.date
    monthly_contribution: Decimal = Field(default=Decimal("0.00"), ge=0)
    description: Optional[str] = None


class GoalProgressIn(ApiModel):
    current_amount: Decimal = Field(ge=0)


class GoalOut(ApiModel):
    id: int
    name: str
    target_amount: Decimal
    current_amount: Decimal
    target_date: dt.date
    status: GoalStatus
    monthly_contribution: Decimal
    description: Optional[str]
    progress: Decimal
    months_to_goal: Optional[int]
