import enum
import math
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, Numeric, Enum, ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from pharos.core.database import Base


class TransactionType(str, enum.Enum):
    income = "income"
    expense = "expense"
    transfer = "transfer"


class TransactionStatus(str, enum.Enum):
    confirmed = "confirmed"
    pending = "pending"


class Frequency(str, enum.Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


class Classification(str, enum.Enum):
    necessities = "necessities"
    wants = "wants"
    savings = "savings"


class AccountType(str, enum.Enum):
    checking = "checking"
    savings = "savings"
    investment = "investment"


class GoalStatus(str, enum.Enum):
    active = "active"
    completed = "completed"
    paused = "paused"


Money = Numeric(12, 2)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    accounts = relationship("Account", back_populates="user", cascade="all, delete-orphan")


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)

    name = Column(String, nullable=False)
    type = Column(Enum(AccountType, name="account_type"), default=AccountType.checking, nullable=False)
    bank_name = Column(String, nullable=True)
    balance = Column(Money, default=0, nullable=False)  # saldo corriente, solo lo mueven las confirmadas

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="accounts")


class CreditCard(Base):
    __tablename__ = "credit_cards"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)

    name = Column(String, nullable=False)
    bank_name = Column(String, nullable=True)
    limit = Column(Money, default=0, nullable=False)
    used_amount = Column(Money, default=0, nullable=False)
    closing_day = Column(Integer, nullable=True)
    due_day = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)

    name = Column(String, nullable=False)
    classification = Column(Enum(Classification, name="category_classification"), nullable=True)  # null para ingresos
    transaction_type = Column(Enum(TransactionType, name="category_transaction_type"), nullable=False)
    color = Column(String, default="#1565C0", nullable=False)
    icon = Column(String, default="Circle", nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    description = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Recurrence(Base):
    __tablename__ = "recurrences"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)

    # fuente de fondos: exactamente una de las dos
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    credit_card_id = Column(Integer, ForeignKey("credit_cards.id"), nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)

    type = Column(Enum(TransactionType, name="recurrence_type"), nullable=False)  # income | expense
    amount = Column(Money, nullable=False)
    description = Column(String, nullable=False)

    frequency = Column(Enum(Frequency, name="recurrence_frequency"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)  # null = sin fin
    is_active = Column(Boolean, default=True, nullable=False)
    installments = Column(Integer, nullable=True)

    next_execution_date = Column(Date, index=True, nullable=False)
    last_executed_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    transactions = relationship("Transaction", back_populates="recurrence")


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        # clave de idempotencia del scheduler
        UniqueConstraint("recurrence_id", "date", name="uq_transactions_recurrence_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)

    type = Column(Enum(TransactionType, name="transaction_type"), nullable=False)
    amount = Column(Money, nullable=False)
    description = Column(String, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    credit_card_id = Column(Integer, ForeignKey("credit_cards.id"), nullable=True)

    date = Column(Date, index=True, nullable=False)
    status = Column(
        Enum(TransactionStatus, name="transaction_status"),
        default=TransactionStatus.confirmed,
        index=True,
        nullable=False,
    )

    recurrence_id = Column(Integer, ForeignKey("recurrences.id", ondelete="SET NULL"), nullable=True)
    installments = Column(Integer, nullable=True)
    current_installment = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    recurrence = relationship("Recurrence", back_populates="transactions")


class Goal(Base):
    __tablename__ = "goals"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)

    name = Column(String, nullable=False)
    target_amount = Column(Money, nullable=False)
    current_amount = Column(Money, default=0, nullable=False)
    target_date = Column(Date, nullable=False)
    status = Column(Enum(GoalStatus, name="goal_status"), default=GoalStatus.active, nullable=False)
    monthly_contribution = Column(Money, default=0, nullable=False)
    description = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def progress(self) -> Decimal:
        """Porcentaje alcanzado, tope 100."""
        if not self.target_amount or self.target_amount <= 0:
            return Decimal("0")
        pct = Decimal(self.current_amount or 0) / Decimal(self.target_amount) * 100
        return min(pct, Decimal("100")).quantize(Decimal("0.01"))

    @property
    def months_to_goal(self):
        monthly = Decimal(self.monthly_contribution or 0)
        if monthly <= 0:
            return None
        missing = Decimal(self.target_amount) - Decimal(self.current_amount or 0)
        return max(math.ceil(missing / monthly), 0)


class Budget(Base):
    """Plan 50/30/20 del usuario: de un mes concreto o por defecto (is_default) para todos."""
    __tablename__ = "budgets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)

    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    total_income = Column(Money, nullable=False)
    necessities_budget = Column(Money, nullable=False)
    wants_budget = Column(Money, nullable=False)
    savings_budget = Column(Money, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
