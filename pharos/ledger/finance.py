import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from pharos.core.errors import ValidationError
from pharos.core.models import (
    Account, Budget, Category, Classification, CreditCard, Transaction, TransactionStatus,
    TransactionType, User,
)
from pharos.ledger.accounts import ZERO, list_transactions

logger = logging.getLogger(__name__)

# 50/30/20
BUDGET_SHARES = {
    Classification.necessities: Decimal("0.50"),
    Classification.wants: Decimal("0.30"),
    Classification.savings: Decimal("0.20"),
}

CENT = Decimal("0.01")

# columna del plan guardado por clasificación
PLAN_FIELDS = {
    Classification.necessities: "necessities_budget",
    Classification.wants: "wants_budget",
    Classification.savings: "savings_budget",
}


def _month_bounds(month: int, year: int):
    first = date(year, month, 1)
    nxt = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return first, nxt


def _confirmed_in_month(db: Session, user: User, month: int, year: int) -> List[Transaction]:
    first, nxt = _month_bounds(month, year)
    return (
        db.query(Transaction)
        .filter(
            Transaction.user_id == user.id,
            Transaction.status == TransactionStatus.confirmed,
            Transaction.date >= first,
            Transaction.date < nxt,
        )
        .all()
    )


def bucket_status(allocated: Decimal, spent: Decimal) -> str:
    """green / yellow (>= 80% usado) / red (pasado del presupuesto)."""
    if spent > allocated:
        return "red"
    if allocated > 0 and spent >= allocated * Decimal("0.80"):
        return "yellow"
    return "green"


def build_dashboard(db: Session, user: User, today: date) -> Dict:
    """
    Resumen del mes en curso:
    - saldos de cuentas y uso de tarjetas
    - ingresos, gastos y neto (solo confirmadas)
    - pendientes a confirmar
    """
    accounts = db.query(Account).filter(Account.user_id == user.id).all()
    cards = db.query(CreditCard).filter(CreditCard.user_id == user.id).all()
    month_txs = _confirmed_in_month(db, user, today.month, today.year)
    pending = (
        db.query(Transaction)
        .filter(Transaction.user_id == user.id, Transaction.status == TransactionStatus.pending)
        .all()
    )

    income = sum((t.amount for t in month_txs if t.type == TransactionType.income), ZERO)
    expenses = sum((t.amount for t in month_txs if t.type == TransactionType.expense), ZERO)

    return {
        "total_balance": sum((a.balance for a in accounts), ZERO),
        "total_credit_used": sum((c.used_amount for c in cards), ZERO),
        "monthly_income": income,
        "monthly_expenses": expenses,
        "net": income - expenses,
        "pending_count": len(pending),
        "pending_amount": sum((t.amount for t in pending), ZERO),
        "recent_transactions": list_transactions(db, user, limit=10),
    }


def find_budget(db: Session, user: User, month: int, year: int) -> Optional[Budget]:
    """Plan del mes; si no hay, el plan por defecto; si tampoco, None."""
    specific = (
        db.query(Budget)
        .filter(
            Budget.user_id == user.id,
            Budget.month == month,
            Budget.year == year,
            Budget.is_default == False,
        )
        .first()
    )
    if specific:
        return specific
    return db.query(Budget).filter(Budget.user_id == user.id, Budget.is_default == True).first()


def create_budget(db: Session, user: User, data: dict) -> Budget:
    """Guarda el plan; reemplaza el del mismo mes (o el por defecto) si ya existe."""
    if not 1 <= data["month"] <= 12:
        raise ValidationError("Month must be between 1 and 12")
    for key in ("total_income", *PLAN_FIELDS.values()):
        if data.get(key) is None or Decimal(data[key]) < 0:
            raise ValidationError(f"{key} must be zero or greater")

    q = db.query(Budget).filter(Budget.user_id == user.id)
    if data.get("is_default"):
        q = q.filter(Budget.is_default == True)
    else:
        q = q.filter(Budget.is_default == False, Budget.month == data["month"], Budget.year == data["year"])

    plan = q.first()
    if plan is None:
        plan = Budget(user_id=user.id)
        db.add(plan)
    for key, value in data.items():
        setattr(plan, key, value)
    plan.is_default = bool(data.get("is_default"))

    db.commit()
    db.refresh(plan)
    logger.info("Budget %s saved for user %s (%s/%s, default=%s)", plan.id, user.id, plan.month, plan.year, plan.is_default)
    return plan


def build_budget(db: Session, user: User, month: int, year: int) -> Dict:
    """
    Presupuesto 50/30/20 del mes.
    Con plan guardado (del mes o por defecto) usa sus montos; si no, reparte
    los ingresos confirmados del mes.
    """
    txs = _confirmed_in_month(db, user, month, year)
    classification_of = {
        c.id: c.classification
        for c in db.query(Category).filter(Category.user_id == user.id).all()
    }

    income = sum((t.amount for t in txs if t.type == TransactionType.income), ZERO)

    spent = {k: ZERO for k in BUDGET_SHARES}
    for t in txs:
        if t.type != TransactionType.expense:
            continue
        cls = classification_of.get(t.category_id)
        if cls in spent:
            spent[cls] += t.amount

    plan = find_budget(db, user, month, year)
    if plan is None:
        source = "derived"
        planned_income = None
    else:
        source = "default" if plan.is_default else "month"
        planned_income = plan.total_income

    buckets = []
    for cls, share in BUDGET_SHARES.items():
        if plan is None:
            allocated = (income * share).quantize(CENT)
        else:
            allocated = Decimal(getattr(plan, PLAN_FIELDS[cls]))
            if planned_income > 0:
                share = (allocated / planned_income).quantize(CENT)
        buckets.append({
            "classification": cls,
            "share": share,
            "allocated": allocated,
            "spent": spent[cls],
            "remaining": allocated - spent[cls],
            "status": bucket_status(allocated, spent[cls]),
        })

    return {
        "month": month,
        "year": year,
        "income": income,
        "source": source,
        "planned_income": planned_income,
        "buckets": buckets,
    }
