"""
Recurrencias: plantillas de transacciones repetidas y el scheduler que las
materializa como transacciones pendientes.

Flujo:
    recurrencia vencida (next_execution_date <= hoy)
      -> Transaction(status=pending, recurrence_id, date=next_execution_date)
      -> next_execution_date avanza un período
    la confirmación / edición / borrado de las pendientes vive en ledger.pending
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pharos.core.config import SCHEDULER_MAX_CATCHUP
from pharos.core.errors import ValidationError
from pharos.core.models import (
    Frequency, Recurrence, Transaction, TransactionStatus, TransactionType, User,
)
from pharos.ledger.accounts import ZERO, check_refs, get_owned
from pharos.ledger.schedule import advance, local_today

logger = logging.getLogger(__name__)

RECURRENCE_TYPES = (TransactionType.income, TransactionType.expense)


# =========================
# Definiciones
# =========================
def validate_recurrence(rec: Recurrence) -> None:
    if rec.type not in RECURRENCE_TYPES:
        raise ValidationError("Recurrence type must be income or expense")
    if rec.amount is None or Decimal(rec.amount) <= 0:
        raise ValidationError("Amount must be greater than zero")
    if not (rec.description or "").strip():
        raise ValidationError("Description is required")
    if rec.frequency not in list(Frequency):
        raise ValidationError("Invalid frequency")
    if rec.start_date is None:
        raise ValidationError("Start date is required")
    if rec.end_date is not None and rec.end_date < rec.start_date:
        raise ValidationError("End date must not be before start date")
    if rec.installments is not None and rec.installments < 1:
        raise ValidationError("Installments must be at least 1")
    if rec.category_id is None:
        raise ValidationError("Category is required")
    if rec.is_active is None:
        raise ValidationError("isActive must be true or false")

    has_account = rec.account_id is not None
    has_card = rec.credit_card_id is not None
    if not has_account and not has_card:
        raise ValidationError("Recurrence needs an account or a credit card")
    if has_account and has_card:
        raise ValidationError("Recurrence must use either an account or a credit card, not both")


def list_recurrences(db: Session, user: User) -> List[Recurrence]:
    return (
        db.query(Recurrence)
        .filter(Recurrence.user_id == user.id)
        .order_by(Recurrence.next_execution_date.asc(), Recurrence.id.asc())
        .all()
    )


def create_recurrence(db: Session, user: User, data: dict) -> Recurrence:
    rec = Recurrence(user_id=user.id, **data)
    if rec.is_active is None:
        rec.is_active = True
    rec.next_execution_date = rec.start_date

    validate_recurrence(rec)
    check_refs(
        db, user,
        category_id=rec.category_id,
        account_id=rec.account_id,
        credit_card_id=rec.credit_card_id,
    )

    db.add(rec)
    db.commit()
    db.refresh(rec)
    logger.info("Recurrence %s created (%s, next %s)", rec.id, rec.frequency.value, rec.next_execution_date)
    return rec


def update_recurrence(db: Session, user: User, recurrence_id: int, fields: dict) -> Recurrence:
    rec = get_owned(db, Recurrence, recurrence_id, user, "Recurrence")
    previous_next = rec.next_execution_date

    for key, value in fields.items():
        setattr(rec, key, value)

    try:
        validate_recurrence(rec)

        generated = _last_installment(db, rec)
        if rec.installments is not None and rec.installments < generated:
            raise ValidationError(f"Installments cannot be lower than the {generated} already generated")

        if "start_date" in fields or "frequency" in fields:
            if rec.last_executed_date is None:
                # nunca ejecutada: la primera ejecución sigue a la fecha de inicio
                rec.next_execution_date = rec.start_date
            else:
                # ya ejecutada: la serie nueva sigue desde el período pendiente, sin repetir los cubiertos
                rec.next_execution_date = first_occurrence_from(rec, previous_next)

        check_refs(
            db, user,
            category_id=rec.category_id,
            account_id=rec.account_id,
            credit_card_id=rec.credit_card_id,
        )
    except Exception:
        db.rollback()
        raise

    db.commit()
    db.refresh(rec)
    return rec


def delete_recurrence(db: Session, user: User, recurrence_id: int) -> int:
    """
    Borra la recurrencia y sus pendientes. Las confirmadas quedan en el libro
    sin referencia a la recurrencia. Devuelve cuántas pendientes se borraron.
    """
    rec = get_owned(db, Recurrence, recurrence_id, user, "Recurrence")

    removed = (
        db.query(Transaction)
        .filter(
            Transaction.recurrence_id == rec.id,
            Transaction.status == TransactionStatus.pending,
        )
        .delete(synchronize_session=False)
    )
    db.query(Transaction).filter(Transaction.recurrence_id == rec.id).update(
        {Transaction.recurrence_id: None}, synchronize_session=False
    )
    db.expire_all()

    db.delete(rec)
    db.commit()
    logger.info("Recurrence %s deleted with %d pending transactions", recurrence_id, removed)
    return removed


def recurrence_details(db: Session, user: User, recurrence_id: int) -> dict:
    rec = get_owned(db, Recurrence, recurrence_id, user, "Recurrence")

    rows = (
        db.query(Transaction)
        .filter(Transaction.recurrence_id == rec.id, Transaction.user_id == user.id)
        .order_by(Transaction.date.asc(), Transaction.id.asc())
        .all()
    )
    pending = [t for t in rows if t.status == TransactionStatus.pending]
    confirmed = [t for t in rows if t.status == TransactionStatus.confirmed]

    return {
        "recurrence": rec,
        "pending_transactions": pending,
        "confirmed_transactions": confirmed,
        "total_pending_amount": sum((t.amount for t in pending), ZERO),
        "total_confirmed_amount": sum((t.amount for t in confirmed), ZERO),
    }


# =========================
# Scheduler
# =========================
@dataclass
class SchedulerResult:
    created: int = 0
    skipped: int = 0
    deactivated: int = 0
    failed: int = 0


def _occurrence_exists(db: Session, rec: Recurrence, when: date) -> bool:
    return (
        db.query(Transaction.id)
        .filter(Transaction.recurrence_id == rec.id, Transaction.date == when)
        .first()
        is not None
    )


def _last_installment(db: Session, rec: Recurrence) -> int:
    last = (
        db.query(func.max(Transaction.current_installment))
        .filter(Transaction.recurrence_id == rec.id)
        .scalar()
    )
    return last or 0


def first_occurrence_from(rec: Recurrence, bound: date) -> date:
    """Primera fecha de la serie (start_date, frequency) que cae en o después de bound."""
    when = rec.start_date
    while when < bound:
        when = advance(when, rec.frequency, rec.start_date.day)
    return when


def _installments_done(rec: Recurrence, generated: int) -> bool:
    return rec.installments is not None and generated >= rec.installments


def _materialize(db: Session, rec: Recurrence, today: date, now: datetime, result: SchedulerResult) -> None:
    """Genera las ocurrencias vencidas de una recurrencia. No hace commit."""
    if rec.end_date is not None and today > rec.end_date:
        rec.is_active = False
        result.deactivated += 1
        logger.info("Recurrence %s expired on %s, deactivated", rec.id, rec.end_date)
        return

    anchor_day = rec.start_date.day
    generated = _last_installment(db, rec)
    steps = 0

    while rec.is_active and rec.next_execution_date <= today and steps < SCHEDULER_MAX_CATCHUP:
        # plan de cuotas ya completo (p. ej. reactivada tras la última)
        if _installments_done(rec, generated):
            rec.is_active = False
            result.deactivated += 1
            logger.info("Recurrence %s already generated its %s installments, deactivated", rec.id, rec.installments)
            break

        when = rec.next_execution_date
        steps += 1

        if _occurrence_exists(db, rec, when):
            result.skipped += 1
        else:
            generated += 1
            db.add(Transaction(
                user_id=rec.user_id,
                type=rec.type,
                amount=rec.amount,
                description=rec.description,
                category_id=rec.category_id,
                account_id=rec.account_id,
                credit_card_id=rec.credit_card_id,
                date=when,
                status=TransactionStatus.pending,
                recurrence_id=rec.id,
                installments=rec.installments,
                current_installment=generated if rec.installments else None,
            ))
            result.created += 1
            logger.info("Recurrence %s: pending transaction for %s", rec.id, when)

        rec.next_execution_date = advance(when, rec.frequency, anchor_day)
        rec.last_executed_date = now

        last_installment = _installments_done(rec, generated)
        past_end = rec.end_date is not None and rec.next_execution_date > rec.end_date
        if last_installment or past_end:
            rec.is_active = False
            result.deactivated += 1
            logger.info("Recurrence %s finished after %s", rec.id, when)

    if steps >= SCHEDULER_MAX_CATCHUP and rec.is_active and rec.next_execution_date <= today:
        logger.warning("Recurrence %s hit the catch-up limit; the rest goes in the next pass", rec.id)


def process_due_recurrences(
    db: Session,
    today: Optional[date] = None,
    user_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> SchedulerResult:
    """
    Una pasada del scheduler.
    Cada recurrencia se confirma por separado: un fallo hace rollback solo de
    esa recurrencia, se registra y queda vencida para la próxima pasada.
    Repetir la pasada no duplica: (recurrence_id, date) es único.
    """
    now = now or datetime.now(timezone.utc)
    today = today or local_today()
    result = SchedulerResult()

    q = db.query(Recurrence.id).filter(
        Recurrence.is_active == True,
        Recurrence.next_execution_date <= today,
    )
    if user_id is not None:
        q = q.filter(Recurrence.user_id == user_id)
    due_ids = [rid for (rid,) in q.order_by(Recurrence.id.asc()).all()]

    for rid in due_ids:
        try:
            rec = db.get(Recurrence, rid)
            # otra pasada pudo adelantarse
            if rec is None or not rec.is_active or rec.next_execution_date > today:
                continue
            _materialize(db, rec, today, now, result)
            db.commit()
        except IntegrityError:
            db.rollback()
            result.skipped += 1
            logger.warning("Recurrence %s: occurrence already materialized by a concurrent pass", rid)
        except Exception:
            db.rollback()
            result.failed += 1
            logger.exception("Recurrence %s failed, will retry on next pass", rid)

    if due_ids:
        logger.info(
            "Scheduler pass %s: %d due, %d created, %d skipped, %d deactivated, %d failed",
            today, len(due_ids), result.created, result.skipped, result.deactivated, result.failed,
        )
    return result
