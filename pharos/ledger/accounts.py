import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from pharos.core.errors import NotFoundError, ValidationError
from pharos.core.models import (
    Account, Category, CreditCard, Recurrence, Transaction, TransactionStatus,
    TransactionType, User,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def get_owned(db: Session, model, obj_id: Optional[int], user: User, label: str):
    """Fila de `model` del usuario; NotFoundError si no existe o es de otro."""
    obj = None
    if obj_id is not None:
        obj = db.query(model).filter(model.id == obj_id, model.user_id == user.id).first()
    if not obj:
        raise NotFoundError(f"{label} not found")
    return obj


def signed_amount(tx_type: TransactionType, amount: Decimal) -> Decimal:
    """Efecto sobre el saldo de una cuenta: ingreso suma, gasto y transferencia restan."""
    if TransactionType(tx_type) == TransactionType.income:
        return amount
    return -amount


def apply_settlement(db: Session, tx: Transaction) -> None:
    """
    Aplica el efecto de una transacción confirmada.
    - con cuenta: mueve el saldo de la cuenta
    - solo tarjeta: gasto sube used_amount, ingreso (reembolso) lo baja
    Las pendientes nunca pasan por aquí.
    """
    if tx.account_id is not None:
        account = db.get(Account, tx.account_id)
        account.balance = (account.balance or ZERO) + signed_amount(tx.type, tx.amount)
        logger.info("Account %s balance -> %s (tx %s)", account.id, account.balance, tx.id)
    elif tx.credit_card_id is not None:
        card = db.get(CreditCard, tx.credit_card_id)
        card.used_amount = (card.used_amount or ZERO) - signed_amount(tx.type, tx.amount)
        logger.info("Card %s used_amount -> %s (tx %s)", card.id, card.used_amount, tx.id)


def check_refs(
    db: Session,
    user: User,
    category_id: Optional[int] = None,
    account_id: Optional[int] = None,
    credit_card_id: Optional[int] = None,
) -> None:
    if category_id is not None:
        get_owned(db, Category, category_id, user, "Category")
    if account_id is not None:
        get_owned(db, Account, account_id, user, "Account")
    if credit_card_id is not None:
        get_owned(db, CreditCard, credit_card_id, user, "Credit card")


# -------------------------
# Accounts
# -------------------------
def list_accounts(db: Session, user: User) -> List[Account]:
    return db.query(Account).filter(Account.user_id == user.id).order_by(Account.id.asc()).all()


def create_account(db: Session, user: User, data: dict) -> Account:
    if not (data.get("name") or "").strip():
        raise ValidationError("Account name is required")

    account = Account(user_id=user.id, **data)
    account.name = account.name.strip()
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


def update_account(db: Session, user: User, account_id: int, fields: dict) -> Account:
    account = get_owned(db, Account, account_id, user, "Account")
    for key, value in fields.items():
        if value is not None:
            setattr(account, key, value)
    db.commit()
    db.refresh(account)
    return account


def delete_account(db: Session, user: User, account_id: int) -> None:
    account = get_owned(db, Account, account_id, user, "Account")
    if account.balance != 0:
        raise ValidationError("Account with non-zero balance cannot be deleted; transfer the money first")

    in_use = db.query(Recurrence.id).filter(Recurrence.account_id == account.id).first()
    if in_use:
        raise ValidationError("Account is the funding source of a recurrence")

    # las transacciones históricas se quedan sin cuenta
    db.query(Transaction).filter(Transaction.account_id == account.id).update(
        {Transaction.account_id: None}, synchronize_session=False
    )
    db.delete(account)
    db.commit()


def transfer(
    db: Session,
    user: User,
    from_account_id: int,
    to_account_id: int,
    amount: Decimal,
):
    if amount is None or amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    if from_account_id == to_account_id:
        raise ValidationError("Source and destination accounts must differ")

    src = get_owned(db, Account, from_account_id, user, "Source account")
    dst = get_owned(db, Account, to_account_id, user, "Destination account")

    if src.balance < amount:
        raise ValidationError("Insufficient balance in source account")

    src.balance = src.balance - amount
    dst.balance = dst.balance + amount
    db.commit()
    db.refresh(src)
    db.refresh(dst)
    logger.info("Transfer %s from account %s to %s", amount, src.id, dst.id)
    return src, dst


# -------------------------
# Credit cards
# -------------------------
def list_credit_cards(db: Session, user: User) -> List[CreditCard]:
    return db.query(CreditCard).filter(CreditCard.user_id == user.id).order_by(CreditCard.id.asc()).all()


def create_credit_card(db: Session, user: User, data: dict) -> CreditCard:
    if not (data.get("name") or "").strip():
        raise ValidationError("Card name is required")

    card = CreditCard(user_id=user.id, **data)
    db.add(card)
    db.commit()
    db.refresh(card)
    return card


# -------------------------
# Transactions
# -------------------------
def list_transactions(
    db: Session,
    user: User,
    month: Optional[int] = None,
    year: Optional[int] = None,
    limit: Optional[int] = None,
) -> List[Transaction]:
    q = db.query(Transaction).filter(Transaction.user_id == user.id)

    if month and year:
        first = date(year, month, 1)
        nxt = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
        q = q.filter(Transaction.date >= first, Transaction.date < nxt)

    q = q.order_by(Transaction.date.desc(), Transaction.id.desc())
    if limit:
        q = q.limit(limit)
    return q.all()


def create_transaction(db: Session, user: User, data: dict) -> Transaction:
    """Alta manual. Confirmada (por defecto) liquida al instante; pendiente espera confirmación."""
    amount = data.get("amount")
    if amount is None or amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    if not (data.get("description") or "").strip():
        raise ValidationError("Description is required")

    check_refs(
        db, user,
        category_id=data.get("category_id"),
        account_id=data.get("account_id"),
        credit_card_id=data.get("credit_card_id"),
    )

    status = TransactionStatus(data.get("status") or TransactionStatus.confirmed)
    if status == TransactionStatus.confirmed and data.get("account_id") is None and data.get("credit_card_id") is None:
        raise ValidationError("A confirmed transaction needs an account or a credit card")

    tx = Transaction(user_id=user.id, **{**data, "status": status})
    db.add(tx)
    db.flush()

    if status == TransactionStatus.confirmed:
        apply_settlement(db, tx)

    db.commit()
    db.refresh(tx)
    return tx
