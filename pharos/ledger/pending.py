"""
Ciclo de vida de las transacciones pendientes.

    pending --confirm--> confirmed   (terminal, liquida el saldo)
    pending --delete---> (borrada)   (terminal, sin efecto en saldos)
    pending --edit-----> pending

No hay vuelta a pending desde ningún estado terminal.
"""
import logging
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from pharos.core.errors import InvalidStateError, ValidationError
from pharos.core.models import Account, Transaction, TransactionStatus, User
from pharos.ledger.accounts import apply_settlement, check_refs, get_owned

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "type", "amount", "description", "category_id", "date", "account_id", "credit_card_id",
)


def _require_pending(tx: Transaction, action: str) -> None:
    if tx.status != TransactionStatus.pending:
        raise InvalidStateError(f"Cannot {action} a {tx.status.value} transaction")


def list_pending(db: Session, user: User) -> List[Transaction]:
    return (
        db.query(Transaction)
        .filter(Transaction.user_id == user.id, Transaction.status == TransactionStatus.pending)
        .order_by(Transaction.date.asc(), Transaction.id.asc())
        .all()
    )


def confirm_transaction(
    db: Session,
    user: User,
    transaction_id: int,
    account_id: Optional[int],
) -> Tuple[Transaction, Account]:
    """Liga la pendiente a la cuenta elegida y liquida el importe, todo en un commit."""
    if account_id is None:
        raise ValidationError("accountId is required to confirm a transaction")

    tx = get_owned(db, Transaction, transaction_id, user, "Transaction")
    account = get_owned(db, Account, account_id, user, "Account")
    _require_pending(tx, "confirm")

    tx.account_id = account.id
    tx.status = TransactionStatus.confirmed
    apply_settlement(db, tx)

    db.commit()
    db.refresh(tx)
    db.refresh(account)
    logger.info("Transaction %s confirmed on account %s", tx.id, account.id)
    return tx, account


def edit_pending(db: Session, user: User, transaction_id: int, fields: dict) -> Transaction:
    tx = get_owned(db, Transaction, transaction_id, user, "Transaction")
    _require_pending(tx, "edit")

    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields not editable: {', '.join(sorted(unknown))}")

    if "amount" in fields and (fields["amount"] is None or Decimal(fields["amount"]) <= 0):
        raise ValidationError("Amount must be greater than zero")
    if "description" in fields and not (fields["description"] or "").strip():
        raise ValidationError("Description is required")
    for required in ("type", "category_id", "date"):
        if required in fields and fields[required] is None:
            raise ValidationError(f"{required} cannot be empty")

    check_refs(
        db, user,
        category_id=fields.get("category_id"),
        account_id=fields.get("account_id"),
        credit_card_id=fields.get("credit_card_id"),
    )

    new_date = fields.get("date")
    if tx.recurrence_id is not None and new_date is not None and new_date != tx.date:
        clash = (
            db.query(Transaction.id)
            .filter(
                Transaction.recurrence_id == tx.recurrence_id,
                Transaction.date == new_date,
                Transaction.id != tx.id,
            )
            .first()
        )
        if clash:
            raise ValidationError("Another occurrence of this recurrence already uses that date")

    for key, value in fields.items():
        setattr(tx, key, value)

    db.commit()
    db.refresh(tx)
    return tx


def delete_transaction(db: Session, user: User, transaction_id: int) -> None:
    """
    Borra una pendiente. Id desconocido -> NotFoundError (siempre).
    Las confirmadas son terminales -> InvalidStateError.
    """
    tx = get_owned(db, Transaction, transaction_id, user, "Transaction")
    _require_pending(tx, "delete")

    db.delete(tx)
    db.commit()
    logger.info("Pending transaction %s deleted", transaction_id)
