from datetime import date
from decimal import Decimal

import pytest

from pharos.core.errors import InvalidStateError, NotFoundError, ValidationError
from pharos.core.models import Transaction, TransactionStatus, TransactionType
from pharos.ledger.pending import (
    confirm_transaction, delete_transaction, edit_pending, list_pending,
)


def test_confirm_settles_once(db, user, account, make_transaction):
    tx = make_transaction()

    confirmed, acc = confirm_transaction(db, user, tx.id, account.id)

    assert confirmed.status == TransactionStatus.confirmed
    assert confirmed.account_id == account.id
    assert acc.balance == Decimal("400.00")

    with pytest.raises(InvalidStateError):
        confirm_transaction(db, user, tx.id, account.id)
    db.refresh(account)
    assert account.balance == Decimal("400.00")


def test_confirm_income_adds_to_balance(db, user, account, income_category, make_transaction):
    tx = make_transaction(type=TransactionType.income, amount=Decimal("2500.00"), category_id=income_category.id)

    _, acc = confirm_transaction(db, user, tx.id, account.id)

    assert acc.balance == Decimal("3000.00")


def test_confirm_overrides_the_suggested_card(db, user, account, card, make_transaction):
    tx = make_transaction(credit_card_id=card.id)

    confirm_transaction(db, user, tx.id, account.id)

    db.refresh(card)
    db.refresh(account)
    assert card.used_amount == Decimal("0.00")
    assert account.balance == Decimal("400.00")


def test_confirm_requires_account(db, user, make_transaction):
    tx = make_transaction()

    with pytest.raises(ValidationError):
        confirm_transaction(db, user, tx.id, None)
    db.refresh(tx)
    assert tx.status == TransactionStatus.pending


def test_confirm_unknown_ids(db, user, account, make_transaction):
    tx = make_transaction()

    with pytest.raises(NotFoundError):
        confirm_transaction(db, user, 9999, account.id)
    with pytest.raises(NotFoundError):
        confirm_transaction(db, user, tx.id, 9999)


def test_confirm_rejects_account_of_another_user(db, user, other_user, account, make_transaction):
    foreign = make_transaction(user_id=other_user.id)

    with pytest.raises(NotFoundError):
        confirm_transaction(db, user, foreign.id, account.id)


def test_edit_pending_changes_fields_without_touching_balance(db, user, account, make_transaction):
    tx = make_transaction(account_id=account.id)

    edited = edit_pending(db, user, tx.id, {"amount": Decimal("80.00"), "description": "Luz (ajustada)"})

    assert edited.amount == Decimal("80.00")
    assert edited.description == "Luz (ajustada)"
    assert edited.status == TransactionStatus.pending
    db.refresh(account)
    assert account.balance == Decimal("500.00")


def test_edit_confirmed_is_rejected(db, user, make_transaction, account):
    tx = make_transaction(status=TransactionStatus.confirmed, account_id=account.id)

    with pytest.raises(InvalidStateError):
        edit_pending(db, user, tx.id, {"amount": Decimal("1.00")})


def test_edit_rejects_bad_values(db, user, make_transaction):
    tx = make_transaction()

    with pytest.raises(ValidationError):
        edit_pending(db, user, tx.id, {"amount": Decimal("0")})
    with pytest.raises(ValidationError):
        edit_pending(db, user, tx.id, {"description": "   "})
    with pytest.raises(ValidationError):
        edit_pending(db, user, tx.id, {"status": "confirmed"})
    with pytest.raises(NotFoundError):
        edit_pending(db, user, tx.id, {"category_id": 9999})


def test_edit_date_cannot_collide_with_sibling_occurrence(db, user, make_recurrence, make_transaction):
    rec = make_recurrence()
    make_transaction(recurrence_id=rec.id, date=date(2026, 1, 10))
    second = make_transaction(recurrence_id=rec.id, date=date(2026, 2, 10))

    with pytest.raises(ValidationError):
        edit_pending(db, user, second.id, {"date": date(2026, 1, 10)})

    moved = edit_pending(db, user, second.id, {"date": date(2026, 2, 12)})
    assert moved.date == date(2026, 2, 12)


def test_delete_pending(db, user, account, make_transaction):
    tx = make_transaction(account_id=account.id)

    delete_transaction(db, user, tx.id)

    assert db.get(Transaction, tx.id) is None
    db.refresh(account)
    assert account.balance == Decimal("500.00")


def test_delete_confirmed_is_rejected(db, user, account, make_transaction):
    tx = make_transaction(status=TransactionStatus.confirmed, account_id=account.id)

    with pytest.raises(InvalidStateError):
        delete_transaction(db, user, tx.id)
    assert db.get(Transaction, tx.id) is not None


def test_delete_unknown_id(db, user):
    with pytest.raises(NotFoundError):
        delete_transaction(db, user, 12345)


def test_list_pending_is_scoped_and_ordered(db, user, other_user, account, make_transaction):
    later = make_transaction(date=date(2026, 3, 1))
    earlier = make_transaction(date=date(2026, 2, 1))
    make_transaction(status=TransactionStatus.confirmed, account_id=account.id)
    make_transaction(user_id=other_user.id)

    assert [t.id for t in list_pending(db, user)] == [earlier.id, later.id]
