from datetime import date, timedelta
from decimal import Decimal

from pharos.core.models import Transaction, TransactionStatus


def test_pending_list_runs_a_lazy_scheduler_pass(client, auth, make_recurrence):
    rec = make_recurrence(start_date=date.today() - timedelta(days=2))

    r = client.get("/api/transactions/pending", headers=auth)

    assert r.status_code == 200
    (tx,) = r.json()
    assert tx["recurrenceId"] == rec.id
    assert tx["status"] == "pending"
    assert tx["date"] == rec.start_date.isoformat()

    # segunda lectura: sin duplicados
    assert len(client.get("/api/transactions/pending", headers=auth).json()) == 1


def test_pending_list_only_shows_own_transactions(client, auth, other_user, make_transaction):
    mine = make_transaction()
    make_transaction(user_id=other_user.id)

    r = client.get("/api/transactions/pending", headers=auth)

    assert [t["id"] for t in r.json()] == [mine.id]


def test_confirm_returns_account_info(client, auth, account, make_transaction, db):
    tx = make_transaction()

    r = client.put(f"/api/transactions/{tx.id}/confirm", json={"accountId": account.id}, headers=auth)

    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "confirmed"
    assert body["accountId"] == account.id
    assert body["accountName"] == "Conta Corrente"
    assert Decimal(body["accountBalance"]) == Decimal("400.00")

    db.refresh(account)
    assert account.balance == Decimal("400.00")


def test_confirm_errors(client, auth, account, make_transaction):
    tx = make_transaction()

    assert client.put(f"/api/transactions/{tx.id}/confirm", json={}, headers=auth).status_code == 400
    assert client.put("/api/transactions/9999/confirm", json={"accountId": account.id}, headers=auth).status_code == 404
    assert client.put(f"/api/transactions/{tx.id}/confirm", json={"accountId": 9999}, headers=auth).status_code == 404

    ok = client.put(f"/api/transactions/{tx.id}/confirm", json={"accountId": account.id}, headers=auth)
    again = client.put(f"/api/transactions/{tx.id}/confirm", json={"accountId": account.id}, headers=auth)

    assert ok.status_code == 200
    assert again.status_code == 409
    assert "detail" in again.json()


def test_edit_pending(client, auth, make_transaction):
    tx = make_transaction()

    r = client.put(
        f"/api/transactions/{tx.id}",
        json={"amount": "75.50", "description": "Luz março", "date": "2026-01-12"},
        headers=auth,
    )

    assert r.status_code == 200, r.text
    body = r.json()
    assert Decimal(body["amount"]) == Decimal("75.50")
    assert body["description"] == "Luz março"
    assert body["date"] == "2026-01-12"
    assert body["status"] == "pending"


def test_edit_confirmed_is_conflict(client, auth, account, make_transaction):
    tx = make_transaction(status=TransactionStatus.confirmed, account_id=account.id)

    r = client.put(f"/api/transactions/{tx.id}", json={"amount": "1.00"}, headers=auth)

    assert r.status_code == 409


def test_delete_pending_and_confirmed(client, auth, account, make_transaction, db):
    pend = make_transaction()
    conf = make_transaction(status=TransactionStatus.confirmed, account_id=account.id, date=date(2026, 1, 11))

    r = client.delete(f"/api/transactions/{pend.id}", headers=auth)
    assert r.status_code == 200
    assert r.json() == {"ok": True, "deleted": pend.id}

    assert client.delete(f"/api/transactions/{conf.id}", headers=auth).status_code == 409
    assert client.delete(f"/api/transactions/{pend.id}", headers=auth).status_code == 404

    db.expire_all()
    assert [t.id for t in db.query(Transaction).all()] == [conf.id]


def test_create_confirmed_transaction_settles(client, auth, account, expense_category, db):
    payload = {
        "type": "expense",
        "amount": "30.00",
        "description": "Farmácia",
        "categoryId": expense_category.id,
        "accountId": account.id,
        "date": "2026-02-03",
    }

    r = client.post("/api/transactions", json=payload, headers=auth)

    assert r.status_code == 200, r.text
    assert r.json()["status"] == "confirmed"
    db.refresh(account)
    assert account.balance == Decimal("470.00")


def test_create_pending_transaction_waits(client, auth, account, expense_category, db):
    payload = {
        "type": "expense",
        "amount": "30.00",
        "description": "Farmácia",
        "categoryId": expense_category.id,
        "accountId": account.id,
        "date": "2026-02-03",
        "status": "pending",
    }

    r = client.post("/api/transactions", json=payload, headers=auth)

    assert r.status_code == 200
    db.refresh(account)
    assert account.balance == Decimal("500.00")


def test_card_expense_raises_used_amount(client, auth, card, expense_category, db):
    payload = {
        "type": "expense",
        "amount": "250.00",
        "description": "Mercado",
        "categoryId": expense_category.id,
        "creditCardId": card.id,
        "date": "2026-02-03",
    }

    assert client.post("/api/transactions", json=payload, headers=auth).status_code == 200
    db.refresh(card)
    assert card.used_amount == Decimal("250.00")


def test_confirmed_transaction_needs_funding(client, auth, expense_category):
    payload = {
        "type": "expense",
        "amount": "10.00",
        "description": "Café",
        "categoryId": expense_category.id,
        "date": "2026-02-03",
    }

    assert client.post("/api/transactions", json=payload, headers=auth).status_code == 400


def test_list_transactions_by_month(client, auth, account, make_transaction):
    feb = make_transaction(date=date(2026, 2, 14), status=TransactionStatus.confirmed, account_id=account.id)
    make_transaction(date=date(2026, 3, 1))

    r = client.get("/api/transactions", params={"month": 2, "year": 2026}, headers=auth)

    assert [t["id"] for t in r.json()] == [feb.id]
    assert len(client.get("/api/transactions", headers=auth).json()) == 2
