from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pharos.app import app
from pharos.core.database import Base
from pharos.core.deps import get_db
from pharos.core.models import (
    Account, Category, Classification, CreditCard, Frequency, Recurrence, Transaction,
    TransactionStatus, TransactionType, User,
)
from pharos.core.security import create_token


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _add(db, obj):
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


@pytest.fixture
def user(db):
    return _add(db, User(username="ana", email="ana@example.com", name="Ana", password_hash="x"))


@pytest.fixture
def other_user(db):
    return _add(db, User(username="bob", email="bob@example.com", name="Bob", password_hash="x"))


@pytest.fixture
def auth(user):
    return {"Authorization": f"Bearer {create_token(user.id)}"}


@pytest.fixture
def account(db, user):
    return _add(db, Account(user_id=user.id, name="Conta Corrente", bank_name="Banco", balance=Decimal("500.00")))


@pytest.fixture
def card(db, user):
    return _add(db, CreditCard(
        user_id=user.id, name="Visa", bank_name="Banco", limit=Decimal("3000.00"),
        used_amount=Decimal("0.00"), closing_day=5, due_day=15,
    ))


@pytest.fixture
def expense_category(db, user):
    return _add(db, Category(
        user_id=user.id, name="Moradia", classification=Classification.necessities,
        transaction_type=TransactionType.expense,
    ))


@pytest.fixture
def income_category(db, user):
    return _add(db, Category(user_id=user.id, name="Salário", transaction_type=TransactionType.income))


@pytest.fixture
def make_recurrence(db, user, account, expense_category):
    def _make(**overrides):
        fields = dict(
            user_id=user.id,
            account_id=account.id,
            category_id=expense_category.id,
            type=TransactionType.expense,
            amount=Decimal("100.00"),
            description="Aluguel",
            frequency=Frequency.monthly,
            start_date=date(2026, 1, 10),
            is_active=True,
        )
        fields.update(overrides)
        fields.setdefault("next_execution_date", fields["start_date"])
        return _add(db, Recurrence(**fields))
    return _make


@pytest.fixture
def make_transaction(db, user, expense_category):
    def _make(**overrides):
        fields = dict(
            user_id=user.id,
            type=TransactionType.expense,
            amount=Decimal("100.00"),
            description="Conta de luz",
            category_id=expense_category.id,
            date=date(2026, 1, 10),
            status=TransactionStatus.pending,
        )
        fields.update(overrides)
        return _add(db, Transaction(**fields))
    return _make
