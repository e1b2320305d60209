import asyncio
import contextlib
import logging
import time
from typing import List, Optional

from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from pharos.core.config import CORS_ORIGINS, SCHEDULER_INTERVAL_SECONDS
from pharos.core.database import Base, SessionLocal, engine
from pharos.core.deps import get_db, get_current_user
from pharos.core.errors import LedgerError
from pharos.core.log import configure_logging
from pharos.core.models import User
from pharos.core.schemas import (
    RegisterIn, LoginIn, TokenOut,
    AccountIn, AccountPatch, AccountOut, TransferIn, TransferOut,
    CreditCardIn, CreditCardOut,
    CategoryIn, CategoryPatch, CategoryOut,
    TransactionIn, TransactionPatch, TransactionOut, ConfirmIn, ConfirmOut,
    RecurrenceIn, RecurrencePatch, RecurrenceOut, RecurrenceDetailsOut, SchedulerRunOut,
    DashboardOut, BudgetOut, BudgetPlanIn, BudgetPlanOut,
    GoalIn, GoalOut, GoalProgressIn,
)
from pharos.core.security import hash_password, verify_password, create_token

from pharos.ledger import accounts as ledger
from pharos.ledger import categories, goals, pending, recurrence
from pharos.ledger.finance import build_dashboard, build_budget, create_budget
from pharos.ledger.schedule import local_today

configure_logging()
logger = logging.getLogger(__name__)


def run_scheduler_pass() -> recurrence.SchedulerResult:
    db = SessionLocal()
    try:
        return recurrence.process_due_recurrences(db)
    finally:
        db.close()


async def _scheduler_loop(interval: int):
    while True:
        await asyncio.sleep(interval)
        try:
            await run_in_threadpool(run_scheduler_pass)
        except Exception:
            logger.exception("Scheduler tick failed")


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    # MVP: crea tablas al arrancar
    Base.metadata.create_all(bind=engine)
    await run_in_threadpool(run_scheduler_pass)

    task = None
    if SCHEDULER_INTERVAL_SECONDS > 0:
        task = asyncio.create_task(_scheduler_loop(SCHEDULER_INTERVAL_SECONDS))
    yield
    if task:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


app = FastAPI(title="Pharos", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000

    level = logging.INFO
    if response.status_code >= 500:
        level = logging.ERROR
    elif response.status_code >= 400:
        level = logging.WARNING
    logger.log(level, "%s %s %s %.1fms", request.method, request.url.path, response.status_code, duration_ms)
    return response


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# -------------------------
# Auth
# -------------------------
@app.post("/api/auth/register", response_model=TokenOut)
def register(body: RegisterIn, db: Session = Depends(get_db)):
    email = body.email.lower()
    username = body.username.strip()

    if db.query(User).filter(User.username == username).first():
        raise HTTPException(status_code=400, detail="Username already taken")
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Email already registered")

    try:
        pw_hash = hash_password(body.password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    user = User(username=username, email=email, name=body.name.strip(), password_hash=pw_hash)
    db.add(user)
    db.flush()
    categories.seed_default_categories(db, user)
    db.commit()
    db.refresh(user)

    token = create_token(user.id)
    return TokenOut(access_token=token)


@app.post("/api/auth/login", response_model=TokenOut)
def login(body: LoginIn, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == body.email.lower(), User.is_active == True).first()
    if not user or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_token(user.id)
    return TokenOut(access_token=token)


# -------------------------
# Dashboard / Budget
# -------------------------
@app.get("/api/dashboard", response_model=DashboardOut)
def dashboard(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return build_dashboard(db, user, local_today())


@app.get("/api/budget/{month}/{year}", response_model=BudgetOut)
def budget(
    month: int,
    year: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail="Month must be between 1 and 12")
    return build_budget(db, user, month, year)


@app.post("/api/budget", response_model=BudgetPlanOut)
def save_budget(
    body: BudgetPlanIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return create_budget(db, user, body.model_dump())


# -------------------------
# Goals
# -------------------------
@app.get("/api/goals", response_model=List[GoalOut])
def list_goals(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return goals.list_goals(db, user)


@app.post("/api/goals", response_model=GoalOut)
def create_goal(
    body: GoalIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return goals.create_goal(db, user, body.model_dump())


@app.put("/api/goals/{goal_id}/progress", response_model=GoalOut)
def update_goal_progress(
    goal_id: int,
    body: GoalProgressIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return goals.update_goal_progress(db, user, goal_id, body.current_amount)


# -------------------------
# Accounts
# -------------------------
@app.get("/api/accounts", response_model=List[AccountOut])
def list_accounts(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ledger.list_accounts(db, user)


@app.post("/api/accounts", response_model=AccountOut)
def create_account(
    body: AccountIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ledger.create_account(db, user, body.model_dump())


@app.put("/api/accounts/{account_id}", response_model=AccountOut)
def update_account(
    account_id: int,
    body: AccountPatch,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ledger.update_account(db, user, account_id, body.model_dump(exclude_unset=True))


@app.post("/api/accounts/transfer", response_model=TransferOut)
def transfer(
    body: TransferIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    src, dst = ledger.transfer(db, user, body.from_account_id, body.to_account_id, body.amount)
    return TransferOut(from_account=AccountOut.model_validate(src), to_account=AccountOut.model_validate(dst))


@app.delete("/api/accounts/{account_id}", response_model=dict)
def delete_account(
    account_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ledger.delete_account(db, user, account_id)
    return {"ok": True, "deleted": account_id}


# -------------------------
# Credit cards
# -------------------------
@app.get("/api/credit-cards", response_model=List[CreditCardOut])
def list_credit_cards(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ledger.list_credit_cards(db, user)


@app.post("/api/credit-cards", response_model=CreditCardOut)
def create_credit_card(
    body: CreditCardIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ledger.create_credit_card(db, user, body.model_dump())


# -------------------------
# Categories
# -------------------------
@app.get("/api/categories", response_model=List[CategoryOut])
def list_categories(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return categories.list_categories(db, user)


@app.post("/api/categories", response_model=CategoryOut)
def create_category(
    body: CategoryIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return categories.create_category(db, user, body.model_dump())


@app.put("/api/categories/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: int,
    body: CategoryPatch,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return categories.update_category(db, user, category_id, body.model_dump(exclude_unset=True))


@app.delete("/api/categories/{category_id}", response_model=dict)
def delete_category(
    category_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    categories.delete_category(db, user, category_id)
    return {"ok": True, "deleted": category_id}


# -------------------------
# Transactions
# -------------------------
@app.get("/api/transactions", response_model=List[TransactionOut])
def list_transactions(
    month: Optional[int] = None,
    year: Optional[int] = None,
    limit: Optional[int] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ledger.list_transactions(db, user, month=month, year=year, limit=limit)


@app.post("/api/transactions", response_model=TransactionOut)
def create_transaction(
    body: TransactionIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ledger.create_transaction(db, user, body.model_dump())


@app.get("/api/transactions/pending", response_model=List[TransactionOut])
def list_pending(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    recurrence.process_due_recurrences(db, user_id=user.id)
    return pending.list_pending(db, user)


@app.put("/api/transactions/{transaction_id}/confirm", response_model=ConfirmOut)
def confirm_transaction(
    transaction_id: int,
    body: ConfirmIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    tx, account = pending.confirm_transaction(db, user, transaction_id, body.account_id)
    return ConfirmOut(
        **TransactionOut.model_validate(tx).model_dump(),
        account_name=account.name,
        account_balance=account.balance,
    )


@app.put("/api/transactions/{transaction_id}", response_model=TransactionOut)
def edit_transaction(
    transaction_id: int,
    body: TransactionPatch,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return pending.edit_pending(db, user, transaction_id, body.model_dump(exclude_unset=True))


@app.delete("/api/transactions/{transaction_id}", response_model=dict)
def delete_transaction(
    transaction_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    pending.delete_transaction(db, user, transaction_id)
    return {"ok": True, "deleted": transaction_id}


# -------------------------
# Recurrences
# -------------------------
@app.post("/api/recurrences", response_model=RecurrenceOut)
def create_recurrence(
    body: RecurrenceIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return recurrence.create_recurrence(db, user, body.model_dump())


@app.get("/api/recurrences", response_model=List[RecurrenceOut])
def list_recurrences(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    recurrence.process_due_recurrences(db, user_id=user.id)
    return recurrence.list_recurrences(db, user)


@app.post("/api/recurrences/process", response_model=SchedulerRunOut)
def process_recurrences(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = recurrence.process_due_recurrences(db, user_id=user.id)
    return SchedulerRunOut(
        created=result.created,
        skipped=result.skipped,
        deactivated=result.deactivated,
        failed=result.failed,
    )


@app.get("/api/recurrences/{recurrence_id}/details", response_model=RecurrenceDetailsOut)
def recurrence_details(
    recurrence_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return recurrence.recurrence_details(db, user, recurrence_id)


@app.put("/api/recurrences/{recurrence_id}", response_model=RecurrenceOut)
def update_recurrence(
    recurrence_id: int,
    body: RecurrencePatch,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return recurrence.update_recurrence(db, user, recurrence_id, body.model_dump(exclude_unset=True))


@app.delete("/api/recurrences/{recurrence_id}", response_model=dict)
def delete_recurrence(
    recurrence_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    removed = recurrence.delete_recurrence(db, user, recurrence_id)
    return {"ok": True, "deleted": recurrence_id, "pendingRemoved": removed}
