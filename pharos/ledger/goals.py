import logging
from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session

from pharos.core.errors import ValidationError
from pharos.core.models import Goal, GoalStatus, User
from pharos.ledger.accounts import get_owned

logger = logging.getLogger(__name__)


def list_goals(db: Session, user: User) -> List[Goal]:
    return (
        db.query(Goal)
        .filter(Goal.user_id == user.id)
        .order_by(Goal.target_date.asc(), Goal.id.asc())
        .all()
    )


def create_goal(db: Session, user: User, data: dict) -> Goal:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Goal name is required")
    if data.get("target_amount") is None or Decimal(data["target_amount"]) <= 0:
        raise ValidationError("Target amount must be greater than zero")
    if Decimal(data.get("current_amount") or 0) < 0:
        raise ValidationError("Current amount cannot be negative")
    if Decimal(data.get("monthly_contribution") or 0) < 0:
        raise ValidationError("Monthly contribution cannot be negative")

    goal = Goal(user_id=user.id, **{**data, "name": name})
    if goal.current_amount is None:
        goal.current_amount = Decimal("0.00")
    if goal.monthly_contribution is None:
        goal.monthly_contribution = Decimal("0.00")
    if goal.status is None:
        goal.status = GoalStatus.active
    _sync_status(goal)

    db.add(goal)
    db.commit()
    db.refresh(goal)
    logger.info("Goal %s created for user %s", goal.id, user.id)
    return goal


def update_goal_progress(db: Session, user: User, goal_id: int, current_amount: Decimal) -> Goal:
    goal = get_owned(db, Goal, goal_id, user, "Goal")
    if current_amount is None or Decimal(current_amount) < 0:
        raise ValidationError("Current amount cannot be negative")

    goal.current_amount = current_amount
    _sync_status(goal)
    db.commit()
    db.refresh(goal)
    return goal


def _sync_status(goal: Goal) -> None:
    """Alcanzar el objetivo la completa; bajar de él la devuelve a activa. Pausada no cambia."""
    reached = Decimal(goal.current_amount) >= Decimal(goal.target_amount)
    if reached and goal.status != GoalStatus.paused:
        goal.status = GoalStatus.completed
    elif not reached and goal.status == GoalStatus.completed:
        goal.status = GoalStatus.active
