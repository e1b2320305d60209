import logging
from typing import List

from sqlalchemy.orm import Session

from pharos.core.errors import ValidationError
from pharos.core.models import Category, Recurrence, Transaction, User
from pharos.ledger.accounts import get_owned

logger = logging.getLogger(__name__)

# =========================
# Categorías por defecto (metodología 50/30/20)
# =========================
DEFAULT_CATEGORIES = [
    # Necesidades (50%)
    {"name": "Moradia", "classification": "necessities", "transaction_type": "expense", "color": "#B71C1C", "icon": "Home"},
    {"name": "Alimentação", "classification": "necessities", "transaction_type": "expense", "color": "#E65100", "icon": "ShoppingCart"},
    {"name": "Transporte", "classification": "necessities", "transaction_type": "expense", "color": "#EF6C00", "icon": "Car"},
    {"name": "Saúde", "classification": "necessities", "transaction_type": "expense", "color": "#C62828", "icon": "Heart"},
    {"name": "Serviços Essenciais", "classification": "necessities", "transaction_type": "expense", "color": "#AD1457", "icon": "Zap"},
    {"name": "Educação Básica", "classification": "necessities", "transaction_type": "expense", "color": "#6A1B9A", "icon": "BookOpen"},
    {"name": "Impostos e Seguros", "classification": "necessities", "transaction_type": "expense", "color": "#4527A0", "icon": "FileText"},
    # Deseos (30%)
    {"name": "Entretenimento", "classification": "wants", "transaction_type": "expense", "color": "#1565C0", "icon": "PlayCircle"},
    {"name": "Restaurantes", "classification": "wants", "transaction_type": "expense", "color": "#0277BD", "icon": "Coffee"},
    {"name": "Compras e Presentes", "classification": "wants", "transaction_type": "expense", "color": "#0288D1", "icon": "Gift"},
    {"name": "Viagens e Turismo", "classification": "wants", "transaction_type": "expense", "color": "#0097A7", "icon": "Plane"},
    {"name": "Hobbies", "classification": "wants", "transaction_type": "expense", "color": "#00796B", "icon": "Camera"},
    {"name": "Cuidados Pessoais", "classification": "wants", "transaction_type": "expense", "color": "#388E3C", "icon": "User"},
    {"name": "Assinaturas", "classification": "wants", "transaction_type": "expense", "color": "#689F38", "icon": "Smartphone"},
    # Ahorro (20%)
    {"name": "Reserva de Emergência", "classification": "savings", "transaction_type": "expense", "color": "#795548", "icon": "Shield"},
    {"name": "Investimentos", "classification": "savings", "transaction_type": "expense", "color": "#607D8B", "icon": "TrendingUp"},
    {"name": "Objetivos Futuros", "classification": "savings", "transaction_type": "expense", "color": "#546E7A", "icon": "Target"},
    # Ingresos (sin clasificación)
    {"name": "Salário", "classification": None, "transaction_type": "income", "color": "#2E7D32", "icon": "DollarSign"},
    {"name": "Renda Extra", "classification": None, "transaction_type": "income", "color": "#388E3C", "icon": "Plus"},
    {"name": "Rendimentos", "classification": None, "transaction_type": "income", "color": "#43A047", "icon": "PiggyBank"},
    {"name": "Outras Receitas", "classification": None, "transaction_type": "income", "color": "#4CAF50", "icon": "Wallet"},
]


REQUIRED_FIELDS = ("name", "transaction_type", "color", "icon")


def seed_default_categories(db: Session, user: User) -> int:
    """Crea las categorías por defecto que le falten al usuario. No hace commit."""
    existing = {
        name for (name,) in db.query(Category.name).filter(Category.user_id == user.id).all()
    }

    created = 0
    for row in DEFAULT_CATEGORIES:
        if row["name"] in existing:
            continue
        db.add(Category(user_id=user.id, is_default=True, **row))
        created += 1

    logger.info("Seeded %d default categories for user %s", created, user.id)
    return created


def list_categories(db: Session, user: User) -> List[Category]:
    return db.query(Category).filter(Category.user_id == user.id).order_by(Category.id.asc()).all()


def create_category(db: Session, user: User, data: dict) -> Category:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Category name is required")

    category = Category(user_id=user.id, **{**data, "name": name})
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def update_category(db: Session, user: User, category_id: int, fields: dict) -> Category:
    category = get_owned(db, Category, category_id, user, "Category")

    # solo la clasificación admite null (categorías de ingreso)
    for key in REQUIRED_FIELDS:
        if key in fields and fields[key] is None:
            raise ValidationError(f"Category {key} cannot be null")
    if "name" in fields:
        fields = {**fields, "name": fields["name"].strip()}
        if not fields["name"]:
            raise ValidationError("Category name is required")

    for key, value in fields.items():
        setattr(category, key, value)
    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, user: User, category_id: int) -> None:
    category = get_owned(db, Category, category_id, user, "Category")

    used = (
        db.query(Transaction.id).filter(Transaction.category_id == category.id).first()
        or db.query(Recurrence.id).filter(Recurrence.category_id == category.id).first()
    )
    if used:
        raise ValidationError("Category is in use by transactions or recurrences")

    db.delete(category)
    db.commit()
