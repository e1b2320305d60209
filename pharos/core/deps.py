import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from pharos.core.database import SessionLocal
from pharos.core.models import User
from pharos.core.security import decode_token

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


def get_db():
    """Una sesión por request; lo que quede sin commit se descarta al cerrar."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def _unauthorized(detail: str) -> HTTPException:
    logger.warning("Auth rejected: %s", detail)
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def get_current_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    if not creds or creds.scheme.lower() != "bearer":
        raise _unauthorized("Missing auth token")

    try:
        user_id = decode_token(creds.credentials)
    except ValueError as e:
        raise _unauthorized(str(e))

    # los datos del ledger son siempre del usuario del token
    user = db.get(User, user_id)
    if not user or not user.is_active:
        raise _unauthorized("User not found or inactive")
    return user
