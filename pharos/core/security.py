from datetime import datetime, timedelta, timezone
from passlib.context import CryptContext
from jose import jwt, JWTError, ExpiredSignatureError

from pharos.core.config import JWT_SECRET, JWT_ALG, JWT_EXPIRE_MIN

PWD_CONTEXT = CryptContext(schemes=["bcrypt"], deprecated="auto")

# bcrypt ignora lo que pase de 72 bytes
BCRYPT_MAX_BYTES = 72
TOKEN_TYPE = "access"


def hash_password(pw: str) -> str:
    if len(pw.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes")
    return PWD_CONTEXT.hash(pw)


def verify_password(pw: str, pw_hash: str) -> bool:
    try:
        return PWD_CONTEXT.verify(pw, pw_hash)
    except ValueError:
        # hash corrupto o de otro esquema
        return False


def create_token(user_id: int, expires_min: int = JWT_EXPIRE_MIN) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "typ": TOKEN_TYPE,
        "exp": now + timedelta(minutes=expires_min),
        "iat": now,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def decode_token(token: str) -> int:
    """Id del usuario del token; ValueError si expiró o no es válido."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except ExpiredSignatureError:
        raise ValueError("Token expired")
    except JWTError:
        raise ValueError("Invalid token")

    if payload.get("typ") != TOKEN_TYPE:
        raise ValueError("Invalid token")
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise ValueError("Invalid token")
