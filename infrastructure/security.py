"""Password hashing and bearer tokens for the reservation API"""
import hashlib
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt
from passlib.context import CryptContext

from infrastructure.config import settings

# bcrypt only reads the first 72 bytes of a secret
BCRYPT_MAX_BYTES = 72

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__ident="2b",
    bcrypt__rounds=settings.BCRYPT_ROUNDS
)


def _bcrypt_input(password: str) -> str:
    """Long passphrases are reduced to their SHA256 hex digest before hashing"""
    raw = password.encode("utf-8")
    if len(raw) > BCRYPT_MAX_BYTES:
        return hashlib.sha256(raw).hexdigest()
    return password


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(_bcrypt_input(plain_password), hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(_bcrypt_input(password))


def create_access_token(subject: str, role: str, expires_delta: Optional[timedelta] = None) -> str:
    """Signed token naming the user and role; expiry defaults to ACCESS_TOKEN_EXPIRE_MINUTES"""
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": subject,
        "role": role,
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Claims of a valid token; raises jose.JWTError when the signature or expiry is bad"""
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
