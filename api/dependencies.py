"""API Dependencies - Authentication"""
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from uuid import UUID

from domain.auth import User, UserInDB
from domain.enums import Role
from domain.value_objects import Actor
from infrastructure.security import decode_access_token, get_password_hash
from api.schemas import TokenData

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

# Mock database for users
# In production, this would be a database call
_fake_users_db = {
    "sysadmin": {
        "username": "sysadmin",
        "full_name": "System Administrator",
        "email": "sysadmin@example.com",
        "plain_password": "sysadmin123",
        "role": Role.SYSTEM_ADMIN,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174000"
    },
    "admin": {
        "username": "admin",
        "full_name": "Admin User",
        "email": "admin@example.com",
        "plain_password": "admin123",  # Will be hashed on first access
        "role": Role.ADMIN,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174001"
    },
    "casino": {
        "username": "casino",
        "full_name": "Casino Host",
        "email": "casino@example.com",
        "plain_password": "casino123",
        "role": Role.CASINO_USER,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174002"
    },
    "casino2": {
        "username": "casino2",
        "full_name": "Second Casino Host",
        "email": "casino2@example.com",
        "plain_password": "casino123",
        "role": Role.CASINO_USER,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174003"
    },
    "fnb": {
        "username": "fnb",
        "full_name": "F&B Staff",
        "email": "fnb@example.com",
        "plain_password": "fnb123",
        "role": Role.FNB_USER,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174004"
    },
}

# Public alias for backwards compatibility
fake_users_db = _fake_users_db

# Cache for hashed passwords
_password_hash_cache = {}


def _get_hashed_password(username: str) -> str:
    """Lazily hash passwords on first access"""
    if username not in _password_hash_cache:
        user = _fake_users_db.get(username)
        if user and "plain_password" in user:
            _password_hash_cache[username] = get_password_hash(user["plain_password"])
    return _password_hash_cache.get(username, "")


def get_user(db, username: str):
    if username in db:
        user_dict = db[username].copy()
        # Replace plain_password with hashed_password
        if "plain_password" in user_dict:
            user_dict["hashed_password"] = _get_hashed_password(username)
            del user_dict["plain_password"]
        return UserInDB(**user_dict)
    return None


def users_by_role():
    """Role -> user ids, for addressing role-wide notifications"""
    directory = {}
    for user in _fake_users_db.values():
        directory.setdefault(user["role"], []).append(UUID(user["user_id"]))
    return directory


async def get_current_user(token: str = Depends(oauth2_scheme)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
        username: str = payload.get("sub")
        if username is None:
            raise credentials_exception
        token_data = TokenData(username=username)
    except JWTError:
        raise credentials_exception

    user = get_user(_fake_users_db, username=token_data.username)
    if user is None:
        raise credentials_exception
    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)):
    if current_user.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


async def get_current_actor(current_user: User = Depends(get_current_active_user)) -> Actor:
    """Trusted identity handed to the reservation services"""
    return current_user.as_actor()
