from passlib.context import CryptContext
from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from typing import Optional
import secrets

from nacos_vote import config

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# Hash a password
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


# Verify a plain password against a hash
def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # malformed hash in configuration
        return False


def new_browser_id() -> str:
    return secrets.token_urlsafe(16)


def new_device_id() -> str:
    return "device-" + secrets.token_hex(8)


# Signed cookie identifying one browser
def create_browser_token(browser_id: str, expires_days: int = None) -> str:
    days = expires_days if expires_days is not None else config.BROWSER_COOKIE_DAYS
    to_encode = {"sub": browser_id, "exp": datetime.now(timezone.utc) + timedelta(days=days)}
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def decode_browser_token(token: str) -> Optional[str]:
    if not token:
        return None
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        return None
    return payload.get("sub")
