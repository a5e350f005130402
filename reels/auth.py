"""Password hashing, session tokens and the FastAPI dependencies that resolve them."""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from .config import get_settings
from .storage import DocumentStore, get_store

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
bearer = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def new_token() -> str:
    return secrets.token_hex(32)


def verification_expiry(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now + timedelta(hours=get_settings().verification_ttl_hours)


def is_expired(stamp: Optional[str], now: Optional[datetime] = None) -> bool:
    if not stamp:
        return True
    now = now or datetime.now(timezone.utc)
    return datetime.fromisoformat(stamp) <= now


def issue_session(store: DocumentStore, user: dict) -> str:
    token = new_token()
    expires = datetime.now(timezone.utc) + timedelta(days=get_settings().session_max_age_days)
    store.insert("sessions", {"_id": token, "userId": user["_id"], "expiresAt": expires.isoformat()})
    return token


def public_user(user: dict) -> dict:
    """Strip credentials and verification state before a user leaves the API."""
    hidden = {"password", "verificationToken", "verificationTokenExpiry"}
    return {k: v for k, v in user.items() if k not in hidden}


def current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    store: DocumentStore = Depends(get_store),
) -> Optional[dict]:
    if credentials is None:
        return None
    session = store.get("sessions", credentials.credentials)
    if session is None:
        return None
    if is_expired(session.get("expiresAt")):
        store.delete("sessions", session["_id"])
        return None
    return store.get("users", session["userId"])


def current_user(user: Optional[dict] = Depends(current_user_optional)) -> dict:
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user
