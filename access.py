"""
Access gate.

Tokens are issued by the auth provider; this module only verifies them,
provisions a profile the first time a user shows up, and answers the one
question the rest of the service asks: is this caller an admin.
"""
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from database import get_db, now_utc, store_operation
from errors import Forbidden, Unauthorized
from schemas import Identity, Profile

logger = logging.getLogger(__name__)

SECRET_KEY = os.getenv("AUTH_JWT_SECRET", "dev-secret-change-me")
ALGORITHM = os.getenv("AUTH_JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = 60

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, email: str, full_name: str = "",
                        expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {
        "sub": user_id,
        "email": email,
        "user_metadata": {"full_name": full_name},
        "aud": "authenticated",
        "exp": expire,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], options={"verify_aud": False})
    except JWTError:
        raise Unauthorized("Could not validate credentials")
    if not payload.get("sub"):
        raise Unauthorized("Could not validate credentials")
    return payload


@store_operation("load profile")
def ensure_profile(db, user_id: str, email: str = "", full_name: str = "") -> Profile:
    """Return the caller's profile, creating it with role `user` on first sight."""
    try:
        doc = _upsert_profile(db, user_id, email, full_name)
    except DuplicateKeyError:
        # a concurrent first request created it
        doc = db["profiles"].find_one({"_id": user_id})
    return Profile.from_doc(doc)


def _upsert_profile(db, user_id: str, email: str, full_name: str) -> dict:
    return db["profiles"].find_one_and_update(
        {"_id": user_id},
        {"$setOnInsert": {
            "email": email,
            "full_name": full_name,
            "role": "user",
            "created_at": now_utc(),
            "updated_at": now_utc(),
        }},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db=Depends(get_db),
) -> Optional[Identity]:
    if credentials is None:
        return None
    payload = decode_token(credentials.credentials)
    meta = payload.get("user_metadata") or {}
    profile = ensure_profile(db, payload["sub"], payload.get("email", ""), meta.get("full_name", ""))
    return Identity(user_id=profile.id, email=profile.email, role=profile.role)


def is_admin(identity: Optional[Identity]) -> bool:
    return identity is not None and identity.role == "admin"


def require_user(identity: Optional[Identity]) -> Identity:
    if identity is None:
        raise Unauthorized()
    return identity


def require_admin(identity: Optional[Identity]) -> Identity:
    require_user(identity)
    if not is_admin(identity):
        logger.warning("Non-admin user %s attempted an admin operation", identity.user_id)
        raise Forbidden()
    return identity
