"""
Password hashing, JWT issuing and the FastAPI dependencies that guard routes.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt
from bson import ObjectId
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pymongo.database import Database

import config
from database import get_db, serialize_doc

logger = logging.getLogger(__name__)

COOKIE_NAME = "jwt"
MAX_PASSWORD_BYTES = 72

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_token(user_id: str) -> str:
    expires = datetime.now(timezone.utc) + timedelta(days=config.JWT_EXPIRE_DAYS)
    return jwt.encode({"user_id": user_id, "exp": expires}, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> str:
    payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    return payload["user_id"]


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    """Strip the password hash from a user document."""
    return {
        "_id": str(user["_id"]),
        "username": user["username"],
        "email": user["email"],
        "is_admin": bool(user.get("is_admin", False)),
    }


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Resolve the caller from a bearer token or the ``jwt`` cookie."""
    token = credentials.credentials if credentials else request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authorized, no token")

    try:
        user_id = decode_token(token)
    except (jwt.PyJWTError, KeyError) as e:
        logger.warning("Rejected token: %s", e)
        raise HTTPException(status_code=401, detail="Not authorized, token failed")

    user = None
    if ObjectId.is_valid(user_id):
        user = db["user"].find_one({"_id": ObjectId(user_id)})
    if user is None:
        raise HTTPException(status_code=401, detail="Not authorized, token failed")
    return serialize_doc(user)


def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if not user.get("is_admin"):
        raise HTTPException(status_code=403, detail="Not authorized as an admin")
    return user
