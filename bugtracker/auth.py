# bugtracker/auth.py
"""Credential hashing and bearer tokens for bug tracker users."""
import os
from datetime import datetime, timedelta, timezone
from bson import ObjectId
from jose import jwt, JWTError
from passlib.context import CryptContext
from dotenv import load_dotenv

from bugtracker.serializers import parse_object_id

load_dotenv()

# Token signing; tokens default to a 30-day lifetime
JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
TOKEN_LIFETIME = timedelta(minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 30)))

password_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    return password_context.hash(password)


def password_matches(password: str, password_hash: str) -> bool:
    return password_context.verify(password, password_hash)


def create_access_token(user_id: ObjectId | str, lifetime: timedelta | None = None) -> str:
    """Sign a token whose subject is the user's id."""
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "iat": issued_at,
        "exp": issued_at + (lifetime or TOKEN_LIFETIME),
    }
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)


def issue_token(user: dict) -> str:
    return create_access_token(user["_id"])


def decode_access_token(token: str) -> ObjectId | None:
    """User id a token was issued for; None if it is forged, expired or malformed."""
    try:
        claims = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None
    return parse_object_id(claims.get("sub"))
