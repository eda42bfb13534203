# bugtracker/dependencies.py
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from motor.motor_asyncio import AsyncIOMotorDatabase
from bugtracker.db import db
from bugtracker.auth import decode_access_token
from bugtracker.errors import Unauthenticated
from bugtracker.realtime import EventBus, event_bus
from bugtracker.storage import AttachmentStore

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

_attachment_store = AttachmentStore()


async def get_db():
    return db


async def get_event_bus() -> EventBus:
    return event_bus


async def get_attachment_store() -> AttachmentStore:
    return _attachment_store


async def get_bearer_token(token: str | None = Depends(oauth2_scheme)) -> str:
    if not token:
        raise Unauthenticated("Not authorized, no token")
    return token


async def resolve_user(db: AsyncIOMotorDatabase, token: str | None) -> dict | None:
    """Turn a bearer token into its user document, or None."""
    if not token:
        return None
    user_id = decode_access_token(token)
    if user_id is None:
        return None
    return await db["users"].find_one({"_id": user_id})


async def get_current_user(
    token: str = Depends(get_bearer_token),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    user = await resolve_user(db, token)
    if user is None:
        raise Unauthenticated("Not authorized, token failed")
    return user
