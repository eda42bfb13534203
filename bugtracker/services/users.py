import logging
from datetime import datetime, timezone

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from bugtracker.auth import hash_password, issue_token, password_matches
from bugtracker.errors import DuplicateEmail, NotFound, Unauthenticated
from bugtracker.serializers import public_user

logger = logging.getLogger(__name__)


async def find_user_by_email(db: AsyncIOMotorDatabase, email: str) -> dict | None:
    return await db.users.find_one({"email": email.strip().lower()})


async def register(db: AsyncIOMotorDatabase, name: str, email: str, password: str) -> dict:
    email = email.strip().lower()
    if await db.users.find_one({"email": email}):
        raise DuplicateEmail("User already exists")

    user = {
        "name": name.strip(),
        "email": email,
        "password": hash_password(password),
        "created_at": datetime.now(timezone.utc),
    }
    try:
        result = await db.users.insert_one(user)
    except DuplicateKeyError:
        # Another registration for this email landed after our check
        raise DuplicateEmail("User already exists")
    user["_id"] = result.inserted_id
    return {**public_user(user), "token": issue_token(user)}


async def login(db: AsyncIOMotorDatabase, email: str, password: str) -> dict:
    user = await find_user_by_email(db, email)
    if not user or not password_matches(password, user["password"]):
        logger.info("Login failed for %s", email)
        raise Unauthenticated("Invalid email or password")

    return {**public_user(user), "token": issue_token(user), "token_type": "bearer"}


async def update_profile(db: AsyncIOMotorDatabase, user_id: ObjectId, token: str, fields: dict) -> dict:
    """Apply a partial {name, email} change; the caller keeps the token it presented."""
    changes = {}
    if fields.get("name"):
        changes["name"] = fields["name"].strip()
    if fields.get("email"):
        email = fields["email"].strip().lower()
        taken = await db.users.find_one({"email": email, "_id": {"$ne": user_id}})
        if taken:
            raise DuplicateEmail()
        changes["email"] = email

    user = await db.users.find_one({"_id": user_id})
    if user is None:
        raise NotFound("User not found")
    if changes:
        try:
            await db.users.update_one({"_id": user_id}, {"$set": changes})
        except DuplicateKeyError:
            raise DuplicateEmail()
        user.update(changes)

    return {**public_user(user), "token": token}
