"""
Project membership ledger.

The roster lives in the ``team_members`` array of each project document as
``{"user": ObjectId, "role": "<Role>"}`` entries. Reads are pure functions over
a freshly loaded project; writes are single conditional updates applied by
MongoDB so that concurrent add/remove calls on the same project never
overwrite each other.
"""
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from bugtracker.errors import (
    AlreadyMember,
    CannotRemoveOwner,
    InvalidTarget,
    NotAMember,
    NotFound,
)
from bugtracker.schemas.project import Role


def is_member(project: dict, user_id: ObjectId) -> bool:
    return any(m.get("user") == user_id for m in project.get("team_members", []))


def role_of(project: dict, user_id: ObjectId) -> Role | None:
    for member in project.get("team_members", []):
        if member.get("user") == user_id:
            return Role(member["role"])
    return None


def owner_entry(owner_id: ObjectId) -> dict:
    """Roster entry inserted for the owner when a project is created."""
    return {"user": owner_id, "role": Role.ADMIN.value}


async def add_member(db: AsyncIOMotorDatabase, project: dict, user_id: ObjectId, role: Role) -> dict:
    """Append (user_id, role) to the roster if absent. Returns the updated project."""
    if user_id == project["owner"]:
        raise InvalidTarget()
    if is_member(project, user_id):
        raise AlreadyMember()

    updated = await db.projects.find_one_and_update(
        {
            "_id": project["_id"],
            "owner": {"$ne": user_id},
            "team_members.user": {"$ne": user_id},
        },
        {"$push": {"team_members": {"user": user_id, "role": Role(role).value}}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        # Guard failed between our read and the write
        current = await db.projects.find_one({"_id": project["_id"]})
        if current is None:
            raise NotFound("Project not found")
        raise AlreadyMember()
    return updated


async def remove_member(db: AsyncIOMotorDatabase, project: dict, user_id: ObjectId) -> dict:
    """Drop user_id from the roster. Returns the updated project."""
    if user_id == project["owner"]:
        raise CannotRemoveOwner()

    updated = await db.projects.find_one_and_update(
        {
            "_id": project["_id"],
            "owner": {"$ne": user_id},
            "team_members.user": user_id,
        },
        {"$pull": {"team_members": {"user": user_id}}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        current = await db.projects.find_one({"_id": project["_id"]})
        if current is None:
            raise NotFound("Project not found")
        raise NotAMember()
    return updated
