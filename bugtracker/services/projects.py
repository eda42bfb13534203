import logging
from datetime import datetime, timezone

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from bugtracker.errors import NotAMember, NotFound, ValidationError
from bugtracker.permissions import Action, ensure_allowed
from bugtracker.schemas.project import Role
from bugtracker.serializers import parse_object_id
from bugtracker.services import membership
from bugtracker.services.users import find_user_by_email
from bugtracker.storage import AttachmentStore

logger = logging.getLogger(__name__)

USER_SUMMARY = {"name": 1, "email": 1}


async def load_project(db: AsyncIOMotorDatabase, project_id) -> dict:
    oid = parse_object_id(project_id)
    project = await db.projects.find_one({"_id": oid}) if oid else None
    if project is None:
        raise NotFound("Project not found")
    return project


async def user_summaries(db: AsyncIOMotorDatabase, user_ids) -> dict:
    """Map user id -> {_id, name, email} for the given ids."""
    ids = list({uid for uid in user_ids if uid is not None})
    if not ids:
        return {}
    cursor = db.users.find({"_id": {"$in": ids}}, USER_SUMMARY)
    return {user["_id"]: user async for user in cursor}


async def populate_project(db: AsyncIOMotorDatabase, project: dict) -> dict:
    users = await user_summaries(
        db, [project["owner"]] + [m["user"] for m in project.get("team_members", [])]
    )
    populated = dict(project)
    populated["owner"] = users.get(project["owner"], project["owner"])
    populated["team_members"] = [
        {"user": users.get(m["user"], m["user"]), "role": m["role"]}
        for m in project.get("team_members", [])
    ]
    return populated


def _project_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise ValidationError("Please provide a project name")
    return name


async def create_project(db: AsyncIOMotorDatabase, actor_id: ObjectId, name: str, description: str = "") -> dict:
    project = {
        "name": _project_name(name),
        "description": (description or "").strip(),
        "owner": actor_id,
        "team_members": [membership.owner_entry(actor_id)],
        "created_at": datetime.now(timezone.utc),
    }
    result = await db.projects.insert_one(project)
    project["_id"] = result.inserted_id
    return await populate_project(db, project)


async def list_projects(db: AsyncIOMotorDatabase, actor_id: ObjectId) -> list[dict]:
    cursor = db.projects.find({"team_members.user": actor_id}, sort=[("created_at", -1)])
    projects = [p async for p in cursor]
    owners = await user_summaries(db, [p["owner"] for p in projects])
    for project in projects:
        project["owner"] = owners.get(project["owner"], project["owner"])
    return projects


async def get_project(db: AsyncIOMotorDatabase, project_id, actor_id: ObjectId) -> dict:
    project = await load_project(db, project_id)
    ensure_allowed(Action.PROJECT_READ, actor_id, project)
    return await populate_project(db, project)


async def update_project(db: AsyncIOMotorDatabase, project_id, actor_id: ObjectId, fields: dict) -> dict:
    project = await load_project(db, project_id)
    ensure_allowed(Action.PROJECT_UPDATE, actor_id, project)

    changes = {k: v.strip() for k, v in fields.items() if k in ("name", "description") and v is not None}
    if "name" in changes:
        changes["name"] = _project_name(changes["name"])
    if changes:
        project = await db.projects.find_one_and_update(
            {"_id": project["_id"]}, {"$set": changes}, return_document=ReturnDocument.AFTER
        )
        if project is None:
            raise NotFound("Project not found")
    return await populate_project(db, project)


async def delete_project(db: AsyncIOMotorDatabase, store: AttachmentStore, project_id, actor_id: ObjectId):
    """Delete a project with its tickets, their comments and their attachment files."""
    project = await load_project(db, project_id)
    ensure_allowed(Action.PROJECT_DELETE, actor_id, project)

    tickets = [t async for t in db.tickets.find({"project": project["_id"]}, {"_id": 1, "attachments": 1})]
    ticket_ids = [t["_id"] for t in tickets]
    if ticket_ids:
        await db.comments.delete_many({"ticket": {"$in": ticket_ids}})
        await db.tickets.delete_many({"_id": {"$in": ticket_ids}})
    await db.projects.delete_one({"_id": project["_id"]})
    for ticket in tickets:
        store.discard_all(ticket.get("attachments", []))
    logger.info("Project %s deleted with %d ticket(s)", project["_id"], len(ticket_ids))


async def add_project_member(db: AsyncIOMotorDatabase, project_id, actor_id: ObjectId,
                             email: str, role: Role = Role.DEVELOPER) -> dict:
    project = await load_project(db, project_id)
    ensure_allowed(Action.MEMBER_ADD, actor_id, project)

    user = await find_user_by_email(db, email)
    if user is None:
        raise NotFound("User not found with this email")

    updated = await membership.add_member(db, project, user["_id"], role)
    return await populate_project(db, updated)


async def remove_project_member(db: AsyncIOMotorDatabase, project_id, actor_id: ObjectId, user_id) -> dict:
    project = await load_project(db, project_id)
    ensure_allowed(Action.MEMBER_REMOVE, actor_id, project)

    target = parse_object_id(user_id)
    if target is None:
        raise NotAMember()

    updated = await membership.remove_member(db, project, target)
    return await populate_project(db, updated)
