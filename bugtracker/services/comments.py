from datetime import datetime, timezone

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from bugtracker.errors import NotFound, ValidationError
from bugtracker.permissions import Action, ensure_allowed
from bugtracker.serializers import parse_object_id, serialize_doc
from bugtracker.services.projects import user_summaries
from bugtracker.services.tickets import load_ticket


async def _ticket_project(db: AsyncIOMotorDatabase, ticket: dict) -> dict | None:
    # A ticket carries no ACL of its own; its project's roster decides
    return await db.projects.find_one({"_id": ticket["project"]})


async def _with_authors(db: AsyncIOMotorDatabase, comments: list[dict]) -> list[dict]:
    authors = await user_summaries(db, [c["user"] for c in comments])
    for comment in comments:
        author = authors.get(comment["user"])
        comment["user"] = {"_id": author["_id"], "name": author["name"]} if author else comment["user"]
    return comments


async def add_comment(db: AsyncIOMotorDatabase, actor_id: ObjectId, text: str, ticket_id) -> dict:
    text = (text or "").strip()
    if not text:
        raise ValidationError("Please provide comment text")

    ticket = await load_ticket(db, ticket_id)
    project = await _ticket_project(db, ticket)
    ensure_allowed(Action.COMMENT_CREATE, actor_id, project, ticket=ticket)

    now = datetime.now(timezone.utc)
    comment = {
        "text": text,
        "user": actor_id,
        "ticket": ticket["_id"],
        "created_at": now,
        "updated_at": now,
    }
    result = await db.comments.insert_one(comment)
    comment["_id"] = result.inserted_id
    (comment,) = await _with_authors(db, [comment])
    return serialize_doc(comment)


async def list_comments(db: AsyncIOMotorDatabase, ticket_id, actor_id: ObjectId) -> list[dict]:
    ticket = await load_ticket(db, ticket_id)
    project = await _ticket_project(db, ticket)
    ensure_allowed(Action.COMMENT_LIST, actor_id, project, ticket=ticket)

    cursor = db.comments.find({"ticket": ticket["_id"]}, sort=[("created_at", -1)])
    comments = [c async for c in cursor]
    return serialize_doc(await _with_authors(db, comments))


async def delete_comment(db: AsyncIOMotorDatabase, comment_id, actor_id: ObjectId):
    oid = parse_object_id(comment_id)
    comment = await db.comments.find_one({"_id": oid}) if oid else None
    if comment is None:
        raise NotFound("Comment not found")
    ensure_allowed(Action.COMMENT_DELETE, actor_id, None, comment=comment)

    await db.comments.delete_one({"_id": comment["_id"]})
