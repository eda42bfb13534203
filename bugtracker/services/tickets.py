import logging
from datetime import datetime, timezone

from bson import ObjectId
from fastapi import UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from bugtracker.errors import NotFound, ValidationError
from bugtracker.permissions import Action, ensure_allowed
from bugtracker.realtime import EventBus, TicketEvent
from bugtracker.serializers import parse_object_id, serialize_doc
from bugtracker.services.projects import load_project, user_summaries
from bugtracker.storage import MAX_ATTACHMENTS_PER_REQUEST, AttachmentStore

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "description", "status", "priority", "assignee")


async def load_ticket(db: AsyncIOMotorDatabase, ticket_id) -> dict:
    oid = parse_object_id(ticket_id)
    ticket = await db.tickets.find_one({"_id": oid}) if oid else None
    if ticket is None:
        raise NotFound("Ticket not found")
    return ticket


def _assignee_id(value):
    if value is None or value == "":
        return None
    oid = parse_object_id(value)
    if oid is None:
        raise ValidationError("assignee must be a valid user id")
    return oid


async def _publish(bus: EventBus, ticket: dict, event: TicketEvent, payload):
    await bus.publish(str(ticket["project"]), event, payload)


async def create_ticket(db: AsyncIOMotorDatabase, bus: EventBus, actor_id: ObjectId, data: dict) -> dict:
    project = await load_project(db, data["project_id"])
    ensure_allowed(Action.TICKET_CREATE, actor_id, project)

    title = data["title"].strip()
    if not title:
        raise ValidationError("Please provide a ticket title")

    now = datetime.now(timezone.utc)
    ticket = {
        "title": title,
        "description": (data.get("description") or "").strip(),
        "status": data["status"],
        "priority": data["priority"],
        "project": project["_id"],
        "assignee": _assignee_id(data.get("assignee")),
        "reporter": actor_id,
        "attachments": [],
        "created_at": now,
        "updated_at": now,
    }
    result = await db.tickets.insert_one(ticket)
    # Read back so the event carries exactly what was stored
    ticket = await db.tickets.find_one({"_id": result.inserted_id})

    payload = serialize_doc(ticket)
    await _publish(bus, ticket, TicketEvent.CREATED, payload)
    return payload


async def list_tickets(db: AsyncIOMotorDatabase, project_id, actor_id: ObjectId) -> list[dict]:
    project = await load_project(db, project_id)
    ensure_allowed(Action.TICKET_LIST, actor_id, project)

    cursor = db.tickets.find({"project": project["_id"]}, sort=[("created_at", -1)])
    tickets = [t async for t in cursor]

    users = await user_summaries(
        db, [t.get("assignee") for t in tickets] + [t["reporter"] for t in tickets]
    )
    for ticket in tickets:
        if ticket.get("assignee") is not None:
            ticket["assignee"] = users.get(ticket["assignee"], ticket["assignee"])
        ticket["reporter"] = users.get(ticket["reporter"], ticket["reporter"])
    return serialize_doc(tickets)


async def update_ticket(db: AsyncIOMotorDatabase, bus: EventBus, ticket_id, actor_id: ObjectId, fields: dict) -> dict:
    ticket = await load_ticket(db, ticket_id)
    project = await load_project(db, ticket["project"])
    ensure_allowed(Action.TICKET_UPDATE, actor_id, project, ticket=ticket)

    changes = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
    for key in ("title", "description"):
        if changes.get(key) is not None:
            changes[key] = changes[key].strip()
    if "title" in changes and not changes["title"]:
        raise ValidationError("title cannot be empty")
    if "status" in changes and changes["status"] is None:
        raise ValidationError("status cannot be null")
    if "priority" in changes and changes["priority"] is None:
        raise ValidationError("priority cannot be null")
    if "assignee" in changes:
        changes["assignee"] = _assignee_id(changes["assignee"])
    changes["updated_at"] = datetime.now(timezone.utc)

    updated = await db.tickets.find_one_and_update(
        {"_id": ticket["_id"]}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    if updated is None:
        raise NotFound("Ticket not found")

    payload = serialize_doc(updated)
    await _publish(bus, updated, TicketEvent.UPDATED, payload)
    return payload


async def delete_ticket(db: AsyncIOMotorDatabase, bus: EventBus, store: AttachmentStore,
                        ticket_id, actor_id: ObjectId):
    ticket = await load_ticket(db, ticket_id)
    project = await db.projects.find_one({"_id": ticket["project"]})
    ensure_allowed(Action.TICKET_DELETE, actor_id, project, ticket=ticket)

    result = await db.tickets.delete_one({"_id": ticket["_id"]})
    if result.deleted_count == 0:
        raise NotFound("Ticket not found")
    await db.comments.delete_many({"ticket": ticket["_id"]})
    store.discard_all(ticket.get("attachments", []))

    await _publish(bus, ticket, TicketEvent.DELETED, {"_id": str(ticket["_id"])})


async def add_attachments(db: AsyncIOMotorDatabase, bus: EventBus, store: AttachmentStore,
                          ticket_id, actor_id: ObjectId, uploads: list[UploadFile]) -> dict:
    uploads = [u for u in uploads or [] if u is not None and u.filename]
    if not uploads:
        raise ValidationError("No files uploaded")
    if len(uploads) > MAX_ATTACHMENTS_PER_REQUEST:
        raise ValidationError(f"At most {MAX_ATTACHMENTS_PER_REQUEST} files per request")

    ticket = await load_ticket(db, ticket_id)
    project = await load_project(db, ticket["project"])
    ensure_allowed(Action.ATTACHMENT_ADD, actor_id, project, ticket=ticket)

    attachments = []
    try:
        for upload in uploads:
            descriptor = await store.save(upload)
            attachments.append({"_id": ObjectId(), **descriptor})
    except ValidationError:
        store.discard_all(attachments)
        raise

    updated = await db.tickets.find_one_and_update(
        {"_id": ticket["_id"]},
        {"$push": {"attachments": {"$each": attachments}}, "$set": {"updated_at": datetime.now(timezone.utc)}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        store.discard_all(attachments)
        raise NotFound("Ticket not found")

    payload = serialize_doc(updated)
    await _publish(bus, updated, TicketEvent.UPDATED, payload)
    return payload


async def remove_attachment(db: AsyncIOMotorDatabase, bus: EventBus, store: AttachmentStore,
                            ticket_id, actor_id: ObjectId, attachment_id) -> dict:
    ticket = await load_ticket(db, ticket_id)
    project = await load_project(db, ticket["project"])
    ensure_allowed(Action.ATTACHMENT_REMOVE, actor_id, project, ticket=ticket)

    target = parse_object_id(attachment_id)
    removed = [a for a in ticket.get("attachments", []) if a.get("_id") == target]
    if target is None or not removed:
        # Absent id: nothing to pull
        return serialize_doc(ticket)

    updated = await db.tickets.find_one_and_update(
        {"_id": ticket["_id"]},
        {"$pull": {"attachments": {"_id": target}}, "$set": {"updated_at": datetime.now(timezone.utc)}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise NotFound("Ticket not found")
    for attachment in removed:
        store.discard(attachment["path"])

    payload = serialize_doc(updated)
    await _publish(bus, updated, TicketEvent.UPDATED, payload)
    return payload
