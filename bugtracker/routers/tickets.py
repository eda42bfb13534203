# bugtracker/routers/tickets.py
from fastapi import APIRouter, Depends, File, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import List
from bugtracker.dependencies import get_db, get_current_user, get_event_bus, get_attachment_store
from bugtracker.realtime import EventBus
from bugtracker.schemas.ticket import TicketCreate, TicketUpdate
from bugtracker.services import tickets as ticket_service
from bugtracker.storage import AttachmentStore

router = APIRouter(prefix="/tickets", tags=["Tickets"])

# -----------------------------
# CREATE Ticket
# -----------------------------
@router.post("", status_code=201)
async def create_ticket(
    data: TicketCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
    current_user: dict = Depends(get_current_user)
):
    return await ticket_service.create_ticket(db, bus, current_user["_id"], data.model_dump(mode="json"))

# -----------------------------
# LIST Tickets of a Project
# -----------------------------
@router.get("/project/{project_id}")
async def list_project_tickets(
    project_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    return await ticket_service.list_tickets(db, project_id, current_user["_id"])

# -----------------------------
# UPDATE Ticket
# -----------------------------
@router.put("/{ticket_id}")
async def update_ticket(
    ticket_id: str,
    data: TicketUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
    current_user: dict = Depends(get_current_user)
):
    fields = data.model_dump(mode="json", exclude_unset=True)
    return await ticket_service.update_ticket(db, bus, ticket_id, current_user["_id"], fields)

# -----------------------------
# DELETE Ticket
# -----------------------------
@router.delete("/{ticket_id}")
async def delete_ticket(
    ticket_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
    store: AttachmentStore = Depends(get_attachment_store),
    current_user: dict = Depends(get_current_user)
):
    await ticket_service.delete_ticket(db, bus, store, ticket_id, current_user["_id"])
    return {"message": "Ticket removed"}

# -----------------------------
# ADD Attachments (multipart, field name "attachments")
# -----------------------------
@router.post("/{ticket_id}/attachments")
async def add_attachments(
    ticket_id: str,
    attachments: List[UploadFile] = File(default=[]),
    db: AsyncIOMotorDatabase = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
    store: AttachmentStore = Depends(get_attachment_store),
    current_user: dict = Depends(get_current_user)
):
    return await ticket_service.add_attachments(db, bus, store, ticket_id, current_user["_id"], attachments)

# -----------------------------
# REMOVE Attachment
# -----------------------------
@router.delete("/{ticket_id}/attachments/{attachment_id}")
async def remove_attachment(
    ticket_id: str,
    attachment_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
    store: AttachmentStore = Depends(get_attachment_store),
    current_user: dict = Depends(get_current_user)
):
    return await ticket_service.remove_attachment(
        db, bus, store, ticket_id, current_user["_id"], attachment_id
    )
