# bugtracker/routers/realtime.py
import os
import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from motor.motor_asyncio import AsyncIOMotorDatabase
from dotenv import load_dotenv
from bugtracker.dependencies import get_db, get_event_bus, resolve_user
from bugtracker.errors import DomainError, Unauthenticated
from bugtracker.permissions import Action, ensure_allowed
from bugtracker.realtime import EventBus
from bugtracker.services.projects import load_project

load_dotenv()

logger = logging.getLogger(__name__)

# Off by default: any connected client may join any project channel
REALTIME_REQUIRE_MEMBERSHIP = os.getenv("REALTIME_REQUIRE_MEMBERSHIP", "false").lower() == "true"

router = APIRouter(tags=["Realtime"])


async def authorize_join(db: AsyncIOMotorDatabase, user: dict | None, project_id: str):
    if not REALTIME_REQUIRE_MEMBERSHIP:
        return
    if user is None:
        raise Unauthenticated("Authentication required to join project channels")
    project = await load_project(db, project_id)
    ensure_allowed(Action.PROJECT_READ, user["_id"], project)


@router.websocket("/ws")
async def project_events(
    websocket: WebSocket,
    db: AsyncIOMotorDatabase = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    await websocket.accept()
    user = await resolve_user(db, websocket.query_params.get("token"))
    client = f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "unknown"
    logger.info("A client connected: %s", client)

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except (ValueError, KeyError):
                # Undecodable text or a binary frame
                message = None
            if not isinstance(message, dict):
                message = {}
            kind = message.get("type")
            project_id = message.get("project_id")
            if not isinstance(project_id, str):
                project_id = ""

            if kind == "join-project" and project_id:
                try:
                    await authorize_join(db, user, project_id)
                except DomainError as exc:
                    await websocket.send_json({"type": "error", "kind": exc.kind, "message": exc.message})
                    continue
                bus.join(project_id, websocket)
                logger.info("Client %s joined project: %s", client, project_id)
                await websocket.send_json({"type": "joined", "project_id": project_id})
            elif kind == "leave-project" and project_id:
                bus.leave(project_id, websocket)
                await websocket.send_json({"type": "left", "project_id": project_id})
            else:
                await websocket.send_json({
                    "type": "error",
                    "kind": "ValidationError",
                    "message": "Expected {'type': 'join-project' | 'leave-project', 'project_id': ...}",
                })
    except WebSocketDisconnect:
        logger.info("Client disconnected: %s", client)
    finally:
        bus.disconnect(websocket)
