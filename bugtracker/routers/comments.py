# bugtracker/routers/comments.py
from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from bugtracker.dependencies import get_db, get_current_user
from bugtracker.schemas.comment import CommentCreate
from bugtracker.services import comments as comment_service

router = APIRouter(prefix="/comments", tags=["Comments"])


@router.post("", status_code=201)
async def add_comment(
    data: CommentCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    return await comment_service.add_comment(db, current_user["_id"], data.text, data.ticket_id)


@router.get("/ticket/{ticket_id}")
async def list_ticket_comments(
    ticket_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    return await comment_service.list_comments(db, ticket_id, current_user["_id"])


@router.delete("/{comment_id}")
async def delete_comment(
    comment_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    await comment_service.delete_comment(db, comment_id, current_user["_id"])
    return {"message": "Comment removed"}
