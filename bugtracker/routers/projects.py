# bugtracker/routers/projects.py
from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from bugtracker.dependencies import get_attachment_store, get_db, get_current_user
from bugtracker.schemas.project import ProjectCreate, ProjectUpdate, MemberAdd
from bugtracker.serializers import serialize_doc
from bugtracker.services import projects as project_service
from bugtracker.storage import AttachmentStore

router = APIRouter(prefix="/projects", tags=["Projects"])

# -----------------------------
# CREATE Project
# -----------------------------
@router.post("", status_code=201)
async def create_project(
    data: ProjectCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    project = await project_service.create_project(db, current_user["_id"], data.name, data.description)
    return serialize_doc(project)

# -----------------------------
# LIST Projects the caller belongs to
# -----------------------------
@router.get("")
async def list_projects(
    db: AsyncIOMotorDatabase = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    return serialize_doc(await project_service.list_projects(db, current_user["_id"]))

# -----------------------------
# GET Project Detail
# -----------------------------
@router.get("/{project_id}")
async def get_project(
    project_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    return serialize_doc(await project_service.get_project(db, project_id, current_user["_id"]))

# -----------------------------
# UPDATE Project
# -----------------------------
@router.put("/{project_id}")
async def update_project(
    project_id: str,
    data: ProjectUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    fields = data.model_dump(exclude_unset=True)
    project = await project_service.update_project(db, project_id, current_user["_id"], fields)
    return serialize_doc(project)

# -----------------------------
# DELETE Project
# -----------------------------
@router.delete("/{project_id}")
async def delete_project(
    project_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    store: AttachmentStore = Depends(get_attachment_store),
    current_user: dict = Depends(get_current_user)
):
    await project_service.delete_project(db, store, project_id, current_user["_id"])
    return {"message": "Project removed"}

# -----------------------------
# ADD Team Member (owner only)
# -----------------------------
@router.post("/{project_id}/members")
async def add_member(
    project_id: str,
    data: MemberAdd,
    db: AsyncIOMotorDatabase = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    project = await project_service.add_project_member(
        db, project_id, current_user["_id"], data.email, data.role
    )
    return serialize_doc(project)

# -----------------------------
# REMOVE Team Member (owner only)
# -----------------------------
@router.delete("/{project_id}/members/{user_id}")
async def remove_member(
    project_id: str,
    user_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    project = await project_service.remove_project_member(db, project_id, current_user["_id"], user_id)
    return serialize_doc(project)
