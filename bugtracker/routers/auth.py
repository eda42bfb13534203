# bugtracker/routers/auth.py
from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from motor.motor_asyncio import AsyncIOMotorDatabase
from bugtracker.dependencies import get_db, get_current_user, get_bearer_token
from bugtracker.schemas.user import UserCreate, ProfileUpdate
from bugtracker.serializers import public_user, serialize_doc
from bugtracker.services import users as user_service

router = APIRouter(prefix="/auth", tags=["Auth"])

# -------------------------
# Register Route
# -------------------------
@router.post("/register", status_code=201)
async def register(user: UserCreate, db: AsyncIOMotorDatabase = Depends(get_db)):
    created = await user_service.register(db, user.name, user.email, user.password)
    return serialize_doc(created)

# -------------------------
# Login Route
# -------------------------
@router.post("/login")
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return serialize_doc(await user_service.login(db, form_data.username, form_data.password))

# -------------------------
# Current User
# -------------------------
@router.get("/me")
async def read_me(current_user: dict = Depends(get_current_user)):
    return serialize_doc(public_user(current_user))

# -------------------------
# Profile Update (keeps the presented token)
# -------------------------
@router.put("/profile")
async def update_profile(
    data: ProfileUpdate,
    token: str = Depends(get_bearer_token),
    db: AsyncIOMotorDatabase = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    fields = data.model_dump(exclude_unset=True)
    updated = await user_service.update_profile(db, current_user["_id"], token, fields)
    return serialize_doc(updated)
