# supportdesk/routers/auth.py
from fastapi import APIRouter, Depends

from supportdesk.dependencies import get_current_user, get_db, require_roles
from supportdesk.models import ADMIN
from supportdesk.schemas.auth import DeveloperCreate, LoginRequest, ProfileUpdate, RegisterRequest
from supportdesk.services import accounts
from supportdesk.services.accounts import public_user

router = APIRouter(prefix="/auth", tags=["Auth"])


# -----------------------------
# Register (public, license key required)
# -----------------------------
@router.post("/register", status_code=201)
async def register(data: RegisterRequest, db=Depends(get_db)):
    user, license, token = await accounts.register(db, data.name, data.email, data.password, data.licenseKey)
    return {
        "success": True,
        "message": "Registration successful! Welcome to Tashkhees.",
        "data": {"user": {**public_user(user), "product": license["product"]}, "token": token},
    }


# -----------------------------
# Login
# -----------------------------
@router.post("/login")
async def login(data: LoginRequest, db=Depends(get_db)):
    user, token = await accounts.login(db, data.email, data.password)
    return {
        "success": True,
        "message": "Login successful",
        "data": {"user": public_user(user), "token": token},
    }


# -----------------------------
# Developer accounts (admin only)
# -----------------------------
@router.post("/create-developer", status_code=201)
async def create_developer(data: DeveloperCreate, db=Depends(get_db), admin: dict = Depends(require_roles(ADMIN))):
    developer = await accounts.create_developer(db, data.name, data.email, data.password)
    return {
        "success": True,
        "message": f'Developer "{developer["name"]}" created successfully',
        "data": {"developer": public_user(developer)},
    }


@router.delete("/developer/{user_id}")
async def delete_developer(user_id: str, db=Depends(get_db), admin: dict = Depends(require_roles(ADMIN))):
    await accounts.delete_developer(db, user_id)
    return {"success": True, "message": "Developer deleted successfully"}


# -----------------------------
# Self service
# -----------------------------
@router.get("/me")
async def read_me(current_user: dict = Depends(get_current_user)):
    return {"success": True, "data": {"user": public_user(current_user, "profilePicture", "registeredProduct")}}


@router.put("/profile")
async def update_profile(data: ProfileUpdate, db=Depends(get_db), current_user: dict = Depends(get_current_user)):
    user = await accounts.update_profile(
        db,
        current_user,
        name=data.name,
        profile_picture=data.profilePicture,
        password=data.password,
        current_password=data.currentPassword,
    )
    return {
        "success": True,
        "message": "Profile updated successfully",
        "data": {"user": public_user(user, "profilePicture")},
    }
