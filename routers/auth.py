from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field, field_validator
from pymongo.database import Database

from database import USERS, create_document, ensure_unique, get_db, get_documents, to_object_id
from errors import AuthError, BadRequestError, NotFoundError
from schemas import User
from security import (
    CurrentUser,
    authorize,
    get_password_hash,
    protect,
    public_user,
    token_for_user,
    verify_password,
)

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str

    @field_validator("name")
    @classmethod
    def name_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value

    @field_validator("password")
    @classmethod
    def password_length(cls, value: str) -> str:
        if len(value) < 6:
            raise ValueError("Password must be at least 6 characters")
        return value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UpdateDetailsRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    avatar: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=500)
    location: Optional[str] = None
    website: Optional[str] = None


class UpdatePasswordRequest(BaseModel):
    currentPassword: str = Field(..., min_length=1)
    newPassword: str

    @field_validator("newPassword")
    @classmethod
    def password_length(cls, value: str) -> str:
        if len(value) < 6:
            raise ValueError("Password must be at least 6 characters")
        return value


def _token_response(user_doc: dict) -> dict:
    return {
        "success": True,
        "token": token_for_user(user_doc["_id"]),
        "user": public_user(user_doc),
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Database = Depends(get_db)):
    email = payload.email.lower()
    if db[USERS].find_one({"email": email}):
        raise BadRequestError("Email is already registered")

    user = User(name=payload.name, email=email, password=get_password_hash(payload.password))
    user_id = create_document(db, USERS, user.to_document())
    return _token_response(db[USERS].find_one({"_id": user_id}))


@router.post("/login")
def login(payload: LoginRequest, db: Database = Depends(get_db)):
    user = db[USERS].find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("password", "")):
        raise AuthError("Invalid credentials")
    return _token_response(user)


@router.get("/me")
def get_me(current_user: CurrentUser = Depends(protect), db: Database = Depends(get_db)):
    doc = db[USERS].find_one({"_id": current_user.object_id})
    return {"success": True, "data": public_user(doc)}


@router.put("/updatedetails")
def update_details(
    payload: UpdateDetailsRequest,
    current_user: CurrentUser = Depends(protect),
    db: Database = Depends(get_db),
):
    changes = {
        k: v for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k not in ("name", "email")
    }
    if changes.get("email"):
        changes["email"] = changes["email"].lower()
        ensure_unique(db, USERS, "email", changes["email"], exclude_id=current_user.object_id)
    if changes:
        db[USERS].update_one({"_id": current_user.object_id}, {"$set": changes})
    doc = db[USERS].find_one({"_id": current_user.object_id})
    return {"success": True, "data": public_user(doc)}


@router.put("/updatepassword")
def update_password(
    payload: UpdatePasswordRequest,
    current_user: CurrentUser = Depends(protect),
    db: Database = Depends(get_db),
):
    doc = db[USERS].find_one({"_id": current_user.object_id})
    if not verify_password(payload.currentPassword, doc.get("password", "")):
        raise AuthError("Password is incorrect")

    db[USERS].update_one(
        {"_id": current_user.object_id},
        {"$set": {"password": get_password_hash(payload.newPassword)}},
    )
    return _token_response(doc)


@router.get("/logout")
def logout():
    # Tokens are stateless; the client discards its copy.
    return {"success": True, "data": {}}


@router.get("/users")
def list_users(
    _: CurrentUser = Depends(authorize("admin")),
    db: Database = Depends(get_db),
):
    users = [public_user(doc) for doc in get_documents(db, USERS, sort=[("created_at", -1)])]
    return {"success": True, "count": len(users), "data": users}


@router.get("/users/{user_id}")
def get_user_profile(user_id: str, db: Database = Depends(get_db)):
    doc = db[USERS].find_one({"_id": to_object_id(user_id)})
    if not doc:
        raise NotFoundError("User not found")
    profile = public_user(doc)
    profile.pop("email", None)
    return {"success": True, "data": profile}
