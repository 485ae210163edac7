from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, field_validator
from pymongo.database import Database

from database import CATEGORIES, USERS, create_document, ensure_unique, get_db, populate, serialize
from errors import NotFoundError
from schemas import Category, slugify
from security import CurrentUser, ensure_owner_or_admin, protect

router = APIRouter(prefix="/categories", tags=["categories"])


class CategoryPayload(BaseModel):
    name: str
    description: Optional[str] = Field(None, max_length=500)

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        if len(value) > 50:
            raise ValueError("Name cannot be more than 50 characters")
        return value


def _find_category(db: Database, id_or_slug: str) -> dict:
    """Look up by ObjectId, or by slug when the value is not an id."""
    if len(id_or_slug) == 24 and ObjectId.is_valid(id_or_slug):
        query = {"_id": ObjectId(id_or_slug)}
    else:
        query = {"slug": id_or_slug}
    category = db[CATEGORIES].find_one(query)
    if not category:
        raise NotFoundError("Category not found")
    return category


@router.get("")
def get_categories(db: Database = Depends(get_db)):
    categories = list(db[CATEGORIES].find().sort("name", 1))
    return {"success": True, "count": len(categories), "data": serialize(categories)}


@router.get("/{category_id}")
def get_category(category_id: str, db: Database = Depends(get_db)):
    category = _find_category(db, category_id)
    populate(db, [category], "user", USERS, ("name",))
    return {"success": True, "data": serialize(category)}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_category(
    payload: CategoryPayload,
    current_user: CurrentUser = Depends(protect),
    db: Database = Depends(get_db),
):
    category = Category(
        name=payload.name,
        description=payload.description,
        user=current_user.object_id,
    )
    ensure_unique(db, CATEGORIES, "name", category.name)
    ensure_unique(db, CATEGORIES, "slug", category.slug)
    category_id = create_document(db, CATEGORIES, category.to_document())
    return {"success": True, "data": serialize(db[CATEGORIES].find_one({"_id": category_id}))}


@router.put("/{category_id}")
def update_category(
    category_id: str,
    payload: CategoryPayload,
    current_user: CurrentUser = Depends(protect),
    db: Database = Depends(get_db),
):
    category = _find_category(db, category_id)
    ensure_owner_or_admin(category["user"], current_user, "Not authorized to update this category")

    changes = payload.model_dump(exclude_unset=True)
    changes["slug"] = slugify(changes["name"])
    ensure_unique(db, CATEGORIES, "name", changes["name"], exclude_id=category["_id"])
    ensure_unique(db, CATEGORIES, "slug", changes["slug"], exclude_id=category["_id"])

    db[CATEGORIES].update_one({"_id": category["_id"]}, {"$set": changes})
    return {"success": True, "data": serialize(db[CATEGORIES].find_one({"_id": category["_id"]}))}


@router.delete("/{category_id}")
def delete_category(
    category_id: str,
    current_user: CurrentUser = Depends(protect),
    db: Database = Depends(get_db),
):
    category = _find_category(db, category_id)
    ensure_owner_or_admin(category["user"], current_user, "Not authorized to delete this category")

    db[CATEGORIES].delete_one({"_id": category["_id"]})
    return {"success": True, "data": {}}
