from typing import List, Optional

from bson.errors import InvalidId
from fastapi import APIRouter, Depends, File, Request, UploadFile, status
from pydantic import BaseModel, Field, field_validator
from pymongo.database import Database

from config import get_settings
from database import (
    CATEGORIES,
    POSTS,
    USERS,
    create_document,
    ensure_unique,
    get_db,
    now_utc,
    populate,
    serialize,
    to_object_id,
)
from errors import BadRequestError, ForbiddenError, NotFoundError
from queries import build_list_query, pagination
from schemas import Comment, Post, slugify
from security import CurrentUser, ensure_owner_or_admin, is_owner_or_admin, protect
import storage

router = APIRouter(prefix="/posts", tags=["posts"])

LIST_AUTHOR_FIELDS = ("name", "avatar")
DETAIL_AUTHOR_FIELDS = ("name", "avatar", "bio")
COMMENT_AUTHOR_FIELDS = ("name", "avatar")
CATEGORY_FIELDS = ("name",)


def _title_rules(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Title is required")
    if len(value) > 200:
        raise ValueError("Title cannot be more than 200 characters")
    return value


def _content_rules(value: str) -> str:
    if not value.strip():
        raise ValueError("Content is required")
    if len(value.strip()) < 10:
        raise ValueError("Content must be at least 10 characters")
    return value


class PostCreate(BaseModel):
    title: str
    content: str
    category: str = Field(..., min_length=1)
    published: bool = True
    tags: List[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def check_title(cls, value: str) -> str:
        return _title_rules(value)

    @field_validator("content")
    @classmethod
    def check_content(cls, value: str) -> str:
        return _content_rules(value)


class PostUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    published: Optional[bool] = None
    tags: Optional[List[str]] = None

    @field_validator("title")
    @classmethod
    def check_title(cls, value):
        return value if value is None else _title_rules(value)

    @field_validator("content")
    @classmethod
    def check_content(cls, value):
        return value if value is None else _content_rules(value)


class CommentCreate(BaseModel):
    text: str

    @field_validator("text")
    @classmethod
    def text_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Text is required")
        return value


def _category_id(db: Database, raw: str):
    try:
        category_id = to_object_id(raw)
    except InvalidId:
        raise BadRequestError("Invalid category id")
    if db[CATEGORIES].find_one({"_id": category_id}, {"_id": 1}) is None:
        raise NotFoundError("Category not found")
    return category_id


def _find_post(db: Database, post_id: str) -> dict:
    post = db[POSTS].find_one({"_id": to_object_id(post_id)})
    if not post:
        raise NotFoundError("Post not found")
    return post


def _format_size(limit: int) -> str:
    return f"{limit / 1_000_000:g}MB"


def _list_posts(db: Database, request: Request, base_filter: Optional[dict] = None) -> dict:
    query = build_list_query(dict(request.query_params), base_filter)

    cursor = (
        db[POSTS]
        .find(query.filter, query.projection)
        .sort(query.sort)
        .skip(query.skip)
        .limit(query.limit)
    )
    posts = list(cursor)
    total = db[POSTS].count_documents(query.filter)

    if query.selects("author"):
        populate(db, posts, "author", USERS, LIST_AUTHOR_FIELDS)
    if query.selects("category"):
        populate(db, posts, "category", CATEGORIES, CATEGORY_FIELDS)

    return {
        "success": True,
        "count": len(posts),
        "pagination": pagination(query.page, query.limit, total),
        "data": serialize(posts),
    }


@router.get("")
def get_posts(request: Request, db: Database = Depends(get_db)):
    return _list_posts(db, request)


@router.get("/user/{user_id}")
def get_user_posts(user_id: str, request: Request, db: Database = Depends(get_db)):
    return _list_posts(db, request, base_filter={"author": to_object_id(user_id)})


@router.post("", status_code=status.HTTP_201_CREATED)
def create_post(
    payload: PostCreate,
    current_user: CurrentUser = Depends(protect),
    db: Database = Depends(get_db),
):
    post = Post(
        title=payload.title,
        content=payload.content,
        category=_category_id(db, payload.category),
        author=current_user.object_id,
        published=payload.published,
        tags=payload.tags,
    )
    ensure_unique(db, POSTS, "slug", post.slug)
    post_id = create_document(db, POSTS, post.to_document())
    return {"success": True, "data": serialize(db[POSTS].find_one({"_id": post_id}))}


@router.get("/{post_id}")
def get_post(post_id: str, db: Database = Depends(get_db)):
    post = _find_post(db, post_id)
    populate(db, [post], "author", USERS, DETAIL_AUTHOR_FIELDS)
    populate(db, [post], "category", CATEGORIES, CATEGORY_FIELDS)
    populate(db, post.get("comments", []), "author", USERS, COMMENT_AUTHOR_FIELDS)
    return {"success": True, "data": serialize(post)}


@router.put("/{post_id}")
def update_post(
    post_id: str,
    payload: PostUpdate,
    current_user: CurrentUser = Depends(protect),
    db: Database = Depends(get_db),
):
    post = _find_post(db, post_id)
    ensure_owner_or_admin(post["author"], current_user, "Not authorized to update this post")

    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if "category" in changes:
        changes["category"] = _category_id(db, changes["category"])
    if "title" in changes:
        changes["slug"] = slugify(changes["title"])
        ensure_unique(db, POSTS, "slug", changes["slug"], exclude_id=post["_id"])
    changes["updated_at"] = now_utc()

    db[POSTS].update_one({"_id": post["_id"]}, {"$set": changes})
    return {"success": True, "data": serialize(db[POSTS].find_one({"_id": post["_id"]}))}


@router.delete("/{post_id}")
def delete_post(
    post_id: str,
    current_user: CurrentUser = Depends(protect),
    db: Database = Depends(get_db),
):
    post = _find_post(db, post_id)
    ensure_owner_or_admin(post["author"], current_user, "Not authorized to delete this post")

    storage.delete_image(post.get("image"))
    db[POSTS].delete_one({"_id": post["_id"]})
    return {"success": True, "data": {}}


@router.put("/{post_id}/image")
def upload_post_image(
    post_id: str,
    file: Optional[UploadFile] = File(None),
    current_user: CurrentUser = Depends(protect),
    db: Database = Depends(get_db),
):
    post = _find_post(db, post_id)
    ensure_owner_or_admin(post["author"], current_user, "Not authorized to update this post")

    if file is None:
        raise BadRequestError("Please upload a file")
    if not (file.content_type or "").startswith("image"):
        raise BadRequestError("Please upload an image file")

    limit = get_settings().upload_size_limit
    content = file.file.read()
    if len(content) > limit:
        raise BadRequestError(f"Please upload an image less than {_format_size(limit)}")

    filename = storage.post_image_name(post["_id"], file.filename)
    if post.get("image") != filename:
        storage.delete_image(post.get("image"))
    storage.save_image(filename, content)

    db[POSTS].update_one(
        {"_id": post["_id"]},
        {"$set": {"image": filename, "updated_at": now_utc()}},
    )
    return {"success": True, "data": filename}


@router.post("/{post_id}/comments")
def add_comment(
    post_id: str,
    payload: CommentCreate,
    current_user: CurrentUser = Depends(protect),
    db: Database = Depends(get_db),
):
    post = _find_post(db, post_id)
    comment = Comment(author=current_user.object_id, text=payload.text).to_document()

    db[POSTS].update_one(
        {"_id": post["_id"]},
        {
            "$push": {"comments": {"$each": [comment], "$position": 0}},
            "$set": {"updated_at": now_utc()},
        },
    )
    stored = db[POSTS].find_one({"_id": post["_id"]}, {"comments": 1})
    comment = next(c for c in stored["comments"] if c["_id"] == comment["_id"])
    populate(db, [comment], "author", USERS, COMMENT_AUTHOR_FIELDS)
    return {"success": True, "data": serialize(comment)}


@router.delete("/{post_id}/comments/{comment_id}")
def remove_comment(
    post_id: str,
    comment_id: str,
    current_user: CurrentUser = Depends(protect),
    db: Database = Depends(get_db),
):
    post = _find_post(db, post_id)
    comments = {str(c["_id"]): c for c in post.get("comments", [])}
    comment = comments.get(comment_id)
    if comment is None:
        raise NotFoundError("Comment not found")

    if not (is_owner_or_admin(comment["author"], current_user) or str(post["author"]) == current_user.id):
        raise ForbiddenError("Not authorized to delete this comment")

    db[POSTS].update_one(
        {"_id": post["_id"]},
        {
            "$pull": {"comments": {"_id": comment["_id"]}},
            "$set": {"updated_at": now_utc()},
        },
    )
    return {"success": True, "data": {}}


@router.put("/{post_id}/like")
def like_post(
    post_id: str,
    current_user: CurrentUser = Depends(protect),
    db: Database = Depends(get_db),
):
    post = _find_post(db, post_id)
    if current_user.object_id in post.get("likes", []):
        raise BadRequestError("Post already liked")

    # newest like first; the $ne guard keeps a racing second like out
    db[POSTS].update_one(
        {"_id": post["_id"], "likes": {"$ne": current_user.object_id}},
        {
            "$push": {"likes": {"$each": [current_user.object_id], "$position": 0}},
            "$set": {"updated_at": now_utc()},
        },
    )
    likes = db[POSTS].find_one({"_id": post["_id"]}, {"likes": 1}).get("likes", [])
    return {"success": True, "data": serialize(likes)}


@router.put("/{post_id}/unlike")
def unlike_post(
    post_id: str,
    current_user: CurrentUser = Depends(protect),
    db: Database = Depends(get_db),
):
    post = _find_post(db, post_id)
    if current_user.object_id not in post.get("likes", []):
        raise BadRequestError("Post has not yet been liked")

    db[POSTS].update_one(
        {"_id": post["_id"]},
        {"$pull": {"likes": current_user.object_id}, "$set": {"updated_at": now_utc()}},
    )
    likes = db[POSTS].find_one({"_id": post["_id"]}, {"likes": 1}).get("likes", [])
    return {"success": True, "data": serialize(likes)}
