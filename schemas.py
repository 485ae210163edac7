"""
Database Schemas

Each Pydantic model describes the documents of one MongoDB collection:
- User -> "users" collection
- Category -> "categories" collection
- Post -> "posts" collection (comments are embedded)

Models carry defaults and the pre-save normalization (slug derivation).
Build a model, then store model.to_document().
"""

import re
from datetime import datetime
from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from database import now_utc

DEFAULT_POST_IMAGE = "default-post.jpg"

_NON_WORD = re.compile(r"[^\w\s-]", re.ASCII)
_SEPARATORS = re.compile(r"[\s_-]+", re.ASCII)


def slugify(text: str) -> str:
    """Lowercase, drop non-word characters, hyphenate runs of separators, trim hyphens."""
    slug = _NON_WORD.sub("", text.lower())
    slug = _SEPARATORS.sub("-", slug)
    return slug.strip("-")


class Document(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, str_strip_whitespace=True)

    def to_document(self) -> dict:
        return self.model_dump()


class User(Document):
    """
    Registered users
    Collection: "users"
    """
    name: str = Field(..., min_length=1, description="Display name")
    email: EmailStr = Field(..., description="Unique email address")
    password: str = Field(..., description="BCrypt password hash")
    avatar: Optional[str] = Field(None, description="Optional avatar URL")
    bio: Optional[str] = Field(None, max_length=500)
    location: Optional[str] = None
    website: Optional[str] = None
    role: Literal["user", "admin"] = "user"
    created_at: datetime = Field(default_factory=now_utc)

    def to_document(self) -> dict:
        doc = self.model_dump()
        doc["email"] = doc["email"].lower()
        return doc


class Category(Document):
    """
    Post categories
    Collection: "categories"
    """
    name: str = Field(..., min_length=1, max_length=50)
    slug: str = ""
    description: Optional[str] = Field(None, max_length=500)
    user: ObjectId = Field(..., description="Creator")
    created_at: datetime = Field(default_factory=now_utc)

    @model_validator(mode="after")
    def derive_slug(self):
        self.slug = slugify(self.name)
        return self


class Comment(Document):
    """
    Comment embedded in a post's comments list
    """
    id: ObjectId = Field(default_factory=ObjectId)
    author: ObjectId
    text: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=now_utc)

    def to_document(self) -> dict:
        doc = self.model_dump()
        doc["_id"] = doc.pop("id")
        return doc


class Post(Document):
    """
    Blog posts
    Collection: "posts"
    """
    title: str = Field(..., min_length=1, max_length=200)
    slug: str = ""
    content: str = Field(..., min_length=10)
    image: str = DEFAULT_POST_IMAGE
    category: ObjectId
    author: ObjectId
    published: bool = True
    tags: List[str] = Field(default_factory=list)
    likes: List[ObjectId] = Field(default_factory=list)
    comments: List[dict] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)

    @model_validator(mode="after")
    def derive_slug(self):
        self.slug = slugify(self.title)
        return self
