"""Database models for the photo portfolio."""
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel


def new_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Gallery(SQLModel, table=True):
    """Gallery a photo can be shown in."""
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    slug: str = Field(index=True, unique=True)
    description: Optional[str] = None
    is_public: bool = False
    is_featured: bool = False
    user_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow)


class Photo(SQLModel, table=True):
    """One uploaded photo. ``image_id`` names its rendition directory."""
    id: str = Field(default_factory=new_id, primary_key=True)
    title: str
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    image_id: str = Field(index=True, unique=True)
    original_filename: str
    asset_footprint: int = 0
    user_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class GalleryPhoto(SQLModel, table=True):
    """Link table between galleries and photos with an explicit order."""
    __table_args__ = (UniqueConstraint("gallery_id", "photo_id"),)

    id: str = Field(default_factory=new_id, primary_key=True)
    gallery_id: str = Field(foreign_key="gallery.id", index=True)
    photo_id: str = Field(foreign_key="photo.id", index=True)
    sort_order: int = 0
    created_at: datetime = Field(default_factory=utcnow)


class Setting(SQLModel, table=True):
    """Per-owner key/value settings, grouped by category."""
    __table_args__ = (UniqueConstraint("user_id", "key"),)

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(index=True)
    key: str = Field(index=True)
    value: str
    type: str = "string"
    category: str = Field(default="general", index=True)
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
