"""Request bodies and JSON shapes for the API."""
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field

from models import Gallery, Photo
from store import RenditionStore


class PhotoUpdate(BaseModel):
    title: str = Field(..., description="Photo title")
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class PhotoIds(BaseModel):
    photo_ids: List[str] = Field(..., description="Selected photo ids")


class GalleryPhotoIds(PhotoIds):
    gallery_id: str


class PhotoOrder(BaseModel):
    photo_id: str
    sort_order: int


class GalleryOrder(BaseModel):
    photo_orders: List[PhotoOrder]


class GalleryLink(BaseModel):
    photo_id: str


class ImageSizeCreate(BaseModel):
    name: str
    width: int
    height: int
    quality: int
    process_existing: bool = False


def photo_payload(
    photo: Photo, store: RenditionStore, size_names: Optional[Iterable[str]] = None
) -> dict:
    """Photo fields plus the public URL of each rendition."""
    return {
        "id": photo.id,
        "title": photo.title,
        "description": photo.description,
        "tags": list(photo.tags or []),
        "image_id": photo.image_id,
        "original_filename": photo.original_filename,
        "asset_footprint": photo.asset_footprint,
        "user_id": photo.user_id,
        "created_at": photo.created_at.isoformat() if photo.created_at else None,
        "updated_at": photo.updated_at.isoformat() if photo.updated_at else None,
        "urls": store.rendition_urls(photo.image_id, size_names),
        "srcset": store.responsive_srcset(photo.image_id),
    }


def gallery_payload(gallery: Gallery) -> dict:
    return {
        "id": gallery.id,
        "name": gallery.name,
        "description": gallery.description,
        "slug": gallery.slug,
        "is_featured": gallery.is_featured,
    }
