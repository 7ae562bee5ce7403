"""FastAPI routes for the photo portfolio."""
from typing import List as ListType
from typing import Optional

from fastapi import File, Form, Header, Query, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape
from sqlalchemy import String, cast, or_
from sqlmodel import select

import config
import photos
import size_maintenance
from database import get_session
from errors import NotFoundError
from footprint import format_bytes, usage_summary
from models import Gallery, GalleryPhoto, Photo
from schemas import (
    GalleryLink,
    GalleryOrder,
    GalleryPhotoIds,
    ImageSizeCreate,
    PhotoIds,
    PhotoUpdate,
    gallery_payload,
    photo_payload,
)
from sizes import load_registry
from store import RenditionStore

PAGE_SIZE_DEFAULT = 10
PUBLIC_PAGE_SIZE_MAX = 100
PUBLIC_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET",
    "Access-Control-Allow-Headers": "Content-Type",
}

# Jinja environment
jinja_env = Environment(
    loader=FileSystemLoader(str(config.TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)
jinja_env.filters["bytes"] = format_bytes


def render(name: str, **ctx) -> HTMLResponse:
    """Render template with context."""
    template = jinja_env.get_template(name)
    ctx.setdefault("title", "Portfolio")
    return HTMLResponse(template.render(**ctx))


def get_store() -> RenditionStore:
    return RenditionStore(config.PHOTOS_DIR)


def dashboard(x_owner_id: Optional[str] = Header(None)):
    """Storage usage and the image sizes in effect."""
    store = get_store()
    with get_session() as s:
        registry = load_registry(s, x_owner_id) if x_owner_id else None
        count = photos.photo_count(s, x_owner_id)
    return render(
        "dashboard.html",
        title="Dashboard",
        usage=usage_summary(store),
        sizes=registry.sizes if registry else None,
        photo_count=count,
    )


# -------------------------------
# Photos
# -------------------------------
def upload_photo(
    file: UploadFile = File(...),
    title: str = Form(...),
    description: Optional[str] = Form(None),
    tags: ListType[str] = Form([]),
    gallery_id: Optional[str] = Form(None),
    x_owner_id: str = Header(...),
):
    """Upload a photo and generate all of its renditions."""
    data = file.file.read()
    store = get_store()
    with get_session() as s:
        registry = load_registry(s, x_owner_id)
        photo = photos.upload(
            s,
            store,
            registry,
            data=data,
            filename=file.filename or "upload",
            content_type=file.content_type,
            title=title,
            description=description,
            tags=tags,
            gallery_id=gallery_id or None,
        )
        return {"photo": photo_payload(photo, store, registry.names())}


def list_photos(
    search: Optional[str] = Query(None),
    gallery_id: Optional[str] = Query(None),
    limit: int = Query(PAGE_SIZE_DEFAULT, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    """List photos, newest first."""
    store = get_store()
    with get_session() as s:
        rows = photos.list_photos(s, search=search, gallery_id=gallery_id, limit=limit, offset=offset)
        return {"photos": [photo_payload(p, store) for p in rows]}


def photo_count(x_owner_id: Optional[str] = Header(None)):
    with get_session() as s:
        return {"count": photos.photo_count(s, x_owner_id)}


def photo_detail(photo_id: str):
    """Single photo with a URL for each of its owner's sizes."""
    store = get_store()
    with get_session() as s:
        photo = photos.get_photo(s, photo_id)
        names = load_registry(s, photo.user_id).names()
        return {"photo": photo_payload(photo, store, names)}


def update_photo(photo_id: str, body: PhotoUpdate):
    """Update title, description and tags."""
    store = get_store()
    with get_session() as s:
        photo = photos.update(s, photo_id, body.title, body.description, body.tags)
        names = load_registry(s, photo.user_id).names()
        return {"photo": photo_payload(photo, store, names)}


def delete_photo(photo_id: str):
    """Delete a photo and its renditions."""
    with get_session() as s:
        photos.delete(s, get_store(), photo_id)
    return {"success": True}


def bulk_delete_photos(body: PhotoIds):
    """Bulk delete photos."""
    with get_session() as s:
        result = photos.bulk_delete(s, get_store(), body.photo_ids)
    return result.to_dict()


def bulk_add_to_gallery(body: GalleryPhotoIds):
    """Bulk add photos to a gallery."""
    with get_session() as s:
        result = photos.bulk_add_to_gallery(s, body.photo_ids, body.gallery_id)
    return result.to_dict()


def bulk_remove_from_gallery(body: GalleryPhotoIds):
    """Bulk remove photos from a gallery."""
    with get_session() as s:
        removed = photos.bulk_remove_from_gallery(s, body.photo_ids, body.gallery_id)
    return {"removed": removed, "success": True}


# -------------------------------
# Gallery membership
# -------------------------------
def add_photo_to_gallery(gallery_id: str, body: GalleryLink):
    with get_session() as s:
        link = photos.add_to_gallery(s, body.photo_id, gallery_id)
        return {
            "relation": {
                "id": link.id,
                "gallery_id": link.gallery_id,
                "photo_id": link.photo_id,
                "sort_order": link.sort_order,
            }
        }


def remove_photo_from_gallery(gallery_id: str, photo_id: str):
    with get_session() as s:
        photos.remove_from_gallery(s, photo_id, gallery_id)
    return {"success": True}


def reorder_gallery(gallery_id: str, body: GalleryOrder):
    with get_session() as s:
        updated = photos.reorder_in_gallery(
            s, gallery_id, [(o.photo_id, o.sort_order) for o in body.photo_orders]
        )
    return {"updated": updated, "success": True}


# -------------------------------
# Image size settings
# -------------------------------
def get_image_sizes(x_owner_id: str = Header(...)):
    """Built-in and custom sizes for the owner."""
    with get_session() as s:
        return {"sizes": load_registry(s, x_owner_id).to_dict()}


def add_image_size(body: ImageSizeCreate, x_owner_id: str = Header(...)):
    """Define a custom size, optionally generating it for existing photos."""
    with get_session() as s:
        result = size_maintenance.add_size(
            s,
            get_store(),
            x_owner_id,
            name=body.name,
            width=body.width,
            height=body.height,
            quality=body.quality,
            process_existing=body.process_existing,
        )
    return result.to_dict()


def delete_image_size(
    size_name: str,
    delete_existing_images: bool = Query(False),
    x_owner_id: str = Header(...),
):
    """Remove a custom size, optionally deleting its renditions."""
    with get_session() as s:
        result = size_maintenance.delete_size(
            s, get_store(), x_owner_id, size_name, delete_existing_images=delete_existing_images
        )
    return result.to_dict()


def storage_usage():
    """Disk used by renditions against the storage limit."""
    return usage_summary(get_store()).to_dict()


# -------------------------------
# Public read-only API
# -------------------------------
def public_galleries(
    featured: bool = Query(False),
    limit: int = Query(50, ge=1, le=PUBLIC_PAGE_SIZE_MAX),
    offset: int = Query(0, ge=0),
):
    """Public galleries with their first photo as cover."""
    store = get_store()
    with get_session() as s:
        galleries = s.exec(
            select(Gallery)
            .where(Gallery.is_public == True, Gallery.is_featured == featured)  # noqa: E712
            .order_by(Gallery.created_at.desc())
            .offset(offset)
            .limit(limit)
        ).all()
        payload = []
        for gallery in galleries:
            first = s.exec(
                select(Photo)
                .join(GalleryPhoto, Photo.id == GalleryPhoto.photo_id)
                .where(GalleryPhoto.gallery_id == gallery.id)
                .order_by(GalleryPhoto.sort_order)
                .limit(1)
            ).first()
            item = gallery_payload(gallery)
            item["first_photo"] = photo_payload(first, store) if first else None
            payload.append(item)
    return JSONResponse({"galleries": payload}, headers=PUBLIC_HEADERS)


def public_gallery_photos(gallery_id: str):
    """Photos of one public gallery in display order."""
    store = get_store()
    with get_session() as s:
        gallery = s.exec(
            select(Gallery).where(Gallery.id == gallery_id, Gallery.is_public == True)  # noqa: E712
        ).first()
        if not gallery:
            raise NotFoundError("Gallery not found or not public")
        rows = s.exec(
            select(Photo, GalleryPhoto.sort_order)
            .join(GalleryPhoto, Photo.id == GalleryPhoto.photo_id)
            .where(GalleryPhoto.gallery_id == gallery_id)
            .order_by(GalleryPhoto.sort_order)
        ).all()
        items = []
        for photo, sort_order in rows:
            item = photo_payload(photo, store)
            item.pop("user_id")
            item["sort_order"] = sort_order
            items.append(item)
        body = {"gallery": gallery_payload(gallery), "photos": items}
    return JSONResponse(body, headers=PUBLIC_HEADERS)


def public_search(
    q: Optional[str] = Query(None),
    tags: Optional[str] = Query(None),  # comma-separated, any of
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
):
    """Search photos that appear in public galleries."""
    limit = min(limit, PUBLIC_PAGE_SIZE_MAX)
    store = get_store()
    with get_session() as s:
        stmt = (
            select(Photo, Gallery)
            .join(GalleryPhoto, Photo.id == GalleryPhoto.photo_id)
            .join(Gallery, GalleryPhoto.gallery_id == Gallery.id)
            .where(Gallery.is_public == True)  # noqa: E712
        )
        if q:
            stmt = stmt.where(or_(Photo.title.contains(q), Photo.description.contains(q)))
        tag_names = [t.strip() for t in (tags or "").split(",") if t.strip()]
        if tag_names:
            stmt = stmt.where(
                or_(*[cast(Photo.tags, String).contains(f'"{t}"') for t in tag_names])
            )
        rows = s.exec(stmt.order_by(Photo.created_at.desc()).offset(offset).limit(limit)).all()
        items = []
        for photo, gallery in rows:
            item = photo_payload(photo, store)
            item.pop("user_id")
            item["gallery"] = {"name": gallery.name, "slug": gallery.slug}
            items.append(item)
    return JSONResponse(
        {
            "photos": items,
            "pagination": {"limit": limit, "offset": offset, "total": len(items)},
        },
        headers=PUBLIC_HEADERS,
    )
