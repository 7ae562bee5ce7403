"""
Photo lifecycle: upload, metadata update, deletion and the bulk variants.

These functions are the only place that changes both a photo's database row
and its rendition directory, so the two are kept in step here.
"""
import logging
import threading
from collections import Counter
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import String, cast, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

import config
from errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from footprint import compute_footprint
from models import Gallery, GalleryPhoto, Photo, new_id, utcnow
from results import BulkAddResult, BulkDeleteResult, FailedItem
from sizes import SizeRegistry
from store import RenditionStore
from transcoder import ImageTranscoder

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 100

# -------------------------------
# Per-photo locking
# -------------------------------
_locks: Dict[str, threading.Lock] = {}
_lock_users: Counter = Counter()
_locks_guard = threading.Lock()


@contextmanager
def photo_lock(image_id: str):
    """Serialize multi-step operations on one photo within this process."""
    with _locks_guard:
        lock = _locks.setdefault(image_id, threading.Lock())
        _lock_users[image_id] += 1
    try:
        with lock:
            yield
    finally:
        with _locks_guard:
            _lock_users[image_id] -= 1
            if not _lock_users[image_id]:
                del _lock_users[image_id]
                _locks.pop(image_id, None)


# -------------------------------
# Validation helpers
# -------------------------------
def validate_upload(data: bytes, content_type: Optional[str]) -> None:
    if (content_type or "").lower() not in config.ALLOWED_CONTENT_TYPES:
        raise ValidationError(
            "Invalid file type. Only JPEG, PNG, and WebP images are allowed."
        )
    if len(data) > config.MAX_UPLOAD_BYTES:
        max_mb = config.MAX_UPLOAD_BYTES // (1024 * 1024)
        raise ValidationError(f"File size too large. Maximum size is {max_mb}MB.")


def validate_title(title: Optional[str]) -> str:
    if not title or not title.strip():
        raise ValidationError("Photo title is required")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Photo title must be at most {MAX_TITLE_LENGTH} characters")
    return title


def clean_tags(tags: Optional[Iterable[str]]) -> List[str]:
    return [t.strip() for t in (tags or []) if t and t.strip()]


def require_photo(session: Session, photo_id: str) -> Photo:
    photo = session.get(Photo, photo_id)
    if not photo:
        raise NotFoundError("Photo not found")
    return photo


def require_gallery(session: Session, gallery_id: str) -> Gallery:
    gallery = session.get(Gallery, gallery_id)
    if not gallery:
        raise NotFoundError("Gallery not found")
    return gallery


def require_photos(session: Session, photo_ids: Sequence[str]) -> List[Photo]:
    """
    Load every requested photo, in request order without repeats.

    Raises NotFoundError naming the missing ids if any is unknown.
    """
    if not photo_ids:
        raise ValidationError("At least one photo must be selected")
    unique_ids = list(dict.fromkeys(photo_ids))
    found = {
        p.id: p for p in session.exec(select(Photo).where(Photo.id.in_(unique_ids))).all()
    }
    missing = [pid for pid in unique_ids if pid not in found]
    if missing:
        raise NotFoundError(f"Some photos not found: {', '.join(missing)}", missing)
    return [found[pid] for pid in unique_ids]


def next_sort_order(session: Session, gallery_id: str) -> int:
    current = session.exec(
        select(func.max(GalleryPhoto.sort_order)).where(GalleryPhoto.gallery_id == gallery_id)
    ).one()
    return (current or 0) + 1


def _commit(session: Session, action: str) -> None:
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Failed to {action}: {e}")
        raise PersistenceError(f"Failed to {action}") from e


# -------------------------------
# Single photo operations
# -------------------------------
def upload(
    session: Session,
    store: RenditionStore,
    registry: SizeRegistry,
    data: bytes,
    filename: str,
    content_type: Optional[str],
    title: str,
    description: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
    gallery_id: Optional[str] = None,
    transcoder: Optional[ImageTranscoder] = None,
) -> Photo:
    """
    Store a new photo with a rendition for every size in ``registry``.

    The photo row is inserted only after every rendition is on disk. If
    anything fails after processing starts, the photo's directory is removed
    again before the error propagates.
    """
    validate_upload(data, content_type)
    title = validate_title(title)
    if gallery_id:
        require_gallery(session, gallery_id)

    transcoder = transcoder or ImageTranscoder()
    image_id = new_id()
    specs = list(registry.sizes.values())

    with photo_lock(image_id):
        try:
            img = transcoder.decode(data)
            for spec in specs:
                store.write_rendition(image_id, spec.name, transcoder.encode(img, spec))
            footprint = compute_footprint(store, image_id)

            photo = Photo(
                title=title,
                description=description or None,
                tags=clean_tags(tags),
                image_id=image_id,
                original_filename=filename,
                asset_footprint=footprint,
                user_id=registry.owner,
            )
            session.add(photo)
            if gallery_id:
                session.add(
                    GalleryPhoto(
                        gallery_id=gallery_id,
                        photo_id=photo.id,
                        sort_order=next_sort_order(session, gallery_id),
                    )
                )
            session.commit()
            session.refresh(photo)
        except Exception as e:
            session.rollback()
            store.delete_all_renditions(image_id)
            if isinstance(e, SQLAlchemyError):
                logger.error(f"Error saving photo {image_id}: {e}")
                raise PersistenceError("Failed to upload photo") from e
            raise

    logger.info(
        f"Uploaded {filename} as {image_id}: {len(specs)} renditions, {footprint} bytes"
    )
    return photo


def update(
    session: Session,
    photo_id: str,
    title: str,
    description: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
) -> Photo:
    """Change a photo's metadata. No files are touched."""
    photo = require_photo(session, photo_id)
    title = validate_title(title)
    with photo_lock(photo.image_id):
        photo.title = title
        photo.description = description or None
        photo.tags = clean_tags(tags)
        photo.updated_at = utcnow()
        session.add(photo)
        _commit(session, "update photo")
        session.refresh(photo)
    return photo


def _remove(session: Session, store: RenditionStore, photo: Photo) -> None:
    # files first; a filesystem problem must not keep the row alive
    store.delete_all_renditions(photo.image_id)
    for link in session.exec(select(GalleryPhoto).where(GalleryPhoto.photo_id == photo.id)).all():
        session.delete(link)
    session.delete(photo)
    _commit(session, f"delete photo {photo.id}")


def delete(session: Session, store: RenditionStore, photo_id: str) -> None:
    """Delete a photo's renditions, gallery links and row."""
    photo = require_photo(session, photo_id)
    image_id = photo.image_id
    with photo_lock(image_id):
        _remove(session, store, photo)
    logger.info(f"Deleted photo {photo_id} ({image_id})")


def get_photo(session: Session, photo_id: str) -> Photo:
    return require_photo(session, photo_id)


def list_photos(
    session: Session,
    search: Optional[str] = None,
    gallery_id: Optional[str] = None,
    limit: int = 10,
    offset: int = 0,
) -> List[Photo]:
    """Newest first, optionally filtered by text or gallery."""
    stmt = select(Photo)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(
            or_(
                Photo.title.like(pattern),
                Photo.description.like(pattern),
                cast(Photo.tags, String).like(pattern),
            )
        )
    if gallery_id:
        stmt = stmt.join(GalleryPhoto, Photo.id == GalleryPhoto.photo_id).where(
            GalleryPhoto.gallery_id == gallery_id
        )
    stmt = stmt.order_by(Photo.created_at.desc()).offset(offset).limit(limit)
    return session.exec(stmt).all()


def photo_count(session: Session, owner: Optional[str] = None) -> int:
    stmt = select(func.count()).select_from(Photo)
    if owner:
        stmt = stmt.where(Photo.user_id == owner)
    return session.exec(stmt).one()


def owned_photos(session: Session, owner: str) -> List[Photo]:
    return session.exec(
        select(Photo).where(Photo.user_id == owner).order_by(Photo.created_at)
    ).all()


# -------------------------------
# Gallery membership
# -------------------------------
def add_to_gallery(session: Session, photo_id: str, gallery_id: str) -> GalleryPhoto:
    require_photo(session, photo_id)
    require_gallery(session, gallery_id)
    link = GalleryPhoto(
        gallery_id=gallery_id,
        photo_id=photo_id,
        sort_order=next_sort_order(session, gallery_id),
    )
    session.add(link)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise ConflictError("Photo is already in this gallery") from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Failed to add photo {photo_id} to gallery {gallery_id}: {e}")
        raise PersistenceError("Failed to add photo to gallery") from e
    session.refresh(link)
    return link


def remove_from_gallery(session: Session, photo_id: str, gallery_id: str) -> None:
    link = session.exec(
        select(GalleryPhoto).where(
            GalleryPhoto.photo_id == photo_id, GalleryPhoto.gallery_id == gallery_id
        )
    ).first()
    if link:
        session.delete(link)
        _commit(session, "remove photo from gallery")


def reorder_in_gallery(
    session: Session, gallery_id: str, photo_orders: Iterable[Tuple[str, int]]
) -> int:
    """Set explicit sort orders. Returns how many links were updated."""
    require_gallery(session, gallery_id)
    updated = 0
    for photo_id, sort_order in photo_orders:
        link = session.exec(
            select(GalleryPhoto).where(
                GalleryPhoto.photo_id == photo_id, GalleryPhoto.gallery_id == gallery_id
            )
        ).first()
        if link:
            link.sort_order = sort_order
            session.add(link)
            updated += 1
    _commit(session, "reorder photos")
    return updated


# -------------------------------
# Bulk operations
# -------------------------------
def bulk_delete(
    session: Session, store: RenditionStore, photo_ids: Sequence[str]
) -> BulkDeleteResult:
    """
    Delete several photos, each independently.

    Every id must exist before anything is deleted. After that a failure on
    one photo is recorded and the rest still go ahead. Repeated ids count once.
    """
    photos = require_photos(session, photo_ids)
    result = BulkDeleteResult(total=len(photos))

    targets = [(p, p.id, p.image_id) for p in photos]
    for photo, photo_id, image_id in targets:
        try:
            with photo_lock(image_id):
                _remove(session, store, photo)
            result.deleted.append(photo_id)
        except Exception as e:
            logger.error(f"Error deleting photo {photo_id}: {e}")
            result.failed.append(FailedItem(id=photo_id, error=str(e)))

    logger.info(
        f"Bulk delete: {len(result.deleted)} deleted, {len(result.failed)} failed "
        f"of {result.total}"
    )
    return result


def bulk_add_to_gallery(
    session: Session, photo_ids: Sequence[str], gallery_id: str
) -> BulkAddResult:
    """Link photos to a gallery, skipping those already in it. Repeated ids count once."""
    photos = require_photos(session, photo_ids)
    require_gallery(session, gallery_id)
    result = BulkAddResult(total=len(photos))

    wanted = [p.id for p in photos]
    existing = set(
        session.exec(
            select(GalleryPhoto.photo_id).where(
                GalleryPhoto.gallery_id == gallery_id, GalleryPhoto.photo_id.in_(wanted)
            )
        ).all()
    )
    to_add = [pid for pid in wanted if pid not in existing]
    result.added = len(to_add)
    result.skipped = result.total - result.added
    if not to_add:
        return result

    sort_order = next_sort_order(session, gallery_id)
    for photo_id in to_add:
        session.add(GalleryPhoto(gallery_id=gallery_id, photo_id=photo_id, sort_order=sort_order))
        sort_order += 1
    _commit(session, "add photos to gallery")
    return result


def bulk_remove_from_gallery(
    session: Session, photo_ids: Sequence[str], gallery_id: str
) -> int:
    if not photo_ids:
        raise ValidationError("At least one photo must be selected")
    links = session.exec(
        select(GalleryPhoto).where(
            GalleryPhoto.gallery_id == gallery_id, GalleryPhoto.photo_id.in_(list(photo_ids))
        )
    ).all()
    for link in links:
        session.delete(link)
    _commit(session, "remove photos from gallery")
    return len(links)
