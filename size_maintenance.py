"""
Custom size maintenance: adding and removing size definitions, and bringing
existing photos in line with them.
"""
import json
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

import config
from database import get_setting, set_setting
from errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from footprint import refresh_footprint
from models import Photo
from photos import owned_photos
from results import AddSizeResult, BackfillResult, CleanupResult, DeleteSizeResult
from sizes import IMAGE_SIZES_CATEGORY, SizeSpec, is_builtin, validate_size
from store import RenditionStore
from transcoder import ImageTranscoder

logger = logging.getLogger(__name__)


def _generate_one(
    store: RenditionStore, transcoder: ImageTranscoder, image_id: str, spec: SizeSpec
) -> None:
    source = store.read_source_for_regeneration(image_id)
    store.write_rendition(image_id, spec.name, transcoder.transcode(source, spec))


def backfill_size(
    store: RenditionStore,
    image_ids: List[str],
    spec: SizeSpec,
    transcoder: Optional[ImageTranscoder] = None,
    workers: int = 1,
) -> Tuple[BackfillResult, List[str]]:
    """
    Generate ``spec`` for each photo from its largest existing rendition.

    With ``workers`` > 1 the transcodes run on a bounded thread pool; results
    are always collected on the calling thread. Returns the aggregate result
    and the image ids that succeeded.
    """
    transcoder = transcoder or ImageTranscoder()
    result = BackfillResult()
    succeeded: List[str] = []

    def record(image_id: str, error: Optional[Exception]) -> None:
        if error is None:
            result.processed += 1
            succeeded.append(image_id)
        else:
            result.failed += 1
            result.errors.append(f"Failed to process {image_id}: {error}")
            logger.error(f"Error generating {spec.name} for {image_id}: {error}")

    if workers <= 1:
        for image_id in image_ids:
            try:
                _generate_one(store, transcoder, image_id, spec)
            except Exception as e:
                record(image_id, e)
            else:
                record(image_id, None)
    else:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(_generate_one, store, transcoder, image_id, spec): image_id
                for image_id in image_ids
            }
            for future in as_completed(futures):
                record(futures[future], future.exception())

    return result, succeeded


def cleanup_size(
    store: RenditionStore, image_ids: List[str], size_name: str
) -> Tuple[CleanupResult, List[str]]:
    """Remove one size's rendition from each photo, continuing past failures."""
    result = CleanupResult()
    succeeded: List[str] = []
    for image_id in image_ids:
        try:
            store.delete_rendition(image_id, size_name)
        except Exception as e:
            result.failed += 1
            result.errors.append(f"Failed to delete {size_name} from {image_id}: {e}")
            logger.error(f"Error deleting {size_name} from {image_id}: {e}")
        else:
            result.deleted += 1
            succeeded.append(image_id)
    return result, succeeded


def _refresh_footprints(
    session: Session, store: RenditionStore, photos: List[Photo], image_ids: List[str]
) -> None:
    touched = set(image_ids)
    for photo in photos:
        if photo.image_id in touched:
            refresh_footprint(session, store, photo)
    try:
        session.commit()
    except SQLAlchemyError as e:
        # files are already in place; the cached value is only a display figure
        session.rollback()
        logger.error(f"Failed to update asset footprints: {e}")


def add_size(
    session: Session,
    store: RenditionStore,
    owner: str,
    name: str,
    width: int,
    height: int,
    quality: int,
    process_existing: bool = False,
    transcoder: Optional[ImageTranscoder] = None,
    workers: int = config.BACKFILL_WORKERS,
) -> AddSizeResult:
    """
    Define a custom size for ``owner`` and optionally generate it for every
    photo they already have.

    Raises:
        ConflictError: the name is a built-in or existing custom size
        ValidationError: name or bounds are invalid
    """
    if is_builtin(name):
        raise ConflictError("Size name already exists in default sizes")
    validate_size(name, width, height, quality)
    if get_setting(session, owner, name):
        raise ConflictError("Size name already exists in custom sizes")

    spec = SizeSpec(name=name, width=width, height=height, quality=quality, is_custom=True)
    set_setting(
        session,
        owner,
        key=name,
        value=json.dumps(spec.config()),
        type="json",
        category=IMAGE_SIZES_CATEGORY,
        description=f"Custom image size: {width}x{height} @ {quality}% quality",
    )
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise ConflictError("Size name already exists in custom sizes") from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Failed to save image size {name}: {e}")
        raise PersistenceError("Failed to add image size") from e

    photos = owned_photos(session, owner)
    result = AddSizeResult(spec=spec, photo_count=len(photos))
    logger.info(f"Added image size {name} ({width}x{height} @ {quality}) for {owner}")

    if process_existing and photos:
        image_ids = [p.image_id for p in photos]
        result.processing, done = backfill_size(store, image_ids, spec, transcoder, workers)
        _refresh_footprints(session, store, photos, done)
        logger.info(
            f"Backfilled {name}: {result.processing.processed} processed, "
            f"{result.processing.failed} failed"
        )
    return result


def delete_size(
    session: Session,
    store: RenditionStore,
    owner: str,
    name: str,
    delete_existing_images: bool = False,
) -> DeleteSizeResult:
    """
    Remove a custom size definition and optionally its files.

    Raises:
        ValidationError: ``name`` is a built-in size
        NotFoundError: no such custom size
    """
    if is_builtin(name):
        raise ValidationError("Cannot delete default image sizes")
    row = get_setting(session, owner, name)
    if not row or row.category != IMAGE_SIZES_CATEGORY:
        raise NotFoundError("Custom size not found")

    photos = owned_photos(session, owner)
    result = DeleteSizeResult(size_name=name, photo_count=len(photos))

    session.delete(row)
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Failed to delete image size {name}: {e}")
        raise PersistenceError("Failed to delete image size") from e
    logger.info(f"Deleted image size {name} for {owner}")

    if delete_existing_images and photos:
        image_ids = [p.image_id for p in photos]
        result.cleanup, done = cleanup_size(store, image_ids, name)
        _refresh_footprints(session, store, photos, done)
    return result
