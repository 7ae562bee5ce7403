"""Disk usage accounting for photos and the whole rendition store."""
import logging
from dataclasses import asdict, dataclass

from sqlmodel import Session

import config
from models import Photo, utcnow
from store import RenditionStore

logger = logging.getLogger(__name__)

BYTE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_bytes(num_bytes: int) -> str:
    """Human readable size, 1024-based, at most two decimals."""
    if num_bytes <= 0:
        return "0 B"
    value = float(num_bytes)
    unit = 0
    while value >= 1024 and unit < len(BYTE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {BYTE_UNITS[unit]}"


@dataclass
class UsageSummary:
    """
    Storage used against the quota.

    Attributes:
        used_bytes: Bytes under the rendition root
        limit_bytes: Quota
        percentage: used / limit as a percentage, clamped to [0, 100]
    """
    used_bytes: int
    limit_bytes: int
    percentage: float

    @property
    def used_formatted(self) -> str:
        return format_bytes(self.used_bytes)

    @property
    def limit_formatted(self) -> str:
        return format_bytes(self.limit_bytes)

    @property
    def usage_display(self) -> str:
        return f"{self.used_formatted} / {self.limit_formatted}"

    def to_dict(self) -> dict:
        data = asdict(self)
        data.update(
            used_formatted=self.used_formatted,
            limit_formatted=self.limit_formatted,
            usage_display=self.usage_display,
        )
        return data


def compute_footprint(store: RenditionStore, image_id: str) -> int:
    """Bytes occupied by every rendition of one photo."""
    return store.directory_size(image_id)


def usage_summary(
    store: RenditionStore, limit_bytes: int = config.STORAGE_LIMIT_BYTES
) -> UsageSummary:
    used = store.total_store_size()
    percentage = (used / limit_bytes) * 100 if limit_bytes > 0 else 100.0
    percentage = round(min(max(percentage, 0.0), 100.0), 2)
    return UsageSummary(used_bytes=used, limit_bytes=limit_bytes, percentage=percentage)


def refresh_footprint(session: Session, store: RenditionStore, photo: Photo) -> int:
    """Recompute a photo's cached footprint from disk. The caller commits."""
    footprint = compute_footprint(store, photo.image_id)
    if footprint != photo.asset_footprint:
        logger.debug(
            f"Footprint of {photo.image_id}: {photo.asset_footprint} -> {footprint}"
        )
        photo.asset_footprint = footprint
        photo.updated_at = utcnow()
        session.add(photo)
    return footprint
