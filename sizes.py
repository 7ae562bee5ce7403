"""Rendition size registry: the six built-in sizes plus per-owner custom sizes."""
import json
import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

from sqlmodel import Session

from database import get_settings_by_category
from errors import ValidationError

logger = logging.getLogger(__name__)

IMAGE_SIZES_CATEGORY = "image_sizes"

MAX_DIMENSION = 4000
MAX_NAME_LENGTH = 50
SIZE_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


@dataclass(frozen=True)
class SizeSpec:
    """A named (width, height, quality) rendition target."""
    name: str
    width: int
    height: int
    quality: int
    is_custom: bool = False

    def config(self) -> dict:
        """Value persisted in the settings row."""
        return {"width": self.width, "height": self.height, "quality": self.quality}

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("name")
        return data


BUILTIN_SIZES: Dict[str, SizeSpec] = {
    spec.name: spec
    for spec in (
        SizeSpec("thumbnail", 200, 200, 80),
        SizeSpec("small", 400, 400, 85),
        SizeSpec("medium", 800, 600, 90),
        SizeSpec("large", 1200, 900, 92),
        SizeSpec("xlarge", 1600, 1200, 95),
        SizeSpec("splash", 2000, 2000, 95),
    )
}

# Largest first; used to pick a source when deriving a new size
SOURCE_PREFERENCE = ["splash", "xlarge", "large", "medium", "small", "thumbnail"]


def is_builtin(name: str) -> bool:
    return name in BUILTIN_SIZES


def list_builtin_sizes() -> Dict[str, SizeSpec]:
    """Built-in sizes in registry order."""
    return dict(BUILTIN_SIZES)


def list_custom_sizes(session: Session, owner: str) -> Dict[str, SizeSpec]:
    """Custom sizes stored as settings. Unreadable rows are skipped."""
    sizes: Dict[str, SizeSpec] = {}
    for row in get_settings_by_category(session, owner, IMAGE_SIZES_CATEGORY):
        try:
            value = json.loads(row.value)
            sizes[row.key] = SizeSpec(
                name=row.key,
                width=int(value["width"]),
                height=int(value["height"]),
                quality=int(value["quality"]),
                is_custom=True,
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Skipping unreadable custom size {row.key!r}: {e}")
    return sizes


def merged_sizes(session: Session, owner: str) -> Dict[str, SizeSpec]:
    """Built-in sizes followed by the owner's custom sizes."""
    sizes = list_builtin_sizes()
    sizes.update(list_custom_sizes(session, owner))
    return sizes


def validate_size(name: str, width: int, height: int, quality: int) -> None:
    """Check a proposed size definition against the allowed bounds."""
    if not name or len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"Size name must be between 1 and {MAX_NAME_LENGTH} characters"
        )
    if not SIZE_NAME_PATTERN.match(name):
        raise ValidationError(
            "Size name must contain only letters, numbers, hyphens, and underscores"
        )
    for label, value in (("Width", width), ("Height", height)):
        if not isinstance(value, int) or not 1 <= value <= MAX_DIMENSION:
            raise ValidationError(f"{label} must be between 1 and {MAX_DIMENSION}")
    if not isinstance(quality, int) or not 1 <= quality <= 100:
        raise ValidationError("Quality must be between 1 and 100")


@dataclass
class SizeRegistry:
    """Sizes in effect for one owner, loaded once per request."""
    owner: str
    builtin: Dict[str, SizeSpec] = field(default_factory=list_builtin_sizes)
    custom: Dict[str, SizeSpec] = field(default_factory=dict)

    @property
    def sizes(self) -> Dict[str, SizeSpec]:
        merged = dict(self.builtin)
        merged.update(self.custom)
        return merged

    def names(self) -> List[str]:
        return list(self.sizes)

    def get(self, name: str) -> Optional[SizeSpec]:
        return self.sizes.get(name)

    def to_dict(self) -> Dict[str, dict]:
        return {name: spec.to_dict() for name, spec in self.sizes.items()}


def load_registry(session: Session, owner: str) -> SizeRegistry:
    return SizeRegistry(owner=owner, custom=list_custom_sizes(session, owner))
