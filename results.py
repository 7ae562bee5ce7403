"""
Result records returned by bulk photo operations and custom-size maintenance.
"""

from dataclasses import asdict, dataclass, field
from typing import List, Optional

from sizes import SizeSpec


@dataclass
class FailedItem:
    id: str
    error: str


@dataclass
class BulkDeleteResult:
    """
    Outcome of deleting several photos.

    Attributes:
        deleted: Ids of photos removed
        failed: Photos that could not be removed, with the reason
        total: Number of ids requested
    """
    deleted: List[str] = field(default_factory=list)
    failed: List[FailedItem] = field(default_factory=list)
    total: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class BulkAddResult:
    added: int = 0
    skipped: int = 0
    total: int = 0

    @property
    def message(self) -> Optional[str]:
        if self.total and not self.added:
            return "All selected photos are already in this gallery"
        return None

    def to_dict(self) -> dict:
        data = asdict(self)
        if self.message:
            data["message"] = self.message
        return data


@dataclass
class BackfillResult:
    """
    Outcome of generating one new size for existing photos.

    Attributes:
        processed: Photos that received the new rendition
        failed: Photos that did not
        errors: One message per failure
    """
    processed: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.processed + self.failed


@dataclass
class CleanupResult:
    """Outcome of removing one size's renditions from existing photos."""
    deleted: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.deleted + self.failed


@dataclass
class AddSizeResult:
    spec: SizeSpec
    photo_count: int = 0
    processing: Optional[BackfillResult] = None

    def to_dict(self) -> dict:
        return {
            "success": True,
            "size_name": self.spec.name,
            "config": self.spec.config(),
            "photo_count": self.photo_count,
            "processing_result": asdict(self.processing) if self.processing else None,
        }


@dataclass
class DeleteSizeResult:
    size_name: str
    photo_count: int = 0
    cleanup: Optional[CleanupResult] = None

    def to_dict(self) -> dict:
        return {
            "success": True,
            "size_name": self.size_name,
            "photo_count": self.photo_count,
            "deletion_result": asdict(self.cleanup) if self.cleanup else None,
        }
