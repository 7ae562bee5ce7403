"""On-disk rendition store: one directory per photo, one file per size."""
import logging
import os
import shutil
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import config
from errors import NoSourceAvailableError
from sizes import BUILTIN_SIZES, SOURCE_PREFERENCE
from utils import resolve_under_root, safe_component

logger = logging.getLogger(__name__)

# Widths advertised in the srcset for the built-in sizes
SRCSET_WIDTHS = [("small", 400), ("medium", 800), ("large", 1200), ("xlarge", 1600), ("splash", 2000)]


class RenditionStore:
    """
    Owns the directory tree under ``root``.

    Layout is ``{root}/{image_id}/{size_name}.{ext}``; the same relative path
    is served publicly under ``url_prefix``.
    """

    def __init__(
        self,
        root: Path,
        ext: str = config.RENDITION_EXT,
        url_prefix: str = config.PHOTOS_URL_PREFIX,
    ):
        self.root = Path(root)
        self.ext = ext
        self.url_prefix = url_prefix.rstrip("/")

    def photo_dir(self, image_id: str) -> Path:
        safe_component(image_id, "image id")
        return resolve_under_root(self.root, self.root / image_id)

    def path_for(self, image_id: str, size_name: str) -> Path:
        safe_component(size_name, "size name")
        return self.photo_dir(image_id) / f"{size_name}.{self.ext}"

    def write_rendition(self, image_id: str, size_name: str, data: bytes) -> Path:
        """Write (or overwrite) one rendition, creating the directory on first use."""
        path = self.path_for(image_id, size_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.debug(f"Wrote {path} ({len(data)} bytes)")
        return path

    def has_rendition(self, image_id: str, size_name: str) -> bool:
        return self.path_for(image_id, size_name).is_file()

    def list_renditions(self, image_id: str) -> List[str]:
        """Size names present on disk for a photo."""
        directory = self.photo_dir(image_id)
        if not directory.is_dir():
            return []
        return sorted(p.stem for p in directory.glob(f"*.{self.ext}") if p.is_file())

    def read_source_for_regeneration(self, image_id: str) -> bytes:
        """
        Bytes of the largest rendition already generated for a photo.

        No original is kept, so new sizes are derived from the best
        rendition available.
        """
        for size_name in SOURCE_PREFERENCE:
            path = self.path_for(image_id, size_name)
            if path.is_file():
                logger.debug(f"Using {size_name} as source for {image_id}")
                return path.read_bytes()
        raise NoSourceAvailableError(f"No source image found for {image_id}")

    def delete_rendition(self, image_id: str, size_name: str) -> None:
        """Remove one rendition. A file that is already gone is not an error."""
        try:
            self.path_for(image_id, size_name).unlink()
        except FileNotFoundError:
            pass

    def delete_all_renditions(self, image_id: str) -> bool:
        """
        Remove a photo's whole directory.

        Never raises: a missing directory counts as success and any other
        filesystem error is logged and reported as ``False``.
        """
        try:
            shutil.rmtree(self.photo_dir(image_id))
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.warning(f"Could not delete photos directory {image_id}: {e}")
            return False
        return True

    def directory_size(self, image_id: str) -> int:
        """Total bytes under a photo's directory, 0 if absent or unreadable."""
        try:
            return self._tree_size(self.photo_dir(image_id))
        except OSError as e:
            logger.debug(f"Cannot size directory for {image_id}: {e}")
            return 0

    def total_store_size(self) -> int:
        """Total bytes under the rendition root, 0 if unreadable."""
        try:
            return self._tree_size(self.root)
        except OSError as e:
            logger.warning(f"Cannot read directory {self.root}: {e}")
            return 0

    def _tree_size(self, directory: Path) -> int:
        total = 0
        with os.scandir(directory) as entries:
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    total += self._tree_size(Path(entry.path))
                elif entry.is_file(follow_symlinks=False):
                    total += entry.stat(follow_symlinks=False).st_size
        return total

    # -------------------------------
    # Public URLs
    # -------------------------------
    def rendition_url(self, image_id: str, size_name: str) -> str:
        return f"{self.url_prefix}/{image_id}/{size_name}.{self.ext}"

    def rendition_urls(
        self, image_id: str, size_names: Optional[Iterable[str]] = None
    ) -> Dict[str, str]:
        names = size_names if size_names is not None else BUILTIN_SIZES
        return {name: self.rendition_url(image_id, name) for name in names}

    def responsive_srcset(self, image_id: str) -> str:
        return ", ".join(
            f"{self.rendition_url(image_id, name)} {width}w" for name, width in SRCSET_WIDTHS
        )
