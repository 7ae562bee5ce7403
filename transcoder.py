"""
ImageTranscoder - decodes uploads and re-encodes them at a rendition size.
"""

import io
import logging
from typing import Optional

from PIL import Image as PILImage, ImageOps, UnidentifiedImageError

from errors import InvalidImageError
from sizes import SizeSpec

OUTPUT_FORMAT = "WEBP"


class ImageTranscoder:
    """
    Produces WebP renditions with Pillow.

    Resizing fits the image inside the target box, keeps the aspect ratio and
    never enlarges an image that is already smaller than the box.
    """

    def __init__(self, method: int = 4, logger: Optional[logging.Logger] = None):
        """
        Initialize the transcoder.

        Args:
            method: WebP encoder effort, 0 (fast) to 6 (slow)
            logger: Optional logger instance
        """
        self.method = method
        self.logger = logger or logging.getLogger(__name__)

    def decode(self, source: bytes) -> PILImage.Image:
        """
        Decode raw bytes into an upright, fully loaded image.

        Raises:
            InvalidImageError: if the data is not a decodable raster image
        """
        try:
            img = PILImage.open(io.BytesIO(source))
            img.load()
            img = ImageOps.exif_transpose(img)
        except (UnidentifiedImageError, OSError, ValueError, PILImage.DecompressionBombError) as e:
            raise InvalidImageError(f"Invalid image file: {e}") from e

        if not img.width or not img.height:
            raise InvalidImageError("Invalid image file: missing dimensions")
        return img

    def encode(self, img: PILImage.Image, spec: SizeSpec) -> bytes:
        """Resize a decoded image to fit ``spec`` and encode it."""
        out = self._convert_color_mode(img.copy())
        out.thumbnail((spec.width, spec.height), PILImage.Resampling.LANCZOS)

        buffer = io.BytesIO()
        out.save(buffer, format=OUTPUT_FORMAT, quality=spec.quality, method=self.method)
        self.logger.debug(
            f"Encoded {spec.name}: {img.size} -> {out.size} ({buffer.tell()} bytes)"
        )
        return buffer.getvalue()

    def transcode(self, source: bytes, spec: SizeSpec) -> bytes:
        """Decode ``source`` and return one rendition at ``spec``."""
        return self.encode(self.decode(source), spec)


    def _convert_color_mode(self, img: PILImage.Image) -> PILImage.Image:
        """WebP takes RGB or RGBA; keep transparency where there is any."""
        if img.mode in ("RGB", "RGBA"):
            return img
        if img.mode in ("LA", "PA") or (img.mode == "P" and "transparency" in img.info):
            return img.convert("RGBA")
        return img.convert("RGB")
