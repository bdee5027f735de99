"""JPEG transcoding for images sent to the analysis model."""

import asyncio
import io
import logging
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

DEFAULT_MAX_DIMENSION = 768
DEFAULT_JPEG_QUALITY = 85

_logger = logging.getLogger(__name__)


@dataclass
class ImageProcessor:
    """Resize and re-encode images off the event loop."""

    max_dimension: int = DEFAULT_MAX_DIMENSION
    jpeg_quality: int = DEFAULT_JPEG_QUALITY

    async def process(self, image_bytes: bytes) -> bytes:
        """Return a JPEG whose longest side fits the configured bound."""
        return await asyncio.to_thread(self.transcode, image_bytes)

    async def process_many(self, images: list[bytes]) -> list[bytes]:
        """Transcode a batch concurrently, keeping input order."""
        return list(await asyncio.gather(*(self.process(image) for image in images)))

    def transcode(self, image_bytes: bytes) -> bytes:
        """Decode, orient, downscale and encode a single image."""
        try:
            source = Image.open(io.BytesIO(image_bytes))
        except UnidentifiedImageError as exc:
            raise ValueError("Unsupported image data") from exc
        with source:
            image = ImageOps.exif_transpose(source)
            if image.mode != "RGB":
                image = image.convert("RGB")

            width, height = image.size
            longest = max(width, height)
            if longest > self.max_dimension:
                scale = self.max_dimension / longest
                size = (max(1, round(width * scale)), max(1, round(height * scale)))
                image = image.resize(size, Image.Resampling.LANCZOS)

            buffer = io.BytesIO()
            image.save(buffer, format="JPEG", quality=self.jpeg_quality)

        output = buffer.getvalue()
        _logger.debug(
            "Transcoded image %dx%d -> %dx%d (%d bytes)",
            width,
            height,
            image.width,
            image.height,
            len(output),
        )
        return output
