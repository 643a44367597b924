"""Opaque transforms applied around the raw blob write.

The migration pipeline treats these as black boxes with fixed contracts and
receives them through ``AttachmentTransforms`` so tests can swap in fakes.
The defaults here use Pillow for image work.
"""

from __future__ import annotations

import asyncio
import functools
import io
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from PIL import Image, ImageOps

from chat_attachments.types import Attachment

if TYPE_CHECKING:
    from chat_attachments.blob_store import BlobStore

logger = logging.getLogger(__name__)

THUMBNAIL_SIZE = 200
THUMBNAIL_CONTENT_TYPE = "image/png"
JPEG_CONTENT_TYPE = "image/jpeg"
EXIF_ORIENTATION_TAG = 0x0112
# Bidirectional embedding, override and isolate controls, plus the
# directional marks. A right-to-left override can make a name ending in
# "gnp.exe" display as if it ended in "exe.png".
UNICODE_ORDER_OVERRIDES = re.compile("[\u202a-\u202e\u2066-\u2069\u200e\u200f\u061c]")
REPLACEMENT_CHARACTER = "\ufffd"

WriteData = Callable[[bytes], Awaitable[str]]


@dataclass
class OrientationResult:
    """Outcome of the auto-orientation transform."""

    data: bytes
    # True when the bytes were re-encoded and a previously computed digest
    # no longer matches them
    should_delete_digest: bool = False


def replace_unicode_v2(file_name: str) -> str:
    """Replace bidi control characters in a filename with U+FFFD."""
    return UNICODE_ORDER_OVERRIDES.sub(REPLACEMENT_CHARACTER, file_name)


def _reorient_jpeg(data: bytes) -> bytes | None:
    with Image.open(io.BytesIO(data)) as img:
        orientation = img.getexif().get(EXIF_ORIENTATION_TAG, 1)
        if orientation == 1:
            return None
        upright = ImageOps.exif_transpose(img)
        if upright.mode not in {"RGB", "L"}:
            upright = upright.convert("RGB")
        output_buffer = io.BytesIO()
        upright.save(output_buffer, format="JPEG", quality=95)
        return output_buffer.getvalue()


async def auto_orient_jpeg_attachment(attachment: Attachment) -> OrientationResult:
    """
    Rotate a JPEG according to its EXIF orientation.

    Anything that is not an orientable JPEG is passed through unchanged. The
    input's ``data`` is returned as-is when it is not a binary buffer, so the
    migration step can report the problem.
    """
    data = attachment.get("data")
    if not isinstance(data, bytes | bytearray | memoryview):
        return OrientationResult(data=data)  # type: ignore[arg-type]
    if attachment.get("is_raw") or attachment.get("content_type") != JPEG_CONTENT_TYPE:
        return OrientationResult(data=bytes(data))

    try:
        rotated = await asyncio.to_thread(_reorient_jpeg, bytes(data))
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        logger.warning(f"Could not auto-orient JPEG attachment, keeping original: {e}")
        return OrientationResult(data=bytes(data))

    if rotated is None:
        return OrientationResult(data=bytes(data))

    logger.info(f"Auto-oriented JPEG attachment ({len(data)} -> {len(rotated)} bytes)")
    return OrientationResult(data=rotated, should_delete_digest=True)


def _measure_and_thumbnail(data: bytes, size: int) -> tuple[int, int, bytes, int, int]:
    with Image.open(io.BytesIO(data)) as img:
        width, height = img.size
        thumb = img.copy()
        thumb.thumbnail((size, size))
        if thumb.mode not in {"RGB", "RGBA", "L", "LA", "P"}:
            thumb = thumb.convert("RGBA")
        output_buffer = io.BytesIO()
        thumb.save(output_buffer, format="PNG")
        return width, height, output_buffer.getvalue(), thumb.width, thumb.height


async def capture_dimensions_and_screenshot(
    attachment: Attachment,
    store: BlobStore,
    write_data: WriteData,
    *,
    thumbnail_size: int = THUMBNAIL_SIZE,
) -> Attachment:
    """
    Record image dimensions and store a thumbnail for a path-backed attachment.

    Non-image content is returned unchanged. Video screenshots need an
    external decoder and are not captured here.
    """
    content_type = attachment.get("content_type") or ""
    path = attachment.get("path")
    if not path or attachment.get("is_raw") or not content_type.startswith("image/"):
        return attachment

    data = await store.read(path)
    try:
        width, height, thumb_data, thumb_width, thumb_height = await asyncio.to_thread(
            _measure_and_thumbnail, data, thumbnail_size
        )
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        logger.warning(f"Could not read image dimensions for {path}: {e}")
        return attachment

    thumbnail_path = await write_data(thumb_data)
    return {
        **attachment,
        "width": width,
        "height": height,
        "thumbnail": {
            "path": thumbnail_path,
            "content_type": THUMBNAIL_CONTENT_TYPE,
            "width": thumb_width,
            "height": thumb_height,
        },
    }


# (attachment, store, write_data) -> attachment
CaptureDimensions = Callable[..., Awaitable[Attachment]]


@dataclass
class AttachmentTransforms:
    """The pluggable collaborators of the migration pipeline."""

    normalize_file_name: Callable[[str], str] = replace_unicode_v2
    auto_orient: Callable[[Attachment], Awaitable[OrientationResult]] = (
        auto_orient_jpeg_attachment
    )
    capture_dimensions: CaptureDimensions = capture_dimensions_and_screenshot

    @classmethod
    def with_thumbnail_size(cls, thumbnail_size: int) -> AttachmentTransforms:
        return cls(
            capture_dimensions=functools.partial(
                capture_dimensions_and_screenshot, thumbnail_size=thumbnail_size
            )
        )
