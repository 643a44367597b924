"""
Migration of attachments from inline data to on-disk blobs.

``migrate_data_to_file_system`` is the only place where attachment bytes
become a stored blob. ``AttachmentMigrator.process_new_attachment`` wraps it
with the filename, orientation and dimension transforms.
"""

from __future__ import annotations

import functools
import logging
from typing import Any

from chat_attachments.blob_store import BlobStore
from chat_attachments.errors import InvalidDataTypeError, MissingDataError
from chat_attachments.transforms import AttachmentTransforms
from chat_attachments.types import Attachment

logger = logging.getLogger(__name__)


async def migrate_data_to_file_system(
    store: BlobStore,
    data: Any,  # noqa: ANN401
) -> str:
    """
    Write inline attachment data to a new blob.

    Args:
        store: The blob store to write into
        data: The inline payload, expected to be a binary buffer

    Returns:
        The relative path of the new blob

    Raises:
        MissingDataError: If ``data`` is None
        InvalidDataTypeError: If ``data`` is not bytes-like
    """
    if data is None:
        raise MissingDataError("Attachment has no data in migrate_data_to_file_system")

    if not isinstance(data, bytes | bytearray | memoryview):
        raise InvalidDataTypeError(
            f"Expected attachment data to be a binary buffer, got: {type(data).__name__}"
        )

    return await store.write_new(data)


class AttachmentMigrator:
    """Turns attachments carrying inline data into path-backed records."""

    def __init__(
        self,
        store: BlobStore,
        transforms: AttachmentTransforms | None = None,
    ) -> None:
        self.store = store
        self.transforms = transforms or AttachmentTransforms()
        self._write_data = functools.partial(migrate_data_to_file_system, store)

    async def migrate_to_file_system(self, attachment: Attachment) -> str:
        """Store ``attachment["data"]`` and return the new relative path."""
        return await migrate_data_to_file_system(self.store, attachment.get("data"))

    async def process_new_attachment(self, attachment: Attachment) -> Attachment:
        """
        Normalise, orient, store and measure a freshly received attachment.

        Args:
            attachment: A record carrying its payload in ``data``

        Returns:
            A new record with ``path`` set and no ``data`` field

        Raises:
            MissingDataError: If the attachment has no data
            InvalidDataTypeError: If the data is not a binary buffer

        Any failure after the blob was written leaves the blob on disk. Its
        relative path is available as ``orphaned_path`` on the exception.
        """
        raw_file_name = attachment.get("file_name")
        file_name = (
            self.transforms.normalize_file_name(raw_file_name) if raw_file_name else ""
        )

        # May re-encode the image, changing its size
        rotated = await self.transforms.auto_orient(attachment)

        on_disk_path = await migrate_data_to_file_system(self.store, rotated.data)

        try:
            attachment_without_data: Attachment = {
                **attachment,
                "file_name": file_name,
                "path": on_disk_path,
            }
            attachment_without_data.pop("data", None)
            if rotated.should_delete_digest:
                attachment_without_data.pop("digest", None)

            final_attachment = await self.transforms.capture_dimensions(
                attachment_without_data, self.store, self._write_data
            )
        except Exception as e:
            logger.warning(
                f"Processing attachment failed after storing blob {on_disk_path}: {e}"
            )
            e.orphaned_path = on_disk_path  # type: ignore[attr-defined]
            raise

        logger.info(
            f"Processed new attachment {file_name!r} -> {on_disk_path} "
            f"({len(rotated.data)} bytes)"
        )
        return {**final_attachment, "file_name": file_name, "size": len(rotated.data)}
