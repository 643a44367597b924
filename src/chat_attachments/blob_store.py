"""
Blob store for attachment payloads.

Provides read, write-new, delete and absolute-path operations over relative
paths, all scoped to the root held by an ``AttachmentPathResolver``.
"""

from __future__ import annotations

import logging
import os

from chat_attachments.errors import InvalidDataTypeError
from chat_attachments.paths import (
    AttachmentPathResolver,
    BoundOperations,
    get_process_resolver,
)

logger = logging.getLogger(__name__)


class BlobStore:
    """Async access to attachment blobs under an initialized root."""

    def __init__(self, resolver: AttachmentPathResolver) -> None:
        self.resolver = resolver

    @classmethod
    def at(cls, user_data_dir: str | os.PathLike[str]) -> BlobStore:
        """Create a store with its own resolver initialized to ``user_data_dir``."""
        resolver = AttachmentPathResolver()
        resolver.initialize(user_data_dir)
        return cls(resolver)

    @property
    def _ops(self) -> BoundOperations:
        # Raises NotInitializedError until the resolver has a root
        return self.resolver.operations

    @property
    def root(self) -> str:
        return self.resolver.root

    async def read(self, relative_path: str) -> bytes:
        """
        Read a blob in full.

        Raises:
            NotInitializedError: If the resolver has no root yet
            BlobNotFoundError: If no blob exists at ``relative_path``
            InvalidAttachmentPathError: If the path escapes the root
        """
        return await self._ops.read(relative_path)

    async def write_new(self, data: bytes | bytearray | memoryview) -> str:
        """
        Persist ``data`` under a fresh store-generated name.

        Returns:
            The relative path of the new blob
        """
        ops = self._ops
        if not isinstance(data, bytes | bytearray | memoryview):
            raise InvalidDataTypeError(
                f"Expected a binary buffer, got: {type(data).__name__}"
            )
        relative_path = await ops.write_new(bytes(data))
        logger.info(f"Stored new attachment blob {relative_path} ({len(data)} bytes)")
        return relative_path

    async def delete(self, relative_path: str) -> None:
        """Delete a blob. Deleting a path that does not exist is a no-op."""
        await self._ops.delete(relative_path)

    def absolute_path(self, relative_path: str) -> str:
        """Return the absolute filesystem path for ``relative_path`` without I/O."""
        return self._ops.absolute_path(relative_path)


def initialize_attachment_logic(user_data_dir: str | os.PathLike[str]) -> BlobStore:
    """
    Initialize the process-wide attachments root.

    Call once during application startup and pass the returned store to
    every consumer.

    Raises:
        AlreadyInitializedError: If called a second time in this process
        InvalidRootError: If ``user_data_dir`` is empty or implausibly short
    """
    resolver = get_process_resolver()
    resolver.initialize(user_data_dir)
    return BlobStore(resolver)


def get_attachment_store() -> BlobStore:
    """Return a store bound to the process-wide resolver.

    Operations on it raise ``NotInitializedError`` until
    ``initialize_attachment_logic`` has been called.
    """
    return BlobStore(get_process_resolver())
