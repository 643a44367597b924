"""Resolution of the attachments root and the operations bound to it.

The hosting application supplies its private data directory exactly once.
All blobs live in a fixed subdirectory of it, under store-generated names
fanned out by their first two characters::

    <user_data_dir>/attachments.noindex/ab/ab12...ef

Every relative path is checked against the root before any I/O happens, so
callers can never reach a file outside the attachments area.
"""

from __future__ import annotations

import asyncio
import logging
import os
import secrets
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import aiofiles
import aiofiles.os

from chat_attachments.errors import (
    AlreadyInitializedError,
    BlobNotFoundError,
    InvalidAttachmentPathError,
    InvalidRootError,
    NotInitializedError,
)

logger = logging.getLogger(__name__)

ATTACHMENTS_DIR_NAME = "attachments.noindex"

# Roots this short are almost certainly a bug (empty env var, "/", "/tmp")
MIN_ROOT_LENGTH = 10

NAME_BYTES = 32

Reader = Callable[[str], Awaitable[bytes]]
WriterForNew = Callable[[bytes], Awaitable[str]]
Deleter = Callable[[str], Awaitable[None]]
AbsolutePathGetter = Callable[[str], str]


def get_path(user_data_dir: str) -> str:
    """Return the attachments root for a user data directory."""
    return os.path.join(user_data_dir, ATTACHMENTS_DIR_NAME)


def create_name() -> str:
    """Generate a fresh, opaque blob name."""
    return secrets.token_hex(NAME_BYTES)


def get_relative_path(name: str) -> str:
    """Return the fanned-out relative path for a blob name."""
    return f"{name[:2]}/{name}"


def create_absolute_path_getter(root: str) -> AbsolutePathGetter:
    """Create a function mapping relative paths to absolute ones under ``root``.

    The returned function performs no I/O. It raises
    ``InvalidAttachmentPathError`` for absolute inputs and for anything that
    normalises to ``root`` itself or to a location outside it.
    """
    root_path = os.path.normpath(root)

    def get_absolute_path(relative_path: str) -> str:
        if not relative_path or os.path.isabs(relative_path):
            raise InvalidAttachmentPathError(
                f"Invalid relative attachment path: {relative_path!r}",
                relative_path,
            )
        absolute_path = os.path.normpath(os.path.join(root_path, relative_path))
        if (
            absolute_path == root_path
            or os.path.commonpath([root_path, absolute_path]) != root_path
        ):
            raise InvalidAttachmentPathError(
                f"Attachment path escapes the attachments root: {relative_path!r}",
                relative_path,
            )
        return absolute_path

    return get_absolute_path


def create_reader(root: str) -> Reader:
    """Create an async reader for blobs under ``root``."""
    get_absolute_path = create_absolute_path_getter(root)

    async def read_attachment_data(relative_path: str) -> bytes:
        absolute_path = get_absolute_path(relative_path)
        try:
            async with aiofiles.open(absolute_path, "rb") as f:
                data = await f.read()
        except FileNotFoundError as e:
            raise BlobNotFoundError(relative_path) from e
        logger.debug(f"Read {len(data)} bytes from {relative_path}")
        return data

    return read_attachment_data


def create_writer_for_new(root: str) -> WriterForNew:
    """Create an async writer that stores bytes under a fresh name.

    Data is written to a temporary sibling, flushed to disk and then renamed
    into place, so a crash never leaves a partially written file under a
    name that was handed out.
    """
    get_absolute_path = create_absolute_path_getter(root)

    async def write_new_attachment_data(data: bytes) -> str:
        while True:
            relative_path = get_relative_path(create_name())
            absolute_path = get_absolute_path(relative_path)
            if not await aiofiles.os.path.exists(absolute_path):
                break

        await aiofiles.os.makedirs(os.path.dirname(absolute_path), exist_ok=True)
        temp_path = f"{absolute_path}.{secrets.token_hex(4)}.tmp"
        try:
            async with aiofiles.open(temp_path, "wb") as f:
                await f.write(data)
                await f.flush()
                await asyncio.to_thread(os.fsync, f.fileno())
            await aiofiles.os.replace(temp_path, absolute_path)
        except BaseException:
            try:
                await aiofiles.os.remove(temp_path)
            except FileNotFoundError:
                pass
            raise

        logger.debug(f"Wrote {len(data)} bytes to {relative_path}")
        return relative_path

    return write_new_attachment_data


def create_deleter(root: str) -> Deleter:
    """Create an idempotent async deleter for blobs under ``root``."""
    get_absolute_path = create_absolute_path_getter(root)

    async def delete_on_disk(relative_path: str) -> None:
        absolute_path = get_absolute_path(relative_path)
        try:
            await aiofiles.os.remove(absolute_path)
        except FileNotFoundError:
            logger.debug(f"Attachment already absent: {relative_path}")
            return
        logger.info(f"Deleted attachment file: {relative_path}")

    return delete_on_disk


@dataclass(frozen=True)
class BoundOperations:
    """The four operations derived from an initialized root."""

    read: Reader
    write_new: WriterForNew
    delete: Deleter
    absolute_path: AbsolutePathGetter


class AttachmentPathResolver:
    """Holds the attachments root once it has been set.

    A resolver can be initialized exactly once. After that its root and
    bound operations never change.
    """

    def __init__(self) -> None:
        self._root: str | None = None
        self._operations: BoundOperations | None = None

    @property
    def is_initialized(self) -> bool:
        return self._operations is not None

    def initialize(self, user_data_dir: str | os.PathLike[str]) -> str:
        """
        Set the attachments root below ``user_data_dir``.

        Args:
            user_data_dir: The application's private data directory

        Returns:
            The absolute attachments root

        Raises:
            AlreadyInitializedError: If this resolver already has a root
            InvalidRootError: If the directory string is empty or too short
        """
        if self._root is not None:
            raise AlreadyInitializedError(
                f"Attachments root already initialized to {self._root}"
            )

        candidate = os.fspath(user_data_dir) if user_data_dir else ""
        if not candidate or len(candidate) <= MIN_ROOT_LENGTH:
            raise InvalidRootError(
                f"User data directory must be longer than {MIN_ROOT_LENGTH} "
                f"characters, got {candidate!r}"
            )

        root = os.path.abspath(get_path(candidate))
        self._operations = BoundOperations(
            read=create_reader(root),
            write_new=create_writer_for_new(root),
            delete=create_deleter(root),
            absolute_path=create_absolute_path_getter(root),
        )
        self._root = root
        logger.info(f"Attachments root initialized: {root}")
        return root

    @property
    def root(self) -> str:
        if self._root is None:
            raise NotInitializedError("Attachments root not initialized")
        return self._root

    def get_root(self) -> str:
        return self.root

    @property
    def operations(self) -> BoundOperations:
        if self._operations is None:
            raise NotInitializedError("Attachment logic not initialized")
        return self._operations


_process_resolver = AttachmentPathResolver()


def get_process_resolver() -> AttachmentPathResolver:
    """Return the resolver shared by the whole process."""
    return _process_resolver


def get_attachment_path() -> str:
    """Return the process-wide attachments root."""
    return _process_resolver.root


def reset_attachment_logic_for_tests() -> None:
    """Forget the process-wide root. Only for use in tests."""
    global _process_resolver
    _process_resolver = AttachmentPathResolver()
