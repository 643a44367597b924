"""
Cascading deletion of the blobs owned by messages and conversations.

A message owns its direct attachments (and their derived thumbnails and
screenshots), its shared-contact avatars, its link-preview images and any
quote thumbnail it created itself. A quote thumbnail marked ``copied`` is
the quoted message's own file and is never deleted here.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Iterator

from chat_attachments.blob_store import BlobStore
from chat_attachments.errors import AttachmentCleanupError
from chat_attachments.types import (
    Attachment,
    Conversation,
    LinkPreview,
    Message,
    Quote,
    SharedContact,
)

logger = logging.getLogger(__name__)

Failures = list[tuple[str, BaseException]]


async def _delete_paths(
    store: BlobStore, relative_paths: list[str]
) -> tuple[list[str], Failures]:
    """Delete paths concurrently, collecting failures instead of stopping."""
    results = await asyncio.gather(
        *(store.delete(path) for path in relative_paths), return_exceptions=True
    )

    deleted: list[str] = []
    failures: Failures = []
    for path, result in zip(relative_paths, results, strict=True):
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, BaseException):
            logger.error(f"Failed to delete attachment file {path}: {result}")
            failures.append((path, result))
        else:
            deleted.append(path)
    return deleted, failures


def _attachment_paths(attachment: Attachment) -> Iterator[str]:
    if attachment.get("path"):
        yield attachment["path"]
    thumbnail = attachment.get("thumbnail")
    if thumbnail and thumbnail.get("path"):
        yield thumbnail["path"]
    if attachment.get("screenshot_path"):
        yield attachment["screenshot_path"]


def _owned_attachment_paths(attachments: Iterable[Attachment] | None) -> list[str]:
    return [
        path
        for attachment in attachments or []
        if attachment
        for path in _attachment_paths(attachment)
    ]


def _owned_quote_paths(quote: Quote | None) -> list[str]:
    if not quote:
        return []
    paths = []
    for attachment in quote.get("attachments") or []:
        thumbnail = (attachment or {}).get("thumbnail")
        if not thumbnail or not thumbnail.get("path"):
            continue
        # Copied thumbnails belong to the quoted message
        if thumbnail.get("copied"):
            logger.debug(f"Keeping copied quote thumbnail {thumbnail['path']}")
            continue
        paths.append(thumbnail["path"])
    return paths


def _owned_contact_paths(contacts: Iterable[SharedContact] | None) -> list[str]:
    paths = []
    for item in contacts or []:
        avatar = (item or {}).get("avatar")
        if avatar and avatar.get("avatar") and avatar["avatar"].get("path"):
            paths.append(avatar["avatar"]["path"])
    return paths


def _owned_preview_paths(previews: Iterable[LinkPreview] | None) -> list[str]:
    paths = []
    for item in previews or []:
        image = (item or {}).get("image")
        if image and image.get("path"):
            paths.append(image["path"])
    return paths


async def _delete_categories(store: BlobStore, categories: list[list[str]]) -> list[str]:
    results = await asyncio.gather(
        *(_delete_paths(store, paths) for paths in categories if paths)
    )

    deleted: list[str] = []
    failures: Failures = []
    for category_deleted, category_failures in results:
        deleted.extend(category_deleted)
        failures.extend(category_failures)

    if failures:
        raise AttachmentCleanupError(failures)
    return deleted


async def delete_attachment_data(store: BlobStore, attachment: Attachment) -> list[str]:
    """Delete an owned attachment's blob and its derived thumbnail/screenshot."""
    return await _delete_categories(store, [_owned_attachment_paths([attachment])])


async def delete_message_attachments(store: BlobStore, message: Message) -> list[str]:
    """
    Delete every blob a message owns.

    Direct attachments, quote thumbnails, contact avatars and preview images
    are deleted as independent concurrent groups, so a failure in one never
    prevents the others from being attempted.

    Args:
        store: The blob store holding the files
        message: The message record being deleted

    Returns:
        Relative paths that were deleted (or were already absent)

    Raises:
        AttachmentCleanupError: If any deletion failed, after all were attempted
    """
    categories = [
        _owned_attachment_paths(message.get("attachments")),
        _owned_quote_paths(message.get("quote")),
        _owned_contact_paths(message.get("contact")),
        _owned_preview_paths(message.get("preview")),
    ]
    deleted = await _delete_categories(store, categories)
    logger.info(
        f"Deleted {len(deleted)} attachment file(s) for message {message.get('id', '<unknown>')}"
    )
    return deleted


async def delete_conversation_attachments(
    store: BlobStore, conversation: Conversation | None
) -> list[str]:
    """Delete a conversation's avatar and profile avatar. ``None`` is a no-op."""
    if not conversation:
        return []

    categories = []
    for key in ("avatar", "profile_avatar"):
        avatar = conversation.get(key)
        if avatar and avatar.get("path"):
            categories.append([avatar["path"]])

    return await _delete_categories(store, categories)
