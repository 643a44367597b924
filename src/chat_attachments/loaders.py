"""Read-side helpers that hydrate on-disk attachment data for display.

Only the first quote attachment and the first link preview are ever
rendered, so only those are hydrated; the returned views drop the rest.
"""

from __future__ import annotations

import logging
from typing import Any

from chat_attachments.blob_store import BlobStore
from chat_attachments.errors import MissingPathError
from chat_attachments.types import LinkPreview, Quote

logger = logging.getLogger(__name__)


async def load_attachment_data(
    store: BlobStore,
    attachment: dict[str, Any],  # noqa: ANN401
) -> dict[str, Any]:  # noqa: ANN401
    """Return a copy of ``attachment`` with its blob bytes in ``data``."""
    path = attachment.get("path")
    if not path:
        raise MissingPathError("Attachment has no path to load data from")

    data = await store.read(path)
    return {**attachment, "data": data}


async def load_preview_data(
    store: BlobStore, previews: list[LinkPreview] | None
) -> list[LinkPreview]:
    """Hydrate the image of the first link preview."""
    if not previews or not previews[0]:
        return []

    first_preview = previews[0]
    if not first_preview.get("image"):
        return [first_preview]

    return [
        {
            **first_preview,
            "image": await load_attachment_data(store, first_preview["image"]),
        }
    ]


async def load_quote_data(store: BlobStore, quote: Quote | None) -> Quote | None:
    """Hydrate the thumbnail of the first quoted attachment."""
    if quote is None:
        return None
    attachments = quote.get("attachments")
    if not attachments or not attachments[0]:
        return quote

    quoted_first_attachment = attachments[0]
    thumbnail = quoted_first_attachment.get("thumbnail")
    if not thumbnail or not thumbnail.get("path"):
        return {**quote, "attachments": [quoted_first_attachment]}

    if len(attachments) > 1:
        logger.debug(f"Dropping {len(attachments) - 1} extra quoted attachment(s)")

    return {
        **quote,
        "attachments": [
            {
                **quoted_first_attachment,
                "thumbnail": await load_attachment_data(store, thumbnail),
            }
        ],
    }
