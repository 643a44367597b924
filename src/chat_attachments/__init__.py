"""Chat attachment blob storage and lifecycle management."""

from chat_attachments.blob_store import (
    BlobStore,
    get_attachment_store,
    initialize_attachment_logic,
)
from chat_attachments.cleanup import (
    delete_attachment_data,
    delete_conversation_attachments,
    delete_message_attachments,
)
from chat_attachments.loaders import (
    load_attachment_data,
    load_preview_data,
    load_quote_data,
)
from chat_attachments.migration import AttachmentMigrator, migrate_data_to_file_system
from chat_attachments.paths import AttachmentPathResolver, get_attachment_path
from chat_attachments.transforms import AttachmentTransforms, OrientationResult

__all__ = [
    "AttachmentMigrator",
    "AttachmentPathResolver",
    "AttachmentTransforms",
    "BlobStore",
    "OrientationResult",
    "delete_attachment_data",
    "delete_conversation_attachments",
    "delete_message_attachments",
    "get_attachment_path",
    "get_attachment_store",
    "initialize_attachment_logic",
    "load_attachment_data",
    "load_preview_data",
    "load_quote_data",
    "migrate_data_to_file_system",
]
