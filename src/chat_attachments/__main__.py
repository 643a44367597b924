import argparse
import asyncio
import json
import logging
import mimetypes
import os
import sys
from typing import Any

import aiofiles
from pydantic import ValidationError

from chat_attachments.blob_store import BlobStore, initialize_attachment_logic
from chat_attachments.cleanup import (
    delete_conversation_attachments,
    delete_message_attachments,
)
from chat_attachments.config_loader import DEFAULT_CONFIG_FILE, load_config
from chat_attachments.config_models import AppConfig
from chat_attachments.errors import AttachmentCleanupError, AttachmentError
from chat_attachments.migration import AttachmentMigrator
from chat_attachments.transforms import AttachmentTransforms

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=level,
        stream=sys.stderr,
    )
    # Keep external libraries less verbose
    logging.getLogger("PIL").setLevel(logging.WARNING)


# --- Argument Parsing ---
parser = argparse.ArgumentParser(description="Chat attachment blob store")
parser.add_argument(
    "--config",
    default=DEFAULT_CONFIG_FILE,
    help="Path to the YAML config file",
)
parser.add_argument(
    "--user-data-dir",
    default=None,
    help="Application data directory (overrides config file and environment variable)",
)
parser.add_argument(
    "-v", "--verbose", action="store_true", help="Enable debug logging"
)
subparsers = parser.add_subparsers(dest="command", required=True)

store_parser = subparsers.add_parser("store", help="Process and store a new attachment")
store_parser.add_argument("file", help="File to store")
store_parser.add_argument(
    "--content-type", default=None, help="MIME type (guessed from the name if omitted)"
)

read_parser = subparsers.add_parser("read", help="Read a stored blob")
read_parser.add_argument("path", help="Relative blob path")
read_parser.add_argument("--output", default=None, help="Write to a file instead of stdout")

delete_parser = subparsers.add_parser("delete", help="Delete a stored blob")
delete_parser.add_argument("path", help="Relative blob path")

path_parser = subparsers.add_parser("path", help="Print a blob's absolute path")
path_parser.add_argument("path", help="Relative blob path")

delete_message_parser = subparsers.add_parser(
    "delete-message", help="Delete every blob owned by a message record (JSON)"
)
delete_message_parser.add_argument("file", help="JSON file holding the message record")

delete_conversation_parser = subparsers.add_parser(
    "delete-conversation", help="Delete a conversation record's avatars (JSON)"
)
delete_conversation_parser.add_argument(
    "file", help="JSON file holding the conversation record"
)


async def _load_json(file_path: str) -> Any:  # noqa: ANN401
    async with aiofiles.open(file_path, encoding="utf-8") as f:
        return json.loads(await f.read())


async def _store(store: BlobStore, config: AppConfig, args: argparse.Namespace) -> int:
    async with aiofiles.open(args.file, "rb") as f:
        data = await f.read()
    content_type = (
        args.content_type
        or mimetypes.guess_type(args.file)[0]
        or "application/octet-stream"
    )
    migrator = AttachmentMigrator(
        store, AttachmentTransforms.with_thumbnail_size(config.thumbnail_size)
    )
    attachment = await migrator.process_new_attachment({
        "file_name": os.path.basename(args.file),
        "content_type": content_type,
        "data": data,
    })
    print(json.dumps(attachment, indent=2))
    return 0


async def _read(store: BlobStore, args: argparse.Namespace) -> int:
    data = await store.read(args.path)
    if args.output:
        async with aiofiles.open(args.output, "wb") as f:
            await f.write(data)
    else:
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
    return 0


async def _delete_records(store: BlobStore, args: argparse.Namespace) -> int:
    record = await _load_json(args.file)
    try:
        if args.command == "delete-message":
            deleted = await delete_message_attachments(store, record)
        else:
            deleted = await delete_conversation_attachments(store, record)
    except AttachmentCleanupError as e:
        for path, error in e.failures:
            print(f"failed: {path}: {error}", file=sys.stderr)
        return 1
    for path in deleted:
        print(path)
    return 0


async def run(config: AppConfig, args: argparse.Namespace) -> int:
    store = initialize_attachment_logic(config.user_data_dir or "")

    if args.command == "store":
        return await _store(store, config, args)
    if args.command == "read":
        return await _read(store, args)
    if args.command == "delete":
        await store.delete(args.path)
        return 0
    if args.command == "path":
        print(store.absolute_path(args.path))
        return 0
    return await _delete_records(store, args)


def main(argv: list[str] | None = None) -> int:
    """Loads config, parses args and runs one command."""
    args = parser.parse_args(argv)
    try:
        config = load_config(args.config)
    except ValidationError as e:
        configure_logging("INFO")
        logger.critical(f"Configuration error: {e}")
        return 2

    # Apply CLI overrides
    overrides: dict[str, Any] = {}
    if args.user_data_dir is not None:
        overrides["user_data_dir"] = args.user_data_dir
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    config = config.model_copy(update=overrides)

    configure_logging(config.log_level)

    try:
        return asyncio.run(run(config, args))
    except (AttachmentError, OSError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
