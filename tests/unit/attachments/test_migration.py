"""Unit tests for migrating inline attachment data to the filesystem."""

from collections.abc import Callable
from typing import Any

import pytest

from chat_attachments.blob_store import BlobStore
from chat_attachments.errors import InvalidDataTypeError, MissingDataError
from chat_attachments.migration import AttachmentMigrator, migrate_data_to_file_system
from chat_attachments.transforms import AttachmentTransforms, OrientationResult
from chat_attachments.types import Attachment


async def _fixed_orientation(attachment: Attachment) -> OrientationResult:
    return OrientationResult(data=b"re-encoded!", should_delete_digest=True)


async def _identity_orientation(attachment: Attachment) -> OrientationResult:
    return OrientationResult(data=attachment["data"])


async def _noop_capture(
    attachment: Attachment,
    store: BlobStore,
    write_data: Any,  # noqa: ANN401
) -> Attachment:
    return attachment


async def _fake_capture(
    attachment: Attachment,
    store: BlobStore,
    write_data: Any,  # noqa: ANN401
) -> Attachment:
    assert "data" not in attachment
    return {**attachment, "width": 7, "height": 3, "screenshot_path": "fake"}


class TestMigrateDataToFileSystem:
    """The chokepoint validates data before anything is written."""

    @pytest.mark.asyncio
    async def test_missing_data(
        self, blob_store: BlobStore, list_blobs: Callable[[], set[str]]
    ) -> None:
        migrator = AttachmentMigrator(blob_store)
        with pytest.raises(MissingDataError):
            await migrator.migrate_to_file_system({"content_type": "image/png"})
        assert list_blobs() == set()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data", ["text", 123, [1, 2, 3], {"a": 1}])
    async def test_non_binary_data(
        self,
        blob_store: BlobStore,
        list_blobs: Callable[[], set[str]],
        data: Any,  # noqa: ANN401
    ) -> None:
        with pytest.raises(InvalidDataTypeError):
            await migrate_data_to_file_system(blob_store, data)
        assert list_blobs() == set()

    @pytest.mark.asyncio
    async def test_binary_data_is_written(self, blob_store: BlobStore) -> None:
        migrator = AttachmentMigrator(blob_store)
        path = await migrator.migrate_to_file_system({"data": b"\x00\x01\x02"})
        assert await blob_store.read(path) == b"\x00\x01\x02"


class TestProcessNewAttachment:
    """The full pipeline around the raw write."""

    @pytest.mark.asyncio
    async def test_result_carries_path_not_data(self, blob_store: BlobStore) -> None:
        migrator = AttachmentMigrator(
            blob_store,
            AttachmentTransforms(
                auto_orient=_identity_orientation, capture_dimensions=_fake_capture
            ),
        )
        result = await migrator.process_new_attachment({
            "file_name": "photo.png",
            "content_type": "image/png",
            "data": b"png-ish bytes",
            "digest": "abc123",
        })

        assert "data" not in result
        assert result["file_name"] == "photo.png"
        assert result["size"] == len(b"png-ish bytes")
        assert result["digest"] == "abc123"
        assert result["width"] == 7
        assert result["height"] == 3
        assert await blob_store.read(result["path"]) == b"png-ish bytes"

    @pytest.mark.asyncio
    async def test_stale_digest_is_dropped_and_size_follows_new_bytes(
        self, blob_store: BlobStore
    ) -> None:
        migrator = AttachmentMigrator(
            blob_store,
            AttachmentTransforms(
                auto_orient=_fixed_orientation, capture_dimensions=_noop_capture
            ),
        )
        result = await migrator.process_new_attachment({
            "file_name": "photo.jpg",
            "content_type": "image/jpeg",
            "data": b"original bytes, longer",
            "digest": "stale",
        })

        assert "digest" not in result
        assert result["size"] == len(b"re-encoded!")
        assert await blob_store.read(result["path"]) == b"re-encoded!"

    @pytest.mark.asyncio
    async def test_file_name_is_normalized(self, blob_store: BlobStore) -> None:
        migrator = AttachmentMigrator(
            blob_store,
            AttachmentTransforms(
                normalize_file_name=str.upper,
                auto_orient=_identity_orientation,
                capture_dimensions=_noop_capture,
            ),
        )
        result = await migrator.process_new_attachment({
            "file_name": "notes.txt",
            "content_type": "text/plain",
            "data": b"notes",
        })
        assert result["file_name"] == "NOTES.TXT"

    @pytest.mark.asyncio
    async def test_missing_file_name_becomes_empty(self, blob_store: BlobStore) -> None:
        migrator = AttachmentMigrator(blob_store)
        result = await migrator.process_new_attachment({
            "content_type": "application/octet-stream",
            "data": b"blob",
        })
        assert result["file_name"] == ""

    @pytest.mark.asyncio
    async def test_other_fields_are_preserved(self, blob_store: BlobStore) -> None:
        migrator = AttachmentMigrator(blob_store)
        result = await migrator.process_new_attachment({
            "file_name": "voice.ogg",
            "content_type": "audio/ogg",
            "data": b"ogg",
            "is_raw": False,
            "caption": "hello",
        })
        assert result["caption"] == "hello"  # type: ignore[typeddict-item]
        assert result["is_raw"] is False
        assert result["content_type"] == "audio/ogg"

    @pytest.mark.asyncio
    async def test_missing_data_aborts_without_writing(
        self, blob_store: BlobStore, list_blobs: Callable[[], set[str]]
    ) -> None:
        migrator = AttachmentMigrator(blob_store)
        with pytest.raises(MissingDataError):
            await migrator.process_new_attachment({
                "file_name": "empty.png",
                "content_type": "image/png",
            })
        assert list_blobs() == set()

    @pytest.mark.asyncio
    async def test_non_binary_data_aborts_without_writing(
        self, blob_store: BlobStore, list_blobs: Callable[[], set[str]]
    ) -> None:
        migrator = AttachmentMigrator(blob_store)
        with pytest.raises(InvalidDataTypeError):
            await migrator.process_new_attachment({
                "file_name": "bad.jpg",
                "content_type": "image/jpeg",
                "data": "not bytes",  # type: ignore[typeddict-item]
            })
        assert list_blobs() == set()

    @pytest.mark.asyncio
    async def test_failure_after_write_reports_orphan(
        self, blob_store: BlobStore, list_blobs: Callable[[], set[str]]
    ) -> None:
        async def failing_capture(
            attachment: Attachment,
            store: BlobStore,
            write_data: Any,  # noqa: ANN401
        ) -> Attachment:
            raise RuntimeError("decoder exploded")

        migrator = AttachmentMigrator(
            blob_store,
            AttachmentTransforms(
                auto_orient=_identity_orientation, capture_dimensions=failing_capture
            ),
        )
        with pytest.raises(RuntimeError) as exc_info:
            await migrator.process_new_attachment({
                "file_name": "x.png",
                "content_type": "image/png",
                "data": b"bytes",
            })

        orphaned_path = exc_info.value.orphaned_path  # type: ignore[attr-defined]
        assert list_blobs() == {orphaned_path}

        await blob_store.delete(orphaned_path)
        assert list_blobs() == set()

    @pytest.mark.asyncio
    async def test_real_transforms_rotate_and_measure_jpeg(
        self,
        blob_store: BlobStore,
        make_image: Callable[..., bytes],
        list_blobs: Callable[[], set[str]],
    ) -> None:
        # Orientation 6 means "rotate 90 degrees clockwise to display"
        jpeg = make_image(width=40, height=20, image_format="JPEG", orientation=6)
        migrator = AttachmentMigrator(blob_store)

        result = await migrator.process_new_attachment({
            "file_name": "sideways.jpg",
            "content_type": "image/jpeg",
            "data": jpeg,
            "digest": "digest-of-original",
        })

        assert "digest" not in result
        assert (result["width"], result["height"]) == (20, 40)
        stored = await blob_store.read(result["path"])
        assert result["size"] == len(stored)
        assert list_blobs() == {result["path"], result["thumbnail"]["path"]}
