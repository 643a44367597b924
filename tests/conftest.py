import io
import logging
import os
import pathlib
from collections.abc import Callable, Generator

import pytest
from PIL import Image

from chat_attachments.blob_store import BlobStore
from chat_attachments.paths import ATTACHMENTS_DIR_NAME, reset_attachment_logic_for_tests

# Configure logging for tests (optional, but can be helpful)
logging.basicConfig(level=logging.INFO)

logger = logging.getLogger(__name__)

EXIF_ORIENTATION_TAG = 0x0112


@pytest.fixture(autouse=True)
def reset_process_attachment_logic() -> Generator[None, None, None]:
    """Give every test a fresh process-wide attachments root."""
    reset_attachment_logic_for_tests()
    yield
    reset_attachment_logic_for_tests()


@pytest.fixture
def user_data_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    """A per-test application data directory."""
    path = tmp_path / "user-data"
    path.mkdir()
    return path


@pytest.fixture
def attachments_root(user_data_dir: pathlib.Path) -> pathlib.Path:
    return user_data_dir / ATTACHMENTS_DIR_NAME


@pytest.fixture
def blob_store(user_data_dir: pathlib.Path) -> BlobStore:
    """A store with its own resolver rooted in the test's data directory."""
    return BlobStore.at(user_data_dir)


@pytest.fixture
def list_blobs(attachments_root: pathlib.Path) -> Callable[[], set[str]]:
    """Return a function listing every file under the attachments root."""

    def _list() -> set[str]:
        if not attachments_root.exists():
            return set()
        return {
            os.path.relpath(os.path.join(dirpath, name), attachments_root).replace(
                os.sep, "/"
            )
            for dirpath, _dirnames, filenames in os.walk(attachments_root)
            for name in filenames
        }

    return _list


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    """Return a factory for small encoded test images."""

    def _make(
        width: int = 40,
        height: int = 20,
        image_format: str = "PNG",
        orientation: int | None = None,
        color: tuple[int, int, int] = (200, 30, 30),
    ) -> bytes:
        img = Image.new("RGB", (width, height), color=color)
        output_buffer = io.BytesIO()
        if orientation is not None:
            exif = Image.Exif()
            exif[EXIF_ORIENTATION_TAG] = orientation
            img.save(output_buffer, format=image_format, exif=exif.tobytes())
        else:
            img.save(output_buffer, format=image_format)
        return output_buffer.getvalue()

    return _make
