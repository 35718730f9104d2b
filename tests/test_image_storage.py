"""Unit tests for upload validation and the stored-image helpers."""

import asyncio
import io
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

from starlette.datastructures import UploadFile

from app.services.image_storage import (
    ImageValidationError,
    delete_image,
    filename_from_url,
    is_safe_filename,
    public_url,
    read_upload,
    store_image,
    validate_image,
)


def _settings(upload_dir: str = "uploads/images", max_size: int = 1024) -> MagicMock:
    settings = MagicMock()
    settings.UPLOAD_DIR = upload_dir
    settings.MAX_FILE_SIZE = max_size
    settings.allowed_file_types = ["image/jpeg", "image/png", "image/jpg"]
    return settings


class TestValidateImage(unittest.TestCase):
    def test_accepts_png_and_jpeg(self) -> None:
        self.assertEqual(validate_image("a.PNG", "image/png", 10, _settings()), ".png")
        self.assertEqual(validate_image("a.jpeg", "image/jpeg", 10, _settings()), ".jpeg")

    def test_error_codes(self) -> None:
        cases = [
            (None, "image/png", 10, "NO_FILE_UPLOADED"),
            ("a.png", "image/png", 0, "NO_FILE_UPLOADED"),
            ("a.gif", "image/gif", 10, "VALIDATION_ERROR"),
            ("a.txt", "image/png", 10, "VALIDATION_ERROR"),
            ("a.png", "image/png", 2048, "FILE_TOO_LARGE"),
        ]
        for filename, content_type, size, code in cases:
            with self.subTest(filename=filename, size=size):
                with self.assertRaises(ImageValidationError) as ctx:
                    validate_image(filename, content_type, size, _settings())
                self.assertEqual(ctx.exception.code, code)


class TestReadUpload(unittest.TestCase):
    def test_reads_small_upload(self) -> None:
        upload = UploadFile(io.BytesIO(b"x" * 100), filename="a.png")
        self.assertEqual(asyncio.run(read_upload(upload, _settings(max_size=1024))), b"x" * 100)

    def test_oversized_stream_stops_one_byte_past_limit(self) -> None:
        body = io.BytesIO(b"x" * (10 * 1024 * 1024))
        upload = UploadFile(body, filename="a.png")
        with self.assertRaises(ImageValidationError) as ctx:
            asyncio.run(read_upload(upload, _settings(max_size=1024)))
        self.assertEqual(ctx.exception.code, "FILE_TOO_LARGE")
        self.assertEqual(body.tell(), 1025)

    def test_reported_size_rejected_before_reading(self) -> None:
        body = io.BytesIO(b"x" * 2048)
        upload = UploadFile(body, size=2048, filename="a.png")
        with self.assertRaises(ImageValidationError) as ctx:
            asyncio.run(read_upload(upload, _settings(max_size=1024)))
        self.assertEqual(ctx.exception.code, "FILE_TOO_LARGE")
        self.assertEqual(body.tell(), 0)


class TestStoredImages(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.settings = _settings(upload_dir=str(Path(tmp.name) / "images"))

    def test_store_then_delete(self) -> None:
        stored = store_image(b"\x89PNG data", "sample.png", "image/png", self.settings)
        self.assertTrue(stored.filename.startswith("grain-analysis-"))
        self.assertEqual(stored.url, public_url(stored.filename))
        self.assertEqual(filename_from_url(stored.url), stored.filename)
        self.assertTrue((Path(self.settings.UPLOAD_DIR) / stored.filename).is_file())

        self.assertTrue(delete_image(stored.filename, self.settings))
        self.assertFalse(delete_image(stored.filename, self.settings))

    def test_unique_names(self) -> None:
        names = {
            store_image(b"x", "a.png", "image/png", self.settings).filename for _ in range(20)
        }
        self.assertEqual(len(names), 20)

    def test_path_traversal_rejected(self) -> None:
        self.assertFalse(is_safe_filename("../secret.png"))
        self.assertFalse(is_safe_filename(".."))
        self.assertFalse(is_safe_filename(""))
        self.assertTrue(is_safe_filename("grain-analysis-1-2.png"))
        self.assertFalse(delete_image("../secret.png", self.settings))

    def test_filename_from_foreign_url(self) -> None:
        self.assertIsNone(filename_from_url("https://cdn.example.com/x.png"))
        self.assertIsNone(filename_from_url(""))


if __name__ == "__main__":
    unittest.main()
