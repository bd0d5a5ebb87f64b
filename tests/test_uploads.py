"""Tests for upload storage."""

import asyncio
import io

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from claimease.core.config import settings
from claimease.core.exceptions import FileTooLargeError, UnsupportedFileTypeError, UploadError
from claimease.utils.uploads import (
    UPLOAD_CHUNK_SIZE, sanitize_filename, save_upload, save_uploads
)


def upload(name: str, data: bytes, content_type: str = "application/pdf"):
    source = io.BytesIO(data)
    file = UploadFile(file=source, filename=name, headers=Headers({"content-type": content_type}))
    return file, source


class TestSaveUpload:
    """Test storing single files."""

    def test_stores_file(self, isolated_settings) -> None:
        """Test the file lands in the field's subdirectory."""
        file, _ = upload("Bill (1).pdf", b"%PDF-1.4 hospital bill")

        stored = asyncio.run(save_upload(file, "claimDocument", user_id="usr_1"))

        assert stored.size == len(b"%PDF-1.4 hospital bill")
        assert stored.url.startswith("/uploads/claims/Bill__1__")
        assert stored.original_name == "Bill (1).pdf"
        with open(stored.path, "rb") as f:
            assert f.read() == b"%PDF-1.4 hospital bill"

    def test_oversized_stops_reading(self, monkeypatch, isolated_settings) -> None:
        """Test reading stops one chunk past the limit and nothing is kept."""
        monkeypatch.setattr(settings, "MAX_FILE_SIZE_MB", 1)
        file, source = upload("scan.pdf", b"0" * (8 * 1024 * 1024))

        with pytest.raises(FileTooLargeError) as exc_info:
            asyncio.run(save_upload(file, "claimDocument"))

        assert exc_info.value.message == "File size too large. Maximum size is 1MB."
        assert source.tell() <= settings.max_file_size_bytes + UPLOAD_CHUNK_SIZE
        assert list((isolated_settings / "uploads" / "claims").iterdir()) == []

    def test_exact_limit_accepted(self, monkeypatch) -> None:
        """Test a file of exactly the maximum size."""
        monkeypatch.setattr(settings, "MAX_FILE_SIZE_MB", 1)
        file, _ = upload("scan.pdf", b"0" * settings.max_file_size_bytes)

        assert asyncio.run(save_upload(file, "claimDocument")).size == settings.max_file_size_bytes

    def test_empty_file_rejected(self, isolated_settings) -> None:
        """Test empty uploads leave no file behind."""
        file, _ = upload("empty.pdf", b"")

        with pytest.raises(UploadError) as exc_info:
            asyncio.run(save_upload(file, "claimDocument"))

        assert exc_info.value.message == "Uploaded file is empty"
        assert list((isolated_settings / "uploads" / "claims").iterdir()) == []

    def test_avatar_must_be_image(self) -> None:
        """Test image-only fields refuse documents."""
        file, _ = upload("cv.pdf", b"%PDF-1.4")

        with pytest.raises(UnsupportedFileTypeError):
            asyncio.run(save_upload(file, "avatar"))


class TestSaveUploads:
    """Test storing several files at once."""

    def test_rejection_removes_earlier_files(self, monkeypatch, isolated_settings) -> None:
        """Test one oversized file undoes the whole batch."""
        monkeypatch.setattr(settings, "MAX_FILE_SIZE_MB", 1)
        good, _ = upload("bill.pdf", b"%PDF-1.4")
        big, _ = upload("scan.pdf", b"0" * (2 * 1024 * 1024))

        with pytest.raises(FileTooLargeError):
            asyncio.run(save_uploads([good, big], "claimDocument"))

        assert list((isolated_settings / "uploads" / "claims").iterdir()) == []

    def test_sanitize_filename(self) -> None:
        """Test unsafe characters are replaced and the extension lowered."""
        name = sanitize_filename("../My Report.PDF")

        assert name.startswith("My_Report_")
        assert name.endswith(".pdf")
