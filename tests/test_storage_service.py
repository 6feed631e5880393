"""
Unit tests for Supabase Storage access and storage path helpers.

The Supabase client is replaced through create_client; downloads patch
requests.get.
"""

import pytest
from unittest.mock import MagicMock, patch

from core.exceptions import ConfigurationError, StorageError
from modules.file_naming import (
    file_name_from_path,
    format_quote_id,
    guess_mime,
    is_quote_id,
    object_path,
    parse_quote_number,
    sanitize_for_path,
    unique_file_name,
)
from services.storage_service import StorageService


# Fixtures

@pytest.fixture
def bucket():
    return MagicMock()


@pytest.fixture
def storage(bucket):
    with patch("services.storage_service.create_client") as create_client:
        create_client.return_value.storage.from_.return_value = bucket
        yield StorageService("https://proj.supabase.co", "service-key", bucket="orders")


class TestFileNaming:
    """Test storage key and quote id helpers."""

    def test_sanitize_for_path(self):
        assert sanitize_for_path("Acta de nacimiento (copia)#2.pdf") == "Acta de nacimiento -copia-2.pdf"
        assert sanitize_for_path("  a   b.pdf ") == "a b.pdf"
        assert sanitize_for_path("../../etc/passwd") == "..-..-etc-passwd"

    def test_object_path(self):
        assert object_path("CS00001", "mi acta?.pdf") == "CS00001/mi acta-.pdf"
        assert file_name_from_path("CS00001/mi acta-.pdf") == "mi acta-.pdf"

    def test_unique_file_name(self):
        assert unique_file_name("scan.pdf", set()) == "scan.pdf"
        assert unique_file_name("scan.pdf", {"scan.pdf"}) == "scan-2.pdf"
        assert unique_file_name("scan.pdf", {"scan.pdf", "scan-2.pdf"}) == "scan-3.pdf"
        assert unique_file_name("mi acta?.pdf", {"mi acta-.pdf"}) == "mi acta-2.pdf"

    def test_guess_mime(self):
        assert guess_mime("SCAN.TIF") == "image/tiff"
        assert guess_mime("a.jpeg") == "image/jpeg"
        assert guess_mime("a.docx") == "application/octet-stream"

    def test_quote_ids(self):
        assert format_quote_id(7) == "CS00007"
        assert parse_quote_number("CS00042") == 42
        assert parse_quote_number(None) == 0
        assert parse_quote_number("CSabc") == 0
        assert is_quote_id("CS00001")
        assert not is_quote_id("XX00001")


class TestStorageService:
    """Test signing, upload, listing, and download."""

    def test_not_configured(self):
        service = StorageService("", "")
        assert not service.is_configured
        with pytest.raises(ConfigurationError) as exc_info:
            service.upload("CS00001", "a.pdf", b"x")
        assert exc_info.value.setting == "SUPABASE_URL"

    def test_upload_sanitizes_and_upserts(self, storage, bucket):
        path = storage.upload("CS00001", "acta (1).pdf", b"%PDF")

        assert path == "CS00001/acta -1-.pdf"
        args, kwargs = bucket.upload.call_args
        assert args[0] == "CS00001/acta -1-.pdf"
        assert kwargs["file_options"] == {"content-type": "application/pdf", "upsert": "true"}

    def test_signed_upload_url(self, storage, bucket):
        bucket.create_signed_upload_url.return_value = {
            "signed_url": "https://proj.supabase.co/upload/sign/orders/CS00001/a.pdf?token=t",
            "token": "t",
            "path": "CS00001/a.pdf",
        }

        signed = storage.create_signed_upload_url("CS00001", "a.pdf")

        assert signed["upload_url"].endswith("token=t")
        assert signed["token"] == "t"
        assert signed["storage_backend"] == "SUPABASE"
        assert signed["source_uri"] == "supabase://orders/CS00001/a.pdf"

    def test_signed_read(self, storage, bucket):
        bucket.create_signed_url.return_value = {"signedURL": "https://signed"}

        signed = storage.signed_read("CS00001", "a.pdf", ttl=120)

        assert signed["signed_url"] == "https://signed"
        assert signed["expires_in"] == 120
        bucket.create_signed_url.assert_called_once_with("CS00001/a.pdf", 120)

    def test_signed_read_without_url(self, storage, bucket):
        bucket.create_signed_url.return_value = {}
        with pytest.raises(StorageError):
            storage.signed_read("CS00001", "a.pdf")

    def test_list_skips_folders(self, storage, bucket):
        bucket.list.return_value = [
            {"name": "acta.pdf", "id": "1", "metadata": {"mimetype": "application/pdf", "size": 2048}},
            {"name": "scan.png", "id": "2", "metadata": None},
            {"name": "nested", "id": None, "metadata": None},
        ]

        objects = storage.list_quote_objects("CS00001")

        assert [o["file_name"] for o in objects] == ["acta.pdf", "scan.png"]
        assert objects[0]["size"] == 2048
        assert objects[1]["mime_type"] == "image/png"
        assert objects[1]["storage_path"] == "CS00001/scan.png"

    def test_fetch_bytes(self, storage, bucket):
        bucket.create_signed_url.return_value = {"signedURL": "https://signed"}
        with patch("services.storage_service.requests.get") as get:
            get.return_value.ok = True
            get.return_value.content = b"%PDF-1.7"
            data = storage.fetch_bytes("CS00001/a.pdf")

        assert data == b"%PDF-1.7"
        bucket.create_signed_url.assert_called_once_with("CS00001/a.pdf", 60)

    def test_fetch_bytes_http_error(self, storage, bucket):
        bucket.create_signed_url.return_value = {"signedURL": "https://signed"}
        with patch("services.storage_service.requests.get") as get:
            get.return_value.ok = False
            get.return_value.status_code = 404
            with pytest.raises(StorageError) as exc_info:
                storage.fetch_bytes("CS00001/a.pdf")
        assert "404" in exc_info.value.message
        assert exc_info.value.path == "CS00001/a.pdf"
