"""
Supabase Storage access for quote uploads.

Objects live in one bucket (ORDERS_BUCKET, default "orders") under
``<quote_id>/<sanitized filename>``. Browsers upload either through the
Flask form (server-side upload) or directly with a signed upload URL;
processing reads files back through short-lived signed read URLs.

The Supabase client is created on first use, so the app starts without
credentials and reports the gap through /health.

Thread Safety:
    The client is created once under a lock. File workers call
    fetch_bytes() concurrently; each call uses a one-off requests GET.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Mapping, Optional

import httpx
import requests
from storage3.exceptions import StorageApiError
from supabase import Client, create_client

from core.exceptions import ConfigurationError, StorageError
from logging_config import get_logger
from modules.file_naming import guess_mime, object_path, sanitize_for_path

STORAGE_BACKEND = "SUPABASE"

_STORAGE_ERRORS = (StorageApiError, httpx.HTTPError)


class StorageService:
    """
    Signs, uploads, lists, and downloads quote files.

    Args:
        supabase_url: Project URL (SUPABASE_URL)
        service_key: Service role key (SUPABASE_SERVICE_ROLE_KEY)
        bucket: Bucket name (ORDERS_BUCKET)
        read_ttl: Default TTL for public signed read URLs, seconds
        processing_ttl: TTL for the URLs processing downloads through, seconds
        timeout: Download timeout, seconds
    """

    def __init__(
        self,
        supabase_url: str,
        service_key: str,
        bucket: str = "orders",
        read_ttl: int = 3600,
        processing_ttl: int = 60,
        timeout: float = 60,
    ) -> None:
        self.supabase_url = supabase_url
        self.service_key = service_key
        self.bucket = bucket
        self.read_ttl = read_ttl
        self.processing_ttl = processing_ttl
        self.timeout = timeout
        self.logger = get_logger(__name__)
        self._client: Optional[Client] = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "StorageService":
        return cls(
            supabase_url=config.get("SUPABASE_URL", ""),
            service_key=config.get("SUPABASE_SERVICE_ROLE_KEY", ""),
            bucket=config.get("ORDERS_BUCKET", "orders"),
            read_ttl=config.get("SIGNED_URL_TTL_SECONDS", 3600),
            processing_ttl=config.get("PROCESSING_URL_TTL_SECONDS", 60),
            timeout=config.get("VENDOR_TIMEOUT_SECONDS", 60),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.supabase_url and self.service_key)

    @property
    def client(self) -> Client:
        if not self.supabase_url:
            raise ConfigurationError("SUPABASE_URL", "Supabase Storage")
        if not self.service_key:
            raise ConfigurationError("SUPABASE_SERVICE_ROLE_KEY", "Supabase Storage")
        with self._lock:
            if self._client is None:
                self._client = create_client(self.supabase_url, self.service_key)
                self.logger.info(f"Supabase Storage client ready (bucket={self.bucket})")
            return self._client

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    def source_uri(self, path: str) -> str:
        return f"supabase://{self.bucket}/{path}"

    # -------------------------------------------------------------------------
    # Signing
    # -------------------------------------------------------------------------

    def create_signed_upload_url(self, quote_id: str, filename: str) -> Dict[str, Any]:
        """
        Signed URL the browser can PUT a file to.

        Returns:
            Dict with upload_url, token, path, storage_backend, source_uri
        """
        path = object_path(quote_id, filename)
        try:
            signed = self._bucket().create_signed_upload_url(path)
        except _STORAGE_ERRORS as e:
            raise StorageError(f"Could not sign upload: {e}", path)

        upload_url = signed.get("signed_url") or signed.get("signedUrl") or signed.get("signedURL")
        if not upload_url:
            raise StorageError("Supabase returned no signed upload URL", path)
        self.logger.debug(f"Signed upload URL for {path}")
        return {
            "upload_url": upload_url,
            "token": signed.get("token"),
            "path": path,
            "storage_backend": STORAGE_BACKEND,
            "source_uri": self.source_uri(path),
        }

    def create_signed_read_url(self, path: str, ttl: Optional[int] = None) -> str:
        ttl = ttl or self.read_ttl
        try:
            signed = self._bucket().create_signed_url(path, ttl)
        except _STORAGE_ERRORS as e:
            raise StorageError(f"Could not sign read URL: {e}", path)
        url = signed.get("signedURL") or signed.get("signedUrl") or signed.get("signed_url")
        if not url:
            raise StorageError("Supabase returned no signed URL", path)
        return url

    def signed_read(self, quote_id: str, filename: str, ttl: Optional[int] = None) -> Dict[str, Any]:
        """Signed read URL for ``<quote_id>/<filename>`` with backend metadata."""
        path = object_path(quote_id, filename)
        return {
            "signed_url": self.create_signed_read_url(path, ttl),
            "path": path,
            "expires_in": ttl or self.read_ttl,
            "storage_backend": STORAGE_BACKEND,
            "source_uri": self.source_uri(path),
        }

    # -------------------------------------------------------------------------
    # Objects
    # -------------------------------------------------------------------------

    def upload(self, quote_id: str, filename: str, data: bytes,
               content_type: Optional[str] = None) -> str:
        """
        Upload (upsert) a quote file.

        Returns:
            Storage path ``<quote_id>/<sanitized filename>``
        """
        path = object_path(quote_id, filename)
        content_type = content_type or guess_mime(filename)
        try:
            self._bucket().upload(
                path,
                data,
                file_options={"content-type": content_type, "upsert": "true"},
            )
        except _STORAGE_ERRORS as e:
            raise StorageError(f"Upload failed: {e}", path)
        self.logger.info(f"Uploaded {path} ({len(data)} bytes, {content_type})")
        return path

    def list_quote_objects(self, quote_id: str) -> List[Dict[str, Any]]:
        """
        Files stored under ``<quote_id>/``.

        Returns:
            Dicts with file_name, storage_path, mime_type, size
        """
        prefix = sanitize_for_path(quote_id)
        try:
            entries = self._bucket().list(prefix, {"limit": 1000})
        except _STORAGE_ERRORS as e:
            raise StorageError(f"List failed: {e}", prefix)

        objects = []
        for entry in entries or []:
            name = entry.get("name") or ""
            if not name or name.endswith("/") or entry.get("id") is None:
                # Folder placeholders have no id
                continue
            metadata = entry.get("metadata") or {}
            objects.append({
                "file_name": name,
                "storage_path": f"{prefix}/{name}",
                "mime_type": metadata.get("mimetype") or guess_mime(name),
                "size": int(metadata.get("size") or 0),
            })
        return objects

    def fetch_bytes(self, path: str) -> bytes:
        """Download a file through a short-lived signed URL."""
        url = self.create_signed_read_url(path, self.processing_ttl)
        try:
            response = requests.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise StorageError(f"Download failed: {e}", path)
        if not response.ok:
            raise StorageError(f"Download failed: HTTP {response.status_code}", path)
        return response.content

    def health(self) -> Dict[str, Any]:
        return {"configured": self.is_configured, "bucket": self.bucket}
