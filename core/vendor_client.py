"""
Shared HTTP plumbing for vendor REST APIs.

Vision, Adobe PDF Services, and Brevo are called over plain HTTPS with
``requests``. Each adapter subclasses VendorHTTPClient, which owns a
``requests.Session``, applies a default timeout, and turns transport
errors, non-2xx statuses, and unreadable JSON into the adapter's
VendorAPIError subclass.

THREAD SAFETY:
    A Session is not guaranteed thread-safe. File workers run in parallel,
    so each worker builds its own client (see build_ocr_client); clients
    are never shared across threads.

Usage:
    class VisionOCRClient(VendorHTTPClient):
        vendor = "vision"
        error_class = OCRError

    data = client.post_json(url, json=body)

    # Poll an asynchronous vendor operation
    status = client.wait_for(lambda: client.get_json(location), is_done, timeout_seconds=120)
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Type

import requests

from logging_config import get_logger

from .exceptions import VendorAPIError, VendorTimeoutError


class VendorHTTPClient:
    """
    Base class for one vendor's REST API.

    Attributes:
        vendor: Short vendor name used in errors and logs
        error_class: VendorAPIError subclass raised on failures
        timeout: Per-request timeout in seconds
    """

    vendor = "vendor"
    error_class: Type[VendorAPIError] = VendorAPIError

    def __init__(
        self,
        timeout: float = 60,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.timeout = timeout
        self.session = session or requests.Session()
        self._logger = logger or get_logger(f"core.vendor_client.{self.vendor}")
        self._thread_id = threading.get_ident()

    def _raise(self, message: str, http_status: Optional[int] = None, body: Optional[str] = None):
        raise self.error_class(message, self.vendor, http_status, body)

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Send a request and return the response if it is 2xx.

        Raises:
            error_class: On connection errors and non-2xx responses
        """
        kwargs.setdefault("timeout", self.timeout)
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            self._logger.error(f"[Thread {self._thread_id}] {self.vendor} {method} failed: {e}")
            self._raise(f"{self.vendor} request failed: {e}")

        if not response.ok:
            text = response.text or ""
            self._logger.error(
                f"[Thread {self._thread_id}] {self.vendor} {method} -> HTTP {response.status_code}: {text[:200]}"
            )
            self._raise(
                f"{self.vendor} returned HTTP {response.status_code}",
                http_status=response.status_code,
                body=text,
            )
        return response

    def _decode(self, response: requests.Response) -> Dict[str, Any]:
        try:
            return response.json()
        except ValueError as e:
            self._raise(
                f"{self.vendor} returned invalid JSON: {e}",
                http_status=response.status_code,
                body=response.text,
            )

    def get_json(self, url: str, **kwargs) -> Dict[str, Any]:
        return self._decode(self.request("GET", url, **kwargs))

    def post_json(self, url: str, **kwargs) -> Dict[str, Any]:
        return self._decode(self.request("POST", url, **kwargs))

    def wait_for(
        self,
        fetch: Callable[[], Dict[str, Any]],
        is_done: Callable[[Dict[str, Any]], bool],
        timeout_seconds: float = 120,
        polling_interval_sec: float = 2.0,
        operation: str = "operation",
    ) -> Dict[str, Any]:
        """
        Poll ``fetch`` until ``is_done`` accepts its result.

        Raises:
            VendorTimeoutError: If the deadline passes first
        """
        deadline = time.monotonic() + timeout_seconds
        attempt = 0
        while True:
            attempt += 1
            status = fetch()
            if is_done(status):
                self._logger.debug(f"{self.vendor} {operation} done after {attempt} poll(s)")
                return status
            if time.monotonic() >= deadline:
                self._logger.error(f"{self.vendor} {operation} timed out after {attempt} poll(s)")
                raise VendorTimeoutError(self.vendor, operation, timeout_seconds)
            time.sleep(polling_interval_sec)

    def close(self) -> None:
        self.session.close()
