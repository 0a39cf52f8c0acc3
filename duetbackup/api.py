"""HTTP client for the RepRapFirmware file manager (rr_* endpoints)."""

from __future__ import annotations

import logging
import random
import time
from datetime import datetime
from typing import Any

import httpx

from .exceptions import (
    DuetAPIError,
    DuetAuthenticationError,
    DuetConnectionLimitError,
    DuetDownloadError,
    DuetInvalidResponseError,
    DuetNetworkError,
    DuetNotFoundError,
)
from .models import FileEntry, Filelist
from .utils import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY, format_rrf_timestamp

logger = logging.getLogger(__name__)

# Values of the "err" field returned by rr_connect
CONNECT_OK = 0
CONNECT_BAD_PASSWORD = 1
CONNECT_NO_SESSION = 2


class RRFClient:
    """Client for the file manager of a Duet board running RepRapFirmware."""

    def __init__(
        self,
        domain: str,
        port: int = 80,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            domain: Host name or IP address of the controller
            port: HTTP port (default: 80)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            transport: Optional httpx transport (used by tests)
        """
        self.domain = domain
        self.port = port
        self.base_url = f"http://{domain}:{port}"
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            # Downloads are requested uncompressed
            self._client = httpx.Client(
                base_url=self.base_url,
                headers={"Accept-Encoding": "identity"},
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> RRFClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            exception: The exception that occurred
            attempt: Current attempt number (0-based)

        Returns:
            True if the request should be retried, False otherwise
        """
        if attempt >= self.max_retries:
            return False

        if isinstance(exception, DuetNetworkError):
            return True

        # Server errors (5xx) are treated as transient
        if isinstance(exception, httpx.HTTPStatusError):
            return 500 <= exception.response.status_code < 600

        return False

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # +/- 25% jitter
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _map_http_error(self, e: httpx.HTTPStatusError) -> DuetAPIError:
        status_code = e.response.status_code
        if status_code == 401:
            return DuetAuthenticationError("Not authorized - connect with password")
        if status_code == 404:
            return DuetNotFoundError(f"Not found: {e.request.url}")
        return DuetAPIError(f"Request failed with status {status_code}")

    def _request(self, endpoint: str, params: dict[str, Any]) -> httpx.Response:
        """Perform a GET request with retry logic.

        Args:
            endpoint: Endpoint path (e.g. "/rr_filelist")
            params: Query parameters

        Returns:
            The successful response

        Raises:
            DuetAPIError: If the request fails after all retries
        """
        client = self._get_client()
        last_exception: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                response = client.get(endpoint, params=params)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as e:
                last_exception = self._map_http_error(e)
                if self._should_retry(e, attempt):
                    delay = self._calculate_retry_delay(attempt)
                    logger.debug(
                        "%s returned %s, retrying in %.1fs",
                        endpoint,
                        e.response.status_code,
                        delay,
                    )
                    time.sleep(delay)
                    continue
                raise last_exception from e
            except httpx.RequestError as e:
                error = DuetNetworkError(f"Network error: {e}")
                last_exception = error
                if self._should_retry(error, attempt):
                    delay = self._calculate_retry_delay(attempt)
                    logger.debug("%s, retrying in %.1fs", error, delay)
                    time.sleep(delay)
                    continue
                raise error from e

        if last_exception:
            raise last_exception
        raise DuetAPIError("Request failed after all retry attempts")

    def _request_json(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        response = self._request(endpoint, params)
        try:
            data = response.json()
        except ValueError as e:
            raise DuetInvalidResponseError(
                f"Invalid JSON response from {endpoint}"
            ) from e
        if not isinstance(data, dict):
            raise DuetInvalidResponseError(f"Unexpected response from {endpoint}")
        return data

    # =========================
    # Session
    # =========================

    def connect(self, password: str) -> dict[str, Any]:
        """Open a session on the controller.

        Args:
            password: Connection password (the firmware default is "reprap")

        Returns:
            The decoded rr_connect response

        Raises:
            DuetAuthenticationError: If the password is wrong
            DuetConnectionLimitError: If no free session is available
            DuetAPIError: If the controller cannot be reached
        """
        result = self._request_json(
            "/rr_connect",
            {"password": password, "time": format_rrf_timestamp(datetime.now())},
        )
        err = result.get("err", CONNECT_OK)
        if err == CONNECT_BAD_PASSWORD:
            raise DuetAuthenticationError("Invalid password")
        if err == CONNECT_NO_SESSION:
            raise DuetConnectionLimitError("No more HTTP sessions available")
        if err != CONNECT_OK:
            raise DuetAPIError(f"Connect failed with err={err}")
        logger.debug("Connected to %s", self.base_url)
        return result

    def disconnect(self) -> None:
        """Close the session on the controller."""
        self._request("/rr_disconnect", {})

    # =========================
    # Files
    # =========================

    def get_filelist(self, path: str) -> Filelist:
        """Get all files and directories in a remote directory.

        Follows the firmware's pagination ("first"/"next") until every page
        has been fetched.

        Args:
            path: Remote directory (e.g. "0:/sys")

        Returns:
            Filelist sorted directories first, then by name

        Raises:
            DuetNotFoundError: If the directory does not exist
            DuetInvalidResponseError: If the listing is malformed
        """
        entries: list[FileEntry] = []
        first = 0

        while True:
            data = self._request_json("/rr_filelist", {"dir": path, "first": first})
            if data.get("err"):
                raise DuetNotFoundError(f"Directory not found: {path}")

            files = data.get("files")
            if not isinstance(files, list):
                raise DuetInvalidResponseError(f"Listing of {path} has no files")
            entries.extend(FileEntry.from_api_response(f) for f in files)

            next_index = data.get("next", 0) or 0
            if next_index == 0:
                break
            if next_index <= first:
                raise DuetInvalidResponseError(
                    f"Listing of {path} does not advance (next={next_index})"
                )
            logger.debug("Fetching next page of %s starting at %d", path, next_index)
            first = next_index

        return Filelist.from_entries(path, entries)

    def get_file(self, path: str) -> tuple[bytes, float]:
        """Download a file.

        Args:
            path: Remote file path

        Returns:
            Tuple of (content, elapsed seconds including connection setup)

        Raises:
            DuetNotFoundError: If the file does not exist
            DuetDownloadError: If the download fails
        """
        start = time.perf_counter()
        try:
            response = self._request("/rr_download", {"name": path})
        except (DuetNotFoundError, DuetNetworkError):
            raise
        except DuetAPIError as e:
            raise DuetDownloadError(f"Download of {path} failed: {e}") from e
        return response.content, time.perf_counter() - start
