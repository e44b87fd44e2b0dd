"""
HTTP client for the store server.

Implements the Store contract on top of the coordinator's REST API.
"""

import base64
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from core.errors import StoreError, StoreTimeoutError, StoreUnavailableError
from store.base import Store, Value


logger = logging.getLogger(__name__)


def _encode(value: bytes) -> str:
    return base64.b64encode(value).decode('ascii')


def _decode(value: str) -> bytes:
    return base64.b64decode(value)


class HTTPStore(Store):
    """
    Store backed by the rendezvous store server.

    Blocking waits are long polls: each request asks the server to hold it
    for at most ``poll_window`` seconds, and the client repeats until the
    keys appear or its own deadline passes.
    """

    def __init__(
        self,
        url: str,
        timeout: Optional[float] = None,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        poll_window: float = 30.0,
        client: Optional[httpx.Client] = None
    ):
        """
        Initialize store client.

        Args:
            url: Base URL of the store server
            timeout: Timeout for blocking operations (None waits forever)
            retry_attempts: Number of attempts for each request
            retry_delay: Base delay between retries (exponential backoff)
            poll_window: Longest time a single wait request is held by the server
            client: Preconfigured HTTP client (owned by the caller)
        """
        super().__init__(timeout=timeout)
        self.url = url.rstrip('/')
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.poll_window = poll_window

        self._owns_client = client is None
        if client is None:
            # Leave headroom over the server-side hold time
            client = httpx.Client(timeout=poll_window + 10.0)
        self._client = client

    def _request(
        self,
        endpoint: str,
        payload: Dict[str, Any],
        idempotent: bool = True
    ) -> httpx.Response:
        """
        POST to the server with retry logic.

        Requests that are not idempotent are only retried after a
        connection error. Any other failure may follow a write the server
        already applied.

        Args:
            endpoint: API endpoint (e.g., "/store/add")
            payload: JSON body
            idempotent: Whether repeating the request is harmless

        Returns:
            HTTP response (status 200 or 408)

        Raises:
            StoreError: If the server rejects the request
            StoreUnavailableError: If all retry attempts fail, or a
                non-idempotent request fails after reaching the server
        """
        url = f"{self.url}{endpoint}"

        last_exception = None
        for attempt in range(self.retry_attempts):
            try:
                response = self._client.post(url, json=payload)
                if response.status_code == 408:
                    return response
                response.raise_for_status()
                return response

            except httpx.HTTPStatusError as e:
                # Client errors will not succeed on retry
                if e.response.status_code < 500:
                    raise StoreError(
                        f"Request to {endpoint} rejected: {e.response.status_code} "
                        f"{e.response.text}"
                    ) from e
                last_exception = e

            except httpx.HTTPError as e:
                last_exception = e

            if not idempotent and not isinstance(last_exception, httpx.ConnectError):
                logger.error(f"Request to {endpoint} failed and cannot be retried: {last_exception}")
                break

            if attempt < self.retry_attempts - 1:
                delay = self.retry_delay * (2 ** attempt)  # Exponential backoff
                logger.warning(
                    f"Request to {endpoint} failed (attempt {attempt + 1}/{self.retry_attempts}): "
                    f"{last_exception}. Retrying in {delay}s..."
                )
                time.sleep(delay)
            else:
                logger.error(
                    f"Request to {endpoint} failed after {self.retry_attempts} attempts: "
                    f"{last_exception}"
                )

        raise StoreUnavailableError(
            f"Store at {self.url} unavailable: {last_exception}"
        ) from last_exception

    def set(self, key: str, value: Value):
        self._request("/store/set", {"key": key, "value": _encode(self._to_bytes(value))})

    def get(self, key: str) -> bytes:
        self.wait([key])
        response = self._request("/store/get", {"key": key})
        return _decode(response.json()["value"])

    def add(self, key: str, delta: int) -> int:
        response = self._request("/store/add", {"key": key, "delta": delta}, idempotent=False)
        return int(response.json()["value"])

    def compare_set(self, key: str, expected: Value, desired: Value) -> bytes:
        response = self._request("/store/compare-set", {
            "key": key,
            "expected": _encode(self._to_bytes(expected)),
            "desired": _encode(self._to_bytes(desired))
        }, idempotent=False)
        return _decode(response.json()["value"])

    def check(self, keys: List[str]) -> bool:
        response = self._request("/store/check", {"keys": keys})
        return bool(response.json()["exists"])

    def wait(self, keys: List[str], timeout: Optional[float] = None):
        if timeout is None:
            timeout = self.timeout
        deadline = None if timeout is None else time.monotonic() + timeout

        while True:
            window = self.poll_window
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise StoreTimeoutError(
                        f"Timed out after {timeout}s waiting for keys {keys}"
                    )
                window = min(window, remaining)

            response = self._request("/store/wait", {"keys": keys, "timeout": window})
            if response.status_code != 408:
                return

            logger.debug(f"Still waiting for keys {keys}")

    def close(self):
        """Close HTTP client."""
        if self._owns_client:
            self._client.close()
