"""HTTP transport for manifests, artifacts and diffs."""

from __future__ import annotations

import hashlib
import threading
from collections.abc import Callable

import httpx
import structlog

from bootstrapper.core.config import AppConfig
from bootstrapper.core.errors import DownloadCancelled, NetworkError, VerificationError
from bootstrapper.core.utils import CHUNK_SIZE

logger = structlog.get_logger()

ProgressSink = Callable[[int], None]


class HttpTransport:
    """Blocking HTTP client identifying itself as ``<product>/<version>``.

    Every request carries the configured timeout. TLS verification is on
    unless ``insecure_skip_tls_verification`` is set, which disables both
    certificate and hostname checks for every request.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize HTTP transport.

        Args:
            config: Application configuration
            transport: Optional httpx transport (used to mount test servers)
        """
        self.config = config or AppConfig()
        self._transport = transport
        self._client: httpx.Client | None = None

        if self.config.insecure_skip_tls_verification:
            logger.warning("tls_verification_disabled")

    @property
    def client(self) -> httpx.Client:
        """Get or create sync HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.config.timeout,
                verify=not self.config.insecure_skip_tls_verification,
                follow_redirects=True,
                headers={"User-Agent": self.config.user_agent},
                transport=self._transport,
            )
        return self._client

    def fetch(self, url: str) -> bytes:
        """Fetch a whole response body.

        Args:
            url: URL to fetch

        Returns:
            Response body

        Raises:
            NetworkError: On connection failure or non-2xx status
        """
        try:
            response = self.client.get(url)
        except httpx.HTTPError as e:
            logger.error("fetch_failed", url=url, error=str(e))
            raise NetworkError(f"Unable to download {url}: {e}", url=url) from e

        if not response.is_success:
            logger.error("fetch_failed", url=url, status=response.status_code)
            raise NetworkError(
                f"Unable to download {url} - {response.status_code} {response.reason_phrase}",
                url=url,
                status_code=response.status_code,
            )

        logger.debug("fetch_success", url=url, size=len(response.content))
        return response.content

    def transfer(
        self,
        url: str,
        expected_hash: str,
        progress: ProgressSink | None = None,
        cancel: threading.Event | None = None,
    ) -> bytes:
        """Stream a payload while hashing it, then verify the digest.

        No byte of the result is valid until the final hash check passes.

        Args:
            url: Payload URL
            expected_hash: Expected lowercase hex SHA-256
            progress: Receives cumulative bytes read after each chunk
            cancel: Aborts the transfer when set

        Returns:
            Verified payload bytes

        Raises:
            NetworkError: On connection failure or non-2xx status
            VerificationError: If the payload hash does not match
            DownloadCancelled: If ``cancel`` is set mid-transfer
        """
        hasher = hashlib.sha256()
        buffer = bytearray()

        try:
            with self.client.stream("GET", url) as response:
                if not response.is_success:
                    raise NetworkError(
                        f"Unable to download {url} - {response.status_code} {response.reason_phrase}",
                        url=url,
                        status_code=response.status_code,
                    )

                for chunk in response.iter_bytes(CHUNK_SIZE):
                    if cancel is not None and cancel.is_set():
                        raise DownloadCancelled(f"Download of {url} cancelled")
                    hasher.update(chunk)
                    buffer.extend(chunk)
                    if progress is not None:
                        progress(len(buffer))
        except httpx.HTTPError as e:
            logger.error("transfer_failed", url=url, error=str(e))
            raise NetworkError(f"Unable to download {url}: {e}", url=url) from e

        actual_hash = hasher.hexdigest()
        if actual_hash != expected_hash.lower():
            raise VerificationError(
                f"Unable to verify resource {url} - expected {expected_hash} got {actual_hash}",
                expected=expected_hash,
                actual=actual_hash,
                name=url,
            )

        logger.debug("transfer_verified", url=url, size=len(buffer))
        return bytes(buffer)

    def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self) -> HttpTransport:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()
