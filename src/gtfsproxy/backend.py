"""Blocking HTTP client used to forward requests to the backend."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from gtfsproxy.models import HOP_BY_HOP_HEADERS, BackendResponse, InboundRequest, without_headers

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """Base class for failures talking to the backend."""


class BackendRequestError(BackendError):
    """The outbound request could not be built."""


class BackendUnavailableError(BackendError):
    """The request could not be sent or no response arrived."""


class BackendReadError(BackendError):
    """A response arrived but its body could not be read in full."""


class Backend(Protocol):
    def send(self, request: InboundRequest) -> BackendResponse: ...


class BackendClient:
    """Forward inbound requests to the backend with httpx.

    The outbound request carries the inbound end-to-end headers as received.
    Message framing (Content-Length, Transfer-Encoding) is set by httpx from the
    body. The client adds none of its own defaults, and the response body is returned as
    raw bytes so a passthrough stays byte-identical even for compressed bodies.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        follow_redirects: bool = True,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            timeout: Connect/read/write/pool timeout in seconds
            follow_redirects: Follow 3xx responses from the backend
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.follow_redirects = follow_redirects
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def send(self, request: InboundRequest) -> BackendResponse:
        """Send a request to the backend and read the whole response.

        Args:
            request: Inbound request to replay against the backend

        Returns:
            The backend response with its raw body

        Raises:
            BackendRequestError: If the URL or method cannot be used
            BackendUnavailableError: If sending fails (connection error, timeout, ...)
            BackendReadError: If reading the response body fails
        """
        try:
            outbound = httpx.Request(
                request.method,
                request.url,
                headers=without_headers(request.headers, "content-length", *HOP_BY_HOP_HEADERS),
                content=request.body,
            )
        except (httpx.InvalidURL, httpx.UnsupportedProtocol, TypeError, ValueError) as e:
            raise BackendRequestError(f"Cannot build backend request for {request.url}: {e}") from e

        try:
            response = self._client.send(outbound, stream=True, follow_redirects=self.follow_redirects)
        except httpx.HTTPError as e:
            raise BackendUnavailableError(f"{type(e).__name__}: {e}") from e

        try:
            body = b"".join(response.iter_raw())
        except httpx.HTTPError as e:
            raise BackendReadError(f"{type(e).__name__}: {e}") from e
        finally:
            response.close()

        logger.debug(
            "Backend answered %s %s with %d (%d bytes)",
            request.method,
            request.url,
            response.status_code,
            len(body),
        )

        # Raw pairs keep the backend's header name casing and repeated headers
        encoding = response.headers.encoding
        headers = [(key.decode(encoding), value.decode(encoding)) for key, value in response.headers.raw]

        return BackendResponse(status_code=response.status_code, headers=headers, body=body)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> BackendClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
