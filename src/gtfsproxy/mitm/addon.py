"""Mitmproxy addon that serves every request through the transform filter.

In reverse proxy mode mitmproxy has already pointed the request at the backend
by the time the request hook runs. The addon replays it with its own client,
converts the answer when it is a GTFS-Realtime feed, and sets
``flow.response``, which stops mitmproxy from contacting the backend itself.
"""

from __future__ import annotations

import asyncio
import logging
import time

from mitmproxy import http
from mitmproxy.net.http import status_codes

from gtfsproxy.backend import BackendClient
from gtfsproxy.config import GtfsProxyConfig
from gtfsproxy.filter import TransformFilter
from gtfsproxy.models import HOP_BY_HOP_HEADERS, EmittedResponse, Headers, InboundRequest

logger = logging.getLogger(__name__)


def inbound_from_flow(request: http.Request) -> InboundRequest:
    """Convert a mitmproxy request into an InboundRequest.

    Args:
        request: Mitmproxy request object

    Returns:
        InboundRequest with every header value in wire order
    """
    return InboundRequest(
        method=request.method,
        url=request.url,
        headers=[(str(k), str(v)) for k, v in request.headers.items(multi=True)],
        body=request.raw_content or b"",
    )


def _encode_headers(headers: Headers) -> http.Headers:
    fields = [
        (k.encode("utf-8", "surrogateescape"), v.encode("utf-8", "surrogateescape"))
        for k, v in headers
        if k.lower() not in HOP_BY_HOP_HEADERS
    ]
    return http.Headers(fields)


def _may_carry_body(status_code: int) -> bool:
    return status_code >= 200 and status_code not in (204, 304)


def to_mitm_response(emitted: EmittedResponse) -> http.Response:
    """Build the mitmproxy response for an EmittedResponse.

    The body is installed as raw content so a passthrough of a compressed body
    is not re-encoded. Content-Length is derived from the body when missing,
    except on statuses that never carry a body (1xx, 204, 304).

    Args:
        emitted: Response produced by the filter

    Returns:
        Mitmproxy response ready to assign to ``flow.response``
    """
    headers = _encode_headers(emitted.headers)
    if "content-length" not in headers and _may_carry_body(emitted.status_code):
        headers["content-length"] = str(len(emitted.body))

    now = time.time()
    return http.Response(
        http_version=b"HTTP/1.1",
        status_code=emitted.status_code,
        reason=status_codes.RESPONSES.get(emitted.status_code, "").encode(),
        headers=headers,
        content=emitted.body,
        trailers=None,
        timestamp_start=now,
        timestamp_end=now,
    )


class GtfsTransformAddon:
    """Mitmproxy addon that converts GTFS-Realtime responses to JSON."""

    def __init__(self, config: GtfsProxyConfig, backend: BackendClient | None = None) -> None:
        """Initialize the addon.

        Args:
            config: gtfsproxy configuration
            backend: Backend client to use (built from config when omitted)
        """
        self.config = config
        self.backend = backend or BackendClient(
            timeout=config.backend.timeout,
            follow_redirects=config.backend.follow_redirects,
        )
        self.filter = TransformFilter(self.backend, preview_bytes=config.transform.preview_bytes)

    async def request(self, flow: http.HTTPFlow) -> None:
        """Answer the request through the transform filter.

        Args:
            flow: HTTP flow object
        """
        inbound = inbound_from_flow(flow.request)

        # The backend client blocks; keep it off the event loop
        emitted = await asyncio.to_thread(self.filter.handle, inbound)

        flow.response = to_mitm_response(emitted)
        logger.info(
            "%s %s -> %d (%s)",
            inbound.method,
            flow.request.pretty_url,
            emitted.status_code,
            emitted.outcome.value,
        )

    def done(self) -> None:
        """Release backend connections on shutdown."""
        self.backend.close()
