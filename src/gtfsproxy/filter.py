"""Transform filter: forward, classify, and convert GTFS-Realtime to JSON.

Every call to :meth:`TransformFilter.handle` ends in exactly one
:class:`~gtfsproxy.models.EmittedResponse`:

- backend unreachable -> 503
- backend body unreadable -> 500
- not a feed, or a feed that fails to decode/encode -> the backend response as-is
- decoded feed -> backend status and headers with a JSON body

Transform failures never reach the caller as errors. A misclassified payload is
returned exactly as the backend sent it.
"""

from __future__ import annotations

import logging

from gtfsproxy.backend import (
    Backend,
    BackendReadError,
    BackendRequestError,
    BackendUnavailableError,
)
from gtfsproxy.classify import JSON_MEDIA_TYPE, classify_feed
from gtfsproxy.models import (
    BackendResponse,
    EmittedResponse,
    InboundRequest,
    Outcome,
    without_headers,
)
from gtfsproxy.transcode import TranscodeFailure, hex_preview, transcode_feed

logger = logging.getLogger(__name__)


class TransformFilter:
    """Per-request GTFS-Realtime to JSON filter.

    Holds no per-request state, so one instance can serve concurrent requests.
    """

    def __init__(self, backend: Backend, preview_bytes: int = 50) -> None:
        """Initialize the filter.

        Args:
            backend: Client used to reach the backend
            preview_bytes: Number of body bytes hex-dumped when decoding fails
        """
        self.backend = backend
        self.preview_bytes = preview_bytes

    def handle(self, request: InboundRequest) -> EmittedResponse:
        """Forward a request and produce the response for the caller.

        Args:
            request: Inbound request, already targeted at the backend

        Returns:
            The single response to write back
        """
        logger.debug("Processing request: %s %s", request.method, request.url)

        try:
            response = self.backend.send(request)
        except BackendRequestError as e:
            logger.error("Error creating backend request: %s", e)
            return EmittedResponse.error(500, "Internal Server Error", Outcome.REQUEST_INVALID)
        except BackendUnavailableError as e:
            logger.error("Error sending request to backend: %s", e)
            return EmittedResponse.error(503, "Service Unavailable", Outcome.BACKEND_UNAVAILABLE)
        except BackendReadError as e:
            logger.error("Error reading response body: %s", e)
            return EmittedResponse.error(500, "Internal Server Error", Outcome.BACKEND_UNREADABLE)

        classification = classify_feed(response.headers, request.path)
        if not classification:
            logger.debug("Not GTFS-RT data, passing through original response")
            return EmittedResponse.passthrough(response)

        logger.debug("Treating response as GTFS-RT (matched %s)", classification.reason)

        result = transcode_feed(response.body)
        if result.json_body is None:
            if result.failure is TranscodeFailure.DECODE:
                logger.error("Failed to unmarshal GTFS-RT data: %s", result.error)
                logger.debug("Response body start: %s", hex_preview(response.body, self.preview_bytes))
            else:
                logger.error("Failed to convert GTFS-RT data to JSON: %s", result.error)
            return EmittedResponse.passthrough(response)

        logger.debug("Successfully converted GTFS-RT to JSON (%d bytes)", len(result.json_body))
        return self._json_response(response, result.json_body)

    def _json_response(self, response: BackendResponse, json_body: bytes) -> EmittedResponse:
        """Rebuild the backend response around a JSON body.

        Content-Length is dropped rather than recomputed; whoever writes the
        response derives it from the new body.
        """
        headers = without_headers(response.headers, "content-type", "content-length")
        headers.append(("Content-Type", JSON_MEDIA_TYPE))
        return EmittedResponse(
            status_code=response.status_code,
            headers=headers,
            body=json_body,
            outcome=Outcome.TRANSFORMED,
        )
