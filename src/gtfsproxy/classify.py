"""Heuristic detection of GTFS-Realtime payloads.

The rules are evaluated in order and the first match wins:

1. ``Content-Type`` is exactly one of the protobuf media types
2. ``Content-Type`` mentions ``octet-stream``
3. the request path contains a feed keyword

Matching is plain string comparison/containment. The path check is a substring
test, not a path-segment match, and is case-sensitive.
"""

from __future__ import annotations

from dataclasses import dataclass

from gtfsproxy.models import Headers, header_value

PROTOBUF_MEDIA_TYPES = ("application/x-protobuf", "application/protobuf")
OCTET_STREAM_MARKER = "octet-stream"
FEED_PATH_MARKERS = ("gtfs", "tripupdates")
JSON_MEDIA_TYPE = "application/json"


@dataclass(frozen=True)
class Classification:
    """Result of classifying a response.

    Attributes:
        is_feed: Whether the payload should be treated as a GTFS-Realtime feed
        reason: Which rule matched (for logging only), None when nothing matched
    """

    is_feed: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.is_feed


NOT_A_FEED = Classification(False)


def classify_feed(headers: Headers, path: str) -> Classification:
    """Decide whether a backend response looks like GTFS-Realtime data.

    Args:
        headers: Backend response headers
        path: Path of the inbound request

    Returns:
        Classification with the first matching rule as reason
    """
    content_type = header_value(headers, "content-type")

    if content_type in PROTOBUF_MEDIA_TYPES:
        return Classification(True, "content-type")

    if OCTET_STREAM_MARKER in content_type:
        return Classification(True, "octet-stream")

    for marker in FEED_PATH_MARKERS:
        if marker in path:
            return Classification(True, f"path:{marker}")

    return NOT_A_FEED
