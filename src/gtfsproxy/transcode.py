"""GTFS-Realtime protobuf to JSON conversion."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from google.protobuf import json_format
from google.protobuf.message import DecodeError
from google.transit import gtfs_realtime_pb2

logger = logging.getLogger(__name__)

JSON_INDENT = 2


class FeedDecodeError(ValueError):
    """Raised when bytes do not parse as a complete FeedMessage."""


class FeedEncodeError(ValueError):
    """Raised when a decoded FeedMessage cannot be rendered as JSON."""


class TranscodeFailure(Enum):
    DECODE = "decode"
    ENCODE = "encode"


@dataclass(frozen=True)
class TranscodeResult:
    """Outcome of converting a feed body.

    Exactly one of ``json_body`` and ``failure`` is set.
    """

    json_body: bytes | None = None
    failure: TranscodeFailure | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.json_body is not None


def decode_feed(body: bytes) -> gtfs_realtime_pb2.FeedMessage:
    """Parse a GTFS-Realtime FeedMessage.

    Args:
        body: Protobuf wire bytes

    Returns:
        The decoded feed

    Raises:
        FeedDecodeError: If the bytes are malformed or required fields are missing
    """
    feed = gtfs_realtime_pb2.FeedMessage()
    try:
        feed.ParseFromString(body)
    except DecodeError as e:
        raise FeedDecodeError(str(e)) from e

    # An empty or header-less body parses cleanly but is not a feed
    if not feed.IsInitialized():
        missing = ", ".join(feed.FindInitializationErrors())
        raise FeedDecodeError(f"feed is missing required fields: {missing}")

    return feed


def feed_to_json(feed: gtfs_realtime_pb2.FeedMessage) -> bytes:
    """Serialize a feed as indented JSON using the .proto field names.

    Fields that are not set on the message are left out of the output.

    Raises:
        FeedEncodeError: If the message cannot be serialized
    """
    try:
        text = json_format.MessageToJson(
            feed,
            preserving_proto_field_name=True,
            indent=JSON_INDENT,
            ensure_ascii=False,
        )
    except (json_format.Error, ValueError, TypeError) as e:
        raise FeedEncodeError(str(e)) from e
    return text.encode("utf-8")


def transcode_feed(body: bytes) -> TranscodeResult:
    """Decode a feed body and re-encode it as JSON without raising.

    Args:
        body: Raw backend response body

    Returns:
        TranscodeResult carrying either the JSON bytes or the failure kind
    """
    try:
        feed = decode_feed(body)
    except FeedDecodeError as e:
        return TranscodeResult(failure=TranscodeFailure.DECODE, error=str(e))

    logger.debug("Decoded feed with %d entities", len(feed.entity))

    try:
        json_body = feed_to_json(feed)
    except FeedEncodeError as e:
        return TranscodeResult(failure=TranscodeFailure.ENCODE, error=str(e))

    return TranscodeResult(json_body=json_body)


def hex_preview(body: bytes, limit: int = 50) -> str:
    """Hex dump of the first ``limit`` bytes of a body."""
    return body[:limit].hex()
