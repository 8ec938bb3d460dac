"""Tests for GTFS-Realtime payload classification."""

import pytest

from gtfsproxy.classify import NOT_A_FEED, Classification, classify_feed
from gtfsproxy.models import InboundRequest


class TestContentTypeRules:
    @pytest.mark.parametrize("content_type", ["application/x-protobuf", "application/protobuf"])
    def test_protobuf_media_types(self, content_type: str) -> None:
        result = classify_feed([("Content-Type", content_type)], "/anything")
        assert result == Classification(True, "content-type")

    def test_media_type_match_is_exact(self) -> None:
        """A parameter on the protobuf media type defeats the exact rule."""
        result = classify_feed([("Content-Type", "application/x-protobuf; proto=FeedMessage")], "/anything")
        assert result.is_feed is False

    def test_octet_stream_substring(self) -> None:
        result = classify_feed([("Content-Type", "binary/octet-stream")], "/anything")
        assert result == Classification(True, "octet-stream")

    def test_header_name_is_case_insensitive(self) -> None:
        result = classify_feed([("content-type", "application/octet-stream")], "/anything")
        assert result.reason == "octet-stream"

    def test_first_content_type_value_wins(self) -> None:
        headers = [("Content-Type", "text/plain"), ("Content-Type", "application/x-protobuf")]
        assert classify_feed(headers, "/anything") == NOT_A_FEED


class TestPathRules:
    @pytest.mark.parametrize(
        ("path", "reason"),
        [
            ("/v1/gtfs/realtime", "path:gtfs"),
            ("/api/gtfsrt", "path:gtfs"),
            ("/feeds/tripupdates", "path:tripupdates"),
            ("/feeds/mytripupdatesfeed.pb", "path:tripupdates"),
        ],
    )
    def test_feed_keywords(self, path: str, reason: str) -> None:
        result = classify_feed([("Content-Type", "text/html")], path)
        assert result == Classification(True, reason)

    def test_percent_encoded_path_is_decoded(self) -> None:
        request = InboundRequest("GET", "http://backend.test/%67tfs/feed?x=%67tfs", [])

        assert request.path == "/gtfs/feed"
        assert classify_feed([], request.path) == Classification(True, "path:gtfs")

    def test_path_match_is_case_sensitive(self) -> None:
        assert not classify_feed([], "/GTFS/TripUpdates")

    def test_content_type_rule_takes_precedence(self) -> None:
        result = classify_feed([("Content-Type", "application/protobuf")], "/gtfs/tripupdates")
        assert result.reason == "content-type"


class TestNotAFeed:
    def test_json_response(self) -> None:
        result = classify_feed([("Content-Type", "application/json")], "/api/vehicles")
        assert result is NOT_A_FEED
        assert not result
        assert result.reason is None

    def test_missing_content_type(self) -> None:
        assert not classify_feed([("Cache-Control", "no-cache")], "/")
