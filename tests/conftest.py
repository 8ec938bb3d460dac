"""Shared fixtures for gtfsproxy tests."""

from collections.abc import Iterator

import pytest
from google.transit import gtfs_realtime_pb2

from gtfsproxy.backend import BackendError
from gtfsproxy.config import clear_config_instance
from gtfsproxy.models import BackendResponse, InboundRequest


def build_feed(entity_count: int = 1, timestamp: int = 1700000000) -> gtfs_realtime_pb2.FeedMessage:
    """Build a small trip-updates feed."""
    feed = gtfs_realtime_pb2.FeedMessage()
    feed.header.gtfs_realtime_version = "2.0"
    feed.header.timestamp = timestamp

    for i in range(entity_count):
        entity = feed.entity.add()
        entity.id = f"entity-{i}"
        entity.trip_update.trip.trip_id = f"trip-{i}"
        entity.trip_update.trip.route_id = "R1"
        entity.trip_update.timestamp = timestamp
        stop_time_update = entity.trip_update.stop_time_update.add()
        stop_time_update.stop_id = "S1"
        stop_time_update.arrival.delay = 30 + i

    return feed


class FakeBackend:
    """Backend that returns a canned response or raises a canned error."""

    def __init__(self, response: BackendResponse | None = None, error: BackendError | None = None) -> None:
        self.response = response
        self.error = error
        self.requests: list[InboundRequest] = []

    def send(self, request: InboundRequest) -> BackendResponse:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        assert self.response is not None
        return self.response


@pytest.fixture
def feed() -> gtfs_realtime_pb2.FeedMessage:
    return build_feed()


@pytest.fixture
def feed_bytes(feed: gtfs_realtime_pb2.FeedMessage) -> bytes:
    return feed.SerializeToString()


@pytest.fixture
def feed_request() -> InboundRequest:
    return InboundRequest(
        method="GET",
        url="http://backend.test/feeds/tripupdates?agency=1",
        headers=[("Host", "backend.test"), ("Accept", "*/*")],
    )


@pytest.fixture(autouse=True)
def reset_config() -> Iterator[None]:
    """Drop the cached global config between tests."""
    clear_config_instance()
    yield
    clear_config_instance()
