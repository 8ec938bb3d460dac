"""Tests for the httpx backend client."""

from collections.abc import Iterator

import httpx
import pytest

from gtfsproxy.backend import (
    BackendClient,
    BackendReadError,
    BackendRequestError,
    BackendUnavailableError,
)
from gtfsproxy.models import InboundRequest, header_value


class BodyStream(httpx.SyncByteStream):
    """Streamed body, as a real transport delivers it."""

    def __init__(self, body: bytes) -> None:
        self.body = body

    def __iter__(self) -> Iterator[bytes]:
        yield self.body


class BrokenStream(httpx.SyncByteStream):
    """Body stream that fails after the first chunk."""

    def __init__(self) -> None:
        self.closed = False

    def __iter__(self) -> Iterator[bytes]:
        yield b"partial"
        raise httpx.ReadError("connection reset by peer")

    def close(self) -> None:
        self.closed = True


def make_client(handler) -> BackendClient:
    return BackendClient(transport=httpx.MockTransport(handler))


class TestOutboundRequest:
    def test_method_url_body_and_headers_copied(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, stream=BodyStream(b"ok"))

        inbound = InboundRequest(
            method="POST",
            url="http://backend.test/feeds/gtfs?key=abc",
            headers=[("X-Api-Key", "secret"), ("Accept", "application/x-protobuf"), ("Accept", "*/*")],
            body=b"payload",
        )
        make_client(handler).send(inbound)

        outbound = seen[0]
        assert outbound.method == "POST"
        assert str(outbound.url) == "http://backend.test/feeds/gtfs?key=abc"
        assert outbound.content == b"payload"
        assert outbound.headers["x-api-key"] == "secret"
        assert outbound.headers.get_list("accept") == ["application/x-protobuf", "*/*"]

    def test_no_client_default_headers_added(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, stream=BodyStream(b""))

        make_client(handler).send(InboundRequest("GET", "http://backend.test/", [("Accept", "*/*")]))

        assert "user-agent" not in seen[0].headers
        assert "accept-encoding" not in seen[0].headers

    def test_framing_headers_set_from_body(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, stream=BodyStream(b""))

        inbound = InboundRequest(
            "POST",
            "http://backend.test/feeds",
            [("Transfer-Encoding", "chunked"), ("Content-Length", "99"), ("Connection", "keep-alive"), ("X-Id", "1")],
            b"hello",
        )
        make_client(handler).send(inbound)

        outbound = seen[0]
        assert "transfer-encoding" not in outbound.headers
        assert "connection" not in outbound.headers
        assert outbound.headers.get_list("content-length") == ["5"]
        assert outbound.headers["x-id"] == "1"
        assert outbound.content == b"hello"

    def test_invalid_url(self) -> None:
        client = make_client(lambda request: httpx.Response(200))

        with pytest.raises(BackendRequestError):
            client.send(InboundRequest("GET", "http://backend.test:notaport/", []))


class TestBackendResponse:
    def test_status_headers_and_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                201,
                headers=[("Content-Type", "application/x-protobuf"), ("Set-Cookie", "a=1"), ("Set-Cookie", "b=2")],
                stream=BodyStream(b"\x0a\x00"),
            )

        response = make_client(handler).send(InboundRequest("GET", "http://backend.test/", []))

        assert response.status_code == 201
        assert response.body == b"\x0a\x00"
        assert header_value(response.headers, "content-type") == "application/x-protobuf"
        assert [v for k, v in response.headers if k == "Set-Cookie"] == ["a=1", "b=2"]

    def test_compressed_body_is_not_decoded(self) -> None:
        import gzip

        compressed = gzip.compress(b"hello")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"Content-Encoding": "gzip"}, stream=BodyStream(compressed))

        response = make_client(handler).send(InboundRequest("GET", "http://backend.test/", []))

        assert response.body == compressed


class TestBackendErrors:
    def test_connect_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(BackendUnavailableError, match="connection refused"):
            make_client(handler).send(InboundRequest("GET", "http://backend.test/", []))

    def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(BackendUnavailableError):
            make_client(handler).send(InboundRequest("GET", "http://backend.test/", []))

    def test_read_error_closes_stream(self) -> None:
        stream = BrokenStream()

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, stream=stream)

        with pytest.raises(BackendReadError, match="connection reset"):
            make_client(handler).send(InboundRequest("GET", "http://backend.test/", []))

        assert stream.closed


def test_context_manager_closes_client() -> None:
    with make_client(lambda request: httpx.Response(200)) as client:
        pass
    assert client._client.is_closed
