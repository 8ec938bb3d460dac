"""Request-scoped data types passed through the transform filter.

Headers are kept as ordered ``(name, value)`` pairs rather than a dict so that a
header repeated on the wire keeps every value, in order.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from urllib.parse import unquote, urlsplit

Headers = list[tuple[str, str]]

# Connection-level headers that describe a single hop, not the message
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-connection",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)


def header_value(headers: Headers, name: str, default: str = "") -> str:
    """Return the first value of a header (case-insensitive).

    Args:
        headers: Header pairs to search
        name: Header name
        default: Value returned when the header is absent

    Returns:
        First matching value or default
    """
    name_lower = name.lower()
    for key, value in headers:
        if key.lower() == name_lower:
            return value
    return default


def without_headers(headers: Headers, *names: str) -> Headers:
    """Drop every occurrence of the named headers (case-insensitive)."""
    excluded = {n.lower() for n in names}
    return [(key, value) for key, value in headers if key.lower() not in excluded]


@dataclass(frozen=True)
class InboundRequest:
    """Request received from the caller, already targeted at the backend."""

    method: str
    url: str
    headers: Headers
    body: bytes = b""

    @property
    def path(self) -> str:
        """Percent-decoded URL path."""
        return unquote(urlsplit(self.url).path)


@dataclass(frozen=True)
class BackendResponse:
    """Backend reply with the body fully read and not content-decoded."""

    status_code: int
    headers: Headers
    body: bytes


class Outcome(Enum):
    """Which branch of the filter produced a response."""

    PASSTHROUGH = "passthrough"
    TRANSFORMED = "transformed"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    BACKEND_UNREADABLE = "backend_unreadable"
    REQUEST_INVALID = "request_invalid"


@dataclass(frozen=True)
class EmittedResponse:
    """The single response written back to the caller."""

    status_code: int
    headers: Headers
    body: bytes
    outcome: Outcome

    @classmethod
    def passthrough(cls, response: BackendResponse) -> EmittedResponse:
        return cls(
            status_code=response.status_code,
            headers=list(response.headers),
            body=response.body,
            outcome=Outcome.PASSTHROUGH,
        )

    @classmethod
    def error(cls, status_code: int, message: str, outcome: Outcome) -> EmittedResponse:
        """Plain-text error response in the shape of a stock HTTP error page."""
        return cls(
            status_code=status_code,
            headers=[
                ("Content-Type", "text/plain; charset=utf-8"),
                ("X-Content-Type-Options", "nosniff"),
            ],
            body=f"{message}\n".encode(),
            outcome=outcome,
        )
