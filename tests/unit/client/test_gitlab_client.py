"""Tests for the GitLab client transport and pagination protocol."""

from typing import TYPE_CHECKING

import httpx
import pytest
from httpx import Response

from glstats.gitlab_client import (
    GitLabAPIError,
    GitLabClient,
    GitLabDecodeError,
    GitLabTransportError,
    PaginationError,
    parse_next_page,
)

if TYPE_CHECKING:
    from glstats.config import AppSettings
    from respx import MockRouter

MERGE_REQUESTS_URL = "https://gitlab.example.com/api/v4/projects/1/merge_requests"


@pytest.mark.parametrize(
    ("header", "expected"),
    [(None, None), ("", None), ("  ", None), ("2", 2), ("17", 17)],
)
def test_parse_next_page_accepts_valid_signals(header: str | None, expected: int | None) -> None:
    """Missing or empty signals end pagination, decimal ones name the next page."""
    assert parse_next_page(header) == expected


@pytest.mark.parametrize("header", ["abc", "0", "-3", "2.5"])
def test_parse_next_page_rejects_malformed_signals(header: str) -> None:
    """Signals that are not positive integers violate the pagination protocol."""
    with pytest.raises(PaginationError):
        parse_next_page(header)


@pytest.mark.asyncio
async def test_paginate_follows_next_page_until_exhausted(
    settings: "AppSettings",
    respx_mock: "MockRouter",
) -> None:
    """Pagination should issue exactly one request per page and keep page order."""
    pages = 3
    routes = []
    for page in range(1, pages + 1):
        next_page = str(page + 1) if page < pages else ""
        routes.append(
            respx_mock.get(MERGE_REQUESTS_URL, params={"page": str(page)}).mock(
                return_value=Response(
                    200,
                    json=[{"page": page, "index": 0}, {"page": page, "index": 1}],
                    headers={"X-Next-Page": next_page},
                ),
            ),
        )

    async with GitLabClient(settings) as client:
        items = [item async for item in client.paginate("GET", "/projects/1/merge_requests")]

    assert [(item["page"], item["index"]) for item in items] == [
        (1, 0), (1, 1), (2, 0), (2, 1), (3, 0), (3, 1),
    ]
    assert [route.call_count for route in routes] == [1, 1, 1]
    assert len(respx_mock.calls) == pages


@pytest.mark.asyncio
async def test_requests_carry_token_and_page_size(
    settings: "AppSettings",
    respx_mock: "MockRouter",
) -> None:
    """Every page request should include the token, page size, and page index."""
    route = respx_mock.get(
        MERGE_REQUESTS_URL,
        params={"private_token": "token", "per_page": "100", "page": "1", "statistics": "1"},
    ).mock(return_value=Response(200, json=[]))

    async with GitLabClient(settings) as client:
        pages = [page async for page in client.iter_pages("GET", "/projects/1/merge_requests", params={"statistics": 1})]

    assert pages == [[]]
    assert route.called


@pytest.mark.asyncio
async def test_missing_next_page_header_ends_pagination(
    settings: "AppSettings",
    respx_mock: "MockRouter",
) -> None:
    """A response without the X-Next-Page header is the last page."""
    respx_mock.get(MERGE_REQUESTS_URL).mock(return_value=Response(200, json=[{"id": 1}]))

    async with GitLabClient(settings) as client:
        items = [item async for item in client.paginate("GET", "/projects/1/merge_requests")]

    assert items == [{"id": 1}]


@pytest.mark.asyncio
async def test_malformed_next_page_header_raises(
    settings: "AppSettings",
    respx_mock: "MockRouter",
) -> None:
    """An unparsable X-Next-Page header must fail instead of ending quietly."""
    respx_mock.get(MERGE_REQUESTS_URL).mock(
        return_value=Response(200, json=[{"id": 1}], headers={"X-Next-Page": "abc"}),
    )

    collected: list[dict[str, object]] = []
    async with GitLabClient(settings) as client:
        with pytest.raises(PaginationError, match="abc"):
            async for item in client.paginate("GET", "/projects/1/merge_requests"):
                collected.append(item)

    assert collected == [{"id": 1}]


@pytest.mark.asyncio
async def test_page_bound_stops_runaway_pagination(
    settings: "AppSettings",
    respx_mock: "MockRouter",
) -> None:
    """An upstream that never empties X-Next-Page should hit the configured bound."""
    bounded = settings.model_copy(update={"max_pages": 2})
    route = respx_mock.get(MERGE_REQUESTS_URL).mock(
        return_value=Response(200, json=[], headers={"X-Next-Page": "2"}),
    )

    async with GitLabClient(bounded) as client:
        with pytest.raises(PaginationError, match="after 2 pages"):
            _ = [item async for item in client.paginate("GET", "/projects/1/merge_requests")]

    assert route.call_count == 2


@pytest.mark.asyncio
async def test_non_array_payload_is_a_decode_error(
    settings: "AppSettings",
    respx_mock: "MockRouter",
) -> None:
    """Listings must be JSON arrays."""
    respx_mock.get(MERGE_REQUESTS_URL).mock(return_value=Response(200, json={"message": "nope"}))

    async with GitLabClient(settings) as client:
        with pytest.raises(GitLabDecodeError, match="JSON array"):
            _ = [item async for item in client.paginate("GET", "/projects/1/merge_requests")]


@pytest.mark.asyncio
async def test_invalid_json_is_a_decode_error(
    settings: "AppSettings",
    respx_mock: "MockRouter",
) -> None:
    """Bodies that are not JSON should raise a decode error carrying the status."""
    respx_mock.get(MERGE_REQUESTS_URL).mock(
        return_value=Response(200, content=b"<html>maintenance</html>", headers={"Content-Type": "text/html"}),
    )

    async with GitLabClient(settings) as client:
        with pytest.raises(GitLabDecodeError, match="text/html") as excinfo:
            _ = [item async for item in client.paginate("GET", "/projects/1/merge_requests")]

    assert excinfo.value.status_code == 200


@pytest.mark.asyncio
async def test_transport_failure_is_wrapped(
    settings: "AppSettings",
    respx_mock: "MockRouter",
) -> None:
    """Connection failures should surface as GitLabTransportError."""
    respx_mock.get(MERGE_REQUESTS_URL).mock(side_effect=httpx.ConnectError("connection refused"))

    async with GitLabClient(settings) as client:
        with pytest.raises(GitLabTransportError):
            await client.request("GET", "/projects/1/merge_requests")


@pytest.mark.asyncio
async def test_client_error_status_is_not_retried(
    respx_mock: "MockRouter",
    settings: "AppSettings",
) -> None:
    """Client errors should raise immediately with the HTTP status attached."""
    retrying = settings.model_copy(update={"max_attempts": 3})
    route = respx_mock.get(MERGE_REQUESTS_URL).mock(return_value=Response(404, json={"message": "404 Not Found"}))

    async with GitLabClient(retrying) as client:
        with pytest.raises(GitLabAPIError) as excinfo:
            await client.request("GET", "/projects/1/merge_requests")

    assert excinfo.value.status_code == 404
    assert route.call_count == 1
    assert "token" not in str(excinfo.value)


@pytest.mark.asyncio
async def test_server_error_after_last_attempt(
    settings: "AppSettings",
    respx_mock: "MockRouter",
) -> None:
    """Server errors exhausting the attempts should raise GitLabAPIError."""
    respx_mock.get(MERGE_REQUESTS_URL).mock(return_value=Response(503, text="unavailable"))

    async with GitLabClient(settings) as client:
        with pytest.raises(GitLabAPIError) as excinfo:
            await client.request("GET", "/projects/1/merge_requests")

    assert excinfo.value.status_code == 503


@pytest.mark.asyncio
async def test_corrupt_content_encoding_is_a_decode_error(
    settings: "AppSettings",
    respx_mock: "MockRouter",
) -> None:
    """Bodies that fail content decoding should raise a typed decode error."""
    respx_mock.get(MERGE_REQUESTS_URL).mock(
        return_value=Response(200, stream=httpx.ByteStream(b"not-gzip-at-all"), headers={"Content-Encoding": "gzip"}),
    )

    async with GitLabClient(settings) as client:
        with pytest.raises(GitLabDecodeError, match="undecodable body"):
            await client.request("GET", "/projects/1/merge_requests")


@pytest.mark.asyncio
async def test_other_request_errors_are_transport_errors(
    settings: "AppSettings",
    respx_mock: "MockRouter",
) -> None:
    """Request failures outside the transport layer should still be typed."""
    respx_mock.get(MERGE_REQUESTS_URL).mock(side_effect=httpx.TooManyRedirects("redirect loop"))

    async with GitLabClient(settings) as client:
        with pytest.raises(GitLabTransportError, match="TooManyRedirects"):
            await client.request("GET", "/projects/1/merge_requests")
