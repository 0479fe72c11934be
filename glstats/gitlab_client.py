"""Async GitLab API client with retry and pagination helpers."""

import logging
from types import TracebackType
from typing import Any, Self, TYPE_CHECKING, cast
from collections.abc import AsyncIterator, Mapping

import httpx
import orjson
from tenacity import AsyncRetrying, RetryError, retry_if_exception, stop_after_attempt, wait_exponential_jitter

if TYPE_CHECKING:
    from glstats.config import AppSettings

LOGGER = logging.getLogger(__name__)

_RETRY_FAILURE_MESSAGE = "GitLab API request failed after retries"
_SERVER_ERROR_LOWER = 500
_SERVER_ERROR_UPPER = 600
_NEXT_PAGE_HEADER = "X-Next-Page"


class GitLabAPIError(RuntimeError):
    """Raised when a GitLab API call cannot produce a usable result."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Attach HTTP status metadata to the exception instance."""
        super().__init__(message)
        self.status_code = status_code


class GitLabTransportError(GitLabAPIError):
    """Raised when the GitLab API cannot be reached."""


class GitLabDecodeError(GitLabAPIError):
    """Raised when a response body does not have the expected JSON shape."""


class PaginationError(GitLabAPIError):
    """Raised when the pagination headers violate the expected protocol."""


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return _SERVER_ERROR_LOWER <= exc.response.status_code < _SERVER_ERROR_UPPER
    return False


class GitLabClient:
    """High-level asynchronous client for interacting with the GitLab REST API."""

    def __init__(
        self,
        settings: "AppSettings",
    ) -> None:
        """Configure the HTTP client with the access token and retry policy."""
        self._settings = settings
        headers = {
            "User-Agent": "glstats-exporter/0.1",
            "Accept": "application/json",
        }
        self._client = httpx.AsyncClient(
            base_url=settings.api_base,
            headers=headers,
            params={"private_token": settings.gitlab_token.get_secret_value()},
            timeout=httpx.Timeout(settings.request_timeout),
        )
        self._max_attempts = settings.max_attempts
        self._max_pages = settings.max_pages

    async def __aenter__(self) -> Self:
        """Enter the async context manager and return the client."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Ensure the underlying HTTP client is closed when exiting the context."""
        del exc_type, exc, tb
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying httpx client."""
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
    ) -> httpx.Response:
        """Perform an HTTP request, retrying transport failures and server errors."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            retry=retry_if_exception(_is_retryable),
            wait=wait_exponential_jitter(initial=1, max=10),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._client.request(method, path, params=params)
                    response.raise_for_status()
                    return response
        except httpx.TransportError as exc:
            message = f"GitLab API unreachable for {method} {path}: {exc!r}"
            raise GitLabTransportError(message) from exc
        except httpx.DecodingError as exc:
            message = f"GitLab API sent an undecodable body for {method} {path}: {exc}"
            raise GitLabDecodeError(message) from exc
        except httpx.RequestError as exc:
            message = f"GitLab API request failed for {method} {path}: {exc!r}"
            raise GitLabTransportError(message) from exc
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            error_message = f"GitLab API returned {status_code} for {method} {path}: {exc.response.text}"
            raise GitLabAPIError(error_message, status_code=status_code) from exc
        except RetryError as exc:  # pragma: no cover - reraise=True surfaces the last error
            raise GitLabAPIError(_RETRY_FAILURE_MESSAGE) from exc
        raise GitLabAPIError(_RETRY_FAILURE_MESSAGE)

    async def iter_pages(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield every page of a paginated listing, following the X-Next-Page header."""
        current_params: dict[str, Any] = {"per_page": self._settings.per_page, "page": 1}
        if params:
            current_params.update(params)

        fetched = 0
        while True:
            LOGGER.debug("Requesting %s page %s", path, current_params["page"])
            response = await self.request(method, path, params=current_params)
            fetched += 1
            payload = self.parse_json(response)
            if not isinstance(payload, list):
                message = f"Expected a JSON array from {path}, got {type(payload).__name__}"
                raise GitLabDecodeError(message, status_code=response.status_code)
            yield cast("list[dict[str, Any]]", payload)

            next_page = parse_next_page(response.headers.get(_NEXT_PAGE_HEADER))
            if next_page is None:
                break
            if self._max_pages and fetched >= self._max_pages:
                message = f"{path} still reports a next page after {fetched} pages"
                raise PaginationError(message)
            current_params["page"] = next_page

    async def paginate(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Iterate over the items of every page of a paginated listing."""
        async for page in self.iter_pages(method, path, params=params):
            for item in page:
                yield item

    def parse_json(self, response: httpx.Response) -> Any:
        """Decode a JSON response or raise a GitLabDecodeError on failure."""
        try:
            return orjson.loads(response.content)
        except orjson.JSONDecodeError as exc:
            content_type = response.headers.get("Content-Type", "unknown")
            message = (
                "GitLab API returned an invalid JSON payload "
                f"(status {response.status_code}, content-type {content_type})"
            )
            raise GitLabDecodeError(message, status_code=response.status_code) from exc


def parse_next_page(value: str | None) -> int | None:
    """Return the next page index announced by GitLab, or None when exhausted."""
    if value is None or not value.strip():
        return None
    try:
        page = int(value.strip())
    except ValueError as exc:
        message = f"Malformed {_NEXT_PAGE_HEADER} header: {value!r}"
        raise PaginationError(message) from exc
    if page < 1:
        message = f"Malformed {_NEXT_PAGE_HEADER} header: {value!r}"
        raise PaginationError(message)
    return page
