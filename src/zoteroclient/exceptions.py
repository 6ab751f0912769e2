"""
Custom exceptions for the zoteroclient package.

This module provides Zotero-specific exceptions that translate HTTP status codes
and httpx transport failures into a closed set of error kinds with meaningful
context for library management operations.
"""

from __future__ import annotations

import functools
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Optional,
    ParamSpec,
    Type,
    TypeVar,
    cast,
)

import httpx

if TYPE_CHECKING:  # pragma: no cover
    from zoteroclient._response import ZoteroResponse

P = ParamSpec("P")
T = TypeVar("T")

MAX_ERROR_DETAIL_LENGTH = 500


# Base Zotero exception
class ZoteroError(Exception):
    """Base exception for all Zotero-related errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ZoteroClientClosed(ZoteroError):
    """
    Raised when an operation is attempted on a closed ZoteroClient.
    """

    def __init__(self, message: str = "The ZoteroClient is closed") -> None:
        super().__init__(message)


# Transport errors
class ZoteroNetworkError(ZoteroError):
    """
    Raised when the request never produced an HTTP response.
    DNS resolution failures, refused connections, unreachable hosts, TLS failures
    and connect/read timeouts all end up here. Never carries an HTTP status.
    """

    def __init__(self, message: str, *, cause: str) -> None:
        super().__init__(message)
        self.cause = cause

    @property
    def status_code(self) -> None:
        return None

    def __str__(self) -> str:
        return f"Zotero network error: {self.message}"


# HTTP Status-based exceptions
class ZoteroHTTPError(ZoteroError):
    """
    Base class for Zotero HTTP status errors.
    """

    def __init__(self, message: str, *, response: ZoteroResponse) -> None:
        super().__init__(message)
        self.response = response

    @property
    def status_code(self) -> int:
        return self.response.status_code

    def __str__(self) -> str:
        return f"Zotero HTTP error: {self.message} (HTTP {self.status_code})"


class ZoteroBadRequestError(ZoteroHTTPError):
    """
    Raised for 400 bad request and 413 request entity too large errors.
    Malformed request, invalid parameters or an oversized payload.
    """

    def __str__(self) -> str:
        return f"Bad request: {self.message}"


class ZoteroAuthenticationError(ZoteroHTTPError):
    """
    Raised for 401 and 403 errors.
    The API key is invalid or lacks access to the requested library.
    """

    def __init__(
        self,
        message: str = "Authentication failed - check your API key",
        *,
        response: ZoteroResponse,
    ) -> None:
        super().__init__(message, response=response)

    def __str__(self) -> str:
        return f"Authentication failed: {self.message} (HTTP {self.status_code})"


class ZoteroResourceNotFoundError(ZoteroHTTPError):
    """
    Raised for 404 not found errors.
    The library, item, collection or endpoint does not exist.
    """

    def __str__(self) -> str:
        return f"Resource not found: {self.response.request_path} ({self.message})"


class ZoteroConflictError(ZoteroHTTPError):
    """
    Raised for 409 conflict errors, e.g. when the target library is locked.
    """

    def __str__(self) -> str:
        return f"Conflict: {self.message}"


class ZoteroPreconditionFailedError(ZoteroHTTPError):
    """
    Raised for 412 errors.
    The library or object changed since the version supplied with a conditional
    write, or the file hash asserted with If-Match no longer matches.
    """

    def __str__(self) -> str:
        return f"Precondition failed: {self.message}"


class ZoteroPreconditionRequiredError(ZoteroHTTPError):
    """
    Raised for 428 errors, when a write was sent without a required
    If-Unmodified-Since-Version (or If-Match / If-None-Match) header.
    """

    def __str__(self) -> str:
        return f"Precondition required: {self.message}"


class ZoteroRateLimitError(ZoteroHTTPError):
    """
    Raised for 429 rate limiting errors.

    ``backoff_seconds`` and ``retry_after_seconds`` mirror the ``Backoff`` and
    ``Retry-After`` response headers. Either is ``None`` when the header was not
    sent; no default is guessed. Callers implement their own waiting.
    """

    def __init__(
        self,
        message: str = "Rate limited.",
        *,
        response: ZoteroResponse,
        backoff_seconds: Optional[int] = None,
        retry_after_seconds: Optional[int] = None,
    ) -> None:
        super().__init__(message, response=response)
        self.backoff_seconds = backoff_seconds
        self.retry_after_seconds = retry_after_seconds

    def __str__(self) -> str:
        return self.message


class ZoteroServerError(ZoteroHTTPError):
    """
    Raised for 5xx server errors from the Zotero API.
    """

    def __str__(self) -> str:
        return f"Server error: HTTP {self.status_code} - {self.message}"


class ZoteroUnexpectedResponseError(ZoteroHTTPError):
    """
    Raised for any status code outside the documented mapping, and for failed
    uploads to external file storage.
    """

    def __str__(self) -> str:
        return self.message


# Exception mapping dictionaries
_HTTP_STATUS_EXCEPTIONS: Dict[int, Type[ZoteroHTTPError]] = {
    400: ZoteroBadRequestError,
    401: ZoteroAuthenticationError,
    403: ZoteroAuthenticationError,
    404: ZoteroResourceNotFoundError,
    409: ZoteroConflictError,
    412: ZoteroPreconditionFailedError,
    413: ZoteroBadRequestError,
    428: ZoteroPreconditionRequiredError,
}

# Ordered most specific first; lookup walks the httpx class hierarchy
_NETWORK_ERROR_MESSAGES: Dict[Type[httpx.TransportError], str] = {
    httpx.ConnectTimeout: "Connection timeout - server took too long to respond",
    httpx.ReadTimeout: "Read timeout - server response was too slow",
    httpx.WriteTimeout: "Write timeout - request body could not be sent in time",
    httpx.PoolTimeout: "Request timeout - no connection available",
    httpx.ConnectError: "Connection failed - server may be down or unreachable",
    httpx.ReadError: "Read error - connection dropped while reading response",
    httpx.WriteError: "Write error - connection dropped while sending request",
    httpx.RemoteProtocolError: "Protocol error - server sent a malformed response",
    httpx.ProxyError: "Proxy error - the configured proxy rejected the request",
}

# Substrings of the underlying socket/ssl error that refine a ConnectError
_CONNECT_ERROR_HINTS = (
    ("CERTIFICATE_VERIFY_FAILED", "SSL error - certificate verification failed"),
    ("SSL", "SSL error - TLS handshake failed"),
    ("Name or service not known", "DNS resolution failed - check hostname"),
    ("nodename nor servname", "DNS resolution failed - check hostname"),
    ("getaddrinfo failed", "DNS resolution failed - check hostname"),
    ("Temporary failure in name resolution", "DNS resolution failed - check hostname"),
    ("Connection refused", "Connection refused - server may be down"),
    ("No route to host", "Host unreachable - check network connectivity"),
    ("Network is unreachable", "Host unreachable - check network connectivity"),
)


def _get_error_detail(response: Optional[ZoteroResponse]) -> str:
    """Extract error details from a Zotero response, safely handling any exceptions."""
    if response is None:
        return "No response available"
    try:
        error_text = response.text or "No error details in response"
        if len(error_text) > MAX_ERROR_DETAIL_LENGTH:
            return error_text[:MAX_ERROR_DETAIL_LENGTH] + "..."
        return error_text
    except Exception:
        return "Unable to read error details from response"


def _parse_seconds(value: Optional[str]) -> Optional[int]:
    """Parse an integer seconds header value, returning None when absent or malformed."""
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _create_rate_limit_exception(response: ZoteroResponse) -> ZoteroRateLimitError:
    backoff = _parse_seconds(response.headers.get("backoff"))
    retry_after = _parse_seconds(response.headers.get("retry-after"))
    message = "Rate limited."
    if backoff is not None:
        message += f" Backoff: {backoff}s"
    if retry_after is not None:
        message += f" Retry after: {retry_after}s"
    return ZoteroRateLimitError(
        message,
        response=response,
        backoff_seconds=backoff,
        retry_after_seconds=retry_after,
    )


def _create_client_exception(response: ZoteroResponse) -> ZoteroHTTPError:
    status_code = response.status_code
    exception_class = _HTTP_STATUS_EXCEPTIONS.get(status_code)
    if exception_class is ZoteroAuthenticationError:
        return ZoteroAuthenticationError(response=response)
    if exception_class is not None:
        return exception_class(_get_error_detail(response), response=response)
    return _create_unexpected_exception(response)


def _create_unexpected_exception(response: ZoteroResponse) -> ZoteroUnexpectedResponseError:
    return ZoteroUnexpectedResponseError(
        f"Unexpected response: HTTP {response.status_code} - {response.reason_phrase}"
        f" ({response.request_path})",
        response=response,
    )


def _create_zotero_exception(response: ZoteroResponse) -> ZoteroHTTPError:
    """Create the appropriate Zotero exception for a non-2xx response.

    429 is checked first, independent of the client/server split. Statuses from
    400 to 428 are dispatched on the status table, 5xx becomes a server error and
    everything else is unexpected.
    """
    status_code = response.status_code
    if status_code == 429:
        return _create_rate_limit_exception(response)
    if 400 <= status_code <= 428:
        return _create_client_exception(response)
    if 500 <= status_code <= 599:
        return ZoteroServerError(
            f"{response.reason_phrase}: {_get_error_detail(response)}", response=response
        )
    return _create_unexpected_exception(response)


def raise_for_status(response: ZoteroResponse) -> None:
    """Raise the matching Zotero exception unless the response status is 2xx."""
    if 200 <= response.status_code <= 299:
        return
    raise _create_zotero_exception(response)


def _describe_network_error(error: httpx.TransportError) -> str:
    """Produce a human-readable cause for an httpx transport failure."""
    if isinstance(error, httpx.ConnectError):
        detail = str(error)
        for hint, description in _CONNECT_ERROR_HINTS:
            if hint in detail:
                return description
    for error_class, description in _NETWORK_ERROR_MESSAGES.items():
        if isinstance(error, error_class):
            return description
    return f"Network error: {error}"


def _create_network_exception(error: httpx.TransportError) -> ZoteroNetworkError:
    cause = _describe_network_error(error)
    return ZoteroNetworkError(f"{cause} ({type(error).__name__})", cause=cause)


def zotero_network_errors(func: Callable[P, T]) -> Callable[P, T]:
    """
    Decorator that converts httpx transport exceptions to ZoteroNetworkError.

    Only failures that happen before a response exists are handled here; HTTP
    status errors are the response interpreter's concern.

    Usage:
        >>> @zotero_network_errors
        ... def send(self, request):
        ...     return self._client.send(request)
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except httpx.TransportError as e:
            raise _create_network_exception(e) from e

    return cast(Callable[P, T], wrapper)
