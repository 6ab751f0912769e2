"""Tests for the exceptions module."""

import pytest

import httpx

from zoteroclient._response import ZoteroResponse
from zoteroclient.exceptions import (
    # Base exceptions
    ZoteroError,
    ZoteroClientClosed,
    # Connection errors
    ZoteroNetworkError,
    # HTTP errors
    ZoteroHTTPError,
    ZoteroBadRequestError,
    ZoteroAuthenticationError,
    ZoteroResourceNotFoundError,
    ZoteroConflictError,
    ZoteroPreconditionFailedError,
    ZoteroPreconditionRequiredError,
    ZoteroRateLimitError,
    ZoteroServerError,
    ZoteroUnexpectedResponseError,
    # Helpers
    zotero_network_errors,
    raise_for_status,
    _create_zotero_exception,
    _get_error_detail,
)


def make_response(status_code, body=b"", headers=None, path="/users/1/items"):
    return ZoteroResponse(
        status_code=status_code,
        headers=headers or {},
        content=body,
        request_path=path,
    )


class TestZoteroClientClosed:
    """Test ZoteroClientClosed exception."""

    def test_default_message(self):
        exc = ZoteroClientClosed()
        assert str(exc) == "The ZoteroClient is closed"

    def test_custom_message(self):
        exc = ZoteroClientClosed("Custom message")
        assert str(exc) == "Custom message"


class TestHTTPErrors:
    """Test HTTP status-related exceptions."""

    def test_zotero_http_error(self):
        response = make_response(500)
        exc = ZoteroHTTPError("HTTP error", response=response)
        assert exc.message == "HTTP error"
        assert exc.response is response
        assert exc.status_code == 500
        assert str(exc) == "Zotero HTTP error: HTTP error (HTTP 500)"

    def test_bad_request_error(self):
        exc = ZoteroBadRequestError("Invalid sort", response=make_response(400))
        assert str(exc) == "Bad request: Invalid sort"

    def test_authentication_error_default_message(self):
        exc = ZoteroAuthenticationError(response=make_response(403))
        assert exc.message == "Authentication failed - check your API key"
        assert str(exc) == (
            "Authentication failed: Authentication failed - check your API key (HTTP 403)"
        )

    def test_resource_not_found_includes_path(self):
        exc = ZoteroResourceNotFoundError(
            "Not found", response=make_response(404, path="/users/1/items/ABCD2345")
        )
        assert str(exc) == "Resource not found: /users/1/items/ABCD2345 (Not found)"

    def test_rate_limit_error_str_is_message(self):
        exc = ZoteroRateLimitError("Rate limited. Backoff: 5s", response=make_response(429))
        assert str(exc) == "Rate limited. Backoff: 5s"
        assert exc.backoff_seconds is None
        assert exc.retry_after_seconds is None

    def test_server_error(self):
        exc = ZoteroServerError("Bad Gateway: upstream", response=make_response(502))
        assert str(exc) == "Server error: HTTP 502 - Bad Gateway: upstream"

    def test_network_error_has_no_status(self):
        exc = ZoteroNetworkError("boom", cause="Connection refused - server may be down")
        assert exc.status_code is None
        assert isinstance(exc, ZoteroError)
        assert not isinstance(exc, ZoteroHTTPError)


class TestStatusMapping:
    """Test the status code to exception class mapping."""

    @pytest.mark.parametrize(
        "status_code, expected",
        [
            (400, ZoteroBadRequestError),
            (401, ZoteroAuthenticationError),
            (403, ZoteroAuthenticationError),
            (404, ZoteroResourceNotFoundError),
            (409, ZoteroConflictError),
            (412, ZoteroPreconditionFailedError),
            (413, ZoteroBadRequestError),
            (428, ZoteroPreconditionRequiredError),
            (429, ZoteroRateLimitError),
            (500, ZoteroServerError),
            (503, ZoteroServerError),
            (599, ZoteroServerError),
        ],
    )
    def test_mapped_statuses(self, status_code, expected):
        exc = _create_zotero_exception(make_response(status_code, b"details"))
        assert type(exc) is expected
        assert exc.status_code == status_code

    @pytest.mark.parametrize("status_code", [302, 405, 410, 418, 431, 600])
    def test_unmapped_statuses_are_unexpected(self, status_code):
        exc = _create_zotero_exception(make_response(status_code))
        assert type(exc) is ZoteroUnexpectedResponseError
        assert f"HTTP {status_code}" in str(exc)
        assert "/users/1/items" in str(exc)

    def test_client_error_message_is_body(self):
        exc = _create_zotero_exception(make_response(400, b"Invalid 'sort' value"))
        assert exc.message == "Invalid 'sort' value"

    def test_server_error_message_has_reason_and_body(self):
        exc = _create_zotero_exception(make_response(503, b"Down for maintenance"))
        assert exc.message == "Service Unavailable: Down for maintenance"

    def test_rate_limit_reads_both_headers(self):
        response = make_response(429, headers={"Backoff": "30", "Retry-After": "60"})
        exc = _create_zotero_exception(response)
        assert exc.backoff_seconds == 30
        assert exc.retry_after_seconds == 60
        assert str(exc) == "Rate limited. Backoff: 30s Retry after: 60s"

    def test_rate_limit_without_headers(self):
        exc = _create_zotero_exception(make_response(429))
        assert exc.backoff_seconds is None
        assert exc.retry_after_seconds is None
        assert str(exc) == "Rate limited."

    def test_rate_limit_ignores_malformed_header(self):
        exc = _create_zotero_exception(make_response(429, headers={"Retry-After": "soon"}))
        assert exc.retry_after_seconds is None

    def test_raise_for_status_passes_2xx(self):
        for status_code in (200, 201, 204, 299):
            raise_for_status(make_response(status_code))

    def test_raise_for_status_raises(self):
        with pytest.raises(ZoteroPreconditionFailedError):
            raise_for_status(make_response(412, b"Library has been modified since version 5"))


def test_get_error_detail_truncates_long_bodies():
    detail = _get_error_detail(make_response(400, b"x" * 600))
    assert detail == "x" * 500 + "..."


def test_get_error_detail_empty_body():
    assert _get_error_detail(make_response(400)) == "No error details in response"
    assert _get_error_detail(None) == "No response available"


class TestNetworkErrorDecorator:
    """Test the zotero_network_errors decorator."""

    @staticmethod
    def raising(error):
        @zotero_network_errors
        def send():
            raise error

        return send

    @pytest.mark.parametrize(
        "error, cause",
        [
            (
                httpx.ConnectError("[Errno -2] Name or service not known"),
                "DNS resolution failed - check hostname",
            ),
            (
                httpx.ConnectError("[Errno 111] Connection refused"),
                "Connection refused - server may be down",
            ),
            (
                httpx.ConnectError("[Errno 113] No route to host"),
                "Host unreachable - check network connectivity",
            ),
            (
                httpx.ConnectError("[SSL: CERTIFICATE_VERIFY_FAILED] certificate verify failed"),
                "SSL error - certificate verification failed",
            ),
            (httpx.ConnectTimeout("timed out"), "Connection timeout - server took too long to respond"),
            (httpx.ReadTimeout("timed out"), "Read timeout - server response was too slow"),
        ],
    )
    def test_transport_errors_become_network_errors(self, error, cause):
        with pytest.raises(ZoteroNetworkError) as exc_info:
            self.raising(error)()
        assert exc_info.value.cause == cause
        assert exc_info.value.__cause__ is error
        assert type(error).__name__ in exc_info.value.message

    def test_other_exceptions_pass_through(self):
        with pytest.raises(KeyError):
            self.raising(KeyError("nope"))()

    def test_return_value_is_kept(self):
        @zotero_network_errors
        def send():
            return "ok"

        assert send() == "ok"
