from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Union

import httpx

from zoteroclient._request import BodyEncoding, ZoteroRequest
from zoteroclient._response import ZoteroResponse
from zoteroclient.exceptions import zotero_network_errors

if TYPE_CHECKING:  # pragma: no cover
    import ssl

logger = logging.getLogger(__name__)

DEFAULT_OPEN_TIMEOUT = 30.0
DEFAULT_READ_TIMEOUT = 60.0


@dataclass(frozen=True)
class HTTPConfig:
    """Connection settings applied to every request sent by one transport.

    Attributes:
        open_timeout (float | None): Seconds allowed to establish a connection.
            None means no limit.
        read_timeout (float | None): Seconds allowed between bytes received (also
            used for write and pool acquisition). None means no limit.
        verify_ssl (bool | ssl.SSLContext): True verifies peers against the system
            trust store. An SSLContext supplies a custom trust store. Verification
            cannot be turned off.
    """

    open_timeout: Optional[float] = DEFAULT_OPEN_TIMEOUT
    read_timeout: Optional[float] = DEFAULT_READ_TIMEOUT
    verify_ssl: Union[bool, "ssl.SSLContext"] = True

    def __post_init__(self):
        if self.verify_ssl is False:
            raise ValueError(
                "TLS certificate verification cannot be disabled;"
                " pass an ssl.SSLContext to use a custom trust store"
            )

    @property
    def timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.read_timeout, connect=self.open_timeout)

    @classmethod
    def from_env(cls) -> "HTTPConfig":
        """Build a configuration from environment variables.

        ``ZOTEROCLIENT_OPEN_TIMEOUT`` and ``ZOTEROCLIENT_READ_TIMEOUT`` override the
        defaults when set. Nothing reads these variables unless this is called.

        Returns:
            HTTPConfig: The configuration.
        """
        return cls(
            open_timeout=_float_from_env("ZOTEROCLIENT_OPEN_TIMEOUT", DEFAULT_OPEN_TIMEOUT),
            read_timeout=_float_from_env("ZOTEROCLIENT_READ_TIMEOUT", DEFAULT_READ_TIMEOUT),
        )


def _float_from_env(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring invalid {name} value {value!r}; using {default}")
        return default


class ZoteroTransport:
    """Executes request descriptors with httpx and normalizes the responses.

    This is the only place that touches httpx request and response objects.
    Transport failures surface as ZoteroNetworkError; nothing is retried.

    Parameters:
        config (HTTPConfig, optional): Timeouts and TLS settings. Defaults to
            ``HTTPConfig()``.
        client (httpx.Client, optional): A preconfigured client, e.g. one built on
            ``httpx.MockTransport`` in tests. The transport does not close a client
            it did not create.
    """

    def __init__(self, config: Optional[HTTPConfig] = None, client: Optional[httpx.Client] = None):
        self.config = config or HTTPConfig()
        self._owns_client = client is None
        self.httpx_client = client or httpx.Client(
            timeout=self.config.timeout,
            verify=self.config.verify_ssl,
            follow_redirects=True,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    @property
    def is_closed(self) -> bool:
        return self.httpx_client.is_closed

    def close(self) -> None:
        if self._owns_client and not self.httpx_client.is_closed:
            self.httpx_client.close()

    def execute(self, request: ZoteroRequest) -> ZoteroResponse:
        """Send a request and return the normalized response.

        Args:
            request (ZoteroRequest): The request descriptor.

        Returns:
            ZoteroResponse: Status, lower-cased headers and raw body. Any status
                code is returned; classifying it is the caller's job.

        Raises:
            ZoteroNetworkError: For DNS, connection, TLS and timeout failures.
        """
        logger.debug(f"{request.method} {_loggable_url(request.url)}")
        response = self._send(self._to_httpx_request(request))
        logger.debug(f"{request.method} {request.path} -> {response.status_code}")
        return ZoteroResponse(
            status_code=response.status_code,
            headers={k.lower(): v for k, v in response.headers.items()},
            content=response.content,
            request_path=request.path,
            reason_phrase=response.reason_phrase,
        )

    @zotero_network_errors
    def _send(self, request: httpx.Request) -> httpx.Response:
        return self.httpx_client.send(request)

    def _to_httpx_request(self, request: ZoteroRequest) -> httpx.Request:
        if request.encoding is BodyEncoding.MULTIPART and request.body is not None:
            return self.httpx_client.build_request(
                request.method,
                request.url,
                headers=dict(request.headers),
                files=_multipart_fields(request.body),
            )
        return self.httpx_client.build_request(
            request.method, request.url, headers=dict(request.headers), content=request.body
        )


def _multipart_fields(fields):
    """Convert a field mapping into ordered httpx multipart parts.

    Storage services read the file part last, so field order is kept. A value may
    be a ``(filename, content)`` tuple, raw bytes, or a plain value sent as a form
    field without a filename.
    """
    parts = []
    for name, value in fields.items():
        if value is None:
            continue
        if isinstance(value, tuple):
            parts.append((name, value))
        elif isinstance(value, (bytes, bytearray)):
            parts.append((name, (name, bytes(value))))
        else:
            parts.append((name, (None, str(value))))
    return parts


def _loggable_url(url: str) -> str:
    """Strip the query string, which may carry signed storage parameters."""
    return url.split("?", 1)[0]
