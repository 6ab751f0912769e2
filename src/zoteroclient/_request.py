from __future__ import annotations

import enum
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

# Constants
API_VERSION = "3"
DEFAULT_BASE_URL = "https://api.zotero.org"
USER_AGENT_STRING = "Zotero Client (zoteroclient for Python)"

API_KEY_HEADER = "Zotero-API-Key"
API_VERSION_HEADER = "Zotero-API-Version"
WRITE_TOKEN_HEADER = "Zotero-Write-Token"
VERSION_HEADER = "If-Unmodified-Since-Version"

CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_FORM = "application/x-www-form-urlencoded"

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")


class BodyEncoding(str, enum.Enum):
    """How a request body is put on the wire."""

    JSON = "json"
    FORM = "form"
    MULTIPART = "multipart"


@dataclass(frozen=True)
class WriteOptions:
    """Optional headers for a write request.

    Attributes:
        version (int, optional): Sent as If-Unmodified-Since-Version. The server
            rejects the write with 412 if the library or object is newer.
        write_token (str, optional): Sent as Zotero-Write-Token so that a
            repeated create request is applied at most once.
    """

    version: Optional[int] = None
    write_token: Optional[str] = None

    def headers(self) -> Dict[str, str]:
        headers = {}
        if self.version is not None:
            headers[VERSION_HEADER] = str(self.version)
        if self.write_token is not None:
            headers[WRITE_TOKEN_HEADER] = self.write_token
        return headers


@dataclass(frozen=True)
class ZoteroRequest:
    """A fully resolved request, built fresh for every call.

    ``url`` already carries the encoded query string. ``body`` holds encoded bytes
    for JSON and form requests; for multipart requests it holds the field mapping
    and the transport does the encoding.
    """

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None
    encoding: BodyEncoding = BodyEncoding.JSON
    path: str = ""


def is_absolute_url(path_or_url: str) -> bool:
    """Return True if the value starts with a URI scheme such as ``https://``."""
    return bool(_SCHEME_RE.match(path_or_url))


def encode_query(params: Optional[Mapping[str, Any]]) -> str:
    """Percent-encode every key and value individually and join them with ``&``.

    Parameters whose value is None are left out. A list or tuple value repeats
    the key once per element, which is how the API takes multiple tag filters.
    """
    if not params:
        return ""
    pairs = []
    for key, value in params.items():
        if value is None:
            continue
        values = value if isinstance(value, (list, tuple)) else [value]
        for v in values:
            pairs.append(f"{quote(str(key), safe='')}={quote(_query_value(v), safe='')}")
    return "&".join(pairs)


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def build_url(base_url: str, path_or_url: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Build the complete target URL.

    Absolute URLs are used verbatim; paths are appended to ``base_url``. Query
    parameters are appended after any query string the URL already carries.

    Args:
        base_url (str): The API base URL.
        path_or_url (str): An API path such as ``/users/1/items``, or an absolute URL.
        params (Mapping[str, Any], optional): Query parameters.

    Returns:
        str: The complete URL.
    """
    if is_absolute_url(path_or_url):
        url = path_or_url
    else:
        url = f"{base_url.rstrip('/')}/{path_or_url.lstrip('/')}"
    query = encode_query(params)
    if not query:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{query}"


def encode_json(data: Any) -> bytes:
    return json.dumps(data, ensure_ascii=False).encode("utf-8")


def encode_form(data: Mapping[str, Any]) -> bytes:
    """Encode form fields, dropping any field whose value is None."""
    return encode_query({k: v for k, v in data.items() if v is not None}).encode("ascii")


def api_headers(api_key: str) -> Dict[str, str]:
    """Headers carried by every request to the Zotero API host."""
    return {
        API_KEY_HEADER: api_key,
        API_VERSION_HEADER: API_VERSION,
        "User-Agent": USER_AGENT_STRING,
    }


def build_request(
    method: str,
    path_or_url: str,
    *,
    base_url: str = DEFAULT_BASE_URL,
    headers: Optional[Mapping[str, str]] = None,
    params: Optional[Mapping[str, Any]] = None,
    body: Any = None,
    encoding: BodyEncoding = BodyEncoding.JSON,
) -> ZoteroRequest:
    """Compose a request descriptor.

    Args:
        method (str): HTTP method.
        path_or_url (str): API path or absolute URL.
        base_url (str): Base URL prepended to relative paths.
        headers (Mapping[str, str], optional): Headers to send as given.
        params (Mapping[str, Any], optional): Query parameters.
        body (Any, optional): Structured value (JSON), field mapping (form or
            multipart), or None for no body.
        encoding (BodyEncoding): Body encoding. Defaults to JSON.

    Returns:
        ZoteroRequest: The request descriptor.
    """
    request_headers = dict(headers or {})
    if body is None:
        encoded_body = None
    elif encoding is BodyEncoding.FORM:
        encoded_body = encode_form(body)
        request_headers["Content-Type"] = CONTENT_TYPE_FORM
    elif encoding is BodyEncoding.MULTIPART:
        # httpx sets the multipart Content-Type with its boundary
        encoded_body = dict(body)
        request_headers.pop("Content-Type", None)
    else:
        encoded_body = encode_json(body)
        request_headers.setdefault("Content-Type", CONTENT_TYPE_JSON)

    return ZoteroRequest(
        method=method.upper(),
        url=build_url(base_url, path_or_url, params),
        headers=request_headers,
        body=encoded_body,
        encoding=encoding,
        path=path_or_url,
    )
