"""zoteroclient is a Python client for the Zotero Web API (version 3).

It provides authenticated access to user and group libraries: items,
collections, saved searches, tags, deleted objects, full-text content and
the schema endpoints, plus the three-step attachment file upload. HTTP
failures are reported through a closed set of exception classes.
"""

import importlib.metadata

from zoteroclient.exceptions import (
    # Base exceptions
    ZoteroError,
    ZoteroClientClosed,
    # Connection errors
    ZoteroNetworkError,
    # HTTP errors
    ZoteroHTTPError,
    # 4xx client errors
    ZoteroBadRequestError,
    ZoteroAuthenticationError,
    ZoteroResourceNotFoundError,
    ZoteroConflictError,
    ZoteroPreconditionFailedError,
    ZoteroPreconditionRequiredError,
    ZoteroRateLimitError,
    # 5xx server errors
    ZoteroServerError,
    # Anything else
    ZoteroUnexpectedResponseError,
)
from zoteroclient.ZoteroClient import ZoteroClient
from zoteroclient.library import ZoteroLibrary
from zoteroclient.file_upload import FileSource, LocalFile
from zoteroclient._httpx import HTTPConfig, ZoteroTransport
from zoteroclient._request import WriteOptions

try:
    __version__ = importlib.metadata.version("zoteroclient")
except importlib.metadata.PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

__all__ = [
    # Core client
    "ZoteroClient",
    "ZoteroLibrary",
    # Transport and request options
    "HTTPConfig",
    "ZoteroTransport",
    "WriteOptions",
    # File uploads
    "FileSource",
    "LocalFile",
    # Base exceptions
    "ZoteroError",
    # Client closed
    "ZoteroClientClosed",
    # Connection errors
    "ZoteroNetworkError",
    # HTTP errors
    "ZoteroHTTPError",
    # 4xx client errors
    "ZoteroBadRequestError",
    "ZoteroAuthenticationError",
    "ZoteroResourceNotFoundError",
    "ZoteroConflictError",
    "ZoteroPreconditionFailedError",
    "ZoteroPreconditionRequiredError",
    "ZoteroRateLimitError",
    # 5xx server errors
    "ZoteroServerError",
    # Anything else
    "ZoteroUnexpectedResponseError",
]
