from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from http import HTTPStatus
from types import MappingProxyType
from typing import Any, Mapping, NamedTuple, Optional

from zoteroclient.exceptions import _parse_seconds, raise_for_status

logger = logging.getLogger(__name__)

# Response formats whose bodies are JSON documents. Everything else the API
# offers (keys, bibtex, ris, bib, citation, atom, ...) is returned as text.
JSON_FORMATS = frozenset({"json", "versions"})


@dataclass(frozen=True)
class ZoteroResponse:
    """Normalized HTTP response produced by the transport adapter.

    Attributes:
        status_code (int): The HTTP status code.
        headers (Mapping[str, str]): Response headers with lower-cased names.
        content (bytes): The raw response body.
        request_path (str): Path (or URL for external hosts) that was requested.
        reason_phrase (str): The HTTP reason phrase, derived from the status when
            the transport does not supply one.
    """

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    content: bytes = b""
    request_path: str = ""
    reason_phrase: str = ""

    def __post_init__(self):
        lowered = {str(k).lower(): str(v) for k, v in self.headers.items()}
        object.__setattr__(self, "headers", MappingProxyType(lowered))
        if not self.reason_phrase:
            try:
                phrase = HTTPStatus(self.status_code).phrase
            except ValueError:
                phrase = ""
            object.__setattr__(self, "reason_phrase", phrase)

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code <= 299


class RateLimitHints(NamedTuple):
    backoff_seconds: Optional[int]
    retry_after_seconds: Optional[int]


def rate_limit_hints(response: ZoteroResponse) -> RateLimitHints:
    """Read the ``Backoff`` and ``Retry-After`` headers off a response.

    Either value is None when the server did not send it.
    """
    return RateLimitHints(
        backoff_seconds=_parse_seconds(response.headers.get("backoff")),
        retry_after_seconds=_parse_seconds(response.headers.get("retry-after")),
    )


def expects_json(response_format: Optional[str]) -> bool:
    return response_format is None or response_format in JSON_FORMATS


def decode_json_body(response: ZoteroResponse) -> Any:
    """Decode a JSON body, falling back to the raw text if it does not parse.

    An empty body decodes to None.
    """
    if not response.content.strip():
        return None
    try:
        return json.loads(response.content)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning(
            f"Response from {response.request_path} declared JSON but could not be decoded;"
            " returning raw text"
        )
        return response.text


def interpret(response: ZoteroResponse, response_format: Optional[str] = None) -> Any:
    """Turn a response into a decoded value, or raise the matching Zotero error.

    Args:
        response (ZoteroResponse): The normalized response.
        response_format (str, optional): The ``format`` query parameter that was
            actually sent. None means the API default (JSON).

    Returns:
        Any: True for 204 No Content, the decoded JSON document for JSON formats
            (raw text if decoding fails), or the untouched body text for other
            formats.
    """
    raise_for_status(response)

    hints = rate_limit_hints(response)
    if hints.backoff_seconds is not None:
        logger.warning(
            f"Zotero asked clients to back off for {hints.backoff_seconds}s"
            f" ({response.request_path})"
        )

    if response.status_code == HTTPStatus.NO_CONTENT:
        return True
    if not expects_json(response_format):
        return response.text
    return decode_json_body(response)
