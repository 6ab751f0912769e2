from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Mapping, Optional, Union

from zoteroclient._httpx import HTTPConfig, ZoteroTransport
from zoteroclient._request import (
    CONTENT_TYPE_JSON,
    DEFAULT_BASE_URL,
    BodyEncoding,
    WriteOptions,
    ZoteroRequest,
    api_headers,
    build_request,
)
from zoteroclient._response import ZoteroResponse, interpret
from zoteroclient.exceptions import ZoteroClientClosed, ZoteroUnexpectedResponseError
from zoteroclient.library import ZoteroLibrary

# Set up logger
logger = logging.getLogger("ZoteroClient")

API_KEY_ENV_VAR = "ZOTERO_API_KEY"


class ZoteroClient:
    """A Python client for the Zotero Web API (version 3)

    Zotero is a reference manager; its Web API exposes the items, collections,
    saved searches, tags, full-text content and attachment files of user and
    group libraries.

    The client holds the API key and base URL and turns method calls into
    authenticated requests. Library-scoped operations live on
    :class:`ZoteroLibrary`, obtained from :meth:`user_library` or
    :meth:`group_library`.

    Initialization:
        ZoteroClient can be used as a context manager, which closes the
        underlying HTTP connection pool on exit

        >>> from zoteroclient import ZoteroClient
        >>> with ZoteroClient("P9NiFoyLeZu2bZNvvuQPDWsd") as zot:
        ...     library = zot.user_library(475425)
        ...     books = library.items(itemType="book", limit=5)

    Parameters:
        api_key (str): The Zotero API key.
        base_url (str, optional), keyword-only: API base URL. Default is
            https://api.zotero.org.
        http_config (HTTPConfig, optional), keyword-only: Timeouts and TLS
            settings for the transport created by the client.
        transport (ZoteroTransport, optional), keyword-only: A transport to use
            instead of creating one. Mostly useful for tests. Cannot be combined
            with ``http_config``.

    Raises:
        ValueError: If the API key is empty, or both ``http_config`` and
            ``transport`` are given.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        http_config: Optional[HTTPConfig] = None,
        transport: Optional[ZoteroTransport] = None,
    ):
        if not api_key:
            raise ValueError("An API key is required")
        if http_config is not None and transport is not None:
            raise ValueError(
                "http_config applies to the transport the client creates;"
                " configure the given transport instead"
            )
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self.transport = transport or ZoteroTransport(http_config)
        self.is_closed = False

    @classmethod
    def from_env(cls, **kwargs) -> "ZoteroClient":
        """Create a client with the API key from the ``ZOTERO_API_KEY`` environment variable.

        Args:
            **kwargs: Keyword arguments passed on to the constructor.

        Returns:
            ZoteroClient: The client.

        Raises:
            ValueError: If the variable is unset or empty.
        """
        api_key = os.environ.get(API_KEY_ENV_VAR, "")
        if not api_key:
            raise ValueError(f"{API_KEY_ENV_VAR} is not set")
        return cls(api_key, **kwargs)

    def __repr__(self) -> str:
        return f"ZoteroClient at {self.base_url}"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP transport.

        This should only be needed when running ZoteroClient outside a context manager.
        """
        if not self.is_closed:
            self.transport.close()
            self.is_closed = True
            logger.debug("Zotero client closed")

    def validate_client_open(self):
        if self.is_closed:
            raise ZoteroClientClosed()

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def api_key(self) -> str:
        return self._api_key

    # Library factories

    def user_library(self, user_id: Union[int, str]) -> ZoteroLibrary:
        """Returns a ZoteroLibrary for the user library with the given ID."""
        return ZoteroLibrary(self, "user", user_id)

    def group_library(self, group_id: Union[int, str]) -> ZoteroLibrary:
        """Returns a ZoteroLibrary for the group library with the given ID."""
        return ZoteroLibrary(self, "group", group_id)

    # Request plumbing

    def _send(self, request: ZoteroRequest) -> ZoteroResponse:
        self.validate_client_open()
        return self.transport.execute(request)

    def _request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        encoding: BodyEncoding = BodyEncoding.JSON,
    ) -> Any:
        """Send an authenticated API request and interpret the response.

        The ``format`` query parameter, when sent, decides how the body is decoded.
        """
        request = build_request(
            method,
            path,
            base_url=self.base_url,
            headers={**api_headers(self._api_key), **(headers or {})},
            params=params,
            body=body,
            encoding=encoding,
        )
        response_format = (params or {}).get("format")
        return interpret(self._send(request), response_format)

    def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Fetches data from the Zotero API.

        Args:
            path (str): API endpoint path, e.g. ``/users/475425/items``.
            params (Mapping[str, Any], optional): Query parameters, passed through
                as given. Parameters set to None are left out.

        Returns:
            Any: The decoded JSON document, or the body text for non-JSON formats
                such as ``format=keys`` or ``format=bibtex``.

        Raises:
            ZoteroAuthenticationError: For 401 and 403 errors.
            ZoteroResourceNotFoundError: For 404 errors.
            ZoteroRateLimitError: For 429 errors.
            ZoteroServerError: For 5xx errors.
            ZoteroNetworkError: For network connectivity issues.
        """
        return self._request("GET", path, params=params)

    def write(
        self,
        method: str,
        path: str,
        data: Any = None,
        options: WriteOptions = WriteOptions(),
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Sends a JSON write request.

        Args:
            method (str): POST, PUT, PATCH or DELETE.
            path (str): API endpoint path.
            data (Any, optional): The JSON payload. None sends no body.
            options (WriteOptions): Version precondition and write token. Unset
                fields send no header.
            params (Mapping[str, Any], optional): Query parameters.

        Returns:
            Any: True for 204 No Content, otherwise the decoded response.

        Raises:
            ZoteroBadRequestError: For 400 and 413 errors.
            ZoteroConflictError: For 409 errors, e.g. a locked library.
            ZoteroPreconditionFailedError: For 412 errors (stale version).
            ZoteroPreconditionRequiredError: For 428 errors (missing version).
            ZoteroNetworkError: For network connectivity issues.
        """
        headers = {"Content-Type": CONTENT_TYPE_JSON, **options.headers()}
        return self._request(method, path, headers=headers, params=params, body=data)

    def post(
        self, path: str, data: Any, options: WriteOptions = WriteOptions(), params=None
    ) -> Any:
        return self.write("POST", path, data, options, params)

    def put(self, path: str, data: Any, options: WriteOptions = WriteOptions(), params=None) -> Any:
        return self.write("PUT", path, data, options, params)

    def patch(
        self, path: str, data: Any, options: WriteOptions = WriteOptions(), params=None
    ) -> Any:
        return self.write("PATCH", path, data, options, params)

    def delete(self, path: str, options: WriteOptions = WriteOptions(), params=None) -> Any:
        return self.write("DELETE", path, None, options, params)

    # File uploads

    def post_form(
        self,
        path: str,
        form_data: Mapping[str, Any],
        *,
        if_match: Optional[str] = None,
        if_none_match: Optional[str] = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Sends a form-encoded POST to the API, with optional file preconditions.

        Args:
            path (str): API endpoint path.
            form_data (Mapping[str, Any]): Form fields. Fields set to None are dropped.
            if_match (str, optional): Sent as If-Match.
            if_none_match (str, optional): Sent as If-None-Match.
            params (Mapping[str, Any], optional): Query parameters.

        Returns:
            Any: The decoded response.
        """
        headers = {}
        if if_match is not None:
            headers["If-Match"] = if_match
        if if_none_match is not None:
            headers["If-None-Match"] = if_none_match
        return self._request(
            "POST",
            path,
            headers=headers,
            params=params,
            body=form_data,
            encoding=BodyEncoding.FORM,
        )

    def external_post(self, url: str, multipart_data: Mapping[str, Any]) -> str:
        """Posts multipart form data to an external storage URL.

        No API credentials are attached: the request goes to the storage host,
        not the API.

        Args:
            url (str): The absolute storage URL from an upload authorization.
            multipart_data (Mapping[str, Any]): Multipart fields, the file last.

        Returns:
            str: The storage response body.

        Raises:
            ZoteroUnexpectedResponseError: If the storage host does not answer 2xx.
            ZoteroNetworkError: For network connectivity issues.
        """
        request = build_request(
            "POST", url, body=multipart_data, encoding=BodyEncoding.MULTIPART
        )
        response = self._send(request)
        if not response.is_success:
            raise ZoteroUnexpectedResponseError(
                f"External upload failed: HTTP {response.status_code} - {response.reason_phrase}",
                response=response,
            )
        return response.text

    def request_upload_authorization(
        self,
        path: str,
        *,
        filename: str,
        md5: Optional[str] = None,
        mtime: Optional[int] = None,
        existing_file: bool = False,
        current_md5: Optional[str] = None,
    ) -> Any:
        """Asks the API for permission to upload a file to an attachment item.

        Args:
            path (str): ``<library base path>/items/<key>/file``.
            filename (str): The file name.
            md5 (str, optional): Hex MD5 digest of the file to upload.
            mtime (int, optional): Modification time in milliseconds since the epoch.
            existing_file (bool): If True, the item already has a file and
                ``current_md5`` is asserted with ``If-Match``; otherwise assert that
                no file exists yet with ``If-None-Match: *``.
            current_md5 (str, optional): Hex MD5 digest of the file the server holds
                now. Without it no If-Match header is sent.

        Returns:
            Any: The authorization document: storage upload details, ``{"exists": 1}``,
                or an empty document.
        """
        form_data = {"upload": filename, "md5": md5, "mtime": mtime}
        if existing_file:
            return self.post_form(path, form_data, if_match=current_md5)
        return self.post_form(path, form_data, if_none_match="*")

    def register_upload(self, path: str, *, upload_key: str) -> Any:
        """Tells the API that the file for ``upload_key`` is in storage."""
        return self.post_form(path, {"upload": upload_key})

    # Schema discovery

    def item_types(self, locale: Optional[str] = None) -> List[Dict[str, Any]]:
        """Returns all item types.

        Args:
            locale (str, optional): Locale for localized names, e.g. ``fr-FR``.

        Returns:
            List[Dict[str, Any]]: Item type objects with ``itemType`` and ``localized``.
        """
        return self.get("/itemTypes", params=_locale_params(locale))

    def item_fields(self, locale: Optional[str] = None) -> List[Dict[str, Any]]:
        """Returns all item fields.

        Args:
            locale (str, optional): Locale for localized names.

        Returns:
            List[Dict[str, Any]]: Field objects with ``field`` and ``localized``.
        """
        return self.get("/itemFields", params=_locale_params(locale))

    def creator_fields(self, locale: Optional[str] = None) -> List[Dict[str, Any]]:
        """Returns the localized creator name fields (firstName, lastName, name)."""
        return self.get("/creatorFields", params=_locale_params(locale))

    def item_type_fields(self, item_type: str, locale: Optional[str] = None) -> List[Dict[str, Any]]:
        """Returns the fields valid for an item type.

        Args:
            item_type (str): The item type, e.g. ``book`` or ``journalArticle``.
            locale (str, optional): Locale for localized names.

        Returns:
            List[Dict[str, Any]]: Field objects.
        """
        return self.get(
            "/itemTypeFields", params={"itemType": item_type, **_locale_params(locale)}
        )

    def item_type_creator_types(
        self, item_type: str, locale: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Returns the creator types valid for an item type."""
        return self.get(
            "/itemTypeCreatorTypes", params={"itemType": item_type, **_locale_params(locale)}
        )

    def new_item_template(self, item_type: str, locale: Optional[str] = None) -> Dict[str, Any]:
        """Returns an empty item of the given type, ready to fill in and create.

        Args:
            item_type (str): The item type, e.g. ``book``.
            locale (str, optional): Locale for localized names.

        Returns:
            Dict[str, Any]: The item template.
        """
        return self.get("/items/new", params={"itemType": item_type, **_locale_params(locale)})

    # Keys and groups

    def verify_api_key(self) -> Dict[str, Any]:
        """Returns information about the current API key (userID, username, access).

        Raises:
            ZoteroAuthenticationError: If the key is invalid.
        """
        return self.get("/keys/current")

    def user_groups(self, user_id: Union[int, str], format: str = "versions") -> Any:
        """Returns the groups a user belongs to.

        Args:
            user_id (int | str): The user ID.
            format (str): ``versions`` for a group ID to version map, or ``json``
                for full group objects. Defaults to ``versions``.

        Returns:
            Any: The groups in the requested format.
        """
        return self.get(f"/users/{user_id}/groups", params={"format": format})


def _locale_params(locale: Optional[str]) -> Dict[str, str]:
    return {"locale": locale} if locale else {}
