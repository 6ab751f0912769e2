from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Union

from zoteroclient._request import WriteOptions
from zoteroclient.file_upload import FileSource, FileUploader, as_file_source

if TYPE_CHECKING:  # pragma: no cover
    from zoteroclient.ZoteroClient import ZoteroClient

VALID_TYPES = ("user", "group")


class ZoteroLibrary:
    """A user or group library, addressed through a ZoteroClient.

    The library keeps only its scope (type and numeric ID) and a reference to the
    client; every method is a single call (three for file uploads) through the
    client. Create methods take an optional ``version`` (sent as
    If-Unmodified-Since-Version) and ``write_token`` (sent as Zotero-Write-Token);
    update and delete methods take ``version``, which the API requires for safe
    concurrent editing and answers with 428 when it is missing.

    Parameters:
        client (ZoteroClient): The client used for all requests.
        library_type (str): ``user`` or ``group``.
        library_id (int | str): The positive numeric user or group ID.

    Raises:
        ValueError: If the type or ID is invalid.
    """

    def __init__(self, client: "ZoteroClient", library_type: str, library_id: Union[int, str]):
        self._client = client
        self._type = self._validate_type(library_type)
        self._id = self._validate_id(library_id)
        self._base_path = f"/{self._type}s/{self._id}"

    def __repr__(self) -> str:
        return f"ZoteroLibrary({self._type!r}, {self._id})"

    @staticmethod
    def _validate_type(library_type: Any) -> str:
        type_str = str(getattr(library_type, "value", library_type))
        if type_str not in VALID_TYPES:
            raise ValueError(
                f"Invalid library type: {type_str}. Must be one of: {', '.join(VALID_TYPES)}"
            )
        return type_str

    @staticmethod
    def _validate_id(library_id: Any) -> int:
        if isinstance(library_id, bool):
            raise ValueError(f"Invalid library ID: {library_id!r}. Must be a positive integer")
        try:
            id_int = int(library_id)
        except (TypeError, ValueError):
            raise ValueError(
                f"Invalid library ID: {library_id!r}. Must be a positive integer"
            ) from None
        if id_int <= 0 or str(id_int) != str(library_id).strip():
            raise ValueError(f"Invalid library ID: {library_id!r}. Must be a positive integer")
        return id_int

    @property
    def client(self) -> "ZoteroClient":
        return self._client

    @property
    def library_type(self) -> str:
        return self._type

    @property
    def library_id(self) -> int:
        return self._id

    @property
    def base_path(self) -> str:
        return self._base_path

    def _path(self, *parts: str) -> str:
        return "/".join((self._base_path, *parts))

    # Library contents

    def collections(self, **params) -> Any:
        """Returns the collections in the library. Query parameters are passed through."""
        return self._client.get(self._path("collections"), params=params)

    def items(self, **params) -> Any:
        """Returns items in the library.

        Args:
            **params: Query parameters passed through as given, e.g. ``limit``,
                ``start``, ``sort``, ``itemType``, ``q``, ``since`` or ``format``.

        Returns:
            Any: Item objects, or the body text for non-JSON formats such as
                ``format="keys"``.
        """
        return self._client.get(self._path("items"), params=params)

    def searches(self, **params) -> Any:
        return self._client.get(self._path("searches"), params=params)

    def tags(self, **params) -> Any:
        return self._client.get(self._path("tags"), params=params)

    def deleted_items(self, since: Optional[int] = None) -> Dict[str, Any]:
        """Returns the keys of objects deleted from the library.

        Args:
            since (int, optional): Only report deletions after this library version.

        Returns:
            Dict[str, Any]: Lists of deleted ``collections``, ``items``,
                ``searches``, ``tags`` and ``settings``.
        """
        params = {"since": since} if since is not None else {}
        return self._client.get(self._path("deleted"), params=params)

    # Creating, updating and deleting

    def _create_single(self, resource: str, data: Dict[str, Any], **options) -> Any:
        # The create endpoint always takes a list
        return self._create_multiple(resource, [data], **options)

    def _create_multiple(
        self,
        resource: str,
        data: List[Dict[str, Any]],
        version: Optional[int] = None,
        write_token: Optional[str] = None,
    ) -> Any:
        options = WriteOptions(version=version, write_token=write_token)
        return self._client.post(self._path(resource), data, options)

    def _update(self, resource: str, key: str, data: Dict[str, Any], version: Optional[int]) -> Any:
        return self._client.patch(self._path(resource, key), data, WriteOptions(version=version))

    def _delete(self, resource: str, key: str, version: Optional[int]) -> Any:
        return self._client.delete(self._path(resource, key), WriteOptions(version=version))

    def _delete_multiple(
        self, resource: str, key_param: str, keys: Iterable[str], version: Optional[int]
    ) -> Any:
        return self._client.delete(
            self._path(resource),
            WriteOptions(version=version),
            params={key_param: ",".join(keys)},
        )

    def create_item(
        self, data: Dict[str, Any], version: Optional[int] = None, write_token: Optional[str] = None
    ) -> Any:
        """Creates one item.

        Args:
            data (Dict[str, Any]): The item, e.g. from :meth:`ZoteroClient.new_item_template`.
            version (int, optional): Library version precondition.
            write_token (str, optional): Idempotency token.

        Returns:
            Any: The API's write report with ``successful``, ``unchanged`` and
                ``failed`` maps.
        """
        return self._create_single("items", data, version=version, write_token=write_token)

    def create_items(
        self,
        data: List[Dict[str, Any]],
        version: Optional[int] = None,
        write_token: Optional[str] = None,
    ) -> Any:
        """Creates several items in one request (the API accepts up to 50)."""
        return self._create_multiple("items", data, version=version, write_token=write_token)

    def update_item(self, item_key: str, data: Dict[str, Any], version: Optional[int] = None) -> Any:
        """Updates an item with PATCH semantics.

        Args:
            item_key (str): The item key.
            data (Dict[str, Any]): Fields to change.
            version (int, optional): The item version the change is based on.

        Returns:
            Any: True on 204 No Content.

        Raises:
            ZoteroPreconditionFailedError: If the item changed since ``version``.
        """
        return self._update("items", item_key, data, version)

    def delete_item(self, item_key: str, version: Optional[int] = None) -> Any:
        return self._delete("items", item_key, version)

    def delete_items(self, item_keys: Iterable[str], version: Optional[int] = None) -> Any:
        """Deletes several items in one request, sending ``itemKey=K1,K2,...``."""
        return self._delete_multiple("items", "itemKey", item_keys, version)

    def create_collection(
        self, data: Dict[str, Any], version: Optional[int] = None, write_token: Optional[str] = None
    ) -> Any:
        return self._create_single("collections", data, version=version, write_token=write_token)

    def create_collections(
        self,
        data: List[Dict[str, Any]],
        version: Optional[int] = None,
        write_token: Optional[str] = None,
    ) -> Any:
        return self._create_multiple("collections", data, version=version, write_token=write_token)

    def update_collection(
        self, collection_key: str, data: Dict[str, Any], version: Optional[int] = None
    ) -> Any:
        return self._update("collections", collection_key, data, version)

    def delete_collection(self, collection_key: str, version: Optional[int] = None) -> Any:
        return self._delete("collections", collection_key, version)

    def delete_collections(
        self, collection_keys: Iterable[str], version: Optional[int] = None
    ) -> Any:
        """Deletes several collections in one request, sending ``collectionKey=K1,K2,...``."""
        return self._delete_multiple("collections", "collectionKey", collection_keys, version)

    # Full-text content

    def fulltext_since(self, *, since: int) -> Dict[str, int]:
        """Returns a map of item keys to full-text versions changed after ``since``."""
        return self._client.get(self._path("fulltext"), params={"since": since})

    def item_fulltext(self, item_key: str) -> Dict[str, Any]:
        """Returns the indexed full-text content of an item.

        Returns:
            Dict[str, Any]: ``content`` plus ``indexedChars``/``totalChars`` or
                ``indexedPages``/``totalPages``.
        """
        return self._client.get(self._path("items", item_key, "fulltext"))

    def set_item_fulltext(
        self, item_key: str, content_data: Dict[str, Any], version: Optional[int] = None
    ) -> Any:
        """Replaces the indexed full-text content of an item.

        Args:
            item_key (str): The item key.
            content_data (Dict[str, Any]): ``content`` and character or page counts.
            version (int, optional): Version precondition.

        Returns:
            Any: True on 204 No Content.
        """
        return self._client.put(
            self._path("items", item_key, "fulltext"), content_data, WriteOptions(version=version)
        )

    # Attachments and files

    def create_attachment(
        self, data: Dict[str, Any], version: Optional[int] = None, write_token: Optional[str] = None
    ) -> Any:
        """Creates an attachment item. Upload its file afterwards with :meth:`upload_file`."""
        return self._create_single("items", data, version=version, write_token=write_token)

    def get_file_info(self, item_key: str) -> Any:
        return self._client.get(self._path("items", item_key, "file"))

    def file_upload_path(self, item_key: str) -> str:
        return self._path("items", item_key, "file")

    def upload_file(self, item_key: str, file: Union[str, os.PathLike, FileSource]) -> Any:
        """Uploads the file of a new attachment item.

        The authorization request asserts ``If-None-Match: *``, so the API refuses
        it if the item already has a file.

        Args:
            item_key (str): The attachment item key.
            file (str | os.PathLike | FileSource): A local path or a FileSource.

        Returns:
            Any: The registration result, or True if no registration was needed.
        """
        return FileUploader(self._client, self.file_upload_path(item_key)).upload(
            as_file_source(file), existing_file=False
        )

    def update_file(
        self,
        item_key: str,
        file: Union[str, os.PathLike, FileSource],
        current_md5: Optional[str] = None,
    ) -> Any:
        """Replaces the file of an existing attachment item.

        The authorization request asserts ``If-Match: <current_md5>``, the hash of
        the file the server holds now (the ``md5`` from :meth:`get_file_info` or
        the item's data). The new file's hash goes in the form body.

        Args:
            item_key (str): The attachment item key.
            file (str | os.PathLike | FileSource): A local path or a FileSource.
            current_md5 (str, optional): Hex MD5 of the stored file. Without it no
                If-Match header is sent.

        Returns:
            Any: The registration result, or True if no registration was needed.

        Raises:
            ZoteroPreconditionFailedError: If the stored file no longer matches
                ``current_md5``.
        """
        return FileUploader(self._client, self.file_upload_path(item_key)).upload(
            as_file_source(file), existing_file=True, current_md5=current_md5
        )
