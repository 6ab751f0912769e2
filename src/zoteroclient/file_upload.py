"""Three-step attachment file upload: authorize, upload to storage, register."""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Protocol, Union, runtime_checkable

if TYPE_CHECKING:  # pragma: no cover
    from zoteroclient.ZoteroClient import ZoteroClient

logger = logging.getLogger(__name__)


@runtime_checkable
class FileSource(Protocol):
    """Anything that can supply the bytes and metadata of a file to upload."""

    @property
    def filename(self) -> str: ...  # pragma: no cover

    @property
    def content(self) -> bytes: ...  # pragma: no cover

    @property
    def mtime_ms(self) -> int: ...  # pragma: no cover

    @property
    def md5(self) -> str: ...  # pragma: no cover


class LocalFile:
    """A file on the local filesystem.

    Parameters:
        path (str | os.PathLike): Path to the file.
    """

    def __init__(self, path: Union[str, os.PathLike]):
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"LocalFile({str(self.path)!r})"

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def content(self) -> bytes:
        return self.path.read_bytes()

    @property
    def mtime_ms(self) -> int:
        return int(self.path.stat().st_mtime) * 1000

    @property
    def md5(self) -> str:
        digest = hashlib.md5()
        with self.path.open("rb") as fh:
            for chunk in iter(lambda: fh.read(65536), b""):
                digest.update(chunk)
        return digest.hexdigest()


@dataclass(frozen=True)
class FileMetadata:
    filename: str
    md5: Optional[str]
    mtime: Optional[int]

    @classmethod
    def from_source(cls, source: FileSource) -> "FileMetadata":
        return cls(filename=source.filename, md5=source.md5, mtime=source.mtime_ms)


@dataclass(frozen=True)
class UploadAuthorization:
    """The server's answer to an upload authorization request.

    Attributes:
        url (str, optional): Storage URL to POST the file to. Absent when no
            upload is needed.
        upload_key (str, optional): Key to register once the file is stored.
        params (dict, optional): Form fields to send along with the file.
        prefix (str, optional): Leading part for the prefix/suffix upload scheme.
        suffix (str, optional): Trailing part for the prefix/suffix upload scheme.
        exists (bool): True when the server already has this exact file.
    """

    url: Optional[str] = None
    upload_key: Optional[str] = None
    params: Optional[Dict[str, Any]] = None
    prefix: Optional[str] = None
    suffix: Optional[str] = None
    exists: bool = False

    @classmethod
    def from_response(cls, data: Any) -> "UploadAuthorization":
        if not isinstance(data, Mapping):
            data = {}
        return cls(
            url=data.get("url"),
            upload_key=data.get("uploadKey"),
            params=data.get("params"),
            prefix=data.get("prefix"),
            suffix=data.get("suffix"),
            exists=bool(data.get("exists")),
        )

    @property
    def needs_storage_upload(self) -> bool:
        return bool(self.url)

    @property
    def needs_registration(self) -> bool:
        return bool(self.upload_key)


def build_upload_fields(authorization: UploadAuthorization, source: FileSource) -> Dict[str, Any]:
    """Multipart fields for the storage upload.

    The authorization's ``params`` are sent followed by the file; without
    ``params`` the prefix/file/suffix scheme is used.
    """
    file_part = (source.filename, source.content)
    if authorization.params:
        fields: Dict[str, Any] = dict(authorization.params)
        fields["file"] = file_part
        return fields
    return {"prefix": authorization.prefix, "file": file_part, "suffix": authorization.suffix}


class FileUploader:
    """Runs the upload protocol for one attachment item.

    Each call to ``upload`` runs the whole sequence synchronously and keeps no
    state afterwards. Step 1's answer decides whether steps 2 and 3 run.

    Parameters:
        client (ZoteroClient): The client used to talk to the API and storage.
        upload_path (str): ``<library base path>/items/<key>/file``.
    """

    def __init__(self, client: "ZoteroClient", upload_path: str):
        self.client = client
        self.upload_path = upload_path

    def upload(
        self, source: FileSource, existing_file: bool = False, current_md5: Optional[str] = None
    ) -> Any:
        """Upload a file.

        Args:
            source (FileSource): The file to upload.
            existing_file (bool): False asserts that the item has no file yet
                (``If-None-Match: *``); True replaces the item's current file.
            current_md5 (str, optional): Hash of the file the server holds now,
                asserted with ``If-Match`` when ``existing_file`` is True.

        Returns:
            Any: The registration result, or True when there was nothing to register.
        """
        metadata = FileMetadata.from_source(source)
        logger.info(f"Requesting upload authorization for {metadata.filename} at {self.upload_path}")
        authorization = UploadAuthorization.from_response(
            self.client.request_upload_authorization(
                self.upload_path,
                filename=metadata.filename,
                md5=metadata.md5,
                mtime=metadata.mtime,
                existing_file=existing_file,
                current_md5=current_md5,
            )
        )

        if authorization.needs_storage_upload:
            logger.info(f"Uploading {metadata.filename} to file storage")
            self.client.external_post(
                authorization.url, multipart_data=build_upload_fields(authorization, source)
            )

        if not authorization.needs_registration:
            logger.info(f"No upload registration needed for {self.upload_path}")
            return True

        logger.info(f"Registering upload for {self.upload_path}")
        return self.client.register_upload(self.upload_path, upload_key=authorization.upload_key)


def as_file_source(file: Union[str, os.PathLike, FileSource]) -> FileSource:
    if isinstance(file, (str, os.PathLike)):
        return LocalFile(file)
    return file
