import hashlib
import os
from unittest.mock import Mock, call

import pytest

from zoteroclient.exceptions import ZoteroPreconditionFailedError, ZoteroUnexpectedResponseError
from zoteroclient.file_upload import (
    FileSource,
    FileUploader,
    LocalFile,
    UploadAuthorization,
    as_file_source,
    build_upload_fields,
)

UPLOAD_PATH = "/users/475425/items/ABCD2345/file"


class InMemoryFile:
    filename = "paper.pdf"
    content = b"%PDF-1.4 test"
    mtime_ms = 1700000000000

    @property
    def md5(self):
        return hashlib.md5(self.content).hexdigest()


@pytest.fixture
def source():
    return InMemoryFile()


def mock_client(authorization):
    client = Mock()
    client.request_upload_authorization.return_value = authorization
    client.external_post.return_value = ""
    client.register_upload.return_value = True
    return client


class TestFileUploader:
    def test_full_upload_runs_storage_then_registration(self, source):
        client = mock_client(
            {"url": "https://storage.example/upload", "uploadKey": "KEY1", "params": {"key": "k"}}
        )
        assert FileUploader(client, UPLOAD_PATH).upload(source) is True

        client.request_upload_authorization.assert_called_once_with(
            UPLOAD_PATH,
            filename="paper.pdf",
            md5=source.md5,
            mtime=1700000000000,
            existing_file=False,
            current_md5=None,
        )
        client.external_post.assert_called_once_with(
            "https://storage.example/upload",
            multipart_data={"key": "k", "file": ("paper.pdf", source.content)},
        )
        client.register_upload.assert_called_once_with(UPLOAD_PATH, upload_key="KEY1")
        storage_and_register = [
            c for c in client.mock_calls if c[0] in ("external_post", "register_upload")
        ]
        assert [c[0] for c in storage_and_register] == ["external_post", "register_upload"]

    def test_existing_file_skips_storage_and_registration(self, source):
        client = mock_client({"exists": 1})
        assert FileUploader(client, UPLOAD_PATH).upload(source) is True
        client.external_post.assert_not_called()
        client.register_upload.assert_not_called()

    def test_empty_authorization_makes_no_further_calls(self, source):
        client = mock_client({})
        assert FileUploader(client, UPLOAD_PATH).upload(source) is True
        assert client.mock_calls == [
            call.request_upload_authorization(
                UPLOAD_PATH,
                filename="paper.pdf",
                md5=source.md5,
                mtime=1700000000000,
                existing_file=False,
                current_md5=None,
            )
        ]

    def test_upload_key_without_url_only_registers(self, source):
        client = mock_client({"uploadKey": "KEY2"})
        FileUploader(client, UPLOAD_PATH).upload(source)
        client.external_post.assert_not_called()
        client.register_upload.assert_called_once_with(UPLOAD_PATH, upload_key="KEY2")

    def test_storage_failure_stops_before_registration(self, source):
        client = mock_client({"url": "https://storage.example/upload", "uploadKey": "KEY1"})
        client.external_post.side_effect = ZoteroUnexpectedResponseError(
            "External upload failed: HTTP 403 - Forbidden", response=Mock(status_code=403)
        )
        with pytest.raises(ZoteroUnexpectedResponseError):
            FileUploader(client, UPLOAD_PATH).upload(source)
        client.register_upload.assert_not_called()

    def test_existing_file_flag_is_forwarded(self, source):
        client = mock_client({})
        FileUploader(client, UPLOAD_PATH).upload(source, existing_file=True)
        assert client.request_upload_authorization.call_args.kwargs["existing_file"] is True

    def test_current_md5_is_forwarded(self, source):
        client = mock_client({})
        FileUploader(client, UPLOAD_PATH).upload(source, existing_file=True, current_md5="abc123")
        kwargs = client.request_upload_authorization.call_args.kwargs
        assert kwargs["current_md5"] == "abc123"
        assert kwargs["md5"] == source.md5


class TestUploadFields:
    def test_params_then_file(self, source):
        authorization = UploadAuthorization.from_response(
            {"url": "u", "params": {"key": "k", "policy": "p"}, "prefix": "ignored"}
        )
        fields = build_upload_fields(authorization, source)
        assert list(fields) == ["key", "policy", "file"]
        assert fields["file"] == ("paper.pdf", source.content)

    def test_prefix_and_suffix(self, source):
        authorization = UploadAuthorization.from_response(
            {"url": "u", "prefix": "PRE", "suffix": "SUF", "contentType": "multipart/form-data"}
        )
        fields = build_upload_fields(authorization, source)
        assert list(fields) == ["prefix", "file", "suffix"]
        assert fields["prefix"] == "PRE"
        assert fields["suffix"] == "SUF"

    def test_authorization_parsing(self):
        authorization = UploadAuthorization.from_response({"exists": 1})
        assert authorization.exists
        assert not authorization.needs_storage_upload
        assert not authorization.needs_registration
        assert UploadAuthorization.from_response("unexpected text") == UploadAuthorization()


class TestLocalFile:
    def test_metadata(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_bytes(b"hello zotero")
        os.utime(path, (1700000000.7, 1700000000.7))
        local = LocalFile(path)
        assert isinstance(local, FileSource)
        assert local.filename == "notes.txt"
        assert local.content == b"hello zotero"
        assert local.md5 == hashlib.md5(b"hello zotero").hexdigest()
        assert local.mtime_ms == 1700000000000

    def test_as_file_source(self, tmp_path, source):
        assert isinstance(as_file_source(str(tmp_path / "a.pdf")), LocalFile)
        assert isinstance(as_file_source(tmp_path / "a.pdf"), LocalFile)
        assert as_file_source(source) is source


class TestLibraryUpload:
    """The upload sequence as it goes over the wire."""

    def test_upload_new_file(self, library, api, source):
        api.queue(
            200,
            json_data={
                "url": "https://storage.example/upload",
                "uploadKey": "KEY1",
                "prefix": "PRE",
                "suffix": "SUF",
                "contentType": "multipart/form-data",
            },
        )
        api.queue(201)
        api.queue(204)

        assert library.upload_file("ABCD2345", source) is True

        authorize, store, register = api.requests
        assert authorize.method == "POST"
        assert authorize.url.path == UPLOAD_PATH
        assert authorize.headers["If-None-Match"] == "*"
        assert "If-Match" not in authorize.headers
        assert authorize.content == (
            f"upload=paper.pdf&md5={source.md5}&mtime=1700000000000".encode()
        )

        assert str(store.url) == "https://storage.example/upload"
        assert "Zotero-API-Key" not in store.headers
        assert store.content.index(b"PRE") < store.content.index(b"%PDF-1.4 test")
        assert store.content.index(b"%PDF-1.4 test") < store.content.index(b"SUF")

        assert register.url.path == UPLOAD_PATH
        assert register.content == b"upload=KEY1"
        assert register.headers["Zotero-API-Key"] == "test-api-key"

    def test_update_file_asserts_stored_md5(self, library, api, tmp_path):
        old_md5 = hashlib.md5(b"old contents").hexdigest()
        new_md5 = hashlib.md5(b"new contents").hexdigest()
        path = tmp_path / "paper.pdf"
        path.write_bytes(b"new contents")
        api.queue(200, json_data={"exists": 1})

        assert library.update_file("ABCD2345", path, current_md5=old_md5) is True
        assert len(api.requests) == 1
        request = api.last
        assert request.headers["If-Match"] == old_md5
        assert "If-None-Match" not in request.headers
        assert f"md5={new_md5}".encode() in request.content

    def test_update_file_without_stored_md5_sends_no_if_match(self, library, api, tmp_path):
        path = tmp_path / "paper.pdf"
        path.write_bytes(b"new contents")
        api.queue(200, json_data={})

        library.update_file("ABCD2345", path)
        assert "If-Match" not in api.last.headers
        assert "If-None-Match" not in api.last.headers

    def test_update_file_stale_md5(self, library, api, source):
        api.queue(412, content=b"ETag does not match current version of file")
        with pytest.raises(ZoteroPreconditionFailedError):
            library.update_file("ABCD2345", source, current_md5="0" * 32)
        assert len(api.requests) == 1

    def test_upload_rejected_when_file_exists(self, library, api, source):
        api.queue(412, content=b"If-None-Match: * set but file exists")
        with pytest.raises(ZoteroPreconditionFailedError):
            library.upload_file("ABCD2345", source)
        assert len(api.requests) == 1
