"""Unit tests for drive/client.py: Drive v3 calls over urllib."""

import json
from io import BytesIO
from unittest.mock import MagicMock, patch
from urllib.error import HTTPError, URLError
from urllib.parse import parse_qs, urlsplit

import pytest

from drive_path.drive.auth import DriveAuthError
from drive_path.drive.client import DriveApiError, DriveClient
from drive_path.drive.models import FOLDER_MIME_TYPE, UploadSessionRequest

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

API = "https://drive.example/drive/v3"
UPLOAD = "https://drive.example/upload/drive/v3"


def _make_client() -> tuple[DriveClient, MagicMock]:
    """Return (client, mock_token_manager)."""
    tokens = MagicMock()
    tokens.get_access_token.return_value = "fake-token-abc"
    client = DriveClient(token_manager=tokens, api_base_url=API, upload_base_url=UPLOAD)
    return client, tokens


def _response(body: bytes = b"", status: int = 200, headers: dict | None = None) -> MagicMock:  # type: ignore[type-arg]
    mock_response = MagicMock()
    mock_response.read.return_value = body
    mock_response.status = status
    mock_response.headers.items.return_value = list((headers or {}).items())
    mock_response.__enter__ = lambda s: s
    mock_response.__exit__ = MagicMock(return_value=False)
    return mock_response


def _json_response(payload: object) -> MagicMock:
    return _response(json.dumps(payload).encode(), headers={"Content-Type": "application/json"})


def _http_error(code: int, body: bytes = b"{}") -> HTTPError:
    return HTTPError(
        url=f"{API}/files",
        code=code,
        msg="error",
        hdrs=None,  # type: ignore[arg-type]
        fp=BytesIO(body),
    )


def _query(url: str) -> dict[str, list[str]]:
    return parse_qs(urlsplit(url).query)


# ---------------------------------------------------------------------------
# request() tests
# ---------------------------------------------------------------------------


class TestRequest:
    def test_sends_bearer_token_and_captures_response(self) -> None:
        client, _ = _make_client()

        with patch("drive_path.drive.client.urllib_request.urlopen") as mock_urlopen:
            mock_urlopen.return_value = _response(b"data", headers={"ETag": "x"})
            result = client.request("GET", f"{API}/files/abc")

        assert result.status_code == 200
        assert result.body == b"data"
        assert result.header("etag") == "x"
        req = mock_urlopen.call_args[0][0]
        assert req.get_header("Authorization") == "Bearer fake-token-abc"

    def test_returns_error_status_instead_of_raising(self) -> None:
        client, _ = _make_client()

        with patch(
            "drive_path.drive.client.urllib_request.urlopen",
            side_effect=_http_error(404, b"missing"),
        ):
            result = client.request("GET", f"{API}/files/abc")

        assert result.status_code == 404
        assert result.body == b"missing"
        assert not result.ok

    def test_transport_failure_raises_api_error(self) -> None:
        client, _ = _make_client()

        with (
            patch(
                "drive_path.drive.client.urllib_request.urlopen",
                side_effect=URLError("timed out"),
            ),
            pytest.raises(DriveApiError) as exc_info,
        ):
            client.request("GET", f"{API}/files/abc")

        assert exc_info.value.status_code == 502

    def test_auth_failure_sends_nothing(self) -> None:
        client, tokens = _make_client()
        tokens.get_access_token.side_effect = DriveAuthError("nope")

        with (
            patch("drive_path.drive.client.urllib_request.urlopen") as mock_urlopen,
            pytest.raises(DriveAuthError),
        ):
            client.request("GET", f"{API}/files/abc")

        mock_urlopen.assert_not_called()


# ---------------------------------------------------------------------------
# list_children() / find_child() tests
# ---------------------------------------------------------------------------


class TestListChildren:
    def test_builds_query_and_maps_files(self) -> None:
        client, _ = _make_client()
        payload = {
            "files": [
                {"id": "a", "name": "a.txt", "mimeType": "text/plain", "parents": ["p"]},
                {"id": "b", "name": "b.png", "mimeType": "image/png", "parents": ["p"]},
            ]
        }

        with patch("drive_path.drive.client.urllib_request.urlopen") as mock_urlopen:
            mock_urlopen.return_value = _json_response(payload)
            children = client.list_children("p")

        assert [c.id for c in children] == ["a", "b"]
        assert children[1].is_image
        req = mock_urlopen.call_args[0][0]
        assert req.full_url.startswith(f"{API}/files?")
        query = _query(req.full_url)
        assert query["q"] == ["'p' in parents and trashed = false"]
        assert query["includeItemsFromAllDrives"] == ["true"]
        assert query["supportsAllDrives"] == ["true"]
        assert "pageToken" not in query

    def test_follows_next_page_token(self) -> None:
        client, _ = _make_client()

        with patch("drive_path.drive.client.urllib_request.urlopen") as mock_urlopen:
            mock_urlopen.side_effect = [
                _json_response({"files": [{"id": "a", "name": "a"}], "nextPageToken": "pg2"}),
                _json_response({"files": [{"id": "b", "name": "b"}]}),
            ]
            children = client.list_children("p")

        assert [c.id for c in children] == ["a", "b"]
        second = mock_urlopen.call_args_list[1][0][0]
        assert _query(second.full_url)["pageToken"] == ["pg2"]

    def test_raises_api_error_with_upstream_message(self) -> None:
        client, _ = _make_client()
        body = json.dumps({"error": {"message": "Rate limit exceeded"}}).encode()

        with (
            patch(
                "drive_path.drive.client.urllib_request.urlopen",
                side_effect=_http_error(403, body),
            ),
            pytest.raises(DriveApiError) as exc_info,
        ):
            client.list_children("p")

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Rate limit exceeded"

    def test_malformed_json_raises_api_error(self) -> None:
        client, _ = _make_client()

        with (
            patch(
                "drive_path.drive.client.urllib_request.urlopen",
                return_value=_response(b"not json"),
            ),
            pytest.raises(DriveApiError) as exc_info,
        ):
            client.list_children("p")

        assert exc_info.value.status_code == 502

    def test_find_child_filters_by_escaped_name(self) -> None:
        client, _ = _make_client()
        payload = {"files": [{"id": "x", "name": "it's", "mimeType": "text/plain"}]}

        with patch("drive_path.drive.client.urllib_request.urlopen") as mock_urlopen:
            mock_urlopen.return_value = _json_response(payload)
            found = client.find_child("p", "it's")

        assert found is not None
        assert found.id == "x"
        query = _query(mock_urlopen.call_args[0][0].full_url)
        assert query["q"] == ["'p' in parents and name = 'it\\'s' and trashed = false"]

    def test_find_child_first_exact_match_wins(self) -> None:
        client, _ = _make_client()
        payload = {
            "files": [
                {"id": "upper", "name": "Docs"},
                {"id": "first", "name": "docs"},
                {"id": "second", "name": "docs"},
            ]
        }

        with patch("drive_path.drive.client.urllib_request.urlopen") as mock_urlopen:
            mock_urlopen.return_value = _json_response(payload)
            found = client.find_child("p", "docs")

        assert found is not None
        assert found.id == "first"

    def test_find_child_returns_none_when_empty(self) -> None:
        client, _ = _make_client()

        with patch("drive_path.drive.client.urllib_request.urlopen") as mock_urlopen:
            mock_urlopen.return_value = _json_response({"files": []})
            assert client.find_child("p", "nothing") is None


# ---------------------------------------------------------------------------
# Mutation tests
# ---------------------------------------------------------------------------


class TestCreateFolder:
    def test_posts_folder_metadata(self) -> None:
        client, _ = _make_client()
        created = {"id": "new", "name": "docs", "mimeType": FOLDER_MIME_TYPE, "parents": ["p"]}

        with patch("drive_path.drive.client.urllib_request.urlopen") as mock_urlopen:
            mock_urlopen.return_value = _json_response(created)
            folder = client.create_folder("p", "docs")

        assert folder.id == "new"
        assert folder.is_folder
        req = mock_urlopen.call_args[0][0]
        assert req.get_method() == "POST"
        assert json.loads(req.data) == {
            "name": "docs",
            "mimeType": FOLDER_MIME_TYPE,
            "parents": ["p"],
        }

    def test_rejected_create_raises_api_error(self) -> None:
        client, _ = _make_client()

        with (
            patch(
                "drive_path.drive.client.urllib_request.urlopen",
                side_effect=_http_error(500),
            ),
            pytest.raises(DriveApiError) as exc_info,
        ):
            client.create_folder("p", "docs")

        assert exc_info.value.status_code == 500


class TestUploadSession:
    def test_create_mode_posts_name_and_parent(self) -> None:
        client, _ = _make_client()

        with patch("drive_path.drive.client.urllib_request.urlopen") as mock_urlopen:
            mock_urlopen.return_value = _response(headers={"Location": "https://up/s1"})
            result = client.start_upload_session(UploadSessionRequest("f.bin", "p"))

        assert result.header("Location") == "https://up/s1"
        req = mock_urlopen.call_args[0][0]
        assert req.get_method() == "POST"
        assert req.full_url.startswith(f"{UPLOAD}/files?")
        assert _query(req.full_url)["uploadType"] == ["resumable"]
        assert json.loads(req.data) == {"name": "f.bin", "parents": ["p"]}

    def test_update_mode_patches_existing_file_with_empty_metadata(self) -> None:
        client, _ = _make_client()

        with patch("drive_path.drive.client.urllib_request.urlopen") as mock_urlopen:
            mock_urlopen.return_value = _response(headers={"Location": "https://up/s2"})
            client.start_upload_session(UploadSessionRequest("f.bin", "p", existing_id="f1"))

        req = mock_urlopen.call_args[0][0]
        assert req.get_method() == "PATCH"
        assert req.full_url.startswith(f"{UPLOAD}/files/f1?")
        assert json.loads(req.data) == {}

    def test_upload_content_puts_body_to_session_url(self) -> None:
        client, _ = _make_client()

        with patch("drive_path.drive.client.urllib_request.urlopen") as mock_urlopen:
            mock_urlopen.return_value = _response(b'{"id": "f1"}', status=201)
            result = client.upload_content("https://up/s1", "image/png", b"\x89PNG")

        assert result.status_code == 201
        req = mock_urlopen.call_args[0][0]
        assert req.full_url == "https://up/s1"
        assert req.get_method() == "PUT"
        assert req.get_header("Content-type") == "image/png"
        assert req.data == b"\x89PNG"


class TestDownloadAndDelete:
    def test_download_requests_media(self) -> None:
        client, _ = _make_client()

        with patch("drive_path.drive.client.urllib_request.urlopen") as mock_urlopen:
            mock_urlopen.return_value = _response(b"bytes")
            result = client.download("f1")

        assert result.body == b"bytes"
        req = mock_urlopen.call_args[0][0]
        assert req.full_url.startswith(f"{API}/files/f1?")
        assert _query(req.full_url)["alt"] == ["media"]

    def test_delete_passes_status_through(self) -> None:
        client, _ = _make_client()

        with patch("drive_path.drive.client.urllib_request.urlopen") as mock_urlopen:
            mock_urlopen.return_value = _response(status=204)
            result = client.delete("f1")

        assert result.status_code == 204
        assert mock_urlopen.call_args[0][0].get_method() == "DELETE"


# ---------------------------------------------------------------------------
# DriveApiError tests
# ---------------------------------------------------------------------------


class TestDriveApiError:
    def test_status_code_and_message_stored(self) -> None:
        err = DriveApiError(403, "Access denied")
        assert err.status_code == 403
        assert err.message == "Access denied"
        assert "403" in str(err)
