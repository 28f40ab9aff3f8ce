"""Google Drive v3 API client authenticated through the TokenManager."""

from __future__ import annotations

import json
import logging
from http import HTTPStatus
from typing import TYPE_CHECKING, Any
from urllib import request as urllib_request
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode

from drive_path.drive.auth import TokenManager, token_manager_from_config
from drive_path.drive.models import (
    FIELD_FILES,
    FIELD_NEXT_PAGE_TOKEN,
    FILE_FIELDS,
    LIST_FIELDS,
    ChildQuery,
    DriveResponse,
    FolderCreateRequest,
    ObjectMetadata,
    UploadSessionRequest,
)

if TYPE_CHECKING:
    from drive_path.config import AppConfig
    from drive_path.drive.state import DriveState

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json; charset=UTF-8"
BAD_GATEWAY = int(HTTPStatus.BAD_GATEWAY)

# Every call may touch items on shared drives
_ALL_DRIVES = {"supportsAllDrives": "true"}


class DriveApiError(Exception):
    """Raised when the Drive API returns a non-2xx response or an unusable body."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"Drive API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message

    @classmethod
    def from_response(cls, response: DriveResponse) -> DriveApiError:
        """Build an error from a failed response, preferring the API's own message."""
        try:
            detail = response.json().get("error", {}).get("message")
        except Exception:
            detail = None
        if not detail:
            try:
                detail = HTTPStatus(response.status_code).phrase
            except ValueError:
                detail = "Unexpected status"
        return cls(response.status_code, str(detail))


class DriveClient:
    """Authenticated client for the Google Drive v3 API.

    JSON endpoints (list, create) raise DriveApiError on failure. Endpoints
    whose responses are handed back to callers unchanged (upload session,
    content transfer, download, delete) return a DriveResponse whatever its
    status.
    """

    def __init__(
        self,
        token_manager: TokenManager,
        api_base_url: str,
        upload_base_url: str,
        page_size: int = 1000,
        timeout: float = 30.0,
    ) -> None:
        """Initialise the Drive client.

        Args:
            token_manager: Source of bearer tokens for every request.
            api_base_url: Drive v3 API base URL.
            upload_base_url: Drive v3 upload API base URL.
            page_size: Page size requested for child listings.
            timeout: Transport timeout per call, in seconds.
        """
        self._tokens = token_manager
        self._api_base_url = api_base_url.rstrip("/")
        self._upload_base_url = upload_base_url.rstrip("/")
        self._page_size = page_size
        self._timeout = timeout

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def request(
        self,
        method: str,
        url: str,
        body: bytes | None = None,
        content_type: str | None = None,
    ) -> DriveResponse:
        """Perform an authenticated request and capture the response.

        Non-2xx statuses are returned, not raised.

        Args:
            method: HTTP method.
            url: Absolute URL.
            body: Optional request body.
            content_type: Content-Type header for the body.

        Returns:
            DriveResponse with status, headers and the full body.

        Raises:
            DriveAuthError: If no access token can be obtained.
            DriveApiError: If the request never produced an HTTP response.
        """
        token = self._tokens.get_access_token()
        headers = {"Authorization": f"Bearer {token}"}
        if content_type is not None:
            headers["Content-Type"] = content_type
        req = urllib_request.Request(url, data=body, headers=headers, method=method)
        try:
            with urllib_request.urlopen(req, timeout=self._timeout) as resp:
                return DriveResponse(
                    status_code=resp.status,
                    headers=dict(resp.headers.items()),
                    body=resp.read(),
                )
        except HTTPError as exc:
            return DriveResponse(
                status_code=exc.code,
                headers=dict(exc.headers.items()) if exc.headers is not None else {},
                body=exc.read(),
            )
        except (URLError, OSError) as exc:
            logger.error("[request] transport failure; method:%s;reason:%s", method, exc)
            raise DriveApiError(BAD_GATEWAY, f"Drive API unreachable: {exc}") from exc

    def _json(self, method: str, url: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        body = json.dumps(payload).encode("utf-8") if payload is not None else None
        response = self.request(
            method, url, body=body, content_type=JSON_CONTENT_TYPE if body is not None else None
        )
        if not response.ok:
            raise DriveApiError.from_response(response)
        try:
            data = response.json()
        except ValueError as exc:
            raise DriveApiError(BAD_GATEWAY, "Malformed JSON from Drive API") from exc
        if not isinstance(data, dict):
            raise DriveApiError(BAD_GATEWAY, "Unexpected JSON shape from Drive API")
        return data

    def _files_url(self, file_id: str | None = None, upload: bool = False, **params: str) -> str:
        base = self._upload_base_url if upload else self._api_base_url
        url = f"{base}/files"
        if file_id is not None:
            url = f"{url}/{quote(file_id, safe='')}"
        return f"{url}?{urlencode({**params, **_ALL_DRIVES})}"

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def list_children(self, parent_id: str, name: str | None = None) -> list[ObjectMetadata]:
        """List the non-trashed children of a folder, following pagination.

        Args:
            parent_id: Drive ID of the folder.
            name: When given, only children with exactly this name.

        Returns:
            Children in the order the API enumerates them.

        Raises:
            DriveApiError: If any page fails or is malformed.
        """
        query = ChildQuery(parent_id=parent_id, name=name)
        children: list[ObjectMetadata] = []
        page_token: str | None = None
        while True:
            params = {
                "q": query.to_q(),
                "fields": LIST_FIELDS,
                "pageSize": str(self._page_size),
                "includeItemsFromAllDrives": "true",
            }
            if page_token:
                params["pageToken"] = page_token
            data = self._json("GET", self._files_url(**params))
            try:
                children.extend(ObjectMetadata.from_api(raw) for raw in data.get(FIELD_FILES, []))
            except ValueError as exc:
                raise DriveApiError(BAD_GATEWAY, str(exc)) from exc
            page_token = data.get(FIELD_NEXT_PAGE_TOKEN)
            if not page_token:
                return children

    def find_child(self, parent_id: str, name: str) -> ObjectMetadata | None:
        """Return the first non-trashed child named exactly ``name``, if any.

        Drive does not enforce unique names among siblings, so with duplicates
        the pick is whatever the API enumerates first.
        """
        matches = self.list_children(parent_id, name=name)
        # Exact, case-sensitive match on top of the server-side filter
        for match in matches:
            if match.name == name:
                return match
        return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_folder(self, parent_id: str, name: str) -> ObjectMetadata:
        """Create a folder named ``name`` under ``parent_id``.

        Raises:
            DriveApiError: If the API refuses or answers with an unusable body.
        """
        payload = FolderCreateRequest(name=name, parent_id=parent_id).to_json()
        data = self._json("POST", self._files_url(fields=FILE_FIELDS), payload)
        try:
            folder = ObjectMetadata.from_api(data)
        except ValueError as exc:
            raise DriveApiError(BAD_GATEWAY, str(exc)) from exc
        logger.info(
            "[create_folder] created folder; name:%s;parent_id:%s;folder_id:%s",
            name,
            parent_id,
            folder.id,
        )
        return folder

    def start_upload_session(self, session: UploadSessionRequest) -> DriveResponse:
        """Negotiate a resumable upload session.

        The session URL comes back in the Location header of the response.
        """
        url = self._files_url(session.existing_id, upload=True, uploadType="resumable")
        body = json.dumps(session.metadata()).encode("utf-8")
        return self.request(session.method, url, body=body, content_type=JSON_CONTENT_TYPE)

    def upload_content(self, session_url: str, content_type: str, body: bytes) -> DriveResponse:
        """Send the whole content to a resumable upload session in one request."""
        return self.request("PUT", session_url, body=body, content_type=content_type)

    def download(self, file_id: str) -> DriveResponse:
        """Fetch file content. The body is buffered in memory, not streamed."""
        return self.request("GET", self._files_url(file_id, alt="media"))

    def delete(self, file_id: str) -> DriveResponse:
        logger.info("[delete] deleting file; file_id:%s", file_id)
        return self.request("DELETE", self._files_url(file_id))


def drive_client_from_config(config: AppConfig, state: DriveState | None = None) -> DriveClient:
    """Construct a DriveClient, and its TokenManager, from application configuration.

    Args:
        config: Application configuration instance.
        state: Shared state for the token manager; a fresh one when omitted.

    Returns:
        Configured DriveClient instance.
    """
    return DriveClient(
        token_manager=token_manager_from_config(config, state),
        api_base_url=config.api_base_url,
        upload_base_url=config.upload_base_url,
        page_size=config.page_size,
        timeout=config.request_timeout_seconds,
    )
