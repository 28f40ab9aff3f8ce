"""Path operations: fetch, list, upload and delete Drive objects by path."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urlsplit, urlunsplit

from drive_path.drive.client import DriveApiError, DriveClient, drive_client_from_config
from drive_path.drive.models import DriveResponse, ObjectMetadata, UploadSessionRequest
from drive_path.drive.resolver import (
    Found,
    PathResolver,
    ResolveFailed,
    path_resolver_from_config,
    split_leaf,
)
from drive_path.drive.state import DriveState

if TYPE_CHECKING:
    from drive_path.config import AppConfig

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_CONTENT_TYPE = "application/octet-stream"

# DriveClient.request reads the whole body, so framing headers of the upstream
# connection no longer describe the response sent back
_HOP_BY_HOP_HEADERS = frozenset({"connection", "keep-alive", "transfer-encoding"})
_DOWNLOAD_OVERRIDES = {"content-disposition": "inline", "cache-control": "public"}


def text_response(status_code: int, text: str) -> DriveResponse:
    return DriveResponse(
        status_code=status_code,
        headers={"Content-Type": "text/plain; charset=utf-8"},
        body=text.encode("utf-8"),
    )


def json_response(payload: Any) -> DriveResponse:
    return DriveResponse(
        status_code=200,
        headers={"Content-Type": "application/json"},
        body=json.dumps(payload, indent="\t").encode("utf-8"),
    )


def not_found() -> DriveResponse:
    return text_response(404, "Not Found")


def bad_request() -> DriveResponse:
    return text_response(400, "Bad Request")


def error_response(error: DriveApiError) -> DriveResponse:
    """Surface an API error with the status the Drive API used."""
    return text_response(error.status_code, error.message)


def listing_base_url(url: str) -> str:
    """Request URL without query string and with one trailing separator removed."""
    parts = urlsplit(url)
    path = parts.path[:-1] if parts.path.endswith("/") else parts.path
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


class PathOperations:
    """The four externally visible operations, built on the PathResolver."""

    def __init__(
        self,
        resolver: PathResolver,
        client: DriveClient,
        state: DriveState,
        thumbnail_workers: int = 1,
    ) -> None:
        """Initialise the operations.

        Args:
            resolver: Resolver used for every path lookup.
            client: Drive client for the terminal remote calls.
            state: Shared state; its cache is cleared on writes.
            thumbnail_workers: Threads used to look for thumbnails in full
                listings. One means strictly sequential.
        """
        self._resolver = resolver
        self._client = client
        self._state = state
        self._thumbnail_workers = max(1, thumbnail_workers)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def fetch(self, path: str, url: str, full: bool = False) -> DriveResponse:
        """Download the file at ``path``, or list it when it is a folder.

        Args:
            path: Slash-separated path of the object.
            url: Full request URL, used to build listing entries.
            full: Include a thumbnail pointer per child in folder listings.

        Returns:
            The download, a JSON listing, or a 404 / upstream error response.
        """
        try:
            resolution = self._resolver.resolve(path)
            if isinstance(resolution, ResolveFailed):
                return error_response(resolution.error)
            if not isinstance(resolution, Found):
                return not_found()
            if resolution.metadata.is_folder:
                return self.list_folder(resolution.metadata, url, full=full)
            return self._download(resolution.metadata)
        except DriveApiError as exc:
            return error_response(exc)

    def list_folder(self, folder: ObjectMetadata, url: str, full: bool = False) -> DriveResponse:
        """Render the direct children of ``folder`` as absolute URLs.

        In full mode each entry is ``{"url": ..., "thumb": ...}`` where thumb
        points at the child's first image-like entry, or is empty.

        Raises:
            DriveApiError: If a listing call fails.
        """
        base = listing_base_url(url)
        children = self._client.list_children(folder.id)
        logger.info(
            "[list_folder] listing folder; folder_id:%s;child_count:%d;full:%s",
            folder.id,
            len(children),
            full,
        )
        if not full:
            return json_response([f"{base}/{quote(child.name)}" for child in children])

        entries = []
        for child, thumbnail in self.iter_thumbnails(children):
            child_url = f"{base}/{quote(child.name)}"
            thumb = f"{child_url}/{quote(thumbnail.name)}" if thumbnail is not None else ""
            entries.append({"url": child_url, "thumb": thumb})
        return json_response(entries)

    def iter_thumbnails(
        self, children: Sequence[ObjectMetadata]
    ) -> Iterator[tuple[ObjectMetadata, ObjectMetadata | None]]:
        """Yield (child, first image inside child) pairs in enumeration order."""
        if self._thumbnail_workers == 1 or len(children) < 2:
            for child in children:
                yield child, self._first_image(child)
            return
        with ThreadPoolExecutor(max_workers=self._thumbnail_workers) as pool:
            # map() returns results in submission order
            yield from zip(children, pool.map(self._first_image, children))

    def _first_image(self, child: ObjectMetadata) -> ObjectMetadata | None:
        if not child.is_folder:
            return None
        for entry in self._client.list_children(child.id):
            if entry.is_image:
                return entry
        return None

    def _download(self, file: ObjectMetadata) -> DriveResponse:
        upstream = self._client.download(file.id)
        headers = {
            key: value
            for key, value in upstream.headers.items()
            if key.lower() not in _HOP_BY_HOP_HEADERS and key.lower() not in _DOWNLOAD_OVERRIDES
        }
        headers.update(_DOWNLOAD_OVERRIDES)
        return DriveResponse(status_code=upstream.status_code, headers=headers, body=upstream.body)

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def upload(self, path: str, content_type: str | None, body: bytes) -> DriveResponse:
        """Create or replace the file at ``path`` through a resumable upload session.

        Missing parent folders are created. An existing file keeps its ID,
        name and parents; only its content changes.

        Args:
            path: Slash-separated path of the file.
            content_type: Content-Type of ``body``.
            body: File content; must not be empty.

        Returns:
            The content transfer response, the negotiation response when it
            carried no session URL, or a 400 / 404 / upstream error response.
        """
        if not body:
            return bad_request()
        folder_path, file_name = split_leaf(path)
        if not file_name:
            return not_found()

        # Any earlier write may have made cached entries stale
        self._state.cache.clear()

        try:
            parent = self._resolver.resolve(folder_path, create_missing_folders=True)
            if isinstance(parent, ResolveFailed):
                return error_response(parent.error)
            if not isinstance(parent, Found) or not parent.metadata.is_folder:
                return not_found()

            existing = self._resolver.resolve(path)
            if isinstance(existing, ResolveFailed):
                return error_response(existing.error)
            existing_id = None
            if isinstance(existing, Found):
                if existing.metadata.is_folder:
                    return not_found()
                existing_id = existing.metadata.id

            session = UploadSessionRequest(
                name=file_name,
                parent_id=parent.metadata.id,
                existing_id=existing_id,
            )
            negotiation = self._client.start_upload_session(session)
            session_url = negotiation.header("Location")
            if not session_url:
                logger.warning(
                    "[upload] no upload session returned; path:%s;status:%d",
                    path,
                    negotiation.status_code,
                )
                return negotiation

            logger.info(
                "[upload] uploading content; path:%s;mode:%s;size:%d",
                path,
                "update" if session.is_update else "create",
                len(body),
            )
            return self._client.upload_content(
                session_url, content_type or DEFAULT_UPLOAD_CONTENT_TYPE, body
            )
        except DriveApiError as exc:
            return error_response(exc)

    def delete(self, path: str, body: bytes) -> DriveResponse:
        """Delete the object at ``path``.

        A request body is required, as on upload. Missing parent folders are
        created before the target is looked up; this mirrors the upload flow
        and is kept for compatibility with existing clients.

        Args:
            path: Slash-separated path of the object.
            body: Request body; must not be empty.

        Returns:
            The Drive delete response, or a 400 / 404 / upstream error response.
        """
        if not body:
            return bad_request()
        folder_path, file_name = split_leaf(path)
        if not file_name:
            return not_found()

        try:
            parent = self._resolver.resolve(folder_path, create_missing_folders=True)
            if isinstance(parent, ResolveFailed):
                return error_response(parent.error)
            if not isinstance(parent, Found) or not parent.metadata.is_folder:
                return not_found()

            target = self._resolver.resolve(path)
            if isinstance(target, ResolveFailed):
                return error_response(target.error)
            if not isinstance(target, Found):
                return not_found()

            response = self._client.delete(target.metadata.id)
            self._state.cache.clear()
            return response
        except DriveApiError as exc:
            return error_response(exc)


def path_operations_from_config(config: AppConfig, state: DriveState | None = None) -> PathOperations:
    """Construct PathOperations, with its client and resolver, from configuration.

    Creates one DriveState shared by the token manager and the resolver
    unless one is passed in.

    Args:
        config: Application configuration instance.
        state: Shared state to reuse.

    Returns:
        Configured PathOperations instance.
    """
    state = state if state is not None else DriveState()
    client = drive_client_from_config(config, state)
    resolver = path_resolver_from_config(client, state, config)
    return PathOperations(
        resolver=resolver,
        client=client,
        state=state,
        thumbnail_workers=config.thumbnail_workers,
    )
