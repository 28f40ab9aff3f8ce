"""Path resolution: turns slash-separated paths into Drive objects."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union
from urllib.parse import unquote

from drive_path.drive.client import DriveApiError, DriveClient
from drive_path.drive.models import ObjectMetadata
from drive_path.drive.state import DriveState

if TYPE_CHECKING:
    from drive_path.config import AppConfig

logger = logging.getLogger(__name__)

PATH_SEPARATOR = "/"


@dataclass(frozen=True)
class Found:
    metadata: ObjectMetadata


@dataclass(frozen=True)
class NotFound:
    """The walk stopped at ``segment``; later segments were not looked at."""

    path: str
    segment: str


@dataclass(frozen=True)
class ResolveFailed:
    error: DriveApiError


Resolution = Union[Found, NotFound, ResolveFailed]


def split_path(path: str) -> list[str]:
    """Split a path into percent-decoded segments, dropping empty ones.

    Leading, trailing and repeated separators are collapsed.
    """
    return [unquote(segment) for segment in path.split(PATH_SEPARATOR) if segment]


def split_leaf(path: str) -> tuple[str, str | None]:
    """Split a path into (folder path, leaf name).

    The leaf is None when the path has no segments at all.
    """
    segments = [segment for segment in path.split(PATH_SEPARATOR) if segment]
    if not segments:
        return PATH_SEPARATOR, None
    leaf = unquote(segments.pop())
    return PATH_SEPARATOR + PATH_SEPARATOR.join(segments), leaf


class PathResolver:
    """Walks paths one segment at a time through the Drive parent/child graph.

    Lookups are memoised in the shared ResolutionCache. Folders created while
    walking are not cached; a later lookup will populate the cache for them.
    """

    def __init__(
        self,
        client: DriveClient,
        state: DriveState,
        root_id: str = "root",
        root_name: str = "My Drive",
    ) -> None:
        """Initialise the resolver.

        Args:
            client: Drive client used for lookups and folder creation.
            state: Shared state whose cache memoises lookups.
            root_id: Drive ID the empty path maps to.
            root_name: Display name of the synthetic root entry.
        """
        self._client = client
        self._state = state
        self._root = ObjectMetadata.root(root_id, root_name)

    @property
    def root(self) -> ObjectMetadata:
        return self._root

    def resolve(self, path: str, create_missing_folders: bool = False) -> Resolution:
        """Resolve a path to the object its last segment names.

        Args:
            path: Slash-separated path; segments may be percent-encoded.
            create_missing_folders: Create a folder for every segment that
                does not exist instead of giving up.

        Returns:
            Found with the metadata of the last segment, NotFound naming the
            first missing segment, or ResolveFailed carrying the API error.

        Raises:
            DriveAuthError: If no access token can be obtained.
        """
        segments = split_path(path)
        if not segments:
            return Found(self._root)

        current = self._root
        for name in segments:
            parent_id = current.id
            try:
                entry = self._lookup(name, parent_id)
                if entry is None and create_missing_folders:
                    entry = self._client.create_folder(parent_id, name)
            except DriveApiError as exc:
                logger.warning(
                    "[resolve] lookup failed; segment:%s;parent_id:%s;status:%d",
                    name,
                    parent_id,
                    exc.status_code,
                )
                return ResolveFailed(exc)
            if entry is None:
                logger.info("[resolve] segment not found; path:%s;segment:%s", path, name)
                return NotFound(path=path, segment=name)
            current = entry
        return Found(current)

    def _lookup(self, name: str, parent_id: str) -> ObjectMetadata | None:
        cache = self._state.cache
        cached = cache.get(name, parent_id)
        if cached is not None:
            return cached
        entry = self._client.find_child(parent_id, name)
        if entry is not None:
            cache.put(name, parent_id, entry)
        return entry


def path_resolver_from_config(
    client: DriveClient, state: DriveState, config: AppConfig
) -> PathResolver:
    """Construct a PathResolver from application configuration.

    Args:
        client: Drive client sharing ``state`` through its token manager.
        state: Shared state holding the resolution cache.
        config: Application configuration instance.

    Returns:
        Configured PathResolver instance.
    """
    return PathResolver(
        client=client,
        state=state,
        root_id=config.root_id,
        root_name=config.root_name,
    )
