"""Data models for Google Drive v3 files and the requests sent to the API."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

# Drive API JSON field names
FIELD_ID = "id"
FIELD_NAME = "name"
FIELD_MIME_TYPE = "mimeType"
FIELD_KIND = "kind"
FIELD_PARENTS = "parents"
FIELD_FILES = "files"
FIELD_NEXT_PAGE_TOKEN = "nextPageToken"

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
FILE_KIND = "drive#file"

# Partial response selector for file resources
FILE_FIELDS = "id,name,mimeType,kind,parents"
LIST_FIELDS = f"nextPageToken,files({FILE_FIELDS})"

DEFAULT_EXPIRES_IN = 3600


@dataclass(frozen=True)
class ObjectMetadata:
    """Minimal descriptor of a Drive file or folder.

    A file may formally have several parents; only the first one is used.
    """

    id: str
    name: str
    mime_type: str
    kind: str = FILE_KIND
    parents: tuple[str, ...] = ()

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE

    @property
    def is_image(self) -> bool:
        return "image" in self.mime_type

    @property
    def parent_id(self) -> str | None:
        return self.parents[0] if self.parents else None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> ObjectMetadata:
        """Map a raw Drive file resource to ObjectMetadata.

        Raises:
            ValueError: If the resource has no usable id.
        """
        file_id = raw.get(FIELD_ID)
        if not isinstance(file_id, str) or not file_id:
            raise ValueError(f"Drive file resource without id: {raw!r}")
        return cls(
            id=file_id,
            name=str(raw.get(FIELD_NAME, "")),
            mime_type=str(raw.get(FIELD_MIME_TYPE, "")),
            kind=str(raw.get(FIELD_KIND, FILE_KIND)),
            parents=tuple(raw.get(FIELD_PARENTS) or ()),
        )

    @classmethod
    def root(cls, root_id: str, name: str) -> ObjectMetadata:
        """Synthetic entry for the root container; never fetched remotely."""
        return cls(id=root_id, name=name, mime_type=FOLDER_MIME_TYPE)


@dataclass
class DriveResponse:
    """Status, headers and body of an HTTP exchange.

    Used both for upstream responses and for the responses handed back to
    the HTTP entry point.
    """

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def json(self) -> Any:
        return json.loads(self.body)


@dataclass(frozen=True)
class TokenGrant:
    """Access token and absolute expiry taken from refreshed OAuth2 credentials."""

    access_token: str
    expires_at: float | None = None

    @classmethod
    def from_credentials(cls, token: str | None, expiry: datetime | None) -> TokenGrant:
        """Validate the token and expiry left on credentials after a refresh.

        google-auth reports ``expiry`` as a naive UTC datetime, or ``None`` when
        the token endpoint advertised no lifetime.

        Raises:
            ValueError: If no access token was granted.
        """
        if not isinstance(token, str) or not token:
            raise ValueError("Token response missing access_token")
        if expiry is None:
            return cls(access_token=token)
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        return cls(access_token=token, expires_at=expiry.timestamp())


def escape_query_value(value: str) -> str:
    """Escape a string literal for the Drive query language."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


@dataclass(frozen=True)
class ChildQuery:
    """Query for the non-trashed children of a folder, optionally by exact name."""

    parent_id: str
    name: str | None = None

    def to_q(self) -> str:
        clauses = [f"'{escape_query_value(self.parent_id)}' in parents"]
        if self.name is not None:
            clauses.append(f"name = '{escape_query_value(self.name)}'")
        clauses.append("trashed = false")
        return " and ".join(clauses)


@dataclass(frozen=True)
class FolderCreateRequest:
    """JSON body for creating a folder under a parent."""

    name: str
    parent_id: str

    def to_json(self) -> dict[str, Any]:
        return {
            FIELD_NAME: self.name,
            FIELD_MIME_TYPE: FOLDER_MIME_TYPE,
            FIELD_PARENTS: [self.parent_id],
        }


@dataclass(frozen=True)
class UploadSessionRequest:
    """Negotiation of a resumable upload session.

    Without an existing file ID the session creates a new file named ``name``
    under ``parent_id``. With one, the session replaces that file's content
    and leaves its name and parents untouched.
    """

    name: str
    parent_id: str
    existing_id: str | None = None

    @property
    def is_update(self) -> bool:
        return self.existing_id is not None

    @property
    def method(self) -> str:
        return "PATCH" if self.is_update else "POST"

    def metadata(self) -> dict[str, Any]:
        if self.is_update:
            return {}
        return {FIELD_NAME: self.name, FIELD_PARENTS: [self.parent_id]}
