"""Pytest configuration: adds src/ to sys.path and provides an in-memory drive."""

import itertools
import json
import os
import sys

import pytest

# Add src/ to Python path so tests can import from drive_path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from drive_path.drive.models import (  # noqa: E402
    FOLDER_MIME_TYPE,
    DriveResponse,
    ObjectMetadata,
    UploadSessionRequest,
)

ROOT_ID = "root"


class FakeDrive:
    """In-memory stand-in for DriveClient that records every remote call."""

    def __init__(self) -> None:
        self.objects: dict[str, ObjectMetadata] = {}
        self.contents: dict[str, bytes] = {}
        self.calls: list[tuple[str, ...]] = []
        self.sessions: dict[str, UploadSessionRequest] = {}
        self.omit_location = False
        self._ids = itertools.count(1)

    # -- seeding -------------------------------------------------------

    def add(self, name: str, parent_id: str = ROOT_ID, mime_type: str = FOLDER_MIME_TYPE) -> str:
        file_id = f"id-{next(self._ids)}"
        self.objects[file_id] = ObjectMetadata(
            id=file_id, name=name, mime_type=mime_type, parents=(parent_id,)
        )
        return file_id

    def add_file(
        self,
        name: str,
        parent_id: str = ROOT_ID,
        content: bytes = b"",
        mime_type: str = "text/plain",
    ) -> str:
        file_id = self.add(name, parent_id, mime_type)
        self.contents[file_id] = content
        return file_id

    def children_of(self, parent_id: str) -> list[ObjectMetadata]:
        return [o for o in self.objects.values() if o.parent_id == parent_id]

    def count(self, call: str) -> int:
        return sum(1 for c in self.calls if c[0] == call)

    # -- DriveClient surface ------------------------------------------

    def list_children(self, parent_id: str, name: str | None = None) -> list[ObjectMetadata]:
        self.calls.append(("list_children", parent_id))
        return self.children_of(parent_id)

    def find_child(self, parent_id: str, name: str) -> ObjectMetadata | None:
        self.calls.append(("find_child", parent_id, name))
        for child in self.children_of(parent_id):
            if child.name == name:
                return child
        return None

    def create_folder(self, parent_id: str, name: str) -> ObjectMetadata:
        self.calls.append(("create_folder", parent_id, name))
        return self.objects[self.add(name, parent_id)]

    def start_upload_session(self, session: UploadSessionRequest) -> DriveResponse:
        self.calls.append(("start_upload_session", session.method))
        if self.omit_location:
            return DriveResponse(status_code=403, body=b'{"error": {"message": "quota"}}')
        session_url = f"https://upload.example/session/{len(self.sessions) + 1}"
        self.sessions[session_url] = session
        return DriveResponse(status_code=200, headers={"Location": session_url})

    def upload_content(self, session_url: str, content_type: str, body: bytes) -> DriveResponse:
        self.calls.append(("upload_content", session_url, content_type))
        session = self.sessions[session_url]
        if session.existing_id is not None:
            file_id = session.existing_id
        else:
            file_id = self.add(session.name, session.parent_id, content_type)
        self.contents[file_id] = body
        payload = json.dumps({"id": file_id, "name": self.objects[file_id].name})
        return DriveResponse(
            status_code=200 if session.is_update else 201,
            headers={"Content-Type": "application/json"},
            body=payload.encode(),
        )

    def download(self, file_id: str) -> DriveResponse:
        self.calls.append(("download", file_id))
        return DriveResponse(
            status_code=200,
            headers={
                "Content-Type": self.objects[file_id].mime_type,
                "Content-Disposition": "attachment",
                "Cache-Control": "private, max-age=0",
                "Transfer-Encoding": "chunked",
                "ETag": '"abc"',
            },
            body=self.contents[file_id],
        )

    def delete(self, file_id: str) -> DriveResponse:
        self.calls.append(("delete", file_id))
        self.objects.pop(file_id)
        self.contents.pop(file_id, None)
        return DriveResponse(status_code=204)


@pytest.fixture
def fake_drive() -> FakeDrive:
    return FakeDrive()
