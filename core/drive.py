"""Minimal Google Drive v3 client over REST.

Only the calls the backend needs: query files, create folders, multipart
upload, delete and download. Every request carries a timeout; any transport
error or HTTP status >= 400 surfaces as :class:`ProviderOperationFailure`.
"""
import json
import uuid
from dataclasses import dataclass
from typing import Optional

import requests
from loguru import logger

from config import PROVIDER_TIMEOUT
from core.errors import ProviderOperationFailure

DRIVE_FILES_URL = "https://www.googleapis.com/drive/v3/files"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
FOLDER_MIME = "application/vnd.google-apps.folder"
_PAGE_SIZE = 100


@dataclass
class DriveFile:
    """Metadata for a single Drive file."""
    id: str
    name: str = ""
    created_time: str = ""
    web_view_link: str = ""

    @classmethod
    def from_api(cls, item: dict) -> "DriveFile":
        return cls(
            id=item.get("id", ""),
            name=item.get("name", ""),
            created_time=item.get("createdTime", ""),
            web_view_link=item.get("webViewLink", ""),
        )

    def to_dict(self):
        return {"id": self.id, "name": self.name, "createdTime": self.created_time}


def quote_query_value(value: str) -> str:
    """Quote a string literal for a Drive ``q`` expression."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


class DriveClient:
    """Drive access on behalf of one caller's OAuth session.

    A refresh token is exchanged for an access token lazily, on the first
    request; a bare access token is used as-is.
    """

    def __init__(self, oauth, refresh_token=None, access_token=None,
                 timeout=PROVIDER_TIMEOUT, session=None):
        self.oauth = oauth
        self.refresh_token = refresh_token
        self.timeout = timeout
        self._owns_session = session is None
        self.session = session or requests.Session()
        self._access_token = None if refresh_token else access_token

    def close(self):
        """Release the HTTP session (an injected session is left open)."""
        if self._owns_session:
            self.session.close()

    # -- auth -----------------------------------------------------------------

    def access_token(self) -> str:
        if not self._access_token:
            if not self.refresh_token:
                raise ProviderOperationFailure("No Google credentials for this session")
            self._access_token = self.oauth.refresh_access_token(self.refresh_token)
        return self._access_token

    # -- files ----------------------------------------------------------------

    def list_files(self, query, fields="id, name, createdTime", order_by=None) -> list[DriveFile]:
        """Return every file matching *query*, following pagination."""
        params = {
            "q": query,
            "fields": f"nextPageToken, files({fields})",
            "pageSize": _PAGE_SIZE,
            "spaces": "drive",
        }
        if order_by:
            params["orderBy"] = order_by

        files = []
        while True:
            data = self._request("GET", DRIVE_FILES_URL, params=params).json()
            files.extend(DriveFile.from_api(item) for item in data.get("files", []))
            token = data.get("nextPageToken")
            if not token:
                return files
            params["pageToken"] = token

    def find_folder(self, name) -> Optional[str]:
        query = (
            f"name = {quote_query_value(name)} and mimeType = '{FOLDER_MIME}' "
            "and trashed = false"
        )
        found = self.list_files(query, fields="id")
        return found[0].id if found else None

    def create_folder(self, name) -> str:
        resp = self._request(
            "POST", DRIVE_FILES_URL,
            params={"fields": "id"},
            json={"name": name, "mimeType": FOLDER_MIME},
        )
        folder_id = resp.json()["id"]
        logger.info("Created Drive folder '{}' ({})", name, folder_id)
        return folder_id

    def ensure_folder(self, name) -> str:
        """Return the id of the named folder, creating it if absent."""
        return self.find_folder(name) or self.create_folder(name)

    def list_folder(self, folder_id) -> list[DriveFile]:
        """Files in *folder_id*, newest first."""
        query = f"{quote_query_value(folder_id)} in parents and trashed = false"
        return self.list_files(query, order_by="createdTime desc")

    def upload(self, name, content: bytes, mime_type, parent_id,
               fields="id, name, createdTime") -> DriveFile:
        """Multipart upload of *content* into *parent_id*."""
        boundary = uuid.uuid4().hex
        metadata = json.dumps({"name": name, "parents": [parent_id]})
        body = (
            f"--{boundary}\r\n"
            "Content-Type: application/json; charset=UTF-8\r\n\r\n"
            f"{metadata}\r\n"
            f"--{boundary}\r\n"
            f"Content-Type: {mime_type}\r\n\r\n"
        ).encode("utf-8") + content + f"\r\n--{boundary}--\r\n".encode("utf-8")

        resp = self._request(
            "POST", DRIVE_UPLOAD_URL,
            params={"uploadType": "multipart", "fields": fields},
            data=body,
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
        )
        return DriveFile.from_api(resp.json())

    def delete(self, file_id):
        self._request("DELETE", f"{DRIVE_FILES_URL}/{file_id}")

    def download(self, file_id) -> bytes:
        return self._request("GET", f"{DRIVE_FILES_URL}/{file_id}", params={"alt": "media"}).content

    # -- internal -------------------------------------------------------------

    def _request(self, method, url, headers=None, **kwargs):
        headers = {**(headers or {}), "Authorization": f"Bearer {self.access_token()}"}
        try:
            resp = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ProviderOperationFailure(f"Drive {method} failed: {e}") from e
        if resp.status_code >= 400:
            raise ProviderOperationFailure(
                f"Drive {method} {url} returned HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
        return resp
