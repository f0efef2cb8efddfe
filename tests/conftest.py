"""Shared test fixtures for pytest suite.

Provides fixtures for:
- fake_oauth: stand-in for GoogleOAuth (no network)
- fake_drive: in-memory Drive that records every provider call
- app: Flask test app (development mode) wired to the fakes
- production_app: same app in production mode with a temp SPA build
- client: Flask test client without a Google session
- connected_client: Flask test client carrying the refresh-token cookie
"""
import itertools

import pytest

from core.drive import DriveFile
from core.errors import ProviderAuthFailure, ProviderOperationFailure
from core.google_auth import TokenSet
from web.app import create_app

TEST_ENV = {
    "NODE_ENV": "development",
    "PORT": "3000",
    "GOOGLE_CLIENT_ID": "test-client-id",
    "GOOGLE_CLIENT_SECRET": "test-client-secret",
}


# ---------------------------------------------------------------------------
# Google fakes
# ---------------------------------------------------------------------------

class FakeOAuth:
    """Mimics GoogleOAuth; set ``fail = True`` to reject every grant."""

    configured = True

    def __init__(self):
        self.fail = False
        self.calls = []
        self.tokens = TokenSet(access_token="access-1", refresh_token="refresh-1", expires_in=3599)
        self.profile = {"email": "Gestor@PromptMetal.com.br", "name": "Gestor", "picture": None}

    def authorization_url(self):
        return "https://accounts.google.com/o/oauth2/v2/auth?client_id=test-client-id"

    def exchange_code(self, code):
        self.calls.append(("exchange_code", code))
        if self.fail or not code:
            raise ProviderAuthFailure("invalid_grant", status_code=400)
        return self.tokens

    def refresh_access_token(self, refresh_token):
        self.calls.append(("refresh_access_token", refresh_token))
        if self.fail:
            raise ProviderAuthFailure("invalid_grant", status_code=400)
        return "access-from-refresh"

    def fetch_user(self, access_token):
        self.calls.append(("fetch_user", access_token))
        return self.profile


class FakeDrive:
    """In-memory Drive with the DriveClient surface used by core.backups.

    ``calls`` lists every provider operation in order; set ``fail_on`` to an
    operation name to make it raise ProviderOperationFailure.
    """

    def __init__(self):
        self.calls = []
        self.fail_on = None
        self.folders = {}   # name -> folder id
        self.files = {}     # folder id -> [DriveFile]
        self.contents = {}  # file id -> bytes
        self.mime_types = {}
        self.closed = 0
        self._ids = itertools.count(1)
        self._clock = itertools.count(10)

    def _record(self, op, *args):
        self.calls.append((op, *args))
        if self.fail_on == op:
            raise ProviderOperationFailure(f"{op} failed", status_code=500)

    def _timestamp(self):
        return f"2026-10-18T12:00:{next(self._clock):02d}.000Z"

    def find_folder(self, name):
        self._record("find_folder", name)
        return self.folders.get(name)

    def create_folder(self, name):
        self._record("create_folder", name)
        folder_id = f"folder-{next(self._ids)}"
        self.folders[name] = folder_id
        self.files[folder_id] = []
        return folder_id

    def ensure_folder(self, name):
        return self.find_folder(name) or self.create_folder(name)

    def list_folder(self, folder_id):
        self._record("list_folder", folder_id)
        return sorted(self.files.get(folder_id, []), key=lambda f: f.created_time, reverse=True)

    def upload(self, name, content, mime_type, parent_id, fields="id, name, createdTime"):
        self._record("upload", name)
        file_id = f"file-{next(self._ids)}"
        created = DriveFile(
            id=file_id, name=name, created_time=self._timestamp(),
            web_view_link=f"https://drive.google.com/file/d/{file_id}/view",
        )
        self.files.setdefault(parent_id, []).append(created)
        self.contents[file_id] = content
        self.mime_types[file_id] = mime_type
        return created

    def delete(self, file_id):
        self._record("delete", file_id)
        for files in self.files.values():
            files[:] = [f for f in files if f.id != file_id]
        self.contents.pop(file_id, None)

    def download(self, file_id):
        self._record("download", file_id)
        return self.contents[file_id]

    def close(self):
        self.closed += 1

    # -- seeding helpers (not provider calls) ---------------------------------

    def seed_folder(self, name):
        folder_id = f"folder-{next(self._ids)}"
        self.folders[name] = folder_id
        self.files[folder_id] = []
        return folder_id

    def seed_file(self, folder_id, name, content, created_time):
        file_id = f"file-{next(self._ids)}"
        self.files[folder_id].append(DriveFile(id=file_id, name=name, created_time=created_time))
        self.contents[file_id] = content
        return file_id

    def file_names(self, folder_name):
        folder_id = self.folders[folder_name]
        return [f.name for f in sorted(self.files[folder_id], key=lambda f: f.created_time, reverse=True)]


@pytest.fixture
def fake_oauth():
    return FakeOAuth()


@pytest.fixture
def fake_drive():
    return FakeDrive()


# ---------------------------------------------------------------------------
# Flask app fixtures
# ---------------------------------------------------------------------------

def _wire(application, oauth, drive):
    """Point the app's Google collaborators at the fakes."""
    application.oauth = oauth
    application.drive_sessions = []

    def _factory(oauth_client, refresh_token=None, access_token=None):
        application.drive_sessions.append((refresh_token, access_token))
        return drive

    application.drive_factory = _factory
    application.config["TESTING"] = True
    return application


@pytest.fixture
def app(fake_oauth, fake_drive):
    """Create a Flask test app in development mode."""
    return _wire(create_app(dict(TEST_ENV)), fake_oauth, fake_drive)


@pytest.fixture
def dist_dir(tmp_path):
    """A minimal built SPA."""
    dist = tmp_path / "dist"
    (dist / "assets").mkdir(parents=True)
    (dist / "index.html").write_text(
        "<!doctype html><html><body><div id=\"root\"></div>PromptMetal</body></html>"
    )
    (dist / "assets" / "index.js").write_text("console.log('promptmetal');")
    return dist


@pytest.fixture
def production_app(fake_oauth, fake_drive, dist_dir):
    """Create a Flask test app in production mode serving ``dist_dir``."""
    application = create_app(dict(TEST_ENV, NODE_ENV="production"))
    application.config["DIST_DIR"] = dist_dir
    return _wire(application, fake_oauth, fake_drive)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def connected_client(app):
    """Test client holding a Google refresh-token session cookie."""
    c = app.test_client()
    c.set_cookie("google_refresh_token", "refresh-1")
    return c
