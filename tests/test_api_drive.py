"""Tests for the Google Drive endpoints (backup, history, restore, upload).

Run: pytest tests/test_api_drive.py -v
Markers: api, drive
"""
import json

import pytest

pytestmark = [pytest.mark.api, pytest.mark.drive]

BACKUPS = "PromptMetal Backups"
DOCUMENTS = "PromptMetal Documents"


def _seed_backups(drive, count):
    folder_id = drive.seed_folder(BACKUPS)
    for i in range(count):
        drive.seed_file(
            folder_id,
            f"backup_2026-10-1{i}T08:00:00.000Z.json",
            json.dumps({"generation": i}).encode("utf-8"),
            created_time=f"2026-10-1{i}T08:00:00.000Z",
        )
    return folder_id


# ── Session guard ───────────────────────────────────────────────


class TestNotConnected:
    """Every Drive endpoint answers 401 without touching Google."""

    @pytest.mark.parametrize("method,path", [
        ("post", "/api/drive/backup"),
        ("get", "/api/drive/history"),
        ("get", "/api/drive/restore"),
        ("post", "/api/drive/upload-file"),
    ])
    def test_requires_session(self, app, client, fake_drive, method, path):
        r = getattr(client, method)(path, json={"data": {}})
        assert r.status_code == 401
        assert r.get_json() == {"error": "Not connected to Google Drive"}
        assert fake_drive.calls == []
        assert app.drive_sessions == []


# ── Backup ──────────────────────────────────────────────────────


class TestBackup:
    """DRIVE-BACKUP: POST /api/drive/backup"""

    def test_first_backup_creates_folder(self, connected_client, fake_drive):
        r = connected_client.post("/api/drive/backup", json={"data": {"orcamentos": [1, 2]}})
        assert r.status_code == 200
        body = r.get_json()
        assert body["success"] is True
        assert len(body["history"]) == 1
        assert body["history"][0]["name"].startswith("backup_")
        assert set(body["history"][0]) == {"id", "name", "createdTime"}

        ops = [c[0] for c in fake_drive.calls]
        assert ops == ["find_folder", "create_folder", "upload", "list_folder"]
        uploaded_id = body["history"][0]["id"]
        assert json.loads(fake_drive.contents[uploaded_id]) == {"orcamentos": [1, 2]}
        assert fake_drive.mime_types[uploaded_id] == "application/json"

    def test_keeps_three_newest(self, connected_client, fake_drive):
        _seed_backups(fake_drive, 5)
        r = connected_client.post("/api/drive/backup", json={"data": {"v": 6}})
        assert r.status_code == 200

        history = r.get_json()["history"]
        assert len(history) == 3
        remaining = fake_drive.file_names(BACKUPS)
        assert remaining == [h["name"] for h in history]
        assert remaining[1:] == [
            "backup_2026-10-14T08:00:00.000Z.json",
            "backup_2026-10-13T08:00:00.000Z.json",
        ]
        assert [c[0] for c in fake_drive.calls].count("delete") == 3

    def test_custom_filename(self, connected_client, fake_drive):
        r = connected_client.post("/api/drive/backup", json={"data": [], "filename": "manual.json"})
        assert r.get_json()["history"][0]["name"] == "manual.json"

    def test_null_data_is_a_valid_backup(self, connected_client):
        r = connected_client.post("/api/drive/backup", json={"data": None})
        assert r.status_code == 200

    def test_missing_data(self, connected_client, fake_drive):
        r = connected_client.post("/api/drive/backup", json={"filename": "x.json"})
        assert r.status_code == 400
        assert fake_drive.calls == []

    def test_non_object_body(self, connected_client):
        r = connected_client.post("/api/drive/backup", json=[1, 2, 3])
        assert r.status_code == 400

    def test_upload_failure_leaves_created_folder(self, connected_client, fake_drive):
        fake_drive.fail_on = "upload"
        r = connected_client.post("/api/drive/backup", json={"data": {}})
        assert r.status_code == 500
        assert r.get_json()["error"] == "Erro ao realizar backup no Google Drive"
        assert BACKUPS in fake_drive.folders

    def test_session_tokens_passed_to_drive(self, app, connected_client):
        connected_client.post("/api/drive/backup", json={"data": {}})
        assert app.drive_sessions == [("refresh-1", None)]

    def test_drive_client_closed_after_request(self, connected_client, fake_drive):
        connected_client.post("/api/drive/backup", json={"data": {}})
        assert fake_drive.closed == 1

    def test_drive_client_closed_after_failure(self, connected_client, fake_drive):
        fake_drive.fail_on = "upload"
        connected_client.post("/api/drive/backup", json={"data": {}})
        assert fake_drive.closed == 1


# ── History ─────────────────────────────────────────────────────


class TestHistory:
    """DRIVE-HISTORY: GET /api/drive/history"""

    def test_no_folder_yet(self, connected_client, fake_drive):
        r = connected_client.get("/api/drive/history")
        assert r.status_code == 200
        assert r.get_json() == {"history": []}
        assert [c[0] for c in fake_drive.calls] == ["find_folder"]

    def test_newest_first(self, connected_client, fake_drive):
        _seed_backups(fake_drive, 2)
        history = connected_client.get("/api/drive/history").get_json()["history"]
        assert [h["createdTime"] for h in history] == [
            "2026-10-11T08:00:00.000Z",
            "2026-10-10T08:00:00.000Z",
        ]

    def test_provider_failure(self, connected_client, fake_drive):
        fake_drive.fail_on = "find_folder"
        r = connected_client.get("/api/drive/history")
        assert r.status_code == 500


# ── Restore ─────────────────────────────────────────────────────


class TestRestore:
    """DRIVE-RESTORE: GET /api/drive/restore"""

    def test_returns_newest_payload(self, connected_client, fake_drive):
        _seed_backups(fake_drive, 3)
        r = connected_client.get("/api/drive/restore")
        assert r.status_code == 200
        body = r.get_json()
        assert body["success"] is True
        assert body["data"] == {"generation": 2}
        assert body["file"]["name"] == "backup_2026-10-12T08:00:00.000Z.json"

    def test_no_folder(self, connected_client):
        r = connected_client.get("/api/drive/restore")
        assert r.status_code == 404
        assert r.get_json()["error"] == "Nenhum backup encontrado no Google Drive"

    def test_empty_folder(self, connected_client, fake_drive):
        fake_drive.seed_folder(BACKUPS)
        assert connected_client.get("/api/drive/restore").status_code == 404

    def test_download_failure(self, connected_client, fake_drive):
        _seed_backups(fake_drive, 1)
        fake_drive.fail_on = "download"
        assert connected_client.get("/api/drive/restore").status_code == 500

    def test_backup_then_restore(self, connected_client):
        connected_client.post("/api/drive/backup", json={"data": {"clientes": ["ACME"]}})
        body = connected_client.get("/api/drive/restore").get_json()
        assert body["data"] == {"clientes": ["ACME"]}


# ── Document upload ─────────────────────────────────────────────


class TestUploadFile:
    """DRIVE-UPLOAD: POST /api/drive/upload-file"""

    def test_uploads_decoded_bytes(self, connected_client, fake_drive):
        r = connected_client.post("/api/drive/upload-file", json={
            "name": "orcamento.pdf",
            "content": "aGVsbG8=",
            "mimeType": "application/pdf",
        })
        assert r.status_code == 200
        body = r.get_json()
        assert body["success"] is True
        assert body["url"].endswith(f"/{body['fileId']}/view")
        assert fake_drive.contents[body["fileId"]] == b"hello"
        assert fake_drive.mime_types[body["fileId"]] == "application/pdf"
        assert DOCUMENTS in fake_drive.folders

    def test_default_mime_type(self, connected_client, fake_drive):
        r = connected_client.post("/api/drive/upload-file", json={"name": "a.bin", "content": "AAEC"})
        assert fake_drive.mime_types[r.get_json()["fileId"]] == "application/octet-stream"

    def test_custom_folder(self, connected_client, fake_drive):
        connected_client.post("/api/drive/upload-file", json={
            "name": "a.txt", "content": "YQ==", "folderName": "Contratos",
        })
        assert "Contratos" in fake_drive.folders
        assert DOCUMENTS not in fake_drive.folders

    @pytest.mark.parametrize("payload", [
        {"content": "aGVsbG8="},
        {"name": "a.txt"},
        {"name": "  ", "content": "aGVsbG8="},
        {"name": "a.txt", "content": ""},
    ])
    def test_missing_fields(self, connected_client, fake_drive, payload):
        r = connected_client.post("/api/drive/upload-file", json=payload)
        assert r.status_code == 400
        assert fake_drive.calls == []

    def test_invalid_base64(self, connected_client, fake_drive):
        r = connected_client.post("/api/drive/upload-file", json={"name": "a.txt", "content": "não é base64"})
        assert r.status_code == 400
        assert r.get_json()["error"] == "Conteúdo do arquivo inválido"
        assert fake_drive.calls == []

    def test_provider_failure(self, connected_client, fake_drive):
        fake_drive.fail_on = "create_folder"
        r = connected_client.post("/api/drive/upload-file", json={"name": "a.txt", "content": "YQ=="})
        assert r.status_code == 500
