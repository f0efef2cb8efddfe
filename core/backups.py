"""Drive backup and document workflows.

Each workflow runs its Drive calls strictly in sequence. Nothing is rolled
back on failure: a folder created just before a failed upload stays behind.
"""
import base64
import json
from datetime import datetime, timezone

from loguru import logger

from config import BACKUP_FOLDER_NAME, BACKUP_RETENTION, DOCUMENTS_FOLDER_NAME


def default_backup_name(now=None):
    """``backup_2026-10-18T12:00:00.000Z.json``"""
    now = now or datetime.now(timezone.utc)
    stamp = now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return f"backup_{stamp}.json"


def create_backup(drive, data, filename=None, folder_name=BACKUP_FOLDER_NAME,
                  keep=BACKUP_RETENTION):
    """Upload *data* as JSON and prune the folder to the *keep* newest files.

    Returns the retained files, newest first.
    """
    folder_id = drive.ensure_folder(folder_name)
    payload = json.dumps(data, ensure_ascii=False).encode("utf-8")
    name = filename or default_backup_name()
    uploaded = drive.upload(name, payload, "application/json", folder_id)
    logger.info("Uploaded backup '{}' ({} bytes) as {}", name, len(payload), uploaded.id)

    files = drive.list_folder(folder_id)
    for stale in files[keep:]:
        drive.delete(stale.id)
        logger.info("Pruned old backup '{}' ({})", stale.name, stale.id)
    return files[:keep]


def backup_history(drive, folder_name=BACKUP_FOLDER_NAME, keep=BACKUP_RETENTION):
    folder_id = drive.find_folder(folder_name)
    if not folder_id:
        return []
    return drive.list_folder(folder_id)[:keep]


def latest_backup(drive, folder_name=BACKUP_FOLDER_NAME):
    """Return ``(file, payload)`` for the newest backup, or None."""
    folder_id = drive.find_folder(folder_name)
    if not folder_id:
        return None
    files = drive.list_folder(folder_id)
    if not files:
        return None
    newest = files[0]
    raw = drive.download(newest.id)
    return newest, json.loads(raw.decode("utf-8"))


def decode_content(content):
    """Decode a base64 upload body; raises ValueError on malformed input."""
    try:
        return base64.b64decode(content, validate=True)
    except (ValueError, TypeError) as e:
        raise ValueError("content is not valid base64") from e


def upload_document(drive, name, content, mime_type="application/octet-stream",
                    folder_name=DOCUMENTS_FOLDER_NAME):
    """Upload raw bytes into *folder_name*; returns the created DriveFile."""
    folder_id = drive.ensure_folder(folder_name)
    uploaded = drive.upload(
        name, content, mime_type, folder_id, fields="id, name, webViewLink",
    )
    logger.info("Uploaded document '{}' to '{}' ({})", name, folder_name, uploaded.id)
    return uploaded
