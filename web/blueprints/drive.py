"""Google Drive API: JSON backups (retain newest three) and document uploads."""
from flask import Blueprint, jsonify, request
from loguru import logger

from config import DOCUMENTS_FOLDER_NAME
from core.backups import (
    backup_history, create_backup, decode_content, latest_backup, upload_document,
)
from web.blueprints._utils import require_drive

drive_bp = Blueprint("drive", __name__)


@drive_bp.route("/api/drive/backup", methods=["POST"])
def backup():
    drive, err = require_drive()
    if err:
        return err

    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        body = {}
    if "data" not in body:
        return jsonify({"error": "Dados do backup ausentes"}), 400

    try:
        retained = create_backup(drive, body["data"], filename=body.get("filename") or None)
    except Exception:
        logger.exception("Backup error")
        return jsonify({"error": "Erro ao realizar backup no Google Drive"}), 500
    return jsonify({"success": True, "history": [f.to_dict() for f in retained]})


@drive_bp.route("/api/drive/history")
def history():
    drive, err = require_drive()
    if err:
        return err
    try:
        files = backup_history(drive)
    except Exception:
        logger.exception("History error")
        return jsonify({"error": "Erro ao buscar histórico"}), 500
    return jsonify({"history": [f.to_dict() for f in files]})


@drive_bp.route("/api/drive/restore")
def restore():
    drive, err = require_drive()
    if err:
        return err
    try:
        found = latest_backup(drive)
    except Exception:
        logger.exception("Restore error")
        return jsonify({"error": "Erro ao restaurar backup do Google Drive"}), 500
    if found is None:
        return jsonify({"error": "Nenhum backup encontrado no Google Drive"}), 404

    newest, payload = found
    logger.info("Restored backup '{}'", newest.name)
    return jsonify({"success": True, "data": payload, "file": newest.to_dict()})


@drive_bp.route("/api/drive/upload-file", methods=["POST"])
def upload_file():
    drive, err = require_drive()
    if err:
        return err

    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        body = {}
    name = (body.get("name") or "").strip()
    content = body.get("content")
    if not name or not content:
        return jsonify({"error": "Nome e conteúdo do arquivo são obrigatórios"}), 400
    try:
        raw = decode_content(content)
    except ValueError:
        return jsonify({"error": "Conteúdo do arquivo inválido"}), 400

    mime_type = body.get("mimeType") or "application/octet-stream"
    folder_name = (body.get("folderName") or "").strip() or DOCUMENTS_FOLDER_NAME
    try:
        uploaded = upload_document(drive, name, raw, mime_type=mime_type, folder_name=folder_name)
    except Exception:
        logger.exception("Upload error")
        return jsonify({"error": "Erro ao enviar arquivo para o Drive"}), 500
    return jsonify({"success": True, "fileId": uploaded.id, "url": uploaded.web_view_link})
