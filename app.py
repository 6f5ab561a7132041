# app.py
import os
import tempfile
from pathlib import Path
from typing import Optional

import structlog
from flask import Blueprint, Flask, current_app, jsonify, request
from werkzeug.datastructures import FileStorage
from werkzeug.exceptions import RequestEntityTooLarge

from config import Settings
from errors import ConfigurationError, ValidationError
from folder_resolver import FolderResolver
from logging_config import install_request_id
from mailer import Notifier, SmtpTransport
from models import SubmittedFile, UploadRequest
from registrar import SubmissionRegistrar, discard_temp_file
from storage import StorageClient, build_storage

log = structlog.get_logger(__name__)

SUCCESS_MESSAGE = "Fichiers uploadés avec succès"
PROCESSING_ERROR = "Erreur lors du traitement"
FILE_TOO_LARGE = "Fichier trop volumineux"
CHUNK_SIZE = 64 * 1024

api = Blueprint("api", __name__)


class FileTooLarge(Exception):
    pass


def _form_value(name: str, single_line: bool = True) -> Optional[str]:
    value = request.form.get(name)
    if value is None:
        return None
    if single_line:
        # 件名やフォルダ名に入るので改行は空白に潰す
        value = " ".join(value.splitlines())
    value = value.strip()
    return value or None


def _write_limited(file_storage: FileStorage, dest: Path, max_size: int) -> int:
    """
    FileStorage のストリームをチャンク単位で書き出す。max_size を超えた時点で FileTooLarge。
    """
    written = 0
    with dest.open("wb") as out:
        for chunk in iter(lambda: file_storage.stream.read(CHUNK_SIZE), b""):
            written += len(chunk)
            if written > max_size:
                raise FileTooLarge(file_storage.filename)
            out.write(chunk)
    return written


def _save_uploads(upload_dir: Path, max_size: int) -> list[SubmittedFile]:
    """
    multipart の files をすべて一時ファイルに書き出す。上限を超えたら書き出し済みも消して FileTooLarge。
    """
    upload_dir.mkdir(parents=True, exist_ok=True)
    saved: list[SubmittedFile] = []
    tmp_paths: list[Path] = []
    try:
        for file_storage in request.files.getlist("files"):
            if file_storage is None or not file_storage.filename:
                continue
            fd, tmp_name = tempfile.mkstemp(prefix="upload-", dir=str(upload_dir))
            os.close(fd)
            tmp_path = Path(tmp_name)
            tmp_paths.append(tmp_path)
            size = _write_limited(file_storage, tmp_path, max_size)
            saved.append(SubmittedFile(original_name=file_storage.filename, path=tmp_path, size=size))
    except BaseException:
        for path in tmp_paths:
            discard_temp_file(path)
        raise
    return saved


def _request_too_large(e: RequestEntityTooLarge):
    log.warning("request_too_large", limit=current_app.config.get("MAX_CONTENT_LENGTH"))
    return jsonify({"error": FILE_TOO_LARGE}), 413


@api.route("/health", methods=["GET"])
def health():
    settings: Settings = current_app.config["SETTINGS"]
    return jsonify({"status": "ok", "storage": settings.storage_provider})


@api.route("/upload-and-send", methods=["POST"])
def upload_and_send():
    settings: Settings = current_app.config["SETTINGS"]
    registrar: SubmissionRegistrar = current_app.config["REGISTRAR"]

    try:
        files = _save_uploads(Path(settings.upload_dir), settings.max_file_size)
    except FileTooLarge as e:
        log.warning("file_too_large", name=str(e), limit=settings.max_file_size)
        return jsonify({"error": FILE_TOO_LARGE}), 413

    upload_request = UploadRequest(
        nom=_form_value("nom"),
        prenom=_form_value("prenom"),
        email=_form_value("email"),
        message=_form_value("message", single_line=False),
        issue=_form_value("issue"),
        files=files,
    )

    try:
        result = registrar.register(upload_request)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConfigurationError as e:
        log.error("storage_not_configured")
        return jsonify({"error": str(e)}), 500
    except Exception as e:
        log.exception("upload_failed")
        return jsonify({"error": PROCESSING_ERROR, "details": str(e)}), 500

    return jsonify({"success": True, "message": SUCCESS_MESSAGE, **result.to_dict()})


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[StorageClient] = None,
    notifier: Optional[Notifier] = None,
) -> Flask:
    settings = settings or Settings.from_env()

    if storage is None and settings.root_folder_id:
        storage = build_storage(settings)

    if notifier is None:
        transport = SmtpTransport(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.email_user,
            password=settings.email_password,
            use_tls=settings.smtp_tls,
        )
        notifier = Notifier(transport, settings.sender, settings.admin_emails)

    resolver = None
    if storage is not None:
        resolver = FolderResolver(
            storage,
            copy_permissions=settings.copy_parent_permissions,
            strict_lookup=settings.strict_folder_lookup,
        )

    app = Flask(__name__)
    app.config["SETTINGS"] = settings
    app.config["MAX_CONTENT_LENGTH"] = settings.max_request_size
    app.config["REGISTRAR"] = SubmissionRegistrar(storage, notifier, settings.root_folder_id, resolver)
    install_request_id(app)
    app.register_error_handler(RequestEntityTooLarge, _request_too_large)
    app.register_blueprint(api, url_prefix="/api")
    return app
