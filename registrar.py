# registrar.py
from pathlib import Path
from typing import Optional

import structlog

from errors import ConfigurationError, ValidationError
from folder_resolver import FolderResolver
from mailer import Notifier
from models import SubmissionResult, SubmittedFile, UploadedFile, UploadRequest
from storage import StorageClient

log = structlog.get_logger(__name__)

MISSING_DATA = "Données manquantes"
MISSING_STORAGE_CONFIG = "Configuration Google Drive manquante"


def validate(request: UploadRequest) -> None:
    if not request.nom or not request.prenom or not request.email or not request.files:
        raise ValidationError(MISSING_DATA)


def discard_temp_file(path: Path) -> bool:
    """
    一時ファイルを削除する。失敗してもログだけ残して握りつぶす。
    """
    try:
        Path(path).unlink(missing_ok=True)
        return True
    except OSError as e:
        log.warning("temp_cleanup_failed", path=str(path), error=str(e))
        return False


class SubmissionRegistrar:
    """
    1. 提出者（必要なら issue の下）のフォルダを用意
    2. ファイルを順番にアップロードし、終わったものから一時ファイルを削除
    3. 受領確認メール（と管理者通知）を送信

    という “ユースケース” を表現するクラス。
    一時ファイルは register() を呼んだ時点からこのクラスの持ち物で、どの経路で抜けても削除する。
    """

    def __init__(
        self,
        storage: Optional[StorageClient],
        notifier: Notifier,
        root_folder_id: Optional[str],
        resolver: Optional[FolderResolver] = None,
    ):
        self._storage = storage
        self._notifier = notifier
        self._root_folder_id = root_folder_id
        self._resolver = resolver or (FolderResolver(storage) if storage is not None else None)

    def register(self, request: UploadRequest) -> SubmissionResult:
        pending: list[SubmittedFile] = list(request.files)
        try:
            validate(request)
            if self._storage is None or self._resolver is None or not self._root_folder_id:
                raise ConfigurationError(MISSING_STORAGE_CONFIG)

            issue_folder_id, folder_id = self._resolve_destination(request)
            uploaded = self._upload_all(pending, folder_id)

            self._notifier.send_confirmation(request, uploaded)
            self._notifier.send_admin_summary(request, uploaded)

            log.info(
                "submission_registered",
                folder_id=folder_id,
                issue_folder_id=issue_folder_id,
                files=len(uploaded),
            )
            return SubmissionResult(folder_id=folder_id, files=uploaded, issue_folder_id=issue_folder_id)
        finally:
            for item in pending:
                discard_temp_file(item.path)

    def _resolve_destination(self, request: UploadRequest) -> tuple[Optional[str], str]:
        if request.issue:
            issue_folder_id = self._resolver.resolve(request.issue, self._root_folder_id)
            return issue_folder_id, self._resolver.resolve(request.folder_name, issue_folder_id)
        return None, self._resolver.resolve(request.folder_name, self._root_folder_id)

    def _upload_all(self, pending: list[SubmittedFile], folder_id: str) -> list[UploadedFile]:
        uploaded: list[UploadedFile] = []
        # pending は呼び出し元と共有。アップロード済みのものは先頭から取り除く
        while pending:
            item = pending[0]
            result = self._storage.upload_file(item.path, item.original_name, folder_id)
            uploaded.append(result)
            log.info("file_uploaded", name=result.name, file_id=result.id, size=item.size)
            discard_temp_file(item.path)
            pending.pop(0)
        return uploaded
