# folder_resolver.py
import structlog

from errors import ProviderError
from storage import StorageClient

log = structlog.get_logger(__name__)


class FolderResolver:
    """
    親フォルダ直下に指定名のフォルダがあればその ID を、なければ作成して ID を返す。

    ロックは取らないので、同じ (name, parent) を同時に解決すると重複フォルダができうる。
    """

    def __init__(self, storage: StorageClient, copy_permissions: bool = True, strict_lookup: bool = False):
        """
        :param storage: StorageClient 実装
        :param copy_permissions: 作成したフォルダに親の共有設定（owner 以外）を複製するか
        :param strict_lookup: True なら検索失敗をそのまま投げる（False なら「見つからない」扱い）
        """
        self._storage = storage
        self._copy_permissions = copy_permissions
        self._strict_lookup = strict_lookup

    def resolve(self, name: str, parent_id: str) -> str:
        if not name:
            raise ValueError("folder name must not be empty")

        try:
            matches = self._storage.find_folders(name, parent_id)
        except ProviderError as e:
            if self._strict_lookup:
                raise
            log.warning("folder_lookup_failed", name=name, parent_id=parent_id, error=str(e))
            matches = []

        if matches:
            # 複数ある場合もプロバイダが返した先頭を使う
            log.info("folder_found", name=name, parent_id=parent_id, folder_id=matches[0].id)
            return matches[0].id

        folder = self._storage.create_folder(name, parent_id)
        log.info("folder_created", name=name, parent_id=parent_id, folder_id=folder.id)

        if self._copy_permissions:
            self._copy_parent_permissions(parent_id, folder.id)
        return folder.id

    def _copy_parent_permissions(self, parent_id: str, folder_id: str) -> None:
        try:
            permissions = self._storage.list_permissions(parent_id)
        except ProviderError as e:
            log.warning("permission_listing_failed", parent_id=parent_id, error=str(e))
            return

        for permission in permissions:
            if permission.is_owner:
                continue
            try:
                self._storage.create_permission(folder_id, permission)
            except ProviderError as e:
                log.warning(
                    "permission_copy_failed",
                    folder_id=folder_id,
                    type=permission.type,
                    role=permission.role,
                    error=str(e),
                )
