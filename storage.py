# storage.py
from pathlib import Path
from typing import Protocol, runtime_checkable

from config import Settings
from errors import ConfigurationError
from models import FolderRef, Permission, UploadedFile

UPLOAD_MIME_TYPE = "application/octet-stream"


@runtime_checkable
class StorageClient(Protocol):
    """フォルダ階層を持つリモートストレージの最小インターフェース。"""

    def find_folders(self, name: str, parent_id: str) -> list[FolderRef]:
        """parent_id 直下にある同名フォルダ（ゴミ箱除く）をプロバイダの返す順で返す。"""
        ...

    def create_folder(self, name: str, parent_id: str) -> FolderRef:
        ...

    def list_permissions(self, folder_id: str) -> list[Permission]:
        ...

    def create_permission(self, folder_id: str, permission: Permission) -> None:
        ...

    def upload_file(self, local_path: Path, name: str, folder_id: str) -> UploadedFile:
        """バイト列を octet-stream としてアップロードし、共有用リンク付きで返す。"""
        ...


def build_storage(settings: Settings) -> StorageClient:
    if settings.storage_provider == "box":
        from box_client import BoxStorage, create_box_client

        return BoxStorage(create_box_client(settings))
    if settings.storage_provider == "drive":
        from drive_client import DriveStorage, create_drive_service

        return DriveStorage(create_drive_service(settings))
    raise ConfigurationError(f"Unknown storage provider: {settings.storage_provider}")
