# box_client.py
from pathlib import Path
from typing import Any, Optional

import structlog
from boxsdk import Client, OAuth2
from boxsdk.exception import BoxAPIException, BoxException

from config import Settings
from errors import ConfigurationError, ProviderError
from models import FolderRef, Permission, UploadedFile

log = structlog.get_logger(__name__)

ITEM_FIELDS = ["type", "id", "name"]


def create_box_client(settings: Settings) -> Client:
    """
    Developer Token があればそれを優先し、なければ OAuth2 のトークン一式で Client を作る。
    """
    if settings.box_developer_token:
        oauth = OAuth2(
            client_id=None,
            client_secret=None,
            access_token=settings.box_developer_token,
        )
        return Client(oauth)

    if not (settings.box_client_id and settings.box_client_secret and settings.box_access_token):
        raise ConfigurationError(
            "BOX_DEVELOPER_TOKEN or BOX_CLIENT_ID/BOX_CLIENT_SECRET/BOX_ACCESS_TOKEN must be set"
        )
    oauth = OAuth2(
        client_id=settings.box_client_id,
        client_secret=settings.box_client_secret,
        access_token=settings.box_access_token,
        refresh_token=settings.box_refresh_token,
    )
    return Client(oauth)


def _conflict_id(e: BoxAPIException) -> Optional[str]:
    # 409 item_name_in_use の context_info には conflicts が list か dict で入ってくる
    if e.status != 409 or getattr(e, "code", None) != "item_name_in_use":
        return None
    ctx = getattr(e, "context_info", None)
    if not isinstance(ctx, dict):
        return None
    conflicts = ctx.get("conflicts")
    if isinstance(conflicts, list) and conflicts:
        conflicts = conflicts[0]
    if isinstance(conflicts, dict) and "id" in conflicts:
        return str(conflicts["id"])
    return None


class BoxStorage:
    def __init__(self, client: Client):
        """
        :param client: 認証済みの boxsdk.Client インスタンス
        """
        self._client = client

    def find_folders(self, name: str, parent_id: str) -> list[FolderRef]:
        # Box はゴミ箱内のアイテムを get_items に含めない
        try:
            items = self._client.folder(parent_id).get_items(fields=ITEM_FIELDS)
            return [
                FolderRef(id=str(item.id), name=item.name)
                for item in items
                if item.type == "folder" and item.name == name
            ]
        except BoxException as e:
            raise ProviderError(f"Box folder lookup failed: {e}") from e

    def create_folder(self, name: str, parent_id: str) -> FolderRef:
        try:
            folder = self._client.folder(parent_id).create_subfolder(name)
            return FolderRef(id=str(folder.id), name=folder.name)
        except BoxAPIException as e:
            # 同名フォルダがすでにある場合はそれを使う（Box 側の一意制約）
            existing_id = _conflict_id(e)
            if existing_id:
                log.info("box_folder_conflict", name=name, parent_id=parent_id, folder_id=existing_id)
                return FolderRef(id=existing_id, name=name)
            raise ProviderError(f"Box folder creation failed: {e}") from e
        except BoxException as e:
            raise ProviderError(f"Box folder creation failed: {e}") from e

    def list_permissions(self, folder_id: str) -> list[Permission]:
        try:
            collaborations = self._client.folder(folder_id).get_collaborations()
            permissions = [self._to_permission(c) for c in collaborations]
            return [p for p in permissions if p is not None]
        except BoxException as e:
            raise ProviderError(f"Box collaboration listing failed: {e}") from e

    @staticmethod
    def _to_permission(collaboration: Any) -> Optional[Permission]:
        accessible_by = getattr(collaboration, "accessible_by", None)
        if accessible_by is None:
            # 招待中（未登録ユーザー）のコラボレーション。招待先メールがなければ複製できない
            invite_email = getattr(collaboration, "invite_email", None)
            if not invite_email:
                return None
            return Permission(type="user", role=collaboration.role, email_address=invite_email)
        return Permission(
            type=accessible_by.type,
            role=collaboration.role,
            email_address=getattr(accessible_by, "login", None),
            id=str(accessible_by.id),
        )

    def create_permission(self, folder_id: str, permission: Permission) -> None:
        folder = self._client.folder(folder_id)
        try:
            if permission.type == "group":
                folder.collaborate(self._client.group(permission.id), permission.role, notify=False)
            elif permission.email_address:
                folder.collaborate_with_login(permission.email_address, permission.role, notify=False)
            else:
                folder.collaborate(self._client.user(permission.id), permission.role, notify=False)
        except BoxException as e:
            raise ProviderError(f"Box collaboration failed: {e}") from e

    def upload_file(self, local_path: Path, name: str, folder_id: str) -> UploadedFile:
        """
        ローカルファイルを Box にアップロードし、共有リンク付きの UploadedFile を返す。
        """
        path = Path(local_path)
        try:
            try:
                uploaded = self._client.folder(folder_id).upload(str(path), file_name=name)
            except BoxAPIException as e:
                # 同名ファイルがすでにある場合は「新しいバージョンとして更新」
                existing_id = _conflict_id(e)
                if not existing_id:
                    raise
                log.info("box_file_conflict", name=name, folder_id=folder_id, file_id=existing_id)
                uploaded = self._client.file(existing_id).update_contents(str(path))

            # 共有リンク作成（読み取り専用）
            uploaded = uploaded.update_info(data={
                "shared_link": {
                    "access": "open",
                }
            })
        except BoxException as e:
            raise ProviderError(f"Box upload failed: {e}") from e

        shared_link = uploaded.shared_link["url"] if uploaded.shared_link else ""
        return UploadedFile(id=str(uploaded.id), name=uploaded.name, web_view_link=shared_link)
