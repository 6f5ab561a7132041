# drive_client.py
from pathlib import Path
from typing import Any

from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaFileUpload

from config import Settings
from errors import ConfigurationError, ProviderError
from models import FolderRef, Permission, UploadedFile
from storage import UPLOAD_MIME_TYPE

DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive"]
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

_DRIVE_ERRORS = (HttpError, GoogleAuthError, OSError)


def create_drive_service(settings: Settings) -> Any:
    """
    リフレッシュトークンがあれば OAuth2、なければサービスアカウントの鍵ファイルで認証する。
    """
    if settings.google_refresh_token:
        if not (settings.google_client_id and settings.google_client_secret):
            raise ConfigurationError("GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET must be set")
        credentials = Credentials(
            token=None,
            refresh_token=settings.google_refresh_token,
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            token_uri=GOOGLE_TOKEN_URI,
            scopes=DRIVE_SCOPES,
        )
    else:
        key_file = Path(settings.google_credentials_file)
        if not key_file.is_file():
            raise ConfigurationError(
                f"GOOGLE_REFRESH_TOKEN is not set and credentials file {key_file} does not exist"
            )
        credentials = service_account.Credentials.from_service_account_file(
            str(key_file), scopes=DRIVE_SCOPES
        )
    return build("drive", "v3", credentials=credentials, cache_discovery=False)


def escape_query_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


class DriveStorage:
    def __init__(self, service: Any):
        """
        :param service: googleapiclient の drive v3 リソース
        """
        self._service = service

    def find_folders(self, name: str, parent_id: str) -> list[FolderRef]:
        query = (
            f"mimeType = '{FOLDER_MIME_TYPE}' and "
            f"name = '{escape_query_value(name)}' and "
            f"'{escape_query_value(parent_id)}' in parents and trashed = false"
        )
        try:
            response = self._service.files().list(
                q=query,
                fields="files(id, name)",
                spaces="drive",
                supportsAllDrives=True,
                includeItemsFromAllDrives=True,
            ).execute()
        except _DRIVE_ERRORS as e:
            raise ProviderError(f"Drive folder lookup failed: {e}") from e
        return [FolderRef(id=f["id"], name=f["name"]) for f in response.get("files", [])]

    def create_folder(self, name: str, parent_id: str) -> FolderRef:
        metadata = {
            "name": name,
            "mimeType": FOLDER_MIME_TYPE,
            "parents": [parent_id],
        }
        try:
            folder = self._service.files().create(
                body=metadata,
                fields="id, name",
                supportsAllDrives=True,
            ).execute()
        except _DRIVE_ERRORS as e:
            raise ProviderError(f"Drive folder creation failed: {e}") from e
        return FolderRef(id=folder["id"], name=folder.get("name", name))

    def list_permissions(self, folder_id: str) -> list[Permission]:
        try:
            response = self._service.permissions().list(
                fileId=folder_id,
                fields="permissions(id, type, role, emailAddress, domain)",
                supportsAllDrives=True,
            ).execute()
        except _DRIVE_ERRORS as e:
            raise ProviderError(f"Drive permission listing failed: {e}") from e
        return [
            Permission(
                type=p["type"],
                role=p["role"],
                email_address=p.get("emailAddress"),
                domain=p.get("domain"),
                id=p.get("id"),
            )
            for p in response.get("permissions", [])
        ]

    def create_permission(self, folder_id: str, permission: Permission) -> None:
        body = {"type": permission.type, "role": permission.role}
        kwargs = {}
        if permission.type in ("user", "group"):
            body["emailAddress"] = permission.email_address
            kwargs["sendNotificationEmail"] = False
        elif permission.type == "domain":
            body["domain"] = permission.domain
        try:
            self._service.permissions().create(
                fileId=folder_id,
                body=body,
                supportsAllDrives=True,
                **kwargs,
            ).execute()
        except _DRIVE_ERRORS as e:
            raise ProviderError(f"Drive permission creation failed: {e}") from e

    def upload_file(self, local_path: Path, name: str, folder_id: str) -> UploadedFile:
        metadata = {"name": name, "parents": [folder_id]}
        try:
            media = MediaFileUpload(str(local_path), mimetype=UPLOAD_MIME_TYPE, resumable=True)
            uploaded = self._service.files().create(
                body=metadata,
                media_body=media,
                fields="id, name, webViewLink",
                supportsAllDrives=True,
            ).execute()
        except _DRIVE_ERRORS as e:
            raise ProviderError(f"Drive upload failed: {e}") from e
        return UploadedFile(
            id=uploaded["id"],
            name=uploaded.get("name", name),
            web_view_link=uploaded.get("webViewLink", ""),
        )
