# config.py
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from errors import ConfigurationError

STORAGE_PROVIDERS = ("drive", "box")
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024
DEFAULT_MAX_REQUEST_SIZE = 100 * 1024 * 1024


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> tuple[str, ...]:
    raw = _env(name)
    if raw is None:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    storage_provider: str = "drive"

    # Google Drive
    drive_root_folder_id: Optional[str] = None
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    google_refresh_token: Optional[str] = None
    google_credentials_file: str = "credentials.json"

    # Box
    box_root_folder_id: Optional[str] = "0"
    box_client_id: Optional[str] = None
    box_client_secret: Optional[str] = None
    box_access_token: Optional[str] = None
    box_refresh_token: Optional[str] = None
    box_developer_token: Optional[str] = None

    # Mail
    email_user: Optional[str] = None
    email_password: Optional[str] = None
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_tls: bool = True
    mail_from: Optional[str] = None
    admin_emails: tuple[str, ...] = field(default_factory=tuple)

    # Uploads
    upload_dir: str = "temp"
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    max_request_size: int = DEFAULT_MAX_REQUEST_SIZE
    copy_parent_permissions: bool = True
    strict_folder_lookup: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """
        .env を読み込んだうえで環境変数から設定を組み立てる。
        値の形式が不正な場合はその場で ConfigurationError を投げる。
        """
        load_dotenv()

        provider = (_env("STORAGE_PROVIDER", "drive") or "drive").lower()
        if provider not in STORAGE_PROVIDERS:
            raise ConfigurationError(
                f"STORAGE_PROVIDER must be one of {', '.join(STORAGE_PROVIDERS)}, got {provider!r}"
            )

        email_user = _env("EMAIL_USER")
        return cls(
            host=_env("HOST", "0.0.0.0"),
            port=_env_int("PORT", 3000),
            log_level=(_env("LOG_LEVEL", "INFO") or "INFO").upper(),
            storage_provider=provider,
            drive_root_folder_id=_env("GOOGLE_DRIVE_PARENT_FOLDER_ID"),
            google_client_id=_env("GOOGLE_CLIENT_ID"),
            google_client_secret=_env("GOOGLE_CLIENT_SECRET"),
            google_refresh_token=_env("GOOGLE_REFRESH_TOKEN"),
            google_credentials_file=_env("GOOGLE_CREDENTIALS_FILE", "credentials.json"),
            box_root_folder_id=_env("BOX_PARENT_FOLDER_ID", "0"),
            box_client_id=_env("BOX_CLIENT_ID"),
            box_client_secret=_env("BOX_CLIENT_SECRET"),
            box_access_token=_env("BOX_ACCESS_TOKEN"),
            box_refresh_token=_env("BOX_REFRESH_TOKEN"),
            box_developer_token=_env("BOX_DEVELOPER_TOKEN"),
            email_user=email_user,
            email_password=_env("EMAIL_PASSWORD"),
            smtp_host=_env("SMTP_HOST", "smtp.gmail.com"),
            smtp_port=_env_int("SMTP_PORT", 587),
            smtp_tls=_env_bool("SMTP_TLS", True),
            mail_from=_env("MAIL_FROM", email_user),
            admin_emails=_env_list("ADMIN_EMAIL"),
            upload_dir=_env("UPLOAD_DIR", "temp"),
            max_file_size=_env_int("MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE),
            max_request_size=_env_int("MAX_REQUEST_SIZE", DEFAULT_MAX_REQUEST_SIZE),
            copy_parent_permissions=_env_bool("COPY_PARENT_PERMISSIONS", True),
            strict_folder_lookup=_env_bool("STRICT_FOLDER_LOOKUP", False),
        )

    @property
    def root_folder_id(self) -> Optional[str]:
        if self.storage_provider == "box":
            return self.box_root_folder_id
        return self.drive_root_folder_id

    @property
    def sender(self) -> Optional[str]:
        return self.mail_from or self.email_user

    def missing_required(self) -> list[str]:
        missing = []
        if not self.root_folder_id:
            missing.append(
                "BOX_PARENT_FOLDER_ID" if self.storage_provider == "box"
                else "GOOGLE_DRIVE_PARENT_FOLDER_ID"
            )
        if not self.email_user:
            missing.append("EMAIL_USER")
        return missing

    def ensure_configured(self) -> None:
        missing = self.missing_required()
        if missing:
            raise ConfigurationError(f"Missing env vars: {', '.join(missing)}")
