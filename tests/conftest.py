import itertools
from pathlib import Path

import pytest

from errors import ProviderError
from mailer import Notifier
from models import FolderRef, Permission, SubmittedFile, UploadedFile

ROOT_ID = "root"


class FakeStorage:
    """StorageClient のインメモリ実装。呼び出しを calls に記録する。"""

    def __init__(self):
        self.folders: dict[str, tuple[str, str]] = {}
        self.permissions: dict[str, list[Permission]] = {}
        self.uploads: list[tuple[str, str, bytes]] = []
        self.calls: list[tuple] = []
        self.fail_lookup = False
        self.fail_create = False
        self.fail_list_permissions = False
        self.fail_permission_roles: set[str] = set()
        self.fail_upload_at = None
        # アップロード時点で、それ以前にアップロードしたファイルの一時ファイルが残っているか
        self.leftovers_at_upload: list[list[bool]] = []
        self._uploaded_paths: list[Path] = []
        self._ids = itertools.count(1)

    def add_folder(self, name, parent_id, folder_id=None):
        folder_id = folder_id or f"folder-{next(self._ids)}"
        self.folders[folder_id] = (name, parent_id)
        return folder_id

    def children(self, parent_id):
        return [(fid, name) for fid, (name, parent) in self.folders.items() if parent == parent_id]

    def call_names(self):
        return [c[0] for c in self.calls]

    def find_folders(self, name, parent_id):
        self.calls.append(("find_folders", name, parent_id))
        if self.fail_lookup:
            raise ProviderError("lookup unavailable")
        return [
            FolderRef(id=fid, name=n)
            for fid, (n, parent) in self.folders.items()
            if n == name and parent == parent_id
        ]

    def create_folder(self, name, parent_id):
        self.calls.append(("create_folder", name, parent_id))
        if self.fail_create:
            raise ProviderError("create refused")
        return FolderRef(id=self.add_folder(name, parent_id), name=name)

    def list_permissions(self, folder_id):
        self.calls.append(("list_permissions", folder_id))
        if self.fail_list_permissions:
            raise ProviderError("permissions unavailable")
        return list(self.permissions.get(folder_id, []))

    def create_permission(self, folder_id, permission):
        self.calls.append(("create_permission", folder_id, permission))
        if permission.role in self.fail_permission_roles:
            raise ProviderError(f"cannot grant {permission.role}")
        self.permissions.setdefault(folder_id, []).append(permission)

    def upload_file(self, local_path, name, folder_id):
        self.calls.append(("upload_file", name, folder_id))
        self.leftovers_at_upload.append([p.exists() for p in self._uploaded_paths])
        if self.fail_upload_at == len(self.uploads) + 1:
            raise ProviderError("quota exceeded")
        path = Path(local_path)
        self.uploads.append((name, folder_id, path.read_bytes()))
        self._uploaded_paths.append(path)
        file_id = f"file-{next(self._ids)}"
        return UploadedFile(id=file_id, name=name, web_view_link=f"https://drive.example.com/{file_id}/view")


class FakeTransport:
    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False

    def send_message(self, sender, to, subject, text, html=None):
        if self.fail:
            raise ProviderError("smtp down")
        self.sent.append({"sender": sender, "to": to, "subject": subject, "text": text, "html": html})


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def notifier(transport):
    return Notifier(transport, "noreply@example.com")


@pytest.fixture
def admin_notifier(transport):
    return Notifier(transport, "noreply@example.com", ["admin@example.com"])


@pytest.fixture
def make_files(tmp_path):
    def _make(*names):
        files = []
        for name in names:
            path = tmp_path / f"tmp-{name}"
            path.write_bytes(f"content of {name}".encode())
            files.append(SubmittedFile(original_name=name, path=path, size=path.stat().st_size))
        return files

    return _make
