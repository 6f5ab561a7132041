"""Tests for the Box storage backend against a mocked boxsdk client."""
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from boxsdk.exception import BoxAPIException

from box_client import BoxStorage, create_box_client
from config import Settings
from errors import ConfigurationError, ProviderError
from models import FolderRef, Permission


def _item(type_, id_, name):
    return SimpleNamespace(type=type_, id=id_, name=name)


@pytest.fixture
def client():
    return MagicMock()


def test_find_folders_keeps_exact_folder_matches(client):
    client.folder.return_value.get_items.return_value = [
        _item("folder", "1", "Jean_Dupont"),
        _item("file", "2", "Jean_Dupont"),
        _item("folder", "3", "jean_dupont"),
        _item("folder", "4", "Jean_Dupont"),
    ]

    folders = BoxStorage(client).find_folders("Jean_Dupont", "root")

    assert folders == [FolderRef("1", "Jean_Dupont"), FolderRef("4", "Jean_Dupont")]
    client.folder.assert_called_with("root")


def test_find_folders_wraps_errors(client):
    client.folder.return_value.get_items.side_effect = BoxAPIException(500, message="boom")

    with pytest.raises(ProviderError, match="lookup"):
        BoxStorage(client).find_folders("Jean_Dupont", "root")


def test_create_folder(client):
    client.folder.return_value.create_subfolder.return_value = SimpleNamespace(id=77, name="Jean_Dupont")

    assert BoxStorage(client).create_folder("Jean_Dupont", "root") == FolderRef("77", "Jean_Dupont")
    client.folder.return_value.create_subfolder.assert_called_once_with("Jean_Dupont")


def test_create_folder_conflict_returns_existing(client):
    client.folder.return_value.create_subfolder.side_effect = BoxAPIException(
        409,
        code="item_name_in_use",
        message="Item with the same name already exists",
        context_info={"conflicts": [{"type": "folder", "id": "99", "name": "Jean_Dupont"}]},
    )

    assert BoxStorage(client).create_folder("Jean_Dupont", "root") == FolderRef("99", "Jean_Dupont")


def test_create_folder_other_errors_propagate(client):
    client.folder.return_value.create_subfolder.side_effect = BoxAPIException(403, code="access_denied")

    with pytest.raises(ProviderError, match="creation"):
        BoxStorage(client).create_folder("Jean_Dupont", "root")


def test_list_permissions_maps_collaborations(client):
    client.folder.return_value.get_collaborations.return_value = [
        SimpleNamespace(id="c1", role="editor",
                        accessible_by=SimpleNamespace(type="user", id="u1", login="staff@example.com")),
        SimpleNamespace(id="c2", role="viewer", accessible_by=SimpleNamespace(type="group", id="g1")),
        SimpleNamespace(id="c3", role="viewer", accessible_by=None, invite_email="guest@example.com"),
        SimpleNamespace(id="c4", role="editor", accessible_by=None, invite_email=None),
    ]

    permissions = BoxStorage(client).list_permissions("root")

    assert permissions == [
        Permission(type="user", role="editor", email_address="staff@example.com", id="u1"),
        Permission(type="group", role="viewer", email_address=None, id="g1"),
        Permission(type="user", role="viewer", email_address="guest@example.com"),
    ]


def test_create_permission_by_login_and_group(client):
    folder = client.folder.return_value
    storage = BoxStorage(client)

    storage.create_permission("f1", Permission(type="user", role="editor", email_address="staff@example.com"))
    storage.create_permission("f1", Permission(type="group", role="viewer", id="g1"))

    folder.collaborate_with_login.assert_called_once_with("staff@example.com", "editor", notify=False)
    client.group.assert_called_once_with("g1")
    folder.collaborate.assert_called_once_with(client.group.return_value, "viewer", notify=False)


def test_upload_file_returns_shared_link(client, tmp_path):
    path = tmp_path / "upload-abc"
    path.write_bytes(b"data")
    uploaded = client.folder.return_value.upload.return_value
    uploaded.update_info.return_value = SimpleNamespace(
        id=5, name="report.pdf", shared_link={"url": "https://app.box.com/s/abc"}
    )

    result = BoxStorage(client).upload_file(path, "report.pdf", "f1")

    client.folder.return_value.upload.assert_called_once_with(str(path), file_name="report.pdf")
    uploaded.update_info.assert_called_once_with(data={"shared_link": {"access": "open"}})
    assert (result.id, result.name, result.web_view_link) == ("5", "report.pdf", "https://app.box.com/s/abc")


def test_upload_name_conflict_updates_existing_file(client, tmp_path):
    path = tmp_path / "upload-abc"
    path.write_bytes(b"new version")
    client.folder.return_value.upload.side_effect = BoxAPIException(
        409,
        code="item_name_in_use",
        message="Item with the same name already exists",
        context_info={"conflicts": {"type": "file", "id": "42", "name": "report.pdf"}},
    )
    updated = client.file.return_value.update_contents.return_value
    updated.update_info.return_value = SimpleNamespace(
        id="42", name="report.pdf", shared_link={"url": "https://app.box.com/s/xyz"}
    )

    result = BoxStorage(client).upload_file(path, "report.pdf", "f1")

    client.file.assert_called_once_with("42")
    client.file.return_value.update_contents.assert_called_once_with(str(path))
    updated.update_info.assert_called_once_with(data={"shared_link": {"access": "open"}})
    assert (result.id, result.name, result.web_view_link) == ("42", "report.pdf", "https://app.box.com/s/xyz")


def test_upload_conflict_without_id_is_provider_error(client, tmp_path):
    client.folder.return_value.upload.side_effect = BoxAPIException(409, code="item_name_in_use")

    with pytest.raises(ProviderError, match="upload"):
        BoxStorage(client).upload_file(tmp_path / "x", "x.txt", "f1")
    client.file.assert_not_called()


def test_upload_failure_is_provider_error(client, tmp_path):
    client.folder.return_value.upload.side_effect = BoxAPIException(507, code="storage_limit_exceeded")

    with pytest.raises(ProviderError, match="upload"):
        BoxStorage(client).upload_file(tmp_path / "x", "x.txt", "f1")


def test_create_box_client_requires_credentials():
    with pytest.raises(ConfigurationError):
        create_box_client(Settings(storage_provider="box"))


def test_create_box_client_with_developer_token(monkeypatch):
    oauth = MagicMock()
    monkeypatch.setattr("box_client.OAuth2", oauth)
    monkeypatch.setattr("box_client.Client", MagicMock())

    create_box_client(Settings(storage_provider="box", box_developer_token="dev-token"))

    oauth.assert_called_once_with(client_id=None, client_secret=None, access_token="dev-token")
