# models.py
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class SubmittedFile:
    original_name: str
    path: Path
    size: int


@dataclass
class UploadRequest:
    nom: str
    prenom: str
    email: str
    files: list[SubmittedFile] = field(default_factory=list)
    message: Optional[str] = None
    issue: Optional[str] = None

    @property
    def folder_name(self) -> str:
        return f"{self.prenom}_{self.nom}"

    @property
    def full_name(self) -> str:
        return f"{self.prenom} {self.nom}"


@dataclass(frozen=True)
class FolderRef:
    id: str
    name: str


@dataclass(frozen=True)
class Permission:
    type: str
    role: str
    email_address: Optional[str] = None
    domain: Optional[str] = None
    id: Optional[str] = None

    @property
    def is_owner(self) -> bool:
        return self.role == "owner"


@dataclass(frozen=True)
class UploadedFile:
    id: str
    name: str
    web_view_link: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "webViewLink": self.web_view_link}


@dataclass
class SubmissionResult:
    folder_id: str
    files: list[UploadedFile]
    issue_folder_id: Optional[str] = None

    def to_dict(self) -> dict:
        body = {}
        if self.issue_folder_id:
            body["issueFolderId"] = self.issue_folder_id
            body["contributorFolderId"] = self.folder_id
        else:
            body["folderId"] = self.folder_id
        body["files"] = [f.to_dict() for f in self.files]
        return body
