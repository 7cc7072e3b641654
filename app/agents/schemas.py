"""Shared data schemas for Agent components"""
from pydantic import BaseModel, Field
from enum import Enum
from typing import Optional, List


class IssueType(str, Enum):
    BUG = "BUG"
    SECURITY = "SECURITY"
    CODE_SMELL = "CODE_SMELL"
    STYLE = "STYLE"
    PERFORMANCE = "PERFORMANCE"
    MAINTAINABILITY = "MAINTAINABILITY"


class Severity(str, Enum):
    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    INFO = "INFO"


class FileKind(str, Enum):
    FILE = "file"
    DIR = "dir"
    SYMLINK = "symlink"
    SUBMODULE = "submodule"
    OTHER = "other"

    @classmethod
    def _missing_(cls, value):
        return cls.OTHER


class FileDescriptor(BaseModel):
    """One entry of a repository listing"""
    path: str
    name: str
    size: int = 0
    kind: FileKind
    download_url: Optional[str] = None  # raw content locator, None for dirs

    @classmethod
    def from_github(cls, item: dict) -> "FileDescriptor":
        path = item.get("path") or item.get("name") or ""
        return cls(
            path=path,
            name=item.get("name") or path.rsplit("/", 1)[-1],
            size=int(item.get("size") or 0),
            kind=FileKind(item.get("type", "file")),
            download_url=item.get("download_url"),
        )


class WalkResult(BaseModel):
    files: List[FileDescriptor] = Field(default_factory=list)
    failed_directories: List[str] = Field(default_factory=list)


class DetectedIssue(BaseModel):
    """A single finding reported by the inference service for one file"""
    type: IssueType
    severity: Severity
    title: str
    description: str = ""
    suggestion: Optional[str] = None
    line_number: Optional[int] = None
    column_start: Optional[int] = None
    column_end: Optional[int] = None
    code_snippet: Optional[str] = None


class ClassificationResult(BaseModel):
    """Output of the issue classifier for one file"""
    issues: List[DetectedIssue] = Field(default_factory=list)
    # Set when the inference call failed or its output could not be parsed
    degraded_reason: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.degraded_reason is not None
