"""Pydantic schemas for analysis requests and read responses"""
from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AnalyzeRequest(BaseModel):
    """
    Body of the start-analysis request.

    Both fields are optional and nullable so that a missing value is
    reported on the event stream instead of as a validation error.
    """

    repo_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("repoUrl", "repo_url"),
        description="GitHub repository URL, e.g. https://github.com/owner/repo",
    )
    github_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("githubToken", "github_token"),
        description="GitHub token used for this run only; never stored",
    )


class _CamelModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class RepositoryInfo(_CamelModel):
    name: str
    url: str
    description: Optional[str] = None


class IssueResponse(_CamelModel):
    id: str
    type: str
    severity: str
    title: str
    description: str
    suggestion: Optional[str] = None
    line_number: Optional[int] = None
    column_start: Optional[int] = None
    column_end: Optional[int] = None
    code_snippet: Optional[str] = None


class ReportResponse(_CamelModel):
    id: str
    filename: str
    language: str
    file_size: int
    degraded_reason: Optional[str] = None
    issues: List[IssueResponse] = []


class AnalysisSummary(_CamelModel):
    id: str
    repository: RepositoryInfo
    status: str
    progress: int
    started_at: datetime
    completed_at: Optional[datetime] = None
    total_files: int
    processed_files: int
    total_issues: int
    critical_issues: int
    warning_issues: int
    info_issues: int
    error_message: Optional[str] = None


class AnalysisDetail(AnalysisSummary):
    reports: List[ReportResponse] = []


class Pagination(_CamelModel):
    page: int
    page_size: int
    total: int
    pages: int


class AnalysisHistory(_CamelModel):
    analyses: List[AnalysisSummary]
    pagination: Pagination
