"""Pydantic schema for progress events streamed by the analyze endpoint"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class EventStatus(str, Enum):
    INITIALIZING = "initializing"
    FETCHING = "fetching"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    ERROR = "error"


TERMINAL_STATUSES = {EventStatus.COMPLETED, EventStatus.ERROR}


class ProgressEvent(BaseModel):
    """
    One event of the progress stream.

    Serialized with camelCase keys; unset optional fields are left out.
    """

    status: EventStatus
    message: str
    progress: int
    analysis_id: Optional[str] = None
    current_file: Optional[str] = None
    total_files: Optional[int] = None
    total_issues: Optional[int] = None
    critical_issues: Optional[int] = None
    warning_issues: Optional[int] = None
    info_issues: Optional[int] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True)

    @property
    def is_terminal(self) -> bool:
        return EventStatus(self.status) in TERMINAL_STATUSES

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)
