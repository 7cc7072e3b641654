"""Progress event stream for one analysis run.

ProgressStream builds the events an orchestrator emits and guards the stream
protocol: progress stays within [0, 100] and never decreases, and exactly one
terminal event (completed or error) closes the stream.
"""
from typing import Optional

from app.schemas.events import EventStatus, ProgressEvent

DISCOVERY_SHARE = 20
ANALYSIS_SHARE = 70


class ProgressStreamError(RuntimeError):
    """Raised when an event would break the stream protocol."""


def analysis_progress(processed: int, total: int) -> int:
    """Progress while analysing files: 20 + 70 * processed / total, floored."""
    if total <= 0:
        return DISCOVERY_SHARE
    processed = min(max(processed, 0), total)
    return DISCOVERY_SHARE + (ANALYSIS_SHARE * processed) // total


def encode_event(event: ProgressEvent) -> str:
    """Frame an event for the response body: `data: <json>\\n\\n`."""
    return f"data: {event.to_json()}\n\n"


class ProgressStream:
    def __init__(self) -> None:
        self._progress = 0
        self._closed = False
        self.events: list[ProgressEvent] = []

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def progress(self) -> int:
        return self._progress

    def _emit(self, event: ProgressEvent) -> ProgressEvent:
        if self._closed:
            raise ProgressStreamError(f"stream already closed, cannot emit {event.status!r}")
        if not 0 <= event.progress <= 100:
            raise ProgressStreamError(f"progress {event.progress} out of range")
        if event.progress < self._progress:
            raise ProgressStreamError(f"progress went backwards: {self._progress} -> {event.progress}")
        self._progress = event.progress
        self._closed = event.is_terminal
        self.events.append(event)
        return event

    def initializing(self) -> ProgressEvent:
        return self._emit(ProgressEvent(
            status=EventStatus.INITIALIZING, message="starting analysis...", progress=0,
        ))

    def fetching(self, analysis_id: str) -> ProgressEvent:
        return self._emit(ProgressEvent(
            status=EventStatus.FETCHING,
            message="fetching repository files...",
            progress=10,
            analysis_id=analysis_id,
        ))

    def analyzing(
        self,
        message: str,
        progress: int,
        total_files: int,
        current_file: Optional[str] = None,
    ) -> ProgressEvent:
        return self._emit(ProgressEvent(
            status=EventStatus.ANALYZING,
            message=message,
            progress=progress,
            total_files=total_files,
            current_file=current_file,
        ))

    def completed(
        self,
        analysis_id: str,
        total_issues: int,
        critical_issues: int,
        warning_issues: int,
        info_issues: int,
    ) -> ProgressEvent:
        return self._emit(ProgressEvent(
            status=EventStatus.COMPLETED,
            message="analysis completed!",
            progress=100,
            analysis_id=analysis_id,
            total_issues=total_issues,
            critical_issues=critical_issues,
            warning_issues=warning_issues,
            info_issues=info_issues,
        ))

    def error(self, message: str) -> ProgressEvent:
        # Error events carry the last progress so the sequence stays non-decreasing
        return self._emit(ProgressEvent(status=EventStatus.ERROR, message=message, progress=self._progress))
