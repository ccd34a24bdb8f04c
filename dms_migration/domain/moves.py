"""Domain entities for folder moves executed as copy jobs."""
from __future__ import annotations

from dataclasses import dataclass, field


TERMINAL_EVENTS = frozenset({"JobEnd", "JobFatalError"})
ISSUE_EVENTS = frozenset({"JobWarning", "JobError", "JobFatalError"})


@dataclass(slots=True)
class CopyJob:
    job_id: str
    job_queue_uri: str | None = None
    encryption_key: str | None = None


@dataclass(slots=True)
class CopyJobLogEntry:
    event: str
    time: str | None = None
    message: str | None = None

    @property
    def terminal(self) -> bool:
        return self.event in TERMINAL_EVENTS

    @property
    def issue(self) -> bool:
        return self.event in ISSUE_EVENTS


@dataclass(slots=True)
class CopyJobProgress:
    job_state: int
    logs: list[CopyJobLogEntry] = field(default_factory=list)


@dataclass(slots=True)
class MoveResult:
    """Outcome of a move; ``warnings`` non-empty means partial success."""

    source: str
    destination: str
    status: str = "completed"
    warnings: list[str] = field(default_factory=list)
    job_id: str | None = None

    @property
    def partial(self) -> bool:
        return bool(self.warnings)
