from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

SUMMARY_RECORD = "** ALL (Summary) **"
TERMINAL_STATUSES = frozenset({"succeeded", "failed", "canceled"})


@dataclass(frozen=True)
class Server:
    id: int
    hostname: str
    tags: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Activity:
    id: int
    status: str
    computer_id: Optional[int] = None
    parent_id: Optional[int] = None


@dataclass(frozen=True)
class ReportRecord:
    computer_name: str
    computer_id: Union[int, str]
    activity_id: int
    activity_status: str

    @property
    def is_summary(self) -> bool:
        return self.computer_name == SUMMARY_RECORD


ActivityReport = tuple[ReportRecord, ...]


@dataclass
class DeploymentOutcome:
    status: str
    report: ActivityReport
    polls: int = 0

    @property
    def is_clean_exit(self) -> bool:
        """True for 'succeeded' and 'canceled'; any other terminal status is a failure."""
        return self.status in {"succeeded", "canceled"}
