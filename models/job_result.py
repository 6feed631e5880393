"""
Quote job data models.

A quote job is the background run that turns stored uploads into a priced
quote. Its state lives in the ``quote_jobs`` and ``quote_job_events``
tables; these dataclasses are the shape the polling endpoint returns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Any, List, Optional


class JobStatus(Enum):
    """
    Status of a quote job.

    Lifecycle:
        PENDING -> RUNNING -> (COMPLETED | FAILED)
    """

    PENDING = "pending"
    """Job row created, thread not started yet."""

    RUNNING = "running"
    """Job thread is processing files."""

    COMPLETED = "completed"
    """Quote priced and saved; ``result`` holds the QuoteResult."""

    FAILED = "failed"
    """Job stopped; ``error`` explains why."""

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass
class JobEvent:
    """One progress line written by the job thread."""

    step: str
    """Pipeline step ('start', 'ocr', 'analysis', 'pricing', 'email', 'end')."""

    message: str
    """Human-readable progress message shown on the processing page."""

    progress: Optional[int] = None
    """Percent complete (0-100), when the step knows it."""

    ts: Optional[datetime] = None
    """When the event was recorded."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "message": self.message,
            "progress": self.progress,
            "ts": self.ts.isoformat() if self.ts else None,
        }


@dataclass
class JobState:
    """
    Snapshot of a job for the status endpoint.

    ``to_dict`` produces the ``{job, events, result}`` body the processing
    page polls.
    """

    job_id: str
    quote_id: str
    status: JobStatus
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    events: List[JobEvent] = field(default_factory=list)
    result: Optional[Dict[str, Any]] = None

    @property
    def progress(self) -> int:
        """Latest reported progress, 100 once the job is terminal."""
        if self.status.is_terminal:
            return 100
        for event in reversed(self.events):
            if event.progress is not None:
                return event.progress
        return 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job": {
                "id": self.job_id,
                "quote_id": self.quote_id,
                "status": self.status.value,
                "error": self.error,
                "progress": self.progress,
                "complete": self.status.is_terminal,
                "created_at": self.created_at.isoformat() if self.created_at else None,
                "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            },
            "events": [e.to_dict() for e in self.events],
            "result": self.result,
        }
