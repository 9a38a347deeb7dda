"""
Polling of remote bulk jobs until they reach a terminal state.

A job is ``pending`` until the provider reports ``completed`` or ``failed``;
anything the provider reports that we do not recognise counts as pending.
The wait between polls grows geometrically up to a ceiling, and the sum of
the waits is bounded by ``max_wait``.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..errors import JobCancelled, JobFailed, JobTimeout, PollError

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def parse(cls, raw: Any) -> "JobStatus":
        value = str(raw or "").strip().lower()
        if value == cls.COMPLETED.value:
            return cls.COMPLETED
        if value == cls.FAILED.value:
            return cls.FAILED
        return cls.PENDING


@dataclass(frozen=True)
class Job:
    id: str
    status: JobStatus = JobStatus.PENDING
    location: Optional[str] = None
    type: Optional[str] = None
    summary: Dict[str, Any] = field(default_factory=dict)
    raw_status: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Job":
        if not isinstance(payload, dict):
            raise ValueError(f"Job payload is not an object: {payload!r}")
        job_id = str(payload.get("id") or "").strip()
        if not job_id:
            raise ValueError(f"Job payload without id: {payload!r}")
        status = JobStatus.parse(payload.get("status"))
        location = payload.get("location") if status is JobStatus.COMPLETED else None
        summary = payload.get("summary")
        return cls(
            id=job_id,
            status=status,
            location=location or None,
            type=payload.get("type"),
            summary=summary if isinstance(summary, dict) else {},
            raw_status=payload.get("status"),
        )

    @property
    def is_terminal(self) -> bool:
        return self.status is not JobStatus.PENDING


@dataclass(frozen=True)
class PollPolicy:
    """Schedule for status checks: seconds, all of them."""

    initial_interval: float
    growth_factor: float
    max_interval: float
    max_wait: float

    def __post_init__(self) -> None:
        if self.initial_interval <= 0 or self.max_interval <= 0 or self.max_wait <= 0:
            raise ValueError(f"Poll intervals and wait ceiling must be positive: {self!r}")
        if self.growth_factor < 1:
            raise ValueError(f"growth_factor must be >= 1, got {self.growth_factor}")
        if self.initial_interval > self.max_interval:
            raise ValueError("initial_interval cannot exceed max_interval")

    @classmethod
    def fixed(cls, interval: float, max_wait: float) -> "PollPolicy":
        return cls(initial_interval=interval, growth_factor=1.0,
                   max_interval=interval, max_wait=max_wait)

    def next_interval(self, current: float) -> float:
        return min(current * self.growth_factor, self.max_interval)


EXPORT_POLICY = PollPolicy.fixed(interval=10.0, max_wait=30 * 60.0)
IMPORT_POLICY = PollPolicy(initial_interval=5.0, growth_factor=2.0,
                           max_interval=30.0, max_wait=5 * 60.0)


@dataclass(frozen=True)
class TerminalResult:
    job: Job
    polls: int
    waited: float

    @property
    def location(self) -> Optional[str]:
        return self.job.location


class JobPoller:
    """
    Drives one job to a terminal state.

    ``sleep`` blocks the calling thread between polls; ``cancel_event`` is
    checked before each poll and after each sleep.
    """

    def __init__(self,
                 policy: PollPolicy,
                 sleep: Callable[[float], None] = time.sleep,
                 cancel_event: Optional[threading.Event] = None) -> None:
        self.policy = policy
        self._sleep = sleep
        self._cancel_event = cancel_event

    def _check_cancelled(self, job_id: str) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise JobCancelled(job_id)

    def await_terminal(self, job_id: str, poll_fn: Callable[[str], Job]) -> TerminalResult:
        interval = self.policy.initial_interval
        waited = 0.0
        polls = 0
        last_status: Optional[str] = None

        while True:
            self._check_cancelled(job_id)
            try:
                job = poll_fn(job_id)
            except (PollError, JobCancelled):
                raise
            except Exception as exc:
                raise PollError(f"Failed to read status of job {job_id}: {exc}") from exc
            polls += 1

            shown = job.raw_status or job.status.value
            if shown != last_status:
                logger.info("Job %s status: %s", job_id, shown)
                last_status = shown

            if job.status is JobStatus.COMPLETED:
                return TerminalResult(job=job, polls=polls, waited=waited)
            if job.status is JobStatus.FAILED:
                raise JobFailed(job_id, job.summary or None)

            if waited + interval > self.policy.max_wait:
                raise JobTimeout(job_id, waited)

            logger.debug("Job %s in progress. Waiting %gs...", job_id, interval)
            self._sleep(interval)
            waited += interval
            interval = self.policy.next_interval(interval)
            self._check_cancelled(job_id)


def await_terminal(job_id: str, poll_fn: Callable[[str], Job], policy: PollPolicy,
                   **kwargs: Any) -> TerminalResult:
    """Shortcut for ``JobPoller(policy, **kwargs).await_terminal(job_id, poll_fn)``."""
    return JobPoller(policy, **kwargs).await_terminal(job_id, poll_fn)


__all__ = [
    "Job",
    "JobStatus",
    "PollPolicy",
    "JobPoller",
    "TerminalResult",
    "await_terminal",
    "EXPORT_POLICY",
    "IMPORT_POLICY",
]
