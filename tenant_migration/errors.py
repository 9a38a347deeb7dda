"""
Error classes for tenant migration.

Every failure surfaces to the phase entry point (export or import) as one of
these. Nothing here is retried internally; the import phase is safe to re-run
as a whole because destination writes are upserts.
"""

from typing import Any, Optional


class MigrationError(Exception):
    """Base exception for tenant migration."""


class ConfigError(MigrationError):
    """Missing or invalid credentials / connection identifiers."""


class ArchiveIOError(MigrationError):
    """Local file or network stream failure while moving the archive."""


class DecodeError(MigrationError):
    """Malformed compressed payload or malformed JSON record."""


class ApiError(MigrationError):
    """A management API call (other than a status poll) failed."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PollError(MigrationError):
    """Transport failure while checking job status."""


class JobFailed(MigrationError):
    """The remote job reached the ``failed`` state."""

    def __init__(self, job_id: str, detail: Any = None) -> None:
        self.job_id = job_id
        self.detail = detail
        message = f"job {job_id} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class JobTimeout(MigrationError):
    """The remote job did not finish within the wait ceiling."""

    def __init__(self, job_id: str, waited: float) -> None:
        self.job_id = job_id
        self.waited = waited
        super().__init__(f"job {job_id} still pending after {waited:g}s")


class JobCancelled(MigrationError):
    """Polling was interrupted by the cancellation signal."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"polling of job {job_id} cancelled")


class ExportFailed(JobFailed):
    pass


class ExportTimeout(JobTimeout):
    pass


class _BatchMixin:
    batch_index: int
    batch_total: int

    def batch_label(self) -> str:
        return f"batch {self.batch_index}/{self.batch_total}"

    def __str__(self) -> str:
        return f"{self.batch_label()}: {super().__str__()}"


class ImportFailed(_BatchMixin, JobFailed):
    def __init__(self, job_id: str, batch_index: int, batch_total: int,
                 detail: Any = None) -> None:
        self.batch_index = batch_index
        self.batch_total = batch_total
        super().__init__(job_id, detail)


class ImportTimeout(_BatchMixin, JobTimeout):
    def __init__(self, job_id: str, waited: float, batch_index: int,
                 batch_total: int) -> None:
        self.batch_index = batch_index
        self.batch_total = batch_total
        super().__init__(job_id, waited)


__all__ = [
    "MigrationError",
    "ConfigError",
    "ArchiveIOError",
    "DecodeError",
    "ApiError",
    "PollError",
    "JobFailed",
    "JobTimeout",
    "JobCancelled",
    "ExportFailed",
    "ExportTimeout",
    "ImportFailed",
    "ImportTimeout",
]
