import logging
from typing import TYPE_CHECKING, Optional, Sequence

from ..errors import ExportFailed, ExportTimeout, JobFailed, JobTimeout
from .poller import EXPORT_POLICY, JobPoller

if TYPE_CHECKING:
    from ..auth0.tenant import TenantClient

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_FIELDS = (
    "user_id",
    "email",
    "name",
    "user_metadata",
    "app_metadata",
    "created_at",
    "updated_at",
    "email_verified",
)

# The provider truncates an export at this many users.
DEFAULT_EXPORT_LIMIT = 50_000


def export_all(source: "TenantClient",
               fields: Sequence[str] = DEFAULT_EXPORT_FIELDS,
               limit: int = DEFAULT_EXPORT_LIMIT,
               poller: Optional[JobPoller] = None) -> str:
    """
    Run one export job on the source connection and return the archive location.

    Downloading the archive is left to the caller.
    """
    if not fields:
        raise ValueError("At least one export field is required")
    if limit <= 0:
        raise ValueError(f"Export limit must be positive, got {limit}")
    poller = poller or JobPoller(EXPORT_POLICY)

    job = source.start_export(list(fields), limit)
    logger.info("Export job started in source tenant. Job ID: %s", job.id)

    try:
        result = poller.await_terminal(job.id, source.read_job)
    except JobFailed as e:
        raise ExportFailed(e.job_id, e.detail) from e
    except JobTimeout as e:
        raise ExportTimeout(e.job_id, e.waited) from e

    if not result.location:
        raise ExportFailed(job.id, "completed without a download location")
    logger.info("Export completed after %d poll(s). Download file at: %s",
                result.polls, result.location)
    return result.location


__all__ = ["export_all", "DEFAULT_EXPORT_FIELDS", "DEFAULT_EXPORT_LIMIT"]
