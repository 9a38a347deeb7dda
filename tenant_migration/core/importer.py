import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional, Sequence

from ..errors import ImportFailed, ImportTimeout, JobFailed, JobTimeout, MigrationError
from .batcher import Batch
from .poller import IMPORT_POLICY, JobPoller

if TYPE_CHECKING:
    from ..auth0.tenant import TenantClient

logger = logging.getLogger(__name__)


@dataclass
class ImportReport:
    batches_imported: int = 0
    records_imported: int = 0
    job_ids: List[str] = field(default_factory=list)


def _failure_detail(destination: "TenantClient", job_id: str, fallback: Any) -> Any:
    try:
        errors = destination.job_errors(job_id)
    except MigrationError as e:
        logger.warning("Could not fetch errors of job %s: %s", job_id, e)
        return fallback
    return errors or fallback


def import_all(batches: Sequence[Batch],
               destination: "TenantClient",
               poller: Optional[JobPoller] = None,
               upsert: bool = True) -> ImportReport:
    """
    Import ``batches`` one after another, waiting for each job to finish.

    The first failing batch aborts the run; batches already imported stay in
    place. With ``upsert`` re-running the whole import is safe.
    """
    poller = poller or JobPoller(IMPORT_POLICY)
    total = len(batches)
    report = ImportReport()

    for index, batch in enumerate(batches, start=1):
        logger.info("Importing batch %d/%d (%d users)...", index, total, len(batch))
        try:
            job = destination.start_import(batch, upsert=upsert)
            poller.await_terminal(job.id, destination.read_job)
        except JobFailed as e:
            logger.error("Failed to import batch %d/%d: job %s failed", index, total, e.job_id)
            detail = _failure_detail(destination, e.job_id, e.detail)
            raise ImportFailed(e.job_id, index, total, detail) from e
        except JobTimeout as e:
            logger.error("Failed to import batch %d/%d: job %s timed out", index, total, e.job_id)
            raise ImportTimeout(e.job_id, e.waited, index, total) from e
        except MigrationError as e:
            logger.error("Failed to import batch %d/%d: %s", index, total, e)
            raise

        report.batches_imported += 1
        report.records_imported += len(batch)
        report.job_ids.append(job.id)
        logger.info("Batch %d/%d imported successfully (job %s).", index, total, job.id)

    return report


__all__ = ["import_all", "ImportReport"]
