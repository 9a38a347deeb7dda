import io
import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Sequence

from ..config import MigrationConfig
from .archive import DEFAULT_ARCHIVE, ArchiveStore
from .batcher import DEFAULT_MAX_BATCH_BYTES, RecordTransform, batch_records
from .exporter import DEFAULT_EXPORT_FIELDS, DEFAULT_EXPORT_LIMIT, export_all
from .importer import ImportReport, import_all
from .poller import EXPORT_POLICY, IMPORT_POLICY, JobPoller, PollPolicy

if TYPE_CHECKING:
    from ..auth0.tenant import TenantClient

logger = logging.getLogger(__name__)


class Coordinator:
    """
    Runs the two phases of a migration.

    ``run_export`` leaves the compressed archive on disk; ``run_import``
    reads only that archive. The phases never share state in memory.
    """

    def __init__(self,
                 source: "TenantClient",
                 destination: "TenantClient",
                 store: Optional[ArchiveStore] = None,
                 export_policy: PollPolicy = EXPORT_POLICY,
                 import_policy: PollPolicy = IMPORT_POLICY,
                 cancel_event: Optional[threading.Event] = None) -> None:
        self._source = source
        self._destination = destination
        self.store = store or ArchiveStore(DEFAULT_ARCHIVE)
        self._export_policy = export_policy
        self._import_policy = import_policy
        self.cancel_event = cancel_event or threading.Event()

    @classmethod
    def from_config(cls, config: MigrationConfig,
                    archive_path: Path = DEFAULT_ARCHIVE,
                    timeout: Optional[float] = None,
                    **kwargs) -> "Coordinator":
        from ..auth0 import DEFAULT_TIMEOUT, connect

        timeout = timeout if timeout is not None else DEFAULT_TIMEOUT
        return cls(
            source=connect(config.source_tenant(), timeout=timeout),
            destination=connect(config.destination_tenant(), timeout=timeout),
            store=ArchiveStore(archive_path),
            **kwargs,
        )

    def _poller(self, policy: PollPolicy) -> JobPoller:
        return JobPoller(policy, cancel_event=self.cancel_event)

    def close(self) -> None:
        """Release both tenant clients' HTTP sessions."""
        self._source.close()
        self._destination.close()

    def __enter__(self) -> "Coordinator":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # ---------- export phase ----------
    def run_export(self,
                   fields: Sequence[str] = DEFAULT_EXPORT_FIELDS,
                   limit: int = DEFAULT_EXPORT_LIMIT) -> Path:
        logger.info("Starting user export from source tenant %s...", self._source.domain)
        location = export_all(self._source, fields, limit, self._poller(self._export_policy))
        return self._source.download(location, self.store)

    # ---------- import phase ----------
    def run_import(self,
                   max_batch_bytes: int = DEFAULT_MAX_BATCH_BYTES,
                   transform: Optional[RecordTransform] = None,
                   upsert: bool = True) -> ImportReport:
        logger.info("Starting user import into target tenant %s from %s...",
                    self._destination.domain, self.store.path)
        with io.BytesIO(self.store.read_records_bytes()) as stream:
            batches = batch_records(stream, max_batch_bytes, transform)

        if not batches:
            logger.warning("Archive %s contains no users; nothing to import.", self.store.path)
            return ImportReport()

        report = import_all(batches, self._destination,
                            self._poller(self._import_policy), upsert=upsert)
        logger.info("All %d batch(es) (%d users) imported successfully into the target tenant.",
                    report.batches_imported, report.records_imported)
        return report


__all__ = ["Coordinator"]
