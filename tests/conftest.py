import gzip
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from tenant_migration.core.archive import ArchiveStore
from tenant_migration.core.poller import Job, JobStatus
from tenant_migration.errors import ApiError


class FakeTenant:
    """
    In-memory stand-in for TenantClient.

    Each started job consumes the next script from ``job_scripts``: a list of
    statuses returned by successive ``read_job`` calls (the last one repeats).
    """

    def __init__(self, domain: str = "tenant.example.com",
                 job_scripts: Optional[List[List[str]]] = None,
                 location: str = "https://files.example.com/export.json.gz",
                 archive_bytes: bytes = b"",
                 start_error: Optional[Exception] = None,
                 errors: Optional[List[Dict[str, Any]]] = None) -> None:
        self.domain = domain
        self.location = location
        self.archive_bytes = archive_bytes
        self.start_error = start_error
        self.errors = errors or []
        self._scripts = list(job_scripts or [])
        self._jobs: Dict[str, List[str]] = {}
        self.exports: List[Dict[str, Any]] = []
        self.imports: List[Dict[str, Any]] = []
        self.reads: List[str] = []
        self.downloads: List[str] = []
        self.closed = False

    def close(self) -> None:
        self.closed = True

    def _new_job(self) -> Job:
        job_id = f"job_{len(self._jobs) + 1}"
        script = self._scripts.pop(0) if self._scripts else ["completed"]
        self._jobs[job_id] = list(script)
        return Job(id=job_id)

    def start_export(self, fields, limit) -> Job:
        self.exports.append({"fields": list(fields), "limit": limit})
        return self._new_job()

    def start_import(self, records, upsert=True) -> Job:
        if self.start_error is not None:
            raise self.start_error
        self.imports.append({"records": list(records), "upsert": upsert})
        return self._new_job()

    def read_job(self, job_id: str) -> Job:
        self.reads.append(job_id)
        script = self._jobs[job_id]
        status = script.pop(0) if len(script) > 1 else script[0]
        payload = {"id": job_id, "status": status}
        if JobStatus.parse(status) is JobStatus.COMPLETED and self.location:
            payload["location"] = self.location
        return Job.from_payload(payload)

    def job_errors(self, job_id: str) -> List[Dict[str, Any]]:
        if isinstance(self.errors, Exception):
            raise self.errors
        return self.errors

    def download(self, location: str, store: ArchiveStore) -> Path:
        self.downloads.append(location)
        return store.persist([self.archive_bytes])


@pytest.fixture
def fake_tenant_factory():
    return FakeTenant


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def no_sleep():
    return RecordingSleep()


def ndjson(records: List[Dict[str, Any]]) -> bytes:
    return "".join(json.dumps(r) + "\n" for r in records).encode("utf-8")


@pytest.fixture
def to_ndjson():
    return ndjson


@pytest.fixture
def write_archive(tmp_path):
    def _write(records: List[Dict[str, Any]], name: str = "exported_users.json.gz") -> Path:
        path = tmp_path / name
        path.write_bytes(gzip.compress(ndjson(records)))
        return path

    return _write


@pytest.fixture
def api_error():
    return ApiError("boom", status_code=500)
