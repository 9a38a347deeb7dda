import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

import requests
from tqdm import tqdm

from ..core.archive import ArchiveStore
from ..core.poller import Job
from ..errors import ApiError, ArchiveIOError, PollError
from .client import ManagementClient

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK = 1024 * 1024


def _describe(exc: requests.RequestException) -> str:
    resp = getattr(exc, "response", None)
    if resp is not None:
        return f"{resp.status_code} {resp.text[:500]}"
    return str(exc)


class TenantClient:
    """
    Bulk user jobs on one tenant, bound to one database connection:
      - user export jobs (creation, status, archive download)
      - user import jobs (creation, status, error details)
    """

    def __init__(self, client: ManagementClient, connection_id: str) -> None:
        self._client = client
        self.connection_id = connection_id

    @property
    def domain(self) -> str:
        return self._client.domain

    def close(self) -> None:
        self._client.close()

    # -------------------------------------------------------------------------
    # Jobs
    # -------------------------------------------------------------------------

    def _job_from(self, resp: requests.Response, action: str) -> Job:
        try:
            return Job.from_payload(resp.json())
        except ValueError as e:
            raise ApiError(f"Unexpected response to {action} on {self.domain}: {e}") from e

    def start_export(self, fields: Sequence[str], limit: int) -> Job:
        payload: Dict[str, Any] = {
            "connection_id": self.connection_id,
            "format": "json",
            "limit": int(limit),
            "fields": [{"name": name} for name in fields],
        }
        try:
            resp = self._client.post("jobs/users-exports", json_data=payload)
        except requests.RequestException as e:
            raise ApiError(f"Failed to start export on {self.domain}: {_describe(e)}",
                           status_code=getattr(e.response, "status_code", None)) from e
        job = self._job_from(resp, "users-exports")
        logger.info("Export job %s started on %s (connection %s, limit %d)",
                    job.id, self.domain, self.connection_id, limit)
        return job

    def start_import(self, records: List[Dict[str, Any]], upsert: bool = True) -> Job:
        """Upload one batch of users as a bulk import job."""
        body = json.dumps(records, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        files = {"users": ("users.json", body, "application/json")}
        data = {
            "connection_id": self.connection_id,
            "upsert": "true" if upsert else "false",
            "send_completion_email": "false",
        }
        try:
            resp = self._client.post("jobs/users-imports", files=files, data=data)
        except requests.RequestException as e:
            raise ApiError(f"Failed to import users into {self.domain}: {_describe(e)}",
                           status_code=getattr(e.response, "status_code", None)) from e
        job = self._job_from(resp, "users-imports")
        logger.debug("Import job %s started on %s with %d users", job.id, self.domain, len(records))
        return job

    def read_job(self, job_id: str) -> Job:
        try:
            resp = self._client.get(f"jobs/{job_id}")
            return Job.from_payload(resp.json())
        except (requests.RequestException, ApiError, ValueError) as e:
            reason = _describe(e) if isinstance(e, requests.RequestException) else str(e)
            raise PollError(f"Failed to read job {job_id} on {self.domain}: {reason}") from e

    def job_errors(self, job_id: str) -> List[Dict[str, Any]]:
        """Per-user errors of a failed import job."""
        try:
            resp = self._client.get(f"jobs/{job_id}/errors")
        except requests.RequestException as e:
            raise ApiError(f"Failed to list errors of job {job_id}: {_describe(e)}") from e
        if not resp.content:
            return []
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError(f"Unreadable error list for job {job_id}: {e}") from e
        return data if isinstance(data, list) else [data]

    # -------------------------------------------------------------------------
    # Archive download
    # -------------------------------------------------------------------------

    def download(self, location: str, store: ArchiveStore,
                 timeout: Optional[float] = None) -> Path:
        """
        Stream the export archive at ``location`` into ``store``.

        The location is a pre-signed URL, so it is fetched without the
        management token.
        """
        timeout = timeout if timeout is not None else self._client.timeout
        try:
            resp = requests.get(location, stream=True, allow_redirects=True, timeout=timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise ArchiveIOError(f"Failed to download file: {_describe(e)}") from e

        total = None
        total_hdr = resp.headers.get("Content-Length")
        if total_hdr and total_hdr.isdigit():
            total = int(total_hdr)

        bar = tqdm(total=total, unit="B", unit_scale=True, unit_divisor=1024,
                   desc=store.path.name, disable=not sys.stdout.isatty())

        def _chunks() -> Iterator[bytes]:
            try:
                for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK):
                    if chunk:
                        bar.update(len(chunk))
                        yield chunk
            except requests.RequestException as e:
                raise ArchiveIOError(f"Download of {store.path.name} interrupted: {e}") from e

        try:
            path = store.persist(_chunks())
        finally:
            bar.close()
            resp.close()
        logger.info("File downloaded successfully as: %s", path)
        return path


__all__ = ["TenantClient"]
