"""
The exported archive: gzip decoding and the on-disk artifact shared by the
export and import phases.
"""

import gzip
import logging
import os
import tempfile
import zlib
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, Union

from ..errors import ArchiveIOError, DecodeError

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE = Path("exported_users.json.gz")


def decompress(handle: BinaryIO) -> bytes:
    """
    Decode a gzip stream in full.

    Either the whole payload comes back or an error is raised; a truncated
    stream is never returned as if it were complete.
    """
    try:
        with gzip.GzipFile(fileobj=handle, mode="rb") as gz:
            return gz.read()
    except (gzip.BadGzipFile, EOFError, zlib.error) as exc:
        raise DecodeError(f"Invalid gzip archive: {exc}") from exc
    except OSError as exc:
        raise ArchiveIOError(f"Failed to read archive: {exc}") from exc


class ArchiveStore:
    """The single persisted artifact: the still-compressed export archive."""

    def __init__(self, path: Union[str, Path] = DEFAULT_ARCHIVE) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def persist(self, chunks: Iterable[bytes]) -> Path:
        """
        Write ``chunks`` to the archive path.

        Data goes to a temporary sibling first and is renamed into place only
        once every chunk is written, so a failed transfer never leaves a
        half-written archive behind (nor clobbers a previous good one).
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        tmp_path = Path(tmp_name)
        written = 0
        try:
            with os.fdopen(fd, "wb") as f:
                for chunk in chunks:
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise ArchiveIOError(f"Failed to write {self.path}: {exc}") from exc
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        logger.info("Saved archive (%d bytes) to %s", written, self.path)
        return self.path

    @contextmanager
    def open(self) -> Iterator[BinaryIO]:
        if not self.exists():
            raise ArchiveIOError(f"Archive not found: {self.path}. Run the export first.")
        try:
            f = self.path.open("rb")
        except OSError as exc:
            raise ArchiveIOError(f"Failed to open {self.path}: {exc}") from exc
        with f:
            yield f

    def read_records_bytes(self) -> bytes:
        with self.open() as f:
            data = decompress(f)
        logger.info("Decompressed %s: %d bytes", self.path, len(data))
        return data


__all__ = ["ArchiveStore", "decompress", "DEFAULT_ARCHIVE"]
