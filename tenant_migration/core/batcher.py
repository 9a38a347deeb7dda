"""
Split a newline-delimited JSON user stream into size-bounded batches.

One JSON object per line, as the bulk export writes them. Blank lines are
ignored. The size of a record is the UTF-8 length of its compact JSON form,
which is what the import endpoint receives.
"""

import json
import logging
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Union

from ..errors import DecodeError

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
Batch = List[Record]
RecordTransform = Callable[[Record], Record]

DEFAULT_MAX_BATCH_BYTES = 500_000


def serialized_size(record: Record) -> int:
    return len(json.dumps(record, separators=(",", ":"), ensure_ascii=False).encode("utf-8"))


def set_field(name: str, value: Any) -> RecordTransform:
    """Return a transform that overrides one field, e.g. ``set_field("email_verified", True)``."""

    def _transform(record: Record) -> Record:
        updated = dict(record)
        updated[name] = value
        return updated

    return _transform


def iter_records(lines: Iterable[Union[str, bytes]]) -> Iterator[Record]:
    for lineno, line in enumerate(lines, start=1):
        if isinstance(line, bytes):
            try:
                line = line.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise DecodeError(f"Line {lineno} is not valid UTF-8: {exc}") from exc
        text = line.strip()
        if not text:
            continue
        try:
            obj = json.loads(text)
        except json.JSONDecodeError as exc:
            raise DecodeError(f"Failed to decode JSON on line {lineno}: {exc}") from exc
        if not isinstance(obj, dict):
            raise DecodeError(f"Line {lineno} is a {type(obj).__name__}, expected a JSON object")
        yield obj


def iter_batches(lines: Iterable[Union[str, bytes]],
                 max_batch_bytes: int = DEFAULT_MAX_BATCH_BYTES,
                 transform: Optional[RecordTransform] = None) -> Iterator[Batch]:
    """
    Yield batches in stream order.

    The cap is checked before appending, so a record larger than
    ``max_batch_bytes`` becomes a batch of its own. Never yields an empty batch.
    """
    if max_batch_bytes <= 0:
        raise ValueError(f"max_batch_bytes must be positive, got {max_batch_bytes}")

    batch: Batch = []
    batch_size = 0
    for record in iter_records(lines):
        if transform is not None:
            record = transform(record)
        size = serialized_size(record)
        if batch and batch_size + size > max_batch_bytes:
            yield batch
            batch = []
            batch_size = 0
        if size > max_batch_bytes:
            logger.warning("Record %s is %d bytes, above the %d byte batch limit",
                           record.get("user_id", "?"), size, max_batch_bytes)
        batch.append(record)
        batch_size += size

    if batch:
        yield batch


def batch_records(lines: Iterable[Union[str, bytes]],
                  max_batch_bytes: int = DEFAULT_MAX_BATCH_BYTES,
                  transform: Optional[RecordTransform] = None) -> List[Batch]:
    batches = list(iter_batches(lines, max_batch_bytes, transform))
    logger.info("Split %d records into %d batch(es) of at most %d bytes",
                sum(len(b) for b in batches), len(batches), max_batch_bytes)
    return batches


__all__ = [
    "Record",
    "Batch",
    "RecordTransform",
    "DEFAULT_MAX_BATCH_BYTES",
    "serialized_size",
    "set_field",
    "iter_records",
    "iter_batches",
    "batch_records",
]
