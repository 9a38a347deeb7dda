"""
Core package: the export/import pipeline.
This package exposes the Coordinator class which ties together the job
poller, the archive store, the batcher and the two tenant clients.
"""

from .coordinator import Coordinator
from .importer import ImportReport

__all__ = [
    "Coordinator",
    "ImportReport",
]
