from .exceptions import FstabError, ValidationError
from .mender import NTFSMender
from .results import EntryEvent, EntryResult, EntryStatus, RunCounters

__all__ = [
    "NTFSMender",
    "EntryEvent",
    "EntryResult",
    "EntryStatus",
    "RunCounters",
    "FstabError",
    "ValidationError",
]
