__author__ = "ntfsmend contributors"
__version__ = "1.0.0"

from dataclasses import dataclass, field
from enum import Enum

from .fs.fstab import FstabEntry


class EntryEvent(Enum):
    PROCESSING = "processing"
    MOUNTED = "mounted"
    NOT_MOUNTED = "not-mounted"
    HEALTHY = "healthy"
    KERNEL_ERRORS = "kernel-errors"
    UNMOUNT = "unmount"
    REPAIR_ATTEMPT = "repair-attempt"
    REPAIR_OK = "repair-ok"
    REPAIR_FAILED = "repair-failed"
    MOUNT_ATTEMPT = "mount-attempt"
    MOUNT_OK = "mount-ok"
    MOUNT_FAILED = "mount-failed"
    SKIPPED_MISSING = "skipped-missing"
    SKIPPED_NOT_NTFS = "skipped-not-ntfs"
    FAILED = "failed"


class EntryStatus(Enum):
    PENDING = "pending"
    HEALTHY = "healthy"
    REPAIRED = "repaired"
    REPAIR_FAILED = "repair-failed"
    MOUNT_FAILED = "mount-failed"
    MISSING = "missing"
    NOT_NTFS = "not-ntfs"
    FAILED = "failed"


SKIPPED_STATUSES = (EntryStatus.MISSING, EntryStatus.NOT_NTFS)


@dataclass
class EntryResult:
    """Outcome of processing a single fstab entry."""

    entry: FstabEntry
    device: str = ""
    status: EntryStatus = EntryStatus.PENDING
    error_detected: bool = False
    repaired: bool = False
    mounted: bool = False
    kernel_errors: list[str] = field(default_factory=list)
    events: list[EntryEvent] = field(default_factory=list)

    def record(self, event: EntryEvent) -> None:
        self.events.append(event)

    @property
    def skipped(self) -> bool:
        return self.status in SKIPPED_STATUSES


@dataclass
class RunCounters:
    total_ntfs: int = 0
    fixed_count: int = 0
    error_count: int = 0
    skipped_count: int = 0

    def add(self, result: EntryResult) -> None:
        """Adds an entry result to the counters.
        Skipped entries only count towards skipped_count."""
        if result.skipped:
            self.skipped_count += 1
            return

        self.total_ntfs += 1
        if result.error_detected:
            self.error_count += 1
        if result.repaired:
            self.fixed_count += 1
