__author__ = "ntfsmend contributors"
__version__ = "1.0.0"

from dataclasses import dataclass, field
from re import sub

from zenlib.util import colorize as c_
from zenlib.util import pretty_print

from ntfsmend.exceptions import FstabError


@dataclass(frozen=True)
class FstabEntry:
    device_spec: str
    mount_point: str
    fstype: str = "auto"
    options: list[str] = field(default_factory=lambda: ["defaults"], compare=False)
    dump: int = 0
    passno: int = 0

    def __str__(self) -> str:
        return "%s %s %s" % (self.device_spec, self.mount_point, self.fstype)


def _unescape(value: str) -> str:
    """Decodes fstab octal escapes, such as \\040 for a space."""
    return sub(r"\\([0-7]{3})", lambda match: chr(int(match.group(1), 8)), value)


def parse_fstab_line(line: str) -> FstabEntry:
    """Parses a single fstab line.
    Returns None for blank lines and comments.
    Raises an FstabError if the line has fewer than two fields or invalid dump/pass values.
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None

    fields = line.split()
    if len(fields) < 2:
        raise FstabError("Not enough fields in fstab line: %s" % line)

    device_spec, mount_point = _unescape(fields[0]), _unescape(fields[1])
    fstype = fields[2] if len(fields) > 2 else "auto"
    options = fields[3].split(",") if len(fields) > 3 else ["defaults"]
    try:
        dump = int(fields[4]) if len(fields) > 4 else 0
        passno = int(fields[5]) if len(fields) > 5 else 0
    except ValueError as e:
        raise FstabError("Invalid dump/pass field in fstab line: %s" % line) from e

    return FstabEntry(device_spec, mount_point, fstype, options, dump, passno)


def read_fstab(self) -> list[FstabEntry]:
    """Reads all entries from self['fstab_file'].
    Malformed lines are logged and skipped.
    An unreadable fstab is logged as an error and treated as empty.
    """
    fstab_file = self["fstab_file"]
    try:
        lines = fstab_file.read_text().splitlines()
    except OSError as e:
        self.logger.error("Unable to read fstab '%s': %s" % (c_(fstab_file, "red"), e))
        return []

    entries = []
    for line_number, line in enumerate(lines, start=1):
        try:
            if entry := parse_fstab_line(line):
                entries.append(entry)
        except FstabError as e:
            self.logger.warning("[%s:%d] %s" % (fstab_file, line_number, e))

    self.logger.debug("[%s] Parsed fstab entries:\n%s" % (fstab_file, pretty_print([str(e) for e in entries])))
    return entries


def is_ntfs_fstype(self, fstype: str) -> bool:
    """Checks if an fstab filesystem type names an NTFS driver."""
    fstype = fstype.lower()
    return "ntfs" in fstype or fstype in self["ntfs_types"]


def get_ntfs_entries(self) -> list[FstabEntry]:
    """Returns the fstab entries which use an NTFS filesystem type."""
    entries = [entry for entry in read_fstab(self) if is_ntfs_fstype(self, entry.fstype)]
    self.logger.info("Found %s NTFS entries in: %s" % (c_(len(entries), "cyan"), self["fstab_file"]))
    return entries
