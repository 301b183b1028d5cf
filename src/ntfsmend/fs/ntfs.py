__author__ = "ntfsmend contributors"
__version__ = "1.0.0"

from zenlib.util import colorize as c_


def is_ntfs_type(self, fstype: str) -> bool:
    """Checks if a blkid filesystem type is an NTFS variant."""
    return fstype.lower() in self["ntfs_types"]


def repair_device(self, device: str) -> bool:
    """Runs the repair command against the device, which must not be mounted.
    Returns True if the command reports success."""
    args = [self["repair_command"], *self["repair_flags"], device]
    self.logger.info("Running %s on: %s" % (c_(self["repair_command"], bold=True), c_(device, "blue")))
    if self._run(args, log_output=True).returncode == 0:
        self.logger.info("Repaired: %s" % c_(device, "green"))
        return True
    self.logger.error("Repair failed: %s" % c_(device, "red", bold=True))
    return False
