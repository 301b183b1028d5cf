__author__ = "ntfsmend contributors"
__version__ = "1.0.0"

from zenlib.util import colorize as c_
from zenlib.util import contains

from .fstab import FstabEntry


def is_mounted(self, mount_point: str) -> bool:
    """Checks if the mount point is an active mount using 'mountpoint -q'."""
    return self._run(["mountpoint", "-q", mount_point], fail_silent=True).returncode == 0


def safe_umount(self, mount_point: str) -> bool:
    """Unmounts the mount point if it is mounted.
    If a normal unmount fails, a lazy unmount is attempted, and False is returned
    without checking whether the lazy unmount finished.
    """
    if not is_mounted(self, mount_point):
        self.logger.debug("Not mounted, nothing to unmount: %s" % mount_point)
        return True

    self.logger.info("Unmounting: %s" % c_(mount_point, "blue"))
    if self._run(["umount", mount_point]).returncode == 0:
        self.logger.info("Unmounted: %s" % c_(mount_point, "green"))
        return True

    self.logger.warning("Unable to unmount normally, trying lazy unmount: %s" % c_(mount_point, "yellow"))
    self._run(["umount", "-l", mount_point])
    self._settle(self["settle_delay"], "lazy unmount")
    return False


def mount_entry(self, entry: FstabEntry, device: str) -> bool:
    """Mounts an fstab entry using the options in the fstab.
    If that fails, retries once with the fstab filesystem type passed explicitly.
    """
    self.logger.info("Mounting: %s" % c_(entry.mount_point, "blue"))
    if self._run(["mount", entry.mount_point], log_output=True).returncode == 0:
        self.logger.info("Mounted: %s" % c_(entry.mount_point, "green"))
        return True

    self.logger.warning("Mount failed, retrying with type '%s': %s" % (entry.fstype, entry.mount_point))
    if self._run(["mount", "-t", entry.fstype, device, entry.mount_point], log_output=True).returncode == 0:
        self.logger.info("[%s] Mounted with type: %s" % (c_(entry.mount_point, "green"), entry.fstype))
        return True

    self.logger.error("All mount attempts failed: %s" % c_(entry.mount_point, "red", bold=True))
    return False


@contains("mount_all", "Skipping 'mount -a', mount_all is disabled.", log_level=30)
def mount_all(self) -> bool:
    """Runs 'mount -a' so everything in the fstab is mounted."""
    self._log_run("Running 'mount -a'")
    return self._run(["mount", "-a"], log_output=True).returncode == 0
