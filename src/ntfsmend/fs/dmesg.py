__author__ = "ntfsmend contributors"
__version__ = "1.0.0"

from pathlib import Path
from re import IGNORECASE, compile, escape

from zenlib.util import colorize as c_


def find_device_errors(lines: list[str], device: str, keywords: list[str]) -> list[str]:
    """Returns kernel log lines which mention ntfs, the device's base name, and any of the keywords.
    All matching is case-insensitive."""
    device_name = Path(device).name.lower()
    keyword_pattern = compile("|".join(escape(keyword) for keyword in keywords), IGNORECASE)
    return [
        line
        for line in lines
        if "ntfs" in line.lower() and device_name in line.lower() and keyword_pattern.search(line)
    ]


def get_kernel_log(self) -> list[str]:
    """Returns the last self['dmesg_lines'] lines of the kernel ring buffer.
    Returns an empty list if dmesg cannot be read."""
    ret = self._run(["dmesg", "-T"], fail_silent=True)
    if ret.returncode != 0:
        self.logger.warning("Unable to read the kernel log, dmesg returned: %d" % ret.returncode)
        return []
    return ret.stdout.splitlines()[-self["dmesg_lines"] :]


def check_kernel_log(self, device: str) -> list[str]:
    """Checks recent kernel log lines for NTFS errors on the device.
    A non-empty return means errors were found."""
    if errors := find_device_errors(get_kernel_log(self), device, self["error_keywords"]):
        for line in errors:
            self.logger.warning("[%s] Kernel log: %s" % (c_(device, "yellow"), line))
    else:
        self.logger.debug("No kernel log errors for: %s" % device)
    return errors
