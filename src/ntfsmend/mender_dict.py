__author__ = "ntfsmend contributors"
__version__ = "1.0.0"

from collections import UserDict
from pathlib import Path

from zenlib.logging import loggify
from zenlib.types import NoDupFlatList
from zenlib.util import colorize, handle_plural, pretty_print

from .exceptions import ValidationError


@loggify
class MenderConfigDict(UserDict):
    """
    Dict for ntfsmend config

    Parameters must be registered in builtin_parameters, setting anything else raises a KeyError.
    List parameters are appended to, not replaced, everything else is cast to the registered type.
    Once validated, the config refuses changes.
    """

    builtin_parameters = {
        "fstab_file": Path,  # The mount table to read entries from
        "log_file": Path,  # Append-only run log
        "lastrun_file": Path,  # Timestamp marker written at the end of every run
        "ntfs_types": NoDupFlatList,  # blkid filesystem types treated as NTFS
        "error_keywords": NoDupFlatList,  # Kernel log words which indicate a problem
        "dmesg_lines": int,  # Number of recent kernel log lines to scan
        "repair_command": str,
        "repair_flags": NoDupFlatList,
        "startup_delay": float,  # Seconds to wait before checking, so systemd mounts settle
        "settle_delay": float,  # Seconds to wait after repairs and lazy unmounts
        "timeout": int,  # Per command timeout
        "mount_all": bool,  # Run 'mount -a' after processing entries
    }

    defaults = {
        "fstab_file": "/etc/fstab",
        "log_file": "/var/log/ntfsmend.log",
        "lastrun_file": "/var/run/ntfsmend.lastrun",
        "ntfs_types": ["ntfs", "ntfs-3g", "ntfs3"],
        "error_keywords": ["error", "fail", "dirty", "corrupt"],
        "dmesg_lines": 50,
        "repair_command": "ntfsfix",
        "repair_flags": ["-d"],
        "startup_delay": 5,
        "settle_delay": 2,
        "timeout": 300,
        "mount_all": True,
    }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.data["validated"] = False
        for parameter, default_type in self.builtin_parameters.items():
            if default_type == NoDupFlatList:
                self.data[parameter] = default_type(no_warn=True, _log_bump=5, logger=self.logger)
        for parameter, value in self.defaults.items():
            self[parameter] = value

    def import_args(self, args: dict, quiet=False) -> None:
        """Imports data from an argument dict, unregistered arguments are ignored."""
        log_level = 10 if quiet else 20
        for arg, value in args.items():
            if arg not in self.builtin_parameters:
                self.logger.warning("Ignoring unknown argument: %s" % colorize(arg, "yellow"))
                continue
            self.logger.log(log_level, f"[{colorize(arg, 'blue')}] Setting from arguments: {colorize(value, 'green')}")
            self[arg] = value

    def __setitem__(self, key: str, value) -> None:
        if self["validated"]:
            return self.logger.error(
                "[%s] Config is validated, refusing to set value: %s" % (key, colorize(value, "red"))
            )
        self.handle_parameter(key, value)

    def handle_parameter(self, key: str, value) -> None:
        """
        Sets a config parameter based on its registered type.
        Raises a KeyError if the parameter is not registered.

        Uses _process_<key> functions if they are defined, otherwise uses the standard setters.
        """
        if not (expected_type := self.builtin_parameters.get(key)):
            raise KeyError("Parameter not registered: %s" % key)

        if hasattr(self, f"_process_{key}"):
            self.logger.log(5, "[%s] Using builtin setitem: %s" % (key, f"_process_{key}"))
            return getattr(self, f"_process_{key}")(value)

        if expected_type is NoDupFlatList:  # Append to lists, don't replace
            self.logger.log(5, "Using list setitem for: %s" % key)
            return self[key].append(value)

        self.logger.debug("[%s] Setting parameter: %s" % (key, value))
        try:
            self.data[key] = expected_type(value)
        except (TypeError, ValueError) as e:
            raise ValidationError("[%s] Invalid value for type %s: %s" % (key, expected_type.__name__, value)) from e

    @handle_plural
    def _process_ntfs_types(self, fs_type: str) -> None:
        """Adds a filesystem type, types are compared in lower case."""
        self["ntfs_types"].append(fs_type.lower())

    def _process_dmesg_lines(self, lines: int) -> None:
        if int(lines) < 1:
            raise ValidationError("dmesg_lines must be at least 1: %s" % lines)
        self.data["dmesg_lines"] = int(lines)

    def _process_timeout(self, timeout: int) -> None:
        if int(timeout) < 1:
            raise ValidationError("timeout must be at least 1 second: %s" % timeout)
        self.data["timeout"] = int(timeout)

    def _process_startup_delay(self, delay: float) -> None:
        if float(delay) < 0:
            raise ValidationError("startup_delay cannot be negative: %s" % delay)
        self.data["startup_delay"] = float(delay)

    def _process_settle_delay(self, delay: float) -> None:
        if float(delay) < 0:
            raise ValidationError("settle_delay cannot be negative: %s" % delay)
        self.data["settle_delay"] = float(delay)

    def _process_mount_all(self, mount_all: bool) -> None:
        if not isinstance(mount_all, bool):
            raise ValidationError("mount_all must be a boolean: %s" % mount_all)
        self.data["mount_all"] = mount_all

    def validate(self) -> None:
        """Validates the config, sets the validated flag."""
        if not self["ntfs_types"]:
            raise ValidationError("No NTFS filesystem types are defined.")
        if not self["repair_command"]:
            raise ValidationError("No repair command is defined.")
        self.data["validated"] = True

    def __str__(self) -> str:
        return pretty_print(self.data)
