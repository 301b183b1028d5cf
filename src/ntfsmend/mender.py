__author__ = "ntfsmend contributors"
__version__ = "1.0.0"

from datetime import datetime
from tomllib import TOMLDecodeError, load

from zenlib.logging import loggify
from zenlib.util import colorize as c_

from .fs.blkid import get_fs_type, resolve_device
from .fs.dmesg import check_kernel_log
from .fs.fstab import FstabEntry, get_ntfs_entries
from .fs.mounts import is_mounted, mount_all, mount_entry, safe_umount
from .fs.ntfs import is_ntfs_type, repair_device
from .mender_dict import MenderConfigDict
from .mender_helpers import MenderHelpers
from .results import EntryEvent, EntryResult, EntryStatus, RunCounters
from .runner import CommandRunner


@loggify
class NTFSMender(MenderHelpers):
    """Checks NTFS fstab entries, repairs and remounts those which are unmounted or reporting errors.

    Config values are accessible with mender["key"] or mender.key.
    Pass runner= to replace the CommandRunner used for every external command.
    """

    def __init__(self, config="/etc/ntfsmend/config.toml", runner=None, *args, **kwargs):
        self.config_dict = MenderConfigDict(logger=self.logger)
        self.results = []

        try:  # Attempt to load the config file, if it exists
            self.load_config(config)
        except FileNotFoundError:
            if config:  # If a config file was specified, log that it's missing
                self.logger.warning("[%s] Config file not found, using the default config." % config)
            else:
                self.logger.info("No config file specified, using the default config.")
        except TOMLDecodeError as e:
            raise ValueError("[%s] Error decoding config file: %s" % (config, e))

        self.config_dict.import_args(kwargs)  # Passed kwargs are applied over the config file
        self.config_dict.validate()

        self.runner = runner or CommandRunner(logger=self.logger, timeout=self["timeout"])

    def load_config(self, config_filename) -> None:
        """Loads the config from the specified toml file into self.config_dict."""
        if not config_filename:
            raise FileNotFoundError("Config file not specified.")

        with open(config_filename, "rb") as config_file:
            self.logger.info("Loading config file: %s" % c_(config_file.name, "blue", bold=True, bright=True))
            raw_config = load(config_file)

        for config, value in raw_config.items():
            self.logger.debug("[%s] (%s) Processing config value: %s" % (config_file.name, config, value))
            try:
                self[config] = value
            except KeyError as e:
                raise ValueError("[%s] Unknown config parameter '%s': %s" % (config_file.name, config, e))

        self.logger.debug("Loaded config:\n%s" % self.config_dict)

    #  If the mender is used as a dictionary, it will use the config_dict.
    def __setitem__(self, key, value):
        self.config_dict[key] = value

    def __getitem__(self, item):
        return self.config_dict[item]

    def __contains__(self, item):
        return item in self.config_dict

    def get(self, item, default=None):
        return self.config_dict.get(item, default)

    def __getattr__(self, item):
        """Allows access to the config dict via the NTFSMender object."""
        if item != "config_dict" and item in self.config_dict:
            return self[item]
        raise AttributeError("'%s' object has no attribute '%s'" % (self.__class__.__name__, item))

    def run(self) -> RunCounters:
        """Runs a full check of all NTFS fstab entries.
        Always finishes with 'mount -a' and the last run marker, whatever happened to the entries."""
        log_handler = self._attach_log_file(self["log_file"])
        try:
            self._log_run("Starting NTFS mount check")
            self._settle(self["startup_delay"], "startup")

            counters = RunCounters()
            self.results = []
            for entry in get_ntfs_entries(self):
                try:
                    result = self.process_entry(entry)
                except Exception as e:
                    result = self._entry_failed(entry, e)
                self.results.append(result)
                counters.add(result)

            mount_all(self)
            self.report(counters)
            self.write_lastrun()
            return counters
        finally:
            self._detach_log_file(log_handler)

    def process_entry(self, entry: FstabEntry) -> EntryResult:
        """Checks a single fstab entry, repairing and remounting it if needed."""
        result = EntryResult(entry)
        result.device = device = resolve_device(self, entry.device_spec)
        mount_point = entry.mount_point

        if not self.runner.is_block_device(device):
            self.logger.warning("Device not found, skipping: %s" % c_(device, "yellow"))
            return self._finish(result, EntryStatus.MISSING, EntryEvent.SKIPPED_MISSING)

        if not is_ntfs_type(self, fstype := get_fs_type(self, device)):
            self.logger.info("[%s] Not an NTFS device, skipping: %s" % (device, fstype or "unknown"))
            return self._finish(result, EntryStatus.NOT_NTFS, EntryEvent.SKIPPED_NOT_NTFS)

        self.logger.info("Processing: %s -> %s" % (c_(device, "cyan"), c_(mount_point, "blue")))
        result.record(EntryEvent.PROCESSING)

        if is_mounted(self, mount_point):
            result.record(EntryEvent.MOUNTED)
            self.logger.info("Mounted: %s" % c_(mount_point, "green"))
            if not (kernel_errors := check_kernel_log(self, device)):
                self.logger.info("[%s] No kernel log errors, leaving mounted." % device)
                return self._finish(result, EntryStatus.HEALTHY, EntryEvent.HEALTHY)
            self.logger.warning("Kernel log reports problems for: %s" % c_(device, "yellow", bold=True))
            result.kernel_errors = kernel_errors
            result.record(EntryEvent.KERNEL_ERRORS)
            result.record(EntryEvent.UNMOUNT)
            safe_umount(self, mount_point)
        else:
            self.logger.warning("Not mounted: %s" % c_(mount_point, "yellow", bold=True))
            result.record(EntryEvent.NOT_MOUNTED)
        result.error_detected = True

        result.record(EntryEvent.REPAIR_ATTEMPT)
        if not repair_device(self, device):
            return self._finish(result, EntryStatus.REPAIR_FAILED, EntryEvent.REPAIR_FAILED)
        result.repaired = True
        result.record(EntryEvent.REPAIR_OK)
        self._settle(self["settle_delay"], "repair")

        result.record(EntryEvent.MOUNT_ATTEMPT)
        result.mounted = mount_entry(self, entry, device)
        if result.mounted:
            return self._finish(result, EntryStatus.REPAIRED, EntryEvent.MOUNT_OK)
        return self._finish(result, EntryStatus.MOUNT_FAILED, EntryEvent.MOUNT_FAILED)

    def _entry_failed(self, entry: FstabEntry, error: Exception) -> EntryResult:
        """Logs an unexpected error while processing an entry, so the rest of the run continues."""
        self.logger.error("[%s] Unexpected error while processing entry: %s" % (c_(entry.mount_point, "red"), error), exc_info=True)
        result = EntryResult(entry, error_detected=True)
        return self._finish(result, EntryStatus.FAILED, EntryEvent.FAILED)

    def _finish(self, result: EntryResult, status: EntryStatus, event: EntryEvent) -> EntryResult:
        result.status = status
        result.record(event)
        self.logger.debug("[%s] Finished with status: %s" % (result.entry.mount_point, status.value))
        return result

    def report(self, counters: RunCounters) -> None:
        """Logs the run counters."""
        self._log_run("Final report")
        self.logger.info("NTFS volumes checked: %s" % c_(counters.total_ntfs, "cyan"))
        self.logger.info("Entries with problems: %s" % c_(counters.error_count, "yellow"))
        self.logger.info("Entries repaired: %s" % c_(counters.fixed_count, "green"))
        if counters.skipped_count:
            self.logger.info("Entries skipped: %s" % counters.skipped_count)
        self._log_run("Check complete")

    def write_lastrun(self) -> None:
        """Writes the current time to the last run marker."""
        try:
            self._write(self["lastrun_file"], datetime.now().isoformat(timespec="seconds"))
        except OSError as e:
            self.logger.error("Unable to write last run marker '%s': %s" % (c_(self["lastrun_file"], "red"), e))

    def __str__(self) -> str:
        return str(self.config_dict)
