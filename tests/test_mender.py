from logging import FileHandler
from pathlib import Path
from re import match
from tempfile import TemporaryDirectory
from unittest import TestCase, main

from fake_runner import FakeRunner
from ntfsmend import EntryEvent, EntryStatus, NTFSMender
from zenlib.logging import loggify

DATA_FSTAB = """# /etc/fstab
UUID=0a1b2c3d / ext4 defaults 0 1
UUID=ABCD /mnt/data ntfs defaults 0 0
"""

DIRTY_DMESG = """[Fri Oct 16 09:00:01 2026] usb 2-1: new SuperSpeed USB device number 2
[Fri Oct 16 09:00:02 2026] ntfs3: sdb1: volume is dirty and "force" flag is not set!
"""

CLEAN_DMESG = """[Fri Oct 16 09:00:01 2026] usb 2-1: new SuperSpeed USB device number 2
[Fri Oct 16 09:00:02 2026] ntfs3: sdb1: Mounted.
"""


def data_responses(overrides=None) -> dict:
    """Responses for DATA_FSTAB, where the NTFS volume is healthy but not mounted."""
    responses = {
        ("blkid", "-U", "ABCD"): "/dev/sdb1\n",
        ("blkid", "-s", "TYPE", "-o", "value", "/dev/sdb1"): "ntfs\n",
        ("mountpoint", "-q", "/mnt/data"): 1,
        ("dmesg", "-T"): CLEAN_DMESG,
        ("ntfsfix", "-d", "/dev/sdb1"): "Mounting volume... OK\nNTFS partition /dev/sdb1 was processed successfully.\n",
        ("umount", "/mnt/data"): 0,
        ("mount", "/mnt/data"): 0,
        ("mount", "-a"): 0,
    }
    responses.update(overrides or {})
    return responses


@loggify
class TestNTFSMender(TestCase):
    def setUp(self):
        self.tmpdir = TemporaryDirectory()
        self.tmp = Path(self.tmpdir.name)

    def tearDown(self):
        self.tmpdir.cleanup()

    def make_mender(self, runner, fstab=DATA_FSTAB, **kwargs) -> NTFSMender:
        fstab_file = self.tmp / "fstab"
        fstab_file.write_text(fstab)
        kwargs = {
            "fstab_file": fstab_file,
            "log_file": self.tmp / "ntfsmend.log",
            "lastrun_file": self.tmp / "ntfsmend.lastrun",
            "startup_delay": 0,
            "settle_delay": 0,
            **kwargs,
        }
        return NTFSMender(logger=self.logger, config=None, runner=runner, **kwargs)

    def test_unmounted_volume_repaired(self):
        """An unmounted NTFS volume referenced by UUID is repaired and mounted."""
        runner = FakeRunner(data_responses(), block_devices=["/dev/sdb1"])
        mender = self.make_mender(runner)
        counters = mender.run()

        self.assertEqual(counters.total_ntfs, 1)
        self.assertEqual(counters.error_count, 1)
        self.assertEqual(counters.fixed_count, 1)

        result = mender.results[0]
        self.assertEqual(result.device, "/dev/sdb1")
        self.assertEqual(result.status, EntryStatus.REPAIRED)
        self.assertTrue(result.mounted)
        self.assertEqual(
            [e for e in result.events if e in (EntryEvent.PROCESSING, EntryEvent.NOT_MOUNTED, EntryEvent.REPAIR_ATTEMPT, EntryEvent.MOUNT_ATTEMPT)],
            [EntryEvent.PROCESSING, EntryEvent.NOT_MOUNTED, EntryEvent.REPAIR_ATTEMPT, EntryEvent.MOUNT_ATTEMPT],
        )
        self.assertEqual(result.events[-1], EntryEvent.MOUNT_OK)
        self.assertFalse(runner.ran("umount", "/mnt/data"))
        self.assertTrue(runner.ran("mount", "-a"))

    def test_healthy_mount_untouched(self):
        """A mounted volume without kernel log errors is not unmounted or repaired."""
        runner = FakeRunner(data_responses({("mountpoint", "-q", "/mnt/data"): 0}), block_devices=["/dev/sdb1"])
        mender = self.make_mender(runner)
        counters = mender.run()

        self.assertEqual(mender.results[0].status, EntryStatus.HEALTHY)
        self.assertEqual(counters.total_ntfs, 1)
        self.assertEqual(counters.error_count, 0)
        self.assertEqual(counters.fixed_count, 0)
        self.assertFalse(any(call[0] in ("umount", "ntfsfix") for call in runner.calls))
        self.assertFalse(runner.ran("mount", "/mnt/data"))

    def test_kernel_errors_remediated(self):
        """A mounted volume with dirty flag messages in dmesg is unmounted, repaired and remounted."""
        responses = data_responses({("mountpoint", "-q", "/mnt/data"): 0, ("dmesg", "-T"): DIRTY_DMESG})
        runner = FakeRunner(responses, block_devices=["/dev/sdb1"])
        mender = self.make_mender(runner)
        counters = mender.run()

        result = mender.results[0]
        self.assertEqual(result.status, EntryStatus.REPAIRED)
        self.assertEqual(len(result.kernel_errors), 1)
        self.assertIn(EntryEvent.KERNEL_ERRORS, result.events)
        self.assertEqual(counters.error_count, 1)
        self.assertEqual(counters.fixed_count, 1)

        umount = runner.calls.index(["umount", "/mnt/data"])
        repair = runner.calls.index(["ntfsfix", "-d", "/dev/sdb1"])
        remount = runner.calls.index(["mount", "/mnt/data"])
        self.assertLess(umount, repair)
        self.assertLess(repair, remount)

    def test_lazy_unmount_fallback(self):
        """If unmounting fails, a lazy unmount is used and the repair still runs."""
        responses = data_responses(
            {
                ("mountpoint", "-q", "/mnt/data"): 0,
                ("dmesg", "-T"): DIRTY_DMESG,
                ("umount", "/mnt/data"): 32,
                ("umount", "-l", "/mnt/data"): 0,
            }
        )
        runner = FakeRunner(responses, block_devices=["/dev/sdb1"])
        mender = self.make_mender(runner)
        mender.run()

        self.assertTrue(runner.ran("umount", "-l", "/mnt/data"))
        self.assertTrue(runner.ran("ntfsfix", "-d", "/dev/sdb1"))

    def test_missing_device_skipped(self):
        """Entries whose device does not exist are skipped without touching the counters."""
        runner = FakeRunner(data_responses({("blkid", "-U", "ABCD"): 2}))
        mender = self.make_mender(runner)
        counters = mender.run()

        result = mender.results[0]
        self.assertEqual(result.device, "UUID=ABCD")
        self.assertEqual(result.status, EntryStatus.MISSING)
        self.assertEqual((counters.total_ntfs, counters.error_count, counters.fixed_count), (0, 0, 0))
        self.assertEqual(counters.skipped_count, 1)
        self.assertFalse(any(call[0] in ("umount", "ntfsfix", "mountpoint") for call in runner.calls))

    def test_not_ntfs_skipped(self):
        """Entries whose device is not NTFS according to blkid are skipped."""
        runner = FakeRunner(
            data_responses({("blkid", "-s", "TYPE", "-o", "value", "/dev/sdb1"): "exfat\n"}), block_devices=["/dev/sdb1"]
        )
        mender = self.make_mender(runner)
        counters = mender.run()

        self.assertEqual(mender.results[0].status, EntryStatus.NOT_NTFS)
        self.assertEqual(counters.total_ntfs, 0)
        self.assertEqual(counters.skipped_count, 1)
        self.assertFalse(runner.ran("ntfsfix", "-d", "/dev/sdb1"))

    def test_repair_failure(self):
        """A failed repair is counted as an error, not a fix, and no mount is attempted."""
        runner = FakeRunner(data_responses({("ntfsfix", "-d", "/dev/sdb1"): 1}), block_devices=["/dev/sdb1"])
        mender = self.make_mender(runner)
        counters = mender.run()

        result = mender.results[0]
        self.assertEqual(result.status, EntryStatus.REPAIR_FAILED)
        self.assertNotIn(EntryEvent.MOUNT_ATTEMPT, result.events)
        self.assertEqual(counters.error_count, 1)
        self.assertEqual(counters.fixed_count, 0)
        self.assertFalse(runner.ran("mount", "/mnt/data"))
        self.assertTrue(runner.ran("mount", "-a"))

    def test_unexpected_error(self):
        """An exception while processing an entry is logged, and the sweep and marker still run."""
        error = PermissionError(13, "Permission denied", "ntfsfix")
        runner = FakeRunner(data_responses({("ntfsfix", "-d", "/dev/sdb1"): error}), block_devices=["/dev/sdb1"])
        mender = self.make_mender(runner)
        counters = mender.run()

        result = mender.results[0]
        self.assertEqual(result.status, EntryStatus.FAILED)
        self.assertEqual(result.events, [EntryEvent.FAILED])
        self.assertEqual((counters.total_ntfs, counters.error_count, counters.fixed_count), (1, 1, 0))
        self.assertTrue(runner.ran("mount", "-a"))
        self.assertTrue((self.tmp / "ntfsmend.lastrun").exists())

    def test_mount_type_fallback(self):
        """When mounting by mount point fails, the fstab type is passed explicitly."""
        responses = data_responses({("mount", "/mnt/data"): 32, ("mount", "-t", "ntfs", "/dev/sdb1", "/mnt/data"): 0})
        runner = FakeRunner(responses, block_devices=["/dev/sdb1"])
        mender = self.make_mender(runner)
        mender.run()

        self.assertEqual(mender.results[0].status, EntryStatus.REPAIRED)
        self.assertTrue(runner.ran("mount", "-t", "ntfs", "/dev/sdb1", "/mnt/data"))

    def test_mount_failure(self):
        """A repaired volume which can't be mounted still counts as fixed."""
        responses = data_responses({("mount", "/mnt/data"): 32, ("mount", "-t", "ntfs", "/dev/sdb1", "/mnt/data"): 32})
        runner = FakeRunner(responses, block_devices=["/dev/sdb1"])
        mender = self.make_mender(runner)
        counters = mender.run()

        self.assertEqual(mender.results[0].status, EntryStatus.MOUNT_FAILED)
        self.assertEqual(counters.fixed_count, 1)

    def test_multiple_entries(self):
        """Each entry is processed independently, a skipped entry doesn't stop the loop."""
        fstab = DATA_FSTAB + "LABEL=Games /mnt/games ntfs3 uid=1000,gid=1000 0 0\n/dev/sdc1 /mnt/old ntfs-3g defaults 0 0\n"
        responses = data_responses(
            {
                ("blkid", "-L", "Games"): "/dev/sdd1\n",
                ("blkid", "-s", "TYPE", "-o", "value", "/dev/sdd1"): "ntfs\n",
                ("mountpoint", "-q", "/mnt/games"): 0,
            }
        )
        runner = FakeRunner(responses, block_devices=["/dev/sdb1", "/dev/sdd1"])
        mender = self.make_mender(runner)
        counters = mender.run()

        self.assertEqual([r.status for r in mender.results], [EntryStatus.REPAIRED, EntryStatus.HEALTHY, EntryStatus.MISSING])
        self.assertEqual(counters.total_ntfs, 2)
        self.assertEqual(counters.error_count, 1)
        self.assertEqual(counters.fixed_count, 1)
        self.assertEqual(counters.skipped_count, 1)

    def test_lastrun_without_entries(self):
        """The last run marker is written even when there are no NTFS entries."""
        lastrun = self.tmp / "ntfsmend.lastrun"
        lastrun.write_text("old\n")
        runner = FakeRunner({("mount", "-a"): 0})
        mender = self.make_mender(runner, fstab="UUID=0a1b2c3d / ext4 defaults 0 1\n")
        counters = mender.run()

        self.assertEqual(counters.total_ntfs, 0)
        self.assertNotEqual(lastrun.read_text(), "old\n")
        self.assertTrue(match(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}", lastrun.read_text()))

    def test_missing_fstab(self):
        """An unreadable fstab still results in 'mount -a' and a last run marker."""
        runner = FakeRunner({("mount", "-a"): 0})
        mender = self.make_mender(runner, fstab_file=self.tmp / "missing")
        mender.run()

        self.assertEqual(mender.results, [])
        self.assertTrue(runner.ran("mount", "-a"))
        self.assertTrue((self.tmp / "ntfsmend.lastrun").exists())

    def test_no_mount_all(self):
        """Disabling mount_all skips 'mount -a'."""
        runner = FakeRunner({})
        mender = self.make_mender(runner, fstab="", mount_all=False)
        mender.run()

        self.assertEqual(runner.calls, [])
        self.assertTrue((self.tmp / "ntfsmend.lastrun").exists())

    def test_log_file(self):
        """Run logs are appended to the log file with timestamps and without color codes."""
        self.logger.setLevel(20)
        log_file = self.tmp / "ntfsmend.log"
        log_file.write_text("[2026-01-01 00:00:00] previous run\n")
        runner = FakeRunner(data_responses(), block_devices=["/dev/sdb1"])
        mender = self.make_mender(runner)
        mender.run()

        lines = log_file.read_text().splitlines()
        self.assertEqual(lines[0], "[2026-01-01 00:00:00] previous run")
        self.assertTrue(any("Processing: /dev/sdb1 -> /mnt/data" in line for line in lines))
        self.assertTrue(any("NTFS volumes checked: 1" in line for line in lines))
        self.assertTrue(all(match(r"\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] ", line) for line in lines if line.startswith("[")))
        self.assertNotIn("\x1b", log_file.read_text())
        self.assertFalse(any(isinstance(handler, FileHandler) for handler in mender.logger.handlers))


if __name__ == "__main__":
    main()
