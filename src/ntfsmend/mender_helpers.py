__author__ = "ntfsmend contributors"
__version__ = "1.0.0"

from logging import FileHandler, Formatter
from pathlib import Path
from re import sub
from subprocess import CompletedProcess
from time import sleep
from typing import Union

from zenlib.util import colorize as c_

LOG_FORMAT = "[%(asctime)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class PlainFormatter(Formatter):
    """Formatter for log files, strips ANSI color codes added by colorize."""

    def format(self, record) -> str:
        return sub(r"\x1b\[[0-9;]*m", "", super().format(record))


class MenderHelpers:
    """Mixin class for NTFSMender and ServiceInstaller.
    Requires self.runner and self.logger."""

    def _run(self, args: list[str], timeout=None, fail_silent=False, fail_hard=False, log_output=False) -> CompletedProcess:
        """Runs a command with self.runner, returns the CompletedProcess object.
        If fail_silent is set, non-zero return codes will not log stderr/stdout.
        If fail_hard is set, non-zero return codes will raise a RuntimeError.
        If log_output is set, output of successful commands is logged at the info level.
        """

        def print_err(ret) -> None:
            self.logger.error("[%d] Failed command: %s" % (ret.returncode, c_(" ".join(cmd_args), "red", bright=True)))
            if stdout := ret.stdout:
                self.logger.error("Command output:\n%s" % stdout.rstrip())
            if stderr := ret.stderr:
                self.logger.error("Command error:\n%s" % stderr.rstrip())

        cmd_args = [str(arg) for arg in args]
        self.logger.debug("Running command: %s" % " ".join(cmd_args))
        cmd = self.runner.run(cmd_args, timeout=timeout)

        if cmd.returncode != 0:
            if not fail_silent:
                print_err(cmd)
            if fail_hard:
                raise RuntimeError("Failed to run command: %s" % " ".join(cmd_args))
        elif log_output and (output := (cmd.stdout or "") + (cmd.stderr or "")):
            self.logger.info("[%s] Command output:\n%s" % (cmd_args[0], output.rstrip()))

        return cmd

    def _write(self, file_path: Union[Path, str], contents: Union[list[str], str], chmod_mask=0o644) -> None:
        """Writes a file, replacing any existing contents.
        Creates parent directories if they do not exist, then sets the passed chmod_mask."""
        file_path = Path(file_path)
        if not file_path.parent.is_dir():
            self.logger.debug("Creating parent directory: %s" % file_path.parent)
            file_path.parent.mkdir(parents=True)

        if isinstance(contents, list):
            contents = "\n".join(contents)
        if not contents.endswith("\n"):
            contents += "\n"

        if file_path.is_file():
            self.logger.debug("Overwriting file: %s" % file_path)

        self.logger.debug("[%s] Writing contents:\n%s" % (file_path, contents))
        file_path.write_text(contents)
        file_path.chmod(chmod_mask)
        self.logger.info("Wrote file: %s" % c_(file_path, "green", bright=True))

    def _settle(self, delay: float, reason: str) -> None:
        """Sleeps for the delay, if it is set, so mounts can settle."""
        if not delay:
            return
        self.logger.debug("[%s] Waiting %s seconds" % (reason, delay))
        sleep(delay)

    def _attach_log_file(self, log_file: Union[Path, str]) -> FileHandler:
        """Adds an append mode file handler to self.logger.
        Returns None if the log file cannot be opened."""
        log_file = Path(log_file)
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handler = FileHandler(log_file, mode="a")
        except OSError as e:
            self.logger.warning("Unable to open log file '%s': %s" % (c_(log_file, "yellow"), e))
            return None

        handler.setFormatter(PlainFormatter(LOG_FORMAT, LOG_DATE_FORMAT))
        self.logger.addHandler(handler)
        self.logger.debug("Logging to file: %s" % log_file)
        return handler

    def _detach_log_file(self, handler: FileHandler) -> None:
        if handler is None:
            return
        self.logger.removeHandler(handler)
        handler.close()

    def _log_run(self, logline) -> None:
        self.logger.info(f"-- | {c_(logline, 'blue', bold=True)}")
