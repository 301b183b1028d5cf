__author__ = "ntfsmend contributors"
__version__ = "1.0.0"

from pathlib import Path
from shutil import which
from subprocess import CompletedProcess, TimeoutExpired, run

from zenlib.logging import loggify
from zenlib.util import colorize as c_

# Return codes used by the shell for these conditions
RC_TIMEOUT = 124
RC_NOT_EXECUTABLE = 126
RC_NOT_FOUND = 127


@loggify
class CommandRunner:
    """Runs external commands and answers questions about the host.

    Every method is a seam for tests, which pass a fake runner to NTFSMender
    so no real device or tool is touched.

    Commands never raise. A missing executable returns 127, one which cannot be executed returns 126
    and a timeout returns 124, matching what a shell would report.
    Output which is not valid in the locale encoding is decoded with replacement characters.
    """

    def __init__(self, timeout=300, *args, **kwargs):
        self.timeout = timeout

    def run(self, args: list[str], timeout=None) -> CompletedProcess:
        """Runs a command, capturing text output.
        Undecodable bytes in the output are replaced."""
        timeout = timeout or self.timeout
        cmd_args = [str(arg) for arg in args]
        try:
            return run(cmd_args, capture_output=True, text=True, errors="replace", timeout=timeout)
        except TimeoutExpired:
            self.logger.error("[%ds] Command timed out: %s" % (timeout, c_(" ".join(cmd_args), "red", bright=True)))
            return CompletedProcess(cmd_args, RC_TIMEOUT, "", "Timed out after %d seconds" % timeout)
        except FileNotFoundError:
            self.logger.error("Command not found: %s" % c_(cmd_args[0], "red", bright=True))
            return CompletedProcess(cmd_args, RC_NOT_FOUND, "", "%s: command not found" % cmd_args[0])
        except OSError as e:
            self.logger.error("Unable to execute %s: %s" % (c_(cmd_args[0], "red", bright=True), e))
            return CompletedProcess(cmd_args, RC_NOT_EXECUTABLE, "", "%s: %s" % (cmd_args[0], e.strerror or e))

    def is_block_device(self, path) -> bool:
        return Path(path).is_block_device()

    def which(self, name: str) -> bool:
        """Checks if a tool exists in PATH."""
        return which(name) is not None
