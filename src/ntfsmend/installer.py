__author__ = "ntfsmend contributors"
__version__ = "1.0.0"

from pathlib import Path
from shutil import which

from zenlib.logging import loggify
from zenlib.util import colorize as c_
from zenlib.util import get_args_n_logger, get_kwargs_from_args

from .mender_helpers import MenderHelpers
from .runner import CommandRunner

SERVICE_NAME = "ntfsmend.service"

# Tools the service needs, and the package providing them
REQUIRED_TOOLS = {
    "ntfsfix": "ntfs-3g",
    "blkid": "util-linux",
    "mountpoint": "util-linux",
}

PACKAGE_MANAGERS = {
    "pacman": ["pacman", "-Sy", "--noconfirm"],
    "apt-get": ["apt-get", "install", "-y"],
    "dnf": ["dnf", "install", "-y"],
}

UNIT_TEMPLATE = """[Unit]
Description=NTFS mount checker and repair helper
After=local-fs.target

[Service]
Type=oneshot
ExecStart={exec_path}

[Install]
WantedBy=multi-user.target"""


@loggify
class ServiceInstaller(MenderHelpers):
    """Installs the tools ntfsmend needs, and a systemd unit which runs it once per boot."""

    def __init__(self, unit_dir="/etc/systemd/system", exec_path=None, package_manager="pacman", start=True, runner=None, *args, **kwargs):
        if package_manager not in PACKAGE_MANAGERS:
            raise ValueError("Unsupported package manager: %s" % package_manager)
        self.unit_dir = Path(unit_dir)
        self.exec_path = exec_path or which("ntfsmend") or "/usr/local/bin/ntfsmend"
        self.package_manager = package_manager
        self.start = start
        self.runner = runner or CommandRunner(logger=self.logger)

    @property
    def unit_path(self) -> Path:
        return self.unit_dir / SERVICE_NAME

    def missing_packages(self) -> list[str]:
        """Returns the packages providing required tools which are not in PATH."""
        packages = []
        for tool, package in REQUIRED_TOOLS.items():
            if self.runner.which(tool):
                self.logger.debug("Found required tool: %s" % tool)
                continue
            self.logger.warning("[%s] Required tool not found, package needed: %s" % (c_(tool, "yellow"), package))
            if package not in packages:
                packages.append(package)
        return packages

    def install_dependencies(self) -> None:
        if packages := self.missing_packages():
            self._log_run("Installing packages: %s" % ", ".join(packages))
            self._run([*PACKAGE_MANAGERS[self.package_manager], *packages], fail_hard=True, log_output=True)
        else:
            self.logger.info("All required tools are installed.")

    def generate_unit(self) -> str:
        return UNIT_TEMPLATE.format(exec_path=self.exec_path)

    def install_unit(self) -> None:
        self._log_run("Installing systemd unit")
        self._write(self.unit_path, self.generate_unit())

    def enable_service(self) -> None:
        self._log_run("Enabling service")
        self._run(["systemctl", "daemon-reload"], fail_hard=True)
        self._run(["systemctl", "enable", SERVICE_NAME], fail_hard=True)
        if self.start:
            self._run(["systemctl", "start", SERVICE_NAME], fail_hard=True)
        else:
            self.logger.info("Not starting the service, it will run at next boot.")

    def install(self) -> None:
        self.install_dependencies()
        self.install_unit()
        self.enable_service()
        self.logger.info("Installation complete.")
        self.logger.info("  Status: systemctl status %s" % SERVICE_NAME.removesuffix(".service"))
        self.logger.info("  Logs: journalctl -u %s -f" % SERVICE_NAME.removesuffix(".service"))
        self.logger.info("  Run log: tail -f /var/log/ntfsmend.log")
        self.logger.info("  Run manually: %s" % self.exec_path)


def main():
    arguments = [{'flags': ['--unit-dir'], 'action': 'store', 'help': 'set the systemd unit directory'},
                 {'flags': ['--exec-path'], 'action': 'store', 'help': 'set the ntfsmend executable used by the unit'},
                 {'flags': ['--package-manager'], 'action': 'store', 'help': 'package manager used to install missing tools: %s' % ', '.join(PACKAGE_MANAGERS)},
                 {'flags': ['--no-start'], 'action': 'store_false', 'help': "don't start the service after enabling it", 'dest': 'start'}]

    args, logger = get_args_n_logger(package=__package__, description='ntfsmend service installer', arguments=arguments, drop_default=True)
    kwargs = get_kwargs_from_args(args, logger=logger)

    try:
        ServiceInstaller(**kwargs).install()
    except (RuntimeError, OSError, ValueError) as e:
        logger.critical("Installation failed: %s" % e)
        exit(1)


if __name__ == '__main__':
    main()
