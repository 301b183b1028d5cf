__author__ = "ntfsmend contributors"
__version__ = "1.0.0"

from zenlib.util import colorize as c_

# Source tags which can be resolved with blkid, and the arguments used for them
BLKID_TAG_ARGS = {
    "UUID": ["-U"],
    "LABEL": ["-L"],
}
BLKID_TOKEN_TAGS = ["PARTUUID", "PARTLABEL"]


def _split_tag(device_spec: str) -> tuple[str, str]:
    """Splits a TAG=value source into its parts, removing quotes around the value.
    Returns (None, device_spec) if the source is not a tag."""
    tag, sep, value = device_spec.partition("=")
    if not sep or tag.upper() not in [*BLKID_TAG_ARGS, *BLKID_TOKEN_TAGS]:
        return None, device_spec
    return tag.upper(), value.strip("\"'")


def resolve_device(self, device_spec: str) -> str:
    """Resolves an fstab source to a device path.

    UUID= and LABEL= use blkid -U and -L, PARTUUID= and PARTLABEL= use blkid -t.
    If resolution fails, the source is returned unchanged.
    """
    tag, value = _split_tag(device_spec)
    if not tag:
        return device_spec

    if tag in BLKID_TAG_ARGS:
        args = ["blkid", *BLKID_TAG_ARGS[tag], value]
    else:
        args = ["blkid", "-t", f"{tag}={value}", "-o", "device"]

    ret = self._run(args, fail_silent=True)
    device = ret.stdout.strip().split("\n")[0] if ret.returncode == 0 else ""
    if not device:
        self.logger.warning("Unable to resolve device source: %s" % c_(device_spec, "yellow"))
        return device_spec

    self.logger.debug("Resolved device: %s -> %s" % (device_spec, c_(device, "cyan")))
    return device


def get_fs_type(self, device: str) -> str:
    """Gets the filesystem type of a device using blkid.
    Returns an empty string if blkid does not know the device."""
    ret = self._run(["blkid", "-s", "TYPE", "-o", "value", device], fail_silent=True)
    if ret.returncode != 0:
        self.logger.debug("[%s] blkid returned no type, code: %d" % (device, ret.returncode))
        return ""
    return ret.stdout.strip()
