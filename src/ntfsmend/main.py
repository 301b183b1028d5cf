#!/usr/bin/env python

from zenlib.util import get_args_n_logger, get_kwargs_from_args

from ntfsmend.exceptions import ValidationError
from ntfsmend.mender import NTFSMender


def main():
    arguments = [{'flags': ['-c', '--config'], 'action': 'store', 'help': 'set the config file location'},
                 {'flags': ['--fstab'], 'action': 'store', 'help': 'set the fstab file to check', 'dest': 'fstab_file'},
                 {'flags': ['--log-path'], 'action': 'store', 'help': 'set the run log file location', 'dest': 'log_file'},
                 {'flags': ['--lastrun-path'], 'action': 'store', 'help': 'set the last run marker location', 'dest': 'lastrun_file'},
                 {'flags': ['--startup-delay'], 'action': 'store', 'help': 'seconds to wait before checking mounts'},
                 {'flags': ['--settle-delay'], 'action': 'store', 'help': 'seconds to wait after repairs and lazy unmounts'},
                 {'flags': ['--dmesg-lines'], 'action': 'store', 'help': 'number of recent kernel log lines to scan'},
                 {'flags': ['--mount-all'], 'action': 'store_true', 'help': "run 'mount -a' after checking entries"},
                 {'flags': ['--no-mount-all'], 'action': 'store_false', 'help': "don't run 'mount -a'", 'dest': 'mount_all'},
                 {'flags': ['--print-config'], 'action': 'store_true', 'help': 'print the final config dict'}]

    args, logger = get_args_n_logger(package=__package__, description='NTFS mount checker and repair helper', arguments=arguments, drop_default=True)
    kwargs = get_kwargs_from_args(args, logger=logger)
    print_config = kwargs.pop('print_config', False)  # This is not a valid kwarg for NTFSMender

    logger.debug(f"Using the following kwargs: {kwargs}")
    try:
        mender = NTFSMender(**kwargs)
    except (ValueError, ValidationError) as e:
        logger.critical("Invalid configuration: %s" % e)
        exit(1)

    if print_config:
        print(mender.config_dict)

    try:
        mender.run()
    except Exception as e:
        logger.error(e, exc_info=True)
        exit(1)


if __name__ == '__main__':
    main()
