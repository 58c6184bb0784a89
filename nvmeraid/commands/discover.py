# This file is part of nvmeraid. See LICENSE for copyright and license info.
"""List the NVMe instance store devices setup would use, one per line."""

import sys

from nvmeraid import config
from nvmeraid import util
from nvmeraid.block import nvme
from . import populate_one_subcmd


def discover_main(args):
    setup_cfg = config.load_setup_config(getattr(args, 'config', None))
    devices = nvme.discover_instance_store(setup_cfg)
    if args.json:
        sys.stdout.write(util.json_dumps(list(devices)) + "\n")
    elif devices:
        sys.stdout.write("\n".join(devices) + "\n")
    return 0


CMD_ARGUMENTS = (
    ((('--json',),
      {'help': 'print devices as a json list',
       'action': 'store_true', 'default': False}),
     )
)


def POPULATE_SUBCMD(parser):
    populate_one_subcmd(parser, CMD_ARGUMENTS, discover_main)
    parser.description = __doc__

# vi: ts=4 expandtab syntax=python
