# This file is part of nvmeraid. See LICENSE for copyright and license info.
"""Print the nvmeraid version."""

import sys
from .. import version
from . import populate_one_subcmd


def version_main(args):
    sys.stdout.write(version.version_string() + "\n")
    return 0


CMD_ARGUMENTS = (
    (tuple())
)


def POPULATE_SUBCMD(parser):
    populate_one_subcmd(parser, CMD_ARGUMENTS, version_main)
    parser.description = __doc__

# vi: ts=4 expandtab syntax=python
