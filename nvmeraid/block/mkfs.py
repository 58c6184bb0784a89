# This file is part of nvmeraid. See LICENSE for copyright and license info.

# This module wraps calls to mkfs.<fstype> and determines the appropriate flags
# for each filesystem type

import os

from nvmeraid import util
from nvmeraid import block
from nvmeraid.log import LOG

mkfs_commands = {
    "ext4": "mkfs.ext4",
    "xfs": "mkfs.xfs",
}

specific_to_family = {
    "ext4": "ext",
}

# flag that makes mkfs overwrite existing signatures, per fs family
force_flags = {
    "ext": "-F",
    "xfs": "-f",
}

# The default md chunk (512KiB) exceeds the largest xfs log stripe unit
# (256KiB), which makes mkfs.xfs warn and fall back to 32KiB.  A log stripe
# unit of 8 blocks is valid for any chunk size.
XFS_LOG_STRIPE_UNIT = "su=8b"


def mkfs(path, fstype, force=False):
    """Make filesystem on block device with given path using given fstype and
       appropriate flags for filesystem family.

       xfs filesystems get a log stripe unit that is safe on striped arrays.

       Force can be specified to force the mkfs command to continue even if it
       finds old data on the device.
       """

    if path is None:
        raise ValueError("invalid block dev path '%s'" % path)
    if not os.path.exists(path):
        raise ValueError("'%s': no such file or directory" % path)

    fs_family = specific_to_family.get(fstype, fstype)
    mkfs_cmd = mkfs_commands.get(fstype)
    if not mkfs_cmd:
        raise ValueError("unsupported fs type '%s'" % fstype)

    if util.which(mkfs_cmd) is None:
        raise ValueError("need '%s' but it could not be found" % mkfs_cmd)

    cmd = [mkfs_cmd]
    if force:
        cmd.append(force_flags[fs_family])
    if fs_family == "xfs":
        cmd.extend(["-l", XFS_LOG_STRIPE_UNIT])
    cmd.append(path)

    # output is not captured so mkfs's own diagnostics reach the user
    util.subp(cmd)


def format_volume(path, fstype="xfs"):
    """Create an fstype filesystem on path unless it already has one.

    :return: True if a filesystem was created, False if path already
             carried a filesystem and was left alone.
    """
    existing = block.get_fstype(path)
    if existing:
        LOG.info('Device %s already formatted as %s', path, existing)
        return False

    LOG.info('Formatting %s with %s', path, fstype.upper())
    # nothing was found on the device, so force past stale signatures
    # that lsblk does not report (old md superblocks and the like)
    mkfs(path, fstype, force=True)
    return True

# vi: ts=4 expandtab syntax=python
