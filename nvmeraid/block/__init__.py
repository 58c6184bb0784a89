# This file is part of nvmeraid. See LICENSE for copyright and license info.

import os
import shlex
import stat
import typing

import attr

from nvmeraid import util
from nvmeraid.log import LOG


def get_dev_name_entry(devname):
    """
    convert device name to path in /dev
    """
    bname = devname.split('/dev/')[-1]
    return (bname, "/dev/" + bname)


def is_block_device(path):
    """
    check if path is a block device
    """
    try:
        return stat.S_ISBLK(os.stat(path).st_mode)
    except OSError as e:
        if not util.is_file_not_found_exc(e):
            raise
    return False


def dev_short(devname):
    """
    get short form of device name
    """
    devname = os.path.normpath(devname)
    if os.path.sep in devname:
        return os.path.basename(devname)
    return devname


def dev_path(devname):
    """
    convert device name to path in /dev
    """
    if devname.startswith('/dev/'):
        return devname
    else:
        return '/dev/' + devname


def path_to_kname(path):
    """
    converts a path in /dev or a path in /sys/block to the device kname,
    resolving symlinks such as /dev/md/name
    """
    return dev_short(os.path.realpath(path))


def canonical_path(path):
    """Return the real device node for path, collapsing all symlinks."""
    return os.path.realpath(path)


@attr.s(frozen=True)
class DeviceSet:
    """Sorted, duplicate free collection of canonical block device paths.

    Member order is the order devices are given to the array, so it must
    only depend on the set of devices present.  Use from_paths() to build
    one."""
    paths: typing.Tuple[str, ...] = attr.ib(converter=tuple)

    @paths.validator
    def _check_paths(self, attribute, value):
        if list(value) != sorted(set(value)):
            raise ValueError(
                "DeviceSet paths must be sorted and unique: %s" % (value,))

    @classmethod
    def from_paths(cls, paths):
        return cls(sorted(set(canonical_path(p) for p in paths)))

    def __len__(self):
        return len(self.paths)

    def __iter__(self):
        return iter(self.paths)

    def __getitem__(self, index):
        return self.paths[index]

    def __bool__(self):
        return bool(self.paths)


def _lsblock_pairs_to_dict(lines):
    """
    parse lsblock output and convert to dict
    """
    ret = {}
    for line in lines.splitlines():
        toks = shlex.split(line)
        cur = {}
        for tok in toks:
            k, v = tok.split("=", 1)
            cur[k] = v
        # use KNAME, as NAME may include spaces and other info,
        # for example, lvm decices may show 'dm0 lvm1'
        cur['device_path'] = get_dev_name_entry(cur['KNAME'])[1]
        ret[cur['KNAME']] = cur
    return ret


def _lsblock(args=None):
    """
    get lsblock data as dict
    """
    keys = ['FSTYPE', 'KNAME', 'LABEL', 'MOUNTPOINT', 'NAME', 'SIZE',
            'TYPE', 'UUID']
    if args is None:
        args = []
    args = [x.replace('!', '/') for x in args]

    basecmd = ['lsblk', '--noheadings', '--bytes', '--pairs',
               '--output=' + ','.join(keys)]
    (out, _err) = util.subp(basecmd + list(args), capture=True)
    out = out.replace('!', '/')
    return _lsblock_pairs_to_dict(out)


def get_fstype(devpath):
    """
    Return the filesystem type lsblk reports for devpath or any of its
    children (partitions, holders), or '' if there is none.

    The device's own entry wins over its children.
    """
    info = _lsblock([devpath])
    kname = path_to_kname(devpath)
    own = info.get(kname, {}).get('FSTYPE', '')
    if own:
        return own
    for name in sorted(info):
        fstype = info[name].get('FSTYPE', '')
        if fstype:
            LOG.debug('%s has a %s filesystem on %s', devpath, fstype, name)
            return fstype
    return ''


def get_volume_uuid(path):
    """
    Get the filesystem uuid of device at path. This address uniquely
    identifies the filesystem and remains consistent across reboots, unlike
    the kernel device name.
    """
    (out, _err) = util.subp(["blkid", "-o", "export", path], capture=True,
                            rcs=[0, 2])
    for line in out.splitlines():
        if line.startswith("UUID="):
            return line.split('=', 1)[1].strip()
    return ''


# vi: ts=4 expandtab syntax=python
