# This file is part of nvmeraid. See LICENSE for copyright and license info.

import os
from collections import namedtuple

from nvmeraid import block
from nvmeraid import util
from nvmeraid.log import LOG

FstabData = namedtuple(
    "FstabData", ('spec', 'path', 'fstype', 'options', 'freq', 'passno',
                  'device'))
FstabData.__new__.__defaults__ = (None, None, None, "", "0", "0", None)

# the volume is not needed to boot; do not drop to emergency mode without it
BOOT_OPTIONS = ("nofail",)


def fstab_line_for_data(fdata):
    """Return a string representing fdata in /etc/fstab format.

    :param fdata: a FstabData type
    :return a newline terminated string for /etc/fstab."""
    if not fdata.path:
        raise ValueError("empty path in %s." % str(fdata))
    if not fdata.spec:
        raise ValueError("empty spec in %s." % str(fdata))

    options = fdata.options if fdata.options else "defaults"

    comment = None
    if fdata.device:
        comment = "# %s was on %s during nvmeraid setup" % (fdata.path,
                                                            fdata.device)

    entry = ' '.join((fdata.spec, fdata.path, fdata.fstype, options,
                      fdata.freq, fdata.passno)) + "\n"
    return '\n'.join([comment, entry] if comment else [entry])


def _spec_uuid(spec):
    if spec.startswith("UUID="):
        return spec[len("UUID="):].strip('"\'')
    if spec.startswith("/dev/disk/by-uuid/"):
        return os.path.basename(spec)
    return None


def _load_fstab(fstab):
    # a missing fstab reads as empty
    try:
        return util.load_file(fstab)
    except (IOError, OSError) as e:
        if not util.is_file_not_found_exc(e):
            raise
        return ""


def _has_uuid(content, uuid):
    for line in content.splitlines():
        fields = line.split()
        if not fields or fields[0].startswith('#'):
            continue
        if _spec_uuid(fields[0]) == uuid:
            return True
    return False


def fstab_has_uuid(fstab, uuid):
    """Return True if an active line of fstab mounts filesystem uuid."""
    return _has_uuid(_load_fstab(fstab), uuid)


def add_fstab_entry(fstab, fdata, uuid):
    """Append fdata to fstab unless filesystem uuid is already listed.

    :return: True if a line was appended."""
    content = _load_fstab(fstab)
    if _has_uuid(content, uuid):
        LOG.debug('%s already has an entry for UUID=%s', fstab, uuid)
        return False
    LOG.info('Adding mount to %s', fstab)
    entry = fstab_line_for_data(fdata)
    if content and not content.endswith("\n"):
        entry = "\n" + entry
    # appending keeps the existing owner and permissions
    util.write_file(fstab, entry, omode="a", mode=None)
    return True


def mount_volume(device, mount_point, fstab="/etc/fstab", fstype="xfs",
                 options="defaults,noatime"):
    """Mount device at mount_point and record it in fstab by its uuid.

    Nothing is done if mount_point is already a mount point or if device is
    mounted somewhere else.

    :return: True if device was mounted by this call.
    """
    util.ensure_dir(mount_point)

    if util.is_mounted(mount_point):
        LOG.info('%s is already mounted', mount_point)
        return False

    current = util.list_device_mounts(device)
    if current:
        LOG.warning('Device %s is already mounted at %s', device,
                    ' '.join(current))
        return False

    LOG.info('Mounting %s at %s', device, mount_point)
    util.do_mount(device, mount_point, opts=['-o', options])

    # record the filesystem that is actually on the device
    actual = block.get_fstype(device)
    if actual and actual != fstype:
        LOG.warning('%s carries %s, not %s', device, actual, fstype)
    fstype = actual or fstype

    uuid = block.get_volume_uuid(device)
    if not uuid:
        LOG.warning('No filesystem UUID found for %s, not adding it to %s',
                    device, fstab)
        return True

    fstab_options = ",".join(
        [options] + [o for o in BOOT_OPTIONS if o not in options.split(",")])
    fdata = FstabData(spec="UUID=%s" % uuid, path=mount_point, fstype=fstype,
                      options=fstab_options, freq="0", passno="2",
                      device=device)
    add_fstab_entry(fstab, fdata, uuid)
    return True

# vi: ts=4 expandtab syntax=python
