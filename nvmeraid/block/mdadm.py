# This file is part of nvmeraid. See LICENSE for copyright and license info.

# This module wraps calls to the mdadm utility for creating and examining
# the Linux SoftRAID array built from instance-store devices.  Functions
# prefixed with 'mdadm_' involve executing the 'mdadm' command in a
# subprocess.  The remaining functions handle the mdadm output and the
# idempotent assembly of the array.

import os
import re
import time

from nvmeraid.block import DeviceSet, is_block_device
from nvmeraid import udev
from nvmeraid import util
from nvmeraid.log import LOG, logged_time

MD_DIR = '/dev/md'

NOSPARE_RAID_LEVELS = [
    'linear', 'raid0', '0', 0,
]

#
# mdadm executors
#


def mdadm_create(md_devname, raidlevel, devices, md_name=""):
    LOG.debug('mdadm_create: md_devname=%s raidlevel=%s devices=%s name=%s',
              md_devname, raidlevel, devices, md_name)

    assert_valid_devpath(md_devname)

    if raidlevel not in NOSPARE_RAID_LEVELS:
        raise ValueError('Invalid raidlevel: [{}]'.format(raidlevel))

    if len(devices) < 2:
        raise ValueError('Not enough devices for raidlevel: %s '
                         'minimum devices needed: 2' % raidlevel)

    cmd = ["mdadm", "--create", "--force", "--run", "--verbose",
           md_devname,
           "--level=%s" % raidlevel,
           "--raid-devices=%s" % len(devices)]
    if md_name:
        cmd.append("--name=%s" % md_name)
    cmd.extend(devices)

    # output is not captured so mdadm's own diagnostics reach the user
    util.subp(cmd)
    udev.udevadm_settle(exists=md_devname)


def mdadm_query_detail(md_devname):
    ''' execute mdadm --detail and parse the output into a dictionary'''
    assert_valid_devpath(md_devname)
    (out, _err) = util.subp(["mdadm", "--detail", md_devname], capture=True)
    return mdadm_detail_to_dict(out)


def mdadm_detail_scan():
    (out, _err) = util.subp(["mdadm", "--detail", "--scan"], capture=True)
    return out


# ------------------------------ #
def valid_devpath(devpath):
    if devpath:
        return devpath.startswith('/dev')
    return False


def assert_valid_devpath(devpath):
    if not valid_devpath(devpath):
        raise ValueError("Invalid devpath: '%s'" % devpath)


def mdadm_detail_to_dict(output):
    ''' Convert mdadm --detail output to dictionary

    /dev/md/local_raid:
               Version : 1.2
         Creation Time : Tue Mar  4 10:00:00 2025
            Raid Level : raid0
            Array Size : 3515625472 (3.27 TiB 3.60 TB)
          Raid Devices : 2
         Total Devices : 2
           Persistence : Superblock is persistent

           Update Time : Tue Mar  4 10:00:00 2025
                 State : clean, resyncing
        Active Devices : 2

                  Name : ip-10-0-0-1:local_raid  (local to host ip-10-0-0-1)
                  UUID : 6c4e4d9e:0f0b2a11:7b0a4a6c:1d9f0e21

        Number   Major   Minor   RaidDevice State
           0     259        0        0      active sync   /dev/nvme1n1

    becomes {'device': '/dev/md/local_raid', 'version': '1.2',
             'state': 'clean, resyncing', 'raid_level': 'raid0', ...}
    The member device table is not included.
    '''
    data = {}

    device = re.findall(r'^(/dev/[a-zA-Z0-9-\._/]+):', output, re.MULTILINE)
    if device:
        data['device'] = device[0]

    for line in output.splitlines():
        if ' : ' not in line:
            continue
        key, val = line.split(' : ', 1)
        key = key.strip().replace(' ', '_').lower()
        if key and key not in data:
            data[key] = val.strip()

    return data


def md_is_resyncing(md_devname):
    """Return True if mdadm reports md_devname as resyncing.

    An array whose state cannot be read is reported as not resyncing."""
    try:
        detail = mdadm_query_detail(md_devname)
    except util.ProcessExecutionError as e:
        LOG.debug('Unable to read state of %s: %s', md_devname, e.stderr)
        return False
    return 'resyncing' in detail.get('state', '').lower()


def find_existing_array(name, md_dir=MD_DIR):
    """Return the path of an existing array named 'name', or None.

    /dev/md/<name> is preferred.  mdadm appends a suffix (for example
    '_0') when the array was created under another homehost, so entries
    matching <name>_?[0-9a-z]* are also accepted; the most recently
    created of those is returned."""
    md_devname = os.path.join(md_dir, name)
    if is_block_device(md_devname):
        LOG.info('RAID device %s already exists', md_devname)
        return md_devname

    suffixed = re.compile(r'^%s_?[0-9a-z]*$' % re.escape(name))
    try:
        entries = os.listdir(md_dir)
    except OSError as e:
        if not util.is_file_not_found_exc(e):
            raise
        return None

    matches = []
    for entry in entries:
        path = os.path.join(md_dir, entry)
        if not suffixed.match(entry) or not os.path.islink(path):
            continue
        matches.append((os.lstat(path).st_mtime, entry, path))

    if not matches:
        return None

    existing = sorted(matches)[-1][2]
    LOG.info('Found existing RAID device: %s', existing)
    return existing


@logged_time("RESYNC_WAIT")
def wait_for_resync(md_devname, timeout, interval, sleep=time.sleep,
                    clock=time.monotonic):
    LOG.info('Waiting for RAID initialization...')
    done = util.wait_until(lambda: not md_is_resyncing(md_devname),
                           timeout, interval, sleep=sleep, clock=clock)
    if not done:
        LOG.warning('RAID initialization taking longer than expected, '
                    'continuing anyway')
    return done


def write_md_config(md_config):
    util.write_file(md_config, mdadm_detail_scan())
    LOG.info('RAID configuration saved to %s', md_config)


def assemble_raid(devices, name, md_config, timeout=60, interval=1,
                  md_dir=MD_DIR, sleep=time.sleep, clock=time.monotonic):
    """Return the md device striping 'devices', creating it if needed.

    :param devices: DeviceSet of at least two devices.  The array members
                    are given to mdadm in DeviceSet order.
    :param name: array name, the array is /dev/md/<name>.
    :param md_config: path the 'mdadm --detail --scan' descriptor of a
                      newly created array is written to.
    :param timeout: seconds to wait for the initial resync.
    :param interval: seconds between resync checks.
    """
    if not isinstance(devices, DeviceSet):
        devices = DeviceSet.from_paths(devices)
    if len(devices) < 2:
        raise ValueError('RAID assembly needs at least 2 devices, got %s' %
                         list(devices))

    existing = find_existing_array(name, md_dir=md_dir)
    if existing:
        return existing

    md_devname = os.path.join(md_dir, name)
    LOG.info('Creating RAID-0 array with %s device(s)', len(devices))
    LOG.info('Devices: %s', ' '.join(devices))
    mdadm_create(md_devname, 0, list(devices), md_name=name)

    wait_for_resync(md_devname, timeout, interval, sleep=sleep, clock=clock)
    write_md_config(md_config)
    return md_devname


# vi: ts=4 expandtab syntax=python
