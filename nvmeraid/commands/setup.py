# This file is part of nvmeraid. See LICENSE for copyright and license info.
"""Stripe, format and mount the NVMe instance store devices of this host.

Safe to run repeatedly: steps that are already done are skipped."""

import argparse
import sys
from contextlib import contextmanager
import typing

import attr

from nvmeraid import config
from nvmeraid import deps
from nvmeraid import util
from nvmeraid.block import DeviceSet
from nvmeraid.block import mdadm, mkfs, mount, nvme
from nvmeraid.log import LOG
from . import populate_one_subcmd

# terminal states of a run
STATE_NONE_FOUND = 'none-found'
STATE_DONE = 'done'

# stages, in the order they run
STAGE_DISCOVERING = 'discovering'
STAGE_ASSEMBLING = 'assembling'
STAGE_DIRECT = 'direct'
STAGE_FORMATTING = 'formatting'
STAGE_MOUNTING = 'mounting'


@attr.s(auto_attribs=True, frozen=True)
class SetupResult:
    state: str
    devices: DeviceSet
    target: typing.Optional[str] = None
    stages: typing.Tuple[str, ...] = ()


@contextmanager
def run_stage(name):
    with util.LogTimer(LOG.debug, 'stage %s' % name):
        try:
            yield
        except Exception:
            LOG.error('setup failed in stage %s', name)
            raise


def report_usage(mount_point):
    try:
        size, free = util.get_fs_use_info(mount_point)
    except OSError as e:
        LOG.debug('Unable to stat %s: %s', mount_point, e)
        return
    LOG.info('%s: size %s, free %s', mount_point, util.bytes2human(size),
             util.bytes2human(free))


def setup_raid(setup_cfg):
    """Bring the instance store devices to a mounted filesystem.

    :param setup_cfg: a config.SetupConfig
    :return: SetupResult.  Errors from any stage propagate unchanged.
    """
    stages = []

    with run_stage(STAGE_DISCOVERING):
        stages.append(STAGE_DISCOVERING)
        devices = nvme.discover_instance_store(setup_cfg)

    if not devices:
        LOG.warning('No NVMe instance store devices found, skipping setup')
        return SetupResult(STATE_NONE_FOUND, devices, None, tuple(stages))

    LOG.info('Found %s NVMe instance store device(s)', len(devices))

    if len(devices) > 1:
        with run_stage(STAGE_ASSEMBLING):
            stages.append(STAGE_ASSEMBLING)
            target = mdadm.assemble_raid(
                devices, setup_cfg.raid_name, setup_cfg.md_config,
                timeout=setup_cfg.resync_timeout,
                interval=setup_cfg.resync_interval)
    else:
        stages.append(STAGE_DIRECT)
        target = devices[0]
        LOG.info('Single device found, using directly: %s', target)

    with run_stage(STAGE_FORMATTING):
        stages.append(STAGE_FORMATTING)
        mkfs.format_volume(target, fstype=setup_cfg.fstype)

    with run_stage(STAGE_MOUNTING):
        stages.append(STAGE_MOUNTING)
        mount.mount_volume(target, setup_cfg.mount_point,
                           fstab=setup_cfg.fstab, fstype=setup_cfg.fstype,
                           options=setup_cfg.mount_options)

    LOG.info('Setup complete!')
    report_usage(setup_cfg.mount_point)
    return SetupResult(STATE_DONE, devices, target, tuple(stages))


def setup_main(args):
    setup_cfg = config.load_setup_config(
        getattr(args, 'config', None),
        overrides={'mount_point': args.dir, 'raid_name': args.name})

    LOG.info('Mount point: %s', setup_cfg.mount_point)
    LOG.info('RAID name: %s', setup_cfg.raid_name)

    if not util.is_root():
        sys.stderr.write("This command must be run as root\n")
        return 1

    missing = deps.find_missing_deps(setup_cfg.fstype)
    if missing:
        for e in missing:
            LOG.error('%s', e)
        sys.stderr.write("Missing dependencies, re-run with --install-deps\n")
        return 1

    setup_raid(setup_cfg)
    return 0


CMD_ARGUMENTS = (
    ((('-d', '--dir'),
      {'help': ('mount point directory (default: %s)' %
                config.DEFAULT_MOUNT_POINT),
       'metavar': 'DIR', 'action': 'store', 'default': None}),
     (('-n', '--name'),
      {'help': 'RAID array name (default: %s)' % config.DEFAULT_RAID_NAME,
       'metavar': 'NAME', 'action': 'store', 'default': None}),
     (('-c', '--config'),
      {'help': 'read setup configuration from yaml FILE',
       'metavar': 'FILE', 'type': argparse.FileType("rb"),
       'action': util.MergedCmdAppend, 'dest': 'cfgopts',
       'default': None}),
     (('--set',),
      {'help': ('define a config variable. key is a "/" delimited path '
                '("setup/fstype=ext4"). if key starts with "json:" then val '
                'is loaded as json (json:setup/resync_timeout=120)'),
       'metavar': 'key=val', 'action': util.MergedCmdAppend,
       'dest': 'cfgopts', 'default': None}),
     )
)


def POPULATE_SUBCMD(parser):
    populate_one_subcmd(parser, CMD_ARGUMENTS, setup_main)
    parser.description = __doc__

# vi: ts=4 expandtab syntax=python
