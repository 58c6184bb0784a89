# This file is part of nvmeraid. See LICENSE for copyright and license info.

# Discovery of instance-store NVMe namespaces.  udev's /dev/disk/by-id
# links are the primary source; 'nvme list' from nvme-cli is consulted
# only when no link matches.  Discovery never raises: anything that goes
# wrong while looking is reported and treated as "nothing found".

import fnmatch
import json
import os
import re
import typing

import attr

from nvmeraid import util
from nvmeraid.block import DeviceSet, dev_path
from nvmeraid.log import LOG

# by-id links for partitions end in -partN
_PARTITION_LINK = re.compile(r'-part[0-9]+$')


@attr.s(auto_attribs=True, frozen=True)
class NvmeDevice:
    path: str
    model: str = ''
    serial: str = ''


def by_id_candidates(by_id_dir, patterns) -> typing.List[str]:
    """Return the by-id links in by_id_dir whose names match any of the
    glob patterns.  Links to partitions are skipped."""
    try:
        entries = sorted(os.listdir(by_id_dir))
    except OSError as e:
        LOG.debug('Unable to list %s: %s', by_id_dir, e)
        return []

    found = []
    for name in entries:
        if _PARTITION_LINK.search(name):
            continue
        if not any(fnmatch.fnmatchcase(name, pat) for pat in patterns):
            continue
        link = os.path.join(by_id_dir, name)
        if not os.path.islink(link):
            continue
        found.append(link)
    LOG.debug('by-id matches in %s for %s: %s', by_id_dir, patterns, found)
    return found


def _walk_namespaces(entry, model='', serial=''):
    # nvme-cli 2.x nests Subsystems -> Controllers -> Namespaces
    model = entry.get('ModelNumber', model)
    serial = entry.get('SerialNumber', serial)
    if entry.get('DevicePath'):
        yield NvmeDevice(entry['DevicePath'], model, serial)
    if entry.get('NameSpace') and isinstance(entry['NameSpace'], str):
        yield NvmeDevice(dev_path(entry['NameSpace']), model, serial)
    for key in ('Subsystems', 'Controllers', 'Namespaces'):
        for child in entry.get(key) or []:
            if isinstance(child, dict):
                yield from _walk_namespaces(child, model, serial)


def parse_nvme_list(output) -> typing.List[NvmeDevice]:
    """Convert 'nvme list -o json' output into NvmeDevice records.

    Both the flat nvme-cli 1.x layout and the nested 2.x layout are
    accepted.  Raises ValueError on output that is not a json object."""
    try:
        data = json.loads(output) if output.strip() else {}
    except ValueError as e:
        raise ValueError("Unable to parse nvme list output: %s" % e)
    if not isinstance(data, dict):
        raise ValueError("Unexpected nvme list output: %s" % output)

    devices = []
    for entry in data.get('Devices') or []:
        if isinstance(entry, dict):
            devices.extend(_walk_namespaces(entry))
    return devices


def nvme_list():
    out, _err = util.subp(['nvme', 'list', '-o', 'json'], capture=True)
    return parse_nvme_list(out)


def nvme_list_candidates(model) -> typing.List[str]:
    """Return the device paths 'nvme list' reports with 'model' in their
    model string."""
    try:
        devices = nvme_list()
    except (util.ProcessExecutionError, ValueError) as e:
        LOG.warning('nvme list failed, no devices found: %s', e)
        return []
    return [d.path for d in devices if model in d.model]


def discover_instance_store(setup_cfg) -> DeviceSet:
    """Return the DeviceSet of instance-store devices on this host.

    An empty DeviceSet means no eligible storage is present."""
    candidates = by_id_candidates(setup_cfg.by_id_dir,
                                  setup_cfg.by_id_patterns)

    if not candidates and util.which('nvme'):
        LOG.warning('Falling back to nvme list for device discovery')
        candidates = nvme_list_candidates(setup_cfg.nvme_model)

    try:
        devices = DeviceSet.from_paths(candidates)
    except OSError as e:
        LOG.warning('Unable to resolve candidate devices %s: %s',
                    candidates, e)
        return DeviceSet(())
    LOG.debug('discovered devices: %s', list(devices))
    return devices

# vi: ts=4 expandtab syntax=python
