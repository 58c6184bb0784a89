# This file is part of nvmeraid. See LICENSE for copyright and license info.

import os

from nvmeraid.util import (
    ProcessExecutionError,
    subp,
    which,
)
from nvmeraid.log import LOG

REQUIRED_EXECUTABLES = [
    # executable in PATH, package
    ('mdadm', 'mdadm'),
    ('mkfs.xfs', 'xfsprogs'),
]

FSTYPE_EXECUTABLES = {
    'xfs': ('mkfs.xfs', 'xfsprogs'),
    'ext4': ('mkfs.ext4', 'e2fsprogs'),
}

# package manager executable, install command
PACKAGE_MANAGERS = [
    ('apt-get', ['apt-get', 'install', '--assume-yes', '--quiet']),
    ('dnf', ['dnf', 'install', '--assumeyes', '--quiet']),
    ('yum', ['yum', 'install', '--assumeyes', '--quiet']),
]


class MissingDeps(Exception):
    def __init__(self, message, deps):
        self.message = message
        if isinstance(deps, str) or deps is None:
            deps = [deps]
        self.deps = [d for d in deps if d is not None]
        self.fatal = None in deps

    def __str__(self):
        if self.fatal:
            if not len(self.deps):
                return self.message + " Unresolvable."
            return (self.message +
                    " Unresolvable.  Partially resolvable with packages: %s" %
                    ' '.join(self.deps))
        else:
            return self.message + " Install packages: %s" % ' '.join(self.deps)


def check_executable(cmdname, pkg):
    if not which(cmdname):
        raise MissingDeps("Missing program '%s'." % cmdname, pkg)


def required_executables(fstype=None):
    executables = [e for e in REQUIRED_EXECUTABLES if e[0] != 'mkfs.xfs']
    executables.append(FSTYPE_EXECUTABLES.get(fstype or 'xfs',
                                              FSTYPE_EXECUTABLES['xfs']))
    return executables


def find_missing_deps(fstype=None):
    mdeps = []
    for exe, pkg in required_executables(fstype):
        try:
            check_executable(exe, pkg)
        except MissingDeps as e:
            mdeps.append(e)
    return mdeps


def get_package_manager():
    for exe, cmd in PACKAGE_MANAGERS:
        if which(exe):
            return exe, cmd
    return None, None


def install_packages(pkgs):
    exe, cmd = get_package_manager()
    if exe is None:
        raise MissingDeps(
            "Unable to detect package manager. Please install manually.",
            list(pkgs) + [None])

    env = os.environ.copy()
    if exe == 'apt-get':
        env['DEBIAN_FRONTEND'] = 'noninteractive'
        subp(['apt-get', 'update', '--quiet'], env=env)
    subp(cmd + list(pkgs), env=env)


def install_deps(fstype=None, dry_run=False):
    """Install the packages that provide missing executables.

    :return: 0 on success (including nothing to do), 1 on failure."""
    errors = find_missing_deps(fstype)
    if len(errors) == 0:
        LOG.debug('No missing dependencies')
        return 0

    missing_pkgs = []
    for e in errors:
        missing_pkgs += e.deps

    deps_string = ' '.join(sorted(missing_pkgs))
    LOG.info('Installing required packages: %s', deps_string)
    if dry_run:
        return 0

    try:
        install_packages(sorted(missing_pkgs))
    except (MissingDeps, ProcessExecutionError) as e:
        LOG.error('Failed to install %s: %s', deps_string, e)
        return 1
    return 0

# vi: ts=4 expandtab syntax=python
