# This file is part of nvmeraid. See LICENSE for copyright and license info.

from nvmeraid import __version__ as old_version
import os
import subprocess

_PACKAGED_VERSION = '@@PACKAGED_VERSION@@'


def version_string():
    """ Extract a version string from nvmeraid source or version file"""

    if not _PACKAGED_VERSION.startswith('@@'):
        return _PACKAGED_VERSION

    version = old_version
    gitdir = os.path.abspath(os.path.join(__file__, '..', '..', '.git'))
    if os.path.exists(gitdir):
        try:
            out = subprocess.check_output(
                ['git', 'describe', '--long', '--abbrev=8',
                 "--match=[0-9][0-9]*"],
                cwd=os.path.dirname(gitdir), stderr=subprocess.DEVNULL)
            version = out.decode('utf-8').strip()
        except (OSError, subprocess.CalledProcessError):
            pass

    return version

# vi: ts=4 expandtab syntax=python
