# This file is part of nvmeraid. See LICENSE for copyright and license info.

# The 'FEATURES' variable is provided so that users of nvmeraid
# can determine which features are supported.  Each entry should have
# a consistent meaning.
FEATURES = [
    # discovery falls back to 'nvme list' when by-id links are missing
    'DISCOVERY_NVME_LIST_FALLBACK',
    # setup options can be read from a yaml config file
    'SETUP_CONFIG_FILE',
    # fstab entries are written by filesystem UUID
    'FSTAB_BY_UUID',
]

__version__ = "1.0.0"

# vi: ts=4 expandtab syntax=python
