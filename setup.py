from setuptools import setup
from glob import glob
import os
import sys

import nvmeraid


def is_f(p):
    return os.path.isfile(p)


def in_virtualenv():
    return sys.prefix != getattr(sys, 'base_prefix', sys.prefix)


USR = "usr" if in_virtualenv() else "/usr"

setup(
    name="nvmeraid",
    description='Stripe, format and mount EC2 NVMe instance store devices',
    version=nvmeraid.__version__,
    license="AGPL",
    packages=[
        'nvmeraid',
        'nvmeraid.block',
        'nvmeraid.deps',
        'nvmeraid.commands',
    ],
    install_requires=[
        'PyYAML',
        'attrs',
        'jsonschema',
    ],
    extras_require={
        'test': ['mock', 'pytest'],
    },
    entry_points={
        'console_scripts': [
            'nvmeraid = nvmeraid.commands.main:main',
            'setup-nvme-raid = nvmeraid.commands.main:setup_nvme_raid',
        ],
    },
    data_files=[
        (USR + '/share/doc/nvmeraid',
         [f for f in glob('examples/*') if is_f(f)]),
    ]
)
