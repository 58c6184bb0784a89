# This file is part of nvmeraid. See LICENSE for copyright and license info.

import json
import typing

import attr
import jsonschema
import yaml

from .log import LOG

DEFAULT_MOUNT_POINT = "/data"
DEFAULT_RAID_NAME = "local_raid"
DEFAULT_MD_CONFIG_DIR = "/.aws"
DEFAULT_FSTAB = "/etc/fstab"
DEFAULT_FSTYPE = "xfs"
DEFAULT_MOUNT_OPTIONS = "defaults,noatime"
DEFAULT_BY_ID_DIR = "/dev/disk/by-id"
DEFAULT_BY_ID_PATTERNS = ("*NVMe_Instance_Storage_*",)
DEFAULT_NVME_MODEL = "Amazon EC2 NVMe Instance Storage"
DEFAULT_RESYNC_TIMEOUT = 60
DEFAULT_RESYNC_INTERVAL = 1

# configuration files carry the setup options under this key
SETUP_KEY = "setup"

_int_or_digits = {'oneOf': [{'type': 'integer', 'minimum': 0},
                            {'type': 'string', 'pattern': r'^[0-9]+$'}]}
# polling needs a positive interval
_positive_int_or_digits = {
    'oneOf': [{'type': 'integer', 'minimum': 1},
              {'type': 'string', 'pattern': r'^[1-9][0-9]*$'}]}
_abs_path = {'type': 'string', 'pattern': r'^/'}

SETUP_CONFIG_SCHEMA = {
    '$schema': 'http://json-schema.org/draft-07/schema#',
    'name': 'NVMERAID-SETUP',
    'title': 'nvmeraid setup configuration',
    'type': 'object',
    'additionalProperties': False,
    'properties': {
        'mount_point': _abs_path,
        'raid_name': {'type': 'string',
                      'pattern': r'^[A-Za-z0-9][A-Za-z0-9_.-]*$'},
        'md_config_dir': _abs_path,
        'fstab': _abs_path,
        'fstype': {'type': 'string', 'enum': ['xfs', 'ext4']},
        'mount_options': {'type': 'string', 'minLength': 1},
        'by_id_dir': _abs_path,
        'by_id_patterns': {
            'oneOf': [{'type': 'string', 'minLength': 1},
                      {'type': 'array', 'minItems': 1,
                       'items': {'type': 'string', 'minLength': 1}}]},
        'nvme_model': {'type': 'string', 'minLength': 1},
        'resync_timeout': _int_or_digits,
        'resync_interval': _positive_int_or_digits,
    },
}

# keys accepted at the top level of a configuration file or --set
CONFIG_SCHEMA = {
    '$schema': 'http://json-schema.org/draft-07/schema#',
    'name': 'NVMERAID',
    'title': 'nvmeraid configuration',
    'type': 'object',
    'additionalProperties': False,
    'properties': {
        SETUP_KEY: {'type': ['object', 'null']},
        'verbosity': {'type': ['integer', 'string']},
        'showtrace': {'type': ['boolean', 'integer', 'string']},
    },
}


def merge_config_fp(cfgin, fp):
    merge_config_str(cfgin, fp.read())


def merge_config_str(cfgin, cfgstr):
    cfg2 = yaml.safe_load(cfgstr)
    if not isinstance(cfg2, dict):
        raise TypeError("Failed reading config. not a dictionary: %s" % cfgstr)

    merge_config(cfgin, cfg2)


def merge_config(cfg, cfg2):
    # update cfg by merging cfg2 over the top
    for k, v in cfg2.items():
        if isinstance(v, dict) and isinstance(cfg.get(k, None), dict):
            merge_config(cfg[k], v)
        else:
            cfg[k] = v


def merge_cmdarg(cfg, cmdarg, delim="/"):
    merge_config(cfg, cmdarg2cfg(cmdarg, delim))


def cmdarg2cfg(cmdarg, delim="/"):
    if '=' not in cmdarg:
        raise ValueError('no "=" in "%s"' % cmdarg)

    key, val = cmdarg.split("=", 1)
    cfg = {}
    cur = cfg

    is_json = False
    if key.startswith("json:"):
        is_json = True
        key = key[5:]

    items = key.split(delim)
    for item in items[:-1]:
        cur[item] = {}
        cur = cur[item]

    if is_json:
        try:
            val = json.loads(val)
        except (ValueError, TypeError):
            raise ValueError("setting of key '%s' had invalid json: %s" %
                             (key, val))

    # this would occur if 'json:={"topkey": "topval"}'
    if items[-1] == "":
        cfg = val
    else:
        cur[items[-1]] = val

    return cfg


def _convert_patterns(value):
    if isinstance(value, str):
        return (value,)
    return tuple(value)


@attr.s(auto_attribs=True, frozen=True)
class SetupConfig:
    """Everything one provisioning run needs, built once at startup."""
    mount_point: str = DEFAULT_MOUNT_POINT
    raid_name: str = DEFAULT_RAID_NAME
    md_config_dir: str = DEFAULT_MD_CONFIG_DIR
    fstab: str = DEFAULT_FSTAB
    fstype: str = DEFAULT_FSTYPE
    mount_options: str = DEFAULT_MOUNT_OPTIONS
    by_id_dir: str = DEFAULT_BY_ID_DIR
    by_id_patterns: typing.Tuple[str, ...] = attr.ib(
        default=DEFAULT_BY_ID_PATTERNS, converter=_convert_patterns)
    nvme_model: str = DEFAULT_NVME_MODEL
    resync_timeout: int = attr.ib(default=DEFAULT_RESYNC_TIMEOUT,
                                  converter=int)
    resync_interval: int = attr.ib(default=DEFAULT_RESYNC_INTERVAL,
                                   converter=int)

    @property
    def md_config(self):
        return "%s/mdadm.conf" % self.md_config_dir.rstrip("/")


def _validate(cfg, schema, what, sourcefile=None):
    try:
        jsonschema.validate(cfg, schema)
    except jsonschema.exceptions.ValidationError as e:
        where = ".".join(str(p) for p in e.path) or 'top-level'
        msg = "Invalid %s at %s: %s" % (what, where, e.message)
        if sourcefile:
            msg += " (in %s)" % sourcefile
        raise ValueError(msg)


def validate_config(setup_cfg, sourcefile=None):
    """Validate a setup config dictionary, raising ValueError on error."""
    _validate(setup_cfg, SETUP_CONFIG_SCHEMA, "setup config",
              sourcefile=sourcefile)


def validate_top_level(cfg, sourcefile=None):
    """Reject unknown top-level keys in merged configuration."""
    _validate(cfg, CONFIG_SCHEMA, "config", sourcefile=sourcefile)


def fromdict(setup_cfg, sourcefile=None):
    """Return a SetupConfig from a dictionary of options.

    Keys may use '-' or '_'.  Keys with a None value are left at their
    default."""
    if setup_cfg is None:
        setup_cfg = {}
    if not isinstance(setup_cfg, dict):
        raise ValueError("setup config must be a dictionary, not %s" %
                         type(setup_cfg).__name__)
    normalized = {k.replace("-", "_"): v for k, v in setup_cfg.items()
                  if v is not None}
    validate_config(normalized, sourcefile=sourcefile)
    return SetupConfig(**normalized)


def load_setup_config(cfg, overrides=None):
    """Build the SetupConfig for a run.

    :param cfg: merged configuration dictionary (config files and --set),
                whose SETUP_KEY section holds the setup options.
    :param overrides: options given explicitly on the command line.  These
                      take precedence over cfg.
    """
    setup_cfg = {}
    section = (cfg or {}).get(SETUP_KEY)
    if section is not None:
        if not isinstance(section, dict):
            raise ValueError("'%s' config must be a dictionary" % SETUP_KEY)
        merge_config(setup_cfg, section)
    if overrides:
        merge_config(setup_cfg, {k: v for k, v in overrides.items()
                                 if v is not None})
    setup = fromdict(setup_cfg)
    LOG.debug("setup config: %s", setup)
    return setup


# vi: ts=4 expandtab syntax=python
