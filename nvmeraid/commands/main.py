# This file is part of nvmeraid. See LICENSE for copyright and license info.

import argparse
import os
import sys
import traceback

from .. import log
from .. import version

VERSIONSTR = version.version_string()

SUB_COMMAND_MODULES = ['discover', 'features', 'setup', 'version']

# exit code for a command that failed after argument parsing
EXIT_FAILURE = 3


def add_subcmd(subparser, subcmd):
    modname = subcmd.replace("-", "_")
    subcmd_full = "nvmeraid.commands.%s" % modname
    __import__(subcmd_full)
    try:
        popfunc = getattr(sys.modules[subcmd_full], 'POPULATE_SUBCMD')
    except AttributeError:
        raise AttributeError("No 'POPULATE_SUBCMD' in %s" % subcmd_full)

    popfunc(subparser.add_parser(subcmd))


def get_main_parser(stacktrace=False, verbosity=1, prog='nvmeraid'):
    parser = argparse.ArgumentParser(prog=prog,
                                     epilog='Version %s' % VERSIONSTR)
    parser.add_argument('--showtrace', action='store_true', default=stacktrace)
    parser.add_argument('-v', '--verbose', action='count', default=verbosity,
                        dest='verbosity')
    parser.add_argument('-q', '--quiet', action='store_const', const=0,
                        dest='verbosity', help='only report warnings')
    parser.add_argument('--log-file', default=sys.stderr,
                        type=argparse.FileType('w'))
    parser.add_argument('--install-deps', action='store_true',
                        help='install dependencies as necessary',
                        default=False)
    parser.set_defaults(config={})

    return parser


def _env_defaults():
    stacktrace = (os.environ.get('NVMERAID_STACKTRACE', "0").lower()
                  not in ("0", "false", ""))

    try:
        verbosity = int(os.environ.get('NVMERAID_VERBOSITY', "1"))
    except ValueError:
        verbosity = 1
    return stacktrace, verbosity


def load_args_config(args):
    # merge config flags into a single config dictionary
    from .. import config

    cfg = {}
    for (flag, val) in getattr(args, 'cfgopts', None) or []:
        if flag in ('-c', '--config'):
            config.merge_config_fp(cfg, val)
            val.close()
        elif flag in ('--set',):
            config.merge_cmdarg(cfg, val)
    config.validate_top_level(cfg)
    return cfg


def _configured_fstype(cfg):
    section = cfg.get('setup')
    if isinstance(section, dict):
        return section.get('fstype')
    return None


def run_command(parser, args):
    from ..deps import install_deps

    if not getattr(args, 'func', None):
        parser.print_help()
        sys.exit(1)

    try:
        cfg = load_args_config(args)
    except (ValueError, TypeError, OSError) as e:
        parser.error(str(e))
    args.config = cfg

    showtrace = args.showtrace
    if 'showtrace' in cfg:
        showtrace = str(cfg['showtrace']).lower() not in ("0", "false")

    verbosity = args.verbosity
    if 'verbosity' in cfg:
        try:
            verbosity = int(cfg['verbosity'])
        except (TypeError, ValueError):
            parser.error('invalid verbosity: %s' % cfg['verbosity'])

    log.basicConfig(stream=args.log_file, verbosity=verbosity)

    if args.install_deps:
        ret = install_deps(fstype=_configured_fstype(cfg))
        if ret != 0:
            sys.exit(ret)

    try:
        ret = args.func(args)
        sys.exit(ret)
    except Exception as e:
        if showtrace:
            traceback.print_exc()
        sys.stderr.write("%s\n" % e)
        sys.exit(EXIT_FAILURE)


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]

    stacktrace, verbosity = _env_defaults()
    parser = get_main_parser(stacktrace=stacktrace, verbosity=verbosity)
    subps = parser.add_subparsers(dest="subcmd")
    for subcmd in SUB_COMMAND_MODULES:
        add_subcmd(subps, subcmd)
    args = parser.parse_args(argv)
    run_command(parser, args)


def setup_nvme_raid(argv=None):
    """Entry point for 'setup-nvme-raid', the same as 'nvmeraid setup'."""
    from . import setup

    if argv is None:
        argv = sys.argv[1:]

    stacktrace, verbosity = _env_defaults()
    parser = get_main_parser(stacktrace=stacktrace, verbosity=verbosity,
                             prog='setup-nvme-raid')
    setup.POPULATE_SUBCMD(parser)
    args = parser.parse_args(argv)
    run_command(parser, args)


if __name__ == '__main__':
    sys.exit(main())

# vi: ts=4 expandtab syntax=python
