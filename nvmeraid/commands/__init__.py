# This file is part of nvmeraid. See LICENSE for copyright and license info.


def populate_one_subcmd(parser, options_dict, handler):
    for entry in options_dict:
        args = entry[0]
        if not isinstance(args, (list, tuple)):
            args = (args,)
        parser.add_argument(*args, **entry[1])
    parser.set_defaults(func=handler)

# vi: ts=4 expandtab syntax=python
