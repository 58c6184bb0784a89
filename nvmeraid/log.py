# This file is part of nvmeraid. See LICENSE for copyright and license info.

import logging
import time

from functools import wraps

DEFAULT_FORMAT = '[%(levelname)s] %(message)s'
DEBUG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
VERBOSITY_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


class NullHandler(logging.Handler):
    def emit(self, record):
        pass


def basicConfig(stream=None, verbosity=1):
    """Send nvmeraid log records at or above the level for verbosity to
    stream.  Verbosity 0 is warnings and errors, 1 adds progress (info) and
    2 or more adds debug output.  Replaces any earlier configuration."""
    if stream:
        handler = logging.StreamHandler(stream=stream)
    else:
        handler = NullHandler()

    level = VERBOSITY_LEVELS[max(0, min(verbosity, len(VERBOSITY_LEVELS) - 1))]
    fmt = DEBUG_FORMAT if level == logging.DEBUG else DEFAULT_FORMAT
    handler.setFormatter(logging.Formatter(fmt=fmt))
    handler.setLevel(level)

    logger = _getLogger()
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.setLevel(level)
    logger.addHandler(handler)
    return handler


def _getLogger(name='nvmeraid'):
    return logging.getLogger(name)


if not logging.getLogger().handlers:
    logging.getLogger().addHandler(NullHandler())


def _repr_call(name, *args, **kwargs):
    return "%s(%s)" % (
        name,
        ', '.join([str(repr(a)) for a in args] +
                  ["%s=%s" % (k, repr(v)) for k, v in kwargs.items()]))


def log_time(msg, func, *args, **kwargs):
    start = time.time()
    try:
        return func(*args, **kwargs)
    finally:
        LOG.debug(msg + "%.3f", (time.time() - start))


def logged_call():
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            return log_time(
                "TIMED %s: " % _repr_call(func.__name__, *args, **kwargs),
                func, *args, **kwargs)
        return wrapper
    return decorator


def logged_time(msg):
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            return log_time("TIMED %s: " % msg, func, *args, **kwargs)
        return wrapper
    return decorator


LOG = _getLogger()

# vi: ts=4 expandtab syntax=python
