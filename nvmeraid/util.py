# This file is part of nvmeraid. See LICENSE for copyright and license info.

import argparse
import errno
import json
import os
import re
import subprocess
import time

from .log import LOG

PROC_MOUNTS = "/proc/mounts"

# /proc/mounts escapes space, tab, newline and backslash as octal
_MOUNT_ESCAPE = re.compile(r'\\([0-7]{3})')


def subp(args, rcs=None, env=None, capture=False):
    """Run a subprocess.

    :param args: command to run in a list. [cmd, arg1, arg2...]
    :param rcs:
        a list of allowed return codes.  If subprocess exits with a value not
        in this list, a ProcessExecutionError will be raised.
    :param env: a dictionary for the command's environment.
    :param capture:
        boolean indicating if output should be captured.  If True, then stderr
        and stdout will be returned.  If False, they will not be redirected
        and the command's own diagnostics reach the invoker directly.

    :return
        if not capturing, return is (None, None)
        if capturing, stdout and stderr are returned.
    """
    if rcs is None:
        rcs = [0]

    if isinstance(args, str):
        args = [args]
    args = list(args)

    LOG.debug("Running command %s with allowed return codes %s (capture=%s)",
              args, rcs, capture)
    try:
        stdout = None
        stderr = None
        if capture:
            stdout = subprocess.PIPE
            stderr = subprocess.PIPE
        with open(os.devnull) as devnull_fp:
            sp = subprocess.Popen(args, stdout=stdout, stderr=stderr,
                                  stdin=devnull_fp, env=env, shell=False)
            (out, err) = sp.communicate()

        # Just ensure blank instead of none.
        if capture:
            if not out:
                out = b''
            if not err:
                err = b''
            out = decode_binary(out)
            err = decode_binary(err)
    except OSError as e:
        raise ProcessExecutionError(cmd=args, reason=e)

    rc = sp.returncode
    if rc not in rcs:
        raise ProcessExecutionError(stdout=out, stderr=err,
                                    exit_code=rc,
                                    cmd=args)
    return (out, err)


class ProcessExecutionError(IOError):

    MESSAGE_TMPL = ('%(description)s\n'
                    'Command: %(cmd)s\n'
                    'Exit code: %(exit_code)s\n'
                    'Reason: %(reason)s\n'
                    'Stdout: %(stdout)s\n'
                    'Stderr: %(stderr)s')
    stdout_indent_level = 8

    def __init__(self, stdout=None, stderr=None,
                 exit_code=None, cmd=None,
                 description=None, reason=None):
        if not cmd:
            self.cmd = '-'
        else:
            self.cmd = cmd

        if not description:
            self.description = 'Unexpected error while running command.'
        else:
            self.description = description

        if not isinstance(exit_code, int):
            self.exit_code = '-'
        else:
            self.exit_code = exit_code

        if not stderr:
            self.stderr = "''"
        else:
            self.stderr = self._indent_text(stderr)

        if not stdout:
            self.stdout = "''"
        else:
            self.stdout = self._indent_text(stdout)

        if reason:
            self.reason = reason
        else:
            self.reason = '-'

        message = self.MESSAGE_TMPL % {
            'description': self.description,
            'cmd': self.cmd,
            'exit_code': self.exit_code,
            'stdout': self.stdout,
            'stderr': self.stderr,
            'reason': self.reason,
        }
        IOError.__init__(self, message)

    def _indent_text(self, text):
        if type(text) == bytes:
            text = text.decode()
        return text.replace('\n', '\n' + ' ' * self.stdout_indent_level)


class LogTimer(object):
    def __init__(self, logfunc, msg):
        self.logfunc = logfunc
        self.msg = msg

    def __enter__(self):
        self.start = time.time()
        return self

    def __exit__(self, etype, value, trace):
        self.logfunc("%s took %0.3f seconds" %
                     (self.msg, time.time() - self.start))


def wait_until(condition, timeout, interval=1, sleep=time.sleep,
               clock=time.monotonic):
    """Poll 'condition' until it returns a true value or 'timeout' expires.

    condition is called at least once.  Between calls, 'sleep(interval)' is
    used.  'sleep' and 'clock' can be replaced so callers and tests do not
    depend on wall time.

    :return: True if condition was satisfied, False if timeout was reached.
    """
    if timeout < 0:
        raise ValueError("timeout must not be negative: %s" % timeout)
    if interval <= 0:
        raise ValueError("interval must be positive: %s" % interval)

    start = clock()
    while True:
        if condition():
            return True
        if clock() - start >= timeout:
            return False
        sleep(interval)


def _unescape_mount_field(field):
    return _MOUNT_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), field)


def get_proc_mounts(mounts_file=PROC_MOUNTS):
    """
    Returns a list of tuples for each entry in /proc/mounts
    """
    mounts = []
    for line in load_file(mounts_file).splitlines():
        try:
            (dev, mp, vfs, opts, freq, passno) = \
                line.strip().split(None, 5)
        except ValueError:
            continue
        mounts.append((_unescape_mount_field(dev), _unescape_mount_field(mp),
                       vfs, opts, freq, passno))
    return mounts


def is_mounted(target, mounts_file=PROC_MOUNTS):
    # return whether or not something is mounted on target
    target = os.path.abspath(target)
    return any(mp == target for (_dev, mp, _vfs, _opts, _freq, _passno)
               in get_proc_mounts(mounts_file))


def list_device_mounts(device, mounts_file=PROC_MOUNTS):
    # return the mount points of device, following symlinks on both sides
    # so /dev/md/name matches the /dev/mdNNN kernel reports
    real = os.path.realpath(device)
    return [mp for (dev, mp, _vfs, _opts, _freq, _passno)
            in get_proc_mounts(mounts_file)
            if dev == device or
            (dev.startswith('/') and os.path.realpath(dev) == real)]


def do_mount(src, target, opts=None):
    # mount src at target with opts and return True
    # if already mounted, return False
    if opts is None:
        opts = []
    if isinstance(opts, str):
        opts = [opts]

    if is_mounted(target):
        return False

    ensure_dir(target)
    cmd = ['mount'] + opts + [src, target]
    subp(cmd)
    return True


def ensure_dir(path, mode=None):
    if path == "":
        path = "."
    try:
        os.makedirs(path)
    except OSError as e:
        if e.errno != errno.EEXIST:
            raise

    if mode is not None:
        os.chmod(path, mode)


def write_file(filename, content, mode=0o644, omode="w"):
    """
    write 'content' to file at 'filename' using python open mode 'omode'.
    if mode is not set, then chmod file to mode. mode is 644 by default
    """
    ensure_dir(os.path.dirname(filename))
    with open(filename, omode) as fp:
        fp.write(content)
    if mode:
        os.chmod(filename, mode)


def load_file(path, read_len=None, offset=0, decode=True):
    with open(path, "rb") as fp:
        if offset:
            fp.seek(offset)
        contents = fp.read(read_len) if read_len else fp.read()

    if decode:
        return decode_binary(contents)
    else:
        return contents


def decode_binary(blob, encoding='utf-8', errors='replace'):
    # Converts a binary type into a text type using given encoding.
    return blob.decode(encoding, errors=errors)


def is_file_not_found_exc(exc):
    return (isinstance(exc, (IOError, OSError)) and
            hasattr(exc, 'errno') and
            exc.errno in (errno.ENOENT, errno.EIO, errno.ENXIO))


def is_exe(fpath):
    # Return path of program for execution if found in path
    return os.path.isfile(fpath) and os.access(fpath, os.X_OK)


def which(program, search=None):
    if os.path.sep in program:
        # if program had a '/' in it, then do not search PATH
        if is_exe(program):
            return program
        return None

    if search is None:
        search = [p.strip('"') for p in
                  os.environ.get("PATH", "").split(os.pathsep)]

    # normalize path input
    search = [os.path.abspath(p) for p in search if p]

    for path in search:
        ppath = os.path.sep.join((path, program))
        if is_exe(ppath):
            return ppath

    return None


def is_root():
    return os.geteuid() == 0


def get_fs_use_info(path):
    # return some filesystem usage info as tuple of (size_in_bytes, free_bytes)
    statvfs = os.statvfs(path)
    return (statvfs.f_frsize * statvfs.f_blocks,
            statvfs.f_frsize * statvfs.f_bfree)


def bytes2human(size):
    """convert size in bytes to human readable"""
    if not isinstance(size, (int, float)):
        raise ValueError('size must be a numeric value, not %s' % type(size))
    isize = int(size)
    if isize != size:
        raise ValueError('size "%s" is not a whole number.' % size)
    if isize < 0:
        raise ValueError('size "%d" < 0.' % isize)
    mpliers = {'B': 1, 'K': 2 ** 10, 'M': 2 ** 20, 'G': 2 ** 30, 'T': 2 ** 40}
    unit_order = sorted(mpliers, key=lambda x: -1 * mpliers[x])
    unit = next((u for u in unit_order if (isize / mpliers[u]) >= 1), 'B')
    return str(int(isize / mpliers[unit])) + unit


class MergedCmdAppend(argparse.Action):
    """This appends to a list in order of appearence both the option string
       and the value"""
    def __call__(self, parser, namespace, values, option_string=None):
        if getattr(namespace, self.dest, None) is None:
            setattr(namespace, self.dest, [])
        getattr(namespace, self.dest).append((option_string, values,))


def json_dumps(data):
    return json.dumps(data, indent=1, sort_keys=True, separators=(',', ': '))

# vi: ts=4 expandtab syntax=python
