# Copyright (c) 2021 Jeff Irion and contributors
#
# This file is part of the adb-host package.  It incorporates work
# covered by the following license notice:
#
#
#   Copyright 2014 Google Inc. All rights reserved.
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""Copy a local stream to a remote file, reporting progress and transfer statistics.

.. rubric:: Contents

* :class:`PushEvent`
* :func:`copy_with_progress_and_stats`
* :func:`is_broken_pipe`
* :func:`open_push_source`
* :func:`watch_for_cancellation`

"""


from collections import namedtuple
from contextlib import contextmanager
import errno
import logging
import os
import stat
import sys
from threading import Thread
import time

from tqdm import tqdm
from tqdm.utils import CallbackIOWrapper

from . import constants
from .exceptions import AdbError, ErrCode


_LOGGER = logging.getLogger(__name__)

#: A snapshot of a push's progress: bytes copied so far, total bytes (0 if unknown), a human-readable rate
#: (e.g. ``'1.25MB/s'``), and the full progress meter rendered by ``tqdm``
PushEvent = namedtuple('PushEvent', ['current', 'total', 'speed', 'raw'])


class _PushProgress(tqdm):  # pylint: disable=too-many-ancestors
    """A ``tqdm`` progress bar that reports :class:`PushEvent` objects instead of drawing itself.

    Parameters
    ----------
    total : int
        The number of bytes that will be pushed
    callback : function
        Called with a :class:`PushEvent` whenever ``tqdm`` would redraw the bar

    """
    def __init__(self, total, callback):
        self._push_callback = callback
        self._reported_n = None
        super(_PushProgress, self).__init__(total=total, unit='B', unit_scale=True, leave=False, disable=False)

    def display(self, msg=None, pos=None):
        """Report the progress via the callback.

        """
        stats = self.format_dict
        if stats['n'] == self._reported_n:
            return
        self._reported_n = stats['n']

        rate = stats['rate']
        if rate is None and stats['elapsed']:
            rate = stats['n'] / stats['elapsed']

        speed = self.format_sizeof(rate, 'B/s') if rate is not None else '?B/s'
        event = PushEvent(stats['n'], stats['total'], speed, self.format_meter(**stats))

        try:
            self._push_callback(event)
        except Exception:  # noqa pylint: disable=broad-except
            _LOGGER.exception("Push progress callback failed")


def is_broken_pipe(err):
    """Check whether ``err``, or any error that caused it, is an ``EPIPE`` error.

    Parameters
    ----------
    err : Exception
        An error raised while writing to a remote file

    Returns
    -------
    bool
        Whether the remote end of the stream was closed

    """
    while err is not None:
        if isinstance(err, BrokenPipeError) or (isinstance(err, OSError) and err.errno == errno.EPIPE):
            return True
        err = getattr(err, 'cause', None) or err.__cause__

    return False


def _copy(dst, src):
    """Copy ``src`` to ``dst`` in chunks, stopping early if ``dst`` has been closed.

    Returns
    -------
    int
        The number of bytes written to ``dst``

    """
    copied = 0
    while True:
        chunk = src.read(constants.MAX_PUSH_DATA)
        if not chunk:
            return copied

        try:
            dst.write(chunk)
        except (AdbError, OSError) as exc:
            if is_broken_pipe(exc):
                # Pipe closed. Handle this like an EOF.
                _LOGGER.debug("Remote file was closed after %d bytes", copied)
                return copied
            raise

        copied += len(chunk)


def copy_with_progress_and_stats(dst, src, size, show_progress=True, progress_callback=None):
    """Copy ``src`` to ``dst``.

    If ``show_progress`` is true, ``size`` is positive, and ``progress_callback`` is provided, the callback receives
    :class:`PushEvent` objects while copying.  After copying, the transfer rate and size are logged.

    Parameters
    ----------
    dst : adb_host.sync_connection.SyncFileWriter
        Where the data is written
    src : io.BufferedIOBase
        Where the data is read from
    size : int
        The number of bytes that ``src`` is expected to hold, or 0 if unknown
    show_progress : bool
        Whether to report progress
    progress_callback : function, None
        Called with a :class:`PushEvent`

    Returns
    -------
    int
        The number of bytes copied

    """
    progress = None
    if show_progress and size > 0 and progress_callback:
        progress = _PushProgress(size, progress_callback)
        dst = CallbackIOWrapper(progress.update, dst, 'write')

    start = time.time()
    try:
        copied = _copy(dst, src)
    finally:
        if progress is not None:
            progress.refresh()
            progress.close()

    duration = time.time() - start
    rate = int(copied / duration) if duration > 0 else copied
    _LOGGER.info("%d B/s (%d bytes in %.3fs)", rate, copied, duration)

    return copied


@contextmanager
def open_push_source(local_path):
    """Open the local side of a push.

    Parameters
    ----------
    local_path : str
        A local file, or ``''`` / :const:`adb_host.constants.STDIO_FILENAME` for standard input

    Yields
    ------
    stream : io.BufferedIOBase
        The opened source
    size : int
        The size of the source, or 0 for standard input
    perms : int
        The permission bits for the remote file
    mtime : int
        The modification time for the remote file

    Raises
    ------
    AdbError
        ``local_path`` is a directory, or standard input is requested but not available

    """
    if not local_path or local_path == constants.STDIO_FILENAME:
        stdin = getattr(sys.stdin, 'buffer', None)
        if stdin is None:
            raise AdbError('standard input is not available', code=ErrCode.IO_ERROR)

        # 0 size hides the progress
        yield stdin, 0, constants.STDIN_PUSH_PERMS, constants.MTIME_OF_CLOSE
        return

    if os.path.isdir(local_path):
        raise AdbError('{} is a directory; only files can be pushed'.format(local_path), code=ErrCode.ASSERTION_ERROR)

    with open(local_path, 'rb') as stream:
        info = os.fstat(stream.fileno())
        yield stream, info.st_size, stat.S_IMODE(info.st_mode), int(info.st_mtime)


def watch_for_cancellation(cancel_event, writer, finished_event):
    """Close ``writer`` when ``cancel_event`` is set, unless ``finished_event`` is set first.

    Parameters
    ----------
    cancel_event : threading.Event
        Set by the caller to cancel the push
    writer : adb_host.sync_connection.SyncFileWriter
        The remote file
    finished_event : threading.Event
        Set when the push is done, which stops the watcher

    Returns
    -------
    threading.Thread
        The (daemon) watcher thread

    """
    def _watch():
        while not cancel_event.wait(constants.CANCEL_POLL_INTERVAL_S):
            if finished_event.is_set():
                return

        _LOGGER.debug("Push cancelled, closing the remote file")
        try:
            writer.close()
        except AdbError as exc:
            _LOGGER.warning("Error while closing the remote file after cancellation: %s", exc)

    watcher = Thread(target=_watch, name='adb-push-cancellation')
    watcher.daemon = True
    watcher.start()
    return watcher
