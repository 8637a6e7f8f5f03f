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

"""Implement the FileSync protocol that the adb server speaks after a ``sync:`` request.

Requests are a 4 byte ID, a 32-bit little-endian length, and that many bytes of data.  Responses start with a 4 byte
ID whose layout is:

==========  =============================================================
ID          Followed by
==========  =============================================================
``DENT``    mode, size, mtime, name length, name
``STAT``    mode, size, mtime
``DATA``    length, data
``DONE``    a 32-bit value (16 bytes of zeros at the end of a ``LIST``)
``OKAY``    a 32-bit zero
``FAIL``    length, message
==========  =============================================================

.. rubric:: Contents

* :class:`SyncConnection`

    * :meth:`SyncConnection.close`
    * :meth:`SyncConnection.list_dir_entries`
    * :meth:`SyncConnection.read_bytes`
    * :meth:`SyncConnection.read_id`
    * :meth:`SyncConnection.read_int32`
    * :meth:`SyncConnection.read_status`
    * :meth:`SyncConnection.receive_file`
    * :meth:`SyncConnection.send_file`
    * :meth:`SyncConnection.send_header`
    * :meth:`SyncConnection.send_octet_string`
    * :meth:`SyncConnection.stat`

* :class:`SyncFileReader`
* :class:`SyncFileWriter`

"""


import errno
import logging
import stat
import struct
from threading import Lock
import time

from . import constants
from .exceptions import AdbCommandFailureException, AdbError, ErrCode, FileNoExistError, InvalidResponseError, PushFailedError
from .hidden_helpers import DeviceFile


_LOGGER = logging.getLogger(__name__)


def _encode_path_and_mode(path, perms):
    """Build the data for a ``SEND`` request.

    Parameters
    ----------
    path : str
        The destination path on the device
    perms : int
        The permission bits for the file; any file type bits are replaced with ``S_IFREG``

    Returns
    -------
    bytes
        ``b'<path>,<mode>'``

    """
    return '{},{}'.format(path, stat.S_IFREG | stat.S_IMODE(perms)).encode('utf8')


class SyncConnection(object):
    """A connection to the adb server in FileSync mode.

    Parameters
    ----------
    conn : adb_host.host_connection.HostConnection
        A connection on which the server has accepted a ``sync:`` request; this object takes ownership of it

    """
    def __init__(self, conn):
        self._conn = conn

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self):
        """Close the underlying connection.  Calling this more than once is safe.

        """
        self._conn.close()

    # ======================================================================= #
    #                                                                         #
    #                                Requests                                 #
    #                                                                         #
    # ======================================================================= #
    def list_dir_entries(self, path):
        """List a directory on the device.

        Parameters
        ----------
        path : str
            The directory on the device

        Returns
        -------
        list[DeviceFile]
            The entries in the directory

        """
        self.send_octet_string(constants.LIST, path)

        entries = []
        while True:
            command_id = self.read_id()
            if command_id == constants.DONE:
                # The final ``DONE`` has the same layout as a ``DENT`` with everything set to zero
                self._conn.read_exactly(constants.FILESYNC_DENT_SIZE)
                return entries

            if command_id == constants.FAIL:
                raise AdbCommandFailureException('Command failed: {}'.format(self._read_failure_message()))

            if command_id != constants.DENT:
                raise InvalidResponseError('Expected one of {}, got {}'.format((constants.DENT, constants.DONE), command_id))

            mode, size, mtime, name_length = struct.unpack(constants.FILESYNC_DENT_FORMAT, self._conn.read_exactly(constants.FILESYNC_DENT_SIZE))
            filename = self._conn.read_exactly(name_length).decode('utf8', 'backslashreplace')
            entries.append(DeviceFile(filename, mode, size, mtime))

    def stat(self, path):
        """Get a file's ``stat()`` information.

        Parameters
        ----------
        path : str
            The file on the device

        Returns
        -------
        DeviceFile
            The file's mode, size, and mtime

        Raises
        ------
        FileNoExistError
            The file does not exist

        """
        self.send_octet_string(constants.STAT, path)

        command_id = self.read_id()
        if command_id != constants.STAT:
            raise InvalidResponseError('Expected {}, got {}'.format(constants.STAT, command_id))

        mode, size, mtime = struct.unpack(constants.FILESYNC_STAT_FORMAT, self._conn.read_exactly(constants.FILESYNC_STAT_SIZE))

        # The server answers with all zeros when the file does not exist
        if mode == size == mtime == 0:
            raise FileNoExistError('{}: no such file or directory'.format(path), details={'path': path})

        return DeviceFile(path, mode, size, mtime)

    def receive_file(self, path):
        """Open a file on the device for reading.

        Parameters
        ----------
        path : str
            The file on the device

        Returns
        -------
        SyncFileReader
            A reader that owns this connection

        """
        self.send_octet_string(constants.RECV, path)
        reader = SyncFileReader(self)

        # Read the first chunk so that a missing file is reported here rather than on the first read
        reader.peek()
        return reader

    def send_file(self, path, perms=constants.DEFAULT_PUSH_MODE, mtime=constants.MTIME_OF_CLOSE):
        """Open a file on the device for writing.

        Parameters
        ----------
        path : str
            The destination on the device
        perms : int
            The permission bits for the file
        mtime : int
            The modification time (seconds since the epoch) that will be set when the writer is closed, or
            :const:`adb_host.constants.MTIME_OF_CLOSE` to use the time at which it is closed

        Returns
        -------
        SyncFileWriter
            A writer that owns this connection

        Raises
        ------
        AdbError
            ``mtime`` does not fit in the unsigned 32-bit field of the ``DONE`` request

        """
        if not 0 <= mtime <= constants.MAX_FILESYNC_MTIME:
            raise AdbError('mtime {} is outside the range 0 to {}'.format(mtime, constants.MAX_FILESYNC_MTIME), code=ErrCode.ASSERTION_ERROR)

        self.send_octet_string(constants.SEND, _encode_path_and_mode(path, perms))
        return SyncFileWriter(self, mtime)

    # ======================================================================= #
    #                                                                         #
    #                               Primitives                                #
    #                                                                         #
    # ======================================================================= #
    def send_header(self, command_id, value):
        """Send a FileSync ID followed by a 32-bit value.

        Parameters
        ----------
        command_id : bytes
            A FileSync ID from :const:`adb_host.constants.FILESYNC_IDS`
        value : int
            The 32-bit value (a length, or the mtime for ``DONE``)

        """
        self._conn.write_all(struct.pack(constants.FILESYNC_HEADER_FORMAT, constants.FILESYNC_ID_TO_WIRE[command_id], value))

    def send_octet_string(self, command_id, data):
        """Send a FileSync ID followed by a length and ``data``.

        Parameters
        ----------
        command_id : bytes
            A FileSync ID from :const:`adb_host.constants.FILESYNC_IDS`
        data : bytes, str
            The data to be sent

        """
        if not isinstance(data, (bytes, bytearray, memoryview)):
            data = data.encode('utf8')

        self._conn.write_all(struct.pack(constants.FILESYNC_HEADER_FORMAT, constants.FILESYNC_ID_TO_WIRE[command_id], len(data)) + bytes(data))

    def read_id(self):
        """Read a FileSync ID.

        Returns
        -------
        bytes
            An ID from :const:`adb_host.constants.FILESYNC_IDS`

        Raises
        ------
        InvalidResponseError
            The ID is not recognized

        """
        command_id = self._conn.read_exactly(constants.FILESYNC_ID_SIZE)
        if command_id not in constants.FILESYNC_IDS:
            raise InvalidResponseError('Unknown FileSync ID: {!r}'.format(command_id))

        return command_id

    def read_int32(self):
        """Read a 32-bit little-endian unsigned integer."""
        return struct.unpack(b'<I', self._conn.read_exactly(4))[0]

    def read_bytes(self):
        """Read a 32-bit length followed by that many bytes."""
        return self._conn.read_exactly(self.read_int32())

    def read_status(self, request, failure_cls=AdbCommandFailureException):
        """Read an ``OKAY`` or ``FAIL`` response.

        Parameters
        ----------
        request : str
            The request whose status is being read; it is only used in the error message
        failure_cls : type
            The exception that will be raised for a ``FAIL`` response

        Raises
        ------
        AdbCommandFailureException
            The server replied with ``FAIL`` (or the provided ``failure_cls``)
        InvalidResponseError
            The server replied with something else

        """
        command_id = self.read_id()
        if command_id == constants.OKAY:
            self.read_int32()
            return

        if command_id == constants.FAIL:
            raise failure_cls('{} failed: {}'.format(request, self._read_failure_message()), details={'request': request})

        raise InvalidResponseError('Expected one of {}, got {}'.format((constants.OKAY, constants.FAIL), command_id))

    def _read_failure_message(self):
        """Read the message that follows a ``FAIL`` ID."""
        return self.read_bytes().decode('utf8', 'backslashreplace')


class SyncFileReader(object):
    """A file-like object that reads a file from the device.

    Parameters
    ----------
    sync_conn : SyncConnection
        A FileSync connection on which a ``RECV`` request has been sent; this object takes ownership of it

    Attributes
    ----------
    _buffer : bytes
        Data from the current ``DATA`` chunk that has not been returned yet
    _eof : bool
        Whether the ``DONE`` response has been read
    _sync_conn : SyncConnection
        The FileSync connection

    """
    def __init__(self, sync_conn):
        self._sync_conn = sync_conn
        self._buffer = b''
        self._eof = False
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self):
        """Close the FileSync connection.

        """
        self.closed = True
        self._sync_conn.close()

    def peek(self):
        """Return the buffered data without consuming it, reading the next chunk if the buffer is empty.

        Returns
        -------
        bytes
            The buffered data; ``b''`` at the end of the file

        """
        while not self._buffer and not self._eof:
            self._read_chunk()

        return self._buffer

    def read(self, size=-1):
        """Read up to ``size`` bytes, or everything that is left if ``size`` is negative.

        Parameters
        ----------
        size : int
            The maximum number of bytes to read

        Returns
        -------
        bytes
            The data; ``b''`` at the end of the file

        """
        if size is None or size < 0:
            chunks = [self._buffer]
            self._buffer = b''
            while not self._eof:
                self._read_chunk()
                chunks.append(self._buffer)
                self._buffer = b''

            return b''.join(chunks)

        data = self.peek()[:size]
        self._buffer = self._buffer[len(data):]
        return data

    def _read_chunk(self):
        """Read the next ``DATA``, ``DONE``, or ``FAIL`` response."""
        command_id = self._sync_conn.read_id()

        if command_id == constants.DATA:
            self._buffer = self._sync_conn.read_bytes()

        elif command_id == constants.DONE:
            self._sync_conn.read_int32()
            self._eof = True

        elif command_id == constants.FAIL:
            raise AdbCommandFailureException('Command failed: {}'.format(self._sync_conn._read_failure_message()))  # pylint: disable=protected-access

        else:
            raise InvalidResponseError('Expected one of {}, got {}'.format((constants.DATA, constants.DONE), command_id))


class SyncFileWriter(object):
    """A file-like object that writes a file to the device.

    :meth:`SyncFileWriter.close` may be called from another thread while a write is in progress, in which case the
    transfer is aborted and the write raises :class:`BrokenPipeError`.  Writing after the writer has been closed also
    raises :class:`BrokenPipeError`.

    Parameters
    ----------
    sync_conn : SyncConnection
        A FileSync connection on which a ``SEND`` request has been sent; this object takes ownership of it
    mtime : int
        The modification time that will be sent with ``DONE``, or :const:`adb_host.constants.MTIME_OF_CLOSE`

    Attributes
    ----------
    _close_lock : Lock
        Makes :meth:`SyncFileWriter.close` idempotent
    _closed : bool
        Whether :meth:`SyncFileWriter.close` has been called
    _mtime : int
        The modification time that will be sent with ``DONE``, or :const:`adb_host.constants.MTIME_OF_CLOSE`
    _sync_conn : SyncConnection
        The FileSync connection
    _write_lock : Lock
        Held while data is being sent

    """
    def __init__(self, sync_conn, mtime=constants.MTIME_OF_CLOSE):
        self._sync_conn = sync_conn
        self._mtime = mtime

        self._closed = False
        self._close_lock = Lock()
        self._write_lock = Lock()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    @property
    def closed(self):
        """Whether or not the writer has been closed.

        Returns
        -------
        bool
            ``self._closed``

        """
        return self._closed

    def write(self, data):
        """Send ``data`` to the device in ``DATA`` chunks of at most :const:`adb_host.constants.MAX_PUSH_DATA` bytes.

        Parameters
        ----------
        data : bytes
            The data to be written

        Returns
        -------
        int
            The number of bytes written

        Raises
        ------
        BrokenPipeError
            The writer has been closed

        """
        with self._write_lock:
            if self._closed:
                raise BrokenPipeError(errno.EPIPE, 'write to closed remote file')

            try:
                for offset in range(0, len(data), constants.MAX_PUSH_DATA):
                    self._sync_conn.send_octet_string(constants.DATA, data[offset:offset + constants.MAX_PUSH_DATA])
            except Exception:  # noqa pylint: disable=broad-except
                if self._closed:
                    raise BrokenPipeError(errno.EPIPE, 'remote file closed during write')

                # The transfer cannot be finished after a failed write
                self.abort()
                raise

        return len(data)

    def close(self):
        """Finish the transfer and close the connection.  Calling this more than once is safe.

        If no write is in progress, a ``DONE`` request carrying the mtime is sent and the server's status is read.
        Otherwise the connection is closed right away, which makes the pending write fail.

        Raises
        ------
        PushFailedError
            The server replied with ``FAIL``

        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        if not self._write_lock.acquire(False):
            _LOGGER.debug("Closing remote file while a write is in progress")
            self._sync_conn.close()
            return

        try:
            mtime = self._mtime if self._mtime != constants.MTIME_OF_CLOSE else time.time()
            self._sync_conn.send_header(constants.DONE, int(mtime))
            self._sync_conn.read_status('SEND', PushFailedError)
        finally:
            self._write_lock.release()
            self._sync_conn.close()

    def abort(self):
        """Close the connection without finishing the transfer.

        The remote file is left incomplete.  Calling this after :meth:`SyncFileWriter.close` is a no-op.

        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        self._sync_conn.close()
