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

"""Implement the :class:`AdbDevice` class, which performs requests on a single device via the adb server.

Every method opens its own connection to the server, so an :class:`AdbDevice` holds no connection of its own.
Requests use one of three response conventions:

* :meth:`AdbDevice._get_attribute` -- a ``host`` request answered with a single length-prefixed response
* :meth:`AdbDevice.run_command` -- a ``shell:`` request whose output is read until the server closes the stream
* :meth:`AdbDevice._get_sync_conn` -- a ``sync:`` request that switches the connection to the FileSync protocol

Errors are raised as :class:`~adb_host.exceptions.AdbError` objects whose message names the operation and the device.

.. rubric:: Contents

* :class:`AdbDevice`

    * :meth:`AdbDevice._dial_device`
    * :meth:`AdbDevice._get_attribute`
    * :meth:`AdbDevice._get_sync_conn`
    * :meth:`AdbDevice._open_write`
    * :meth:`AdbDevice._product`
    * :meth:`AdbDevice._push`
    * :attr:`AdbDevice.descriptor`
    * :meth:`AdbDevice.device_path`
    * :meth:`AdbDevice.list_dir_entries`
    * :meth:`AdbDevice.open_read`
    * :meth:`AdbDevice.open_write`
    * :meth:`AdbDevice.push_stream`
    * :meth:`AdbDevice.push_with_progress`
    * :meth:`AdbDevice.remount`
    * :meth:`AdbDevice.run_command`
    * :meth:`AdbDevice.serial`
    * :meth:`AdbDevice.stat`
    * :meth:`AdbDevice.state`

"""


import logging
from threading import Event

from . import constants
from .device_state import DeviceState, parse_device_state
from .exceptions import AdbError, DevicePathInvalidError
from .file_push import copy_with_progress_and_stats, open_push_source, watch_for_cancellation
from .hidden_helpers import client_error_context, prepare_command_line


_LOGGER = logging.getLogger(__name__)

_DECODE_ERRORS = 'backslashreplace'


class AdbDevice(object):
    """A device that is reached via the adb server.

    Parameters
    ----------
    server : adb_host.adb_server.AdbServer
        The server that connections are dialed through
    descriptor : adb_host.device_descriptor.DeviceDescriptor
        The target device

    Attributes
    ----------
    _descriptor : adb_host.device_descriptor.DeviceDescriptor
        The target device
    _server : adb_host.adb_server.AdbServer
        The server that connections are dialed through

    """
    def __init__(self, server, descriptor):
        self._server = server
        self._descriptor = descriptor

    def __str__(self):
        return str(self._descriptor)

    def __repr__(self):
        return 'AdbDevice({})'.format(self._descriptor)

    @property
    def descriptor(self):
        """The target device.

        Returns
        -------
        adb_host.device_descriptor.DeviceDescriptor
            ``self._descriptor``

        """
        return self._descriptor

    # ======================================================================= #
    #                                                                         #
    #                               Attributes                                #
    #                                                                         #
    # ======================================================================= #
    def serial(self):
        """Get the device's serial number.

        Returns
        -------
        str
            The serial number

        """
        with client_error_context(self, 'serial'):
            return self._get_attribute('get-serialno')

    def device_path(self):
        """Get the device path, e.g. ``'usb:1-4'``.

        Returns
        -------
        str
            The device path

        """
        with client_error_context(self, 'device_path'):
            return self._get_attribute('get-devpath')

    def state(self):
        """Get the device's state.

        A device that is waiting for the user to authorize this computer is reported as
        :attr:`DeviceState.UNAUTHORIZED <adb_host.device_state.DeviceState.UNAUTHORIZED>` rather than as an error.

        Returns
        -------
        DeviceState
            The state of the device

        """
        with client_error_context(self, 'state'):
            try:
                attr = self._get_attribute('get-state')
            except AdbError as exc:
                if 'unauthorized' in str(exc):
                    _LOGGER.debug("%s is waiting for authorization", self)
                    return DeviceState.UNAUTHORIZED
                raise

            return parse_device_state(attr)

    def _product(self):
        """Get the device's product name.

        ``get-product`` is documented, but not implemented, by the adb server.

        """
        with client_error_context(self, 'product'):
            return self._get_attribute('get-product')

    # ======================================================================= #
    #                                                                         #
    #                                Commands                                 #
    #                                                                         #
    # ======================================================================= #
    def run_command(self, cmd, *args, decode=True):
        """Run a command in a shell on the device and return its output.

        Arguments must not contain double quotes.  They are joined with spaces and are not quoted.

        Parameters
        ----------
        cmd : str
            The command
        args : str
            The arguments
        decode : bool
            Whether to decode the output to utf8 before returning

        Returns
        -------
        str, bytes
            The combined stdout and stderr of the command as a string if ``decode`` is True, otherwise as bytes

        """
        with client_error_context(self, 'run_command'):
            request = 'shell:' + prepare_command_line(cmd, *args)

            with self._dial_device() as conn:
                # Shell responses don't include a length header, so we read until the stream is closed
                conn.send_message(request)
                conn.read_status(request)
                resp = conn.read_until_eof()

        if decode:
            return resp.decode('utf8', _DECODE_ERRORS)
        return resp

    def remount(self):
        """Ask the device to remount its filesystem in read-write mode.

        This may not succeed on builds that do not allow it.

        Returns
        -------
        str
            The server's response

        """
        with client_error_context(self, 'remount'):
            with self._dial_device() as conn:
                return conn.round_trip_single_response('remount').decode('utf8', _DECODE_ERRORS)

    # ======================================================================= #
    #                                                                         #
    #                                FileSync                                 #
    #                                                                         #
    # ======================================================================= #
    def list_dir_entries(self, path):
        """List the contents of a directory on the device.

        Parameters
        ----------
        path : str
            The directory on the device

        Returns
        -------
        list[DeviceFile]
            Filename, mode, size, and mtime info for the files in the directory

        """
        with client_error_context(self, 'list_dir_entries(%s)', path):
            if not path:
                raise DevicePathInvalidError("Cannot list an empty device path")

            with self._get_sync_conn() as sync_conn:
                return sync_conn.list_dir_entries(path)

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

        """
        with client_error_context(self, 'stat(%s)', path):
            if not path:
                raise DevicePathInvalidError("Cannot stat an empty device path")

            with self._get_sync_conn() as sync_conn:
                return sync_conn.stat(path)

    def open_read(self, path):
        """Open a file on the device for reading.

        Parameters
        ----------
        path : str
            The file on the device

        Returns
        -------
        adb_host.sync_connection.SyncFileReader
            A file-like object that owns its connection; the caller must close it

        """
        with client_error_context(self, 'open_read(%s)', path):
            if not path:
                raise DevicePathInvalidError("Cannot read an empty device path")

            sync_conn = self._get_sync_conn()
            try:
                return sync_conn.receive_file(path)
            except BaseException:
                sync_conn.close()
                raise

    def open_write(self, path, perms=constants.DEFAULT_PUSH_MODE, mtime=constants.MTIME_OF_CLOSE):
        """Open a file on the device for writing, creating it with ``perms`` if necessary.

        Parameters
        ----------
        path : str
            The file on the device
        perms : int
            The permission bits for the file
        mtime : int
            The modification time that will be set when the writer is closed, or
            :const:`adb_host.constants.MTIME_OF_CLOSE` to use the time at which it is closed

        Returns
        -------
        adb_host.sync_connection.SyncFileWriter
            A file-like object that owns its connection; the caller must close it

        """
        with client_error_context(self, 'open_write(%s)', path):
            return self._open_write(path, perms, mtime)

    def push_stream(self, stream, path, perms=constants.DEFAULT_PUSH_MODE, mtime=constants.MTIME_OF_CLOSE, size=0, show_progress=True, progress_callback=None, cancel_event=None):
        """Push the contents of a stream to a file on the device.

        Parameters
        ----------
        stream : io.BufferedIOBase
            The data to be pushed
        path : str
            The destination on the device
        perms : int
            The permission bits for the file
        mtime : int
            The modification time for the file, or :const:`adb_host.constants.MTIME_OF_CLOSE`
        size : int
            The number of bytes in ``stream``, or 0 if unknown (which disables progress reporting)
        show_progress : bool
            Whether to report progress via ``progress_callback``
        progress_callback : function, None
            Called with :class:`~adb_host.file_push.PushEvent` objects
        cancel_event : threading.Event, None
            When this is set, the remote file is closed and the push ends early without an error

        Returns
        -------
        int
            The number of bytes pushed

        """
        with client_error_context(self, 'push_stream(%s)', path):
            return self._push(stream, path, perms, mtime, size, show_progress, progress_callback, cancel_event)

    def push_with_progress(self, local_path, path, show_progress=True, progress_callback=None, cancel_event=None):
        """Push a local file to the device.

        Parameters
        ----------
        local_path : str
            A local file, or ``''`` / ``'-'`` for standard input
        path : str
            The destination on the device
        show_progress : bool
            Whether to report progress via ``progress_callback``
        progress_callback : function, None
            Called with :class:`~adb_host.file_push.PushEvent` objects
        cancel_event : threading.Event, None
            When this is set, the remote file is closed and the push ends early without an error

        Returns
        -------
        int
            The number of bytes pushed

        """
        with client_error_context(self, 'push_with_progress(%s)', path):
            if not path:
                raise DevicePathInvalidError("Cannot push to an empty device path")

            with open_push_source(local_path) as (stream, size, perms, mtime):
                return self._push(stream, path, perms, mtime, size, show_progress, progress_callback, cancel_event)

    # ======================================================================= #
    #                                                                         #
    #                             Hidden Methods                              #
    #                                                                         #
    # ======================================================================= #
    def _get_attribute(self, attr):
        """Send ``<host-prefix>:<attr>`` and return the single response.

        Parameters
        ----------
        attr : str
            The attribute request, e.g. ``'get-serialno'``

        Returns
        -------
        str
            The response

        """
        resp = self._server.round_trip_single_response('{}:{}'.format(self._descriptor.host_prefix(), attr))
        return resp.decode('utf8', _DECODE_ERRORS)

    def _dial_device(self):
        """Open a connection and switch it to this device via a ``host:transport`` request.

        Requests sent on the returned connection go straight to the device.

        Returns
        -------
        adb_host.host_connection.HostConnection
            A connection to the device; the caller is responsible for closing it

        """
        conn = self._server.dial()

        request = 'host:{}'.format(self._descriptor.transport_descriptor())
        try:
            conn.send_message(request)
            conn.read_status(request)
        except BaseException:
            conn.close()
            raise

        return conn

    def _get_sync_conn(self):
        """Open a connection to the device and switch it to FileSync mode.

        Returns
        -------
        adb_host.sync_connection.SyncConnection
            A FileSync connection; the caller is responsible for closing it

        """
        conn = self._dial_device()
        try:
            conn.send_message('sync:')
            conn.read_status('sync')
        except BaseException:
            conn.close()
            raise

        return conn.new_sync_conn()

    def _open_write(self, path, perms, mtime):
        """Open a file on the device for writing; see :meth:`AdbDevice.open_write`."""
        if not path:
            raise DevicePathInvalidError("Cannot write to an empty device path")

        sync_conn = self._get_sync_conn()
        try:
            return sync_conn.send_file(path, perms, mtime)
        except BaseException:
            sync_conn.close()
            raise

    def _push(self, stream, path, perms, mtime, size, show_progress, progress_callback, cancel_event):
        """Copy ``stream`` to a file on the device; see :meth:`AdbDevice.push_stream`."""
        writer = self._open_write(path, perms, mtime)

        finished = Event()
        watcher = watch_for_cancellation(cancel_event, writer, finished) if cancel_event is not None else None

        try:
            copied = copy_with_progress_and_stats(writer, stream, size, show_progress, progress_callback)
        except BaseException:
            writer.abort()
            raise
        finally:
            finished.set()
            if watcher is not None:
                watcher.join()

        writer.close()
        return copied
