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

"""Implement the :class:`HostConnection` class, which speaks the adb server's host protocol over a transport.

Every request is a 4 hex digit length followed by the request itself.  The server answers with a 4 byte status
(``b'OKAY'`` or ``b'FAIL'``); what follows the status depends on the request:

* most ``host:`` requests are answered with a single length-prefixed message (:meth:`HostConnection.read_message`)
* ``shell:`` output has no length header and ends when the server closes the stream (:meth:`HostConnection.read_until_eof`)
* after ``sync:`` the connection speaks the binary FileSync protocol (:meth:`HostConnection.new_sync_conn`)

.. rubric:: Contents

* :class:`HostConnection`

    * :meth:`HostConnection.close`
    * :meth:`HostConnection.new_sync_conn`
    * :meth:`HostConnection.read_exactly`
    * :meth:`HostConnection.read_message`
    * :meth:`HostConnection.read_status`
    * :meth:`HostConnection.read_until_eof`
    * :meth:`HostConnection.round_trip_single_response`
    * :meth:`HostConnection.send_message`
    * :meth:`HostConnection.write_all`

"""


import logging

from . import constants
from .exceptions import AdbCommandFailureException, AdbConnectionError, AdbError, ErrCode, InvalidResponseError, InvalidTransportError
from .sync_connection import SyncConnection
from .transport.base_transport import BaseTransport


_LOGGER = logging.getLogger(__name__)


class HostConnection(object):
    """A connection to the adb server.

    Parameters
    ----------
    transport : BaseTransport
        A connected transport; must be an instance of a subclass of :class:`~adb_host.transport.base_transport.BaseTransport`
    transport_timeout_s : float, None
        Timeout in seconds for sending and receiving data, or ``None`` to block

    Attributes
    ----------
    _closed : bool
        Whether :meth:`HostConnection.close` has been called
    _transport : BaseTransport
        The transport used to talk to the adb server
    _transport_timeout_s : float, None
        Timeout in seconds for sending and receiving data, or ``None`` to block

    Raises
    ------
    InvalidTransportError
        The passed ``transport`` is not an instance of a subclass of :class:`~adb_host.transport.base_transport.BaseTransport`

    """
    def __init__(self, transport, transport_timeout_s=constants.DEFAULT_TRANSPORT_TIMEOUT_S):
        if not isinstance(transport, BaseTransport):
            raise InvalidTransportError("`transport` must be an instance of a subclass of `BaseTransport`")

        self._transport = transport
        self._transport_timeout_s = transport_timeout_s
        self._closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    @property
    def closed(self):
        """Whether or not this connection has been closed.

        Returns
        -------
        bool
            ``self._closed``

        """
        return self._closed

    def close(self):
        """Close the transport.  Calling this more than once is safe.

        """
        if self._closed:
            return

        self._closed = True
        self._transport.close()

    def send_message(self, data):
        """Send a length-prefixed message.

        Parameters
        ----------
        data : bytes, str
            The request

        Raises
        ------
        AdbError
            The message is too long to be sent

        """
        if not isinstance(data, bytes):
            data = data.encode('utf8')

        if len(data) > constants.MAX_MESSAGE_LENGTH:
            raise AdbError('message length exceeds maximum: {}'.format(len(data)), code=ErrCode.ASSERTION_ERROR)

        _LOGGER.debug("Sending request %r", data)
        self.write_all(b'%04x' % len(data) + data)

    def read_status(self, request):
        """Read a status and raise an exception if it is not ``b'OKAY'``.

        Parameters
        ----------
        request : bytes, str
            The request whose status is being read; it is only used in the error message

        Returns
        -------
        bytes
            :const:`adb_host.constants.STATUS_OKAY`

        Raises
        ------
        AdbCommandFailureException
            The server replied with ``b'FAIL'``
        InvalidResponseError
            The server replied with something other than ``b'OKAY'`` or ``b'FAIL'``

        """
        if isinstance(request, bytes):
            request = request.decode('utf8', 'backslashreplace')

        status = self.read_exactly(constants.STATUS_SIZE)
        _LOGGER.debug("Status for request %r: %r", request, status)

        if status == constants.STATUS_OKAY:
            return status

        if status == constants.STATUS_FAIL:
            server_msg = self.read_message().decode('utf8', 'backslashreplace')
            raise AdbCommandFailureException('server error for {} request: {}'.format(request, server_msg),
                                             details={'request': request, 'server_msg': server_msg})

        raise InvalidResponseError('unexpected status for {} request: {!r}'.format(request, status), details={'request': request})

    def read_message(self):
        """Read a message that is prefixed by a 4 hex digit length.

        Returns
        -------
        bytes
            The body of the message

        Raises
        ------
        InvalidResponseError
            The length header could not be parsed

        """
        header = self.read_exactly(constants.LENGTH_HEADER_SIZE)
        try:
            length = int(header.decode('ascii'), 16)
        except (UnicodeDecodeError, ValueError) as exc:
            raise InvalidResponseError('could not parse length header {!r}'.format(header), cause=exc)

        return self.read_exactly(length)

    def round_trip_single_response(self, request):
        """Send a request, read the status, and read a single length-prefixed response.

        Parameters
        ----------
        request : bytes, str
            The request

        Returns
        -------
        bytes
            The body of the response

        """
        self.send_message(request)
        self.read_status(request)
        return self.read_message()

    def read_until_eof(self):
        """Read until the server closes the stream.

        Returns
        -------
        bytes
            Everything that was read

        """
        chunks = []
        while True:
            chunk = self._bulk_read(constants.READ_CHUNK_SIZE)
            if not chunk:
                break

            chunks.append(chunk)

        return b''.join(chunks)

    def new_sync_conn(self):
        """Reinterpret this connection as a FileSync connection.

        This must only be called after the server has accepted a ``sync:`` request.

        Returns
        -------
        SyncConnection
            A FileSync connection that owns this connection

        """
        return SyncConnection(self)

    def read_exactly(self, numbytes):
        """Read exactly ``numbytes`` bytes.

        Parameters
        ----------
        numbytes : int
            The number of bytes to read

        Returns
        -------
        bytes
            The data that was read

        Raises
        ------
        AdbConnectionError
            The server closed the stream before ``numbytes`` bytes were read

        """
        data = bytearray()
        while len(data) < numbytes:
            chunk = self._bulk_read(numbytes - len(data))
            if not chunk:
                raise AdbConnectionError('connection closed after reading {} of {} bytes'.format(len(data), numbytes),
                                         code=ErrCode.CONNECTION_RESET_ERROR)

            data.extend(chunk)

        return bytes(data)

    def write_all(self, data):
        """Send all of ``data``.

        Parameters
        ----------
        data : bytes
            The data to be sent

        Raises
        ------
        AdbConnectionError
            Writing to the transport failed

        """
        view = memoryview(data)
        while view:
            try:
                sent = self._transport.bulk_write(view.tobytes(), self._transport_timeout_s)
            except OSError as exc:
                raise AdbConnectionError('error writing to {}'.format(self._transport), cause=exc)

            view = view[sent:]

    def _bulk_read(self, numbytes):
        """Read up to ``numbytes`` bytes from the transport, converting socket errors."""
        try:
            return self._transport.bulk_read(numbytes, self._transport_timeout_s)
        except OSError as exc:
            raise AdbConnectionError('error reading from {}'.format(self._transport), cause=exc)
