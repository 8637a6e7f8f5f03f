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

"""Implement the :class:`AdbServer` class, which represents the adb server that devices are reached through.

.. rubric:: Contents

* :class:`AdbServer`

    * :meth:`AdbServer.device`
    * :meth:`AdbServer.dial`
    * :meth:`AdbServer.round_trip_single_response`
    * :meth:`AdbServer.version`

"""


import logging

from . import constants
from .adb_device import AdbDevice
from .exceptions import AdbConnectionError, ErrCode, InvalidResponseError
from .hidden_helpers import client_error_context
from .host_connection import HostConnection
from .transport.tcp_transport import TcpTransport


_LOGGER = logging.getLogger(__name__)


class AdbServer(object):
    """The adb server, which every request is sent to.

    Parameters
    ----------
    host : str
        The address of the adb server
    port : int
        The port on which the adb server listens
    default_transport_timeout_s : float, None
        Default timeout in seconds for sending and receiving data, or ``None`` to block

    Attributes
    ----------
    _default_transport_timeout_s : float, None
        Default timeout in seconds for sending and receiving data, or ``None`` to block
    _host : str
        The address of the adb server
    _port : int
        The port on which the adb server listens

    """
    def __init__(self, host=constants.DEFAULT_HOST, port=constants.DEFAULT_PORT, default_transport_timeout_s=constants.DEFAULT_TRANSPORT_TIMEOUT_S):
        self._host = host
        self._port = port
        self._default_transport_timeout_s = default_transport_timeout_s

    def __str__(self):
        return 'AdbServer({}:{})'.format(self._host, self._port)

    def device(self, descriptor):
        """Get a handle for the device described by ``descriptor``.

        Parameters
        ----------
        descriptor : adb_host.device_descriptor.DeviceDescriptor
            The target device

        Returns
        -------
        AdbDevice
            A device that performs its requests via this server

        """
        return AdbDevice(self, descriptor)

    def dial(self):
        """Open a new connection to the adb server.

        Returns
        -------
        HostConnection
            A new connection; the caller is responsible for closing it

        Raises
        ------
        AdbConnectionError
            The server could not be reached

        """
        transport = self._create_transport()
        try:
            transport.connect(self._default_transport_timeout_s)
        except OSError as exc:
            transport.close()
            raise AdbConnectionError('could not connect to the adb server at {}:{}'.format(self._host, self._port), cause=exc, code=ErrCode.SERVER_NOT_AVAILABLE)

        _LOGGER.debug("Connected to the adb server at %s:%d", self._host, self._port)
        return HostConnection(transport, self._default_transport_timeout_s)

    def round_trip_single_response(self, request):
        """Open a connection, send ``request``, read a single response, and close the connection.

        Parameters
        ----------
        request : str
            The request

        Returns
        -------
        bytes
            The body of the response

        """
        with self.dial() as conn:
            return conn.round_trip_single_response(request)

    def version(self):
        """Get the version of the adb server's protocol.

        Returns
        -------
        int
            The version

        """
        with client_error_context(self, 'version'):
            resp = self.round_trip_single_response('host:version')
            try:
                return int(resp, 16)
            except ValueError as exc:
                raise InvalidResponseError('could not parse server version {!r}'.format(resp), cause=exc)

    def _create_transport(self):
        """Create an unconnected transport to the adb server."""
        return TcpTransport(self._host, self._port)
