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

"""ADB-related exceptions.

Every error raised by this package is an :class:`AdbError`.  It carries an :class:`ErrCode`, an optional ``cause``, a
human-readable ``message`` and an optional ``details`` payload (for errors raised by
:class:`~adb_host.adb_device.AdbDevice` methods this is the device itself).

"""


from enum import Enum


class ErrCode(Enum):
    """The kind of an :class:`AdbError`.

    """
    #: The caller passed an invalid argument (e.g., an empty command)
    ASSERTION_ERROR = 'AssertionError'

    #: Something could not be parsed (e.g., a malformed argument or response)
    PARSE_ERROR = 'ParseError'

    #: The adb server could not be reached
    SERVER_NOT_AVAILABLE = 'ServerNotAvailable'

    #: Reading from or writing to the server failed
    NETWORK_ERROR = 'NetworkError'

    #: The server closed the connection before a complete response was read
    CONNECTION_RESET_ERROR = 'ConnectionResetError'

    #: The server replied with a failure status
    ADB_ERROR = 'AdbError'

    #: A file on the device does not exist
    FILE_NO_EXIST_ERROR = 'FileNoExistError'

    #: A local I/O operation failed
    IO_ERROR = 'IOError'


class AdbError(Exception):
    """The error type raised by this package.

    Parameters
    ----------
    message : str
        A human-readable description of the error
    cause : Exception, None
        The error that caused this one
    details : object, None
        Structured information about the error, e.g. the device on which an operation was performed
    code : ErrCode, None
        The kind of error; if ``None``, the class default :attr:`AdbError.code` is used

    Attributes
    ----------
    cause : Exception, None
        The error that caused this one
    code : ErrCode
        The kind of error
    details : object, None
        Structured information about the error
    message : str
        A human-readable description of the error

    """
    code = ErrCode.ADB_ERROR

    def __init__(self, message='', cause=None, details=None, code=None):
        super(AdbError, self).__init__(message)
        self.message = message
        self.cause = cause
        self.details = details
        if code is not None:
            self.code = code

    def __str__(self):
        if self.cause is None:
            return self.message

        return '{}: {}'.format(self.message, self.cause)


class AdbCommandFailureException(AdbError):
    """A ``b'FAIL'`` status was received.

    """
    code = ErrCode.ADB_ERROR


class AdbConnectionError(AdbError):
    """Could not connect to the adb server, or the connection broke.

    """
    code = ErrCode.NETWORK_ERROR


class AdbTimeoutError(AdbError):
    """ADB command did not complete within the specified time.

    """
    code = ErrCode.NETWORK_ERROR


class DevicePathInvalidError(AdbError):
    """A file command was passed an invalid path.

    """
    code = ErrCode.ASSERTION_ERROR


class FileNoExistError(AdbError):
    """The requested file does not exist on the device.

    """
    code = ErrCode.FILE_NO_EXIST_ERROR


class InvalidResponseError(AdbError):
    """Got an invalid response to our command.

    """
    code = ErrCode.PARSE_ERROR


class InvalidTransportError(AdbError):
    """The provided transport does not implement the necessary methods: ``close``, ``connect``, ``bulk_read``, and ``bulk_write``.

    """
    code = ErrCode.ASSERTION_ERROR


class PushFailedError(AdbError):
    """Pushing a file failed for some reason.

    """
    code = ErrCode.ADB_ERROR


class TcpTimeoutException(AdbTimeoutError):
    """TCP connection timed read/write operation exceeded the allowed time.

    """
