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

"""Implement helpers for the :class:`~adb_host.adb_device.AdbDevice` class.

.. rubric:: Contents

* :class:`DeviceFile`
* :func:`client_error_context`
* :func:`contains_whitespace`
* :func:`is_blank`
* :func:`prepare_command_line`
* :func:`wrap_client_error`

"""


from collections import namedtuple
from contextlib import contextmanager
import logging
import re

from .exceptions import AdbError, ErrCode


_LOGGER = logging.getLogger(__name__)

_BLANK_REGEX = re.compile(r'^\s*$')

DeviceFile = namedtuple('DeviceFile', ['filename', 'mode', 'size', 'mtime'])


def contains_whitespace(arg):
    """Check whether ``arg`` contains a space, a tab, or a vertical tab."""
    return any(c in arg for c in ' \t\v')


def is_blank(arg):
    """Check whether ``arg`` is empty or consists only of whitespace."""
    return _BLANK_REGEX.match(arg) is not None


def prepare_command_line(cmd, *args):
    """Validate a command and its arguments and join them into a single ``shell:`` command.

    The adb server cannot escape double quotes in a shell command, so arguments that contain them are rejected.
    Arguments that contain whitespace are passed through as-is, which allows callers to pass several
    space-separated words (e.g., ``'tap 100 200'``) as a single argument.

    Parameters
    ----------
    cmd : str
        The command
    args : str
        The arguments

    Returns
    -------
    str
        ``cmd`` and ``args`` joined by single spaces

    Raises
    ------
    AdbError
        ``cmd`` is blank (:attr:`ErrCode.ASSERTION_ERROR`) or an argument contains a double quote (:attr:`ErrCode.PARSE_ERROR`)

    """
    if is_blank(cmd):
        raise AdbError('command cannot be empty', code=ErrCode.ASSERTION_ERROR)

    for i, arg in enumerate(args):
        if '"' in arg:
            raise AdbError('arg at index {} contains an invalid double quote: {}'.format(i, arg), code=ErrCode.PARSE_ERROR)
        if contains_whitespace(arg):
            _LOGGER.debug("Argument at index %d contains whitespace and will not be quoted: %r", i, arg)

    return ' '.join((cmd,) + args)


def wrap_client_error(err, client, operation, *args):
    """Wrap an error raised while performing ``operation`` on ``client``.

    Parameters
    ----------
    err : AdbError, OSError
        The error to be wrapped
    client : object
        The object on which the operation was performed, e.g. an :class:`~adb_host.adb_device.AdbDevice`
    operation : str
        The name of the operation; it may contain ``%`` placeholders for ``args``
    args : object
        Values for the placeholders in ``operation``

    Returns
    -------
    AdbError
        An error with the same code as ``err`` (:attr:`ErrCode.IO_ERROR` if it is not an :class:`AdbError`),
        ``err`` as its cause, and ``client`` as its details

    """
    if args:
        operation %= args

    code = err.code if isinstance(err, AdbError) else ErrCode.IO_ERROR
    return AdbError('error performing {} on {}'.format(operation, client), cause=err, details=client, code=code)


@contextmanager
def client_error_context(client, operation, *args):
    """A context manager that re-raises errors as :func:`wrap_client_error` errors.

    Parameters
    ----------
    client : object
        The object on which the operation is performed
    operation : str
        The name of the operation
    args : object
        Values for ``%`` placeholders in ``operation``

    Raises
    ------
    AdbError
        An :class:`AdbError` or :class:`OSError` was raised inside the context

    """
    try:
        yield
    except (AdbError, OSError) as exc:
        raise wrap_client_error(exc, client, operation, *args) from exc
