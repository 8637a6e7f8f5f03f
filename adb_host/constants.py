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

"""Constants used throughout the code.

"""


import stat
import struct


#: The host where the adb server listens by default
DEFAULT_HOST = 'localhost'

#: The port where the adb server listens by default
DEFAULT_PORT = 5037

#: Default timeout for :meth:`adb_host.transport.tcp_transport.TcpTransport.bulk_read` and :meth:`adb_host.transport.tcp_transport.TcpTransport.bulk_write` (``None`` blocks)
DEFAULT_TRANSPORT_TIMEOUT_S = None

#: Number of bytes requested per read when reading a response until the server closes the stream
READ_CHUNK_SIZE = 4096

#: Host protocol messages carry a 4 hex digit length header
MAX_MESSAGE_LENGTH = 0xFFFF

#: Length of the host protocol length header
LENGTH_HEADER_SIZE = 4

#: Length of a host protocol status (``b'OKAY'`` / ``b'FAIL'``)
STATUS_SIZE = 4

#: Host protocol status values
STATUS_OKAY = b'OKAY'
STATUS_FAIL = b'FAIL'

#: Maximum size of a ``DATA`` record when pushing a file
MAX_PUSH_DATA = 64 * 1024

#: Default mode for pushed files.
DEFAULT_PUSH_MODE = stat.S_IFREG | stat.S_IRWXU | stat.S_IRWXG

#: Permissions used for files pushed from standard input
STDIN_PUSH_PERMS = 0o660

#: Pass this as ``mtime`` to use the time at which the remote file is closed as its modification time
MTIME_OF_CLOSE = 0

#: The ``DONE`` request carries the mtime as an unsigned 32-bit integer
MAX_FILESYNC_MTIME = 0xFFFFFFFF

#: Local path that stands for standard input when pushing
STDIO_FILENAME = '-'

#: How often the cancellation watcher checks whether a push has finished
CANCEL_POLL_INTERVAL_S = 0.1

# FileSync commands
DATA = b'DATA'
DENT = b'DENT'
DONE = b'DONE'
FAIL = b'FAIL'
LIST = b'LIST'
OKAY = b'OKAY'
RECV = b'RECV'
SEND = b'SEND'
STAT = b'STAT'

#: Commands that are recognized by :meth:`adb_host.sync_connection.SyncConnection._read_id`
FILESYNC_IDS = (DATA, DENT, DONE, FAIL, LIST, OKAY, RECV, SEND, STAT)

#: A dictionary where the keys are the commands in :const:`FILESYNC_IDS` and the values are the keys converted to integers
FILESYNC_ID_TO_WIRE = {cmd_id: sum(c << (i * 8) for i, c in enumerate(bytearray(cmd_id))) for cmd_id in FILESYNC_IDS}

#: A dictionary where the keys are integers and the values are their corresponding commands (type = bytes) from :const:`FILESYNC_IDS`
FILESYNC_WIRE_TO_ID = {wire: cmd_id for cmd_id, wire in FILESYNC_ID_TO_WIRE.items()}

#: Every FileSync request and most responses start with an ID and a 32-bit little-endian length
FILESYNC_HEADER_FORMAT = b'<2I'

#: A ``DENT`` record after its ID: mode, size, mtime, name length
FILESYNC_DENT_FORMAT = b'<4I'

#: A ``STAT`` response after its ID: mode, size, mtime
FILESYNC_STAT_FORMAT = b'<3I'

FILESYNC_HEADER_SIZE = struct.calcsize(FILESYNC_HEADER_FORMAT)
FILESYNC_DENT_SIZE = struct.calcsize(FILESYNC_DENT_FORMAT)
FILESYNC_STAT_SIZE = struct.calcsize(FILESYNC_STAT_FORMAT)

#: Size of a FileSync record ID
FILESYNC_ID_SIZE = 4
