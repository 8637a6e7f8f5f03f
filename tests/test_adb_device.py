from io import BytesIO
import logging
import os
import stat
import sys
import tempfile
from threading import Event
import unittest

try:
    from unittest.mock import patch
except ImportError:
    from mock import patch

from adb_host import constants
from adb_host.adb_server import AdbServer
from adb_host.device_descriptor import any_device, device_with_serial
from adb_host.device_state import DeviceState
from adb_host.exceptions import AdbError, ErrCode
from adb_host.hidden_helpers import DeviceFile

from . import patchers
from .filesync_helpers import FileSyncListMessage, FileSyncMessage, FileSyncStatMessage, SYNC_OKAY, join_messages


# https://stackoverflow.com/a/7483862
_LOGGER = logging.getLogger('adb_host.adb_device')
_LOGGER.setLevel(logging.DEBUG)
_LOGGER.addHandler(logging.StreamHandler(sys.stdout))

SYNC_READY = patchers.okay() + patchers.okay()


class TestAdbDevice(unittest.TestCase):
    def setUp(self):
        self.server = AdbServer()
        self.device = self.server.device(device_with_serial('ABC123'))
        self.transports = []

        self.patch_create_transport = patch.object(AdbServer, '_create_transport', side_effect=self._create_transport)
        self.patch_create_transport.start()

    def tearDown(self):
        self.patch_create_transport.stop()

        for transport in self.transports:
            self.assertEqual(transport.bulk_read_data, b'')
            self.assertEqual(transport.close_count, 1)

    def _create_transport(self):
        return self.transports[len([t for t in self.transports if t.connected])]

    def add_transport(self, bulk_read_data):
        """Queue a fake connection to the adb server that will respond with ``bulk_read_data``."""
        transport = ConnectionTrackingTransport()
        transport.bulk_read_data = bulk_read_data
        self.transports.append(transport)
        return transport

    def test_str(self):
        self.assertEqual(str(self.device), 'DeviceSerial[ABC123]')

    # ======================================================================= #
    #                                                                         #
    #                               Attributes                                #
    #                                                                         #
    # ======================================================================= #
    def test_serial(self):
        transport = self.add_transport(patchers.okay('ABC123'))

        self.assertEqual(self.device.serial(), 'ABC123')
        self.assertEqual(transport.bulk_write_data, patchers.host_message('host-serial:ABC123:get-serialno'))

    def test_serial_any_device(self):
        device = self.server.device(any_device())
        transport = self.add_transport(patchers.okay('emulator-5554'))

        self.assertEqual(device.serial(), 'emulator-5554')
        self.assertEqual(transport.bulk_write_data, patchers.host_message('host:get-serialno'))

    def test_device_path(self):
        transport = self.add_transport(patchers.okay('usb:1-4'))

        self.assertEqual(self.device.device_path(), 'usb:1-4')
        self.assertEqual(transport.bulk_write_data, patchers.host_message('host-serial:ABC123:get-devpath'))

    def test_product(self):
        transport = self.add_transport(patchers.okay('sdk_gphone_x86'))

        self.assertEqual(self.device._product(), 'sdk_gphone_x86')
        self.assertEqual(transport.bulk_write_data, patchers.host_message('host-serial:ABC123:get-product'))

    def test_state(self):
        self.add_transport(patchers.okay('device'))
        self.assertIs(self.device.state(), DeviceState.ONLINE)

        self.add_transport(patchers.okay('offline'))
        self.assertIs(self.device.state(), DeviceState.OFFLINE)

        self.add_transport(patchers.okay('bootloader'))
        self.assertIs(self.device.state(), DeviceState.DISCONNECTED)

    def test_state_unauthorized(self):
        self.add_transport(patchers.fail('device unauthorized.\nThis adb server\'s $ADB_VENDOR_KEYS is not set'))
        self.assertIs(self.device.state(), DeviceState.UNAUTHORIZED)

    def test_state_error(self):
        self.add_transport(patchers.fail("device 'ABC123' not found"))

        with self.assertRaises(AdbError) as cm:
            self.device.state()

        self.assertEqual(cm.exception.message, 'error performing state on DeviceSerial[ABC123]')
        self.assertIs(cm.exception.code, ErrCode.ADB_ERROR)
        self.assertIs(cm.exception.details, self.device)
        self.assertIn("device 'ABC123' not found", str(cm.exception))

    # ======================================================================= #
    #                                                                         #
    #                                Commands                                 #
    #                                                                         #
    # ======================================================================= #
    def test_run_command(self):
        transport = self.add_transport(patchers.okay() + patchers.okay() + b'hello\n')

        self.assertEqual(self.device.run_command('echo', 'hello'), 'hello\n')
        self.assertEqual(transport.bulk_write_data, patchers.host_message('host:transport:ABC123') + patchers.host_message('shell:echo hello'))

    def test_run_command_no_decode(self):
        self.add_transport(patchers.okay() + patchers.okay() + b'\xff\xfe')
        self.assertEqual(self.device.run_command('cat', '/data/blob', decode=False), b'\xff\xfe')

    def test_run_command_invalid_utf8(self):
        self.add_transport(patchers.okay() + patchers.okay() + b'abc\xff')
        self.assertEqual(self.device.run_command('cat', '/data/blob'), 'abc\\xff')

    def test_run_command_empty(self):
        with self.assertRaises(AdbError) as cm:
            self.device.run_command(' ')

        self.assertIs(cm.exception.code, ErrCode.ASSERTION_ERROR)
        self.assertEqual(cm.exception.message, 'error performing run_command on DeviceSerial[ABC123]')

    def test_run_command_double_quote(self):
        with self.assertRaises(AdbError) as cm:
            self.device.run_command('echo', '"hi"')

        self.assertIs(cm.exception.code, ErrCode.PARSE_ERROR)

    def test_run_command_shell_fail(self):
        self.add_transport(patchers.okay() + patchers.fail('closed'))

        with self.assertRaises(AdbError) as cm:
            self.device.run_command('ls')

        self.assertIs(cm.exception.code, ErrCode.ADB_ERROR)

    def test_dial_device_status_fail(self):
        transport = self.add_transport(patchers.fail("device 'ABC123' not found"))

        with self.assertRaises(AdbError):
            self.device.run_command('ls')

        self.assertEqual(transport.close_count, 1)

    def test_dial_device_read_error(self):
        transport = self.add_transport(b'OK')

        with self.assertRaises(AdbError) as cm:
            self.device.run_command('ls')

        self.assertIs(cm.exception.code, ErrCode.CONNECTION_RESET_ERROR)
        self.assertEqual(transport.close_count, 1)

    def test_server_not_available(self):
        with patch.object(AdbServer, '_create_transport', return_value=patchers.FailingConnectTransport()):
            with self.assertRaises(AdbError) as cm:
                self.device.serial()

        self.assertIs(cm.exception.code, ErrCode.SERVER_NOT_AVAILABLE)

    def test_remount(self):
        transport = self.add_transport(patchers.okay() + patchers.okay('remount succeeded\n'))

        self.assertEqual(self.device.remount(), 'remount succeeded\n')
        self.assertEqual(transport.bulk_write_data, patchers.host_message('host:transport:ABC123') + patchers.host_message('remount'))

    # ======================================================================= #
    #                                                                         #
    #                                FileSync                                 #
    #                                                                         #
    # ======================================================================= #
    def test_list_dir_entries(self):
        transport = self.add_transport(SYNC_READY + join_messages(FileSyncListMessage(constants.DENT, 1, 2, 3, data=b'file1'),
                                                                  FileSyncListMessage(constants.DONE, 0, 0, 0)))

        self.assertEqual(self.device.list_dir_entries('/sdcard'), [DeviceFile('file1', 1, 2, 3)])

        expected = patchers.host_message('host:transport:ABC123') + patchers.host_message('sync:') + join_messages(FileSyncMessage(constants.LIST, data=b'/sdcard'))
        self.assertEqual(transport.bulk_write_data, expected)

    def test_list_dir_entries_empty_path(self):
        with self.assertRaises(AdbError) as cm:
            self.device.list_dir_entries('')

        self.assertIs(cm.exception.code, ErrCode.ASSERTION_ERROR)

    def test_sync_refused(self):
        transport = self.add_transport(patchers.okay() + patchers.fail('sync not allowed'))

        with self.assertRaises(AdbError):
            self.device.list_dir_entries('/sdcard')

        self.assertEqual(transport.close_count, 1)

    def test_stat(self):
        self.add_transport(SYNC_READY + join_messages(FileSyncStatMessage(stat.S_IFREG | 0o644, 10, 1600000000)))
        self.assertEqual(self.device.stat('/sdcard/a.txt'), DeviceFile('/sdcard/a.txt', stat.S_IFREG | 0o644, 10, 1600000000))

    def test_stat_no_exist(self):
        self.add_transport(SYNC_READY + join_messages(FileSyncStatMessage(0, 0, 0)))

        with self.assertRaises(AdbError) as cm:
            self.device.stat('/sdcard/nope')

        self.assertIs(cm.exception.code, ErrCode.FILE_NO_EXIST_ERROR)
        self.assertEqual(cm.exception.message, 'error performing stat(/sdcard/nope) on DeviceSerial[ABC123]')

    def test_open_read(self):
        self.add_transport(SYNC_READY + join_messages(FileSyncMessage(constants.DATA, data=b'contents'),
                                                      FileSyncMessage(constants.DONE, 0)))

        with self.device.open_read('/sdcard/a.txt') as reader:
            self.assertEqual(reader.read(), b'contents')

    def test_open_read_fail(self):
        transport = self.add_transport(SYNC_READY + join_messages(FileSyncMessage(constants.FAIL, data=b'No such file or directory')))

        with self.assertRaises(AdbError) as cm:
            self.device.open_read('/sdcard/nope')

        self.assertIs(cm.exception.code, ErrCode.ADB_ERROR)
        self.assertEqual(transport.close_count, 1)

    def test_open_write(self):
        transport = self.add_transport(SYNC_READY + join_messages(SYNC_OKAY))

        with self.device.open_write('/sdcard/a.txt', 0o644, 1600000000) as writer:
            writer.write(b'contents')

        self.assertTrue(transport.bulk_write_data.endswith(join_messages(FileSyncMessage(constants.DATA, data=b'contents'),
                                                                         FileSyncMessage(constants.DONE, 1600000000))))

    # ======================================================================= #
    #                                                                         #
    #                                  Push                                   #
    #                                                                         #
    # ======================================================================= #
    def test_push_stream(self):
        transport = self.add_transport(SYNC_READY + join_messages(SYNC_OKAY))

        self.assertEqual(self.device.push_stream(BytesIO(b'contents'), '/sdcard/a.txt', 0o644, 1600000000, size=8), 8)

        expected = join_messages(FileSyncMessage(constants.SEND, data='/sdcard/a.txt,{}'.format(stat.S_IFREG | 0o644).encode('utf8')),
                                 FileSyncMessage(constants.DATA, data=b'contents'),
                                 FileSyncMessage(constants.DONE, 1600000000))
        self.assertTrue(transport.bulk_write_data.endswith(expected))

    def test_push_broken_pipe(self):
        """A push that hits a broken pipe ends like an EOF, every time."""
        for _ in range(2):
            transport = self.add_transport(SYNC_READY)
            transport.fail_writes_after = 3

            self.assertEqual(self.device.push_stream(BytesIO(b'x' * (3 * constants.MAX_PUSH_DATA)), '/sdcard/a.bin', size=3 * constants.MAX_PUSH_DATA), 0)

    def test_push_broken_pipe_after_first_chunk(self):
        transport = self.add_transport(SYNC_READY)
        transport.fail_writes_after = 4

        self.assertEqual(self.device.push_stream(BytesIO(b'x' * (3 * constants.MAX_PUSH_DATA)), '/sdcard/a.bin'), constants.MAX_PUSH_DATA)

    def test_push_other_error(self):
        transport = self.add_transport(SYNC_READY)
        transport.fail_writes_after = 3
        transport.write_errno = 104

        with self.assertRaises(AdbError) as cm:
            self.device.push_stream(BytesIO(b'contents'), '/sdcard/a.bin')

        self.assertIs(cm.exception.code, ErrCode.NETWORK_ERROR)

    def test_push_fail(self):
        self.add_transport(SYNC_READY + join_messages(FileSyncMessage(constants.FAIL, data=b'Read-only file system')))

        with self.assertRaises(AdbError) as cm:
            self.device.push_stream(BytesIO(b'contents'), '/system/a.txt', mtime=1)

        self.assertEqual(cm.exception.message, 'error performing push_stream(/system/a.txt) on DeviceSerial[ABC123]')
        self.assertIn('Read-only file system', str(cm.exception))

    def test_push_with_progress(self):
        data = os.urandom(2 * constants.MAX_PUSH_DATA + 10)
        events = []

        with tempfile.TemporaryDirectory() as tmpdir:
            local_path = os.path.join(tmpdir, 'local.bin')
            with open(local_path, 'wb') as f:
                f.write(data)
            os.chmod(local_path, 0o640)
            os.utime(local_path, (1600000000, 1600000000))

            transport = self.add_transport(SYNC_READY + join_messages(SYNC_OKAY))
            self.assertEqual(self.device.push_with_progress(local_path, '/sdcard/remote.bin', progress_callback=events.append), len(data))

        self.assertTrue(events)
        self.assertEqual(events[-1].current, len(data))
        self.assertEqual(events[-1].total, len(data))
        self.assertIn('/sdcard/remote.bin,{}'.format(stat.S_IFREG | 0o640).encode('utf8'), transport.bulk_write_data)
        self.assertTrue(transport.bulk_write_data.endswith(join_messages(FileSyncMessage(constants.DONE, 1600000000))))

    def test_push_with_progress_mtime_before_epoch(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            local_path = os.path.join(tmpdir, 'old.txt')
            with open(local_path, 'wb') as f:
                f.write(b'contents')
            os.utime(local_path, (-100, -100))

            transport = self.add_transport(SYNC_READY)
            with self.assertRaises(AdbError) as cm:
                self.device.push_with_progress(local_path, '/sdcard/old.txt')

        self.assertIs(cm.exception.code, ErrCode.ASSERTION_ERROR)
        self.assertEqual(cm.exception.message, 'error performing push_with_progress(/sdcard/old.txt) on DeviceSerial[ABC123]')
        self.assertNotIn(b'SEND', transport.bulk_write_data)

    def test_push_stream_mtime_too_large(self):
        self.add_transport(SYNC_READY)

        with self.assertRaises(AdbError) as cm:
            self.device.push_stream(BytesIO(b'contents'), '/sdcard/a.txt', mtime=constants.MAX_FILESYNC_MTIME + 1)

        self.assertIs(cm.exception.code, ErrCode.ASSERTION_ERROR)

    def test_push_with_progress_empty_remote_path(self):
        with self.assertRaises(AdbError) as cm:
            self.device.push_with_progress('local.bin', '')

        self.assertIs(cm.exception.code, ErrCode.ASSERTION_ERROR)

    def test_push_with_progress_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(AdbError) as cm:
                self.device.push_with_progress(tmpdir, '/sdcard/dir')

        self.assertIs(cm.exception.code, ErrCode.ASSERTION_ERROR)

    def test_push_with_progress_stdin(self):
        events = []
        self.add_transport(SYNC_READY + join_messages(SYNC_OKAY))

        with patch('sys.stdin') as stdin:
            stdin.buffer = BytesIO(b'from stdin')
            self.assertEqual(self.device.push_with_progress('-', '/sdcard/stdin.txt', progress_callback=events.append), 10)

        self.assertEqual(events, [])
        self.assertIn('/sdcard/stdin.txt,{}'.format(stat.S_IFREG | 0o660).encode('utf8'), self.transports[0].bulk_write_data)

    def test_push_cancelled(self):
        cancel_event = Event()
        transport = self.add_transport(SYNC_READY + join_messages(SYNC_OKAY))

        class CancellingSource(object):
            """Returns one chunk, then cancels the push and waits for the remote file to be closed."""
            def __init__(self):
                self.reads = 0

            def read(self, size=-1):
                self.reads += 1
                if self.reads == 1:
                    return b'first'
                if self.reads == 2:
                    cancel_event.set()
                    transport.closed_event.wait(5)
                    return b'second'
                return b''

        self.assertEqual(self.device.push_stream(CancellingSource(), '/sdcard/a.txt', mtime=1, cancel_event=cancel_event), 5)
        self.assertTrue(transport.bulk_write_data.endswith(join_messages(FileSyncMessage(constants.DATA, data=b'first'),
                                                                         FileSyncMessage(constants.DONE, 1))))

    def test_push_cancelled_during_write(self):
        """Cancelling while a write is blocked closes the connection, which unblocks the write."""
        cancel_event = Event()
        transport = self.add_transport(SYNC_READY)

        # Setup takes 3 writes and the first chunk takes 1; the second chunk blocks
        transport.block_writes_after = 4
        transport.on_blocked_write = cancel_event.set

        copied = self.device.push_stream(BytesIO(b'x' * (3 * constants.MAX_PUSH_DATA)), '/sdcard/a.bin', mtime=1, cancel_event=cancel_event)

        self.assertEqual(copied, constants.MAX_PUSH_DATA)
        self.assertTrue(transport.bulk_write_data.endswith(join_messages(FileSyncMessage(constants.DATA, data=b'x' * constants.MAX_PUSH_DATA))))
        self.assertNotIn(join_messages(FileSyncMessage(constants.DONE, 1)), transport.bulk_write_data)

    def test_push_not_cancelled(self):
        cancel_event = Event()
        self.add_transport(SYNC_READY + join_messages(SYNC_OKAY))

        self.assertEqual(self.device.push_stream(BytesIO(b'contents'), '/sdcard/a.txt', mtime=1, cancel_event=cancel_event), 8)
        cancel_event.set()


class ConnectionTrackingTransport(patchers.FakeTcpTransport):
    """A fake transport that remembers whether it was connected and can fail writes with a given errno.

    Attributes
    ----------
    block_writes_after : int, None
        If set, every write after this many successful writes calls ``on_blocked_write`` and then blocks until
        the transport is closed
    fail_writes_after : int, None
        If set, every write after this many successful writes fails
    write_errno : int
        The ``errno`` of the failed writes

    """
    def __init__(self, *args, **kwargs):
        patchers.FakeTcpTransport.__init__(self, *args, **kwargs)
        self.connected = False
        self.block_writes_after = None
        self.on_blocked_write = None
        self.fail_writes_after = None
        self.write_errno = 32
        self._writes = 0

    def connect(self, transport_timeout_s=None):
        patchers.FakeTcpTransport.connect(self, transport_timeout_s)
        self.connected = True

    def bulk_write(self, data, transport_timeout_s=None):
        if self.block_writes_after is not None and self._writes >= self.block_writes_after:
            self.on_blocked_write()
            self.closed_event.wait(5)

        if self.fail_writes_after is not None and self._writes >= self.fail_writes_after:
            raise OSError(self.write_errno, os.strerror(self.write_errno))

        self._writes += 1
        return patchers.FakeTcpTransport.bulk_write(self, data, transport_timeout_s)
