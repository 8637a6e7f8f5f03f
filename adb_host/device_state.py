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

"""The states of a device.

A device can be communicated with when it is :attr:`DeviceState.ONLINE`.  A USB device makes the following
transitions:

* Plugged in: ``DISCONNECTED -> OFFLINE -> ONLINE``
* Unplugged: ``ONLINE -> DISCONNECTED``

"""


from enum import IntEnum
import logging


_LOGGER = logging.getLogger(__name__)


class DeviceState(IntEnum):
    """The state of a device."""
    INVALID = 0
    DISCONNECTED = 1
    OFFLINE = 2
    ONLINE = 3

    #: Not reported by the server; :meth:`adb_host.adb_device.AdbDevice.state` returns this while the device is
    #: waiting for the user to authorize this computer
    UNAUTHORIZED = 4


_DEVICE_STATE_STRINGS = {
    '': DeviceState.DISCONNECTED,
    'offline': DeviceState.OFFLINE,
    'device': DeviceState.ONLINE,
}


def parse_device_state(state):
    """Convert a state reported by the adb server into a :class:`DeviceState`.

    Parameters
    ----------
    state : str
        The state reported by the server, e.g. ``'device'``

    Returns
    -------
    DeviceState
        The corresponding state; states that are not recognized are treated as :attr:`DeviceState.DISCONNECTED`

    """
    try:
        return _DEVICE_STATE_STRINGS[state]
    except KeyError:
        _LOGGER.warning("Unknown device state %r, treating it as %s", state, DeviceState.DISCONNECTED.name)
        return DeviceState.DISCONNECTED
