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

"""Identify the device that a request is meant for.

=================================  ==========================  ======================
Factory                            Host prefix                 Transport descriptor
=================================  ==========================  ======================
:func:`any_device`                 ``host``                    ``transport-any``
:func:`any_usb_device`             ``host-usb``                ``transport-usb``
:func:`any_local_device`           ``host-local``              ``transport-local``
:func:`device_with_serial`         ``host-serial:<serial>``    ``transport:<serial>``
:func:`device_with_transport_id`   ``host-transport-id:<id>``  ``transport-id:<id>``
=================================  ==========================  ======================

"""


from collections import namedtuple
from enum import Enum


class DeviceDescriptorType(Enum):
    """The kinds of :class:`DeviceDescriptor`."""
    #: ``host:transport-any`` and ``host:<request>``
    ANY = 'DeviceAny'

    #: ``host:transport-usb`` and ``host-usb:<request>``
    USB = 'DeviceUsb'

    #: ``host:transport-local`` and ``host-local:<request>``
    LOCAL = 'DeviceLocal'

    #: ``host:transport:<serial>`` and ``host-serial:<serial>:<request>``
    SERIAL = 'DeviceSerial'

    #: ``host:transport-id:<transport-id>`` and ``host-transport-id:<transport-id>:<request>``
    TRANSPORT_ID = 'DeviceTransportId'

    def __str__(self):
        return self.value


class DeviceDescriptor(namedtuple('DeviceDescriptor', ['descriptor_type', 'serial', 'transport_id'])):
    """An immutable description of a target device.

    Use the factory functions in this module rather than instantiating this class directly.

    Attributes
    ----------
    descriptor_type : DeviceDescriptorType
        The kind of descriptor
    serial : str, None
        The device's serial number; only set for :attr:`DeviceDescriptorType.SERIAL`
    transport_id : str, None
        The transport ID; only set for :attr:`DeviceDescriptorType.TRANSPORT_ID`

    """
    __slots__ = ()

    def __str__(self):
        if self.descriptor_type is DeviceDescriptorType.SERIAL:
            return '{}[{}]'.format(self.descriptor_type, self.serial)

        return str(self.descriptor_type)

    def host_prefix(self):
        """Get the prefix used to send a ``host`` request about this device.

        Returns
        -------
        str
            The prefix, e.g. ``'host-serial:ABC123'``

        Raises
        ------
        ValueError
            ``descriptor_type`` is not a :class:`DeviceDescriptorType`

        """
        if self.descriptor_type is DeviceDescriptorType.ANY:
            return 'host'
        if self.descriptor_type is DeviceDescriptorType.USB:
            return 'host-usb'
        if self.descriptor_type is DeviceDescriptorType.LOCAL:
            return 'host-local'
        if self.descriptor_type is DeviceDescriptorType.SERIAL:
            return 'host-serial:{}'.format(self.serial)
        if self.descriptor_type is DeviceDescriptorType.TRANSPORT_ID:
            return 'host-transport-id:{}'.format(self.transport_id)

        raise ValueError('invalid DeviceDescriptorType: {!r}'.format(self.descriptor_type))

    def transport_descriptor(self):
        """Get the request (without the ``host:`` prefix) that switches a connection to this device.

        Returns
        -------
        str
            The transport request, e.g. ``'transport:ABC123'``

        Raises
        ------
        ValueError
            ``descriptor_type`` is not a :class:`DeviceDescriptorType`

        """
        if self.descriptor_type is DeviceDescriptorType.ANY:
            return 'transport-any'
        if self.descriptor_type is DeviceDescriptorType.USB:
            return 'transport-usb'
        if self.descriptor_type is DeviceDescriptorType.LOCAL:
            return 'transport-local'
        if self.descriptor_type is DeviceDescriptorType.SERIAL:
            return 'transport:{}'.format(self.serial)
        if self.descriptor_type is DeviceDescriptorType.TRANSPORT_ID:
            return 'transport-id:{}'.format(self.transport_id)

        raise ValueError('invalid DeviceDescriptorType: {!r}'.format(self.descriptor_type))


def any_device():
    """Any single device (fails if more than one is attached)."""
    return DeviceDescriptor(DeviceDescriptorType.ANY, None, None)


def any_usb_device():
    """Any single USB device."""
    return DeviceDescriptor(DeviceDescriptorType.USB, None, None)


def any_local_device():
    """Any single emulator or TCP device."""
    return DeviceDescriptor(DeviceDescriptorType.LOCAL, None, None)


def device_with_serial(serial):
    """The device with serial number ``serial``."""
    return DeviceDescriptor(DeviceDescriptorType.SERIAL, serial, None)


def device_with_transport_id(transport_id):
    """The device on transport ``transport_id``, as shown by ``adb devices -l``."""
    return DeviceDescriptor(DeviceDescriptorType.TRANSPORT_ID, None, transport_id)
