"""In-memory stand-ins for the evdev input source and the BlueZ transport."""

import asyncio


class FakeJoystick:
    def __init__(self, path="/dev/input/js0", axes=None, buttons=None):
        self.js_path = path
        self.axes = dict(axes or {0: 0, 1: 0})
        self.buttons = dict(buttons or {304: False, 305: False})
        self.fail_reads = False
        self.close_count = 0

    def read_axes(self):
        if self.fail_reads:
            raise OSError("No such device")
        return dict(self.axes)

    def read_buttons(self):
        if self.fail_reads:
            raise OSError("No such device")
        return dict(self.buttons)

    def close(self):
        self.close_count += 1


class FakeDevice:
    def __init__(self, address, connected=True):
        self.address = address
        self.connected = connected
        self.disconnect_count = 0
        self.release_count = 0
        self._down = asyncio.Event()
        if not connected:
            self._down.set()

    async def is_connected(self):
        return self.connected

    async def wait_disconnected(self):
        await self._down.wait()

    async def disconnect(self):
        self.disconnect_count += 1
        self.drop()

    def drop(self):
        """Simulate the link going down (out of range, powered off)."""
        self.connected = False
        self._down.set()

    def release(self):
        self.release_count += 1


class FakeTransport:
    def __init__(self, devices=()):
        self.available = True
        self.devices = {device.address: device for device in devices}
        self.lookups = []
        # address -> seconds to stall, or an exception to raise, on lookup
        self.stalls = {}

    async def is_available(self):
        return self.available

    async def find_device(self, address):
        self.lookups.append(address)
        stall = self.stalls.get(address)
        if isinstance(stall, Exception):
            raise stall
        if stall:
            await asyncio.sleep(stall)
        for known, device in self.devices.items():
            if known.lower() == address.lower():
                return device
        return None


class FakeInputs:
    """Resolver, opener and lister backed by a {path: identity} table."""

    def __init__(self, identities):
        self.identities = dict(identities)
        self.opened = {}

    def lister(self):
        return sorted(self.identities)

    async def resolver(self, path):
        identity = self.identities[path]
        if isinstance(identity, Exception):
            raise identity
        return identity

    def opener(self, path):
        joystick = FakeJoystick(path)
        self.opened[path] = joystick
        return joystick
