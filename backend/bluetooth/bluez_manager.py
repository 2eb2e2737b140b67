"""BlueZ D-Bus access for looking up, watching and disconnecting controllers."""

import asyncio
from typing import Any, Optional

import config

BLUEZ_SERVICE = "org.bluez"
OBJECT_MANAGER_IFACE = "org.freedesktop.DBus.ObjectManager"
ADAPTER_IFACE = "org.bluez.Adapter1"
DEVICE_IFACE = "org.bluez.Device1"
VANISHED_ERRORS = (
    "org.freedesktop.DBus.Error.UnknownObject",
    "org.freedesktop.DBus.Error.UnknownMethod",
)


def _unpack(value: Any) -> Any:
    return value.unpack() if hasattr(value, "unpack") else value


def _is_vanished_error(error: Exception) -> bool:
    """True if a D-Bus error means the device object no longer exists."""
    error_name = str(getattr(error, "get_dbus_name", lambda: "")())
    return any(name in error_name or name in str(error) for name in VANISHED_ERRORS)


class BluetoothDevice:
    """Handle to one BlueZ device object."""

    def __init__(self, manager: "BlueZManager", path: str, address: str):
        self._manager = manager
        self.path = path
        self.address = address
        self._proxy = None
        self._released = False

    def _get_proxy(self):
        if self._proxy is None:
            self._proxy = self._manager.get_bus().get_proxy(BLUEZ_SERVICE, self.path, DEVICE_IFACE)
        return self._proxy

    def _read_connected(self) -> bool:
        return bool(_unpack(self._get_proxy().Connected))

    async def is_connected(self) -> bool:
        """Return the Connected property. Read errors count as not connected."""
        if self._released:
            return False
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._read_connected)
        except Exception as e:
            print(f"[BlueZ] Could not read Connected for {self.address}: {e}", flush=True)
            return False

    async def wait_disconnected(self, interval: Optional[float] = None):
        """Return once BlueZ reports the link down or the device object is gone.

        Other read errors (timeouts, a busy bus) are logged and the watch
        carries on, so a live link is never mistaken for a dropped one.
        """
        interval = config.LINK_POLL_INTERVAL if interval is None else interval
        loop = asyncio.get_running_loop()
        while not self._released:
            try:
                if not await loop.run_in_executor(None, self._read_connected):
                    return
            except Exception as e:
                if _is_vanished_error(e):
                    print(f"[BlueZ] Device object for {self.address} is gone", flush=True)
                    return
                print(f"[BlueZ] Could not read Connected for {self.address}: {e}", flush=True)
            await asyncio.sleep(interval)

    async def disconnect(self):
        """Ask BlueZ to drop the link, then release the handle. Errors are logged."""
        if self._released:
            return
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, lambda: self._get_proxy().Disconnect())
            print(f"[BlueZ] Disconnected: {self.address}", flush=True)
        except Exception as e:
            print(f"[BlueZ] Failed to disconnect {self.address}: {e}", flush=True)
        finally:
            self.release()

    def release(self):
        self._released = True
        self._proxy = None


class BlueZManager:
    def __init__(self):
        self._bus = None

    def get_bus(self):
        if self._bus is None:
            # Imported here so the module loads without PyGObject until a bus is needed
            from dasbus.connection import SystemMessageBus

            self._bus = SystemMessageBus()
        return self._bus

    def _get_managed_objects(self) -> dict:
        obj_manager = self.get_bus().get_proxy(BLUEZ_SERVICE, "/", OBJECT_MANAGER_IFACE)
        return obj_manager.GetManagedObjects()

    @staticmethod
    def _adapter_paths(objects: dict) -> list[str]:
        return sorted(str(path) for path, interfaces in objects.items() if ADAPTER_IFACE in interfaces)

    def _list_adapters(self) -> list[str]:
        return self._adapter_paths(self._get_managed_objects())

    def _find_device_path(self, address: str) -> Optional[str]:
        """Walk each adapter's devices for a case-insensitive address match."""
        objects = self._get_managed_objects()
        for adapter_path in self._adapter_paths(objects):
            for path, interfaces in objects.items():
                if DEVICE_IFACE not in interfaces:
                    continue
                props = interfaces[DEVICE_IFACE]
                owner = str(_unpack(props.get("Adapter", "")))
                if owner != adapter_path:
                    continue
                if str(_unpack(props.get("Address", ""))).upper() == address.upper():
                    return str(path)
        return None

    async def is_available(self) -> bool:
        """True if the BlueZ service answers on the system bus."""
        loop = asyncio.get_running_loop()
        try:
            adapters = await loop.run_in_executor(None, self._list_adapters)
        except Exception as e:
            print(f"[BlueZ] Bluetooth unavailable: {e}", flush=True)
            # Drop the cached bus so the next probe reconnects
            self._bus = None
            return False
        if not adapters:
            print("[BlueZ] No Bluetooth adapter found", flush=True)
        return True

    async def find_device(self, address: str) -> Optional[BluetoothDevice]:
        """Return a handle for the device with this address, or None."""
        loop = asyncio.get_running_loop()
        try:
            path = await loop.run_in_executor(None, self._find_device_path, address)
        except Exception as e:
            print(f"[BlueZ] Error searching for device {address}: {e}", flush=True)
            return None
        if path is None:
            return None
        return BluetoothDevice(self, path, address.upper())
