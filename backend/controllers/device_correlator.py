"""Join joystick nodes with connected Bluetooth devices by hardware address."""

from typing import Any, Awaitable, Callable, Iterable, Optional

from controllers.attribute_resolver import resolve_identity
from controllers.joystick import JoystickInput, list_joystick_paths
from models import CorrelationReport


class DeviceCorrelator:
    def __init__(
        self,
        transport,
        resolver: Callable[[str], Awaitable[Optional[str]]] = resolve_identity,
        opener: Callable[[str], Any] = JoystickInput.open,
        lister: Callable[[], list[str]] = list_joystick_paths,
    ):
        self._transport = transport
        self._resolver = resolver
        self._opener = opener
        self._lister = lister

    async def scan(self) -> list[CorrelationReport]:
        """Resolve every joystick node to an identity, flagging duplicates."""
        reports: list[CorrelationReport] = []
        seen: set[str] = set()

        for path in self._lister():
            try:
                identity = await self._resolver(path)
            except Exception as e:
                print(f"[Correlator] Error resolving {path}: {e}", flush=True)
                identity = None

            if identity is None:
                print(f"[Correlator] No bluetooth address for {path}, skipping", flush=True)
                reports.append(CorrelationReport(device_path=path))
                continue

            identity = identity.upper()
            duplicate = identity in seen
            if duplicate:
                print(f"[Correlator] Found duplicate of device '{identity}' {path}", flush=True)
            seen.add(identity)
            reports.append(CorrelationReport(device_path=path, identity=identity, duplicate=duplicate))

        return reports

    async def correlate(self, skip: Iterable[str] = ()) -> dict[str, tuple[Any, Any]]:
        """Return identity -> (input handle, bluetooth device) for connected controllers.

        Identities in `skip` are resolved and deduplicated but no handles are
        opened for them.
        """
        skip = {identity.upper() for identity in skip}
        results: dict[str, tuple[Any, Any]] = {}
        joystick = device = None

        try:
            for report in await self.scan():
                if report.identity is None or report.duplicate or report.identity in skip:
                    continue
                identity = report.identity

                try:
                    joystick = self._opener(report.device_path)
                except Exception as e:
                    print(f"[Correlator] Cannot open {report.device_path}: {e}", flush=True)
                    continue

                try:
                    device = await self._transport.find_device(identity)
                except Exception as e:
                    print(f"[Correlator] Error looking up '{identity}': {e}", flush=True)
                    device = None
                if device is None:
                    print(f"[Correlator] Can not find joystick '{identity}'s bluetooth device.", flush=True)
                    joystick.close()
                    joystick = None
                    continue

                try:
                    connected = await device.is_connected()
                except Exception as e:
                    print(f"[Correlator] Error reading link state of '{identity}': {e}", flush=True)
                    connected = False
                if not connected:
                    joystick.close()
                    device.release()
                    joystick = device = None
                    continue

                results[identity] = (joystick, device)
                joystick = device = None
        except BaseException:
            # Cancelled or failed mid-pass: nothing opened here may outlive the pass
            release_handles(results.values())
            if joystick is not None:
                joystick.close()
            if device is not None:
                device.release()
            raise

        return results


def release_handles(pairs: Iterable[tuple[Any, Any]]):
    """Close the input handle and release the bluetooth handle of each pair."""
    for joystick, device in pairs:
        joystick.close()
        device.release()
