"""Resolve a joystick node to the Bluetooth address of the controller behind it."""

import asyncio
import re
import subprocess
from typing import Optional

import config

# udevadm walks the parent chain; the HID parent carries the link-layer address
_UNIQ_RE = re.compile(r'ATTRS\{uniq\}=="([0-9a-fA-F:]{17})"')
_ADDRESS_RE = re.compile(r"^[0-9a-fA-F]{2}(?::[0-9a-fA-F]{2}){5}$")


def parse_identity(output: str) -> Optional[str]:
    """Return the upper-cased address found in `udevadm info -a` output, or None.

    Motion sensor nodes (DS4/DualSense IMU) report the same uniq as the
    controller itself and are rejected.
    """
    if not output or config.MOTION_SENSOR_MARKER in output:
        return None

    for match in _UNIQ_RE.finditer(output):
        address = match.group(1)
        if _ADDRESS_RE.match(address):
            return address.upper()
    return None


def _query_attributes(device_path: str) -> Optional[str]:
    """Run udevadm for one device node. Returns its stdout or None on any failure."""
    try:
        result = subprocess.run(
            ["udevadm", "info", "-a", device_path],
            capture_output=True,
            text=True,
            timeout=config.UDEVADM_TIMEOUT,
        )
    except FileNotFoundError:
        print("[Resolver] udevadm not found. Install systemd-udev.", flush=True)
        return None
    except subprocess.TimeoutExpired:
        print(f"[Resolver] udevadm timed out for {device_path}", flush=True)
        return None
    except Exception as e:
        print(f"[Resolver] udevadm failed for {device_path}: {e}", flush=True)
        return None

    if result.returncode != 0:
        print(f"[Resolver] udevadm exited {result.returncode} for {device_path}", flush=True)
        return None
    return result.stdout or None


async def resolve_identity(device_path: str) -> Optional[str]:
    loop = asyncio.get_running_loop()
    output = await loop.run_in_executor(None, _query_attributes, device_path)
    if output is None:
        return None
    return parse_identity(output)
