"""evdev-backed read-out of a joystick's current axis and button state."""

import os
from pathlib import Path
from typing import Optional

from evdev import InputDevice, ecodes

import config


def list_joystick_paths(input_dir: Optional[Path] = None) -> list[str]:
    """List /dev/input/jsN nodes, sorted so the first duplicate is stable."""
    input_dir = input_dir or config.INPUT_DIR
    try:
        names = os.listdir(input_dir)
    except OSError as e:
        print(f"[Joystick] Cannot list {input_dir}: {e}", flush=True)
        return []
    return sorted(
        str(Path(input_dir) / name) for name in names if name.startswith(config.JOYSTICK_PREFIX)
    )


def event_node_for_js(js_path: str, sysfs_class: Optional[Path] = None) -> Optional[str]:
    """Resolve /dev/input/jsN to the /dev/input/eventM node of the same input device.

    Walks sysfs to find the event device that shares the js node's parent.
    """
    sysfs_class = sysfs_class or config.SYSFS_INPUT_CLASS
    js_name = os.path.basename(js_path)

    try:
        js_real = os.path.realpath(sysfs_class / js_name / "device")
        for entry in sorted(os.listdir(sysfs_class)):
            if not entry.startswith("event"):
                continue
            event_sysfs = sysfs_class / entry / "device"
            if os.path.exists(event_sysfs) and os.path.realpath(event_sysfs) == js_real:
                return str(Path(js_path).parent / entry)
    except OSError:
        pass
    return None


def normalize_axis(value: int, minimum: int, maximum: int) -> int:
    """Scale a raw evdev axis value into [0, AXIS_RANGE)."""
    span = maximum - minimum + 1
    if span <= 1:
        return 0
    scaled = (value - minimum) * config.AXIS_RANGE // span
    return max(0, min(config.AXIS_RANGE - 1, scaled))


class JoystickInput:
    """Input source handle for one controller.

    Reads the kernel's cached state (EVIOCGABS / EVIOCGKEY) instead of
    draining the event queue, so a poll every few seconds sees the latest
    values without a reader task.
    """

    def __init__(self, js_path: str, device: InputDevice):
        self.js_path = js_path
        self._device = device
        caps = device.capabilities()
        self._axes: list[int] = [code for code, _ in caps.get(ecodes.EV_ABS, [])]
        self._buttons: list[int] = list(caps.get(ecodes.EV_KEY, []))
        self._closed = False

    @classmethod
    def open(cls, js_path: str) -> "JoystickInput":
        event_path = event_node_for_js(js_path)
        if event_path is None:
            raise OSError(f"no event node found for {js_path}")
        return cls(js_path, InputDevice(event_path))

    def read_axes(self) -> dict[int, int]:
        values = {}
        for code in self._axes:
            info = self._device.absinfo(code)
            values[code] = normalize_axis(info.value, info.min, info.max)
        return values

    def read_buttons(self) -> dict[int, bool]:
        held = set(self._device.active_keys())
        return {code: code in held for code in self._buttons}

    def close(self):
        if self._closed:
            return
        self._closed = True
        try:
            self._device.close()
        except Exception as e:
            print(f"[Joystick] Error closing {self.js_path}: {e}", flush=True)
