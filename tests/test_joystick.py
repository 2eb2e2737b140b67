import os
from collections import namedtuple

from evdev import ecodes

from controllers.joystick import (
    JoystickInput,
    event_node_for_js,
    list_joystick_paths,
    normalize_axis,
)

AbsInfo = namedtuple("AbsInfo", "value min max fuzz flat resolution")


class FakeInputDevice:
    name = "Xbox Wireless Controller"

    def __init__(self):
        self.abs = {
            ecodes.ABS_X: AbsInfo(0, -32768, 32767, 16, 128, 0),
            ecodes.ABS_Z: AbsInfo(1023, 0, 1023, 0, 0, 0),
        }
        self.keys = [ecodes.BTN_SOUTH, ecodes.BTN_EAST]
        self.held = [ecodes.BTN_EAST]
        self.closed = 0

    def capabilities(self):
        return {
            ecodes.EV_ABS: list(self.abs.items()),
            ecodes.EV_KEY: list(self.keys),
        }

    def absinfo(self, code):
        return self.abs[code]

    def active_keys(self):
        return list(self.held)

    def close(self):
        self.closed += 1


def test_normalize_axis():
    assert normalize_axis(-32768, -32768, 32767) == 0
    assert normalize_axis(0, -32768, 32767) == 32768
    assert normalize_axis(32767, -32768, 32767) == 65535
    assert normalize_axis(255, 0, 255) == 65280
    assert normalize_axis(5, 0, 0) == 0


def test_normalize_axis_clamps_out_of_range_values():
    assert normalize_axis(-5, 0, 255) == 0
    assert normalize_axis(400, 0, 255) == 65535


def test_list_joystick_paths(tmp_path):
    for name in ("js1", "event3", "js0", "mice"):
        (tmp_path / name).touch()

    assert list_joystick_paths(tmp_path) == [str(tmp_path / "js0"), str(tmp_path / "js1")]


def test_list_joystick_paths_missing_dir(tmp_path):
    assert list_joystick_paths(tmp_path / "missing") == []


def test_event_node_for_js(tmp_path):
    devices = tmp_path / "devices"
    sysfs = tmp_path / "class"
    for parent in ("input2", "input5"):
        (devices / parent).mkdir(parents=True)
    for node, parent in (("js0", "input5"), ("event3", "input2"), ("event7", "input5")):
        (sysfs / node).mkdir(parents=True)
        os.symlink(devices / parent, sysfs / node / "device")

    assert event_node_for_js("/dev/input/js0", sysfs) == "/dev/input/event7"


def test_event_node_for_js_not_found(tmp_path):
    assert event_node_for_js("/dev/input/js0", tmp_path) is None


def test_joystick_input_reads_normalized_state():
    device = FakeInputDevice()
    joystick = JoystickInput("/dev/input/js0", device)

    assert joystick.read_axes() == {ecodes.ABS_X: 32768, ecodes.ABS_Z: 65472}
    assert joystick.read_buttons() == {ecodes.BTN_SOUTH: False, ecodes.BTN_EAST: True}


def test_joystick_input_close_is_idempotent():
    device = FakeInputDevice()
    joystick = JoystickInput("/dev/input/js0", device)

    joystick.close()
    joystick.close()

    assert device.closed == 1
