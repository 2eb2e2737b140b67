from pathlib import Path

# Device nodes
INPUT_DIR = Path("/dev/input")
JOYSTICK_PREFIX = "js"
SYSFS_INPUT_CLASS = Path("/sys/class/input")

# Timings (seconds)
IDLE_TIMEOUT = 5 * 60.0
INPUT_POLL_INTERVAL = 15.0
DISCOVERY_INTERVAL = 2 * 60.0
# How often a supervised device's Connected property is re-read
LINK_POLL_INTERVAL = 1.0
UDEVADM_TIMEOUT = 5.0

# Axis values are normalized into [0, AXIS_RANGE)
AXIS_RANGE = 65_536
# Fraction of the axis range an axis must move to count as activity
AXIS_CHANGE_FRACTION = 0.25

# udevadm output for IMU nodes that share the controller's uniq address
MOTION_SENSOR_MARKER = "Motion Sensors"
