"""Per-controller idle timeout: poll input, reset a timer on activity, disconnect on expiry."""

import asyncio
from typing import Optional

import config
from models import InputSnapshot, SupervisorEvent

AXIS_CHANGE_THRESHOLD = int(config.AXIS_RANGE * config.AXIS_CHANGE_FRACTION)


def axis_changed(last: int, new: int) -> bool:
    """An axis counts as moved once it leaves the open band of +/- threshold around `last`.

    Jitter around a resting stick position stays inside the band.
    """
    return not (last - AXIS_CHANGE_THRESHOLD < new < last + AXIS_CHANGE_THRESHOLD)


def button_changed(last: bool, new: bool) -> bool:
    return last != new


class ControllerSupervisor:
    """Owns one controller's input handle, bluetooth handle and idle timer.

    States are active and disposed. The supervisor leaves the active state
    either when the idle timer fires (it then disconnects the device) or when
    BlueZ reports the link down. Both paths end in dispose(), which runs once
    and posts a "disposed" event to the registry's queue.
    """

    def __init__(
        self,
        identity: str,
        joystick,
        device,
        events: asyncio.Queue,
        idle_timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ):
        self.identity = identity
        self._joystick = joystick
        self._device = device
        self._events = events
        self._idle_timeout = config.IDLE_TIMEOUT if idle_timeout is None else idle_timeout
        self._poll_interval = config.INPUT_POLL_INTERVAL if poll_interval is None else poll_interval

        self._snapshot = InputSnapshot()
        self._timer: Optional[asyncio.TimerHandle] = None
        self._timed_out = False
        self._disposed = False
        self._tasks: list[asyncio.Task] = []

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def timed_out(self) -> bool:
        return self._timed_out

    def start(self):
        """Arm the idle timer and start the poll and link-watch tasks."""
        loop = asyncio.get_running_loop()
        self._arm_timer()
        self._tasks.append(loop.create_task(self._poll_loop(), name=f"poll-{self.identity}"))
        self._tasks.append(loop.create_task(self._watch_link(), name=f"link-{self.identity}"))

    # --- Idle timer ---

    def _arm_timer(self):
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._idle_timeout, self._on_idle_timeout)

    def reset_timer(self):
        """Restart the countdown from the full timeout. No-op once the timer has fired."""
        if self._disposed or self._timed_out:
            return
        if self._timer is not None:
            self._timer.cancel()
        self._arm_timer()

    def _on_idle_timeout(self):
        # Runs on the loop thread, so it cannot interleave with reset_timer()
        if self._disposed or self._timed_out:
            return
        self._timed_out = True
        self._timer = None
        loop = asyncio.get_running_loop()
        self._tasks.append(loop.create_task(self._expire(), name=f"expire-{self.identity}"))

    async def _expire(self):
        print(f"[Supervisor] '{self.identity}' idle for {self._idle_timeout:.0f}s", flush=True)
        self._events.put_nowait(SupervisorEvent(kind="timeout", identity=self.identity))
        try:
            await self._device.disconnect()
        except Exception as e:
            print(f"[Supervisor] Disconnect request for '{self.identity}' failed: {e}", flush=True)
        self.dispose()

    # --- Input polling ---

    def poll(self) -> bool:
        """Compare current input with the snapshot. Returns True if activity was seen."""
        try:
            axes = self._joystick.read_axes()
            buttons = self._joystick.read_buttons()
        except Exception as e:
            print(f"[Supervisor] Error reading input for '{self.identity}': {e}", flush=True)
            return False

        changed = False
        for code, value in axes.items():
            if axis_changed(self._snapshot.axis(code), value):
                self._snapshot.axes[code] = value
                changed = True
        for code, state in buttons.items():
            if button_changed(self._snapshot.button(code), state):
                self._snapshot.buttons[code] = state
                changed = True

        if changed:
            self.reset_timer()
        return changed

    async def _poll_loop(self):
        while not self._disposed:
            try:
                self.poll()
            except Exception as e:
                print(f"[Supervisor] Error in poll loop for '{self.identity}': {e}", flush=True)
            await asyncio.sleep(self._poll_interval)

    async def _watch_link(self):
        try:
            await self._device.wait_disconnected()
        except Exception as e:
            print(f"[Supervisor] Link watch for '{self.identity}' failed: {e}", flush=True)
        if not self._disposed:
            print(f"[Supervisor] '{self.identity}' disconnected", flush=True)
            self.dispose()

    # --- Disposal ---

    def dispose(self):
        """Release both handles, stop the timer and tasks, notify the registry. Runs once."""
        if self._disposed:
            return
        self._disposed = True

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        self._joystick.close()
        self._device.release()

        current = asyncio.current_task()
        for task in self._tasks:
            if task is not current and not task.done():
                task.cancel()

        self._events.put_nowait(SupervisorEvent(kind="disposed", identity=self.identity))

    async def wait_closed(self):
        """Wait for the owned tasks to finish after dispose()."""
        current = asyncio.current_task()
        pending = [task for task in self._tasks if task is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
