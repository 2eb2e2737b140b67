"""Registry of supervised controllers and the discovery loop that fills it."""

import asyncio
from typing import Callable, Optional

import config
from controllers.device_correlator import DeviceCorrelator, release_handles
from controllers.supervisor import ControllerSupervisor
from models import SupervisorEvent


class Registry:
    """Maps hardware identity -> ControllerSupervisor.

    Lock discipline: every insert and removal of `_supervisors` happens while
    holding `_lock`. Supervisors never touch the map; they post
    SupervisorEvents to `events`, which the pump task applies.
    """

    def __init__(
        self,
        transport,
        correlator: Optional[DeviceCorrelator] = None,
        discovery_interval: Optional[float] = None,
        supervisor_factory: Callable[..., ControllerSupervisor] = ControllerSupervisor,
    ):
        self._transport = transport
        self._correlator = correlator or DeviceCorrelator(transport)
        self._discovery_interval = (
            config.DISCOVERY_INTERVAL if discovery_interval is None else discovery_interval
        )
        self._supervisor_factory = supervisor_factory
        self._supervisors: dict[str, ControllerSupervisor] = {}
        self._lock = asyncio.Lock()
        self.events: asyncio.Queue = asyncio.Queue()
        self._running = False
        self._pump_task: Optional[asyncio.Task] = None

    def __contains__(self, identity: str) -> bool:
        return identity.upper() in self._supervisors

    def __len__(self) -> int:
        return len(self._supervisors)

    def get(self, identity: str) -> Optional[ControllerSupervisor]:
        return self._supervisors.get(identity.upper())

    def identities(self) -> list[str]:
        return sorted(self._supervisors)

    def stop(self):
        self._running = False

    async def discovery_pass(self) -> list[str]:
        """Run one discovery iteration. Returns the identities that were added."""
        if not await self._transport.is_available():
            print("[Discovery] Bluetooth unavailable, skipping pass", flush=True)
            return []

        found = await self._correlator.correlate(skip=list(self._supervisors))

        # Handles still in `pending` when the pass ends are released
        pending = dict(found)
        added = []
        try:
            async with self._lock:
                for identity, (joystick, device) in found.items():
                    if identity in self._supervisors:
                        # Raced with a concurrent pass; keep the existing supervisor
                        continue
                    supervisor = self._supervisor_factory(identity, joystick, device, self.events)
                    del pending[identity]
                    self._supervisors[identity] = supervisor
                    try:
                        supervisor.start()
                    except BaseException:
                        supervisor.dispose()
                        raise
                    added.append(identity)
                    print(f"[Discovery] Found controller '{identity}'.", flush=True)
        finally:
            release_handles(pending.values())
        return added

    async def handle_event(self, event: SupervisorEvent):
        if event.kind == "timeout":
            print(f"[Discovery] Controller '{event.identity}' reached timeout.", flush=True)
            return

        async with self._lock:
            supervisor = self._supervisors.get(event.identity)
            # Only drop the entry if it still belongs to a disposed supervisor
            if supervisor is None or not supervisor.disposed:
                return
            del self._supervisors[event.identity]
        print(f"[Discovery] Lost controller '{event.identity}'.", flush=True)

    async def _pump_events(self):
        while True:
            event = await self.events.get()
            try:
                await self.handle_event(event)
            except Exception as e:
                print(f"[Discovery] Error handling {event.kind} for '{event.identity}': {e}", flush=True)

    async def drain_events(self):
        """Apply every queued event without waiting for new ones."""
        while not self.events.empty():
            await self.handle_event(self.events.get_nowait())

    async def run(self):
        """Discovery loop. Runs until stop() or cancellation."""
        self._running = True
        self._pump_task = asyncio.create_task(self._pump_events(), name="registry-events")
        print("[Discovery] Starting controller discovery", flush=True)

        try:
            while self._running:
                try:
                    await self.discovery_pass()
                except Exception as e:
                    print(f"[Discovery] Error in discovery pass: {e}", flush=True)
                await asyncio.sleep(self._discovery_interval)
        finally:
            self._pump_task.cancel()
            try:
                await self._pump_task
            except asyncio.CancelledError:
                pass

    async def shutdown(self):
        """Dispose every live supervisor so all handles are released."""
        async with self._lock:
            supervisors = list(self._supervisors.values())
        for supervisor in supervisors:
            supervisor.dispose()
        for supervisor in supervisors:
            await supervisor.wait_closed()
        await self.drain_events()
        print(f"[Discovery] Released {len(supervisors)} controller(s)", flush=True)
