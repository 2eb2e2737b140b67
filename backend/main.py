import asyncio
import signal
import sys

from bluetooth.bluez_manager import BlueZManager
from controllers.registry import Registry


async def main(argv: list[str]) -> None:
    # Arguments are not interpreted; echo them once for the service log
    print(" ".join(argv), flush=True)

    bluez_manager = BlueZManager()
    registry = Registry(bluez_manager)

    loop = asyncio.get_running_loop()
    main_task = asyncio.current_task()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, main_task.cancel)

    try:
        await registry.run()
    except asyncio.CancelledError:
        print("[Main] Shutting down", flush=True)
    finally:
        registry.stop()
        await registry.shutdown()


def run():
    asyncio.run(main(sys.argv[1:]))


if __name__ == "__main__":
    run()
