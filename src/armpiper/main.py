# main.py
import asyncio
import logging
import signal
import sys

from armpiper.builder import ArmBuilder
from armpiper.callbacks import TimingCallback
from armpiper.client import ArmClient
from armpiper.exceptions import BuildFailedError
from armpiper.settings import ArmSettings

logger = logging.getLogger("armpiper")


async def main() -> int:
    settings = ArmSettings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, cancel_event.set)
        except NotImplementedError:
            pass

    async with ArmClient(settings) as client:
        builder = ArmBuilder(settings, client=client, callbacks=[TimingCallback()])
        try:
            artifact = await builder.build(cancel_event)
        except BuildFailedError as e:
            logger.error("Build failed: %s", e.error)
            return 1

    print("Build completed successfully!")
    print(artifact)
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
