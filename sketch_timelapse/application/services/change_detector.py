import asyncio
from pathlib import Path
from typing import Optional

from sketch_timelapse.application.messagebus import MessageBus
from sketch_timelapse.common.logger import setup_logger
from sketch_timelapse.domain.timelapse.events import ContentChanged
from sketch_timelapse.domain.timelapse.model import TimelapseState, fingerprint_file
from sketch_timelapse.domain.timelapse.ports import ChangeDetectorPort

logger = setup_logger("ChangeDetector")


class ChangeDetector(ChangeDetectorPort):
    """Turns settled file paths into ContentChanged events.

    Settled paths are queued and checked one at a time by a single consumer
    task. A path produces an event only when the SHA-256 of its content
    differs from the fingerprint recorded for it last time.
    """

    def __init__(self, state: TimelapseState, bus: MessageBus):
        self.state = state
        self.bus = bus
        self._queue: "asyncio.Queue[Path]" = asyncio.Queue()
        self._consumer: Optional[asyncio.Task] = None

    def check(self, path: Path) -> bool:
        """Fingerprint path and publish ContentChanged if its content changed."""
        path = Path(path).resolve()
        try:
            if not path.is_file():
                logger.debug(f"Skipping {path}: not a regular file")
                return False
            if path.stat().st_size == 0:
                logger.debug(f"Skipping {path}: empty file")
                return False
            fingerprint = fingerprint_file(path)
        except OSError as e:
            logger.warning(f"Could not read {path}: {e}")
            return False

        if not self.state.record_fingerprint(path, fingerprint):
            logger.debug(f"Content of {path} unchanged")
            return False

        logger.info(f"Content changed: {path}")
        self.bus.handle(ContentChanged(path=path, fingerprint=fingerprint))
        return True

    def notify_settled(self, path: Path) -> None:
        self._queue.put_nowait(Path(path))

    def rename(self, src: Path, dest: Path) -> None:
        """A renamed file keeps its fingerprint, so an unchanged move stays silent."""
        src, dest = Path(src).resolve(), Path(dest).resolve()
        if self.state.rename(src, dest):
            logger.debug(f"Renamed {src} -> {dest}")

    async def run(self) -> None:
        while True:
            path = await self._queue.get()
            try:
                self.check(path)
            except Exception as e:
                logger.error(f"Unexpected error checking {path}: {e}")
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every queued path has been checked."""
        await self._queue.join()

    def start(self) -> None:
        if self._consumer is None:
            self._consumer = asyncio.create_task(self.run(), name="change-detector")

    async def stop(self) -> None:
        if self._consumer is None:
            return
        self._consumer.cancel()
        try:
            await self._consumer
        except asyncio.CancelledError:
            pass
        self._consumer = None
