import asyncio
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional

from sketch_timelapse.application.dtos import FrameResult
from sketch_timelapse.application.messagebus import MessageBus
from sketch_timelapse.common.errors import FramePayloadError, OutputSetupError
from sketch_timelapse.common.logger import setup_logger
from sketch_timelapse.domain.timelapse.commands import SaveFrameCommand
from sketch_timelapse.domain.timelapse.events import FrameSaved, FrameSaveFailed
from sketch_timelapse.domain.timelapse.model import (
    IMAGE_EXTENSION,
    TimelapseState,
    compute_initial_counter,
    frame_filename,
)
from sketch_timelapse.domain.timelapse.ports import FrameSequencerPort

logger = setup_logger("FrameSequencer")


class FrameSequencer(FrameSequencerPort):
    """Writes submitted frames as <zero padded index>.png, one at a time.

    The counter in TimelapseState is the highest index already on disk. It
    only moves after a write succeeded, so a failed index is reused by the
    next frame.
    """

    def __init__(
        self,
        state: TimelapseState,
        bus: MessageBus,
        out_dir: Path,
        pad_width: int = 5,
        overwrite: bool = False,
        extension: str = IMAGE_EXTENSION,
    ):
        self.state = state
        self.bus = bus
        self.out_dir = Path(out_dir)
        self.pad_width = pad_width
        self.overwrite = overwrite
        self.extension = extension
        self.executor = ThreadPoolExecutor(max_workers=1)
        self._queue: "asyncio.Queue[tuple[SaveFrameCommand, asyncio.Future]]" = asyncio.Queue()
        self._consumer: Optional[asyncio.Task] = None

    def prepare(self) -> None:
        """Create the output directory or seed the counter from its contents."""
        if not self.out_dir.exists():
            try:
                self.out_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise OutputSetupError(f"Cannot create output directory {self.out_dir}: {e}") from e
            logger.info(f"Created a new directory at {self.out_dir.resolve()}")
            self.state.counter.reset(None)
            return

        if not self.out_dir.is_dir():
            raise OutputSetupError(f"Output path {self.out_dir} is not a directory")

        if self.overwrite:
            self.state.counter.reset(None)
            logger.info(f"Overwrite mode: numbering restarts at {self._filename(0)}")
            return

        try:
            listing = [p.name for p in self.out_dir.iterdir() if p.is_file()]
        except OSError as e:
            raise OutputSetupError(f"Cannot list output directory {self.out_dir}: {e}") from e

        self.state.counter.reset(compute_initial_counter(listing, overwrite=False, extension=self.extension))
        logger.info(
            f"Next frame in {self.out_dir.resolve()} will be "
            f"{self._filename(self.state.counter.next_index())}"
        )

    async def submit(self, command: SaveFrameCommand) -> FrameResult:
        """Queue a frame behind any pending ones and wait for its result."""
        self.start()
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((command, future))
        return await future

    async def save(self, command: SaveFrameCommand) -> FrameResult:
        index = self.state.counter.next_index()
        filename = self._filename(index)
        filepath = self.out_dir / filename

        try:
            data = command.frame_bytes()
            await asyncio.get_running_loop().run_in_executor(
                self.executor, filepath.write_bytes, data
            )
        except (FramePayloadError, OSError) as e:
            logger.warning(f"Failed to write {filepath}: {e}")
            self.bus.handle(FrameSaveFailed(index=index, filename=filename, error=str(e)))
            return FrameResult(ok=False, index=index, filename=filename, error=str(e))

        self.state.counter.advance(index)
        logger.info(f"{filename} exported to {filepath.resolve()}")
        self.bus.handle(FrameSaved(index=index, filename=filename, path=filepath))
        return FrameResult(ok=True, index=index, filename=filename)

    async def run(self) -> None:
        while True:
            command, future = await self._queue.get()
            try:
                result = await self.save(command)
            except Exception as e:
                logger.error(f"Unexpected error while saving frame: {e}")
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._queue.task_done()

    def start(self) -> None:
        if self._consumer is None:
            self._consumer = asyncio.create_task(self.run(), name="frame-sequencer")

    async def stop(self) -> None:
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None
        # shutdown joins the worker thread
        await asyncio.get_running_loop().run_in_executor(None, self.executor.shutdown)

    def _filename(self, index: int) -> str:
        return frame_filename(index, self.pad_width, self.extension)
