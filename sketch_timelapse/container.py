# sketch_timelapse/container.py
from dataclasses import dataclass
from typing import Optional

from sketch_timelapse.settings import Settings, get_settings
from sketch_timelapse.common.logger import set_level, setup_logger
from sketch_timelapse.domain.timelapse.events import ContentChanged
from sketch_timelapse.domain.timelapse.model import TimelapseState
from sketch_timelapse.application.messagebus import MessageBus
from sketch_timelapse.application.services.change_detector import ChangeDetector
from sketch_timelapse.application.services.frame_sequencer import FrameSequencer
from sketch_timelapse.infrastructure.watching.observer import SourceWatcher
from sketch_timelapse.infrastructure.network.socket_server import SocketIOServer

logger = setup_logger("App")


@dataclass
class App:
    settings: Settings
    state: TimelapseState
    bus: MessageBus
    detector: ChangeDetector
    sequencer: FrameSequencer
    watcher: SourceWatcher
    server: SocketIOServer

    async def start(self):
        # output and watch setup errors are fatal before anything listens
        self.sequencer.prepare()
        self.sequencer.start()
        self.detector.start()
        self.watcher.start()
        await self.server.start()

    async def stop(self):
        self.watcher.stop()
        await self.detector.stop()
        await self.server.stop()
        await self.bus.drain()
        await self.sequencer.stop()


def create_app(settings: Optional[Settings] = None) -> App:
    settings = settings or get_settings()
    set_level(settings.log_level)

    state = TimelapseState()
    bus = MessageBus()

    detector = ChangeDetector(state, bus)
    sequencer = FrameSequencer(
        state,
        bus,
        out_dir=settings.out_dir,
        pad_width=settings.pad_length,
        overwrite=settings.overwrite,
    )
    watcher = SourceWatcher(
        settings.watch_dir,
        detector,
        stability_threshold=settings.stability_threshold,
        ignore=settings.ignore_pattern,
    )

    # Only the entrypoint at this level
    server = SocketIOServer(
        sequencer,
        host=settings.host,
        port=settings.port,
        log_enabled=settings.log,
        cors_allowed_origins=settings.allowed_origins(),
    )

    bus.subscribe(ContentChanged, server.on_content_changed)

    return App(
        settings=settings,
        state=state,
        bus=bus,
        detector=detector,
        sequencer=sequencer,
        watcher=watcher,
        server=server,
    )
