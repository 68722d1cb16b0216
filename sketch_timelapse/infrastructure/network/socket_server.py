# infrastructure/network/socket_server.py
from typing import Optional

import socketio
from aiohttp import web

from sketch_timelapse.common.logger import setup_logger
from sketch_timelapse.domain.timelapse.events import ContentChanged
from sketch_timelapse.domain.timelapse.ports import ChangeNotifierPort, FrameSequencerPort
from sketch_timelapse.entrypoints.handlers import TimelapseEvent, register as reg_handlers

log = setup_logger("SocketIOServer")


class SocketIOServer(ChangeNotifierPort):
    """Local control channel to the sketch running in the browser."""

    def __init__(
        self,
        sequencer: FrameSequencerPort,
        host: str = "127.0.0.1",
        port: int = 8765,
        log_enabled: bool = True,
        cors_allowed_origins="*",
    ) -> None:
        self.host = host
        self.port = port
        self.sio = socketio.AsyncServer(async_mode="aiohttp", cors_allowed_origins=cors_allowed_origins)
        self.app = web.Application()
        self.sio.attach(self.app)
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

        self._install_basic_logs()
        reg_handlers(self.sio, sequencer, log_enabled)

    async def start(self) -> None:
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()
        log.info("SocketIO listening on http://%s:%d", self.host, self.port)

    async def stop(self) -> None:
        if self._site is not None:
            await self._site.stop()
            self._site = None
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            log.info("SocketIO server stopped")

    async def notify_changed(self) -> None:
        await self.sio.emit(TimelapseEvent.CHANGED.value)

    async def on_content_changed(self, event: ContentChanged) -> None:
        log.debug("Requesting a frame after change in %s", event.path)
        await self.notify_changed()

    def _install_basic_logs(self) -> None:
        """Attach Socket.IO lifecycle loggers."""
        sio = self.sio

        @sio.event
        async def connect(sid, environ, auth=None) -> None:
            log.info("SocketIO client connected → %s", sid)

        @sio.event
        async def disconnect(sid, *args) -> None:
            log.warning("SocketIO client disconnected → %s", sid)
