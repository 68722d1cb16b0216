#!/usr/bin/env python3
"""
Stand-in for the browser sketch: answers every "changed" signal with a frame.

Reads the image from disk each time it is asked, so pointing it at a file
that some other renderer keeps overwriting gives a working time-lapse
without a browser.
"""
import argparse
import asyncio
import base64
from pathlib import Path

import socketio
from socketio.exceptions import TimeoutError as AckTimeoutError

from sketch_timelapse.common.logger import setup_logger
from sketch_timelapse.entrypoints.handlers import TimelapseEvent

logger = setup_logger("FrameClient")

DEFAULT_SERVER_URL = "http://127.0.0.1:8765"


def encode_image(path: Path, mime: str = "image/png") -> str:
    """Data URI for the file at path, as a canvas would produce it."""
    encoded = base64.b64encode(Path(path).read_bytes()).decode("ascii")
    return f"data:{mime};base64,{encoded}"


class FrameClient:
    def __init__(self, image_path: Path, server_url: str = DEFAULT_SERVER_URL):
        self.image_path = Path(image_path)
        self.server_url = server_url
        self.sio = socketio.AsyncClient(reconnection=True)
        self.sent = 0

        @self.sio.event
        async def connect():
            logger.info(f"Connected to {self.server_url}")

        @self.sio.event
        async def disconnect(*args):
            logger.warning("Disconnected")

        @self.sio.on(TimelapseEvent.CHANGED.value)
        async def changed(*args):
            await self.send_frame()

        @self.sio.on(TimelapseEvent.LOG.value)
        async def status_log(payload):
            logger.info(payload.get("msg", ""))

        @self.sio.on(TimelapseEvent.WARN.value)
        async def status_warn(payload):
            logger.warning(payload.get("msg", ""))

    def frame_payload(self) -> dict:
        return {"image": encode_image(self.image_path)}

    async def send_frame(self):
        try:
            payload = self.frame_payload()
        except OSError as e:
            logger.error(f"Cannot read {self.image_path}: {e}")
            return None

        try:
            result = await self.sio.call(TimelapseEvent.NEW_FRAME.value, payload, timeout=10)
        except AckTimeoutError:
            logger.warning("No acknowledgement for frame")
            return None

        self.sent += 1
        return result

    async def run(self):
        await self.sio.connect(self.server_url, transports=("websocket", "polling"))
        await self.sio.wait()

    async def close(self):
        await self.sio.disconnect()


async def main(args):
    client = FrameClient(args.image, args.url)
    try:
        await client.run()
    finally:
        await client.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Send a PNG to sketch-timelapse on every change")
    parser.add_argument("image", type=Path, help="PNG file to send as the frame")
    parser.add_argument("--url", default=DEFAULT_SERVER_URL, help="sketch-timelapse server URL")
    try:
        asyncio.run(main(parser.parse_args()))
    except KeyboardInterrupt:
        pass
