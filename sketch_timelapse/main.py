import argparse
import asyncio
from typing import Optional, Sequence

from pydantic import ValidationError

from sketch_timelapse.common.errors import TimelapseError
from sketch_timelapse.common.logger import setup_logger
from sketch_timelapse.container import create_app
from sketch_timelapse.settings import Settings

logger = setup_logger("main")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sketch-timelapse",
        description="Save a numbered frame of a running sketch every time its source changes.",
    )
    parser.add_argument("--watch-dir", dest="watch_dir", help="directory to watch (default ./src)")
    parser.add_argument("--out-dir", dest="out_dir", help="where frames are written (default ./timelapse)")
    parser.add_argument("--overwrite", action="store_true", default=None,
                        help="restart numbering at 0 instead of after the highest existing frame")
    parser.add_argument("--ignore", dest="ignore_pattern", help="regex of paths to ignore, relative to the watch dir")
    parser.add_argument("--stability-threshold", dest="stability_threshold", type=float,
                        help="seconds without writes before a file counts as saved")
    parser.add_argument("--pad-length", dest="pad_length", type=int, help="zero-pad width of frame names")
    parser.add_argument("--no-log", dest="log", action="store_false", default=None,
                        help="do not send status messages to the sketch")
    parser.add_argument("-v", "--verbose", action="store_true", default=None)
    parser.add_argument("--host")
    parser.add_argument("--port", type=int)
    return parser.parse_args(argv)


def settings_from_args(args: argparse.Namespace) -> Settings:
    overrides = {k: v for k, v in vars(args).items() if v is not None}
    return Settings(**overrides)


async def main(settings: Settings) -> None:
    app = create_app(settings)
    try:
        await app.start()
        await asyncio.Event().wait()
    finally:
        await app.stop()


def run(argv: Optional[Sequence[str]] = None) -> int:
    try:
        settings = settings_from_args(parse_args(argv))
    except ValidationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    try:
        asyncio.run(main(settings))
    except KeyboardInterrupt:
        pass
    except TimelapseError as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(run())
