import asyncio
import os
import re
from pathlib import Path
from typing import Callable, Dict, Optional, Pattern, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from sketch_timelapse.common.errors import WatchSetupError
from sketch_timelapse.common.logger import setup_logger
from sketch_timelapse.domain.timelapse.ports import ChangeDetectorPort

logger = setup_logger("SourceWatcher")

# dotfiles, dot-directories and editor backups ending in "~"
DEFAULT_IGNORE = r"(^|[/\\])\.|~$"

IgnoreRule = Union[str, Pattern, Callable[[str], bool], None]


def build_ignore(rule: IgnoreRule) -> Callable[[str], bool]:
    """Normalize a regex string, compiled pattern or predicate into a predicate."""
    if rule is None:
        return lambda _path: False
    if isinstance(rule, str):
        rule = re.compile(rule)
    if isinstance(rule, re.Pattern):
        return lambda path: rule.search(path) is not None
    if callable(rule):
        return rule
    raise TypeError(f"Unsupported ignore rule: {rule!r}")


class _Handler(FileSystemEventHandler):
    """Runs on the observer thread; hands raw events to the watcher's loop."""

    def __init__(self, watcher: "SourceWatcher"):
        self.watcher = watcher

    def on_created(self, event: FileSystemEvent):
        self._activity(event)

    def on_modified(self, event: FileSystemEvent):
        self._activity(event)

    def on_deleted(self, event: FileSystemEvent):
        if not event.is_directory:
            self.watcher.post(self.watcher.forget, event.src_path)

    def on_moved(self, event: FileSystemEvent):
        if event.is_directory:
            return
        self.watcher.post(self.watcher.moved, event.src_path, event.dest_path)

    def _activity(self, event: FileSystemEvent):
        if event.is_directory or self.watcher.is_ignored(event.src_path):
            return
        self.watcher.post(self.watcher.touch, event.src_path)


class SourceWatcher:
    """Watches a directory tree and settles raw write activity per path.

    Every raw create/modify restarts a timer for its path; when the timer
    runs out after `stability_threshold` seconds of quiet, the path is handed
    to the change detector once.
    """

    def __init__(
        self,
        root: Path,
        detector: ChangeDetectorPort,
        stability_threshold: float = 1.5,
        ignore: IgnoreRule = DEFAULT_IGNORE,
    ):
        self.root = Path(root)
        self.detector = detector
        self.stability_threshold = stability_threshold
        self._ignore = build_ignore(ignore)
        self._pending: Dict[Path, asyncio.TimerHandle] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._observer: Optional[Observer] = None

    def is_ignored(self, path) -> bool:
        path = os.fspath(path)
        try:
            relative = os.path.relpath(path, self.root)
        except ValueError:
            relative = path
        return self._ignore(relative)

    def start(self) -> None:
        if not self.root.exists():
            raise WatchSetupError(f"Watch directory {self.root} does not exist")
        if not self.root.is_dir():
            raise WatchSetupError(f"Watch path {self.root} is not a directory")

        self._loop = asyncio.get_running_loop()
        observer = Observer()
        try:
            observer.schedule(_Handler(self), str(self.root), recursive=True)
            observer.start()
        except OSError as e:
            raise WatchSetupError(f"Cannot watch {self.root}: {e}") from e
        self._observer = observer
        logger.info(
            f"Watching {self.root.resolve()} (stability threshold {self.stability_threshold}s)"
        )

    def stop(self) -> None:
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
            logger.info("Stopped watching")

    def post(self, callback: Callable, *args) -> None:
        """Schedule callback on the event loop from the observer thread."""
        if self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(callback, *args)

    def touch(self, path) -> None:
        """Record raw write activity on path and restart its quiet period."""
        path = Path(path)
        handle = self._pending.pop(path, None)
        if handle is not None:
            handle.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._pending[path] = loop.call_later(self.stability_threshold, self._settle, path)
        logger.debug(f"Raw activity on {path}")

    def forget(self, path) -> None:
        path = Path(path)
        handle = self._pending.pop(path, None)
        if handle is not None:
            handle.cancel()
            logger.debug(f"Dropped pending change for removed {path}")

    def moved(self, src, dest) -> None:
        """Renames carry their fingerprint; the destination settles like any write.

        An atomic save (temp file renamed over the target) is therefore
        compared against the content it replaced.
        """
        self.forget(src)
        self.detector.rename(Path(src), Path(dest))
        if not self.is_ignored(dest):
            self.touch(dest)

    def pending(self) -> int:
        return len(self._pending)

    def _settle(self, path: Path) -> None:
        self._pending.pop(path, None)
        logger.debug(f"Settled {path}")
        self.detector.notify_settled(path)
