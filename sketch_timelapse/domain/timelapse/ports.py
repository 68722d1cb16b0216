from abc import ABC, abstractmethod
from pathlib import Path


class ChangeDetectorPort(ABC):
    @abstractmethod
    def check(self, path: Path) -> bool:
        """Fingerprint a settled file and report whether its content changed."""
        pass

    @abstractmethod
    def notify_settled(self, path: Path) -> None:
        pass

    @abstractmethod
    def rename(self, src: Path, dest: Path) -> None:
        """Move the fingerprint recorded for src to dest."""
        pass


class FrameSequencerPort(ABC):
    @abstractmethod
    async def submit(self, command):
        """Queue a frame and wait for its FrameResult."""
        pass


class ChangeNotifierPort(ABC):
    @abstractmethod
    async def notify_changed(self) -> None:
        """Tell the rendering client that a new frame is wanted."""
        pass
