import hashlib
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Optional

from sketch_timelapse.common.datetime_utils import now
from sketch_timelapse.common.errors import SequenceError

IMAGE_EXTENSION = ".png"
READ_CHUNK_SIZE = 64 * 1024


def fingerprint_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def fingerprint_file(path: Path, chunk_size: int = READ_CHUNK_SIZE) -> str:
    """SHA-256 hex digest over the full file content, read in chunks."""
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


def compute_initial_counter(
    filenames: Iterable[str],
    overwrite: bool,
    extension: str = IMAGE_EXTENSION,
) -> Optional[int]:
    """Highest index already present in a directory listing.

    Only names made of digits followed by the image extension count.
    Returns None when numbering should start from zero, which is always
    the case in overwrite mode.
    """
    if overwrite:
        return None

    pattern = re.compile(rf"^(\d+){re.escape(extension)}$")
    indexes = [int(m.group(1)) for m in map(pattern.match, filenames) if m]
    return max(indexes) if indexes else None


def frame_filename(index: int, pad_width: int, extension: str = IMAGE_EXTENSION) -> str:
    if index < 0:
        raise ValueError(f"frame index must be non-negative, got {index}")
    return f"{index:0{pad_width}d}{extension}"


@dataclass
class WatchedFile:
    path: Path
    fingerprint: str
    last_event_at: datetime = field(default_factory=now)

    def update(self, fingerprint: str) -> bool:
        """Record a new fingerprint. Returns False if it equals the stored one."""
        if fingerprint == self.fingerprint:
            return False
        self.fingerprint = fingerprint
        self.last_event_at = now()
        return True


class SequenceCounter:
    """Highest frame index already written. None until the first frame."""

    def __init__(self, value: Optional[int] = None):
        self._value = value

    @property
    def value(self) -> Optional[int]:
        return self._value

    def next_index(self) -> int:
        return 0 if self._value is None else self._value + 1

    def advance(self, index: int) -> None:
        expected = self.next_index()
        if index != expected:
            raise SequenceError(f"cannot advance counter to {index}, next index is {expected}")
        self._value = index

    def reset(self, value: Optional[int]) -> None:
        self._value = value

    def __repr__(self) -> str:
        return f"SequenceCounter(value={self._value!r})"


@dataclass
class TimelapseState:
    """Fingerprint table and sequence counter for one watch session."""
    counter: SequenceCounter = field(default_factory=SequenceCounter)
    watched_files: Dict[Path, WatchedFile] = field(default_factory=dict)

    def record_fingerprint(self, path: Path, fingerprint: str) -> bool:
        """Store a fingerprint for path. True when it differs from the previous one."""
        watched = self.watched_files.get(path)
        if watched is None:
            self.watched_files[path] = WatchedFile(path=path, fingerprint=fingerprint)
            return True
        return watched.update(fingerprint)

    def rename(self, src: Path, dest: Path) -> bool:
        """Carry the record of src over to dest.

        Returns False when src was never fingerprinted or dest already has a
        record of its own; a move onto a tracked file is compared against the
        content it replaced.
        """
        watched = self.watched_files.pop(src, None)
        if watched is None or dest in self.watched_files:
            return False
        watched.path = dest
        self.watched_files[dest] = watched
        return True
