from dataclasses import dataclass
from abc import ABC
from pathlib import Path


class Event(ABC):
    pass

@dataclass
class ContentChanged(Event):
    path: Path
    fingerprint: str

@dataclass
class FrameSaved(Event):
    index: int
    filename: str
    path: Path

@dataclass
class FrameSaveFailed(Event):
    index: int
    filename: str
    error: str
