from .ports import ChangeDetectorPort, FrameSequencerPort, ChangeNotifierPort
from .commands import SaveFrameCommand, decode_image
from .events import Event, ContentChanged, FrameSaved, FrameSaveFailed
from .model import (
    IMAGE_EXTENSION,
    SequenceCounter,
    TimelapseState,
    WatchedFile,
    compute_initial_counter,
    fingerprint_bytes,
    fingerprint_file,
    frame_filename,
)

__all__ = [
    'ChangeDetectorPort',
    'FrameSequencerPort',
    'ChangeNotifierPort',

    'SaveFrameCommand',
    'decode_image',

    'Event',
    'ContentChanged',
    'FrameSaved',
    'FrameSaveFailed',

    'IMAGE_EXTENSION',
    'SequenceCounter',
    'TimelapseState',
    'WatchedFile',
    'compute_initial_counter',
    'fingerprint_bytes',
    'fingerprint_file',
    'frame_filename',
]
