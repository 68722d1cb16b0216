class TimelapseError(Exception):
    """Base class for errors raised by sketch_timelapse."""


class WatchSetupError(TimelapseError):
    """The watch directory is missing or unusable. Fatal at startup."""


class FramePayloadError(TimelapseError):
    """A submitted frame could not be decoded to image bytes."""


class SequenceError(TimelapseError):
    """The sequence counter was asked to move other than one step forward."""


class OutputSetupError(TimelapseError):
    """The output directory cannot be created or is not a directory."""
