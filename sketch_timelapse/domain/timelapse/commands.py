import base64
import binascii
import re
from typing import Union

from pydantic import BaseModel, field_validator

from sketch_timelapse.common.errors import FramePayloadError

_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(;[\w-]+=[^;,]*)*;base64,", re.IGNORECASE)


def decode_image(image: Union[str, bytes]) -> bytes:
    """Raw image bytes from a base64 data URI, a bare base64 string or raw bytes."""
    if isinstance(image, (bytes, bytearray)):
        data = bytes(image)
    else:
        encoded = _DATA_URI.sub("", image.strip(), count=1)
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise FramePayloadError(f"frame payload is not valid base64: {e}") from e

    if not data:
        raise FramePayloadError("frame payload is empty")
    return data


class SaveFrameCommand(BaseModel):
    image: Union[str, bytes]

    @field_validator("image")
    @classmethod
    def _not_blank(cls, value):
        if not value:
            raise ValueError("image must not be empty")
        return value

    def frame_bytes(self) -> bytes:
        return decode_image(self.image)
