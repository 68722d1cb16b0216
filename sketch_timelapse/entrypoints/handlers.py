from enum import Enum

from pydantic import ValidationError

from sketch_timelapse.common.logger import setup_logger, status_message
from sketch_timelapse.domain.timelapse.commands import SaveFrameCommand
from sketch_timelapse.domain.timelapse.ports import FrameSequencerPort

logger = setup_logger('SocketHandlers')

class TimelapseEvent(str, Enum):
    CHANGED = "timelapse:changed"
    NEW_FRAME = "timelapse:newframe"
    LOG = "timelapse:log"
    WARN = "timelapse:warn"

def register(sio, sequencer: FrameSequencerPort, log_enabled: bool = True):

    # Inbound
    @sio.on(TimelapseEvent.NEW_FRAME.value)
    async def new_frame(sid, payload):
        try:
            command = SaveFrameCommand.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Invalid frame payload from {sid}: {e}")
            await send_status(sid, False, f"invalid frame payload: {e.error_count()} error(s)")
            return {"ok": False, "filename": None, "error": "invalid frame payload"}

        logger.debug(f"Frame received from {sid}")
        result = await sequencer.submit(command)
        await send_status(sid, result.ok, result.describe())
        return result.to_dict()

    # Outbound
    async def send_status(sid, ok: bool, text: str):
        if not log_enabled:
            return
        event = TimelapseEvent.LOG if ok else TimelapseEvent.WARN
        await sio.emit(event.value, {"msg": status_message(text)}, to=sid)
