import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

import asyncio
import base64
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from sketch_timelapse.application.services.frame_sequencer import FrameSequencer
from sketch_timelapse.common.errors import OutputSetupError
from sketch_timelapse.domain.timelapse.commands import SaveFrameCommand
from sketch_timelapse.domain.timelapse.events import FrameSaved, FrameSaveFailed
from sketch_timelapse.domain.timelapse.model import TimelapseState

PNG_HEADER = b"\x89PNG\r\n\x1a\n"


class MockMessageBus:
    def __init__(self):
        self.handled_events = []

    def handle(self, event):
        self.handled_events.append(event)


def frame_command(body: bytes = b"frame") -> SaveFrameCommand:
    encoded = base64.b64encode(PNG_HEADER + body).decode("ascii")
    return SaveFrameCommand(image=f"data:image/png;base64,{encoded}")


def create_sequencer(out_dir: Path, pad_width=5, overwrite=False):
    bus = MockMessageBus()
    sequencer = FrameSequencer(TimelapseState(), bus, out_dir, pad_width=pad_width, overwrite=overwrite)
    sequencer.prepare()
    return sequencer, bus


def submit_all(sequencer, commands, concurrently=False):
    async def scenario():
        try:
            if concurrently:
                return await asyncio.gather(*(sequencer.submit(c) for c in commands))
            return [await sequencer.submit(c) for c in commands]
        finally:
            await sequencer.stop()

    return asyncio.run(scenario())


def test_creates_missing_output_dir(tmp_path):
    out_dir = tmp_path / "timelapse" / "nested"
    sequencer, _ = create_sequencer(out_dir)

    assert out_dir.is_dir()
    assert sequencer.state.counter.value is None

    results = submit_all(sequencer, [frame_command()])
    assert results[0].ok
    assert results[0].filename == "00000.png"
    assert (out_dir / "00000.png").read_bytes() == PNG_HEADER + b"frame"


def test_resumes_after_highest_existing_frame(tmp_path):
    for name in ["00002.png", "00007.png", "notes.txt", "poster.png"]:
        (tmp_path / name).write_bytes(b"old")

    sequencer, _ = create_sequencer(tmp_path)
    assert sequencer.state.counter.value == 7

    results = submit_all(sequencer, [frame_command()])
    assert results[0].filename == "00008.png"
    assert (tmp_path / "00008.png").exists()
    assert (tmp_path / "00007.png").read_bytes() == b"old"


def test_overwrite_mode_starts_from_zero(tmp_path):
    (tmp_path / "00000.png").write_bytes(b"old")
    (tmp_path / "00007.png").write_bytes(b"old")

    sequencer, _ = create_sequencer(tmp_path, overwrite=True)
    assert sequencer.state.counter.value is None

    results = submit_all(sequencer, [frame_command(b"new")])
    assert results[0].filename == "00000.png"
    assert (tmp_path / "00000.png").read_bytes() == PNG_HEADER + b"new"


def test_concurrent_frames_get_distinct_indexes(tmp_path):
    sequencer, _ = create_sequencer(tmp_path, pad_width=3)

    first, second = submit_all(sequencer, [frame_command(b"one"), frame_command(b"two")], concurrently=True)

    assert first.filename == "000.png"
    assert second.filename == "001.png"
    assert (tmp_path / "000.png").read_bytes() == PNG_HEADER + b"one"
    assert (tmp_path / "001.png").read_bytes() == PNG_HEADER + b"two"


def test_many_frames_are_gap_free(tmp_path):
    (tmp_path / "00041.png").write_bytes(b"old")
    sequencer, bus = create_sequencer(tmp_path)

    results = submit_all(sequencer, [frame_command(bytes([i])) for i in range(20)], concurrently=True)

    expected = {f"{i:05d}.png" for i in range(42, 62)}
    assert {r.filename for r in results} == expected
    assert expected <= {p.name for p in tmp_path.iterdir()}
    assert sequencer.state.counter.value == 61
    assert [e.index for e in bus.handled_events] == list(range(42, 62))
    assert all(isinstance(e, FrameSaved) for e in bus.handled_events)


def test_failed_write_frees_the_slot(tmp_path):
    (tmp_path / "004.png").write_bytes(b"old")
    sequencer, bus = create_sequencer(tmp_path, pad_width=3)

    async def scenario():
        try:
            with patch.object(Path, "write_bytes", side_effect=PermissionError("permission denied")):
                failed = await sequencer.submit(frame_command())
            assert sequencer.state.counter.value == 4
            retried = await sequencer.submit(frame_command(b"retry"))
            return failed, retried
        finally:
            await sequencer.stop()

    failed, retried = asyncio.run(scenario())

    assert not failed.ok
    assert failed.index == 5
    assert "permission denied" in failed.error
    assert isinstance(bus.handled_events[0], FrameSaveFailed)

    assert retried.ok
    assert retried.filename == "005.png"
    assert (tmp_path / "005.png").read_bytes() == PNG_HEADER + b"retry"
    assert sequencer.state.counter.value == 5


def test_malformed_payload_is_a_write_failure(tmp_path):
    sequencer, bus = create_sequencer(tmp_path)

    results = submit_all(sequencer, [
        SaveFrameCommand(image="data:image/png;base64,@@not base64@@"),
        frame_command(),
    ])

    assert not results[0].ok
    assert results[0].filename == "00000.png"
    assert "base64" in results[0].error
    assert results[1].ok
    assert results[1].filename == "00000.png"
    assert [type(e) for e in bus.handled_events] == [FrameSaveFailed, FrameSaved]


def test_raw_bytes_and_bare_base64_are_accepted(tmp_path):
    sequencer, _ = create_sequencer(tmp_path)
    bare = base64.b64encode(PNG_HEADER + b"bare").decode("ascii")

    results = submit_all(sequencer, [
        SaveFrameCommand(image=PNG_HEADER + b"raw"),
        SaveFrameCommand(image=bare),
    ])

    assert [r.filename for r in results] == ["00000.png", "00001.png"]
    assert (tmp_path / "00000.png").read_bytes() == PNG_HEADER + b"raw"
    assert (tmp_path / "00001.png").read_bytes() == PNG_HEADER + b"bare"


def test_output_path_that_is_a_file_is_fatal(tmp_path):
    target = tmp_path / "timelapse"
    target.write_text("not a directory")
    sequencer = FrameSequencer(TimelapseState(), MockMessageBus(), target)

    with pytest.raises(OutputSetupError):
        sequencer.prepare()


def test_result_describes_outcome(tmp_path):
    sequencer, _ = create_sequencer(tmp_path)
    ok, = submit_all(sequencer, [frame_command()])

    assert ok.describe() == "00000.png exported"
    assert ok.to_dict() == {"ok": True, "index": 0, "filename": "00000.png", "error": None}


def test_stop_does_not_block_the_event_loop(tmp_path):
    sequencer, _ = create_sequencer(tmp_path)
    ticks = []

    def slow_shutdown(*args, **kwargs):
        time.sleep(0.3)

    async def ticker():
        while True:
            ticks.append(time.monotonic())
            await asyncio.sleep(0.02)

    async def scenario():
        await sequencer.submit(frame_command())
        task = asyncio.create_task(ticker())
        await asyncio.sleep(0)
        with patch.object(sequencer.executor, "shutdown", side_effect=slow_shutdown):
            before = len(ticks)
            await sequencer.stop()
            during = len(ticks) - before
        task.cancel()
        return during

    assert asyncio.run(scenario()) >= 5
