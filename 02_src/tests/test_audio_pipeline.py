"""Tests for AudioRecordingPipeline."""

import asyncio

import pytest

from chatsync.audio import AudioRecordingPipeline, RecordingState
from chatsync.errors import PermissionDeniedError, RecordingError
from chatsync.models import Topic


@pytest.fixture
def pipeline(microphone, clock, event_bus):
    """Pipeline with a slow tick so durations come from the fake clock."""
    return AudioRecordingPipeline(
        microphone, event_bus=event_bus, min_duration=1.0, tick_interval=60.0, clock=clock
    )


class TestTransitions:
    """Tests for the state machine."""

    @pytest.mark.asyncio
    async def test_illegal_transitions_are_noops(self, pipeline, microphone):
        """Test pause, resume and finalize from idle do nothing."""
        await pipeline.pause()
        await pipeline.resume()
        assert await pipeline.stop_and_finalize() is None
        assert pipeline.take_result() is None

        assert pipeline.state is RecordingState.IDLE
        assert microphone.calls == []

    @pytest.mark.asyncio
    async def test_resume_while_recording_noop(self, pipeline, microphone):
        """Test resume only applies when paused."""
        await pipeline.start()
        await pipeline.resume()

        assert pipeline.state is RecordingState.RECORDING
        assert "resume" not in microphone.calls
        await pipeline.close()

    @pytest.mark.asyncio
    async def test_start_twice_begins_once(self, pipeline, microphone):
        """Test a second start while recording is ignored."""
        await pipeline.start()
        await pipeline.start()

        assert microphone.calls.count("begin") == 1
        await pipeline.close()

    @pytest.mark.asyncio
    async def test_full_cycle(self, pipeline, microphone, clock):
        """Test record, pause, resume, finalize and hand over the result."""
        await pipeline.start()
        clock.advance(1.5)
        await pipeline.pause()
        assert pipeline.state is RecordingState.PAUSED
        clock.advance(30)
        await pipeline.resume()
        clock.advance(1.7)

        result = await pipeline.stop_and_finalize()

        assert pipeline.state is RecordingState.STOPPED
        assert result.uri == microphone.uri
        assert result.duration_seconds == 3
        assert result.mime_type == "audio/m4a"
        assert pipeline.holds_microphone is False
        assert microphone.calls[-2:] == ["finish", "release"]

        assert pipeline.take_result() is result
        assert pipeline.state is RecordingState.IDLE
        assert pipeline.take_result() is None


class TestMinimumDuration:
    """Tests for discarding short recordings."""

    @pytest.mark.asyncio
    async def test_short_recording_discarded(self, pipeline, microphone, clock):
        """Test a 0.4 s recording produces nothing and frees the microphone."""
        await pipeline.start()
        clock.advance(0.4)
        assert pipeline.can_send is False

        assert await pipeline.stop_and_finalize() is None

        assert pipeline.state is RecordingState.IDLE
        assert "finish" not in microphone.calls
        assert microphone.calls[-1] == "release"
        assert pipeline.holds_microphone is False

    @pytest.mark.asyncio
    async def test_paused_time_excluded(self, pipeline, clock):
        """Test time spent paused does not count towards the minimum."""
        await pipeline.start()
        clock.advance(0.5)
        await pipeline.pause()
        clock.advance(10)
        await pipeline.resume()
        clock.advance(0.3)

        assert pipeline.recorded_seconds == pytest.approx(0.8)
        assert await pipeline.stop_and_finalize() is None

    @pytest.mark.asyncio
    async def test_can_send_after_minimum(self, pipeline, clock):
        """Test can_send flips once the minimum is reached."""
        await pipeline.start()
        clock.advance(1.0)
        assert pipeline.can_send is True
        await pipeline.cancel()


class TestMicrophoneRelease:
    """Tests for releasing the microphone on every exit."""

    @pytest.mark.asyncio
    async def test_permission_denied(self, pipeline, microphone):
        """Test a refused permission leaves the pipeline idle."""
        microphone.granted = False

        with pytest.raises(PermissionDeniedError):
            await pipeline.start()

        assert pipeline.state is RecordingState.IDLE
        assert "begin" not in microphone.calls
        assert pipeline.holds_microphone is False

    @pytest.mark.asyncio
    async def test_begin_failure_releases(self, pipeline, microphone):
        """Test a failing start frees the microphone."""
        microphone.fail_on.add("begin")

        with pytest.raises(RecordingError):
            await pipeline.start()

        assert pipeline.state is RecordingState.IDLE
        assert microphone.calls[-1] == "release"

    @pytest.mark.asyncio
    async def test_finish_failure_releases(self, pipeline, microphone, clock):
        """Test a failing finalize frees the microphone and returns to idle."""
        await pipeline.start()
        clock.advance(2)
        microphone.fail_on.add("finish")

        with pytest.raises(RecordingError):
            await pipeline.stop_and_finalize()

        assert pipeline.state is RecordingState.IDLE
        assert microphone.calls.count("release") == 1
        assert pipeline.holds_microphone is False

    @pytest.mark.asyncio
    async def test_cancel_releases(self, pipeline, microphone):
        """Test cancel discards the capture."""
        await pipeline.start()
        await pipeline.pause()
        await pipeline.cancel()

        assert pipeline.state is RecordingState.IDLE
        assert microphone.calls[-1] == "release"
        await pipeline.cancel()
        assert microphone.calls.count("release") == 1

    @pytest.mark.asyncio
    async def test_context_manager_releases(self, microphone, clock):
        """Test leaving the context frees the microphone."""
        async with AudioRecordingPipeline(microphone, clock=clock) as pipeline:
            await pipeline.start()
            assert pipeline.holds_microphone is True

        assert pipeline.holds_microphone is False
        assert microphone.calls[-1] == "release"


class TestTicks:
    """Tests for the elapsed-seconds timer."""

    @pytest.mark.asyncio
    async def test_ticks_published(self, microphone, event_bus, recorded_events, wait_for):
        """Test ticks advance while recording and stop while paused."""
        pipeline = AudioRecordingPipeline(
            microphone, event_bus=event_bus, tick_interval=0.01
        )
        await pipeline.start()

        assert await wait_for(lambda: pipeline.elapsed_seconds >= 2)
        ticks = recorded_events[Topic.RECORDING_TICK]
        assert ticks[0].payload["elapsed_seconds"] == 1
        assert "can_send" in ticks[0].payload

        await pipeline.pause()
        paused_at = pipeline.elapsed_seconds
        await asyncio.sleep(0.05)
        assert pipeline.elapsed_seconds == paused_at

        await pipeline.cancel()
        assert pipeline.elapsed_seconds == 0
