"""AudioRecordingPipeline: recording session state machine."""

import asyncio
import time
from enum import Enum
from typing import Callable, Protocol

from ..errors import PermissionDeniedError, RecordingError
from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..models import AudioResult, ChatEvent, Topic

logger = get_logger(__name__)


class RecordingState(str, Enum):
    """Recording session states."""

    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPED = "stopped"


class IMicrophone(Protocol):
    """Platform recorder. Exclusive: one capture at a time."""

    async def request_permission(self) -> bool:
        """Ask for microphone access. True when granted."""
        ...

    async def begin(self) -> None:
        """Acquire the microphone and start capturing."""
        ...

    async def pause(self) -> None:
        """Pause capturing."""
        ...

    async def resume(self) -> None:
        """Resume capturing."""
        ...

    async def finish(self) -> str:
        """Stop capturing and return the local URI of the recording."""
        ...

    async def release(self) -> None:
        """Release the microphone, discarding any unfinished capture."""
        ...


class AudioRecordingPipeline:
    """Wraps one IMicrophone in an idle/recording/paused/stopped machine.

    Illegal transitions (pause from idle, resume while recording, finalize
    from idle) are silent no-ops. The microphone is released on every path
    out of recording/paused, and the tick task is cancelled with it.
    """

    def __init__(
        self,
        microphone: IMicrophone,
        event_bus: IEventBus | None = None,
        min_duration: float = 1.0,
        tick_interval: float = 1.0,
        mime_type: str = "audio/m4a",
        clock: Callable[[], float] = time.monotonic,
    ):
        self._microphone = microphone
        self._event_bus = event_bus
        self._min_duration = min_duration
        self._tick_interval = tick_interval
        self._mime_type = mime_type
        self._clock = clock

        self._state = RecordingState.IDLE
        self._elapsed_ticks = 0
        self._recorded = 0.0  # seconds spent in RECORDING, pauses excluded
        self._segment_started: float | None = None
        self._result: AudioResult | None = None
        self._holds_microphone = False
        self._tick_task: asyncio.Task | None = None

    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def elapsed_seconds(self) -> int:
        """Whole seconds counted by the tick timer."""
        return self._elapsed_ticks

    @property
    def recorded_seconds(self) -> float:
        """Recorded time so far, paused time excluded."""
        if self._segment_started is None:
            return self._recorded
        return self._recorded + (self._clock() - self._segment_started)

    @property
    def can_send(self) -> bool:
        return (
            self._state in (RecordingState.RECORDING, RecordingState.PAUSED)
            and self.recorded_seconds >= self._min_duration
        )

    @property
    def holds_microphone(self) -> bool:
        return self._holds_microphone

    async def start(self) -> None:
        """idle -> recording.

        Raises:
            PermissionDeniedError: microphone access refused; stays idle.
            RecordingError: the microphone could not be started; stays idle.
        """
        if self._state is not RecordingState.IDLE:
            logger.debug("start() ignored in state %s", self._state.value)
            return

        if not await self._microphone.request_permission():
            raise PermissionDeniedError("Microphone permission denied")

        self._holds_microphone = True
        try:
            await self._microphone.begin()
        except Exception as e:
            await self._release_microphone()
            raise RecordingError(f"Failed to start recording: {e}") from e

        self._elapsed_ticks = 0
        self._recorded = 0.0
        self._result = None
        self._segment_started = self._clock()
        self._state = RecordingState.RECORDING
        self._tick_task = asyncio.create_task(self._tick_loop())
        logger.info("Recording started")

    async def pause(self) -> None:
        """recording -> paused."""
        if self._state is not RecordingState.RECORDING:
            return
        try:
            await self._microphone.pause()
        except Exception:
            await self._abort()
            raise
        self._close_segment()
        self._state = RecordingState.PAUSED

    async def resume(self) -> None:
        """paused -> recording."""
        if self._state is not RecordingState.PAUSED:
            return
        try:
            await self._microphone.resume()
        except Exception:
            await self._abort()
            raise
        self._segment_started = self._clock()
        self._state = RecordingState.RECORDING

    async def stop_and_finalize(self) -> AudioResult | None:
        """recording/paused -> stopped, or -> idle when below the minimum.

        Returns the finalized recording, or None when nothing was produced.

        Raises:
            RecordingError: the microphone failed to finalize; state is idle.
        """
        if self._state not in (RecordingState.RECORDING, RecordingState.PAUSED):
            return None

        self._close_segment()
        if self._recorded < self._min_duration:
            logger.info(
                "Recording too short (%.2fs), discarding", self._recorded
            )
            await self.cancel()
            return None

        await self._stop_ticks()
        try:
            uri = await self._microphone.finish()
        except Exception as e:
            await self._abort()
            raise RecordingError(f"Failed to process recording: {e}") from e
        finally:
            await self._release_microphone()

        duration = max(int(round(self._recorded)), self._elapsed_ticks, 1)
        self._result = AudioResult(
            uri=uri, duration_seconds=duration, mime_type=self._mime_type
        )
        self._state = RecordingState.STOPPED
        logger.info("Recording finalized (%ss)", duration)
        return self._result

    def take_result(self) -> AudioResult | None:
        """stopped -> idle, handing the result over exactly once."""
        if self._state is not RecordingState.STOPPED:
            return None
        result, self._result = self._result, None
        self._state = RecordingState.IDLE
        self._elapsed_ticks = 0
        return result

    async def cancel(self) -> None:
        """Any non-idle state -> idle, discarding the capture."""
        if self._state is RecordingState.IDLE:
            return
        await self._abort()
        logger.info("Recording cancelled")

    async def close(self) -> None:
        """Teardown: cancel whatever is in progress and free the microphone."""
        await self._abort()

    async def __aenter__(self) -> "AudioRecordingPipeline":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _abort(self) -> None:
        await self._stop_ticks()
        await self._release_microphone()
        self._segment_started = None
        self._recorded = 0.0
        self._elapsed_ticks = 0
        self._result = None
        self._state = RecordingState.IDLE

    def _close_segment(self) -> None:
        if self._segment_started is not None:
            self._recorded += self._clock() - self._segment_started
            self._segment_started = None

    async def _release_microphone(self) -> None:
        if not self._holds_microphone:
            return
        self._holds_microphone = False
        try:
            await self._microphone.release()
        except Exception as e:
            logger.error("Failed to release microphone: %s", e, exc_info=True)

    async def _stop_ticks(self) -> None:
        task, self._tick_task = self._tick_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _tick_loop(self) -> None:
        """Count whole seconds while recording."""
        while True:
            try:
                await asyncio.sleep(self._tick_interval)
                if self._state is not RecordingState.RECORDING:
                    continue

                self._elapsed_ticks += 1
                if self._event_bus:
                    await self._event_bus.publish(
                        ChatEvent(
                            topic=Topic.RECORDING_TICK,
                            payload={
                                "elapsed_seconds": self._elapsed_ticks,
                                "can_send": self.can_send,
                            },
                            source="audio_recording_pipeline",
                        )
                    )

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Recording tick error: %s", e, exc_info=True)
