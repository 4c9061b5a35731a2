"""
Capture Session

Owns one user's four-stage capture flow: the per-tick scheduler, the hold
timer, the review gate and the auto-retry timer. Each scheduler tick pulls
the latest detection, threads it through metric extraction, alignment and
timing, and publishes an immutable FrameResult to subscribers.
"""
import asyncio
import inspect
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from somatic_scan.core.capture.timing import HoldState, HoldTimer, TimingVariant
from somatic_scan.core.errors import PreconditionError
from somatic_scan.core.extraction.landmarks import FaceLandmarks, PoseLandmarks
from somatic_scan.core.extraction.metrics import (
    BodyMetricExtractor,
    BodyMetrics,
    CaptureStage,
    FaceMetricExtractor,
    FaceMetrics,
    StageMetrics,
    assemble_metrics,
)
from somatic_scan.core.validation.alignment import AlignmentResult, check_alignment
from somatic_scan.core.validation.capture_validation import validate_capture
from somatic_scan.utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DetectionResult:
    """Raw detector output for one frame. Empty sequences mean not detected."""
    face: Sequence[Any] = field(default_factory=tuple)
    pose: Sequence[Any] = field(default_factory=tuple)


class LandmarkDetector(Protocol):
    """External landmark-detection runtime."""

    def detect(self, frame: Any, timestamp_ms: int) -> DetectionResult:
        ...

    def close(self) -> None:
        ...


class FrameSource(Protocol):
    """Camera or video feed."""

    def read(self) -> Optional[Any]:
        ...


class SessionState(str, Enum):
    """Capture flow states."""
    IDLE = "idle"
    WAITING = "waiting"
    HOLDING = "holding"
    CAPTURED = "captured"    # review gate, waiting for retake/continue
    RETRYING = "retrying"    # validation failed, auto-retry timer running
    COMPLETE = "complete"
    STOPPED = "stopped"


@dataclass(frozen=True)
class FrameResult:
    """Immutable per-tick event published to subscribers."""
    stage: CaptureStage
    state: SessionState
    timestamp_ms: int
    face_metrics: Optional[FaceMetrics]
    body_metrics: Optional[BodyMetrics]
    alignment: Optional[AlignmentResult]
    hold: HoldState
    countdown: Optional[int] = None
    captured: bool = False
    validation_error: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "state": self.state.value,
            "timestamp_ms": self.timestamp_ms,
            "face_metrics": self.face_metrics.to_dict() if self.face_metrics else None,
            "body_metrics": self.body_metrics.to_dict() if self.body_metrics else None,
            "alignment": self.alignment.to_dict() if self.alignment else None,
            "hold": self.hold.to_dict(),
            "countdown": self.countdown,
            "captured": self.captured,
            "validation_error": self.validation_error,
        }


FrameSubscriber = Callable[[FrameResult], Any]

_ACTIVE_STATES = (SessionState.WAITING, SessionState.HOLDING)


class CaptureSession:
    """
    Single-user capture flow controller.

    Lifecycle:
        start() opens the detector and launches the scheduler task.
        stop() cancels the scheduler and any retry timer, then closes the
        detector. Committed stage data is kept.
        reset() stops and additionally clears all stage data and the hold
        timer, returning to stage 1.

    Stages are strictly sequential: a stage's metrics are committed by
    continue_() at the review gate before the next stage is evaluated.
    """

    def __init__(
        self,
        detector_factory: Callable[[], LandmarkDetector],
        frame_source: Optional[FrameSource] = None,
        variant: TimingVariant = TimingVariant.LONG,
        inference_interval_ms: int = 100,
        alignment_interval_ms: int = 200,
        hold_tick_ms: int = 100,
        retry_delay_ms: int = 2000,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize a session.

        Args:
            detector_factory: Creates the landmark detector on start()
            frame_source: Camera feed, or None to pass None frames to the detector
            variant: Auto-capture timing profile
            inference_interval_ms: Detection and metric extraction cadence
            alignment_interval_ms: Alignment re-check cadence
            hold_tick_ms: Hold timer cadence
            retry_delay_ms: Delay before returning to waiting after a failed capture
            clock: Monotonic clock in seconds
        """
        self._detector_factory = detector_factory
        self._frame_source = frame_source
        self._detector: Optional[LandmarkDetector] = None
        self._clock = clock

        self.inference_interval_ms = inference_interval_ms
        self.alignment_interval_ms = alignment_interval_ms
        self.hold_tick_ms = hold_tick_ms
        self.retry_delay_ms = retry_delay_ms
        self._base_tick_ms = math.gcd(math.gcd(inference_interval_ms, alignment_interval_ms), hold_tick_ms)

        self._hold_timer = HoldTimer(variant=variant, tick_ms=hold_tick_ms)
        self._face_extractor = FaceMetricExtractor()
        self._body_extractor = BodyMetricExtractor()

        # Tracked handles, cancelled on stop()
        self._task: Optional[asyncio.Task] = None
        self._retry_handle: Optional[asyncio.TimerHandle] = None

        self._subscribers: List[FrameSubscriber] = []
        self._reset_flow()

        logger.info(
            f"CaptureSession initialized (variant={self._hold_timer.variant.value}, "
            f"base tick={self._base_tick_ms}ms)"
        )

    def _reset_flow(self) -> None:
        self._state = SessionState.IDLE
        self._stage = CaptureStage.FACE
        self._stage_data: Dict[CaptureStage, StageMetrics] = {}
        self._pending: Optional[StageMetrics] = None
        self._validation_error = ""
        self._latest_detection = DetectionResult()
        self._latest_face: Optional[FaceLandmarks] = None
        self._latest_pose: Optional[PoseLandmarks] = None
        self._latest_face_metrics: Optional[FaceMetrics] = None
        self._latest_body_metrics: Optional[BodyMetrics] = None
        self._latest_alignment: Optional[AlignmentResult] = None
        self._elapsed_ms = 0
        self._hold_timer.reset()

    # ------------------------------------------------------------------
    # STATE
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def stage(self) -> CaptureStage:
        return self._stage

    @property
    def hold_state(self) -> HoldState:
        return self._hold_timer.state

    @property
    def validation_error(self) -> str:
        return self._validation_error

    @property
    def pending_capture(self) -> Optional[StageMetrics]:
        """Stage record awaiting the review decision."""
        return self._pending

    @property
    def stage_metrics(self) -> Dict[CaptureStage, StageMetrics]:
        return dict(self._stage_data)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_complete(self) -> bool:
        return self._state is SessionState.COMPLETE

    @property
    def retry_pending(self) -> bool:
        return self._retry_handle is not None

    def assembled_metrics(self) -> Tuple[FaceMetrics, BodyMetrics]:
        """Face and body metrics from all four committed stages."""
        return assemble_metrics(self._stage_data)

    # ------------------------------------------------------------------
    # SUBSCRIPTIONS
    # ------------------------------------------------------------------

    def subscribe(self, callback: FrameSubscriber) -> Callable[[], None]:
        """Register a FrameResult listener. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, result: FrameResult) -> None:
        for callback in list(self._subscribers):
            try:
                callback(result)
            except Exception as e:
                logger.error(f"Frame subscriber failed: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # LIFECYCLE
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open the detector and launch the scheduler loop."""
        if self.is_running:
            logger.warning("Capture session already running")
            return

        if self._detector is None:
            self._detector = self._detector_factory()
        if self._state in (SessionState.IDLE, SessionState.STOPPED):
            self._state = SessionState.WAITING

        self._task = asyncio.get_running_loop().create_task(self._run(), name="capture-scheduler")
        logger.info(f"Capture session started at {self._stage.value}")

    async def stop(self) -> None:
        """Cancel the scheduler and timers, and release the detector."""
        self._cancel_retry()

        task, self._task = self._task, None
        if task is not None and task.done() and not task.cancelled() and task.exception() is not None:
            logger.error("Capture scheduler crashed", exc_info=task.exception())
        elif task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._detector is not None:
            try:
                self._detector.close()
            except Exception as e:
                logger.error(f"Detector cleanup error: {e}")
            self._detector = None

        self._hold_timer.reset()
        if self._state in _ACTIVE_STATES or self._state is SessionState.RETRYING:
            self._state = SessionState.STOPPED
        logger.info("Capture session stopped")

    async def reset(self) -> None:
        """Stop and discard all captured data, returning to stage 1."""
        await self.stop()
        self._reset_flow()
        logger.info("Capture session reset")

    # ------------------------------------------------------------------
    # REVIEW GATE
    # ------------------------------------------------------------------

    def retake(self) -> None:
        """Discard the pending capture and wait for alignment again."""
        if self._state is not SessionState.CAPTURED:
            raise PreconditionError(f"Retake is only possible at the review gate (state={self._state.value})")
        logger.info(f"Retake requested for {self._stage.value}")
        self._pending = None
        self._hold_timer.reset()
        self._latest_alignment = None
        self._state = SessionState.WAITING

    def continue_(self) -> StageMetrics:
        """Commit the pending capture and advance to the next stage."""
        if self._state is not SessionState.CAPTURED or self._pending is None:
            raise PreconditionError(f"Nothing to continue with (state={self._state.value})")

        committed = self._pending
        self._stage_data[self._stage] = committed
        self._pending = None
        self._hold_timer.reset()
        self._latest_alignment = None

        next_stage = self._stage.next()
        if next_stage is None:
            self._state = SessionState.COMPLETE
            logger.info("All capture stages committed")
        else:
            logger.info(f"{self._stage.value} committed, advancing to {next_stage.value}")
            self._stage = next_stage
            self._state = SessionState.WAITING
        return committed

    # ------------------------------------------------------------------
    # SCHEDULER
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        tick_s = self._base_tick_ms / 1000.0
        while True:
            try:
                await self.step()
            except Exception as e:
                logger.error(f"Scheduler tick failed: {e}", exc_info=True)
            await asyncio.sleep(tick_s)

    async def step(self) -> Optional[FrameResult]:
        """
        Advance the scheduler by one base tick.

        Inference, alignment and hold ticks each run when the elapsed time is
        a multiple of their interval. Returns the published FrameResult when
        a hold tick ran, else None.
        """
        self._elapsed_ms += self._base_tick_ms
        if self._state not in _ACTIVE_STATES:
            return None

        if self._elapsed_ms % self.inference_interval_ms == 0:
            await self._inference_tick()
        if self._elapsed_ms % self.alignment_interval_ms == 0:
            self._alignment_tick()
        if self._elapsed_ms % self.hold_tick_ms == 0:
            return self._hold_tick()
        return None

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def _inference_tick(self) -> None:
        detection = DetectionResult()
        if self._detector is not None:
            try:
                frame = self._frame_source.read() if self._frame_source is not None else None
                result = self._detector.detect(frame, self._now_ms())
                if inspect.isawaitable(result):
                    result = await result
                if isinstance(result, DetectionResult):
                    detection = result
                elif result is not None:
                    logger.warning(f"Detector returned {type(result).__name__}, treating frame as empty")
            except Exception as e:
                # A bad frame must not stop the capture loop
                logger.error(f"Landmark detection failed: {e}")

        try:
            self.ingest(detection)
        except Exception as e:
            logger.error(f"Unreadable landmarks, treating frame as empty: {e}")
            self.ingest(DetectionResult())

    def ingest(self, detection: DetectionResult) -> None:
        """Convert a raw detection into named landmarks and live metrics."""
        self._latest_detection = detection
        self._latest_face = FaceLandmarks.from_raw(detection.face)
        self._latest_pose = PoseLandmarks.from_raw(detection.pose)
        if self._stage.uses_face:
            self._latest_face_metrics = self._face_extractor.extract(self._latest_face)
        else:
            self._latest_body_metrics = self._body_extractor.extract(self._latest_pose)

    def _alignment_tick(self) -> None:
        self._latest_alignment = check_alignment(self._stage, self._latest_face, self._latest_pose)

    def _hold_tick(self) -> FrameResult:
        aligned = self._latest_alignment.aligned if self._latest_alignment is not None else False
        tick = self._hold_timer.tick(aligned)

        captured = False
        if tick.triggered:
            captured = self._capture()
        else:
            self._state = SessionState.HOLDING if tick.state.hold_duration_ms > 0 else SessionState.WAITING

        result = FrameResult(
            stage=self._stage,
            state=self._state,
            timestamp_ms=self._now_ms(),
            face_metrics=self._latest_face_metrics,
            body_metrics=self._latest_body_metrics,
            alignment=self._latest_alignment,
            hold=tick.state,
            countdown=tick.countdown,
            captured=captured,
            validation_error=self._validation_error,
        )
        self._publish(result)
        return result

    def _capture(self) -> bool:
        """Validate the frame at the capture instant and enter review or retry."""
        validation = validate_capture(self._stage, self._latest_detection.face, self._latest_detection.pose)
        if not validation.valid:
            logger.warning(f"{self._stage.value} capture rejected: {validation.error}")
            self._validation_error = validation.error
            self._state = SessionState.RETRYING
            self._schedule_retry()
            return False

        self._validation_error = ""
        self._pending = StageMetrics.from_live(self._stage, self._latest_face_metrics, self._latest_body_metrics)
        self._state = SessionState.CAPTURED
        logger.info(f"{self._stage.value} captured: {self._pending.values}")
        return True

    # ------------------------------------------------------------------
    # AUTO-RETRY
    # ------------------------------------------------------------------

    def _schedule_retry(self) -> None:
        self._cancel_retry()
        loop = asyncio.get_running_loop()
        self._retry_handle = loop.call_later(self.retry_delay_ms / 1000.0, self._on_retry_elapsed)
        logger.info(f"Auto-retry in {self.retry_delay_ms}ms: {self._validation_error}")

    def _on_retry_elapsed(self) -> None:
        self._retry_handle = None
        if self._state is not SessionState.RETRYING:
            return
        self._validation_error = ""
        self._hold_timer.reset()
        self._latest_alignment = None
        self._state = SessionState.WAITING
        logger.info(f"Auto-retry: waiting for alignment at {self._stage.value}")

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None
