"""
Capture Timing

Hold-then-countdown timer layered on the alignment boolean. The user must
stay aligned for the full duration; any unaligned tick starts over.
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from somatic_scan.utils import get_logger

logger = get_logger(__name__)

DEFAULT_TICK_MS = 100
COUNTDOWN_MS = 3000


class TimingVariant(str, Enum):
    """Auto-capture timing profiles."""
    SHORT = "short"  # 3s countdown from the first aligned tick
    LONG = "long"    # 2s silent hold, then 3s countdown

    @property
    def total_ms(self) -> int:
        return 3000 if self is TimingVariant.SHORT else 5000

    @property
    def silent_hold_ms(self) -> int:
        return 0 if self is TimingVariant.SHORT else 2000


class HoldPhase(str, Enum):
    """Timer phase within a stage."""
    WAITING = "waiting"
    HOLDING = "holding"


@dataclass(frozen=True)
class HoldState:
    """Snapshot of the hold timer."""
    hold_duration_ms: int = 0
    is_aligned: bool = False

    @property
    def phase(self) -> HoldPhase:
        return HoldPhase.HOLDING if self.is_aligned and self.hold_duration_ms > 0 else HoldPhase.WAITING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hold_duration_ms": self.hold_duration_ms,
            "is_aligned": self.is_aligned,
            "phase": self.phase.value,
        }


@dataclass(frozen=True)
class HoldTick:
    """Result of advancing the timer by one tick."""
    state: HoldState
    countdown: Optional[int]
    triggered: bool = False


class HoldTimer:
    """
    Accumulates aligned time and fires a single capture trigger.

    The trigger fires on the tick where the accumulated duration first
    reaches the variant total; the duration is reset to 0 in the same step
    so holding past the threshold cannot re-fire.
    """

    def __init__(self, variant: TimingVariant = TimingVariant.LONG, tick_ms: int = DEFAULT_TICK_MS):
        if tick_ms <= 0:
            raise ValueError("tick_ms must be positive")
        self.variant = TimingVariant(variant)
        self.tick_ms = tick_ms
        self._hold_ms = 0
        self._aligned = False
        self._trigger_count = 0
        logger.info(f"HoldTimer initialized ({self.variant.value}, {self.variant.total_ms}ms)")

    @property
    def state(self) -> HoldState:
        return HoldState(hold_duration_ms=self._hold_ms, is_aligned=self._aligned)

    @property
    def trigger_count(self) -> int:
        return self._trigger_count

    def countdown(self) -> Optional[int]:
        """Whole seconds left to display, or None while silent or not holding."""
        if not self._aligned or self._hold_ms <= 0:
            return None
        silent = self.variant.silent_hold_ms
        if self._hold_ms < silent:
            return None
        remaining = COUNTDOWN_MS - (self._hold_ms - silent)
        return max(0, math.ceil(remaining / 1000))

    def tick(self, aligned: bool) -> HoldTick:
        """Advance by one tick given this tick's alignment."""
        self._aligned = bool(aligned)
        if not self._aligned:
            self._hold_ms = 0
            return HoldTick(state=self.state, countdown=None)

        self._hold_ms += self.tick_ms
        if self._hold_ms >= self.variant.total_ms:
            self._hold_ms = 0
            self._trigger_count += 1
            logger.info(f"Hold complete after {self.variant.total_ms}ms, capture triggered")
            return HoldTick(state=self.state, countdown=0, triggered=True)

        return HoldTick(state=self.state, countdown=self.countdown())

    def reset(self) -> None:
        self._hold_ms = 0
        self._aligned = False
