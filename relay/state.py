"""
In-memory tracker state.

Holds the latest telemetry sample and the tracker settings blob together with
the pending-settings flag. Nothing is persisted: a restart always comes back
APPLIED with the configured defaults.

Settings state machine:
    APPLIED → (viewer POST /settings) → PENDING
    PENDING → (viewer POST /settings) → PENDING   (blob replaced, last write wins)
    PENDING → (tracker GET /settings/applied) → APPLIED
    APPLIED → (tracker GET /settings/applied) → APPLIED

Key invariants:
    - Every read and write goes through one lock, so readers never see a
      half-written sample or blob.
    - POST /telemetry stores the sample and reads the pending flag in the same
      critical section; a concurrent push or acknowledgement is either fully
      before or fully after it.
    - last_signal only moves forward and only on an accepted sample.
"""
import time
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Callable

from fastapi import Request

from relay.config import Settings


class SettingsStatus(str, Enum):
    """Whether the tracker has confirmed the current settings blob."""
    PENDING = "pending"
    APPLIED = "applied"


@dataclass(frozen=True)
class StateSnapshot:
    """Consistent copy of the whole state at one instant."""
    sample: str
    elapsed_ms: int
    settings: str
    status: SettingsStatus


class TrackerState:
    """Single-tracker state shared by all request handlers."""

    def __init__(
        self,
        default_sample: str = "0,0,0,0",
        default_settings: str = "45000,1000,3,3000",
        clock: Callable[[], float] = time.monotonic,
    ):
        self._lock = Lock()
        self._clock = clock
        self._sample = default_sample
        # Until the first sample arrives, elapsed time counts from server start
        self._last_signal = clock()
        self._settings = default_settings
        self._pending = False

    @classmethod
    def from_settings(cls, settings: Settings, clock: Callable[[], float] = time.monotonic) -> "TrackerState":
        return cls(
            default_sample=settings.default_sample,
            default_settings=settings.default_settings,
            clock=clock,
        )

    def _elapsed_ms(self) -> int:
        return max(0, int((self._clock() - self._last_signal) * 1000))

    # ============ Telemetry ============

    def record_sample(self, payload: str) -> bool:
        """
        Replace the sample and restart the signal clock.

        Returns the pending flag as seen atomically with the write, which the
        caller turns into the "settings changed" status.
        """
        with self._lock:
            self._sample = payload
            self._last_signal = max(self._last_signal, self._clock())
            return self._pending

    def latest_sample(self) -> tuple[int, str]:
        """Return (milliseconds since last accepted sample, sample payload)."""
        with self._lock:
            return self._elapsed_ms(), self._sample

    # ============ Settings ============

    def push_settings(self, payload: str) -> None:
        """Replace the settings blob and mark it pending."""
        with self._lock:
            self._settings = payload
            self._pending = True

    def current_settings(self) -> str:
        with self._lock:
            return self._settings

    def acknowledge_settings(self) -> None:
        """Tracker confirmed it adopted the blob."""
        with self._lock:
            self._pending = False

    def settings_status(self) -> SettingsStatus:
        with self._lock:
            return SettingsStatus.PENDING if self._pending else SettingsStatus.APPLIED

    def snapshot(self) -> StateSnapshot:
        with self._lock:
            return StateSnapshot(
                sample=self._sample,
                elapsed_ms=self._elapsed_ms(),
                settings=self._settings,
                status=SettingsStatus.PENDING if self._pending else SettingsStatus.APPLIED,
            )


def get_tracker_state(request: Request) -> TrackerState:
    """FastAPI dependency returning the application's tracker state."""
    return request.app.state.tracker
