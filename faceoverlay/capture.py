"""Capture countdown state machine.

Idle -> CountingDown(3) -> CountingDown(2) -> CountingDown(1) -> Frozen(flash)
-> Frozen -> Idle. One trigger event drives it: while a snapshot is frozen on
screen the trigger clears it, otherwise it (re)starts the countdown. The
countdown is a chain of single-shot timers and the machine holds at most one
pending handle per chain, cancelling it before any restart.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Optional

import numpy as np

from .timers import TimerHandle, TimerQueue
from .types import CapturePhase, CaptureState, IDLE

logger = logging.getLogger(__name__)


class CaptureStateMachine:
    def __init__(
        self,
        timers: TimerQueue,
        snapshot_source: Callable[[], np.ndarray],
        save: Callable[[np.ndarray], None],
        countdown_from: int = 3,
        step_seconds: float = 1.0,
        flash_seconds: float = 0.1,
        on_change: Optional[Callable[[CaptureState], None]] = None,
    ):
        if countdown_from < 1:
            raise ValueError("countdown_from must be >= 1")
        self.timers = timers
        self.snapshot_source = snapshot_source
        self.save = save
        self.countdown_from = int(countdown_from)
        self.step_seconds = float(step_seconds)
        self.flash_seconds = float(flash_seconds)
        self.on_change = on_change
        self._state: CaptureState = IDLE
        self._step: Optional[TimerHandle] = None
        self._flash: Optional[TimerHandle] = None

    @property
    def state(self) -> CaptureState:
        return self._state

    def _set(self, state: CaptureState) -> None:
        self._state = state
        if self.on_change is not None:
            self.on_change(state)

    def _cancel_timers(self) -> None:
        for h in (self._step, self._flash):
            if h is not None:
                h.cancel()
        self._step = None
        self._flash = None

    def trigger(self) -> None:
        if self._state.is_frozen:
            logger.info("Clearing captured still")
            self.reset()
            return
        if self._state.phase is CapturePhase.COUNTING_DOWN:
            logger.info("Countdown restarted")
        self._cancel_timers()
        self._set(CaptureState(CapturePhase.COUNTING_DOWN, remaining=self.countdown_from))
        self._step = self.timers.call_later(self.step_seconds, self._on_step)

    def reset(self) -> None:
        self._cancel_timers()
        self._set(IDLE)

    def _on_step(self) -> None:
        # Next link is due one step after this one's deadline
        due = self._step.deadline
        self._step = None
        remaining = (self._state.remaining or 0) - 1
        if remaining > 0:
            self._set(CaptureState(CapturePhase.COUNTING_DOWN, remaining=remaining))
            self._step = self.timers.call_at(due + self.step_seconds, self._on_step)
            return
        self._capture(due)

    def _capture(self, due: float) -> None:
        snapshot = self.snapshot_source()
        self._set(CaptureState(CapturePhase.FROZEN, flash=True, snapshot=snapshot))
        self._flash = self.timers.call_at(due + self.flash_seconds, self._on_flash_done)
        logger.info("Captured still %dx%d", snapshot.shape[1], snapshot.shape[0])
        try:
            self.save(snapshot)
        except Exception as e:
            logger.warning("Save collaborator failed (%s)", e)

    def _on_flash_done(self) -> None:
        self._flash = None
        if self._state.is_frozen:
            self._set(replace(self._state, flash=False))


__all__ = ["CaptureStateMachine"]
