"""
Countdown timers for quiz sessions.

A timer counts down in whole seconds using single-shot loop callbacks. Each
tick schedules the next one only while the timer is still running, so
stopping a timer leaves nothing scheduled behind it.
"""
import asyncio
import logging
import time
from typing import Any, Callable, Optional

from .models import QuizSettings, TimerMode

logger = logging.getLogger(__name__)


class TimerLifecycleLogger:
    """Structured logging for timer lifecycle events."""

    @staticmethod
    def log_timer_start(timer_name: str, duration: int) -> None:
        """Log countdown start."""
        logger.info(
            f"Timer lifecycle: COUNTDOWN_START - Timer {timer_name}, Duration {duration}s",
            extra={
                'event_type': 'timer_countdown_start',
                'timer_name': timer_name,
                'duration': duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_update(timer_name: str, remaining_time: int, total_duration: int) -> None:
        """Log timer update events (throttled to avoid spam)."""
        if remaining_time % 10 == 0 or remaining_time <= 5:
            progress_percent = ((total_duration - remaining_time) / total_duration) * 100
            logger.debug(
                f"Timer lifecycle: UPDATE - Timer {timer_name}, Remaining {remaining_time}s ({progress_percent:.1f}% complete)",
                extra={
                    'event_type': 'timer_update',
                    'timer_name': timer_name,
                    'remaining_time': remaining_time,
                    'total_duration': total_duration,
                    'progress_percent': progress_percent,
                    'timestamp': time.time()
                }
            )

    @staticmethod
    def log_timer_completion(timer_name: str, completion_type: str, total_duration: int) -> None:
        """Log timer completion (natural expiry or stop)."""
        logger.info(
            f"Timer lifecycle: COMPLETED - Timer {timer_name}, Type {completion_type}, Duration {total_duration}s",
            extra={
                'event_type': 'timer_completed',
                'timer_name': timer_name,
                'completion_type': completion_type,
                'total_duration': total_duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_state_transition(timer_name: str, from_state: str, to_state: str, reason: str = None) -> None:
        """Log timer state transitions."""
        logger.info(
            f"Timer lifecycle: STATE_TRANSITION - Timer {timer_name}, {from_state} -> {to_state}" +
            (f" ({reason})" if reason else ""),
            extra={
                'event_type': 'timer_state_transition',
                'timer_name': timer_name,
                'from_state': from_state,
                'to_state': to_state,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(timer_name: str, error_type: str, error_message: str, operation: str) -> None:
        """Log timer-related errors with context."""
        logger.error(
            f"Timer lifecycle: ERROR - Timer {timer_name}, Operation {operation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'timer_name': timer_name,
                'error_type': error_type,
                'error_message': error_message,
                'operation': operation,
                'timestamp': time.time()
            }
        )


class QuizTimer:
    """A one-second-resolution countdown driven by loop callbacks."""

    def __init__(self, name: str = "quiz", tick_interval: float = 1.0):
        """
        Initialize the timer.

        Args:
            name: Label used in lifecycle logs
            tick_interval: Real seconds per countdown second
        """
        self._name = name
        self._tick_interval = tick_interval
        self._handle: Optional[asyncio.TimerHandle] = None
        self._running = False
        self._remaining_time = 0
        self._total_duration = 0
        self._on_tick: Optional[Callable[[int], Any]] = None
        self._on_expire: Optional[Callable[[], Any]] = None

    def start(
        self,
        duration: int,
        on_tick: Callable[[int], Any],
        on_expire: Callable[[], Any]
    ) -> None:
        """
        Start (or restart) the countdown.

        Must be called from a running event loop.

        Args:
            duration: Countdown length in seconds
            on_tick: Called after each second with the remaining time
            on_expire: Called once when the countdown reaches zero
        """
        if duration <= 0:
            raise ValueError(f"Timer duration must be positive, got {duration}")

        self.stop("restart")
        loop = asyncio.get_running_loop()

        self._remaining_time = duration
        self._total_duration = duration
        self._on_tick = on_tick
        self._on_expire = on_expire
        self._running = True

        TimerLifecycleLogger.log_timer_start(self._name, duration)
        self._handle = loop.call_later(self._tick_interval, self._tick)

    def _tick(self) -> None:
        self._handle = None
        if not self._running:
            return

        self._remaining_time -= 1
        TimerLifecycleLogger.log_timer_update(self._name, self._remaining_time, self._total_duration)

        try:
            if self._on_tick is not None:
                self._on_tick(self._remaining_time)

            # A callback that stopped or restarted the timer owns scheduling now
            if not self._running or self._handle is not None:
                return

            if self._remaining_time <= 0:
                self._running = False
                TimerLifecycleLogger.log_timer_completion(self._name, "natural_expiry", self._total_duration)
                if self._on_expire is not None:
                    self._on_expire()
                return
        except Exception as e:
            self._running = False
            TimerLifecycleLogger.log_timer_error(self._name, "callback_error", str(e), "_tick")
            raise

        self._handle = asyncio.get_running_loop().call_later(self._tick_interval, self._tick)

    def stop(self, reason: str = "stop requested") -> bool:
        """
        Stop the countdown and drop any scheduled tick.

        Returns:
            True if the timer was running
        """
        was_running = self._running
        self._running = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

        if was_running:
            TimerLifecycleLogger.log_timer_state_transition(self._name, "running", "stopped", reason)
            TimerLifecycleLogger.log_timer_completion(self._name, "stopped", self._total_duration)
        return was_running

    @property
    def is_running(self) -> bool:
        """Check if timer is counting down."""
        return self._running

    @property
    def has_pending_tick(self) -> bool:
        """Check if a tick callback is scheduled."""
        return self._handle is not None

    @property
    def remaining_time(self) -> int:
        """Get remaining time in seconds."""
        return self._remaining_time

    @property
    def elapsed_time(self) -> int:
        """Seconds counted down since the last start."""
        return self._total_duration - self._remaining_time


class TimerController:
    """
    Runs the one timer a session is configured for.

    In per-question mode the countdown restarts for each question and expiry
    triggers on_question_expire. In whole-test mode a single countdown runs
    for the entire session and expiry triggers on_test_expire.
    """

    def __init__(
        self,
        settings: QuizSettings,
        on_question_expire: Callable[[], Any],
        on_test_expire: Callable[[], Any],
        on_tick: Optional[Callable[[int], Any]] = None,
        tick_interval: float = 1.0
    ):
        self.mode = settings.effective_timer_mode
        self.question_duration = settings.question_timer
        self.test_duration = settings.test_timer * 60
        self._on_question_expire = on_question_expire
        self._on_test_expire = on_test_expire
        self._on_tick = on_tick or (lambda remaining: None)
        self._timer = QuizTimer(self.mode.value, tick_interval)

    def start(self, question_timing: bool = True) -> None:
        """
        Start timing a session.

        Args:
            question_timing: False for modes without discrete questions, in
                which only a whole-test countdown runs
        """
        if self.mode is TimerMode.PER_QUESTION and question_timing:
            self._timer.start(self.question_duration, self._on_tick, self._on_question_expire)
        elif self.mode is TimerMode.WHOLE_TEST:
            self._timer.start(self.test_duration, self._on_tick, self._on_test_expire)

    def next_question(self) -> None:
        """Reset the per-question countdown for a new question."""
        if self.mode is TimerMode.PER_QUESTION:
            self._timer.start(self.question_duration, self._on_tick, self._on_question_expire)

    def stop(self, reason: str = "stop requested") -> bool:
        """Stop ticking; returns True if a countdown was running."""
        return self._timer.stop(reason)

    @property
    def is_running(self) -> bool:
        return self._timer.is_running

    @property
    def has_pending_tick(self) -> bool:
        return self._timer.has_pending_tick

    @property
    def remaining_time(self) -> int:
        if self.mode is TimerMode.DISABLED:
            return 0
        return self._timer.remaining_time

    @property
    def test_elapsed_time(self) -> Optional[int]:
        """Seconds used of the whole-test allowance, or None without one."""
        if self.mode is not TimerMode.WHOLE_TEST:
            return None
        return self._timer.elapsed_time
