"""
Quiz session state machine and the screen-level controller around it.

A session moves through MODE_SELECTION -> ACTIVE -> COMPLETED. Completion
builds exactly one quiz record, hands it to the result store and produces
the payload shown on the results screen.
"""
import asyncio
import logging
import random
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from .choice_generator import generate_multiple_choices, generate_pair_puzzle, normalize_answer
from .config_manager import ConfigManager
from .deck_loader import DeckLoader, DeckLoadError
from .models import (
    AnswerRecord, LoadedSet, PairResult, QuizMode, QuizRecord, QuizSettings,
    SessionPhase, TimerMode, answer_records_to_dicts,
)
from .pair_puzzle import PairPuzzle, PairSelectionResult
from .quiz_engine import TimerController
from .result_store import ResultStore, group_records_by_set, score_percentage


class QuizControllerError(Exception):
    """Base exception for quiz controller errors."""
    pass


class InvalidSessionStateError(QuizControllerError):
    """Raised when session is in an invalid state for the requested operation."""
    pass


SCORED_QUESTION_MODES = (QuizMode.MULTIPLE_CHOICE, QuizMode.TYPE_ANSWER)
PAIR_ERROR_DISPLAY_SECONDS = 1.0


def score_message(percentage: int) -> str:
    """Encouragement line shown with a final score."""
    if percentage >= 90:
        return "Excellent! 🎉"
    if percentage >= 80:
        return "Great job! 👍"
    if percentage >= 70:
        return "Good work! 😊"
    if percentage >= 60:
        return "Not bad! 💪"
    return "Keep practicing! 📚"


class QuizSession:
    """
    One quiz attempt over a loaded set.

    All methods run on the event loop thread. Timer expiry and the pair
    error highlight are delivered through loop callbacks; once the session
    is completed or closed those callbacks become no-ops.
    """

    def __init__(
        self,
        loaded_set: LoadedSet,
        result_store: ResultStore,
        settings: Optional[QuizSettings] = None,
        on_event: Optional[Callable[[str, Dict[str, Any]], Any]] = None,
        rng: Optional[random.Random] = None,
        tick_interval: float = 1.0,
        pair_error_delay: float = PAIR_ERROR_DISPLAY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize a session in mode selection.

        Args:
            loaded_set: Set metadata and its shuffled deck
            result_store: Where the completed record is persisted
            settings: Timer settings, defaults to no timer
            on_event: Called as on_event(name, data) on state changes
            rng: Random source for choices and puzzles
            tick_interval: Real seconds per timer second
            pair_error_delay: How long a mismatched pair stays highlighted
            clock: Monotonic clock used for response times
        """
        if not loaded_set.deck:
            raise ValueError("Cannot create a quiz session from an empty deck")

        self.logger = logging.getLogger(__name__)
        self.loaded_set = loaded_set
        self.deck = loaded_set.deck
        self.result_store = result_store
        self.settings = settings or QuizSettings()
        self.rng = rng
        self._on_event = on_event
        self._tick_interval = tick_interval
        self._pair_error_delay = pair_error_delay
        self._clock = clock

        self.phase = SessionPhase.MODE_SELECTION
        self.mode: Optional[QuizMode] = None
        self.current_index = 0
        self.choices: List[str] = []
        self.puzzle: Optional[PairPuzzle] = None
        self.pair_result: Optional[PairResult] = None
        self.record: Optional[QuizRecord] = None
        self.results_payload: Optional[Dict[str, Any]] = None
        self.completed_reason: Optional[str] = None
        self.record_saved: Optional[bool] = None

        self._answers: List[AnswerRecord] = []
        self._timer: Optional[TimerController] = None
        self._pair_error_handle: Optional[asyncio.TimerHandle] = None
        self._started_at = 0.0
        self._question_started_at = 0.0
        self._finished_at = 0.0
        self._closed = False

    # ------------------------------------------------------------------
    # Settings

    def update_settings(self, settings: QuizSettings) -> Dict[str, Any]:
        """
        Replace the timer settings before the quiz starts.

        Returns:
            Dictionary with success status and user-friendly message
        """
        if self.phase is not SessionPhase.MODE_SELECTION or self._closed:
            error_msg = f"Cannot change settings while session is {self.phase.value}"
            self.logger.warning(
                error_msg,
                extra={'event_type': 'session_settings_rejected', 'phase': self.phase.value}
            )
            return {
                'success': False,
                'error': error_msg,
                'user_message': ConfigManager.LOCKED_MESSAGE
            }

        self.settings = settings
        return {
            'success': True,
            'message': "Settings updated",
            'user_message': "✅ Settings updated"
        }

    # ------------------------------------------------------------------
    # Transitions

    def start(self, mode: Union[QuizMode, str]) -> Optional[Dict[str, Any]]:
        """
        Leave mode selection and begin a quiz.

        Args:
            mode: Quiz mode to play

        Returns:
            For review mode, a hand-off to the card viewer (the session stays
            in mode selection and nothing is scored); otherwise None

        Raises:
            InvalidSessionStateError: If the session already started or was closed
            ValueError: If mode is unknown
        """
        mode = QuizMode(mode)
        self._ensure_open()
        if self.phase is not SessionPhase.MODE_SELECTION:
            raise InvalidSessionStateError(f"Cannot start a session that is {self.phase.value}")

        if mode is QuizMode.REVIEW:
            self.logger.info(f"Review requested for set {self.loaded_set.set_id}")
            return {'route': 'set-viewer', 'setId': self.loaded_set.set_id}

        self.mode = mode
        self.phase = SessionPhase.ACTIVE
        self.current_index = 0
        self._answers = []
        self._started_at = self._clock()
        self._question_started_at = self._started_at

        if mode is QuizMode.MULTIPLE_CHOICE:
            self.choices = generate_multiple_choices(self.deck, 0, self.rng)
        elif mode is QuizMode.PAIR:
            questions, answers = generate_pair_puzzle(self.deck, self.rng)
            self.puzzle = PairPuzzle(questions, answers)

        self._timer = TimerController(
            self.settings,
            on_question_expire=self._handle_question_time_up,
            on_test_expire=self._handle_test_time_up,
            on_tick=self._handle_tick,
            tick_interval=self._tick_interval,
        )
        self._timer.start(question_timing=mode in SCORED_QUESTION_MODES)

        self.logger.info(
            f"Started {mode.value} quiz on set {self.loaded_set.set_id} with {len(self.deck)} cards",
            extra={
                'event_type': 'session_started',
                'set_id': self.loaded_set.set_id,
                'mode': mode.value,
                'timer_mode': self._timer.mode.value,
                'card_count': len(self.deck),
            }
        )
        self._emit('question', {'index': 0})
        return None

    def submit_answer(self, answer: Optional[str], timed_out: bool = False) -> Optional[AnswerRecord]:
        """
        Answer the current question and move on.

        Comparison is exact after trimming and lower-casing both sides; a
        blank answer is always wrong.

        Returns:
            The appended answer record, or None if the session had already
            completed

        Raises:
            InvalidSessionStateError: If no question-based quiz is running
        """
        if self.phase is SessionPhase.COMPLETED:
            self.logger.warning(
                "Ignoring answer submitted after completion",
                extra={'event_type': 'session_stale_submit', 'set_id': self.loaded_set.set_id}
            )
            return None
        self._ensure_open()
        if self.phase is not SessionPhase.ACTIVE or self.mode not in SCORED_QUESTION_MODES:
            raise InvalidSessionStateError("No question is waiting for an answer")

        card = self.deck[self.current_index]
        text = answer or ""
        is_correct = bool(text.strip()) and normalize_answer(text) == normalize_answer(card.answer)
        if text:
            user_answer = text
        else:
            user_answer = "No answer (time up)" if timed_out else "No answer"

        now = self._clock()
        record = AnswerRecord(
            question_index=self.current_index,
            question=card.question,
            correct_answer=card.answer,
            user_answer=user_answer,
            is_correct=is_correct,
            response_time=int(round((now - self._question_started_at) * 1000)),
        )
        self._answers.append(record)
        self.logger.debug(
            f"Question {self.current_index + 1}/{len(self.deck)} answered, correct={is_correct}",
            extra={
                'event_type': 'answer_recorded',
                'question_index': self.current_index,
                'is_correct': is_correct,
                'timed_out': timed_out,
            }
        )

        if self.current_index < len(self.deck) - 1:
            self.current_index += 1
            self._question_started_at = now
            if self.mode is QuizMode.MULTIPLE_CHOICE:
                self.choices = generate_multiple_choices(self.deck, self.current_index, self.rng)
            self._timer.next_question()
            self._emit('question', {'index': self.current_index})
        else:
            self._complete("finished")
        return record

    def select_pair_question(self, item_id: int) -> PairSelectionResult:
        """Tap a question tile in pair mode."""
        return self._select_pair(item_id, question=True)

    def select_pair_answer(self, item_id: int) -> PairSelectionResult:
        """Tap an answer tile in pair mode."""
        return self._select_pair(item_id, question=False)

    def _select_pair(self, item_id: int, question: bool) -> PairSelectionResult:
        if self.phase is SessionPhase.COMPLETED:
            return PairSelectionResult.IGNORED
        self._ensure_open()
        if self.phase is not SessionPhase.ACTIVE or self.mode is not QuizMode.PAIR:
            raise InvalidSessionStateError("No pair puzzle is running")

        # The mismatch highlight is cleared by a loop callback, so resolve the
        # loop before the puzzle can flag an error.
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise InvalidSessionStateError("Pair taps must be made from the running event loop") from e

        if question:
            result = self.puzzle.select_question(item_id)
        else:
            result = self.puzzle.select_answer(item_id)

        if result is PairSelectionResult.MISMATCHED:
            self._pair_error_handle = loop.call_later(self._pair_error_delay, self._clear_pair_error)
            self._emit('pair-mismatch', {'pairs': sorted(self.puzzle.incorrect_pairs)})
        elif result is PairSelectionResult.MATCHED:
            self._emit('pair-match', {'confirmed': len(self.puzzle.confirmed_pairs)})
            if self.puzzle.is_complete:
                # Mismatches only drive the highlight; a finished puzzle always scores full marks.
                self.pair_result = PairResult(
                    correct_pairs=self.puzzle.total_pairs,
                    total_pairs=self.puzzle.total_pairs,
                )
                self._complete("finished")
        return result

    def _clear_pair_error(self) -> None:
        self._pair_error_handle = None
        if self._closed or self.phase is not SessionPhase.ACTIVE or self.puzzle is None:
            return
        self.puzzle.clear_incorrect()
        self._emit('pair-error-cleared', {})

    def _handle_tick(self, remaining: int) -> None:
        self._emit('tick', {'remaining': remaining})

    def _handle_question_time_up(self) -> None:
        if self._closed or self.phase is not SessionPhase.ACTIVE:
            self.logger.warning(
                "Question timer expired outside an active session",
                extra={'event_type': 'timer_race_condition', 'phase': self.phase.value}
            )
            return
        self.logger.info(f"Time up on question {self.current_index + 1}")
        self.submit_answer("", timed_out=True)

    def _handle_test_time_up(self) -> None:
        if self._closed or self.phase is not SessionPhase.ACTIVE:
            self.logger.warning(
                "Test timer expired outside an active session",
                extra={'event_type': 'timer_race_condition', 'phase': self.phase.value}
            )
            return
        self.logger.info(
            f"Test timer expired after {len(self._answers)} of {len(self.deck)} answers",
            extra={'event_type': 'session_time_up', 'answered': len(self._answers)}
        )
        self._complete("time-up")

    def _complete(self, reason: str) -> None:
        if self.phase is SessionPhase.COMPLETED:
            self.logger.warning(
                f"Ignoring duplicate completion ({reason})",
                extra={'event_type': 'session_duplicate_completion', 'reason': reason}
            )
            return

        self.phase = SessionPhase.COMPLETED
        self.completed_reason = reason
        self._finished_at = self._clock()
        self._stop_callbacks("session completed")

        self.record = self._build_record()
        previous_best = self.result_store.best_score_percentage(self.loaded_set.set_id)
        self.results_payload = self._build_results_payload(previous_best)

        self.logger.info(
            f"Quiz completed on set {self.loaded_set.set_id}: "
            f"{self.record.correct_answers}/{self.record.total_questions} ({reason})",
            extra={
                'event_type': 'session_completed',
                'set_id': self.loaded_set.set_id,
                'mode': self.mode.value,
                'reason': reason,
                'correct_answers': self.record.correct_answers,
                'total_questions': self.record.total_questions,
            }
        )

        self.record_saved = self.result_store.append(self.record)
        if not self.record_saved:
            self.logger.error(f"Failed to save quiz record {self.record.id}")

        self._emit('completed', self.results_payload)

    def teardown(self) -> None:
        """Tear the session down, cancelling any scheduled callbacks."""
        if self._closed:
            return
        self._closed = True
        self._stop_callbacks("session closed")
        self.logger.info(
            f"Closed session on set {self.loaded_set.set_id} in phase {self.phase.value}",
            extra={'event_type': 'session_closed', 'phase': self.phase.value}
        )

    def _stop_callbacks(self, reason: str) -> None:
        if self._timer is not None:
            self._timer.stop(reason)
        if self._pair_error_handle is not None:
            self._pair_error_handle.cancel()
            self._pair_error_handle = None

    def _ensure_open(self) -> None:
        if self._closed:
            raise InvalidSessionStateError("Session has been closed")

    def _emit(self, name: str, data: Dict[str, Any]) -> None:
        if self._on_event is not None:
            self._on_event(name, data)

    # ------------------------------------------------------------------
    # Scoring and results

    @property
    def answers(self) -> List[AnswerRecord]:
        return list(self._answers)

    @property
    def current_card(self):
        if self.phase is not SessionPhase.ACTIVE:
            return None
        return self.deck[self.current_index]

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def timer_mode(self) -> TimerMode:
        if self._timer is None:
            return self.settings.effective_timer_mode
        return self._timer.mode

    @property
    def time_remaining(self) -> int:
        return self._timer.remaining_time if self._timer else 0

    @property
    def has_pending_callbacks(self) -> bool:
        timer_pending = self._timer is not None and self._timer.has_pending_tick
        return timer_pending or self._pair_error_handle is not None

    def correct_count(self) -> int:
        if self.mode is QuizMode.PAIR:
            return self.pair_result.correct_pairs if self.pair_result else 0
        return sum(1 for answer in self._answers if answer.is_correct)

    def total_count(self) -> int:
        if self.mode is QuizMode.PAIR and self.pair_result:
            return self.pair_result.total_pairs
        return len(self.deck)

    def score_percentage(self) -> int:
        return score_percentage(self.correct_count(), self.total_count())

    def _elapsed_seconds(self) -> int:
        end = self._finished_at if self.phase is SessionPhase.COMPLETED else self._clock()
        return int(round(end - self._started_at))

    def _build_record(self) -> QuizRecord:
        correct = self.correct_count()
        test_elapsed = self._timer.test_elapsed_time if self._timer else None
        now = datetime.now(timezone.utc)
        return QuizRecord(
            id=str(int(now.timestamp() * 1000)),
            set_name=self.loaded_set.name,
            set_id=self.loaded_set.set_id,
            subject=self.loaded_set.subject,
            mode=self.mode.value,
            score=correct,
            correct_answers=correct,
            total_questions=self.total_count(),
            completed_at=now.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            time_taken=test_elapsed if test_elapsed is not None else self._elapsed_seconds(),
            settings=self.settings.snapshot(),
        )

    def build_results_payload(self) -> Dict[str, Any]:
        """
        Payload handed to the results screen.

        Raises:
            InvalidSessionStateError: If the session has not completed
        """
        if self.phase is not SessionPhase.COMPLETED or self.results_payload is None:
            raise InvalidSessionStateError("Results are only available once the quiz is completed")
        return dict(self.results_payload)

    def _build_results_payload(self, previous_best: int) -> Dict[str, Any]:
        percentage = self.score_percentage()
        response_times = [answer.response_time for answer in self._answers]
        average = int(round(sum(response_times) / len(response_times))) if response_times else 0
        payload = {
            'setName': self.loaded_set.name,
            'setId': self.loaded_set.set_id,
            'mode': self.mode.value,
            'score': percentage,
            'correctAnswers': self.correct_count(),
            'totalQuestions': self.total_count(),
            'answers': answer_records_to_dicts(self._answers),
            'totalTime': self._elapsed_seconds(),
            'averageResponseTime': average,
            'previousBestScore': previous_best,
            'completedReason': self.completed_reason,
            'scoreMessage': score_message(percentage),
        }
        if self.pair_result is not None:
            payload['pairResult'] = self.pair_result.to_dict()
        return payload


class QuizController:
    """
    Drives the quiz screen: loading a set, starting and closing sessions.

    Settings in the ConfigManager are locked for as long as a started session
    is in progress.
    """

    def __init__(
        self,
        deck_loader: DeckLoader,
        result_store: ResultStore,
        config_manager: ConfigManager,
        tick_interval: float = 1.0,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the quiz controller.

        Args:
            deck_loader: Fetches sets and deals decks
            result_store: Persists completed attempts
            config_manager: Source of quiz timer settings
            tick_interval: Real seconds per timer second
            rng: Random source for choices and puzzles
        """
        self.logger = logging.getLogger(__name__)
        self.deck_loader = deck_loader
        self.result_store = result_store
        self.config_manager = config_manager
        self.tick_interval = tick_interval
        self.rng = rng
        self.session: Optional[QuizSession] = None
        self._listeners: List[Callable[[str, Dict[str, Any]], Any]] = []
        self.logger.info("QuizController initialized")

    def add_listener(self, listener: Callable[[str, Dict[str, Any]], Any]) -> None:
        """Register a callback for session events."""
        self._listeners.append(listener)

    async def open_quiz(self, set_id: str, set_name: Optional[str] = None) -> Dict[str, Any]:
        """
        Load a set and prepare a session in mode selection.

        Returns:
            Dictionary with success status; on failure a user_message for an
            alert, and no session is created
        """
        self.close_quiz()
        try:
            loaded_set = await self.deck_loader.load_deck(set_id, set_name)
        except DeckLoadError as e:
            self.logger.error(f"Could not open quiz for set {set_id}: {e}")
            return {
                'success': False,
                'error': str(e),
                'user_message': e.user_message
            }

        self.session = QuizSession(
            loaded_set,
            self.result_store,
            settings=self.config_manager.get_quiz_settings(),
            on_event=self._dispatch,
            rng=self.rng,
            tick_interval=self.tick_interval,
        )
        return {
            'success': True,
            'message': f"Loaded {loaded_set.card_count} cards from '{loaded_set.name}'",
            'set_name': loaded_set.name,
            'card_count': loaded_set.card_count,
        }

    def start_quiz(self, mode: Union[QuizMode, str]) -> Dict[str, Any]:
        """
        Start the open session in the given mode with the current settings.

        Returns:
            Dictionary with success status; review mode carries a 'handoff'
        """
        if self.session is None:
            return {
                'success': False,
                'error': "No quiz is open",
                'user_message': "❌ Load a set before starting a quiz"
            }

        try:
            update = self.session.update_settings(self.config_manager.get_quiz_settings())
            if not update['success']:
                return update
            handoff = self.session.start(mode)
        except (InvalidSessionStateError, ValueError) as e:
            self.logger.error(f"Failed to start quiz: {e}")
            return {
                'success': False,
                'error': str(e),
                'user_message': f"❌ Could not start the quiz: {e}"
            }

        if handoff is not None:
            return {'success': True, 'handoff': handoff}

        if self.session.phase is SessionPhase.ACTIVE:
            self.config_manager.lock()
        return {'success': True, 'mode': self.session.mode.value}

    def close_quiz(self) -> None:
        """Leave the quiz screen, stopping timers and unlocking settings."""
        if self.session is not None:
            self.session.teardown()
            self.session = None
        self.config_manager.unlock()

    def get_history(self) -> List[Dict[str, Any]]:
        """Quiz history grouped by set for the history screen."""
        return group_records_by_set(self.result_store.load_all())

    def get_quizzes_taken(self) -> int:
        return self.result_store.count()

    def clear_history(self) -> Dict[str, Any]:
        if self.result_store.clear():
            return {'success': True, 'user_message': "Quiz history cleared successfully"}
        return {'success': False, 'error': "Failed to clear history", 'user_message': "Failed to clear history"}

    def _dispatch(self, name: str, data: Dict[str, Any]) -> None:
        if name == 'completed':
            self.config_manager.unlock()
        for listener in list(self._listeners):
            try:
                listener(name, data)
            except Exception as e:
                self.logger.error(f"Session listener failed on '{name}': {e}", exc_info=True)
