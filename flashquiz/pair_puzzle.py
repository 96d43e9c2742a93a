"""
State of a pair-matching puzzle.
"""
import logging
from enum import Enum
from typing import List, Optional, Set, Tuple

from .models import PairItem


logger = logging.getLogger(__name__)


class PairSelectionResult(Enum):
    """Outcome of tapping a tile."""
    SELECTED = "selected"
    DESELECTED = "deselected"
    MATCHED = "matched"
    MISMATCHED = "mismatched"
    IGNORED = "ignored"


class PairPuzzle:
    """
    Tracks selections and confirmed pairs for one puzzle.

    A question and an answer are a match when they come from the same card.
    Matched tiles leave the remaining pools; a mismatch is flagged until
    clear_incorrect() is called, and taps are ignored while it is flagged.
    """

    def __init__(self, questions: List[PairItem], answers: List[PairItem]):
        if len(questions) != len(answers):
            raise ValueError("Pair puzzle needs the same number of questions and answers")
        self.total_pairs = len(questions)
        self.remaining_questions: List[PairItem] = list(questions)
        self.remaining_answers: List[PairItem] = list(answers)
        self.confirmed_pairs: List[Tuple[int, int]] = []
        self.incorrect_pairs: Set[Tuple[int, int]] = set()
        self.selected_question: Optional[PairItem] = None
        self.selected_answer: Optional[PairItem] = None

    @property
    def is_complete(self) -> bool:
        return len(self.confirmed_pairs) == self.total_pairs

    @property
    def is_showing_error(self) -> bool:
        return bool(self.incorrect_pairs)

    def select_question(self, item_id: int) -> PairSelectionResult:
        """Tap a tile in the question column."""
        if self.is_showing_error or self.is_complete:
            return PairSelectionResult.IGNORED

        item = self._find(self.remaining_questions, item_id)
        if item is None:
            return PairSelectionResult.IGNORED

        if self.selected_question is not None and self.selected_question.id == item.id:
            self.selected_question = None
            return PairSelectionResult.DESELECTED

        self.selected_question = item
        if self.selected_answer is not None:
            return self._check_match()
        return PairSelectionResult.SELECTED

    def select_answer(self, item_id: int) -> PairSelectionResult:
        """Tap a tile in the answer column."""
        if self.is_showing_error or self.is_complete:
            return PairSelectionResult.IGNORED

        item = self._find(self.remaining_answers, item_id)
        if item is None:
            return PairSelectionResult.IGNORED

        if self.selected_answer is not None and self.selected_answer.id == item.id:
            self.selected_answer = None
            return PairSelectionResult.DESELECTED

        self.selected_answer = item
        if self.selected_question is not None:
            return self._check_match()
        return PairSelectionResult.SELECTED

    def clear_incorrect(self) -> None:
        """End the error highlight and drop both selections."""
        self.incorrect_pairs.clear()
        self.selected_question = None
        self.selected_answer = None

    def _check_match(self) -> PairSelectionResult:
        question = self.selected_question
        answer = self.selected_answer

        if question.original_index == answer.original_index:
            self.confirmed_pairs.append((question.id, answer.id))
            self.remaining_questions = [q for q in self.remaining_questions if q.id != question.id]
            self.remaining_answers = [a for a in self.remaining_answers if a.id != answer.id]
            self.selected_question = None
            self.selected_answer = None
            logger.debug(f"Pair matched: question {question.id} -> answer {answer.id}")
            return PairSelectionResult.MATCHED

        self.incorrect_pairs.add((question.id, answer.id))
        logger.debug(f"Pair mismatched: question {question.id} -> answer {answer.id}")
        return PairSelectionResult.MISMATCHED

    @staticmethod
    def _find(items: List[PairItem], item_id: int) -> Optional[PairItem]:
        for item in items:
            if item.id == item_id:
                return item
        return None
