"""
Unit tests for pair puzzle selection rules.
"""
import unittest

from flashquiz.choice_generator import generate_pair_puzzle
from flashquiz.pair_puzzle import PairPuzzle, PairSelectionResult
from flashquiz.models import PairItem
from tests.test_fixtures import TestFixtures


class TestPairPuzzle(unittest.TestCase):
    """Test cases for PairPuzzle."""

    def setUp(self):
        """Set up test fixtures."""
        self.deck = TestFixtures.create_sample_cards()[:3]
        questions, answers = generate_pair_puzzle(self.deck)
        self.puzzle = PairPuzzle(questions, answers)

    def test_select_then_match(self):
        """Test that matching indexes confirm a pair and leave the pools."""
        self.assertEqual(self.puzzle.select_question(0), PairSelectionResult.SELECTED)
        self.assertEqual(self.puzzle.select_answer(0), PairSelectionResult.MATCHED)

        self.assertEqual(self.puzzle.confirmed_pairs, [(0, 0)])
        self.assertNotIn(0, [q.id for q in self.puzzle.remaining_questions])
        self.assertNotIn(0, [a.id for a in self.puzzle.remaining_answers])
        self.assertIsNone(self.puzzle.selected_question)
        self.assertIsNone(self.puzzle.selected_answer)

    def test_answer_first_then_question(self):
        """Test that selection order does not matter."""
        self.assertEqual(self.puzzle.select_answer(2), PairSelectionResult.SELECTED)
        self.assertEqual(self.puzzle.select_question(2), PairSelectionResult.MATCHED)

    def test_tapping_selected_item_deselects(self):
        """Test deselection on a second tap."""
        self.puzzle.select_question(1)
        self.assertEqual(self.puzzle.select_question(1), PairSelectionResult.DESELECTED)
        self.assertIsNone(self.puzzle.selected_question)

        self.puzzle.select_answer(1)
        self.assertEqual(self.puzzle.select_answer(1), PairSelectionResult.DESELECTED)
        self.assertIsNone(self.puzzle.selected_answer)

    def test_switching_selection(self):
        """Test that tapping another question replaces the selection."""
        self.puzzle.select_question(0)
        self.assertEqual(self.puzzle.select_question(1), PairSelectionResult.SELECTED)
        self.assertEqual(self.puzzle.selected_question.id, 1)

    def test_mismatch_flags_until_cleared(self):
        """Test that a mismatch blocks taps until cleared."""
        self.puzzle.select_question(0)
        self.assertEqual(self.puzzle.select_answer(1), PairSelectionResult.MISMATCHED)
        self.assertTrue(self.puzzle.is_showing_error)
        self.assertEqual(self.puzzle.incorrect_pairs, {(0, 1)})

        self.assertEqual(self.puzzle.select_question(2), PairSelectionResult.IGNORED)
        self.assertEqual(self.puzzle.select_answer(0), PairSelectionResult.IGNORED)

        self.puzzle.clear_incorrect()
        self.assertFalse(self.puzzle.is_showing_error)
        self.assertIsNone(self.puzzle.selected_question)
        self.assertIsNone(self.puzzle.selected_answer)
        self.assertEqual(self.puzzle.confirmed_pairs, [])

    def test_matched_items_cannot_be_selected(self):
        """Test that confirmed tiles are ignored."""
        self.puzzle.select_question(0)
        self.puzzle.select_answer(0)
        self.assertEqual(self.puzzle.select_question(0), PairSelectionResult.IGNORED)
        self.assertEqual(self.puzzle.select_answer(99), PairSelectionResult.IGNORED)

    def test_completion(self):
        """Test that matching every pair completes the puzzle."""
        for index in range(3):
            self.puzzle.select_question(index)
            self.puzzle.select_answer(index)

        self.assertTrue(self.puzzle.is_complete)
        self.assertEqual(self.puzzle.remaining_questions, [])
        self.assertEqual(self.puzzle.select_question(0), PairSelectionResult.IGNORED)

    def test_mismatched_column_sizes_rejected(self):
        """Test construction with unequal columns."""
        with self.assertRaises(ValueError):
            PairPuzzle([PairItem(0, "q", 0)], [])


if __name__ == '__main__':
    unittest.main()
