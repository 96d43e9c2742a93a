"""
Unit tests for multiple-choice options and pair puzzle generation.
"""
import random
import unittest

from flashquiz.choice_generator import (
    CHOICE_COUNT, PLACEHOLDER_OPTIONS, generate_multiple_choices,
    generate_pair_puzzle, normalize_answer,
)
from flashquiz.models import Card
from tests.test_fixtures import TestFixtures


class TestNormalizeAnswer(unittest.TestCase):
    """Test cases for answer normalization."""

    def test_trims_and_lowercases(self):
        """Test that whitespace and case are ignored."""
        self.assertEqual(normalize_answer("  Paris "), "paris")
        self.assertEqual(normalize_answer("PARIS"), normalize_answer("paris"))

    def test_none_is_empty(self):
        """Test that a missing answer normalizes to an empty string."""
        self.assertEqual(normalize_answer(None), "")


class TestGenerateMultipleChoices(unittest.TestCase):
    """Test cases for multiple-choice option generation."""

    def setUp(self):
        """Set up test fixtures."""
        self.deck = TestFixtures.create_sample_cards()
        self.rng = random.Random(1234)

    def test_four_options_with_correct_answer(self):
        """Test every question gets four distinct options including the answer."""
        for index, card in enumerate(self.deck):
            with self.subTest(index=index):
                choices = generate_multiple_choices(self.deck, index, self.rng)
                self.assertEqual(len(choices), CHOICE_COUNT)
                self.assertIn(card.answer, choices)
                self.assertEqual(len(set(choices)), CHOICE_COUNT)
                for placeholder in PLACEHOLDER_OPTIONS:
                    self.assertNotIn(placeholder, choices)

    def test_small_deck_padded_with_placeholders(self):
        """Test that a two-card deck is padded to four options."""
        deck = [Card("1", "2+2?", "4"), Card("2", "3+3?", "6")]
        choices = generate_multiple_choices(deck, 0, self.rng)

        self.assertEqual(len(choices), CHOICE_COUNT)
        self.assertIn("4", choices)
        self.assertIn("6", choices)
        self.assertEqual(sum(1 for c in choices if c in PLACEHOLDER_OPTIONS), 2)

    def test_single_card_deck(self):
        """Test that a one-card deck gets three placeholders."""
        deck = [Card("1", "Capital of Italy?", "Rome")]
        choices = generate_multiple_choices(deck, 0, self.rng)
        self.assertEqual(len(choices), CHOICE_COUNT)
        self.assertIn("Rome", choices)

    def test_duplicate_answers_not_repeated(self):
        """Test that answers equal to the correct one are not used as distractors."""
        deck = [
            Card("1", "Q1", "Yes"),
            Card("2", "Q2", "yes "),
            Card("3", "Q3", "No"),
        ]
        choices = generate_multiple_choices(deck, 0, self.rng)

        normalized = [normalize_answer(c) for c in choices]
        self.assertEqual(len(choices), CHOICE_COUNT)
        self.assertEqual(normalized.count("yes"), 1)
        self.assertIn("No", choices)

    def test_placeholder_answer_not_duplicated(self):
        """Test a correct answer that equals a placeholder appears once."""
        deck = [Card("1", "First letter?", "Option A")]
        choices = generate_multiple_choices(deck, 0, self.rng)
        self.assertEqual(sorted(choices), sorted(PLACEHOLDER_OPTIONS))

    def test_index_out_of_range(self):
        """Test that an invalid index raises IndexError."""
        with self.assertRaises(IndexError):
            generate_multiple_choices(self.deck, len(self.deck), self.rng)

    def test_deck_not_mutated(self):
        """Test that option generation leaves the deck untouched."""
        before = list(self.deck)
        generate_multiple_choices(self.deck, 2, self.rng)
        self.assertEqual(self.deck, before)


class TestGeneratePairPuzzle(unittest.TestCase):
    """Test cases for pair puzzle generation."""

    def test_columns_cover_every_card(self):
        """Test that each card appears once in each column with its index."""
        deck = TestFixtures.create_sample_cards()
        questions, answers = generate_pair_puzzle(deck, random.Random(5))

        self.assertEqual(len(questions), len(deck))
        self.assertEqual(len(answers), len(deck))
        self.assertEqual(sorted(q.original_index for q in questions), list(range(len(deck))))
        for item in questions:
            self.assertEqual(item.text, deck[item.original_index].question)
        for item in answers:
            self.assertEqual(item.text, deck[item.original_index].answer)


if __name__ == '__main__':
    unittest.main()
