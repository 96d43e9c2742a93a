"""
Builds per-question material for the multiple-choice and pair quiz modes.
"""
import random
from typing import List, Optional, Sequence, Tuple

from .models import Card, PairItem


CHOICE_COUNT = 4
PLACEHOLDER_OPTIONS = ("Option A", "Option B", "Option C", "Option D")


def normalize_answer(text: Optional[str]) -> str:
    """Canonical form used for answer comparison: trimmed and lower-cased."""
    return (text or "").strip().lower()


def generate_multiple_choices(
    deck: Sequence[Card],
    current_index: int,
    rng: Optional[random.Random] = None,
) -> List[str]:
    """
    Build the four options for the card at current_index.

    Distractors are other cards' answers picked at random without
    replacement. Answers equal to one already chosen are skipped, and
    placeholder options fill any remaining slots.

    Args:
        deck: Cards of the current session
        current_index: Index of the card being asked
        rng: Random source, defaults to the module RNG

    Returns:
        Exactly CHOICE_COUNT options in random order, one of which is the
        correct answer

    Raises:
        IndexError: If current_index is outside the deck
    """
    rng = rng or random
    correct_answer = deck[current_index].answer
    choices = [correct_answer]
    seen = {normalize_answer(correct_answer)}

    others = [card for index, card in enumerate(deck) if index != current_index]
    for card in rng.sample(others, len(others)):
        if len(choices) == CHOICE_COUNT:
            break
        key = normalize_answer(card.answer)
        if key in seen:
            continue
        choices.append(card.answer)
        seen.add(key)

    for placeholder in PLACEHOLDER_OPTIONS:
        if len(choices) == CHOICE_COUNT:
            break
        if normalize_answer(placeholder) not in seen:
            choices.append(placeholder)
            seen.add(normalize_answer(placeholder))

    rng.shuffle(choices)
    return choices


def generate_pair_puzzle(
    deck: Sequence[Card],
    rng: Optional[random.Random] = None,
) -> Tuple[List[PairItem], List[PairItem]]:
    """
    Build the question and answer columns of a pair puzzle.

    Both columns are shuffled independently. Every item carries the deck
    index of its card, so a question and an answer match exactly when their
    original indexes are equal.

    Returns:
        (questions, answers)
    """
    rng = rng or random
    questions = [
        PairItem(id=index, text=card.question, original_index=index)
        for index, card in enumerate(deck)
    ]
    answers = [
        PairItem(id=index, text=card.answer, original_index=index)
        for index, card in enumerate(deck)
    ]
    rng.shuffle(questions)
    rng.shuffle(answers)
    return questions, answers
