"""
Core data models for the FlashQuiz session engine.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class QuizMode(Enum):
    """Quiz modes offered on the mode selection screen."""
    MULTIPLE_CHOICE = "multiple-choice"
    TYPE_ANSWER = "type-answer"
    PAIR = "pair"
    REVIEW = "review"


class SessionPhase(Enum):
    """Lifecycle phases of a quiz session."""
    MODE_SELECTION = "mode-selection"
    ACTIVE = "active"
    COMPLETED = "completed"


class TimerMode(Enum):
    """Effective timer state for a session."""
    DISABLED = "disabled"
    PER_QUESTION = "per-question"
    WHOLE_TEST = "whole-test"


@dataclass(frozen=True)
class Card:
    """A single flashcard belonging to a set."""
    id: str
    question: str
    answer: str

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Card":
        """Build a card from the backend's card JSON."""
        return cls(
            id=str(data.get("card_id", data.get("id", ""))),
            question=data["card_question"],
            answer=data["card_answer"],
        )


Deck = Tuple[Card, ...]


@dataclass(frozen=True)
class AnswerRecord:
    """Outcome of one answered question."""
    question_index: int
    question: str
    correct_answer: str
    user_answer: str
    is_correct: bool
    response_time: int  # milliseconds

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionIndex": self.question_index,
            "question": self.question,
            "correctAnswer": self.correct_answer,
            "userAnswer": self.user_answer,
            "isCorrect": self.is_correct,
            "responseTime": self.response_time,
        }


@dataclass(frozen=True)
class PairItem:
    """One tappable tile in the pair puzzle."""
    id: int
    text: str
    original_index: int


@dataclass(frozen=True)
class PairResult:
    """Aggregate outcome recorded once a pair puzzle is complete."""
    correct_pairs: int
    total_pairs: int
    is_correct: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "correctPairs": self.correct_pairs,
            "totalPairs": self.total_pairs,
            "isCorrect": self.is_correct,
        }


@dataclass
class QuizSettings:
    """Timer and sound settings chosen before a quiz starts."""
    timer_mode: str = "question"  # 'question' or 'test'
    question_timer: int = 0  # seconds, 0 = disabled
    test_timer: int = 0  # minutes, 0 = disabled
    music_enabled: bool = False

    @property
    def effective_timer_mode(self) -> TimerMode:
        if self.timer_mode == "question" and self.question_timer > 0:
            return TimerMode.PER_QUESTION
        if self.timer_mode == "test" and self.test_timer > 0:
            return TimerMode.WHOLE_TEST
        return TimerMode.DISABLED

    def snapshot(self) -> Dict[str, Any]:
        """Settings as stored alongside a quiz record."""
        return {
            "questionTimer": self.question_timer,
            "testTimer": self.test_timer,
            "musicEnabled": self.music_enabled,
        }


@dataclass(frozen=True)
class QuizRecord:
    """A completed quiz attempt as persisted in the user's history."""
    id: str
    set_name: str
    set_id: str
    subject: str
    mode: str
    score: int
    correct_answers: int
    total_questions: int
    completed_at: str
    time_taken: Optional[int]
    settings: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "setName": self.set_name,
            "setId": self.set_id,
            "subject": self.subject,
            "mode": self.mode,
            "score": self.score,
            "correctAnswers": self.correct_answers,
            "totalQuestions": self.total_questions,
            "completedAt": self.completed_at,
            "timeTaken": self.time_taken,
            "settings": dict(self.settings),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuizRecord":
        return cls(
            id=str(data.get("id", "")),
            set_name=data.get("setName") or "Unknown Set",
            set_id=str(data.get("setId") or data.get("set_id") or "unknown"),
            subject=data.get("subject") or "General",
            mode=data.get("mode", ""),
            score=int(data.get("score", 0)),
            correct_answers=int(data.get("correctAnswers", 0)),
            total_questions=int(data.get("totalQuestions", 0)),
            completed_at=data.get("completedAt", ""),
            time_taken=data.get("timeTaken"),
            settings=data.get("settings") or {},
        )


@dataclass(frozen=True)
class LoadedSet:
    """A flashcard set fetched for a quiz, with its shuffled deck."""
    set_id: str
    name: str
    subject: str
    deck: Deck

    @property
    def card_count(self) -> int:
        return len(self.deck)


def answer_records_to_dicts(records: List[AnswerRecord]) -> List[Dict[str, Any]]:
    return [record.to_dict() for record in records]
