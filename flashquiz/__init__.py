"""
FlashQuiz: the quiz session engine of the FlashLearn flashcard app.
"""

__version__ = "1.0.0"
