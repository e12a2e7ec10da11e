"""Quiz Engines - Logica de negocios."""

from .attempt_engine import AttemptStateMachine, BeginOutcome, SubmitOutcome
from .grading_engine import QuizGradingEngine
from .matcher import AnswerMatcher
from .window import AccessibilityWindow

__all__ = [
    "AccessibilityWindow",
    "AnswerMatcher",
    "QuizGradingEngine",
    "AttemptStateMachine",
    "BeginOutcome",
    "SubmitOutcome",
]
