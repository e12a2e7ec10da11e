"""Quiz Storage - Persistencia de quizzes e tentativas."""

from .attempt_store import AttemptStore
from .kv import MemoryKV
from .quiz_store import QuizStore

__all__ = ["AttemptStore", "MemoryKV", "QuizStore"]
