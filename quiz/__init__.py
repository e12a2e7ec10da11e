"""Quiz Module - Motor de tentativas de quiz com correcao automatica.

Arquitetura:
- models/: Enums, Schemas Pydantic, Attempt
- engine/: AccessibilityWindow, AnswerMatcher, QuizGradingEngine, AttemptStateMachine
- llm/: SemanticGrader (correcao de respostas discursivas)
- storage/: QuizStore, AttemptStore (KV)
- identity.py: Tokens de convite e de retomada
- router.py: FastAPI endpoints
"""

from .config import QuizConfig
from .engine import AccessibilityWindow, AnswerMatcher, AttemptStateMachine, QuizGradingEngine
from .errors import (
    AccessDeniedError,
    ConflictError,
    DependencyDegraded,
    NotFoundError,
    QuizEngineError,
    ValidationError,
)
from .llm import HttpSemanticGrader, SemanticGrader
from .models import AttemptStatus, QuestionKind, QuestionSpec, Quiz, Schedule, StudentIdentity
from .storage import AttemptStore, MemoryKV, QuizStore

__all__ = [
    # Config
    "QuizConfig",
    # Models
    "AttemptStatus",
    "QuestionKind",
    "QuestionSpec",
    "Quiz",
    "Schedule",
    "StudentIdentity",
    # Engines
    "AccessibilityWindow",
    "AnswerMatcher",
    "QuizGradingEngine",
    "AttemptStateMachine",
    # LLM
    "SemanticGrader",
    "HttpSemanticGrader",
    # Storage
    "MemoryKV",
    "QuizStore",
    "AttemptStore",
    # Errors
    "QuizEngineError",
    "ValidationError",
    "NotFoundError",
    "AccessDeniedError",
    "ConflictError",
    "DependencyDegraded",
]
