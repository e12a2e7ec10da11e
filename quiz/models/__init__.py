"""Quiz Models - Enums, Schemas e estado da tentativa."""

from .enums import (
    FINALIZED_STATUSES,
    LIVE_STATUSES,
    TERMINAL_STATUSES,
    AttemptStatus,
    QuestionKind,
    QuizDifficulty,
)
from .schemas import (
    AccessibilityResult,
    AnswerRecord,
    AnswerSubmission,
    AttemptSummary,
    BeginAttemptResponse,
    FreeTextGrade,
    GradingResult,
    PublicQuestion,
    PublicQuiz,
    QuestionSpec,
    Quiz,
    SaveProgressRequest,
    SaveProgressResponse,
    Schedule,
    StartQuizRequest,
    StudentIdentity,
    StudentQuizSummary,
    StudentQuizzesResponse,
    SubmitQuizRequest,
    SubmitQuizResponse,
    SubmitResults,
    TokenPreviewResponse,
    TokenStartRequest,
)
from .state import Attempt, elapsed_seconds

__all__ = [
    # Enums
    "AttemptStatus",
    "QuestionKind",
    "QuizDifficulty",
    "LIVE_STATUSES",
    "TERMINAL_STATUSES",
    "FINALIZED_STATUSES",
    # Dominio
    "QuestionSpec",
    "Schedule",
    "Quiz",
    "StudentIdentity",
    "AnswerSubmission",
    "AnswerRecord",
    "FreeTextGrade",
    "GradingResult",
    "AccessibilityResult",
    # Request/Response
    "PublicQuestion",
    "PublicQuiz",
    "AttemptSummary",
    "StartQuizRequest",
    "BeginAttemptResponse",
    "SaveProgressRequest",
    "SaveProgressResponse",
    "SubmitQuizRequest",
    "SubmitQuizResponse",
    "SubmitResults",
    "TokenStartRequest",
    "TokenPreviewResponse",
    "StudentQuizSummary",
    "StudentQuizzesResponse",
    # State
    "Attempt",
    "elapsed_seconds",
]
