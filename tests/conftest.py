# =============================================================================
# CONFTEST - Fixtures compartilhadas para todos os testes
# =============================================================================
# Relogio controlavel, KV em memoria, quiz de exemplo e avaliador mockado
# =============================================================================

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio


# =============================================================================
# RELOGIO
# =============================================================================


class FakeClock:
    """Relogio manual: ``advance`` move o tempo sem dormir."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    """Relogio fixo em 2025-01-10 06:00 UTC (11:30 em Asia/Kolkata)."""
    return FakeClock(datetime(2025, 1, 10, 6, 0, tzinfo=timezone.utc))


# =============================================================================
# FIXTURES DE DOMINIO
# =============================================================================


@pytest.fixture
def kv():
    from quiz.storage.kv import MemoryKV

    return MemoryKV()


@pytest.fixture
def sample_questions():
    """Tres questoes: objetiva por letra, objetiva por texto e aberta."""
    from quiz.models.schemas import QuestionSpec

    return [
        QuestionSpec(
            id="q1",
            kind="objective",
            prompt="Capital of France?",
            options=["London", "Paris", "Rome"],
            answer="B",
            marks=2,
        ),
        QuestionSpec(
            id="q2",
            kind="mcq",
            prompt="2 + 2 = ?",
            options=["3", "4", "5"],
            answer="4",
            explanation="Basic arithmetic.",
            marks=1,
        ),
        QuestionSpec(
            id="q3",
            kind="free-text",
            prompt="What does HTTP stand for?",
            answer="HyperText Transfer Protocol",
            marks=3,
        ),
    ]


@pytest.fixture
def sample_quiz(sample_questions):
    """Quiz nao agendado, 10 minutos, compartilhado com ana@uni.edu."""
    from quiz.models.schemas import Quiz

    return Quiz(
        id="quiz-1",
        title="Networking Basics",
        owner_id="teacher-1",
        questions=sample_questions,
        duration=10,
        shared_with=["Ana@Uni.edu", "bruno@uni.edu"],
    )


@pytest.fixture
def student():
    from quiz.models.schemas import StudentIdentity

    return StudentIdentity(name="Ana", email="ana@uni.edu", usn="1ab21cs001")


@pytest.fixture
def mock_grader():
    """Avaliador semantico que aceita qualquer resposta com nota cheia."""
    from quiz.models.schemas import FreeTextGrade

    grader = AsyncMock()

    async def _grade(prompt, canonical_answer, student_answer, max_marks):
        return FreeTextGrade(is_correct=True, marks=max_marks, feedback="Good answer.")

    grader.grade_free_text = AsyncMock(side_effect=_grade)
    return grader


@pytest.fixture
def failing_grader():
    """Avaliador semantico indisponivel."""
    from quiz.errors import DependencyDegraded

    grader = AsyncMock()
    grader.grade_free_text = AsyncMock(side_effect=DependencyDegraded("grader down"))
    return grader


@pytest.fixture
def quiz_store(kv):
    from quiz.storage.quiz_store import QuizStore

    return QuizStore(kv)


@pytest.fixture
def attempt_store(kv):
    from quiz.storage.attempt_store import AttemptStore

    return AttemptStore(kv)


@pytest.fixture
def machine(quiz_store, attempt_store, mock_grader, clock):
    """AttemptStateMachine com relogio controlavel e avaliador mockado."""
    from quiz.engine.attempt_engine import AttemptStateMachine
    from quiz.engine.grading_engine import QuizGradingEngine
    from quiz.engine.window import AccessibilityWindow

    return AttemptStateMachine(
        quiz_store,
        attempt_store,
        QuizGradingEngine(grader=mock_grader, timeout=1.0),
        AccessibilityWindow("Asia/Kolkata"),
        clock=clock,
    )


@pytest_asyncio.fixture
async def seeded_machine(machine, quiz_store, sample_quiz):
    """Machine com ``sample_quiz`` ja persistido."""
    await quiz_store.save_quiz(sample_quiz)
    return machine


@pytest.fixture
def make_answers():
    """Atalho: make_answers(q1="B", q2="4") -> [AnswerSubmission, ...]."""
    from quiz.models.schemas import AnswerSubmission

    def _make(**by_question):
        return [AnswerSubmission(question_id=qid, answer=value) for qid, value in by_question.items()]

    return _make
