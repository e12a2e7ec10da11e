"""Attempt Engine - Maquina de estados das tentativas de quiz.

Fluxo:
    started -> in-progress -> {submitted | graded | expired | blocked}

``started`` e ``in-progress`` sao estados vivos; os demais sao terminais.
A expiracao e avaliada de forma preguicosa na proxima leitura, sem
varredura em background.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone

from pydantic import ValidationError as PydanticValidationError

from ..errors import AccessDeniedError, ConflictError, NotFoundError, ValidationError
from ..identity import InviteTokenCodec, new_resumption_token
from ..models.enums import FINALIZED_STATUSES, LIVE_STATUSES, AttemptStatus
from ..models.schemas import (
    AccessibilityResult,
    AnswerSubmission,
    GradingResult,
    Quiz,
    StudentIdentity,
)
from ..models.state import Attempt, elapsed_seconds
from ..storage.attempt_store import AttemptStore
from ..storage.quiz_store import QuizStore
from .grading_engine import QuizGradingEngine
from .window import AccessibilityWindow

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BeginOutcome:
    """Resultado de begin/resume."""

    attempt: Attempt
    quiz: Quiz
    resumed: bool
    time_remaining: int
    accessibility: AccessibilityResult


@dataclass
class SubmitOutcome:
    """Resultado de um envio finalizado."""

    attempt: Attempt
    grading: GradingResult

    @property
    def blocked(self) -> bool:
        return self.attempt.status is AttemptStatus.BLOCKED


@dataclass
class InvitePreview:
    """Resultado da leitura de um link de convite."""

    quiz: Quiz
    email: str | None = None
    outcome: BeginOutcome | None = None

    @property
    def has_started(self) -> bool:
        return self.outcome is not None


@dataclass
class StudentQuizStatus:
    """Linha do painel do aluno: quiz, janela e ultima tentativa."""

    quiz: Quiz
    accessibility: AccessibilityResult
    latest_attempt: Attempt | None


class AttemptStateMachine:
    """Dono do ciclo de vida das tentativas.

    Ambos os fluxos de identidade (sessao autenticada e link de convite)
    convergem para ``begin`` e ``submit``, e toda correcao passa pelo mesmo
    QuizGradingEngine.

    Example:
        >>> machine = AttemptStateMachine(quiz_store, attempt_store, grading, window)
        >>> outcome = await machine.begin(quiz_id, student)
        >>> await machine.save_progress(outcome.attempt.id, answers)
        >>> result = await machine.submit(outcome.attempt.id, answers)
    """

    def __init__(
        self,
        quiz_store: QuizStore,
        attempt_store: AttemptStore,
        grading: QuizGradingEngine,
        window: AccessibilityWindow,
        clock: Callable[[], datetime] = _utcnow,
        token_factory: Callable[[], str] = new_resumption_token,
        default_duration: int = 30,
    ):
        self.quizzes = quiz_store
        self.attempts = attempt_store
        self.grading = grading
        self.window = window
        self.clock = clock
        self.token_factory = token_factory
        self.default_duration = default_duration

    def now(self) -> datetime:
        return self.clock()

    def is_expired(self, attempt: Attempt) -> bool:
        """Verdadeiro apenas para tentativa viva com o tempo esgotado."""
        return attempt.is_expired(self.now())

    # -------------------------------------------------------------------------
    # Consultas auxiliares
    # -------------------------------------------------------------------------

    async def load_quiz(self, quiz_id: str) -> Quiz:
        if not quiz_id:
            raise ValidationError("Quiz ID is required")
        quiz = await self.quizzes.find_quiz_by_id(quiz_id)
        if quiz is None:
            raise NotFoundError("Quiz not found")
        return quiz

    def check_accessible(self, quiz: Quiz) -> AccessibilityResult:
        """Consulta a janela de acesso; levanta AccessDeniedError se fechada."""
        access = self.window.evaluate(quiz.schedule, self.now())
        if not access.accessible:
            logger.info(f"[Quiz {quiz.id}] Acesso negado: {access.reason}")
            raise AccessDeniedError(
                access.reason,
                is_scheduled=quiz.schedule.is_scheduled,
                starts_at=access.starts_at,
                ended_at=access.ended_at,
            )
        return access

    def _outcome(self, attempt: Attempt, quiz: Quiz, resumed: bool, access: AccessibilityResult) -> BeginOutcome:
        return BeginOutcome(
            attempt=attempt,
            quiz=quiz,
            resumed=resumed,
            time_remaining=attempt.time_remaining(self.now()),
            accessibility=access,
        )

    @staticmethod
    def _terminal_error(attempt: Attempt) -> ConflictError:
        if attempt.status is AttemptStatus.EXPIRED:
            message = "Quiz attempt has expired"
        elif attempt.status is AttemptStatus.BLOCKED:
            message = "Quiz attempt was blocked"
        else:
            message = "Quiz already submitted"
        return ConflictError(message, status=attempt.status.value, attempt_id=attempt.id)

    async def _expire(self, attempt: Attempt) -> Attempt:
        now = self.now()
        attempt.status = AttemptStatus.EXPIRED
        attempt.submitted_at = now
        attempt.time_spent = elapsed_seconds(attempt.started_at, now)
        await self.attempts.save_attempt(attempt, LIVE_STATUSES)
        logger.info(f"Tentativa {attempt.id} expirada apos {attempt.time_spent}s")
        return attempt

    async def _load_live(self, attempt_id: str, student_email: str | None) -> Attempt:
        """Carrega tentativa viva, detectando expiracao preguicosamente."""
        if not attempt_id:
            raise ValidationError("Attempt ID is required")

        attempt = await self.attempts.find_by_id(attempt_id)
        if attempt is None or (student_email and attempt.student.email != student_email.strip().lower()):
            raise NotFoundError("Attempt not found or already submitted")

        if attempt.is_terminal:
            raise self._terminal_error(attempt)

        if self.is_expired(attempt):
            await self._expire(attempt)
            raise self._terminal_error(attempt)

        return attempt

    # -------------------------------------------------------------------------
    # Operacoes
    # -------------------------------------------------------------------------

    async def begin(self, quiz: Quiz | str, student: StudentIdentity) -> BeginOutcome:
        """Inicia ou retoma a tentativa do aluno.

        - Quiz fora da janela -> AccessDeniedError
        - Tentativa finalizada (submitted/graded/blocked) -> ConflictError
        - Tentativa viva expirada -> marcada expired, nova tentativa criada
        - Tentativa viva dentro do prazo -> retornada sem alteracao

        Args:
            quiz: Quiz ou ID do quiz
            student: Identidade do aluno (deve estar no roster)
        """
        if isinstance(quiz, str):
            quiz = await self.load_quiz(quiz)

        email = student.email
        if not quiz.is_shared_with(email):
            raise NotFoundError("Quiz not found or not shared with you")

        access = self.check_accessible(quiz)

        finalized = await self.attempts.find_for_student(quiz.id, email, FINALIZED_STATUSES)
        if finalized is not None:
            raise ConflictError(
                "You have already submitted this quiz",
                status=finalized.status.value,
                attempt_id=finalized.id,
            )

        live = await self.attempts.find_for_student(quiz.id, email, LIVE_STATUSES)
        if live is not None:
            if self.is_expired(live):
                try:
                    await self._expire(live)
                except ConflictError:
                    # Outra requisicao finalizou a tentativa antes; reavaliar
                    return await self.begin(quiz, student)
            else:
                logger.info(f"[Quiz {quiz.id}] Retomando tentativa {live.id} de {email}")
                return self._outcome(live, quiz, True, access)

        attempt = Attempt(
            quiz_id=quiz.id,
            owner_id=quiz.owner_id,
            student=student,
            token=self.token_factory(),
            max_marks=quiz.total_marks,
            duration=quiz.effective_duration(self.default_duration),
            status=AttemptStatus.STARTED,
            started_at=self.now(),
        )

        try:
            attempt = await self.attempts.create_attempt(attempt)
        except ConflictError:
            # Requisicao concorrente criou a tentativa primeiro: retomar a dela
            winner = await self.attempts.find_for_student(quiz.id, email, LIVE_STATUSES)
            if winner is None:
                raise
            return self._outcome(winner, quiz, True, access)

        logger.info(f"[Quiz {quiz.id}] Tentativa {attempt.id} iniciada por {email}")
        return self._outcome(attempt, quiz, False, access)

    async def resume_by_token(self, token: str) -> BeginOutcome:
        """Retoma tentativa anonima pelo token de retomada."""
        if not token:
            raise ValidationError("Token is required")

        attempt = await self.attempts.find_by_token(token)
        if attempt is None:
            raise NotFoundError("Quiz attempt not found")
        if attempt.is_terminal:
            raise self._terminal_error(attempt)

        quiz = await self.load_quiz(attempt.quiz_id)
        access = self.check_accessible(quiz)

        if self.is_expired(attempt):
            await self._expire(attempt)
            raise self._terminal_error(attempt)

        return self._outcome(attempt, quiz, True, access)

    async def preview_invite(self, token: str) -> InvitePreview:
        """Le um link: retoma se for token de tentativa, senao decodifica o convite."""
        if await self.attempts.find_by_token(token) is not None:
            outcome = await self.resume_by_token(token)
            return InvitePreview(quiz=outcome.quiz, email=outcome.attempt.student.email, outcome=outcome)

        email, quiz_id = InviteTokenCodec.decode(token)
        quiz = await self.load_quiz(quiz_id)
        if not quiz.is_shared_with(email):
            raise NotFoundError("Quiz not found or not shared with you")
        access = self.check_accessible(quiz)

        # Link reaberto depois do inicio: retoma a tentativa viva do aluno
        live = await self.attempts.find_for_student(quiz.id, email, LIVE_STATUSES)
        if live is not None and not self.is_expired(live):
            return InvitePreview(quiz=quiz, email=email, outcome=self._outcome(live, quiz, True, access))
        return InvitePreview(quiz=quiz, email=email)

    async def begin_with_invite(self, token: str, **details: str) -> BeginOutcome:
        """Inicia via link de convite; o email vem do token, nao do formulario.

        Args:
            token: Token de convite base64("email||quiz_id")
            **details: name, usn, branch, year, semester informados pelo aluno
        """
        email, quiz_id = InviteTokenCodec.decode(token)
        try:
            student = StudentIdentity(email=email, **details)
        except PydanticValidationError as e:
            logger.info(f"Dados do aluno invalidos no convite: {e.error_count()} erro(s)")
            raise ValidationError("All fields are required") from e
        return await self.begin(quiz_id, student)

    async def save_progress(
        self,
        attempt_id: str,
        answers: Iterable[AnswerSubmission],
        student_email: str | None = None,
    ) -> Attempt:
        """Sobrescreve as respostas salvas (last-write-wins) e atualiza o tempo gasto."""
        attempt = await self._load_live(attempt_id, student_email)

        attempt.answers = list(answers)
        attempt.time_spent = elapsed_seconds(attempt.started_at, self.now())
        attempt.status = AttemptStatus.IN_PROGRESS

        return await self.attempts.save_attempt(attempt, LIVE_STATUSES)

    async def submit(
        self,
        attempt_id: str,
        answers: Iterable[AnswerSubmission],
        violation_reason: str | None = None,
        is_auto_submit: bool = False,
        student_email: str | None = None,
    ) -> SubmitOutcome:
        """Corrige e finaliza a tentativa.

        Com ``violation_reason`` o estado final e ``blocked`` (a nota ainda
        e calculada); sem ele, ``graded``. Tentativa terminal ou expirada
        e rejeitada sem mutacao da correcao.
        """
        attempt = await self._load_live(attempt_id, student_email)
        quiz = await self.load_quiz(attempt.quiz_id)

        answers = list(answers)
        grading = await self.grading.grade_attempt(quiz.questions, answers)

        now = self.now()
        reason = (violation_reason or "").strip() or None

        attempt.answers = list(grading.results)
        attempt.total_marks = grading.total_marks
        attempt.percentage = grading.percentage
        attempt.status = AttemptStatus.BLOCKED if reason else AttemptStatus.GRADED
        attempt.violation_reason = reason
        attempt.is_auto_submit = is_auto_submit
        attempt.submitted_at = now
        attempt.graded_at = now
        attempt.time_spent = elapsed_seconds(attempt.started_at, now)

        await self.attempts.save_attempt(attempt, LIVE_STATUSES)

        if reason:
            logger.info(f"Tentativa {attempt.id} bloqueada: {reason}")
        else:
            logger.info(
                f"Tentativa {attempt.id} corrigida: {grading.total_marks}/{grading.max_marks} "
                f"({grading.display_percentage}%)"
            )
        return SubmitOutcome(attempt=attempt, grading=grading)

    # -------------------------------------------------------------------------
    # Resultados e painel
    # -------------------------------------------------------------------------

    async def get_results(self, quiz_id: str, student_email: str) -> Attempt:
        """Ultima tentativa finalizada do aluno no quiz."""
        attempt = await self.attempts.find_for_student(quiz_id, student_email, FINALIZED_STATUSES)
        if attempt is None:
            raise NotFoundError("No submitted attempt found")
        return attempt

    async def list_student_quizzes(self, student_email: str) -> list[StudentQuizStatus]:
        """Quizzes compartilhados com o aluno, com janela e ultima tentativa."""
        now = self.now()
        rows = []
        for quiz in await self.quizzes.find_quizzes_shared_with(student_email):
            latest = await self.attempts.find_for_student(quiz.id, student_email)
            if latest is not None and latest.is_expired(now):
                try:
                    latest = await self._expire(latest)
                except ConflictError:
                    latest = await self.attempts.find_by_id(latest.id)
            rows.append(
                StudentQuizStatus(
                    quiz=quiz,
                    accessibility=self.window.evaluate(quiz.schedule, now),
                    latest_attempt=latest,
                )
            )
        return rows

    async def list_quiz_attempts(self, quiz_id: str) -> list[Attempt]:
        """Todas as tentativas do quiz (visao do instrutor)."""
        await self.load_quiz(quiz_id)
        return await self.attempts.list_for_quiz(quiz_id)
