"""Quiz Router - Endpoints FastAPI do ciclo de vida das tentativas.

Camada fina: resolve identidade e dependencias, delega ao
AttemptStateMachine e formata a resposta. Erros do motor
(QuizEngineError) sao convertidos em JSON pelo handler do server.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from .config import QuizConfig
from .errors import NotFoundError
from .engine.attempt_engine import AttemptStateMachine, BeginOutcome, StudentQuizStatus, SubmitOutcome
from .models.enums import AttemptStatus
from .models.schemas import (
    BeginAttemptResponse,
    PublicQuiz,
    SaveProgressRequest,
    SaveProgressResponse,
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
from .models.state import Attempt

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quiz", tags=["Quiz"])


# =============================================================================
# DEPENDENCY INJECTION
# =============================================================================


def get_state_machine(request: Request) -> AttemptStateMachine:
    """Dependency para obter o AttemptStateMachine criado no lifespan."""
    return request.app.state.engine


def get_config(request: Request) -> QuizConfig:
    """Dependency para obter a configuracao ativa."""
    return request.app.state.config


def get_current_student(
    x_user_email: str | None = Header(default=None),
    x_user_name: str | None = Header(default=None),
) -> StudentIdentity:
    """Identidade autenticada, repassada pelo gateway nos headers.

    O gateway valida a sessao e injeta ``X-User-Email``/``X-User-Name``.
    """
    email = (x_user_email or "").strip()
    if not email:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        return StudentIdentity(name=(x_user_name or "").strip() or email, email=email)
    except ValueError as e:
        raise HTTPException(status_code=401, detail="Invalid user identity") from e


# =============================================================================
# FORMATACAO
# =============================================================================


def _begin_response(outcome: BeginOutcome, machine: AttemptStateMachine, config: QuizConfig) -> BeginAttemptResponse:
    return BeginAttemptResponse(
        message="Quiz resumed" if outcome.resumed else "Quiz started successfully",
        resumed=outcome.resumed,
        attempt=outcome.attempt.summary(machine.now()),
        quiz=outcome.quiz.public_view(default_duration=config.default_duration_minutes),
        student=outcome.attempt.student,
    )


def _submit_response(outcome: SubmitOutcome, config: QuizConfig) -> SubmitQuizResponse:
    """Monta a resposta do envio.

    Tentativas bloqueadas tem nota calculada e gravada, mas o aluno so a ve
    quando ``show_blocked_scores`` esta ativo.
    """
    attempt = outcome.attempt
    grading = outcome.grading
    hide_score = outcome.blocked and not config.show_blocked_scores

    results = SubmitResults(
        status=attempt.status,
        score=None if hide_score else grading.total_marks,
        total_marks=grading.max_marks,
        percentage=None if hide_score else grading.display_percentage,
        questions=len(grading.results),
        correct_answers=None if hide_score else grading.correct_answers,
        is_blocked=outcome.blocked,
        block_reason=attempt.violation_reason,
        is_auto_submit=attempt.is_auto_submit,
        time_spent=attempt.time_spent,
        breakdown=[] if hide_score else grading.results,
    )

    if outcome.blocked:
        message = "Quiz submitted and blocked due to a violation"
    elif attempt.is_auto_submit:
        message = "Quiz auto-submitted"
    else:
        message = "Quiz submitted successfully"
    return SubmitQuizResponse(message=message, results=results)


def _attempt_results(attempt: Attempt, config: QuizConfig) -> SubmitResults:
    blocked = attempt.status is AttemptStatus.BLOCKED
    hide_score = blocked and not config.show_blocked_scores
    records = attempt.graded_answers
    percentage = round(attempt.percentage, 1) if attempt.percentage is not None else None

    return SubmitResults(
        status=attempt.status,
        score=None if hide_score else attempt.total_marks,
        total_marks=attempt.max_marks,
        percentage=None if hide_score else percentage,
        questions=len(records),
        correct_answers=None if hide_score else sum(1 for r in records if r.is_correct),
        is_blocked=blocked,
        block_reason=attempt.violation_reason,
        is_auto_submit=attempt.is_auto_submit,
        time_spent=attempt.time_spent,
        breakdown=[] if hide_score else records,
    )


def _dashboard_row(row: StudentQuizStatus, config: QuizConfig) -> StudentQuizSummary:
    quiz = row.quiz
    attempt = row.latest_attempt
    summary = StudentQuizSummary(
        id=quiz.id,
        title=quiz.title,
        description=quiz.description,
        duration=quiz.effective_duration(config.default_duration_minutes),
        total_marks=quiz.total_marks,
        question_count=quiz.num_questions,
        accessible=row.accessibility.accessible,
        availability=row.accessibility.reason,
    )
    if attempt is None:
        return summary

    summary.attempt_status = attempt.status.value
    summary.attempt_id = attempt.id
    summary.submitted_at = attempt.submitted_at
    summary.reason = attempt.violation_reason
    if attempt.status in (AttemptStatus.GRADED, AttemptStatus.SUBMITTED) or (
        attempt.status is AttemptStatus.BLOCKED and config.show_blocked_scores
    ):
        summary.score = attempt.total_marks
        summary.percentage = round(attempt.percentage, 1) if attempt.percentage is not None else None
    return summary


# =============================================================================
# PAINEL DO ALUNO
# =============================================================================


@router.get("/student/quizzes", response_model=StudentQuizzesResponse)
async def list_student_quizzes(
    student: StudentIdentity = Depends(get_current_student),
    machine: AttemptStateMachine = Depends(get_state_machine),
    config: QuizConfig = Depends(get_config),
):
    """Lista os quizzes compartilhados com o aluno autenticado.

    Cada item traz a disponibilidade atual e o status da ultima tentativa.
    """
    rows = await machine.list_student_quizzes(student.email)
    quizzes = [_dashboard_row(row, config) for row in rows]
    return StudentQuizzesResponse(count=len(quizzes), quizzes=quizzes)


# =============================================================================
# FLUXO POR LINK DE CONVITE
# =============================================================================


@router.get("/attempt/{token}", response_model=TokenPreviewResponse)
async def preview_invite(
    token: str,
    machine: AttemptStateMachine = Depends(get_state_machine),
    config: QuizConfig = Depends(get_config),
):
    """Le um link de convite.

    - Token de retomada de tentativa viva -> retorna a tentativa com as questoes
    - Token de convite ainda nao usado -> metadados do quiz, sem questoes
    """
    preview = await machine.preview_invite(token)

    if preview.outcome is not None:
        outcome = preview.outcome
        return TokenPreviewResponse(
            has_started=True,
            quiz=outcome.quiz.public_view(default_duration=config.default_duration_minutes),
            email=outcome.attempt.student.email,
            attempt=outcome.attempt.summary(machine.now()),
            student=outcome.attempt.student,
        )

    return TokenPreviewResponse(
        has_started=False,
        quiz=preview.quiz.public_view(include_questions=False, default_duration=config.default_duration_minutes),
        email=preview.email,
    )


@router.post("/attempt/start", response_model=BeginAttemptResponse)
async def start_with_invite(
    request: TokenStartRequest,
    machine: AttemptStateMachine = Depends(get_state_machine),
    config: QuizConfig = Depends(get_config),
):
    """Inicia (ou retoma) a tentativa a partir do link de convite."""
    outcome = await machine.begin_with_invite(
        request.token,
        name=request.student_name,
        usn=request.student_usn,
        branch=request.student_branch,
        year=request.student_year,
        semester=request.student_semester,
    )
    return _begin_response(outcome, machine, config)


@router.post("/attempt/submit", response_model=SubmitQuizResponse)
async def submit_with_invite(
    request: SubmitQuizRequest,
    machine: AttemptStateMachine = Depends(get_state_machine),
    config: QuizConfig = Depends(get_config),
):
    """Envia a tentativa iniciada por link de convite."""
    outcome = await machine.submit(
        request.attempt_id,
        request.answers,
        violation_reason=request.reason,
        is_auto_submit=request.is_auto_submit,
    )
    return _submit_response(outcome, config)


# =============================================================================
# FLUXO AUTENTICADO
# =============================================================================


@router.post("/start", response_model=BeginAttemptResponse)
async def start_quiz(
    request: StartQuizRequest,
    student: StudentIdentity = Depends(get_current_student),
    machine: AttemptStateMachine = Depends(get_state_machine),
    config: QuizConfig = Depends(get_config),
):
    """Inicia ou retoma a tentativa do aluno autenticado.

    - Valida roster e janela de acesso
    - Retorna a tentativa viva existente em vez de criar outra
    - Rejeita com 409 se o aluno ja enviou o quiz
    """
    outcome = await machine.begin(request.quiz_id, student)
    return _begin_response(outcome, machine, config)


@router.post("/save-progress", response_model=SaveProgressResponse)
async def save_progress(
    request: SaveProgressRequest,
    student: StudentIdentity = Depends(get_current_student),
    machine: AttemptStateMachine = Depends(get_state_machine),
):
    """Salva as respostas parciais (sobrescreve o ultimo salvamento)."""
    attempt = await machine.save_progress(request.attempt_id, request.answers, student_email=student.email)
    return SaveProgressResponse(time_spent=attempt.time_spent)


@router.post("/submit", response_model=SubmitQuizResponse)
async def submit_quiz(
    request: SubmitQuizRequest,
    student: StudentIdentity = Depends(get_current_student),
    machine: AttemptStateMachine = Depends(get_state_machine),
    config: QuizConfig = Depends(get_config),
):
    """Corrige e finaliza a tentativa.

    - ``reason`` preenchido -> tentativa bloqueada (violacao de proctoring)
    - ``is_auto_submit`` -> envio disparado pelo timer do cliente
    """
    outcome = await machine.submit(
        request.attempt_id,
        request.answers,
        violation_reason=request.reason,
        is_auto_submit=request.is_auto_submit,
        student_email=student.email,
    )
    return _submit_response(outcome, config)


@router.get("/{quiz_id}/results", response_model=SubmitResults)
async def get_results(
    quiz_id: str,
    student: StudentIdentity = Depends(get_current_student),
    machine: AttemptStateMachine = Depends(get_state_machine),
    config: QuizConfig = Depends(get_config),
):
    """Resultado da ultima tentativa finalizada do aluno."""
    attempt = await machine.get_results(quiz_id, student.email)
    return _attempt_results(attempt, config)


@router.get("/{quiz_id}/attempts")
async def list_quiz_attempts(
    quiz_id: str,
    machine: AttemptStateMachine = Depends(get_state_machine),
    config: QuizConfig = Depends(get_config),
):
    """Todas as tentativas do quiz (visao do instrutor, inclui bloqueadas)."""
    attempts = await machine.list_quiz_attempts(quiz_id)
    show_all = replace(config, show_blocked_scores=True)
    return {
        "success": True,
        "quiz_id": quiz_id,
        "count": len(attempts),
        "attempts": [
            {
                "attempt_id": a.id,
                "student": a.student.model_dump(),
                **_attempt_results(a, show_all).model_dump(mode="json", exclude={"breakdown"}),
                "started_at": a.started_at.isoformat(),
                "submitted_at": a.submitted_at.isoformat() if a.submitted_at else None,
            }
            for a in attempts
        ],
    }


@router.get("/{quiz_id}", response_model=PublicQuiz)
async def get_quiz(
    quiz_id: str,
    student: StudentIdentity = Depends(get_current_student),
    machine: AttemptStateMachine = Depends(get_state_machine),
    config: QuizConfig = Depends(get_config),
):
    """Metadados do quiz (sem questoes) para o aluno do roster."""
    quiz = await machine.load_quiz(quiz_id)
    if not quiz.is_shared_with(student.email):
        raise NotFoundError("Quiz not found or not shared with you")
    return quiz.public_view(include_questions=False, default_duration=config.default_duration_minutes)
