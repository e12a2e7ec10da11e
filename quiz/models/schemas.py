"""Quiz Schemas - Modelos Pydantic de dominio e de request/response."""

from __future__ import annotations

import re
import uuid
from datetime import date, datetime, timezone
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    Field,
    computed_field,
    field_validator,
)

from .enums import AttemptStatus, QuestionKind, QuizDifficulty

_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# DOMINIO
# =============================================================================


class QuestionSpec(BaseModel):
    """Questao do quiz. Imutavel depois de publicada."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="ID estavel da questao")
    kind: QuestionKind = Field(default=QuestionKind.OBJECTIVE, description="objective | free-text")
    prompt: str = Field(..., min_length=1, description="Enunciado")
    options: list[str] = Field(default_factory=list, description="Alternativas (somente objective)")
    answer: str = Field(..., min_length=1, description="Resposta canonica (letra ou texto)")
    explanation: str = Field(default="", description="Explicacao exibida apos a correcao")
    marks: float = Field(default=1, gt=0, description="Pontos da questao")
    difficulty: QuizDifficulty = Field(default=QuizDifficulty.MEDIUM)

    @field_validator("kind", mode="before")
    @classmethod
    def _coerce_kind(cls, value: Any) -> Any:
        if isinstance(value, str):
            return QuestionKind(value.strip().lower())
        return value

    @field_validator("options")
    @classmethod
    def _strip_options(cls, value: list[str]) -> list[str]:
        return [option.strip() for option in value]

    def public_view(self) -> PublicQuestion:
        """Versao enviada ao aluno antes do envio (sem resposta e explicacao)."""
        return PublicQuestion(
            id=self.id,
            kind=self.kind,
            prompt=self.prompt,
            options=list(self.options),
            marks=self.marks,
            difficulty=self.difficulty,
        )


class Schedule(BaseModel):
    """Configuracao de agendamento (data + hora opcional + fuso)."""

    is_scheduled: bool = False
    start_date: date | None = None
    start_time: str | None = Field(default=None, description="HH:MM (24h)")
    end_date: date | None = None
    end_time: str | None = Field(default=None, description="HH:MM (24h)")
    timezone: str | None = Field(default=None, description="Nome IANA, ex: Asia/Kolkata")

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_time(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        value = value.strip()
        if not _TIME_RE.match(value):
            raise ValueError(f"Horario invalido: {value!r} (esperado HH:MM)")
        return value


class Quiz(BaseModel):
    """Quiz publicado. Somente leitura do ponto de vista do motor."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: str = Field(..., min_length=1)
    description: str = ""
    owner_id: str | None = Field(default=None, description="Instrutor dono do quiz")
    created_by: str = ""
    questions: list[QuestionSpec] = Field(default_factory=list)
    duration: int | None = Field(default=None, ge=1, description="Duracao em minutos (None = padrao do host)")
    difficulty: QuizDifficulty = QuizDifficulty.MEDIUM
    schedule: Schedule = Field(default_factory=Schedule)
    shared_with: list[str] = Field(default_factory=list, description="Roster de emails")
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("shared_with")
    @classmethod
    def _normalize_roster(cls, value: list[str]) -> list[str]:
        roster: list[str] = []
        for email in value:
            email = email.strip().lower()
            if email and email not in roster:
                roster.append(email)
        return roster

    @computed_field
    @property
    def num_questions(self) -> int:
        return len(self.questions)

    @computed_field
    @property
    def total_marks(self) -> float:
        return sum(q.marks for q in self.questions)

    def is_shared_with(self, email: str) -> bool:
        return email.strip().lower() in self.shared_with

    def get_question(self, question_id: str) -> QuestionSpec | None:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def effective_duration(self, default: int = 30) -> int:
        """Duracao em minutos, caindo no padrao do host quando ausente."""
        return self.duration or default

    def public_view(self, include_questions: bool = True, default_duration: int = 30) -> PublicQuiz:
        return PublicQuiz(
            id=self.id,
            title=self.title,
            description=self.description,
            duration=self.effective_duration(default_duration),
            num_questions=self.num_questions,
            total_marks=self.total_marks,
            questions=[q.public_view() for q in self.questions] if include_questions else [],
        )


class StudentIdentity(BaseModel):
    """Identidade do aluno (nome, contato e metadados academicos)."""

    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    usn: str = ""
    branch: str = ""
    year: str = ""
    semester: str = ""

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if "@" not in value:
            raise ValueError("Email invalido")
        return value

    @field_validator("usn")
    @classmethod
    def _normalize_usn(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("name", "branch", "year", "semester", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        if value is None:
            return ""
        return str(value).strip()


class AnswerSubmission(BaseModel):
    """Resposta bruta enviada pelo aluno para uma questao."""

    question_id: str = Field(validation_alias=AliasChoices("question_id", "questionId"))
    answer: str = Field(
        default="",
        validation_alias=AliasChoices("answer", "student_answer", "studentAnswer"),
    )

    @field_validator("question_id", "answer", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class AnswerRecord(BaseModel):
    """Resultado corrigido de uma questao (desnormalizado para auditoria)."""

    question_id: str
    prompt: str
    kind: QuestionKind
    options: list[str] = Field(default_factory=list)
    student_answer: str = ""
    correct_answer: str
    is_correct: bool
    marks: float
    explanation: str = ""
    feedback: str = ""


class FreeTextGrade(BaseModel):
    """Veredito do avaliador semantico."""

    is_correct: bool = Field(validation_alias=AliasChoices("is_correct", "isCorrect"))
    marks: float = Field(default=0, ge=0)
    feedback: str = ""


class GradingResult(BaseModel):
    """Resultado consolidado da correcao de uma tentativa."""

    results: list[AnswerRecord] = Field(default_factory=list)
    total_marks: float = 0
    max_marks: float = 0
    percentage: float = Field(default=0, description="Precisao total; arredondar so na exibicao")

    @property
    def correct_answers(self) -> int:
        return sum(1 for r in self.results if r.is_correct)

    @property
    def display_percentage(self) -> float:
        return round(self.percentage, 1)


class AccessibilityResult(BaseModel):
    """Veredito da janela de acesso."""

    accessible: bool
    reason: str
    starts_at: datetime | None = None
    ended_at: datetime | None = None
    ends_at: datetime | None = None


# =============================================================================
# REQUEST / RESPONSE
# =============================================================================


class PublicQuestion(BaseModel):
    """Questao sem resposta canonica nem explicacao."""

    id: str
    kind: QuestionKind
    prompt: str
    options: list[str] = Field(default_factory=list)
    marks: float = 1
    difficulty: QuizDifficulty = QuizDifficulty.MEDIUM


class PublicQuiz(BaseModel):
    id: str
    title: str
    description: str = ""
    duration: int
    num_questions: int
    total_marks: float
    questions: list[PublicQuestion] = Field(default_factory=list)


class AttemptSummary(BaseModel):
    """Estado da tentativa devolvido em begin/resume."""

    id: str
    status: AttemptStatus
    started_at: datetime
    duration: int
    max_marks: float
    time_remaining: int = Field(..., description="Segundos restantes")
    token: str = Field(..., description="Token de retomada")
    answers: list[AnswerSubmission] = Field(default_factory=list)


class StartQuizRequest(BaseModel):
    quiz_id: str = Field(..., min_length=1)


class BeginAttemptResponse(BaseModel):
    success: bool = True
    message: str
    resumed: bool
    attempt: AttemptSummary
    quiz: PublicQuiz
    student: StudentIdentity | None = None


class SaveProgressRequest(BaseModel):
    attempt_id: str = Field(..., min_length=1)
    answers: list[AnswerSubmission] = Field(default_factory=list)


class SaveProgressResponse(BaseModel):
    success: bool = True
    message: str = "Progress saved successfully"
    time_spent: int


class SubmitQuizRequest(BaseModel):
    attempt_id: str = Field(..., min_length=1)
    answers: list[AnswerSubmission] = Field(default_factory=list)
    is_auto_submit: bool = False
    reason: str | None = Field(default=None, description="Motivo de violacao (bloqueia)")


class SubmitResults(BaseModel):
    """Nota e detalhamento; so existe depois do envio."""

    status: AttemptStatus
    score: float | None = None
    total_marks: float
    percentage: float | None = None
    questions: int
    correct_answers: int | None = None
    is_blocked: bool = False
    block_reason: str | None = None
    is_auto_submit: bool = False
    time_spent: int = 0
    breakdown: list[AnswerRecord] = Field(default_factory=list)


class SubmitQuizResponse(BaseModel):
    success: bool = True
    message: str
    results: SubmitResults


class TokenStartRequest(BaseModel):
    """Inicio anonimo via link de convite (aluno preenche os dados)."""

    token: str = Field(..., min_length=1)
    student_name: str = Field(..., min_length=1)
    student_usn: str = Field(..., min_length=1)
    student_branch: str = Field(..., min_length=1)
    student_year: str = Field(..., min_length=1)
    student_semester: str = Field(..., min_length=1)


class TokenPreviewResponse(BaseModel):
    success: bool = True
    has_started: bool
    quiz: PublicQuiz
    email: str | None = None
    attempt: AttemptSummary | None = None
    student: StudentIdentity | None = None


class StudentQuizSummary(BaseModel):
    """Linha do painel do aluno."""

    id: str
    title: str
    description: str = ""
    duration: int
    total_marks: float
    question_count: int
    accessible: bool
    availability: str
    attempt_status: str = "not_started"
    attempt_id: str | None = None
    score: float | None = None
    percentage: float | None = None
    reason: str | None = None
    submitted_at: datetime | None = None


class StudentQuizzesResponse(BaseModel):
    success: bool = True
    count: int
    quizzes: list[StudentQuizSummary]
