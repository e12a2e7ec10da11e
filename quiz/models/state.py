"""Attempt State - Registro persistido de uma tentativa."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .enums import AttemptStatus
from .schemas import AnswerRecord, AnswerSubmission, AttemptSummary, StudentIdentity


def _parse_dt(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def elapsed_seconds(started_at: datetime, now: datetime) -> int:
    """Segundos inteiros decorridos entre ``started_at`` e ``now`` (nunca negativo)."""
    delta = (_as_aware(now) - _as_aware(started_at)).total_seconds()
    return max(0, math.floor(delta))


@dataclass
class Attempt:
    """Interacao de um aluno com um quiz.

    Attributes:
        quiz_id: ID do quiz
        student: Identidade do aluno
        token: Token de retomada, unico globalmente
        status: Estado atual (ver AttemptStatus)
        answers: Respostas brutas enquanto viva; registros corrigidos depois
        total_marks: Pontos obtidos
        max_marks: Teto (quiz.total_marks na criacao)
        percentage: Percentual com precisao total
        duration: Minutos permitidos (copiado do quiz na criacao)
        time_spent: Segundos decorridos no ultimo salvamento/envio
        version: Contador para controle de concorrencia otimista
    """

    quiz_id: str
    student: StudentIdentity
    token: str
    max_marks: float
    duration: int
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    owner_id: str | None = None
    status: AttemptStatus = AttemptStatus.STARTED
    answers: list[AnswerSubmission | AnswerRecord] = field(default_factory=list)
    total_marks: float = 0
    percentage: float | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    submitted_at: datetime | None = None
    graded_at: datetime | None = None
    time_spent: int = 0
    is_auto_submit: bool = False
    violation_reason: str | None = None
    version: int = 0

    @property
    def is_live(self) -> bool:
        return self.status.is_live

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def elapsed(self, now: datetime) -> int:
        end = self.submitted_at or now
        return elapsed_seconds(self.started_at, end)

    def time_remaining(self, now: datetime) -> int:
        if not self.is_live:
            return 0
        return max(0, self.duration * 60 - self.elapsed(now))

    def is_expired(self, now: datetime) -> bool:
        """Expirada somente enquanto viva e com o tempo esgotado."""
        if not self.is_live:
            return False
        return elapsed_seconds(self.started_at, now) >= self.duration * 60

    @property
    def graded_answers(self) -> list[AnswerRecord]:
        return [a for a in self.answers if isinstance(a, AnswerRecord)]

    def summary(self, now: datetime) -> AttemptSummary:
        return AttemptSummary(
            id=self.id,
            status=self.status,
            started_at=self.started_at,
            duration=self.duration,
            max_marks=self.max_marks,
            time_remaining=self.time_remaining(now),
            token=self.token,
            answers=[a for a in self.answers if isinstance(a, AnswerSubmission)],
        )

    def to_dict(self) -> dict[str, Any]:
        """Converte para dicionario JSON-compativel (para persistencia)."""
        return {
            "id": self.id,
            "quiz_id": self.quiz_id,
            "owner_id": self.owner_id,
            "student": self.student.model_dump(mode="json"),
            "token": self.token,
            "status": self.status.value,
            "answers": [a.model_dump(mode="json") for a in self.answers],
            "total_marks": self.total_marks,
            "max_marks": self.max_marks,
            "percentage": self.percentage,
            "duration": self.duration,
            "started_at": self.started_at.isoformat(),
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "graded_at": self.graded_at.isoformat() if self.graded_at else None,
            "time_spent": self.time_spent,
            "is_auto_submit": self.is_auto_submit,
            "violation_reason": self.violation_reason,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Attempt:
        """Cria instancia a partir de dicionario."""
        answers: list[AnswerSubmission | AnswerRecord] = []
        for item in data.get("answers", []):
            if "is_correct" in item:
                answers.append(AnswerRecord.model_validate(item))
            else:
                answers.append(AnswerSubmission.model_validate(item))

        return cls(
            id=data["id"],
            quiz_id=data["quiz_id"],
            owner_id=data.get("owner_id"),
            student=StudentIdentity.model_validate(data["student"]),
            token=data["token"],
            status=AttemptStatus(data.get("status", AttemptStatus.STARTED.value)),
            answers=answers,
            total_marks=data.get("total_marks", 0),
            max_marks=data.get("max_marks", 0),
            percentage=data.get("percentage"),
            duration=data.get("duration", 30),
            started_at=_parse_dt(data["started_at"]),
            submitted_at=_parse_dt(data.get("submitted_at")),
            graded_at=_parse_dt(data.get("graded_at")),
            time_spent=data.get("time_spent", 0),
            is_auto_submit=data.get("is_auto_submit", False),
            violation_reason=data.get("violation_reason"),
            version=data.get("version", 0),
        )
