"""Quiz Errors - Taxonomia de erros do motor de tentativas.

Cada erro carrega uma mensagem apresentavel ao aluno e detalhes extras
(ex: ``starts_at``) que a camada HTTP repassa no corpo da resposta.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any


class QuizEngineError(Exception):
    """Erro base com status HTTP sugerido e detalhes serializaveis."""

    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "message": self.message}
        for key, value in self.details.items():
            if value is None:
                continue
            body[key] = value.isoformat() if isinstance(value, datetime) else value
        return body


class ValidationError(QuizEngineError):
    """Entrada ausente ou malformada; rejeitada antes de tocar no estado."""

    status_code = 400


class NotFoundError(QuizEngineError):
    """Quiz, tentativa ou identidade desconhecida (ou fora do roster)."""

    status_code = 404


class AccessDeniedError(QuizEngineError):
    """Fora da janela de acesso do quiz."""

    status_code = 403


class ConflictError(QuizEngineError):
    """Tentativa ja finalizada ou transicao concorrente perdida."""

    status_code = 409


class DependencyDegraded(QuizEngineError):
    """Avaliador semantico indisponivel.

    Nunca chega ao chamador de ``submit``: o motor de correcao absorve o
    erro e zera apenas a questao afetada.
    """

    status_code = 503
