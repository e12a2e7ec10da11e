"""Quiz Config - Configuracao centralizada via variaveis de ambiente."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


def _env_str(name: str, default: str) -> str:
    value = (os.getenv(name) or "").strip()
    return value or default


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} invalido, usando {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} invalido, usando {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in _TRUTHY


@dataclass
class QuizConfig:
    """Configuracao do motor de tentativas.

    Attributes:
        default_timezone: Fuso usado quando o quiz nao define um
        default_duration_minutes: Duracao quando o quiz nao define uma
        grader_url: URL base do servico de correcao semantica
        grader_api_key: Chave Bearer opcional para o servico de correcao
        grader_timeout: Timeout (segundos) por chamada ao avaliador
        show_blocked_scores: Se tentativas bloqueadas exibem nota ao aluno
        log_level: Nivel de log do host
    """

    default_timezone: str = "Asia/Kolkata"
    default_duration_minutes: int = 30
    grader_url: str = "http://grading-service:8008"
    grader_api_key: str = ""
    grader_timeout: float = 3.0
    show_blocked_scores: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> QuizConfig:
        """Cria configuracao a partir das variaveis de ambiente."""
        return cls(
            default_timezone=_env_str("QUIZ_DEFAULT_TIMEZONE", "Asia/Kolkata"),
            default_duration_minutes=_env_int("QUIZ_DEFAULT_DURATION", 30),
            grader_url=_env_str("GRADER_SERVICE_URL", "http://grading-service:8008").rstrip("/"),
            grader_api_key=_env_str("GRADER_API_KEY", ""),
            grader_timeout=_env_float("GRADER_TIMEOUT", 3.0),
            show_blocked_scores=_env_bool("QUIZ_SHOW_BLOCKED_SCORES", False),
            log_level=_env_str("LOG_LEVEL", "INFO").upper(),
        )
