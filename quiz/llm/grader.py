"""Semantic Grader - Cliente do servico externo de correcao de respostas abertas."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..errors import DependencyDegraded
from ..models.schemas import FreeTextGrade

logger = logging.getLogger(__name__)


class SemanticGrader(Protocol):
    """Contrato do avaliador semantico (falivel por natureza)."""

    async def grade_free_text(
        self,
        prompt: str,
        canonical_answer: str,
        student_answer: str,
        max_marks: float,
    ) -> FreeTextGrade: ...


class HttpSemanticGrader:
    """Avaliador semantico via HTTP.

    Envia ``POST {base_url}/grade`` com enunciado, resposta canonica e
    resposta do aluno; espera ``{"is_correct", "marks", "feedback"}``.
    Qualquer falha (rede, timeout, status != 200, payload invalido) vira
    ``DependencyDegraded``.

    O ``httpx.AsyncClient`` pertence ao host: quem cria o grader chama
    ``aclose()`` no shutdown.

    Example:
        >>> grader = HttpSemanticGrader("http://grading-service:8008", timeout=3.0)
        >>> grade = await grader.grade_free_text("O que e HTTP?", "Protocolo...", "Um protocolo", 3)
        >>> await grader.aclose()
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 3.0,
        api_key: str = "",
        client: httpx.AsyncClient | None = None,
    ):
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout, headers=headers)

    async def grade_free_text(
        self,
        prompt: str,
        canonical_answer: str,
        student_answer: str,
        max_marks: float,
    ) -> FreeTextGrade:
        payload = {
            "question": prompt,
            "canonical_answer": canonical_answer,
            "student_answer": student_answer,
            "max_marks": max_marks,
        }
        try:
            r = await self.client.post(f"{self.base_url}/grade", json=payload)
        except httpx.HTTPError as e:
            raise DependencyDegraded(f"Grading service unavailable: {e.__class__.__name__}") from e

        if r.status_code != 200:
            raise DependencyDegraded(f"Grading service returned HTTP {r.status_code}")

        try:
            return FreeTextGrade.model_validate(r.json())
        except (ValueError, PydanticValidationError) as e:
            raise DependencyDegraded("Grading service returned a malformed payload") from e

    async def aclose(self) -> None:
        await self.client.aclose()
