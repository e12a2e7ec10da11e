"""Attempt Store - Persistencia de tentativas com guardas de concorrencia."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

from ..errors import ConflictError, NotFoundError
from ..models.enums import AttemptStatus
from ..models.state import Attempt

logger = logging.getLogger(__name__)


class AttemptStore:
    """Abstracao sobre o KV para tentativas.

    Garantias:
        - ``create_attempt``: check-then-insert serializado; no maximo uma
          tentativa viva por (quiz, email).
        - ``save_attempt``: compare-and-swap pelo status e pela versao
          gravados; so grava se o status atual ainda esta no conjunto
          esperado e ninguem gravou desde a leitura.

    Estrutura de chaves:
        - attempt:{attempt_id}:state -> Tentativa serializada
        - attempt-token:{token} -> attempt_id
        - attempt-live:{quiz_id}:{email} -> attempt_id da tentativa viva
        - attempt-history:{quiz_id}:{email} -> [attempt_id, ...] (ordem de criacao)

    O lock cobre apenas leituras/escritas no KV; nunca e mantido durante a
    correcao semantica.
    """

    KEY_PREFIX = "attempt"

    def __init__(self, kv: Any):
        self.kv = kv
        self._lock = asyncio.Lock()

    def _state_key(self, attempt_id: str) -> str:
        return f"{self.KEY_PREFIX}:{attempt_id}:state"

    def _token_key(self, token: str) -> str:
        return f"{self.KEY_PREFIX}-token:{token}"

    def _live_key(self, quiz_id: str, email: str) -> str:
        return f"{self.KEY_PREFIX}-live:{quiz_id}:{email.lower()}"

    def _history_key(self, quiz_id: str, email: str) -> str:
        return f"{self.KEY_PREFIX}-history:{quiz_id}:{email.lower()}"

    # -------------------------------------------------------------------------
    # Leitura
    # -------------------------------------------------------------------------

    async def find_by_id(self, attempt_id: str) -> Attempt | None:
        data = await self.kv.get(self._state_key(attempt_id))
        if not data:
            return None
        return Attempt.from_dict(data)

    async def find_by_token(self, token: str) -> Attempt | None:
        attempt_id = await self.kv.get(self._token_key(token))
        if not attempt_id:
            return None
        return await self.find_by_id(attempt_id)

    async def list_for_student(self, quiz_id: str, email: str) -> list[Attempt]:
        """Tentativas do aluno no quiz, mais recentes primeiro."""
        attempt_ids = await self.kv.get(self._history_key(quiz_id, email)) or []
        attempts = []
        for attempt_id in reversed(attempt_ids):
            attempt = await self.find_by_id(attempt_id)
            if attempt is not None:
                attempts.append(attempt)
        return attempts

    async def find_for_student(
        self,
        quiz_id: str,
        email: str,
        statuses: Iterable[AttemptStatus] | None = None,
    ) -> Attempt | None:
        """Tentativa mais recente do aluno, opcionalmente filtrada por status."""
        wanted = set(statuses) if statuses is not None else None
        for attempt in await self.list_for_student(quiz_id, email):
            if wanted is None or attempt.status in wanted:
                return attempt
        return None

    async def list_for_quiz(self, quiz_id: str) -> list[Attempt]:
        """Todas as tentativas de um quiz, mais recentes primeiro."""
        entries = await self.kv.list(prefix=f"{self.KEY_PREFIX}:")
        attempts = []
        for entry in entries:
            key = entry.get("key", "") if isinstance(entry, dict) else str(entry)
            data = await self.kv.get(key)
            if data and data.get("quiz_id") == quiz_id:
                attempts.append(Attempt.from_dict(data))
        attempts.sort(key=lambda a: a.started_at, reverse=True)
        return attempts

    # -------------------------------------------------------------------------
    # Escrita
    # -------------------------------------------------------------------------

    async def create_attempt(self, attempt: Attempt) -> Attempt:
        """Insere tentativa nova.

        Raises:
            ConflictError: Ja existe tentativa viva para (quiz, email) ou o
                token de retomada ja esta em uso
        """
        email = attempt.student.email
        async with self._lock:
            live_id = await self.kv.get(self._live_key(attempt.quiz_id, email))
            if live_id:
                current = await self.find_by_id(live_id)
                if current is not None and current.is_live:
                    raise ConflictError(
                        "A live attempt already exists for this quiz",
                        attempt_id=current.id,
                        status=current.status.value,
                    )

            if await self.kv.get(self._token_key(attempt.token)):
                raise ConflictError("Resumption token already in use")

            attempt.version = 1
            await self.kv.set(self._state_key(attempt.id), attempt.to_dict())
            await self.kv.set(self._token_key(attempt.token), attempt.id)
            await self.kv.set(self._live_key(attempt.quiz_id, email), attempt.id)

            history = await self.kv.get(self._history_key(attempt.quiz_id, email)) or []
            history.append(attempt.id)
            await self.kv.set(self._history_key(attempt.quiz_id, email), history)

        logger.debug(f"Tentativa criada: {attempt.id} ({email})")
        return attempt

    async def save_attempt(self, attempt: Attempt, expected_statuses: Iterable[AttemptStatus]) -> Attempt:
        """Grava a tentativa se o status persistido ainda for o esperado.

        Raises:
            NotFoundError: Tentativa inexistente
            ConflictError: Outra requisicao ja mudou o status
        """
        expected = set(expected_statuses)
        async with self._lock:
            current = await self.find_by_id(attempt.id)
            if current is None:
                raise NotFoundError("Quiz attempt not found")
            if current.status not in expected or current.version != attempt.version:
                logger.warning(
                    f"Transicao concorrente perdida na tentativa {attempt.id}: status atual {current.status.value}"
                )
                raise ConflictError(
                    "Quiz already submitted" if current.is_terminal else "Attempt was modified concurrently",
                    status=current.status.value,
                )

            attempt.version = current.version + 1
            await self.kv.set(self._state_key(attempt.id), attempt.to_dict())

            if attempt.is_terminal:
                live_key = self._live_key(attempt.quiz_id, attempt.student.email)
                if await self.kv.get(live_key) == attempt.id:
                    await self.kv.delete(live_key)

        return attempt
