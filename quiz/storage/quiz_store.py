"""Quiz Store - Persistencia de quizzes publicados sobre um KV store."""

from __future__ import annotations

import logging
from typing import Any

from ..models.schemas import Quiz

logger = logging.getLogger(__name__)


def _entry_key(entry: Any) -> str:
    return entry.get("key", "") if isinstance(entry, dict) else str(entry)


class QuizStore:
    """Abstracao sobre o KV para leitura de quizzes.

    O motor so le quizzes; ``save_quiz``/``delete_quiz`` existem para o
    colaborador de autoria (e para seeds/testes).

    Estrutura de chaves:
        - quiz:{quiz_id}:state -> Quiz serializado

    Example:
        >>> store = QuizStore(MemoryKV())
        >>> await store.save_quiz(quiz)
        >>> loaded = await store.find_quiz_by_id(quiz.id)
    """

    KEY_PREFIX = "quiz"

    def __init__(self, kv: Any):
        """Inicializa store com o KV (``MemoryKV`` ou ``agentfs.kv``).

        Args:
            kv: Objeto com get/set/delete/list assincronos
        """
        self.kv = kv

    def _state_key(self, quiz_id: str) -> str:
        """Gera chave para o quiz."""
        return f"{self.KEY_PREFIX}:{quiz_id}:state"

    async def save_quiz(self, quiz: Quiz) -> Quiz:
        """Persiste o quiz (total de pontos recalculado na serializacao)."""
        await self.kv.set(self._state_key(quiz.id), quiz.model_dump(mode="json"))
        logger.debug(f"Quiz salvo: {quiz.id}")
        return quiz

    async def find_quiz_by_id(self, quiz_id: str) -> Quiz | None:
        """Carrega quiz pelo ID.

        Returns:
            Quiz se encontrado, None caso contrario
        """
        data = await self.kv.get(self._state_key(quiz_id))
        if not data:
            logger.debug(f"Quiz nao encontrado: {quiz_id}")
            return None
        return Quiz.model_validate(data)

    async def list_quizzes(self) -> list[str]:
        """Lista todos os quiz IDs armazenados."""
        entries = await self.kv.list(prefix=f"{self.KEY_PREFIX}:")

        quiz_ids = []
        for entry in entries:
            parts = _entry_key(entry).split(":")
            if len(parts) == 3 and parts[2] == "state" and parts[1] not in quiz_ids:
                quiz_ids.append(parts[1])
        return quiz_ids

    async def find_quizzes_shared_with(self, email: str) -> list[Quiz]:
        """Quizzes cujo roster contem o email (mais recentes primeiro)."""
        email = email.strip().lower()
        quizzes = []
        for quiz_id in await self.list_quizzes():
            quiz = await self.find_quiz_by_id(quiz_id)
            if quiz is not None and quiz.is_shared_with(email):
                quizzes.append(quiz)
        quizzes.sort(key=lambda q: q.created_at, reverse=True)
        return quizzes

    async def delete_quiz(self, quiz_id: str) -> None:
        """Remove quiz do store."""
        await self.kv.delete(self._state_key(quiz_id))
        logger.info(f"Quiz deletado: {quiz_id}")
