"""Quiz Enums - Tipos de questao, dificuldade e status de tentativa."""

from enum import Enum


class QuestionKind(str, Enum):
    """Tipos de questao suportados pelo motor de correcao."""

    OBJECTIVE = "objective"  # Multipla escolha / verdadeiro-falso
    FREE_TEXT = "free-text"  # Resposta aberta, corrigida pelo avaliador semantico

    @classmethod
    def _missing_(cls, value):
        # Nomes legados gravados pelo autor de quizzes
        aliases = {"mcq": cls.OBJECTIVE, "short-answer": cls.FREE_TEXT}
        if isinstance(value, str):
            return aliases.get(value.strip().lower())
        return None


class QuizDifficulty(str, Enum):
    """Niveis de dificuldade das questoes."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    MIXED = "mixed"


class AttemptStatus(str, Enum):
    """Estados do ciclo de vida de uma tentativa."""

    STARTED = "started"  # Criada, nenhum progresso salvo
    IN_PROGRESS = "in-progress"  # Progresso salvo ao menos uma vez
    SUBMITTED = "submitted"
    GRADED = "graded"
    EXPIRED = "expired"  # Tempo esgotado, detectado na proxima leitura
    BLOCKED = "blocked"  # Finalizada com motivo de violacao

    @property
    def is_live(self) -> bool:
        return self in LIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


LIVE_STATUSES = frozenset({AttemptStatus.STARTED, AttemptStatus.IN_PROGRESS})

TERMINAL_STATUSES = frozenset(
    {
        AttemptStatus.SUBMITTED,
        AttemptStatus.GRADED,
        AttemptStatus.EXPIRED,
        AttemptStatus.BLOCKED,
    }
)

# Estados terminais que impedem uma nova tentativa (expired libera o aluno)
FINALIZED_STATUSES = frozenset(
    {AttemptStatus.SUBMITTED, AttemptStatus.GRADED, AttemptStatus.BLOCKED}
)
