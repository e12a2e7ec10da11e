"""Answer Matcher - Normalizacao e comparacao de respostas objetivas."""

from __future__ import annotations

import re
import string
from collections.abc import Sequence

_WHITESPACE_RE = re.compile(r"\s+")

# "b", "b)", "(b)", "b." -> "b"
_LETTER_RE = re.compile(r"^\(?([a-z])[).:]?$")


class AnswerMatcher:
    """Compara respostas objetivas aceitando letra ou texto da alternativa.

    O instrutor pode cadastrar a resposta como letra ("B") ou como o texto
    da alternativa ("Paris"); o aluno pode responder em qualquer das duas
    formas. A letra e resolvida pela posicao na lista de alternativas.

    Example:
        >>> AnswerMatcher.matches("B", "Paris", ["London", "Paris", "Rome"])
        True
        >>> AnswerMatcher.matches(" paris ", "PARIS", [])
        True
    """

    @staticmethod
    def normalize(text: str | None) -> str:
        """Case-fold, trim e colapso de espacos internos."""
        if text is None:
            return ""
        return _WHITESPACE_RE.sub(" ", str(text)).strip().casefold()

    @classmethod
    def letter_map(cls, options: Sequence[str]) -> dict[str, str]:
        """Mapeia letra -> texto normalizado da alternativa ('a' -> opcao 0)."""
        letters = string.ascii_lowercase
        return {letters[i]: cls.normalize(opt) for i, opt in enumerate(options[: len(letters)])}

    @classmethod
    def resolve_letter(cls, normalized: str, options: Sequence[str]) -> str | None:
        """Texto normalizado da alternativa se ``normalized`` for uma letra valida."""
        match = _LETTER_RE.match(normalized)
        if not match:
            return None
        return cls.letter_map(options).get(match.group(1))

    @classmethod
    def matches(cls, student_raw: str | None, correct_raw: str | None, options: Sequence[str] | None = None) -> bool:
        """Verifica se a resposta do aluno corresponde a resposta canonica."""
        student = cls.normalize(student_raw)
        correct = cls.normalize(correct_raw)

        if student == correct:
            return True

        if not options:
            return False

        correct_text = cls.resolve_letter(correct, options)
        if correct_text is not None and student == correct_text:
            return True

        student_text = cls.resolve_letter(student, options)
        if student_text is not None and student_text == correct:
            return True

        return False
