"""Quiz Grading Engine - Motor de correcao de tentativas."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..errors import DependencyDegraded
from ..llm.grader import SemanticGrader
from ..models.enums import QuestionKind
from ..models.schemas import AnswerRecord, AnswerSubmission, GradingResult, QuestionSpec
from .matcher import AnswerMatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObjectiveItem:
    """Questao objetiva pareada com a resposta do aluno."""

    question: QuestionSpec
    student_answer: str

    @property
    def options(self) -> list[str]:
        return self.question.options


@dataclass(frozen=True)
class FreeTextItem:
    """Questao aberta pareada com a resposta do aluno."""

    question: QuestionSpec
    student_answer: str

    @property
    def canonical_answer(self) -> str:
        return self.question.answer


GradableItem = ObjectiveItem | FreeTextItem


def bind_answer(question: QuestionSpec, student_answer: str) -> GradableItem:
    """Cria o item tipado conforme o tipo da questao."""
    if question.kind is QuestionKind.OBJECTIVE:
        return ObjectiveItem(question, student_answer)
    if question.kind is QuestionKind.FREE_TEXT:
        return FreeTextItem(question, student_answer)
    raise ValueError(f"Tipo de questao nao suportado: {question.kind!r}")


class QuizGradingEngine:
    """Motor de correcao unico para todos os fluxos de envio.

    - Objetivas: AnswerMatcher, pontuacao cheia ou zero (deterministico).
    - Abertas: avaliador semantico externo com timeout; qualquer falha
      zera apenas a questao e registra feedback explicativo.

    O teto (``max_marks``) e recalculado a partir das questoes em vez de
    confiar no total gravado no quiz.

    Example:
        >>> engine = QuizGradingEngine(grader, timeout=3.0)
        >>> result = await engine.grade_attempt(quiz.questions, answers)
        >>> result.total_marks, result.percentage
    """

    MATCH_FEEDBACK = "Optimal response."
    MISMATCH_FEEDBACK = "Response mismatch."
    EMPTY_FEEDBACK = "No answer provided."
    DEGRADED_FEEDBACK = "Grading could not be completed for this answer."

    def __init__(self, grader: SemanticGrader | None = None, timeout: float = 3.0):
        """Inicializa engine.

        Args:
            grader: Avaliador semantico (None = toda questao aberta degrada)
            timeout: Limite em segundos por chamada ao avaliador
        """
        self.grader = grader
        self.timeout = timeout

    async def grade_attempt(
        self,
        questions: Sequence[QuestionSpec],
        submitted_answers: Iterable[AnswerSubmission],
    ) -> GradingResult:
        """Corrige todas as questoes na ordem do quiz.

        Args:
            questions: Questoes do quiz
            submitted_answers: Respostas do aluno (ausencia = resposta vazia)

        Returns:
            GradingResult com registros por questao, total, teto e percentual
        """
        by_question = {a.question_id: a.answer for a in submitted_answers}

        results: list[AnswerRecord] = []
        total_marks = 0.0
        max_marks = 0.0

        for question in questions:
            item = bind_answer(question, by_question.get(question.id, ""))
            record = await self.grade_item(item)
            logger.debug(
                f"Questao {question.id}: {'correta' if record.is_correct else 'errada'} (+{record.marks})"
            )
            results.append(record)
            total_marks += record.marks
            max_marks += question.marks

        return GradingResult(
            results=results,
            total_marks=total_marks,
            max_marks=max_marks,
            percentage=self.calculate_percentage(total_marks, max_marks),
        )

    async def grade_item(self, item: GradableItem) -> AnswerRecord:
        if isinstance(item, ObjectiveItem):
            return self.grade_objective(item)
        if isinstance(item, FreeTextItem):
            return await self.grade_free_text(item)
        raise TypeError(f"Item de correcao desconhecido: {type(item).__name__}")

    def grade_objective(self, item: ObjectiveItem) -> AnswerRecord:
        """Corrige questao objetiva (sem I/O, deterministico)."""
        question = item.question
        is_correct = AnswerMatcher.matches(item.student_answer, question.answer, item.options)
        feedback = question.explanation or (self.MATCH_FEEDBACK if is_correct else self.MISMATCH_FEEDBACK)
        return self._record(question, item.student_answer, is_correct, question.marks if is_correct else 0, feedback)

    async def grade_free_text(self, item: FreeTextItem) -> AnswerRecord:
        """Corrige questao aberta via avaliador semantico, degradando em falha."""
        question = item.question

        if not AnswerMatcher.normalize(item.student_answer):
            return self._record(question, item.student_answer, False, 0, self.EMPTY_FEEDBACK)

        try:
            if self.grader is None:
                raise DependencyDegraded("No semantic grader configured")
            grade = await asyncio.wait_for(
                self.grader.grade_free_text(
                    question.prompt,
                    item.canonical_answer,
                    item.student_answer,
                    question.marks,
                ),
                timeout=self.timeout,
            )
        except Exception as e:
            # Falha externa nunca aborta o envio: zera so esta questao
            logger.warning(f"Correcao semantica degradada na questao {question.id}: {e!r}")
            return self._record(question, item.student_answer, False, 0, self.DEGRADED_FEEDBACK)

        marks = min(max(grade.marks, 0.0), question.marks)
        return self._record(question, item.student_answer, grade.is_correct, marks, grade.feedback)

    @staticmethod
    def calculate_percentage(total_marks: float, max_marks: float) -> float:
        return (total_marks / max_marks * 100) if max_marks > 0 else 0.0

    @staticmethod
    def _record(
        question: QuestionSpec,
        student_answer: str,
        is_correct: bool,
        marks: float,
        feedback: str,
    ) -> AnswerRecord:
        return AnswerRecord(
            question_id=question.id,
            prompt=question.prompt,
            kind=question.kind,
            options=list(question.options),
            student_answer=student_answer,
            correct_answer=question.answer,
            is_correct=is_correct,
            marks=marks,
            explanation=question.explanation or feedback,
            feedback=feedback,
        )
