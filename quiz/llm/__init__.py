"""Quiz LLM - Avaliador semantico de respostas abertas."""

from .grader import HttpSemanticGrader, SemanticGrader

__all__ = ["SemanticGrader", "HttpSemanticGrader"]
