"""
RAG package — on-demand retrieval and answer generation.

AnswerService lives in learninglab.rag.answer; it is wired in
learninglab.dependencies.get_answer_service.
"""

from learninglab.rag.answer import AnswerService, build_final_prompt

__all__ = ["AnswerService", "build_final_prompt"]
