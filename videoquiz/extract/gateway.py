"""Text derivation gateway: the two calls the pipeline makes over a merged transcript."""
from typing import Any, List, Optional

from videoquiz.core.config import settings
from videoquiz.extract.quiz import generate_quiz
from videoquiz.extract.summarizer import summarize
from videoquiz.models.schemas import QuizQuestion


class DerivationGateway:
    """OpenAI-backed summary and quiz generation. The pipeline only depends on summarize() and make_quiz(),
    so tests swap in any object with the same two methods."""

    def __init__(self, num_questions: Optional[int] = None, client: Optional[Any] = None):
        self.num_questions = num_questions or settings.quiz_questions
        self._client = client

    def summarize(self, transcript: str) -> str:
        return summarize(transcript, client=self._client)

    def make_quiz(self, transcript: str) -> List[QuizQuestion]:
        return generate_quiz(transcript, self.num_questions, client=self._client)
