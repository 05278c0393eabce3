import json
import logging
from typing import Any, List, Optional

from pydantic import ValidationError

from videoquiz.core.config import settings
from videoquiz.core.errors import DerivationFailure, MalformedDerivationOutput
from videoquiz.core.openai_client import get_openai_client
from videoquiz.models.schemas import QuizQuestion
from videoquiz.prompts.loader import get_system_prompt, get_user_prompt

logger = logging.getLogger(__name__)

OPTIONS_PER_QUESTION = 4


def _safe_json_loads(raw: str) -> Any:
    """Parse the LLM output as JSON; if that fails, try the first {...} block. Raises MalformedDerivationOutput otherwise."""
    raw = (raw or "").strip()
    if not raw:
        raise MalformedDerivationOutput("Quiz provider returned an empty response")
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        start = raw.find("{")
        end = raw.rfind("}")
        if start != -1 and end != -1 and end > start:
            try:
                return json.loads(raw[start : end + 1])
            except json.JSONDecodeError:
                pass
    raise MalformedDerivationOutput("Quiz provider returned invalid JSON")


def parse_quiz(raw: str, expected: int) -> List[QuizQuestion]:
    """Validate raw provider output into exactly `expected` questions.
    Accepts {"questions": [...]} or a bare list. Extra questions are dropped; fewer, or any invalid one, is malformed."""
    data = _safe_json_loads(raw)
    items = data.get("questions") if isinstance(data, dict) else data
    if not isinstance(items, list):
        raise MalformedDerivationOutput("Quiz output has no question list")

    questions: List[QuizQuestion] = []
    for i, item in enumerate(items[:expected]):
        try:
            questions.append(QuizQuestion.model_validate(item))
        except ValidationError as e:
            raise MalformedDerivationOutput(f"Quiz question {i} is invalid: {e.error_count()} error(s)") from e

    if len(questions) < expected:
        raise MalformedDerivationOutput(f"Quiz has {len(questions)} questions, expected {expected}")
    return questions


def rebalance_correct_indices(questions: List[QuizQuestion]) -> List[QuizQuestion]:
    """If every question has the same correct_index, move question i's correct option to position i % 4.
    Options keep their relative order otherwise. Quizzes with varied indices, or fewer than two questions, are returned unchanged."""
    if len(questions) < 2 or len({q.correct_index for q in questions}) > 1:
        return questions

    out: List[QuizQuestion] = []
    for i, q in enumerate(questions):
        target = i % OPTIONS_PER_QUESTION
        options = list(q.options)
        correct = options.pop(q.correct_index)
        options.insert(target, correct)
        out.append(QuizQuestion(question=q.question, options=options, correct_index=target))
    return out


def generate_quiz(transcript: str, num_questions: int, client: Optional[Any] = None) -> List[QuizQuestion]:
    """Ask the chat model for a fixed-size multiple-choice quiz over the transcript.
    Provider errors raise DerivationFailure; unusable output raises MalformedDerivationOutput."""
    try:
        oc = client or get_openai_client()
        system_prompt = get_system_prompt("quiz")
        user_msg = (
            get_user_prompt("quiz")
            .replace("<<NUM_QUESTIONS>>", str(num_questions))
            .replace("<<TRANSCRIPT>>", transcript)
        )
        resp = oc.chat.completions.create(
            model=settings.chat_model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_msg},
            ],
            temperature=0.3,
            response_format={"type": "json_object"},
        )
        raw = resp.choices[0].message.content or ""
    except Exception as e:
        raise DerivationFailure(f"Quiz generation failed: {e}") from e

    questions = rebalance_correct_indices(parse_quiz(raw, num_questions))
    logger.info("quiz_generated questions=%d", len(questions))
    return questions
