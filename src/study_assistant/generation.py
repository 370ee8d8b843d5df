"""Generate study plans and quizzes with an OpenAI chat model."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from .core import load_client
from .errors import GenerationError
from .models import Quiz, StudyPlan, parse_quiz, parse_study_plan

__all__ = [
    "PROMPT_MAX_CHARS",
    "PROMPT_TRUNCATION_MARKER",
    "ArtifactGenerator",
    "build_plan_prompt",
    "build_quiz_prompt",
    "default_generator",
    "strip_code_fences",
    "truncate_for_prompt",
]

logger = logging.getLogger(__name__)

PROMPT_MAX_CHARS = 15000
PROMPT_TRUNCATION_MARKER = "\n\n[Content truncated...]"

_SYSTEM_PROMPT = (
    "You turn study material into structured learning artifacts. "
    "Reply with a single JSON object and nothing else."
)

_PLAN_SCHEMA = """{
  "title": "Study Plan Title",
  "overview": "Brief overview of what will be covered",
  "days": [
    {
      "day": 1,
      "title": "Day 1 Title",
      "topics": ["Topic 1", "Topic 2"],
      "objectives": ["Objective 1", "Objective 2"],
      "activities": ["Activity 1", "Activity 2"],
      "duration": "2-3 hours"
    }
  ],
  "tips": ["Study tip 1", "Study tip 2"]
}"""

_QUIZ_SCHEMA = """{
  "title": "Quiz Title",
  "questions": [
    {
      "id": 1,
      "type": "mcq",
      "question": "Question text?",
      "options": ["A", "B", "C", "D"],
      "correctAnswer": "A",
      "explanation": "Why this is correct"
    },
    {
      "id": 2,
      "type": "true-false",
      "question": "Statement to evaluate",
      "correctAnswer": true,
      "explanation": "Why this is true/false"
    },
    {
      "id": 3,
      "type": "short-answer",
      "question": "Question requiring a short answer?",
      "correctAnswer": "Expected answer keywords",
      "explanation": "Full explanation"
    }
  ]
}"""

_FENCE_RE = re.compile(r"```(?:json)?\n?|\n?```")


def truncate_for_prompt(content: str, limit: int = PROMPT_MAX_CHARS) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + PROMPT_TRUNCATION_MARKER


def build_plan_prompt(
    content: str, days: int, *, limit: int = PROMPT_MAX_CHARS
) -> str:
    return (
        "You are an expert study planner. Based on the following study "
        f"material, create a detailed study plan for {days} days.\n\n"
        f"STUDY MATERIAL:\n{truncate_for_prompt(content, limit)}\n\n"
        "Please create a study plan in the following JSON format:\n"
        f"{_PLAN_SCHEMA}\n\n"
        "Make the plan realistic and balanced. Include breaks and revision "
        "days if the duration allows.\n"
        "Return ONLY valid JSON, no markdown or extra text."
    )


def build_quiz_prompt(
    content: str, num_questions: int, *, limit: int = PROMPT_MAX_CHARS
) -> str:
    return (
        "You are an expert quiz creator. Based on the following study "
        f"material, create a quiz with {num_questions} questions.\n\n"
        f"STUDY MATERIAL:\n{truncate_for_prompt(content, limit)}\n\n"
        "Create a mix of question types:\n"
        "- Multiple Choice (MCQ)\n"
        "- True/False\n"
        "- Short Answer\n\n"
        "Return the quiz in the following JSON format:\n"
        f"{_QUIZ_SCHEMA}\n\n"
        "Make questions progressively harder. Test understanding, not just "
        "memorization.\n"
        "Return ONLY valid JSON, no markdown or extra text."
    )


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


class ArtifactGenerator:
    """Ask the model for a plan or quiz and validate what comes back.

    The client is created on first use, so constructing a generator never
    needs an API key.
    """

    def __init__(
        self,
        client: Any = None,
        *,
        model: str = "gpt-4o-mini",
        temperature: float = 0.2,
        max_tokens: int = 4096,
        prompt_max_chars: int = PROMPT_MAX_CHARS,
    ) -> None:
        self._client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.prompt_max_chars = prompt_max_chars

    def generate_plan(self, content: str, days: int) -> StudyPlan:
        prompt = build_plan_prompt(content, days, limit=self.prompt_max_chars)
        payload = self._request_json("plan", prompt)
        plan = parse_study_plan(payload)
        logger.info(
            "Study plan generated",
            extra={"days_requested": days, "days_returned": len(plan.days)},
        )
        return plan

    def generate_quiz(self, content: str, num_questions: int) -> Quiz:
        prompt = build_quiz_prompt(
            content, num_questions, limit=self.prompt_max_chars
        )
        payload = self._request_json("quiz", prompt)
        quiz = parse_quiz(payload)
        logger.info(
            "Quiz generated",
            extra={
                "questions_requested": num_questions,
                "questions_returned": len(quiz.questions),
            },
        )
        return quiz

    def _request_json(self, kind: str, prompt: str) -> Any:
        client = self._resolve_client()
        params: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
        }
        if "gpt-5" in self.model:
            params["max_completion_tokens"] = self.max_tokens
        else:
            params["max_tokens"] = self.max_tokens

        logger.debug("Requesting %s from %s", kind, self.model)
        try:
            response = client.chat.completions.create(**params)
            content = response.choices[0].message.content
        except Exception as exc:
            logger.warning(
                "Model request failed", exc_info=True, extra={"kind": kind}
            )
            raise GenerationError(f"Failed to generate {kind}: {exc}") from exc

        text = strip_code_fences(content or "")
        if not text:
            raise GenerationError(f"Model returned an empty {kind}.")
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            logger.warning(
                "Model reply is not valid JSON",
                extra={"kind": kind, "reply_head": text[:200]},
            )
            raise GenerationError(
                f"Model returned an unparseable {kind}: {exc.msg}"
            ) from exc

    def _resolve_client(self) -> Any:
        if self._client is None:
            try:
                self._client = load_client()
            except RuntimeError as exc:
                raise GenerationError(str(exc)) from exc
        return self._client


def default_generator(settings: Optional[Any] = None) -> ArtifactGenerator:
    """Build a generator from resolved :class:`Settings` (or defaults)."""

    if settings is None:
        return ArtifactGenerator()
    return ArtifactGenerator(
        model=settings.ai.model,
        temperature=settings.ai.temperature,
        max_tokens=settings.ai.max_tokens,
        prompt_max_chars=settings.limits.prompt_max_chars,
    )
