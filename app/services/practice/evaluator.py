# ============================================================================
# AI Evaluator (Gemini)
# ============================================================================
"""
Hint generation and solution review backed by Gemini.

The service treats the evaluator's output as authoritative: ``correct`` and
``ai_suspected`` are passed through to the learner untouched. When Gemini is
unavailable or returns something unparseable, neutral fallback content is
returned instead of failing the request.
"""
import asyncio
import json
import logging
import re
import uuid
from typing import Any, Dict, List, Optional, Protocol

import google.generativeai as genai

from app.config import get_settings
from app.models.practice import Question

logger = logging.getLogger(__name__)
settings = get_settings()


class AIEvaluator(Protocol):
    async def generate_hint(self, context: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def evaluate_solution(
        self,
        code: str,
        question: Question,
        test_results: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        ...


FALLBACK_HINTS = [
    "Re-read the problem statement and list the inputs and the expected output.",
    "Trace your code by hand with the first example and compare each step.",
    "Check the edge cases: empty input, zero, negative numbers and large values.",
]


class GeminiEvaluator:
    """Gemini-backed hints and solution review"""

    def __init__(self, model_name: Optional[str] = None, api_key: Optional[str] = None):
        api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model_name = model_name or settings.GEMINI_MODEL
        self._model = None
        if api_key:
            genai.configure(api_key=api_key)
            self._model = genai.GenerativeModel(self.model_name)
        else:
            logger.warning("⚠️ GEMINI_API_KEY not set, AI evaluator will use fallback responses")

    # ==================== Hints ====================

    async def generate_hint(self, context: Dict[str, Any]) -> Dict[str, Any]:
        """
        Produce the next progressive hint.

        ``context`` carries the question, the hints already given and any
        learner-supplied context (current code, error message).
        """
        question = context.get("question") or {}
        previous = context.get("previous_hints") or []
        hint_id = str(uuid.uuid4())

        prompt = f"""You are a patient programming tutor. Give ONE short hint for the exercise below.
Do not reveal the solution and do not repeat an earlier hint. Each hint may be slightly more specific than the last.

Exercise ({question.get('language', 'code')}):
{question.get('stem', '')}

Hints already given:
{json.dumps(previous)}

Learner context:
{json.dumps(context.get('context') or {}, default=str)}

Respond ONLY with JSON:
{{"hint": "<the hint>", "reasoning": "<why this hint helps now>"}}"""

        data = await self._generate_json(prompt)
        if data and data.get("hint"):
            return {
                "hint": str(data["hint"]),
                "reasoning": str(data.get("reasoning", "")),
                "id": hint_id,
            }

        fallback = FALLBACK_HINTS[min(len(previous), len(FALLBACK_HINTS) - 1)]
        return {"hint": fallback, "reasoning": "General problem-solving guidance", "id": hint_id}

    # ==================== Solution Review ====================

    async def evaluate_solution(
        self,
        code: str,
        question: Question,
        test_results: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """Review a submission, taking test verdicts into account when present"""
        passed = None
        if test_results:
            passed = all(r.get("passed") for r in test_results)

        summary = [
            {"index": r.get("index"), "passed": r.get("passed"), "status": r.get("status")}
            for r in (test_results or [])
        ]
        prompt = f"""You are reviewing a learner's solution to a programming exercise.

Exercise ({question.language}):
{question.stem}

Submitted code:
```
{code}
```

Test results:
{json.dumps(summary)}

Judge correctness, give brief constructive feedback, and say whether the code looks AI-generated
rather than written by a learner.

Respond ONLY with JSON:
{{"correct": true/false, "ai_suspected": true/false, "feedback": "<feedback>", "diagnostics": {{"issues": []}}}}"""

        data = await self._generate_json(prompt)
        if data is None:
            return self._fallback_evaluation(passed)

        return {
            "correct": bool(data.get("correct", passed if passed is not None else False)),
            "ai_suspected": bool(data.get("ai_suspected", data.get("aiSuspected", False))),
            "feedback": str(data.get("feedback", "")),
            "diagnostics": data.get("diagnostics"),
        }

    @staticmethod
    def _fallback_evaluation(passed: Optional[bool]) -> Dict[str, Any]:
        if passed is None:
            feedback = "Your submission was recorded. Automated feedback is unavailable right now."
        elif passed:
            feedback = "All tests passed. Nice work!"
        else:
            feedback = "Some tests failed. Review the failing cases and try again."
        return {
            "correct": bool(passed),
            "ai_suspected": False,
            "feedback": feedback,
            "diagnostics": None,
        }

    # ==================== Gemini Plumbing ====================

    async def _generate_json(self, prompt: str) -> Optional[Dict[str, Any]]:
        """Run the prompt and parse the first JSON object in the reply"""
        if self._model is None:
            return None
        try:
            loop = asyncio.get_event_loop()
            response = await loop.run_in_executor(
                None,
                lambda: self._model.generate_content(
                    prompt,
                    generation_config=genai.types.GenerationConfig(
                        temperature=0.2,
                        max_output_tokens=800
                    )
                )
            )
            return self._parse_json(response.text)
        except Exception as e:
            logger.warning(f"Gemini generation failed: {e}")
            return None

    @staticmethod
    def _parse_json(text: str) -> Optional[Dict[str, Any]]:
        match = re.search(r'\{.*\}', text or "", re.DOTALL)
        if not match:
            return None
        try:
            data = json.loads(match.group())
        except ValueError:
            return None
        return data if isinstance(data, dict) else None
