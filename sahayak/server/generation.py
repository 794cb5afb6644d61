"""Text generation through a local Ollama install.

Each request goes through an ordered list of strategies (the HTTP API first,
then `ollama run` on the command line), each with its own timeout. A strategy
that fails, times out or returns text without a usable JSON object hands over
to the next one. When every strategy has failed the caller gets an exception
and applies its own deterministic fallback; nothing here ever blocks the
session indefinitely.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Callable, List, Optional, Protocol, Sequence, TypeVar

import httpx

from ..config import Settings
from .errors import GenerationError, ResponseParseError
from .quiz_types import DoubtItem, DoubtSummary, Quiz

logger = logging.getLogger("sahayak.generation")

T = TypeVar("T")

HINT_FALLBACK = "Think about the key concepts in the question."

QUIZ_PROMPT = """Create a quiz question about "{topic}". Format your response as JSON with this exact structure:
{{
  "question": "Your question here",
  "options": ["Option A", "Option B", "Option C", "Option D"],
  "correct": 0
}}
Where "correct" is the index (0-3) of the correct answer. Return ONLY the JSON, no other text."""

DOUBTS_PROMPT = """You are analyzing student doubts from a classroom. Below are the doubts submitted by students:

{doubts}

Your task:
1. Analyze and understand each doubt
2. Identify the most critical/common concerns
3. Summarize and group similar doubts
4. Return the top 3 most critical doubts that need immediate attention

Format your response as JSON with this exact structure:
{{
  "topDoubts": [
    {{"summary": "Brief summary of the critical doubt", "count": 2, "details": "More detailed explanation"}}
  ]
}}
Return ONLY the JSON, no other text. If there are fewer than 3 unique critical doubts, return fewer items."""

HINT_PROMPT = """Question: "{question}"

Provide a Socratic reasoning hint for this question. A Socratic hint should:
- Guide the learner to think through the problem
- Ask leading questions rather than giving direct answers
- Help them reason through the concepts
- Be concise (2-3 sentences)

Provide only the hint, no additional explanation."""


# ---------- Response parsing ----------

def extract_json_object(text: str) -> dict:
    """Return the first balanced ``{...}`` object found in free text."""
    if not text:
        raise ResponseParseError("empty response")

    start = text.find("{")
    while start != -1:
        depth = 0
        in_str = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_str:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_str = False
                continue
            if ch == '"':
                in_str = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    try:
                        obj = json.loads(text[start:i + 1])
                    except ValueError as e:
                        raise ResponseParseError(f"invalid JSON object: {e}") from e
                    if not isinstance(obj, dict):
                        raise ResponseParseError("JSON value is not an object")
                    return obj
        # never closed; look for a later object
        start = text.find("{", start + 1)
    raise ResponseParseError("no JSON object in response")


def parse_quiz(data: dict) -> Quiz:
    question = data.get("question")
    if not isinstance(question, str) or not question.strip():
        raise ResponseParseError("quiz without question")
    options = data.get("options")
    if not isinstance(options, list) or len(options) != 4:
        raise ResponseParseError("quiz needs exactly 4 options")
    raw_idx = data.get("correct", data.get("correctIndex"))
    try:
        correct_idx = int(raw_idx)
    except (TypeError, ValueError) as e:
        raise ResponseParseError(f"bad correct index: {raw_idx!r}") from e
    if not 0 <= correct_idx <= 3:
        raise ResponseParseError(f"correct index out of range: {correct_idx}")
    return Quiz(
        question=question.strip(),
        options=[str(o) for o in options],
        correct_idx=correct_idx,
    )


def parse_top_doubts(data: dict) -> List[DoubtSummary]:
    items = data.get("topDoubts")
    if not isinstance(items, list) or not items:
        raise ResponseParseError("no topDoubts in response")
    try:
        summaries = [DoubtSummary.from_dict(item) for item in items[:3]]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ResponseParseError(f"malformed topDoubts entry: {e}") from e
    return summaries


def fallback_quiz(topic: str) -> Quiz:
    return Quiz(
        question=f"Quiz: {topic}",
        options=[f"Option {label} about {topic}" for label in "ABCD"],
        correct_idx=0,
    )


# ---------- Strategies ----------

class Strategy(Protocol):
    name: str

    async def complete(self, prompt: str) -> str: ...


class OllamaHTTPStrategy:
    """POST /api/generate with stream disabled."""

    name = "http"

    def __init__(self, url: str, model: str, timeout: float, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.model = model
        self.timeout = timeout
        self._client = client

    async def complete(self, prompt: str) -> str:
        payload = {"model": self.model, "prompt": prompt, "stream": False}
        try:
            if self._client is not None:
                resp = await self._client.post(self.url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.post(self.url, json=payload)
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GenerationError(f"ollama http: {e}") from e
        if not isinstance(body, dict):
            raise GenerationError("ollama http: unexpected body")
        return str(body.get("response") or "")


class OllamaCLIStrategy:
    """`ollama run <model> <prompt>` as a subprocess."""

    name = "cli"

    def __init__(self, model: str, timeout: float, executable: str = "ollama"):
        self.model = model
        self.timeout = timeout
        self.executable = executable

    async def complete(self, prompt: str) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.executable, "run", self.model, prompt,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise GenerationError(f"ollama cli: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise GenerationError(f"ollama cli: timed out after {self.timeout}s") from e

        if proc.returncode != 0:
            raise GenerationError(
                f"ollama cli: exit {proc.returncode}: {stderr.decode(errors='replace').strip()[:200]}"
            )
        return stdout.decode(errors="replace")


class TextGenerator:
    """Tries each strategy in order until one yields a parsable result."""

    def __init__(self, strategies: Sequence[Strategy]):
        if not strategies:
            raise ValueError("TextGenerator needs at least one strategy")
        self.strategies = list(strategies)

    @classmethod
    def for_model(cls, settings: Settings, model: str) -> "TextGenerator":
        strategies: List[Strategy] = [OllamaHTTPStrategy(settings.ollama_url, model, settings.http_timeout)]
        if settings.use_cli_fallback:
            strategies.append(OllamaCLIStrategy(settings.fallback_model, settings.cli_timeout))
        return cls(strategies)

    async def generate(self, prompt: str, parse: Callable[[str], T]) -> T:
        last_error: Optional[BaseException] = None
        for strategy in self.strategies:
            try:
                text = await strategy.complete(prompt)
                return parse(text)
            except (GenerationError, ResponseParseError) as e:
                logger.info(f"[generation] {strategy.name} strategy failed: {e}")
                last_error = e
        raise GenerationError(f"all strategies failed: {last_error}") from last_error


# ---------- Typed collaborators ----------

class QuizGenerator:
    def __init__(self, generator: TextGenerator):
        self.generator = generator

    async def generate(self, topic: str) -> Quiz:
        prompt = QUIZ_PROMPT.format(topic=topic)
        return await self.generator.generate(prompt, lambda text: parse_quiz(extract_json_object(text)))


class Summarizer:
    def __init__(self, generator: TextGenerator):
        self.generator = generator

    async def summarize(self, doubts: Sequence[DoubtItem]) -> List[DoubtSummary]:
        listing = "\n".join(f"{i + 1}. {d.text}" for i, d in enumerate(doubts))
        prompt = DOUBTS_PROMPT.format(doubts=listing)
        return await self.generator.generate(prompt, lambda text: parse_top_doubts(extract_json_object(text)))


def _parse_hint(text: str) -> str:
    hint = (text or "").strip()
    if not hint:
        raise ResponseParseError("empty hint")
    return hint


class HintGenerator:
    def __init__(self, generator: TextGenerator):
        self.generator = generator

    async def generate(self, question: str) -> str:
        try:
            return await self.generator.generate(HINT_PROMPT.format(question=question), _parse_hint)
        except GenerationError as e:
            logger.info(f"[generation] hint fallback: {e}")
            return HINT_FALLBACK
