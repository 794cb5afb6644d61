"""Model response parsing and the strategy chain."""
import json

import httpx
import pytest

from sahayak.config import Settings
from sahayak.server.errors import GenerationError, ResponseParseError
from sahayak.server.generation import (
    HINT_FALLBACK,
    HintGenerator,
    OllamaCLIStrategy,
    OllamaHTTPStrategy,
    QuizGenerator,
    Summarizer,
    TextGenerator,
    extract_json_object,
    fallback_quiz,
    parse_quiz,
    parse_top_doubts,
)
from sahayak.server.quiz_types import DoubtItem

QUIZ_JSON = json.dumps({
    "question": "Which gas do plants absorb?",
    "options": ["Oxygen", "Carbon dioxide", "Helium", "Neon"],
    "correct": 1,
})


class ScriptedStrategy:
    def __init__(self, name, reply=None, error=None):
        self.name = name
        self.reply = reply
        self.error = error
        self.prompts = []

    async def complete(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


# ---------- JSON extraction ----------

def test_extract_object_from_chatty_reply():
    text = f"Sure! Here is your quiz:\n```json\n{QUIZ_JSON}\n```\nGood luck."
    assert extract_json_object(text)["correct"] == 1


def test_extract_handles_braces_inside_strings():
    text = 'prefix {"question": "What does {x} mean?", "n": {"a": "}"}} suffix'
    assert extract_json_object(text) == {"question": "What does {x} mean?", "n": {"a": "}"}}


def test_extract_skips_unclosed_brace():
    # the first "{" never closes, the scan restarts at the next one
    text = '<think> {unfinished </think> {"ok": true}'
    assert extract_json_object(text) == {"ok": True}


@pytest.mark.parametrize("text", ["", "{not: json}", "just words"])
def test_extract_failures(text):
    with pytest.raises(ResponseParseError):
        extract_json_object(text)


# ---------- Shape validation ----------

def test_parse_quiz_accepts_correct_index_alias():
    quiz = parse_quiz({"question": " Q? ", "options": [1, 2, 3, 4], "correctIndex": "3"})
    assert quiz.question == "Q?"
    assert quiz.options == ["1", "2", "3", "4"]
    assert quiz.correct_idx == 3


@pytest.mark.parametrize("data", [
    {"options": ["a", "b", "c", "d"], "correct": 0},
    {"question": "q", "options": ["a", "b"], "correct": 0},
    {"question": "q", "options": ["a", "b", "c", "d"], "correct": 4},
    {"question": "q", "options": ["a", "b", "c", "d"], "correct": "first"},
])
def test_parse_quiz_rejects_bad_shapes(data):
    with pytest.raises(ResponseParseError):
        parse_quiz(data)


def test_parse_top_doubts_keeps_three():
    items = [{"summary": f"s{i}", "count": i} for i in range(5)]
    result = parse_top_doubts({"topDoubts": items})
    assert [d.summary for d in result] == ["s0", "s1", "s2"]
    with pytest.raises(ResponseParseError):
        parse_top_doubts({"topDoubts": []})


def test_fallback_quiz_template():
    quiz = fallback_quiz("Gravity")
    assert quiz.question == "Quiz: Gravity"
    assert quiz.options[2] == "Option C about Gravity"
    assert quiz.correct_idx == 0


# ---------- Strategies ----------

@pytest.mark.asyncio
async def test_http_strategy_posts_non_streaming_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"response": QUIZ_JSON, "done": True})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        strategy = OllamaHTTPStrategy("http://ollama.test/api/generate", "qwen3:1.7b", 5, client=client)
        text = await strategy.complete("make a quiz")

    assert seen["body"] == {"model": "qwen3:1.7b", "prompt": "make a quiz", "stream": False}
    assert text == QUIZ_JSON


@pytest.mark.asyncio
async def test_http_strategy_wraps_server_errors():
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
    async with httpx.AsyncClient(transport=transport) as client:
        strategy = OllamaHTTPStrategy("http://ollama.test/api/generate", "m", 5, client=client)
        with pytest.raises(GenerationError):
            await strategy.complete("x")


@pytest.mark.asyncio
async def test_cli_strategy_missing_binary():
    strategy = OllamaCLIStrategy("tinyllama", 1, executable="definitely-not-ollama-binary")
    with pytest.raises(GenerationError):
        await strategy.complete("x")


@pytest.mark.asyncio
async def test_unparsable_reply_falls_through_to_next_strategy():
    first = ScriptedStrategy("http", reply="I cannot make quizzes today.")
    second = ScriptedStrategy("cli", reply=QUIZ_JSON)
    quiz = await QuizGenerator(TextGenerator([first, second])).generate("Plants")

    assert quiz.correct_idx == 1
    assert '"Plants"' in first.prompts[0]
    assert second.prompts == first.prompts


@pytest.mark.asyncio
async def test_all_strategies_failing_raises():
    chain = TextGenerator([
        ScriptedStrategy("http", error=GenerationError("refused")),
        ScriptedStrategy("cli", reply="{}"),
    ])
    with pytest.raises(GenerationError):
        await QuizGenerator(chain).generate("Plants")


@pytest.mark.asyncio
async def test_summarizer_lists_doubts_in_prompt():
    strategy = ScriptedStrategy("http", reply='{"topDoubts": [{"summary": "Units", "count": 2}]}')
    result = await Summarizer(TextGenerator([strategy])).summarize(
        [DoubtItem("what is a newton", 0), DoubtItem("newton vs joule", 0)]
    )
    assert "1. what is a newton\n2. newton vs joule" in strategy.prompts[0]
    assert result[0].summary == "Units"
    assert result[0].details == ""


@pytest.mark.asyncio
async def test_hint_generator_falls_back_to_fixed_hint():
    chain = TextGenerator([ScriptedStrategy("http", error=GenerationError("offline"))])
    assert await HintGenerator(chain).generate("Why?") == HINT_FALLBACK

    chain = TextGenerator([ScriptedStrategy("http", reply="  What changes when light is absent?  ")])
    assert await HintGenerator(chain).generate("Why?") == "What changes when light is absent?"


def test_strategy_order_follows_settings():
    settings = Settings(use_cli_fallback=True)
    chain = TextGenerator.for_model(settings, settings.educator_model)
    assert [s.name for s in chain.strategies] == ["http", "cli"]
    assert chain.strategies[1].model == settings.fallback_model

    settings = Settings(use_cli_fallback=False)
    assert [s.name for s in TextGenerator.for_model(settings, "m").strategies] == ["http"]
