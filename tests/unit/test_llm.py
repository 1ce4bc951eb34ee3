import json

import httpx
import pytest

from src.core import rules
from src.core.agents.llm import (
    LLMMoveSuggester,
    bot_display_name,
    build_suggester,
    extract_move,
    game_phase,
)
from src.core.exceptions import SuggestionServiceError
from src.core.types import Skill
from src.settings import LLMProvider, LLMSettings


def _suggester(handler, **overrides) -> LLMMoveSuggester:
    settings = LLMSettings(api_key="test-key", **overrides)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return LLMMoveSuggester(settings, client=client)


def test_extract_move():
    legal = ["e4", "Nf3", "O-O"]
    assert extract_move("e4", legal) == "e4"
    assert extract_move("I'll play Nf3!", legal) == "Nf3"
    assert extract_move("O-O.", legal) == "O-O"
    assert extract_move("Qxh7", legal) is None
    assert extract_move("", legal) is None


def test_game_phase():
    assert game_phase(1) == "opening"
    assert game_phase(18) == "middlegame"
    assert game_phase(40) == "endgame"


def test_bot_display_name():
    assert bot_display_name(Skill.HARD, llm_enabled=True) == "AI (hard)"
    assert bot_display_name(Skill.EASY, llm_enabled=False) == "Bot (easy)"


def test_build_suggester_requires_key():
    assert build_suggester(LLMSettings(api_key=None)) is None
    assert isinstance(build_suggester(LLMSettings(api_key="k")), LLMMoveSuggester)


def test_base_url_defaults_per_provider():
    assert LLMSettings(provider="anthropic").base_url == "https://api.anthropic.com/v1"
    assert LLMSettings(provider="openai").base_url == "https://api.openai.com/v1"
    assert LLMSettings(provider="ollama", base_url="http://gpu:11434/v1").base_url == "http://gpu:11434/v1"


@pytest.mark.asyncio
async def test_anthropic_request_and_reply():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"content": [{"type": "text", "text": "I'll play e4."}]})

    suggester = _suggester(handler, provider=LLMProvider.ANTHROPIC)
    board = rules.new_position()
    move = await suggester.suggest_move(board, rules.legal_moves(board), Skill.HARD, 300)

    assert move == "e4"
    assert seen["url"] == "https://api.anthropic.com/v1/messages"
    assert seen["headers"]["x-api-key"] == "test-key"
    assert "anthropic-version" in seen["headers"]
    prompt = seen["body"]["messages"][0]["content"]
    assert "You are playing chess as White" in prompt
    assert "Available moves:" in prompt
    assert "Difficulty: hard" in prompt
    await suggester.client.aclose()


@pytest.mark.asyncio
async def test_openai_compatible_reply():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith("/chat/completions")
        assert request.headers["authorization"] == "Bearer test-key"
        return httpx.Response(200, json={"choices": [{"message": {"content": "Nf6"}}]})

    suggester = _suggester(handler, provider=LLMProvider.OPENAI)
    board = rules.apply_move(rules.new_position(), rules.MoveRequest("e2", "e4"))
    move = await suggester.suggest_move(board, rules.legal_moves(board), Skill.MEDIUM, 120)
    assert move == "Nf6"
    await suggester.client.aclose()


@pytest.mark.asyncio
async def test_http_error_becomes_suggestion_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "boom"})

    suggester = _suggester(handler)
    board = rules.new_position()
    with pytest.raises(SuggestionServiceError):
        await suggester.suggest_move(board, rules.legal_moves(board), Skill.EASY, 60)
    await suggester.client.aclose()


@pytest.mark.asyncio
async def test_reply_without_legal_move_is_an_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"content": [{"type": "text", "text": "Resign"}]})

    suggester = _suggester(handler)
    board = rules.new_position()
    with pytest.raises(SuggestionServiceError):
        await suggester.suggest_move(board, rules.legal_moves(board), Skill.EASY, 60)
    await suggester.client.aclose()


@pytest.mark.asyncio
async def test_malformed_payload_is_an_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": []})

    suggester = _suggester(handler, provider=LLMProvider.OPENAI)
    board = rules.new_position()
    with pytest.raises(SuggestionServiceError):
        await suggester.suggest_move(board, rules.legal_moves(board), Skill.EASY, 60)
    await suggester.client.aclose()


@pytest.mark.asyncio
async def test_analyze_position():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"content": [{"type": "text", "text": "Black is winning."}]})

    suggester = _suggester(handler)
    assert await suggester.analyze_position(rules.serialize(rules.new_position())) == "Black is winning."
    await suggester.client.aclose()
