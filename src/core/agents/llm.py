"""LLM-backed move suggestion service (Anthropic Messages API or OpenAI-compatible)."""

import logging
import re
import time
from typing import Dict, List, Optional

import chess
import httpx

from src.core.agents.base import MoveSuggester
from src.core.exceptions import SuggestionServiceError
from src.core.types import Skill
from src.settings import LLMProvider, LLMSettings, get_llm_settings

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"

SKILL_INSTRUCTIONS = {
    Skill.EASY: "Play at a beginner level. Make simple moves, occasionally miss tactics. Don't look too far ahead.",
    Skill.MEDIUM: "Play at an intermediate level. Look for basic tactics, control the center, develop pieces safely.",
    Skill.HARD: "Play at an advanced level. Look for complex tactics, strategic plans, and calculate several moves ahead.",
}

SKILL_REMINDERS = {
    Skill.EASY: "Remember to play simply and make some human-like mistakes.",
    Skill.MEDIUM: "",
    Skill.HARD: "Look for the most forcing and strongest moves.",
}

_PUNCTUATION = re.compile(r"[.,!?]")


def game_phase(fullmove_number: int) -> str:
    if fullmove_number <= 10:
        return "opening"
    if fullmove_number <= 25:
        return "middlegame"
    return "endgame"


def recent_moves(board: chess.Board, count: int = 6) -> List[str]:
    """SAN of the last ``count`` moves, replayed from the root of the move stack."""
    replay = board.root()
    sans = []
    for move in board.move_stack:
        sans.append(replay.san(move))
        replay.push(move)
    return sans[-count:]


def extract_move(response: str, legal_moves: List[str]) -> Optional[str]:
    """
    Find a legal move in a free-text reply.

    Punctuation is stripped first; an exact or substring match wins, then a
    word-by-word match.
    """
    clean = _PUNCTUATION.sub("", response or "").strip()
    if not clean:
        return None

    for move in legal_moves:
        if clean == move or move in clean:
            return move

    words = set(clean.split())
    for move in legal_moves:
        if move in words:
            return move
    return None


class LLMMoveSuggester(MoveSuggester):
    """
    Move suggester that asks a language model for a move.

    Supports the Anthropic Messages API and OpenAI-compatible
    ``/chat/completions`` endpoints (OpenAI, vLLM, Ollama).

    The suggester:
    1. Builds a prompt with the position (FEN), game phase, recent moves,
       skill instructions and the list of legal SAN moves
    2. Queries the provider over HTTP
    3. Extracts a legal move from the reply
    4. Raises ``SuggestionServiceError`` on any failure so the caller can
       fall back to the local heuristic

    Configuration via environment variables (see LLMSettings in `settings.py`):
        LLM_PROVIDER, LLM_BASE_URL, LLM_MODEL, LLM_API_KEY,
        LLM_TIMEOUT_SECONDS, LLM_MAX_TOKENS
    """

    def __init__(
        self,
        settings: Optional[LLMSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the suggester.

        Args:
            settings: LLM settings (default: cached environment settings).
            client: Optional injected HTTP client (used by tests).
        """
        self.settings = settings or get_llm_settings()
        self.provider = self.settings.provider
        self.model_name = self.settings.model
        self.base_url = self.settings.base_url or ""
        self.api_key = (
            self.settings.api_key.get_secret_value() if self.settings.api_key is not None else None
        )
        self.timeout = float(self.settings.timeout_seconds)
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def suggest_move(
        self,
        board: chess.Board,
        legal_moves: List[str],
        skill: Skill,
        time_remaining: Optional[int],
    ) -> str:
        if not legal_moves:
            raise SuggestionServiceError("No legal moves to choose from")

        start_time = time.time()
        prompt = self._build_prompt(board, legal_moves, skill)
        try:
            raw_response = await self._query_llm(prompt, self.settings.max_tokens)
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise SuggestionServiceError(f"LLM request failed: {e}") from e

        move = extract_move(raw_response, legal_moves)
        processing_time_ms = int((time.time() - start_time) * 1000)
        if move is None:
            raise SuggestionServiceError(f"No legal move in LLM response: {raw_response[:100]!r}")

        logger.info(
            f"LLM suggests {move} (skill={skill.value}, time_left={time_remaining}, time={processing_time_ms}ms)"
        )
        return move

    async def analyze_position(self, fen: str) -> str:
        prompt = "\n".join([
            f"Analyze this chess position (FEN): {fen}",
            "",
            "Provide a brief analysis covering:",
            "1. Material balance",
            "2. Key tactical threats",
            "3. Strategic considerations",
            "",
            "Keep it concise (2-3 sentences).",
        ])
        try:
            return await self._query_llm(prompt, max(self.settings.max_tokens, 150))
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise SuggestionServiceError(f"LLM analysis failed: {e}") from e

    def _build_prompt(self, board: chess.Board, legal_moves: List[str], skill: Skill) -> str:
        """Build the full prompt for the LLM."""
        side = "White" if board.turn == chess.WHITE else "Black"
        history = recent_moves(board)
        prompt_parts = [
            f"You are playing chess as {side}. Current position (FEN): {board.fen()}",
            "",
            f"Game phase: {game_phase(board.fullmove_number)} (move {board.fullmove_number})",
            f"Recent moves: {', '.join(history) or 'Game start'}",
            "",
            f"Difficulty: {skill.value}",
            f"Instructions: {SKILL_INSTRUCTIONS[skill]}",
            "",
            f"Available moves: {', '.join(legal_moves)}",
            "",
            'Choose the best move and respond with ONLY the move in algebraic notation (e.g., "Nf6", "e5", "O-O").',
        ]
        if SKILL_REMINDERS[skill]:
            prompt_parts.append(SKILL_REMINDERS[skill])
        return "\n".join(prompt_parts)

    async def _query_llm(self, prompt: str, max_tokens: int) -> str:
        if self.provider == LLMProvider.ANTHROPIC:
            return await self._query_anthropic(prompt, max_tokens)
        return await self._query_openai_compatible(prompt, max_tokens)

    async def _query_anthropic(self, prompt: str, max_tokens: int) -> str:
        url = f"{self.base_url.rstrip('/')}/messages"
        payload = {
            "model": self.model_name,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "x-api-key": self.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
        }
        response = await self.client.post(url, json=payload, headers=headers, timeout=self.timeout)
        response.raise_for_status()

        result = response.json()
        blocks = result.get("content") or []
        text = "".join(b.get("text", "") for b in blocks if b.get("type") == "text").strip()
        if not text:
            raise ValueError("LLM returned empty response")
        return text

    async def _query_openai_compatible(self, prompt: str, max_tokens: int) -> str:
        url = f"{self.base_url.rstrip('/')}/chat/completions"
        payload = {
            "model": self.model_name,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": 0.3,
        }
        headers: Dict[str, str] = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        response = await self.client.post(url, json=payload, headers=headers or None, timeout=self.timeout)
        response.raise_for_status()

        result = response.json()
        if "choices" in result and len(result["choices"]) > 0:
            message = result["choices"][0].get("message", {})
            content = (message.get("content") or "").strip()
            if not content:
                raise ValueError("LLM returned empty response")
            return content

        raise ValueError("Invalid LLM response format")

    async def aclose(self) -> None:
        """Clean up resources."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


def build_suggester(settings: Optional[LLMSettings] = None) -> Optional[LLMMoveSuggester]:
    """Return a configured suggester, or None when no credential is set."""
    settings = settings or get_llm_settings()
    if not settings.enabled:
        logger.info("LLM_API_KEY not set; bots will use the local heuristic only")
        return None
    return LLMMoveSuggester(settings)


def bot_display_name(skill: Skill, llm_enabled: bool) -> str:
    return f"AI ({skill.value})" if llm_enabled else f"Bot ({skill.value})"


__all__ = [
    "LLMMoveSuggester",
    "bot_display_name",
    "build_suggester",
    "extract_move",
    "game_phase",
]
