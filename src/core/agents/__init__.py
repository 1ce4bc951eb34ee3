from src.core.agents.base import MoveSuggester
from src.core.agents.heuristic import HeuristicAgent
from src.core.agents.llm import LLMMoveSuggester, bot_display_name, build_suggester

__all__ = [
    "MoveSuggester",
    "HeuristicAgent",
    "LLMMoveSuggester",
    "bot_display_name",
    "build_suggester",
]
