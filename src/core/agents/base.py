"""Base class for move suggestion services."""

from abc import ABC, abstractmethod
from typing import List, Optional

import chess

from src.core.types import Skill


class MoveSuggester(ABC):
    """
    Abstract base class for remote move suggestion services.

    Implementations are asynchronous and may fail; callers are expected to
    treat any ``SuggestionServiceError`` as "no suggestion".
    """

    @abstractmethod
    async def suggest_move(
        self,
        board: chess.Board,
        legal_moves: List[str],
        skill: Skill,
        time_remaining: Optional[int],
    ) -> str:
        """
        Suggest a move for the side to move.

        Args:
            board: Current position.
            legal_moves: Legal moves in SAN.
            skill: Requested playing strength.
            time_remaining: Seconds left on the bot's clock.

        Returns:
            One of ``legal_moves``.

        Raises:
            SuggestionServiceError: the service could not produce a legal move.
        """

    async def analyze_position(self, fen: str) -> str:
        """Short free-text assessment of a position (optional capability)."""
        return ""

    async def aclose(self) -> None:
        """Release network resources."""
