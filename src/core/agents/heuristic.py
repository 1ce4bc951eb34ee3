"""Local heuristic move selection used when the suggestion service cannot help."""

import random
from typing import List, Optional

import chess

from src.core.rules import PIECE_VALUES
from src.core.types import Skill


class HeuristicAgent:
    """
    Skill-keyed move picker that never needs the network.

    - easy: uniform random legal move
    - medium: random among captures, checks and knight/bishop moves,
      otherwise random
    - hard: checkmate > check > highest-value capture > random

    Always returns a move as long as one is legal.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def choose_move(self, board: chess.Board, skill: Skill) -> Optional[str]:
        """
        Choose a move for the side to move.

        Args:
            board: Current position (not modified).
            skill: Bot skill level.

        Returns:
            The chosen move in SAN, or None when there is no legal move.
        """
        moves = list(board.legal_moves)
        if not moves:
            return None

        if skill == Skill.HARD:
            move = self._hard(board, moves)
        elif skill == Skill.MEDIUM:
            move = self._medium(board, moves)
        else:
            move = self.rng.choice(moves)
        return board.san(move)

    def _medium(self, board: chess.Board, moves: List[chess.Move]) -> chess.Move:
        tactical = [
            m for m in moves
            if board.is_capture(m)
            or board.gives_check(m)
            or board.piece_type_at(m.from_square) in (chess.KNIGHT, chess.BISHOP)
        ]
        return self.rng.choice(tactical or moves)

    def _hard(self, board: chess.Board, moves: List[chess.Move]) -> chess.Move:
        for move in moves:
            if self._is_mate(board, move):
                return move

        checks = [m for m in moves if board.gives_check(m)]
        if checks:
            return self.rng.choice(checks)

        captures = [m for m in moves if board.is_capture(m)]
        if captures:
            # Stable sort keeps generation order among equal victims
            captures.sort(key=lambda m: self._captured_value(board, m), reverse=True)
            return captures[0]

        return self.rng.choice(moves)

    @staticmethod
    def _is_mate(board: chess.Board, move: chess.Move) -> bool:
        board.push(move)
        try:
            return board.is_checkmate()
        finally:
            board.pop()

    @staticmethod
    def _captured_value(board: chess.Board, move: chess.Move) -> int:
        if board.is_en_passant(move):
            return PIECE_VALUES[chess.PAWN]
        victim = board.piece_type_at(move.to_square)
        return PIECE_VALUES.get(victim, 0) if victim else 0
