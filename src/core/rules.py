"""
Rules engine adapter.

Thin functional layer over python-chess. The rest of the code base only sees
positions as opaque ``chess.Board`` objects and talks to them through this
module: legality checks, move application, terminal-state classification and
FEN (de)serialization.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import chess

from src.core.exceptions import InvalidMoveError, ValidationError
from src.core.types import Color

PIECE_VALUES = {
    chess.PAWN: 1,
    chess.KNIGHT: 3,
    chess.BISHOP: 3,
    chess.ROOK: 5,
    chess.QUEEN: 9,
    chess.KING: 0,
}

_PROMOTION_PIECES = {
    "q": chess.QUEEN,
    "r": chess.ROOK,
    "b": chess.BISHOP,
    "n": chess.KNIGHT,
}


@dataclass(frozen=True)
class MoveRequest:
    """A move as sent by a client: two square names and an optional promotion letter."""

    from_square: str
    to_square: str
    promotion: Optional[str] = None

    @property
    def uci(self) -> str:
        return f"{self.from_square}{self.to_square}{self.promotion or ''}"


def new_position() -> chess.Board:
    return chess.Board()


def legal_moves(board: chess.Board) -> List[str]:
    """All legal moves in SAN, in python-chess generation order."""
    return [board.san(move) for move in board.legal_moves]


def parse_move(board: chess.Board, request: MoveRequest) -> chess.Move:
    """
    Resolve a client move request to a legal ``chess.Move``.

    A missing promotion piece defaults to a queen, and a promotion letter
    on a move that is not a promotion is ignored.

    Raises:
        InvalidMoveError: squares are malformed or no legal move matches.
    """
    try:
        from_sq = chess.parse_square(request.from_square.strip().lower())
        to_sq = chess.parse_square(request.to_square.strip().lower())
    except (ValueError, AttributeError) as e:
        raise InvalidMoveError(f"Malformed squares: {request.from_square!r} -> {request.to_square!r}") from e

    candidates = []
    if request.promotion:
        piece = _PROMOTION_PIECES.get(request.promotion.strip().lower()[:1])
        if piece is not None:
            candidates.append(chess.Move(from_sq, to_sq, promotion=piece))
    candidates.append(chess.Move(from_sq, to_sq))
    candidates.append(chess.Move(from_sq, to_sq, promotion=chess.QUEEN))

    for move in candidates:
        if move in board.legal_moves:
            return move
    raise InvalidMoveError(f"Illegal move {request.uci} in {board.fen()}")


def apply_move(board: chess.Board, request: MoveRequest) -> chess.Board:
    """
    Return the position reached by playing ``request`` on ``board``.

    The input board is left untouched; refusal is signalled by
    ``InvalidMoveError``.
    """
    move = parse_move(board, request)
    after = board.copy()
    after.push(move)
    return after


def request_from_san(board: chess.Board, san: str) -> MoveRequest:
    """Convert a SAN move legal in ``board`` into a client-shaped move request."""
    try:
        move = board.parse_san(san)
    except ValueError as e:
        raise InvalidMoveError(f"Illegal SAN move {san!r}") from e
    promotion = chess.piece_symbol(move.promotion) if move.promotion else None
    return MoveRequest(
        from_square=chess.square_name(move.from_square),
        to_square=chess.square_name(move.to_square),
        promotion=promotion,
    )


def is_checkmate(board: chess.Board) -> bool:
    return board.is_checkmate()


def is_draw(board: chess.Board) -> bool:
    return (
        board.is_stalemate()
        or board.is_insufficient_material()
        or board.is_fifty_moves()
        or board.is_repetition(3)
    )


def is_game_over(board: chess.Board) -> bool:
    return is_checkmate(board) or is_draw(board)


def turn_to_move(board: chess.Board) -> Color:
    return Color.WHITE if board.turn == chess.WHITE else Color.BLACK


def result_message(board: chess.Board) -> str:
    """Human readable result for a finished position."""
    if is_checkmate(board):
        # The side to move is the one that got mated
        if turn_to_move(board) is Color.WHITE:
            return "Black wins by checkmate!"
        return "White wins by checkmate!"
    if is_draw(board):
        return "Game ended in a draw!"
    return ""


def serialize(board: chess.Board) -> str:
    return board.fen()


def deserialize(fen: str) -> chess.Board:
    try:
        return chess.Board(fen)
    except ValueError as e:
        raise ValidationError(f"Invalid FEN: {fen!r}") from e
