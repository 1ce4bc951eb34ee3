"""
Custom exception hierarchy for the chess arena core and server.

Provides typed errors that can be handled consistently across
the rules adapter, matchmaking, session coordination and the API layer.
"""


class ChessArenaError(Exception):
    """Base exception for all room and game related errors."""


class RoomNotFoundError(ChessArenaError):
    """Room does not exist in the room table."""


class RoomFullError(ChessArenaError):
    """Room already has both player slots occupied."""


class InvalidMoveError(ChessArenaError):
    """Move is illegal, out of turn, or refers to malformed squares."""


class SuggestionServiceError(ChessArenaError):
    """Move suggestion service communication failed."""


class ValidationError(ChessArenaError):
    """Input validation failed."""
