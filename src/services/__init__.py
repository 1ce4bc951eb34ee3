"""
Application services layer.

Provides cross-cutting services used by the session server
(event logging, external integrations).
"""

from .game_logger import GameLogger

__all__ = ["GameLogger"]
