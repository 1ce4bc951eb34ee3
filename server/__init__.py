"""
Server package exposing the FastAPI app and the session coordinator.
"""

from .app import app  # noqa: F401
from .coordinator import SessionCoordinator  # noqa: F401
