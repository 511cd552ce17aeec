"""HTTP API: OpenAI-shaped routes and memory CRUD."""

from .main import create_app
from .translator import ApiTranslator

__all__ = ["ApiTranslator", "create_app"]
