"""FastAPI dependency getters for objects built by the app factory."""

from fastapi import Request

from conduit.config.settings import Settings
from .translator import ApiTranslator


def get_translator(request: Request) -> ApiTranslator:
    """Dependency to get the API translator."""
    return request.app.state.translator


def get_app_settings(request: Request) -> Settings:
    """Dependency to get the settings the app was built with."""
    return request.app.state.settings
