"""Pluggable inference backends for chat replies and embeddings."""

from .backend import (
    ChatTurn,
    ContextNote,
    GenerationConfig,
    GeneratedReply,
    InferenceBackend,
    MockBackend,
    create_backend,
    estimate_tokens,
)

__all__ = [
    "ChatTurn",
    "ContextNote",
    "GenerationConfig",
    "GeneratedReply",
    "InferenceBackend",
    "MockBackend",
    "create_backend",
    "estimate_tokens",
]
