"""
Exception hierarchy shared by the store, the inference backends and the API.

Each class is one failure kind. The API layer maps every kind to exactly
one status/error-body pair (see conduit.api.errors).
"""

from typing import Optional


class ConduitError(Exception):
    """Base class for all expected Conduit failures."""


class InvalidRequestError(ConduitError):
    """Malformed or missing required input (the caller's fault)."""

    def __init__(self, message: str, param: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.param = param


class MemoryNotFoundError(ConduitError):
    """An identifier does not resolve to any memory record."""

    def __init__(self, memory_id: str):
        super().__init__(f"Memory not found: {memory_id}")
        self.memory_id = memory_id


class MemoryDecodeError(ConduitError):
    """A stored record could not be parsed back into a MemoryRecord."""


class MemoryWriteError(ConduitError):
    """A durable write to the store did not complete."""


class InferenceUnavailableError(ConduitError):
    """The inference capability is absent or failed."""
