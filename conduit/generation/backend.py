"""Inference capability interface and the deterministic stub backend."""
from __future__ import annotations

import hashlib
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, List, Optional, Sequence

import numpy as np

if TYPE_CHECKING:
    from conduit.config.settings import Settings


logger = logging.getLogger(__name__)


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters, rounded up."""
    return math.ceil(len(text) / 4)


@dataclass
class ChatTurn:
    """One role-tagged message handed to a backend."""
    role: str
    content: str


@dataclass
class ContextNote:
    """A memory offered to the backend as background for a chat reply."""
    title: str
    content: str = ""


@dataclass
class GenerationConfig:
    """Configuration for text generation."""
    model: str = "gpt-3.5-turbo"
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None


@dataclass
class GeneratedReply:
    """Container for a generated reply with usage metadata."""
    text: str
    model_used: str
    prompt_tokens: int
    completion_tokens: int
    finish_reason: str = "stop"

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class InferenceBackend(ABC):
    """Abstract base class for inference backends."""

    @abstractmethod
    def chat(
        self,
        messages: Sequence[ChatTurn],
        config: Optional[GenerationConfig] = None,
        context: Optional[Sequence[ContextNote]] = None,
    ) -> GeneratedReply:
        """Produce a reply to the conversation."""

    @abstractmethod
    def embed(self, texts: Sequence[str], model: Optional[str] = None) -> np.ndarray:
        """Embed each text; returns a float32 array of shape (len(texts), dim)."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the backend is available and ready to use."""

    def stream(
        self,
        messages: Sequence[ChatTurn],
        config: Optional[GenerationConfig] = None,
        context: Optional[Sequence[ContextNote]] = None,
    ) -> Iterator[str]:
        """
        Stream reply chunks as they are generated.

        Default implementation: generate the full reply and split it into
        words. Override this for true streaming.

        Yields:
            Text chunks whose concatenation is the full reply
        """
        reply = self.chat(messages, config, context)
        words = reply.text.split(" ")
        for i, word in enumerate(words):
            yield word if i == len(words) - 1 else word + " "

    def available_models(self) -> List[str]:
        """Model names the backend can serve, if it can enumerate them."""
        return []


class MockBackend(InferenceBackend):
    """
    Deterministic backend used when no real model is configured.

    Chat replies echo the last message and list the memories in context.
    Embeddings are unit-length vectors seeded from a hash of the text, so
    the same text always yields the same vector.
    """

    def __init__(self, embedding_dim: int = 64):
        if embedding_dim < 1:
            raise ValueError("embedding_dim must be positive")
        self.embedding_dim = embedding_dim

    def chat(
        self,
        messages: Sequence[ChatTurn],
        config: Optional[GenerationConfig] = None,
        context: Optional[Sequence[ContextNote]] = None,
    ) -> GeneratedReply:
        config = config or GenerationConfig()
        notes = list(context or [])
        last = messages[-1].content if messages else ""

        titles = "\n".join(f"- {note.title}" for note in notes)
        text = (
            f"I received your message: '{last}'\n\n"
            f"I have access to {len(notes)} memories:\n{titles}\n\n"
            "How can I help you with these memories?"
        )

        finish_reason = "stop"
        if config.max_tokens is not None and estimate_tokens(text) > config.max_tokens:
            text = text[: config.max_tokens * 4]
            finish_reason = "length"

        return GeneratedReply(
            text=text,
            model_used=config.model,
            prompt_tokens=sum(estimate_tokens(m.content) for m in messages),
            completion_tokens=estimate_tokens(text),
            finish_reason=finish_reason,
        )

    def embed(self, texts: Sequence[str], model: Optional[str] = None) -> np.ndarray:
        vectors = np.zeros((len(texts), self.embedding_dim), dtype=np.float32)
        for i, text in enumerate(texts):
            vectors[i] = self._vector_for(text)
        return vectors

    def _vector_for(self, text: str) -> np.ndarray:
        digest = hashlib.blake2b(text.encode("utf-8"), digest_size=8).digest()
        rng = np.random.default_rng(int.from_bytes(digest, "little"))
        vector = rng.standard_normal(self.embedding_dim)
        return (vector / np.linalg.norm(vector)).astype(np.float32)

    def is_available(self) -> bool:
        """Mock backend is always available."""
        return True

    def __repr__(self) -> str:
        return f"MockBackend(embedding_dim={self.embedding_dim})"


def create_backend(settings: "Settings") -> Optional[InferenceBackend]:
    """
    Build the inference backend selected by ``settings.inference_backend``.

    Returns:
        A backend instance, or None when inference is switched off
        ("none"); callers then answer chat/embeddings with 503.
    """
    kind = settings.inference_backend
    if kind == "none":
        logger.info("Inference disabled; chat and embeddings will return 503")
        return None

    if kind == "ollama":
        from .ollama_backend import OllamaBackend

        backend: InferenceBackend = OllamaBackend(
            chat_model=settings.ollama_chat_model,
            embed_model=settings.ollama_embed_model,
            base_url=settings.ollama_base_url,
            timeout=settings.inference_timeout,
        )
        if not backend.is_available():
            logger.warning(
                "Ollama not reachable at %s; requests will fail until it is started",
                settings.ollama_base_url,
            )
        return backend

    return MockBackend(embedding_dim=settings.stub_embedding_dim)
