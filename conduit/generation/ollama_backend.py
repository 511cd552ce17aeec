"""
Ollama backend for local LLM inference.

Implements InferenceBackend against the Ollama REST API
(``/api/chat``, ``/api/embed``, ``/api/tags``).
"""

import json
import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence

import numpy as np
import requests

from conduit.errors import InferenceUnavailableError
from conduit.generation.backend import (
    ChatTurn,
    ContextNote,
    GeneratedReply,
    GenerationConfig,
    InferenceBackend,
    estimate_tokens,
)


logger = logging.getLogger(__name__)


class OllamaBackend(InferenceBackend):
    """
    Backend that uses Ollama for local chat and embeddings.

    Ollama must be running locally (default: http://localhost:11434).
    Reachability is checked per request, not at construction, so the
    server can start before Ollama does.
    """

    def __init__(
        self,
        chat_model: str = "llama3",
        embed_model: str = "nomic-embed-text",
        base_url: str = "http://localhost:11434",
        timeout: int = 60,
    ):
        """
        Initialize Ollama backend.

        Args:
            chat_model: Ollama model used for chat (e.g., "llama3", "mistral")
            embed_model: Ollama model used for embeddings
            base_url: Ollama API base URL
            timeout: Request timeout in seconds
        """
        self.chat_model = chat_model
        self.embed_model = embed_model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def is_available(self) -> bool:
        """Check if Ollama server is running."""
        try:
            response = requests.get(f"{self.base_url}/api/tags", timeout=5)
            return response.status_code == 200
        except requests.exceptions.RequestException:
            return False

    def _payload(
        self,
        messages: Sequence[ChatTurn],
        config: Optional[GenerationConfig],
        context: Optional[Sequence[ContextNote]],
        stream: bool,
    ) -> Dict[str, Any]:
        chat = [{"role": m.role, "content": m.content} for m in messages]
        if context:
            notes = "\n\n".join(f"## {note.title}\n{note.content}" for note in context)
            chat.insert(0, {
                "role": "system",
                "content": f"The user has saved these notes:\n\n{notes}",
            })

        options: Dict[str, Any] = {}
        if config is not None:
            if config.temperature is not None:
                options["temperature"] = config.temperature
            if config.top_p is not None:
                options["top_p"] = config.top_p
            if config.max_tokens is not None:
                options["num_predict"] = config.max_tokens

        return {
            "model": self.chat_model,
            "messages": chat,
            "stream": stream,
            "options": options,
        }

    def _post(self, path: str, payload: Dict[str, Any], stream: bool = False) -> requests.Response:
        try:
            response = requests.post(
                f"{self.base_url}{path}",
                json=payload,
                timeout=self.timeout,
                stream=stream,
            )
        except requests.exceptions.Timeout as exc:
            logger.warning("Ollama request to %s timed out after %ss", path, self.timeout)
            raise InferenceUnavailableError(
                f"Ollama request timed out after {self.timeout}s"
            ) from exc
        except requests.exceptions.RequestException as exc:
            logger.warning("Ollama request to %s failed: %s", path, exc)
            raise InferenceUnavailableError(
                f"Ollama not reachable at {self.base_url}"
            ) from exc

        if response.status_code != 200:
            logger.warning(
                "Ollama API %s returned status %s: %s", path, response.status_code, response.text
            )
            raise InferenceUnavailableError(
                f"Ollama API returned status {response.status_code}"
            )
        return response

    def chat(
        self,
        messages: Sequence[ChatTurn],
        config: Optional[GenerationConfig] = None,
        context: Optional[Sequence[ContextNote]] = None,
    ) -> GeneratedReply:
        """
        Generate a reply using Ollama (non-streaming).

        Raises:
            InferenceUnavailableError: If Ollama is unreachable or fails
        """
        response = self._post("/api/chat", self._payload(messages, config, context, stream=False))
        try:
            result = response.json()
            text = result["message"]["content"]
        except (ValueError, KeyError, TypeError) as exc:
            raise InferenceUnavailableError("Ollama returned an unexpected response") from exc

        return GeneratedReply(
            text=text,
            model_used=self.chat_model,
            prompt_tokens=result.get("prompt_eval_count")
            or sum(estimate_tokens(m.content) for m in messages),
            completion_tokens=result.get("eval_count") or estimate_tokens(text),
            finish_reason="length" if result.get("done_reason") == "length" else "stop",
        )

    def stream(
        self,
        messages: Sequence[ChatTurn],
        config: Optional[GenerationConfig] = None,
        context: Optional[Sequence[ContextNote]] = None,
    ) -> Iterator[str]:
        """
        Stream reply chunks from Ollama as they are generated.

        Raises:
            InferenceUnavailableError: If Ollama is unreachable or fails
        """
        response = self._post(
            "/api/chat", self._payload(messages, config, context, stream=True), stream=True
        )
        try:
            # NDJSON stream
            for line in response.iter_lines():
                if not line:
                    continue
                try:
                    chunk = json.loads(line)
                except json.JSONDecodeError:
                    logger.debug("Skipping malformed Ollama stream line: %r", line)
                    continue

                token = chunk.get("message", {}).get("content", "")
                if token:
                    yield token
                if chunk.get("done", False):
                    break
        except requests.exceptions.RequestException as exc:
            logger.warning("Ollama streaming failed: %s", exc)
            raise InferenceUnavailableError("Ollama streaming failed") from exc
        finally:
            response.close()

    def embed(self, texts: Sequence[str], model: Optional[str] = None) -> np.ndarray:
        """
        Embed texts with the configured Ollama embedding model.

        ``model`` is the catalog id the caller asked for; Ollama always
        uses ``self.embed_model``.

        Raises:
            InferenceUnavailableError: If Ollama is unreachable or fails
        """
        response = self._post("/api/embed", {"model": self.embed_model, "input": list(texts)})
        try:
            vectors = np.asarray(response.json()["embeddings"], dtype=np.float32)
        except (ValueError, KeyError, TypeError) as exc:
            raise InferenceUnavailableError("Ollama returned an unexpected response") from exc

        if vectors.ndim != 2 or vectors.shape[0] != len(texts):
            raise InferenceUnavailableError("Ollama returned the wrong number of embeddings")
        return vectors

    def available_models(self) -> List[str]:
        """
        Get list of available Ollama models.

        Returns:
            List of model names (empty if Ollama is unreachable)
        """
        try:
            response = requests.get(f"{self.base_url}/api/tags", timeout=5)
            if response.status_code == 200:
                data = response.json()
                return [model["name"] for model in data.get("models", [])]
            return []
        except (requests.exceptions.RequestException, ValueError, KeyError):
            return []

    def __repr__(self) -> str:
        return f"OllamaBackend(chat_model='{self.chat_model}', base_url='{self.base_url}')"
