"""
API translator: external request shapes <-> store and inference calls.

One method per logical operation. Each takes an already-parsed request
model and returns a response model, or raises a ConduitError that
conduit.api.errors turns into the external error body. No method holds a
store lock while waiting on the inference backend: context is read from
the store first, and the store call has returned before inference starts.
"""

import json
import logging
import time
import uuid
from typing import Iterator, List, Optional, Tuple

from conduit.config.settings import Settings
from conduit.errors import (
    ConduitError,
    InferenceUnavailableError,
    InvalidRequestError,
    MemoryDecodeError,
    MemoryNotFoundError,
)
from conduit.generation.backend import (
    ChatTurn,
    ContextNote,
    GenerationConfig,
    InferenceBackend,
    estimate_tokens,
)
from conduit.memory.store import MemoryStore
from .errors import classify
from .schemas import (
    ChatChoice,
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessageOut,
    ChunkChoice,
    CompletionUsage,
    EmbeddingData,
    EmbeddingRequest,
    EmbeddingResponse,
    EmbeddingUsage,
    MemoryRequest,
    MemoryResponse,
    MemorySearchRequest,
    ModelCard,
    ModelList,
)


logger = logging.getLogger(__name__)

VALID_ROLES = frozenset({"system", "user", "assistant", "tool"})

SSE_DONE = "data: [DONE]\n\n"


def _sse(payload: str) -> str:
    return f"data: {payload}\n\n"


class ApiTranslator:
    """Maps API operations onto a MemoryStore and an optional inference backend."""

    def __init__(
        self,
        store: MemoryStore,
        backend: Optional[InferenceBackend],
        settings: Settings,
    ):
        self.store = store
        self.backend = backend
        self.settings = settings
        # Catalog timestamp, fixed for the lifetime of the process
        self.created = int(time.time())

    # ------------------------------------------------------------------
    # Models
    # ------------------------------------------------------------------

    def list_models(self) -> ModelList:
        return ModelList(
            data=[
                ModelCard(id=model_id, created=self.created, owned_by=self.settings.model_owner)
                for model_id in self.settings.model_ids
            ]
        )

    # ------------------------------------------------------------------
    # Chat completions
    # ------------------------------------------------------------------

    def _require_backend(self) -> InferenceBackend:
        if self.backend is None:
            raise InferenceUnavailableError("No inference backend is configured")
        return self.backend

    def _validate_chat(self, request: ChatCompletionRequest) -> List[ChatTurn]:
        if not request.messages:
            raise InvalidRequestError("messages must be a non-empty array", param="messages")

        turns = []
        for i, message in enumerate(request.messages):
            if message.role not in VALID_ROLES:
                raise InvalidRequestError(
                    f"Invalid role {message.role!r}; expected one of {', '.join(sorted(VALID_ROLES))}",
                    param=f"messages[{i}].role",
                )
            if message.content is None:
                raise InvalidRequestError(
                    "content must not be null", param=f"messages[{i}].content"
                )
            turns.append(ChatTurn(role=message.role, content=message.content))
        return turns

    def _memory_context(self) -> List[ContextNote]:
        """Most recently updated memories, newest first."""
        limit = self.settings.chat_memory_context
        if limit <= 0:
            return []
        records = sorted(self.store.list(), key=lambda r: r.updated_at, reverse=True)
        return [ContextNote(title=r.title, content=r.content) for r in records[:limit]]

    def _prepare_chat(
        self, request: ChatCompletionRequest
    ) -> Tuple[InferenceBackend, List[ChatTurn], GenerationConfig, List[ContextNote]]:
        turns = self._validate_chat(request)
        backend = self._require_backend()
        config = GenerationConfig(
            model=request.model or self.settings.chat_model,
            temperature=request.temperature,
            top_p=request.top_p,
            max_tokens=request.max_tokens,
        )
        return backend, turns, config, self._memory_context()

    def chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        """
        Produce a single chat completion.

        Raises:
            InvalidRequestError: Empty messages, unknown role or null content
            InferenceUnavailableError: No backend, or the backend failed
        """
        backend, turns, config, context = self._prepare_chat(request)
        reply = backend.chat(turns, config, context)

        return ChatCompletionResponse(
            id=f"chatcmpl-{uuid.uuid4()}",
            created=int(time.time()),
            model=config.model,
            choices=[
                ChatChoice(
                    index=0,
                    message=ChatMessageOut(content=reply.text),
                    finish_reason=reply.finish_reason,
                )
            ],
            usage=CompletionUsage(
                prompt_tokens=reply.prompt_tokens,
                completion_tokens=reply.completion_tokens,
                total_tokens=reply.total_tokens,
            ),
        )

    def stream_chat_completion(self, request: ChatCompletionRequest) -> Iterator[str]:
        """
        Validate a streaming request and return its server-sent events.

        Validation and the store read happen here, before the first event
        is produced, so callers can still answer invalid requests with a
        plain JSON error.

        Returns:
            Iterator of ``data: ...`` lines ending with ``data: [DONE]``
        """
        backend, turns, config, context = self._prepare_chat(request)
        completion_id = f"chatcmpl-{uuid.uuid4()}"
        created = int(time.time())
        return self._stream_events(backend, turns, config, context, completion_id, created)

    def _stream_events(
        self,
        backend: InferenceBackend,
        turns: List[ChatTurn],
        config: GenerationConfig,
        context: List[ContextNote],
        completion_id: str,
        created: int,
    ) -> Iterator[str]:
        def chunk(delta, finish_reason=None) -> str:
            event = ChatCompletionChunk(
                id=completion_id,
                created=created,
                model=config.model,
                choices=[ChunkChoice(index=0, delta=delta, finish_reason=finish_reason)],
            )
            return _sse(event.model_dump_json())

        yield chunk({"role": "assistant"})
        try:
            for token in backend.stream(turns, config, context):
                yield chunk({"content": token})
        except ConduitError as exc:
            # Headers are already sent; report in-band and end the stream
            logger.warning("Chat stream %s aborted: %s", completion_id, exc)
            _, body = classify(exc)
            yield _sse(json.dumps(body))
            return
        yield chunk({}, finish_reason="stop")
        yield SSE_DONE

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    def _validate_inputs(self, request: EmbeddingRequest) -> List[str]:
        if request.input is None:
            raise InvalidRequestError("input is required", param="input")

        texts = [request.input] if isinstance(request.input, str) else list(request.input)
        if not texts:
            raise InvalidRequestError("input must not be empty", param="input")

        for i, text in enumerate(texts):
            if not text:
                param = "input" if isinstance(request.input, str) else f"input[{i}]"
                raise InvalidRequestError("input must be a non-empty string", param=param)
        return texts

    def embeddings(self, request: EmbeddingRequest) -> EmbeddingResponse:
        """
        Embed one text or a list of texts.

        Raises:
            InvalidRequestError: Missing or empty input, or an empty string in it
            InferenceUnavailableError: No backend, or the backend failed
        """
        texts = self._validate_inputs(request)
        backend = self._require_backend()
        model = request.model or self.settings.embedding_model

        vectors = backend.embed(texts, model)
        if len(vectors) != len(texts):
            raise InferenceUnavailableError(
                f"Backend returned {len(vectors)} embeddings for {len(texts)} inputs"
            )

        tokens = sum(estimate_tokens(text) for text in texts)
        return EmbeddingResponse(
            data=[
                EmbeddingData(index=i, embedding=vector.tolist())
                for i, vector in enumerate(vectors)
            ],
            model=model,
            usage=EmbeddingUsage(prompt_tokens=tokens, total_tokens=tokens),
        )

    # ------------------------------------------------------------------
    # Memories
    # ------------------------------------------------------------------

    @staticmethod
    def _memory_fields(request: MemoryRequest) -> Tuple[str, str, List[str]]:
        if request.title is None:
            raise InvalidRequestError("title is required", param="title")
        title, content, tags = request.title, request.content or "", list(request.tags or [])

        # JSON escapes can smuggle lone surrogates past parsing; files are UTF-8
        fields = [("title", title), ("content", content)]
        fields += [(f"tags[{i}]", tag) for i, tag in enumerate(tags)]
        for param, value in fields:
            try:
                value.encode("utf-8")
            except UnicodeEncodeError:
                raise InvalidRequestError(
                    f"{param} is not valid Unicode text", param=param
                ) from None
        return title, content, tags

    def create_memory(self, request: MemoryRequest) -> MemoryResponse:
        title, content, tags = self._memory_fields(request)
        record = self.store.create(title, content, tags)
        return MemoryResponse.from_record(record)

    def list_memories(self) -> List[MemoryResponse]:
        return [MemoryResponse.from_record(r) for r in self.store.list()]

    def get_memory(self, memory_id: str) -> MemoryResponse:
        """
        Fetch one memory.

        Raises:
            MemoryNotFoundError: Unknown identifier
            MemoryDecodeError: The file exists but is unreadable
        """
        try:
            record = self.store.get(memory_id)
        except MemoryNotFoundError:
            logger.debug("Memory %s not found", memory_id)
            raise
        except MemoryDecodeError as exc:
            logger.warning("Memory %s is unreadable: %s", memory_id, exc)
            raise
        return MemoryResponse.from_record(record)

    def update_memory(self, memory_id: str, request: MemoryRequest) -> MemoryResponse:
        title, content, tags = self._memory_fields(request)
        record = self.store.update(memory_id, title, content, tags)
        return MemoryResponse.from_record(record)

    def delete_memory(self, memory_id: str) -> None:
        self.store.delete(memory_id)

    def search_memories(self, request: MemorySearchRequest) -> List[MemoryResponse]:
        """
        Search by exact tag when ``tag`` is given, otherwise by substring.

        Raises:
            InvalidRequestError: Neither query nor tag is non-empty
        """
        if request.tag:
            records = self.store.search_by_tag(request.tag)
        elif request.query:
            records = self.store.search(request.query)
        else:
            raise InvalidRequestError("Provide a non-empty query or tag", param="query")
        return [MemoryResponse.from_record(r) for r in records]

    def status(self) -> dict:
        """Component availability for the health endpoint."""
        return {
            "memory_store": self.store.root.is_dir(),
            "inference": self.backend is not None and self.backend.is_available(),
        }

    def backend_models(self) -> List[str]:
        """Models installed in the inference backend, empty when it cannot say."""
        if self.backend is None:
            return []
        return self.backend.available_models()
