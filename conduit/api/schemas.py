"""
Pydantic schemas for the OpenAI-shaped and memory endpoints.

Request models are deliberately lenient about presence (most fields are
Optional) so that missing or null values reach ApiTranslator, which
reports them as ``invalid_request_error`` with the offending parameter.
Wrong JSON types are still rejected by pydantic itself.
"""

from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field

from conduit.memory.schemas import MemoryRecord


# ============================================================================
# Models
# ============================================================================

class ModelCard(BaseModel):
    """One entry of the model catalog."""

    id: str = Field(..., description="Model identifier")
    object: str = Field(default="model", description="Always 'model'")
    created: int = Field(..., description="Unix timestamp")
    owned_by: str = Field(..., description="Owner label")


class ModelList(BaseModel):
    """Response model for GET /v1/models."""

    object: str = Field(default="list", description="Always 'list'")
    data: List[ModelCard] = Field(default_factory=list, description="Available models")


# ============================================================================
# Chat completions
# ============================================================================

class ChatMessageIn(BaseModel):
    """Single role-tagged message in a chat completion request."""

    role: Optional[str] = Field(default=None, description="system, user, assistant or tool")
    content: Optional[str] = Field(default=None, description="Message text")
    name: Optional[str] = Field(default=None, description="Optional participant name")


class ChatCompletionRequest(BaseModel):
    """Request model for POST /v1/chat/completions."""

    model: Optional[str] = Field(default=None, description="Model id; defaults to the configured chat model")
    messages: Optional[List[ChatMessageIn]] = Field(default=None, description="Conversation so far")
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0, description="Sampling temperature")
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0, description="Nucleus sampling mass")
    max_tokens: Optional[int] = Field(default=None, ge=1, description="Upper bound on reply tokens")
    stream: bool = Field(default=False, description="Return server-sent events instead of one JSON body")
    user: Optional[str] = Field(default=None, description="End-user identifier (ignored)")

    model_config = {
        "json_schema_extra": {
            "example": {
                "model": "gpt-3.5-turbo",
                "messages": [
                    {"role": "system", "content": "You are a helpful assistant."},
                    {"role": "user", "content": "What did I note about Rust?"},
                ],
                "temperature": 0.7,
            }
        }
    }


class ChatMessageOut(BaseModel):
    """Assistant message in a chat completion response."""

    role: str = Field(default="assistant", description="Always 'assistant'")
    content: str = Field(..., description="Generated text")


class ChatChoice(BaseModel):
    """One completion choice."""

    index: int = Field(default=0, description="Choice index")
    message: ChatMessageOut = Field(..., description="Generated message")
    finish_reason: str = Field(default="stop", description="'stop' or 'length'")


class CompletionUsage(BaseModel):
    """Estimated token usage of a chat completion."""

    prompt_tokens: int = Field(..., description="Tokens in the request messages")
    completion_tokens: int = Field(..., description="Tokens in the reply")
    total_tokens: int = Field(..., description="Sum of prompt and completion tokens")


class ChatCompletionResponse(BaseModel):
    """Response model for a non-streaming chat completion."""

    id: str = Field(..., description="Completion id, 'chatcmpl-' prefixed")
    object: str = Field(default="chat.completion", description="Always 'chat.completion'")
    created: int = Field(..., description="Unix timestamp")
    model: str = Field(..., description="Model id the request asked for")
    choices: List[ChatChoice] = Field(..., description="Generated choices")
    usage: CompletionUsage = Field(..., description="Token usage estimate")


class ChunkChoice(BaseModel):
    """One choice delta inside a streamed chunk."""

    index: int = Field(default=0, description="Choice index")
    delta: Dict[str, str] = Field(default_factory=dict, description="Incremental message fields")
    finish_reason: Optional[str] = Field(default=None, description="Set on the final chunk")


class ChatCompletionChunk(BaseModel):
    """One server-sent event of a streaming chat completion."""

    id: str = Field(..., description="Completion id shared by all chunks")
    object: str = Field(default="chat.completion.chunk", description="Always 'chat.completion.chunk'")
    created: int = Field(..., description="Unix timestamp")
    model: str = Field(..., description="Model id the request asked for")
    choices: List[ChunkChoice] = Field(..., description="Choice deltas")


# ============================================================================
# Embeddings
# ============================================================================

class EmbeddingRequest(BaseModel):
    """Request model for POST /v1/embeddings."""

    model: Optional[str] = Field(default=None, description="Model id; defaults to the configured embedding model")
    input: Optional[Union[str, List[str]]] = Field(default=None, description="Text or list of texts to embed")
    user: Optional[str] = Field(default=None, description="End-user identifier (ignored)")


class EmbeddingData(BaseModel):
    """One embedding vector."""

    object: str = Field(default="embedding", description="Always 'embedding'")
    index: int = Field(..., description="Position of the input text")
    embedding: List[float] = Field(..., description="Vector components")


class EmbeddingUsage(BaseModel):
    """Estimated token usage of an embeddings request."""

    prompt_tokens: int = Field(..., description="Tokens across all inputs")
    total_tokens: int = Field(..., description="Same as prompt_tokens")


class EmbeddingResponse(BaseModel):
    """Response model for POST /v1/embeddings."""

    object: str = Field(default="list", description="Always 'list'")
    data: List[EmbeddingData] = Field(..., description="One vector per input")
    model: str = Field(..., description="Model id the request asked for")
    usage: EmbeddingUsage = Field(..., description="Token usage estimate")


# ============================================================================
# Memories
# ============================================================================

class MemoryRequest(BaseModel):
    """Body of memory create and update."""

    title: Optional[str] = Field(default=None, description="Display title (required, may be empty)")
    content: Optional[str] = Field(default=None, description="Body text, defaults to empty")
    tags: Optional[List[str]] = Field(default=None, description="Labels, default none")

    model_config = {
        "json_schema_extra": {
            "example": {
                "title": "Note A",
                "content": "hello world",
                "tags": ["x"],
            }
        }
    }


class MemorySearchRequest(BaseModel):
    """Body of POST /memories/search."""

    query: Optional[str] = Field(default=None, description="Case-insensitive substring")
    tag: Optional[str] = Field(default=None, description="Exact tag, case-insensitive")


class MemoryResponse(BaseModel):
    """API view of a memory record."""

    id: str = Field(..., description="Memory identifier")
    title: str = Field(..., description="Display title")
    content: str = Field(..., description="Body text")
    tags: List[str] = Field(..., description="Labels")
    created_at: datetime = Field(..., description="Creation time")
    updated_at: datetime = Field(..., description="Last mutation time")

    @classmethod
    def from_record(cls, record: MemoryRecord) -> "MemoryResponse":
        return cls(
            id=record.id,
            title=record.title,
            content=record.content,
            tags=list(record.tags),
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


# ============================================================================
# Service status
# ============================================================================

class HealthResponse(BaseModel):
    """Response model for /health endpoint."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Package version")
    inference_backend: str = Field(..., description="Configured inference backend")
    components: Dict[str, bool] = Field(default_factory=dict, description="Component availability")
    backend_models: List[str] = Field(
        default_factory=list, description="Models the inference backend reports it can serve"
    )
