"""
Unit tests for ApiTranslator.

Tests:
- Model catalog
- Chat completion validation, memory context and usage
- Embeddings input forms
- Memory CRUD and search mapping onto the store
"""

import json
from unittest.mock import MagicMock

import pytest

from conduit.api.schemas import (
    ChatCompletionRequest,
    EmbeddingRequest,
    MemoryRequest,
    MemorySearchRequest,
)
from conduit.api.translator import ApiTranslator
from conduit.errors import (
    InferenceUnavailableError,
    InvalidRequestError,
    MemoryDecodeError,
    MemoryNotFoundError,
)
from conduit.generation.backend import MockBackend


@pytest.fixture
def translator(memory_store, settings):
    return ApiTranslator(memory_store, MockBackend(embedding_dim=8), settings)


def chat(*messages, **params):
    return ChatCompletionRequest(
        messages=[{"role": role, "content": content} for role, content in messages],
        **params,
    )


# ============================================================================
# Models
# ============================================================================

def test_list_models(translator):
    models = translator.list_models()

    assert models.object == "list"
    assert [m.id for m in models.data] == ["gpt-3.5-turbo", "text-embedding-ada-002"]
    assert all(m.owned_by == "conduit" and m.object == "model" for m in models.data)
    assert len({m.created for m in models.data}) == 1


# ============================================================================
# Chat completions
# ============================================================================

def test_chat_completion(translator, memory_store):
    memory_store.create("Rust", "ownership")

    response = translator.chat_completion(chat(("user", "hello")))

    assert response.id.startswith("chatcmpl-")
    assert response.object == "chat.completion"
    assert response.model == "gpt-3.5-turbo"
    choice = response.choices[0]
    assert choice.message.role == "assistant"
    assert "I received your message: 'hello'" in choice.message.content
    assert "- Rust" in choice.message.content
    assert choice.finish_reason == "stop"
    usage = response.usage
    assert usage.total_tokens == usage.prompt_tokens + usage.completion_tokens


def test_chat_completion_echoes_requested_model(translator):
    response = translator.chat_completion(chat(("user", "hi"), model="my-model"))
    assert response.model == "my-model"


def test_chat_context_is_most_recent_memories(translator, memory_store, settings):
    settings.chat_memory_context = 2
    old = memory_store.create("old")
    memory_store.create("middle")
    memory_store.create("newest")
    memory_store.update(old.id, "old but edited")

    content = translator.chat_completion(chat(("user", "hi"))).choices[0].message.content

    assert "I have access to 2 memories:\n- old but edited\n- newest" in content
    assert "middle" not in content


def test_chat_context_disabled(translator, memory_store, settings):
    settings.chat_memory_context = 0
    memory_store.create("hidden")

    content = translator.chat_completion(chat(("user", "hi"))).choices[0].message.content

    assert "I have access to 0 memories" in content


@pytest.mark.parametrize(
    "request_body,param",
    [
        ({}, "messages"),
        ({"messages": []}, "messages"),
        ({"messages": [{"content": "no role"}]}, "messages[0].role"),
        ({"messages": [{"role": "wizard", "content": "x"}]}, "messages[0].role"),
        ({"messages": [{"role": "user", "content": "ok"}, {"role": "user"}]}, "messages[1].content"),
        ({"messages": [{"role": "user", "content": None}]}, "messages[0].content"),
    ],
)
def test_chat_validation(settings, request_body, param):
    store = MagicMock()
    backend = MagicMock()
    translator = ApiTranslator(store, backend, settings)

    with pytest.raises(InvalidRequestError) as exc_info:
        translator.chat_completion(ChatCompletionRequest(**request_body))

    assert exc_info.value.param == param
    store.list.assert_not_called()
    backend.chat.assert_not_called()


def test_chat_without_backend(memory_store, settings):
    translator = ApiTranslator(memory_store, None, settings)

    with pytest.raises(InferenceUnavailableError):
        translator.chat_completion(chat(("user", "hi")))


def test_chat_backend_failure_propagates(memory_store, settings):
    backend = MagicMock()
    backend.chat.side_effect = InferenceUnavailableError("down")
    translator = ApiTranslator(memory_store, backend, settings)

    with pytest.raises(InferenceUnavailableError):
        translator.chat_completion(chat(("user", "hi")))


def test_stream_chat_completion(translator):
    events = list(translator.stream_chat_completion(chat(("user", "hi"), stream=True)))

    assert events[-1] == "data: [DONE]\n\n"
    chunks = [json.loads(e[len("data: "):]) for e in events[:-1]]
    assert {c["object"] for c in chunks} == {"chat.completion.chunk"}
    assert len({c["id"] for c in chunks}) == 1
    assert chunks[0]["choices"][0]["delta"] == {"role": "assistant"}
    assert chunks[-1]["choices"][0]["finish_reason"] == "stop"
    text = "".join(c["choices"][0]["delta"].get("content", "") for c in chunks)
    assert text.startswith("I received your message: 'hi'")


def test_stream_validates_before_first_event(translator):
    with pytest.raises(InvalidRequestError):
        translator.stream_chat_completion(ChatCompletionRequest(messages=[], stream=True))


def test_stream_reports_backend_failure_in_band(memory_store, settings):
    backend = MagicMock()
    backend.stream.side_effect = InferenceUnavailableError("down")
    translator = ApiTranslator(memory_store, backend, settings)

    events = list(translator.stream_chat_completion(chat(("user", "hi"), stream=True)))

    error = json.loads(events[-1][len("data: "):])
    assert error["error"]["code"] == "inference_unavailable"
    assert "data: [DONE]\n\n" not in events


# ============================================================================
# Embeddings
# ============================================================================

def test_embeddings_single_string(translator):
    response = translator.embeddings(EmbeddingRequest(input="hello world"))

    assert response.object == "list"
    assert response.model == "text-embedding-ada-002"
    assert len(response.data) == 1
    assert response.data[0].object == "embedding"
    assert len(response.data[0].embedding) == 8
    assert response.usage.prompt_tokens == 3
    assert response.usage.total_tokens == 3


def test_embeddings_list(translator):
    response = translator.embeddings(EmbeddingRequest(model="m", input=["a", "bb", "a"]))

    assert [d.index for d in response.data] == [0, 1, 2]
    assert response.data[0].embedding == response.data[2].embedding
    assert response.model == "m"


@pytest.mark.parametrize(
    "value,param",
    [(None, "input"), ("", "input"), ([], "input"), (["ok", ""], "input[1]")],
)
def test_embeddings_validation(settings, value, param):
    backend = MagicMock()
    translator = ApiTranslator(MagicMock(), backend, settings)

    with pytest.raises(InvalidRequestError) as exc_info:
        translator.embeddings(EmbeddingRequest(input=value))

    assert exc_info.value.param == param
    backend.embed.assert_not_called()


def test_embeddings_accept_whitespace_text(translator):
    response = translator.embeddings(EmbeddingRequest(input=["  ", "\n"]))

    assert len(response.data) == 2
    assert len(response.data[0].embedding) == 8


def test_embeddings_without_backend(memory_store, settings):
    with pytest.raises(InferenceUnavailableError):
        ApiTranslator(memory_store, None, settings).embeddings(EmbeddingRequest(input="x"))


def test_backend_models(settings, memory_store):
    backend = MagicMock()
    backend.available_models.return_value = ["llama3:latest"]

    assert ApiTranslator(memory_store, backend, settings).backend_models() == ["llama3:latest"]
    assert ApiTranslator(memory_store, None, settings).backend_models() == []


# ============================================================================
# Memories
# ============================================================================

def test_create_and_get_memory(translator):
    created = translator.create_memory(MemoryRequest(title="Note A", content="hello world", tags=["x"]))

    fetched = translator.get_memory(created.id)

    assert fetched == created
    assert fetched.created_at == fetched.updated_at


def test_create_memory_defaults(translator):
    created = translator.create_memory(MemoryRequest(title=""))

    assert created.title == ""
    assert created.content == ""
    assert created.tags == []


def test_create_memory_requires_title(translator, memory_store):
    with pytest.raises(InvalidRequestError) as exc_info:
        translator.create_memory(MemoryRequest(content="orphan"))

    assert exc_info.value.param == "title"
    assert memory_store.list() == []


@pytest.mark.parametrize(
    "fields,param",
    [
        ({"title": "\ud800"}, "title"),
        ({"title": "T", "content": "ok \udfff"}, "content"),
        ({"title": "T", "tags": ["fine", "\ud83d"]}, "tags[1]"),
    ],
)
def test_memory_rejects_unencodable_text(translator, memory_store, fields, param):
    existing = translator.create_memory(MemoryRequest(title="Existing"))

    for call in (
        lambda: translator.create_memory(MemoryRequest(**fields)),
        lambda: translator.update_memory(existing.id, MemoryRequest(**fields)),
    ):
        with pytest.raises(InvalidRequestError) as exc_info:
            call()
        assert exc_info.value.param == param

    assert [r.id for r in memory_store.list()] == [existing.id]
    assert memory_store.get(existing.id).title == "Existing"


def test_get_missing_memory(translator):
    with pytest.raises(MemoryNotFoundError):
        translator.get_memory("missing")


def test_get_unreadable_memory(translator, memory_store):
    created = translator.create_memory(MemoryRequest(title="T"))
    (memory_store.root / f"{created.id}.md").write_text("garbage")

    with pytest.raises(MemoryDecodeError):
        translator.get_memory(created.id)


def test_update_memory(translator):
    created = translator.create_memory(MemoryRequest(title="Draft", tags=["a"]))

    updated = translator.update_memory(created.id, MemoryRequest(title="Final", content="done"))

    assert updated.id == created.id
    assert updated.title == "Final"
    assert updated.content == "done"
    assert updated.tags == []
    assert updated.created_at == created.created_at


def test_delete_memory(translator):
    created = translator.create_memory(MemoryRequest(title="T"))

    translator.delete_memory(created.id)

    with pytest.raises(MemoryNotFoundError):
        translator.delete_memory(created.id)
    assert translator.list_memories() == []


def test_search_memories(translator):
    a = translator.create_memory(MemoryRequest(title="Rust", tags=["Lang"]))
    b = translator.create_memory(MemoryRequest(title="Python", content="rusty code", tags=["language"]))

    by_query = translator.search_memories(MemorySearchRequest(query="RUST"))
    by_tag = translator.search_memories(MemorySearchRequest(query="ignored", tag="lang"))

    assert [m.id for m in by_query] == [a.id, b.id]
    assert [m.id for m in by_tag] == [a.id]


@pytest.mark.parametrize("body", [{}, {"query": ""}, {"query": "", "tag": ""}])
def test_search_requires_query_or_tag(translator, body):
    with pytest.raises(InvalidRequestError):
        translator.search_memories(MemorySearchRequest(**body))
