"""
Integration tests for the memory lifecycle over HTTP.

Runs the full app against a real directory: files on disk are the
source of truth, survive an app restart and pick up hand edits.
"""

from fastapi.testclient import TestClient

from conduit.api.main import create_app
from conduit.memory.codec import decode


def test_end_to_end_example(client, settings):
    created = client.post("/api/memories", json={"title": "Note A", "content": "hello world", "tags": ["x"]})
    assert created.status_code == 201
    memory_id = created.json()["id"]

    path = settings.memory_dir / f"{memory_id}.md"
    assert path.is_file()
    text = path.read_text(encoding="utf-8")
    assert text.startswith("---\n")
    assert text.endswith("\n---\n\nhello world")

    fetched = client.get(f"/api/memories/{memory_id}").json()
    assert fetched["title"] == "Note A"
    assert fetched["content"] == "hello world"
    assert fetched["tags"] == ["x"]
    assert fetched["created_at"] == fetched["updated_at"]

    assert client.delete(f"/api/memories/{memory_id}").status_code == 204
    assert client.get(f"/api/memories/{memory_id}").status_code == 404
    assert not path.exists()


def test_memories_survive_restart(settings):
    with TestClient(create_app(settings)) as first:
        memory = first.post("/v1/memories", json={"title": "Persisted", "content": "still here"}).json()

    with TestClient(create_app(settings)) as second:
        assert second.get(f"/v1/memories/{memory['id']}").json() == memory
        assert [m["id"] for m in second.get("/v1/memories").json()] == [memory["id"]]


def test_hand_edit_is_visible(client, settings):
    memory = client.post("/api/memories", json={"title": "Before", "content": "old body"}).json()
    path = settings.memory_dir / f"{memory['id']}.md"

    text = path.read_text(encoding="utf-8")
    path.write_text(text.replace("title: Before", "title: After").replace("old body", "new body"), encoding="utf-8")

    fetched = client.get(f"/api/memories/{memory['id']}").json()
    assert fetched["title"] == "After"
    assert fetched["content"] == "new body"
    found = client.post("/api/memories/search", json={"query": "NEW BODY"}).json()
    assert [m["id"] for m in found] == [memory["id"]]


def test_corrupt_file_does_not_break_collection(client, settings):
    good = client.post("/api/memories", json={"title": "Good", "content": "ok"}).json()
    bad = client.post("/api/memories", json={"title": "Bad", "content": "ok"}).json()
    bad_path = settings.memory_dir / f"{bad['id']}.md"
    bad_path.write_text(bad_path.read_text(encoding="utf-8").replace("---\n", "", 1), encoding="utf-8")

    listed = client.get("/api/memories")
    searched = client.post("/api/memories/search", json={"query": "ok"})

    assert listed.status_code == 200
    assert [m["id"] for m in listed.json()] == [good["id"]]
    assert [m["id"] for m in searched.json()] == [good["id"]]
    assert client.get(f"/api/memories/{bad['id']}").status_code == 404


def test_chat_sees_memories_written_over_http(client, settings):
    client.post("/v1/memories", json={"title": "Rust ownership", "content": "borrow checker"})

    reply = client.post(
        "/v1/chat/completions",
        json={"messages": [{"role": "user", "content": "What do I know?"}]},
    ).json()

    content = reply["choices"][0]["message"]["content"]
    assert "I have access to 1 memories:\n- Rust ownership" in content
    files = list(settings.memory_dir.glob("*.md"))
    assert decode(files[0].read_text(encoding="utf-8")).title == "Rust ownership"
