"""
Conduit: local-first OpenAI-shaped API backed by a markdown memory store.

Provides:
- A file-per-record memory store with atomic writes
- A pluggable inference capability (deterministic stub or Ollama)
- FastAPI routes for models, chat completions, embeddings and memory CRUD
"""

__version__ = "0.1.0"
