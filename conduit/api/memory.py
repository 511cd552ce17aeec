"""
Memory API endpoints.

CRUD and search over the markdown memory store. The same router is
mounted under both ``/api`` and ``/v1``.
"""

from typing import List

from fastapi import APIRouter, Depends, Response, status

from .dependencies import get_translator
from .schemas import MemoryRequest, MemoryResponse, MemorySearchRequest
from .translator import ApiTranslator


router = APIRouter(prefix="/memories")


@router.get("", response_model=List[MemoryResponse])
def list_memories(translator: ApiTranslator = Depends(get_translator)):
    """List every readable memory, oldest first."""
    return translator.list_memories()


@router.post("", response_model=MemoryResponse, status_code=status.HTTP_201_CREATED)
def create_memory(
    request: MemoryRequest,
    translator: ApiTranslator = Depends(get_translator),
):
    """
    Create a memory.

    ``title`` is required (it may be empty); ``content`` and ``tags``
    default to empty.
    """
    return translator.create_memory(request)


@router.post("/search", response_model=List[MemoryResponse])
def search_memories(
    request: MemorySearchRequest,
    translator: ApiTranslator = Depends(get_translator),
):
    """Search by exact tag, or by case-insensitive substring of title, content or tags."""
    return translator.search_memories(request)


@router.get("/{memory_id}", response_model=MemoryResponse)
def get_memory(memory_id: str, translator: ApiTranslator = Depends(get_translator)):
    return translator.get_memory(memory_id)


@router.put("/{memory_id}", response_model=MemoryResponse)
def update_memory(
    memory_id: str,
    request: MemoryRequest,
    translator: ApiTranslator = Depends(get_translator),
):
    """Overwrite title, content and tags; id and created_at are kept."""
    return translator.update_memory(memory_id, request)


@router.delete(
    "/{memory_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
def delete_memory(memory_id: str, translator: ApiTranslator = Depends(get_translator)):
    translator.delete_memory(memory_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
