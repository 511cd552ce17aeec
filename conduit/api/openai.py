"""
OpenAI-shaped endpoints: model listing, chat completions, embeddings.

Handlers are plain ``def`` so FastAPI runs them in its threadpool; store
reads and inference calls block.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from .dependencies import get_translator
from .schemas import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    EmbeddingRequest,
    EmbeddingResponse,
    ModelList,
)
from .translator import ApiTranslator


router = APIRouter()


@router.get("/models", response_model=ModelList)
def list_models(translator: ApiTranslator = Depends(get_translator)):
    """List the model catalog."""
    return translator.list_models()


@router.post("/chat/completions", response_model=ChatCompletionResponse)
def chat_completions(
    request: ChatCompletionRequest,
    translator: ApiTranslator = Depends(get_translator),
):
    """
    Create a chat completion.

    With ``stream: true`` the reply is sent as server-sent events
    (``chat.completion.chunk`` objects, then ``data: [DONE]``).
    """
    if request.stream:
        events = translator.stream_chat_completion(request)
        return StreamingResponse(
            events,
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )
    return translator.chat_completion(request)


@router.post("/embeddings", response_model=EmbeddingResponse)
def create_embeddings(
    request: EmbeddingRequest,
    translator: ApiTranslator = Depends(get_translator),
):
    """Embed one text or a list of texts."""
    return translator.embeddings(request)
