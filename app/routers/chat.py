import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from app.models.chat import ChatRequest, ChatResponse, SessionStats
from app.services.assistant import RagAssistant

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/chat", tags=["chat"])


def get_assistant(request: Request) -> RagAssistant:
    return request.app.state.assistant


@router.post("", response_model=ChatResponse)
def chat(request: ChatRequest, assistant: RagAssistant = Depends(get_assistant)):
    """
    Answer a product question.

    1. Resolve the product (question first, then the session's context).
    2. Retrieve ranked chunks from the vector index.
    3. Extract a literal answer, or ask Claude with the chunks as context.
    """
    if not request.question.strip():
        raise HTTPException(status_code=400, detail="Pertanyaan tidak boleh kosong.")

    result = assistant.ask_question(request.question.strip(), request.session_id)
    return ChatResponse(
        answer=result.answer,
        product_detected=result.product_detected,
        total_matches=result.total_matches,
        session_id=result.session_id,
    )


@router.get("/stats", response_model=SessionStats)
async def session_stats(assistant: RagAssistant = Depends(get_assistant)):
    return SessionStats(**assistant.conversations.stats())
