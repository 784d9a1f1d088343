"""
Adaptive chat API router - natural-language edits through the adaptive
mutation pipeline, plus file-intent detection and conversation lookup.
"""
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel
from typing import Optional, Dict, Any

from logging_config import logger
from config import settings
from slowapi import Limiter
from slowapi.util import get_remote_address
from agents.pipeline_orchestrator import get_adaptive_pipeline
from services.conversation_store import get_conversation_store
from services.errors import PipelineFailure
from services.intent_classifier import IntentClassifier

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)


class AdaptiveChatRequest(BaseModel):
    """Request model for an adaptive edit"""
    message: str
    conversation_id: str
    html: Optional[str] = None
    css: Optional[str] = None
    javascript: Optional[str] = None
    image: Optional[str] = None  # data URL
    model: Optional[str] = None  # sonnet, haiku, opus or a model id


class IntentRequest(BaseModel):
    """Request model for file intent detection"""
    message: str


class ConversationStateResponse(BaseModel):
    """Response model for stored conversation state"""
    conversation_id: str
    html: str
    css: str
    javascript: str
    history_length: int = 0
    updated_at: float


@router.post("/adaptive-chat")
@limiter.limit(settings.ADAPTIVE_CHAT_RATE_LIMIT)
async def adaptive_chat(request: Request, data: AdaptiveChatRequest) -> Dict[str, Any]:
    """
    Apply a natural-language edit to the conversation's document.

    Fields sent with the request overwrite the stored document before the
    pipeline runs. Result fields that are null mean "unchanged".

    Returns:
        {html, css, javascript, message, usage, pipeline}
    """
    if not data.message or not data.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    store = get_conversation_store()
    pipeline = get_adaptive_pipeline()

    async with store.lock(data.conversation_id):
        record = store.get_or_create(data.conversation_id)
        document = record.sync_document(data.html, data.css, data.javascript)

        try:
            result = await pipeline.process_request(
                data.message,
                document,
                image=data.image,
                model_choice=data.model,
            )
        except PipelineFailure as e:
            store.put(data.conversation_id, record)
            logger.error(
                f"Adaptive request failed for {data.conversation_id}: {e}",
                input_tokens=e.usage.input_tokens,
                output_tokens=e.usage.output_tokens,
            )
            raise HTTPException(status_code=500, detail="Failed to process adaptive request")
        except Exception as e:
            logger.error(f"Adaptive chat error: {str(e)}", exc_info=True)
            raise HTTPException(status_code=500, detail="Failed to process adaptive request")

        record.document = document.apply(result)
        record.append_exchange(data.message, result.message, settings.CHAT_MAX_HISTORY)
        store.put(data.conversation_id, record)

    logger.info(
        f"Adaptive chat complete for {data.conversation_id}",
        strategy=result.strategy,
        elapsed_ms=result.elapsed_ms,
    )
    return result.to_dict()


@router.post("/intent")
@limiter.limit(settings.INTENT_RATE_LIMIT)
async def detect_intent(request: Request, data: IntentRequest) -> Dict[str, Any]:
    """
    Detect which code files (html, css, js) a request needs.

    Never fails on a classifier error; every file is requested instead.
    """
    try:
        files = await IntentClassifier().detect_required_files(data.message)
        return {"intent": files}
    except Exception as e:
        logger.error(f"Intent detection error: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/conversations/{conversation_id}", response_model=ConversationStateResponse)
async def get_conversation(conversation_id: str):
    """Current stored document and history size of a conversation"""
    record = get_conversation_store().get(conversation_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return ConversationStateResponse(
        conversation_id=conversation_id,
        html=record.document.html,
        css=record.document.css,
        javascript=record.document.javascript,
        history_length=len(record.messages),
        updated_at=record.updated_at,
    )
