"""
Responsive conversion API router.
"""
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel
from typing import Optional, Dict, Any

from logging_config import logger
from config import settings
from slowapi import Limiter
from slowapi.util import get_remote_address
from services.conversation_store import get_conversation_store
from services.errors import EngineError
from services.responsive_service import get_responsive_service

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)


class ResponsiveRequest(BaseModel):
    """Request model for responsive conversion"""
    conversation_id: str
    type: str  # compact, comfortable, spacious
    html: Optional[str] = None
    css: Optional[str] = None
    javascript: Optional[str] = None
    model: Optional[str] = None


@router.post("/responsive")
@limiter.limit(settings.RESPONSIVE_RATE_LIMIT)
async def make_responsive(request: Request, data: ResponsiveRequest) -> Dict[str, Any]:
    """
    Add tablet/mobile layouts to the conversation's page.

    Returns:
        {message, html, css, javascript, usage}; null fields are unchanged
    """
    store = get_conversation_store()

    async with store.lock(data.conversation_id):
        record = store.get_or_create(data.conversation_id)
        document = record.sync_document(data.html, data.css, data.javascript)

        try:
            result = await get_responsive_service().convert(document, data.type, model_choice=data.model)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except EngineError as e:
            store.put(data.conversation_id, record)
            logger.error(f"Responsive conversion failed for {data.conversation_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to make the page responsive")

        record.document = document.apply(result)
        store.put(data.conversation_id, record)

    logger.info(f"Responsive conversion complete for {data.conversation_id}", mode=data.type)
    return {
        "message": result.message,
        "html": result.html,
        "css": result.css,
        "javascript": result.javascript,
        "usage": result.usage.to_dict(),
    }
