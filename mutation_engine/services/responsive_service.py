"""
Responsive conversion - namespaces every class with a timestamp and adds
tablet/mobile overrides under @media (max-width: 1024px), leaving the
desktop rendering untouched.
"""
from datetime import datetime
from typing import Optional

from config import resolve_model, settings
from logging_config import logger
from models import DocumentState, MutationResult, TokenUsage
from services.errors import ResponseParseError
from services.llm_client import LLMClient, get_llm_client
from services.llm_response_handler import LLMResponseHandler
from services.mutation_prompts import (
    RESPONSIVE_MODE_PROMPTS,
    build_responsive_prompt,
    build_responsive_system_prompt,
)

RESPONSIVE_MODES = tuple(RESPONSIVE_MODE_PROMPTS)
DEFAULT_RESPONSIVE_MESSAGE = "Applied responsive changes."


def namespace_timestamp(now: Optional[datetime] = None) -> str:
    """yymmddHHMM"""
    return (now or datetime.now()).strftime("%y%m%d%H%M")


class ResponsiveService:
    """Converts a desktop-only page into a responsive one"""

    def __init__(self, llm_client: Optional[LLMClient] = None):
        self._llm_client = llm_client

    @property
    def llm_client(self) -> LLMClient:
        if self._llm_client is None:
            self._llm_client = get_llm_client()
        return self._llm_client

    async def convert(
        self,
        document: DocumentState,
        mode: str,
        model_choice: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> MutationResult:
        """
        Run the responsive conversion.

        Raises:
            ValueError: unknown mode
            LLMError: provider call failed
            ResponseParseError: no code field could be recovered
        """
        if mode not in RESPONSIVE_MODE_PROMPTS:
            raise ValueError(f"Unknown responsive mode '{mode}', expected one of {', '.join(RESPONSIVE_MODES)}")

        model = resolve_model(model_choice) if model_choice else settings.CLAUDE_MODEL_HAIKU
        max_tokens = settings.RESPONSIVE_MAX_TOKENS_HAIKU if "haiku" in model else settings.RESPONSIVE_MAX_TOKENS
        timestamp = namespace_timestamp(now)

        logger.info(f"Responsive request: mode={mode}, model={model}, timestamp={timestamp}")

        response = await self.llm_client.complete(
            system_prompt=build_responsive_system_prompt(timestamp),
            messages=[{"role": "user", "content": build_responsive_prompt(mode, document)}],
            model=model,
            max_tokens=max_tokens,
            temperature=settings.MUTATION_TEMPERATURE,
        )
        usage = TokenUsage().add(response.usage)

        parsed = LLMResponseHandler.parse_json_response(response.text)
        if not parsed:
            raise ResponseParseError("Responsive response contained no usable code", usage=usage)

        fields = LLMResponseHandler.code_fields(parsed)
        if all(value is None for value in fields.values()):
            raise ResponseParseError("Responsive response contained no usable code", usage=usage)

        return MutationResult(
            html=fields["html"],
            css=fields["css"],
            javascript=fields["javascript"],
            message=parsed.get("message") or DEFAULT_RESPONSIVE_MESSAGE,
            usage=usage,
            mutation_type="responsive",
        )


# Global service instance
_responsive_service: Optional[ResponsiveService] = None


def get_responsive_service() -> ResponsiveService:
    global _responsive_service
    if _responsive_service is None:
        _responsive_service = ResponsiveService()
    return _responsive_service
