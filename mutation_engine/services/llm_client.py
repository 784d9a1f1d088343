"""
LLM provider clients - system prompt + messages in, text + usage out.

Anthropic is called directly through the SDK; OpenRouter through its
OpenAI-compatible chat-completions endpoint.
"""
from typing import Any, Dict, List, Optional

import anthropic
import httpx

from config import settings
from logging_config import logger
from models import TokenUsage
from services.errors import LLMError
from services.llm_response_handler import LLMResponseHandler


class LLMResponse:
    """Wrapper class for LLM responses"""
    def __init__(self, text: str, usage: TokenUsage, model: str, provider: str):
        self.text = text
        self.usage = usage
        self.model = model
        self.provider = provider


class LLMClient:
    """Narrow interface the pipeline uses to talk to a model provider"""

    provider = "base"

    async def complete(
        self,
        system_prompt: Optional[str],
        messages: List[Dict[str, Any]],
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> LLMResponse:
        raise NotImplementedError


class AnthropicLLMClient(LLMClient):
    """Claude via the Anthropic SDK"""

    provider = "anthropic"

    def __init__(self, api_key: str = None, timeout: float = None):
        self.api_key = api_key or settings.ANTHROPIC_API_KEY
        if not self.api_key:
            raise ValueError("ANTHROPIC_API_KEY not configured")

        self.client = anthropic.AsyncAnthropic(
            api_key=self.api_key,
            timeout=timeout or settings.LLM_TIMEOUT_SECONDS,
        )
        logger.info("Initialized AnthropicLLMClient")

    async def complete(
        self,
        system_prompt: Optional[str],
        messages: List[Dict[str, Any]],
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> LLMResponse:
        request: Dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": messages,
        }
        if system_prompt:
            request["system"] = system_prompt

        try:
            response = await self.client.messages.create(**request)
        except anthropic.AnthropicError as e:
            logger.error(f"Anthropic request failed: {e}", model=model)
            raise LLMError(f"Anthropic request failed: {e}") from e

        # Extract text content
        text = ""
        for block in response.content:
            if getattr(block, "type", "text") == "text" and hasattr(block, "text"):
                text += block.text

        raw_usage = response.usage
        usage = TokenUsage(
            input_tokens=getattr(raw_usage, "input_tokens", 0) or 0,
            output_tokens=getattr(raw_usage, "output_tokens", 0) or 0,
            cache_creation_input_tokens=getattr(raw_usage, "cache_creation_input_tokens", 0) or 0,
            cache_read_input_tokens=getattr(raw_usage, "cache_read_input_tokens", 0) or 0,
        )

        logger.info(
            f"Anthropic response received ({len(text)} chars)",
            model=model,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )
        return LLMResponse(text=text, usage=usage, model=model, provider=self.provider)


class OpenRouterLLMClient(LLMClient):
    """Claude (or any routed model) via OpenRouter chat-completions"""

    provider = "openrouter"

    # Anthropic model ids -> OpenRouter slugs
    MODEL_SLUGS = {
        settings.CLAUDE_MODEL_HAIKU: "anthropic/claude-haiku-4.5",
        settings.CLAUDE_MODEL_SONNET: "anthropic/claude-sonnet-4.5",
        settings.CLAUDE_MODEL_OPUS: "anthropic/claude-opus-4.5",
    }

    def __init__(self, api_key: str = None, timeout: float = None):
        self.api_key = api_key or settings.OPENROUTER_API_KEY
        if not self.api_key:
            raise ValueError("OPENROUTER_API_KEY not configured")
        self.timeout = timeout or settings.LLM_TIMEOUT_SECONDS
        logger.info("Initialized OpenRouterLLMClient")

    def _model_slug(self, model: str) -> str:
        if model in self.MODEL_SLUGS:
            return self.MODEL_SLUGS[model]
        return model if "/" in model else f"anthropic/{model}"

    @staticmethod
    def _convert_content(content: Any) -> Any:
        """Anthropic-style content blocks -> OpenAI-style parts"""
        if isinstance(content, str):
            return content

        parts = []
        for block in content:
            if block.get("type") == "image":
                source = block.get("source", {})
                parts.append({
                    "type": "image_url",
                    "image_url": {
                        "url": f"data:{source.get('media_type', 'image/png')};base64,{source.get('data', '')}"
                    }
                })
            elif block.get("type") == "text":
                parts.append({"type": "text", "text": block.get("text", "")})
        return parts

    async def complete(
        self,
        system_prompt: Optional[str],
        messages: List[Dict[str, Any]],
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> LLMResponse:
        payload_messages = []
        if system_prompt:
            payload_messages.append({"role": "system", "content": system_prompt})
        for message in messages:
            payload_messages.append({
                "role": message["role"],
                "content": self._convert_content(message["content"]),
            })

        slug = self._model_slug(model)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    settings.OPENROUTER_API_URL,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                        "X-Title": "Adaptive Mutation Engine"
                    },
                    json={
                        "model": slug,
                        "messages": payload_messages,
                        "max_tokens": max_tokens,
                        "temperature": temperature,
                    }
                )
        except httpx.HTTPError as e:
            logger.error(f"OpenRouter request failed: {e}", model=slug)
            raise LLMError(f"OpenRouter request failed: {e}") from e

        if response.status_code != 200:
            error_text = response.text[:500]
            logger.error(f"OpenRouter model {slug} failed: {response.status_code} - {error_text}")
            raise LLMError(f"OpenRouter error {response.status_code}: {error_text}")

        try:
            result = response.json()
        except ValueError as e:
            raise LLMError(f"OpenRouter returned non-JSON body: {e}") from e

        choices = result.get("choices") if isinstance(result, dict) else None
        if not choices:
            logger.error(f"OpenRouter model {slug} returned no choices")
            raise LLMError("OpenRouter returned no choices")

        content = (choices[0].get("message") or {}).get("content") or ""
        text = LLMResponseHandler.handle_response(content, log_warnings=False)

        raw_usage = result.get("usage") or {}
        usage = TokenUsage(
            input_tokens=raw_usage.get("prompt_tokens", 0) or 0,
            output_tokens=raw_usage.get("completion_tokens", 0) or 0,
        )

        logger.info(
            f"OpenRouter response received ({len(text)} chars)",
            model=slug,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )
        return LLMResponse(text=text, usage=usage, model=model, provider=self.provider)


# Global client instance
_llm_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get or create the LLM client for the configured provider"""
    global _llm_client
    if _llm_client is None:
        if settings.LLM_PROVIDER == "openrouter":
            _llm_client = OpenRouterLLMClient()
        else:
            _llm_client = AnthropicLLMClient()
    return _llm_client
