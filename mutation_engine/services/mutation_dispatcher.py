"""
Mutation Dispatcher - runs one of the LLM prompting strategies and turns the
response into a MutationResult.

Strategies: selection, full, fragment, image-reference, image-embed, plus the
no-intelligence original flow used as the pipeline's last resort.
"""
from typing import Any, Dict, List, Optional, Tuple, Union

from config import resolve_model, settings
from logging_config import logger
from models import DocumentState, Intent, MutationResult, ResolvedContext, Tier, TokenUsage
from services.errors import LLMError, MutationError
from services.llm_client import LLMClient, get_llm_client
from services.llm_response_handler import LLMResponseHandler
from services import mutation_prompts as prompts
from utils.fragment_merge import append_javascript, merge_css, merge_html
from utils.image_data import build_image_block

DEFAULT_MESSAGES = {
    "fragment": "Applied surgical edit.",
    "full": "Updated code.",
    "selection": "Updated selected elements.",
    "image-reference": "Recreated the design from the reference image.",
    "image-embed": "Embedded the image in the page.",
}

Content = Union[str, List[Dict[str, Any]]]


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


class MutationDispatcher:
    """Chooses and executes a mutation strategy"""

    def __init__(self, llm_client: Optional[LLMClient] = None):
        self._llm_client = llm_client

    @property
    def llm_client(self) -> LLMClient:
        if self._llm_client is None:
            self._llm_client = get_llm_client()
        return self._llm_client

    async def _complete_json(
        self,
        mutation_type: str,
        system_prompt: str,
        content: Content,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> Tuple[Dict[str, Any], TokenUsage]:
        """One LLM call + tolerant parse; every failure becomes a MutationError"""
        try:
            response = await self.llm_client.complete(
                system_prompt=system_prompt,
                messages=[{"role": "user", "content": content}],
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except LLMError as e:
            raise MutationError(f"{mutation_type} mutation call failed: {e}", mutation_type) from e

        usage = TokenUsage().add(response.usage)
        parsed = LLMResponseHandler.parse_json_response(response.text)
        if not parsed:
            raise MutationError(
                f"Failed to parse {mutation_type} mutation response as JSON",
                mutation_type,
                usage=usage,
            )
        return parsed, usage

    def _whole_document_result(self, parsed: Dict[str, Any], usage: TokenUsage, mutation_type: str) -> MutationResult:
        fields = LLMResponseHandler.code_fields(parsed)
        return MutationResult(
            html=_as_text(fields["html"]),
            css=_as_text(fields["css"]),
            javascript=_as_text(fields["javascript"]),
            message=parsed.get("message") or parsed.get("explanation") or DEFAULT_MESSAGES[mutation_type],
            usage=usage,
            mutation_type=mutation_type,
        )

    async def mutate(
        self,
        intent: Intent,
        context: ResolvedContext,
        document: DocumentState,
        feedback: Optional[str] = None,
        model_choice: Optional[str] = None,
    ) -> MutationResult:
        """
        Run the strategy the intent and resolved context call for.

        Selection beats everything, then the FULL tier; SIMPLE and MEDIUM go
        through the fragment path.

        Raises:
            MutationError: the strategy failed; carries the tokens already spent
        """
        if intent.has_selection:
            return await self.mutate_selection(intent, document, feedback, model_choice)
        if context.strategy is Tier.FULL:
            return await self.mutate_full(intent, context, document, feedback, model_choice)
        return await self.mutate_fragment(intent, context, document, feedback, model_choice)

    async def mutate_fragment(
        self,
        intent: Intent,
        context: ResolvedContext,
        document: DocumentState,
        feedback: Optional[str] = None,
        model_choice: Optional[str] = None,
    ) -> MutationResult:
        """Ask for only the changed fragment and splice it into the document"""
        if context.strategy is Tier.SIMPLE:
            model = settings.SIMPLE_TIER_MODEL
        else:
            model = resolve_model(model_choice)

        logger.info(f"Fragment mutation ({context.strategy.value}) using {model}", selector=context.selector)

        parsed, usage = await self._complete_json(
            "fragment",
            prompts.FRAGMENT_SYSTEM_PROMPT,
            prompts.build_fragment_prompt(intent, context, feedback),
            model,
            settings.FRAGMENT_MAX_TOKENS,
            settings.MUTATION_TEMPERATURE,
        )

        html_fragment = _as_text(parsed.get("htmlFragment"))
        css_fragment = _as_text(parsed.get("cssFragment"))
        js_fragment = _as_text(parsed.get("jsFragment"))

        try:
            merged_html = document.html
            if html_fragment:
                merged_html = merge_html(document.html, html_fragment, context.selector,
                                         _as_text(parsed.get("mergeMode")) or "replace")
            merged_css = merge_css(document.css, css_fragment, context.selector) if css_fragment else document.css
            merged_js = append_javascript(document.javascript, js_fragment) if js_fragment else document.javascript
        except Exception as e:
            raise MutationError(f"Fragment merge failed: {e}", "fragment", usage=usage) from e

        return MutationResult(
            html=merged_html if merged_html != document.html else None,
            css=merged_css if merged_css != document.css else None,
            javascript=merged_js if merged_js != document.javascript else None,
            message=parsed.get("message") or DEFAULT_MESSAGES["fragment"],
            usage=usage,
            mutation_type="fragment",
        )

    async def mutate_full(
        self,
        intent: Intent,
        context: ResolvedContext,
        document: DocumentState,
        feedback: Optional[str] = None,
        model_choice: Optional[str] = None,
    ) -> MutationResult:
        model = resolve_model(model_choice)
        logger.info(f"Full mutation using {model}")

        parsed, usage = await self._complete_json(
            "full",
            prompts.FULL_SYSTEM_PROMPT,
            prompts.build_full_prompt(intent, context, document, feedback),
            model,
            settings.FULL_MAX_TOKENS,
            settings.MUTATION_TEMPERATURE,
        )
        return self._whole_document_result(parsed, usage, "full")

    async def mutate_selection(
        self,
        intent: Intent,
        document: DocumentState,
        feedback: Optional[str] = None,
        model_choice: Optional[str] = None,
    ) -> MutationResult:
        model = resolve_model(model_choice)
        logger.info(f"Selection mutation using {model}")

        parsed, usage = await self._complete_json(
            "selection",
            prompts.SELECTION_SYSTEM_PROMPT,
            prompts.build_selection_prompt(intent, document, feedback),
            model,
            settings.FULL_MAX_TOKENS,
            settings.SELECTION_TEMPERATURE,
        )
        return self._whole_document_result(parsed, usage, "selection")

    async def mutate_image(
        self,
        image_mode: str,
        image_data_url: str,
        message: str,
        intent: Intent,
        document: DocumentState,
        model_choice: Optional[str] = None,
    ) -> MutationResult:
        """Image-embed places the attached image; image-reference recreates it as code"""
        model = resolve_model(model_choice)

        if image_mode == "embed":
            mutation_type = "image-embed"
            system_prompt = prompts.IMAGE_EMBED_SYSTEM_PROMPT
            text = prompts.build_image_embed_prompt(message, document)
        else:
            mutation_type = "image-reference"
            system_prompt = prompts.IMAGE_REFERENCE_SYSTEM_PROMPT
            text = prompts.build_image_reference_prompt(message, document)

        logger.info(f"Image mutation ({mutation_type}) using {model}", action=intent.action)

        content = [build_image_block(image_data_url), {"type": "text", "text": text}]
        parsed, usage = await self._complete_json(
            mutation_type,
            system_prompt,
            content,
            model,
            settings.FULL_MAX_TOKENS,
            settings.MUTATION_TEMPERATURE,
        )
        return self._whole_document_result(parsed, usage, mutation_type)

    async def mutate_original_flow(
        self,
        message: str,
        document: DocumentState,
        image: Optional[str] = None,
        model_choice: Optional[str] = None,
    ) -> MutationResult:
        """Whole document + request to the fallback model with a generic prompt"""
        model = resolve_model(model_choice) if model_choice else settings.FALLBACK_MODEL
        logger.info(f"Original flow using {model}", has_image=bool(image))

        content: List[Dict[str, Any]] = []
        if image:
            content.append(build_image_block(image))
        content.append({
            "type": "text",
            "text": prompts.build_original_flow_prompt(message, document, bool(image)),
        })

        parsed, usage = await self._complete_json(
            "full",
            prompts.ORIGINAL_FLOW_SYSTEM_PROMPT,
            content,
            model,
            settings.FULL_MAX_TOKENS,
            settings.MUTATION_TEMPERATURE,
        )
        return self._whole_document_result(parsed, usage, "full")
