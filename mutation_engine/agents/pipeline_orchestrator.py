"""
Adaptive Pipeline Orchestrator - sequences intent, context, mutation and
validation for one edit request.

Intent -> (Image) -> Context -> Mutate -> Validate -> Retry once -> Done

Escalation edges: a failed fragment mutation is retried as a full mutation;
any other stage failure falls through to the original flow (whole document
to the fallback model with a generic prompt).
"""
import time
from typing import Any, Dict, List, Optional

from config import settings
from logging_config import logger
from models import DocumentState, MutationResult, PipelineResult, Tier, TokenUsage
from services.context_resolver import ContextResolver
from services.errors import MutationError, PipelineFailure
from services.intent_classifier import IntentClassifier, detect_image_mode
from services.llm_client import LLMClient
from services.mutation_dispatcher import MutationDispatcher
from services.validation_service import validate_mutation


class AdaptivePipeline:
    """Runs the adaptive mutation pipeline for one request at a time"""

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        classifier: Optional[IntentClassifier] = None,
        resolver: Optional[ContextResolver] = None,
        dispatcher: Optional[MutationDispatcher] = None,
        max_retries: Optional[int] = None,
    ):
        self.classifier = classifier or IntentClassifier(llm_client)
        self.resolver = resolver or ContextResolver()
        self.dispatcher = dispatcher or MutationDispatcher(llm_client)
        self.max_retries = settings.MAX_VALIDATION_RETRIES if max_retries is None else max_retries

    async def process_request(
        self,
        message: str,
        document: DocumentState,
        image: Optional[str] = None,
        model_choice: Optional[str] = None,
    ) -> PipelineResult:
        """
        Process one edit request.

        Args:
            message: User request, possibly with a selected-areas block
            document: Current page source
            image: Optional attached image as a data URL
            model_choice: UI model name or model id

        Returns:
            PipelineResult whose None fields mean "unchanged"

        Raises:
            PipelineFailure: every path, including the original flow, failed
        """
        start_time = time.time()
        usage = TokenUsage()
        steps: List[Dict[str, Any]] = []

        logger.info(f"Adaptive pipeline start: {(message or '')[:60]!r}", has_image=bool(image))

        try:
            return await self._run_adaptive(message, document, image, model_choice, usage, steps, start_time)
        except Exception as e:
            usage.add(getattr(e, "usage", None))
            logger.error(f"Adaptive pipeline failed, falling back to original flow: {e}")
            return await self._run_original_flow(message, document, image, model_choice, usage, steps, start_time)

    async def _run_adaptive(
        self,
        message: str,
        document: DocumentState,
        image: Optional[str],
        model_choice: Optional[str],
        usage: TokenUsage,
        steps: List[Dict[str, Any]],
        start_time: float,
    ) -> PipelineResult:
        # Stage 1: intent
        intent = await self.classifier.classify(message, has_image=bool(image))
        usage.add(intent.usage)
        steps.append({
            "stage": "intent",
            "strategy": intent.strategy.value,
            "action": intent.action,
            "hasImage": bool(image),
        })

        # Stage 1.5: image requests skip context resolution
        if image:
            image_mode = detect_image_mode(message)
            try:
                result = await self.dispatcher.mutate_image(
                    image_mode, image, message, intent, document, model_choice
                )
            except MutationError as e:
                steps.append({"stage": "image-mutation", "mode": image_mode, "success": False, "error": str(e)})
                raise
            usage.add(result.usage)
            steps.append({"stage": "image-mutation", "mode": image_mode, "success": True})
            return self._finalize(result, usage, steps, start_time, result.mutation_type)

        # Stage 2: context
        context = self.resolver.resolve(intent, document)
        intent.escalate(context.strategy)
        steps.append({
            "stage": "context",
            "selector": context.selector,
            "resolvedBy": context.resolved_by,
            "strategy": context.strategy.value,
        })

        # Stage 3: mutation, fragment failures escalate to full
        try:
            result = await self.dispatcher.mutate(intent, context, document, model_choice=model_choice)
            steps.append({"stage": "mutation", "type": result.mutation_type, "success": True})
        except MutationError as e:
            if e.mutation_type != "fragment":
                steps.append({"stage": "mutation", "type": e.mutation_type, "success": False, "error": str(e)})
                raise
            usage.add(e.usage)
            steps.append({"stage": "mutation", "type": "fragment", "success": False, "error": str(e)})
            logger.warning(f"Fragment mutation failed, escalating to full: {e}")

            intent.escalate(Tier.FULL)
            context.strategy = context.strategy.escalate(Tier.FULL)
            result = await self.dispatcher.mutate(intent, context, document, model_choice=model_choice)
            steps.append({"stage": "mutation-fallback", "type": result.mutation_type, "success": True})
        usage.add(result.usage)

        # Stage 4: validation with a bounded semantic retry
        outcome = validate_mutation(intent, document, result)
        steps.append({"stage": "validation", "valid": outcome.valid, "errors": outcome.errors})

        for attempt in range(1, self.max_retries + 1):
            if outcome.valid or not outcome.feedback_prompt:
                break

            logger.info(f"Retry {attempt}/{self.max_retries} with validation feedback")
            try:
                retry_result = await self.dispatcher.mutate(
                    intent, context, document, feedback=outcome.feedback_prompt, model_choice=model_choice
                )
            except MutationError as e:
                usage.add(e.usage)
                steps.append({"stage": f"retry-{attempt}", "success": False, "error": str(e)})
                logger.warning(f"Retry {attempt} failed, keeping previous result: {e}")
                break

            usage.add(retry_result.usage)
            result = retry_result
            outcome = validate_mutation(intent, document, result)
            steps.append({"stage": f"retry-{attempt}", "valid": outcome.valid, "errors": outcome.errors})

        if not outcome.valid:
            logger.warning("Returning result that still fails validation", errors=outcome.errors)

        return self._finalize(result, usage, steps, start_time, context.strategy.value)

    async def _run_original_flow(
        self,
        message: str,
        document: DocumentState,
        image: Optional[str],
        model_choice: Optional[str],
        usage: TokenUsage,
        steps: List[Dict[str, Any]],
        start_time: float,
    ) -> PipelineResult:
        try:
            result = await self.dispatcher.mutate_original_flow(message, document, image, model_choice)
        except MutationError as e:
            usage.add(e.usage)
            steps.append({"stage": "original-fallback", "success": False, "error": str(e)})
            logger.error(f"Original flow also failed: {e}")
            raise PipelineFailure("Failed to process adaptive request", usage=usage) from e

        usage.add(result.usage)
        steps.append({"stage": "original-fallback", "success": True})
        return self._finalize(result, usage, steps, start_time, "fallback")

    def _finalize(
        self,
        result: MutationResult,
        usage: TokenUsage,
        steps: List[Dict[str, Any]],
        start_time: float,
        strategy: str,
    ) -> PipelineResult:
        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Adaptive pipeline complete in {elapsed_ms}ms",
            strategy=strategy,
            mutation_type=result.mutation_type,
            total_tokens=usage.total_tokens,
        )
        return PipelineResult(
            html=result.html,
            css=result.css,
            javascript=result.javascript,
            message=result.message,
            usage=usage,
            pipeline_trace=steps,
            strategy=strategy,
            mutation_type=result.mutation_type,
            elapsed_ms=elapsed_ms,
        )


# Global pipeline instance
_pipeline: Optional[AdaptivePipeline] = None


def get_adaptive_pipeline() -> AdaptivePipeline:
    """Get or create the shared pipeline"""
    global _pipeline
    if _pipeline is None:
        _pipeline = AdaptivePipeline()
    return _pipeline
