"""
Exception types raised across the mutation pipeline.

Selector misses and merge misses are not errors (they return sentinels) and
validation failures are structured outcomes, so only provider, parse and
strategy failures appear here.
"""
from typing import Optional

from models import TokenUsage


class EngineError(Exception):
    """Base class for mutation engine errors"""


class LLMError(EngineError):
    """The LLM provider call failed (network, auth, provider error)"""


class ResponseParseError(EngineError):
    """Not a single code field could be recovered from an LLM response"""

    def __init__(self, message: str, usage: Optional[TokenUsage] = None):
        super().__init__(message)
        self.usage = usage or TokenUsage()


class MutationError(EngineError):
    """A mutation strategy failed; carries the tokens it already spent"""

    def __init__(self, message: str, mutation_type: str, usage: Optional[TokenUsage] = None):
        super().__init__(message)
        self.mutation_type = mutation_type
        self.usage = usage or TokenUsage()


class PipelineFailure(EngineError):
    """Every stage, including the original-flow fallback, failed"""

    def __init__(self, message: str, usage: Optional[TokenUsage] = None):
        super().__init__(message)
        self.usage = usage or TokenUsage()
