"""
Core data model for the adaptive mutation pipeline.
"""
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional


class Tier(str, Enum):
    """Cost/complexity tier of a requested edit, cheapest first"""
    SIMPLE = "simple"
    MEDIUM = "medium"
    FULL = "full"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]

    @classmethod
    def parse(cls, value: Any, default: Optional["Tier"] = None) -> Optional["Tier"]:
        """Lenient conversion of an LLM-provided tier name"""
        if isinstance(value, Tier):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return default

    def escalate(self, other: "Tier") -> "Tier":
        """Return the more expensive of the two tiers; never downgrades"""
        return other if other.rank > self.rank else self


_TIER_RANK = {Tier.SIMPLE: 1, Tier.MEDIUM: 2, Tier.FULL: 3}


@dataclass
class TokenUsage:
    """Token accounting for one or more LLM calls"""
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0

    def add(self, other: Optional["TokenUsage"]) -> "TokenUsage":
        if other is None:
            return self
        self.input_tokens += other.input_tokens or 0
        self.output_tokens += other.output_tokens or 0
        self.cache_creation_input_tokens += other.cache_creation_input_tokens or 0
        self.cache_read_input_tokens += other.cache_read_input_tokens or 0
        return self

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def to_dict(self) -> Dict[str, int]:
        data = {"input_tokens": self.input_tokens, "output_tokens": self.output_tokens}
        if self.cache_creation_input_tokens:
            data["cache_creation_input_tokens"] = self.cache_creation_input_tokens
        if self.cache_read_input_tokens:
            data["cache_read_input_tokens"] = self.cache_read_input_tokens
        return data


@dataclass(frozen=True)
class DocumentState:
    """Full current source of the user's page"""
    html: str = ""
    css: str = ""
    javascript: str = ""

    def apply(self, result: Any) -> "DocumentState":
        """
        Produce the next document state from a mutation/pipeline result.

        A None field keeps the prior value untouched; an empty string is a
        real change and is applied as-is.
        """
        return DocumentState(
            html=result.html if result.html is not None else self.html,
            css=result.css if result.css is not None else self.css,
            javascript=result.javascript if result.javascript is not None else self.javascript,
        )

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class Intent:
    """Structured interpretation of a user request"""
    action: str
    target_hint: str
    scope: str = "global"
    property: Optional[str] = None
    value: Optional[str] = None
    strategy: Tier = Tier.MEDIUM
    has_selection: bool = False
    selection_context: Optional[str] = None
    normalized_message: str = ""
    has_image: bool = False
    usage: TokenUsage = field(default_factory=TokenUsage)

    def escalate(self, tier: Tier) -> None:
        self.strategy = self.strategy.escalate(tier)


@dataclass
class ResolvedContext:
    """Concrete edit target derived from an Intent and the document"""
    selector: str
    matched_tag: Optional[str]
    surrounding_html: str
    surrounding_css: str
    strategy: Tier
    resolved_by: str


@dataclass
class MutationResult:
    """Output of one mutation strategy; None fields mean 'unchanged'"""
    html: Optional[str]
    css: Optional[str]
    javascript: Optional[str]
    message: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    mutation_type: str = "full"

    @property
    def has_changes(self) -> bool:
        return any(v is not None for v in (self.html, self.css, self.javascript))


@dataclass
class ValidationOutcome:
    valid: bool
    errors: List[str] = field(default_factory=list)
    feedback_prompt: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class PipelineResult:
    """Final answer of one adaptive request"""
    html: Optional[str]
    css: Optional[str]
    javascript: Optional[str]
    message: str
    usage: TokenUsage
    pipeline_trace: List[Dict[str, Any]]
    strategy: str
    mutation_type: str
    elapsed_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "html": self.html,
            "css": self.css,
            "javascript": self.javascript,
            "message": self.message,
            "usage": self.usage.to_dict(),
            "pipeline": {
                "strategy": self.strategy,
                "mutationType": self.mutation_type,
                "steps": self.pipeline_trace,
                "elapsed": self.elapsed_ms,
            },
        }
