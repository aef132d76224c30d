"""Value types shared by the client, the normalizer and the controller."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Union


class PromptTemplate(str, enum.Enum):
    DATA_METRICS = "data_metrics"
    GENERIC_NARRATIVE = "generic_narrative"


@dataclass(frozen=True)
class SamplingParams:
    temperature: float = 0.3
    max_output_tokens: int = 10800
    top_k: int = 40
    top_p: float = 0.95

    def __post_init__(self) -> None:
        if not 0.0 <= float(self.temperature) <= 1.0:
            raise ValueError(f"temperature must be within [0, 1], got {self.temperature!r}")
        if not 0.0 <= float(self.top_p) <= 1.0:
            raise ValueError(f"top_p must be within [0, 1], got {self.top_p!r}")
        if int(self.max_output_tokens) <= 0:
            raise ValueError(f"max_output_tokens must be positive, got {self.max_output_tokens!r}")
        if int(self.top_k) <= 0:
            raise ValueError(f"top_k must be positive, got {self.top_k!r}")

    def as_generation_config(self) -> dict:
        """Gemini ``generationConfig`` block."""
        return {
            "temperature": self.temperature,
            "maxOutputTokens": self.max_output_tokens,
            "topK": self.top_k,
            "topP": self.top_p,
        }


@dataclass(frozen=True)
class GenerationRequest:
    source_text: str
    prompt_template: PromptTemplate = PromptTemplate.GENERIC_NARRATIVE
    sampling: SamplingParams = field(default_factory=SamplingParams)

    def __post_init__(self) -> None:
        if not isinstance(self.source_text, str) or not self.source_text.strip():
            raise ValueError("source_text must be a non-empty string")
        if not isinstance(self.prompt_template, PromptTemplate):
            raise ValueError(f"unknown prompt template: {self.prompt_template!r}")

    @classmethod
    def for_text(cls, text: str, sampling: Optional[SamplingParams] = None) -> "GenerationRequest":
        """Build a request whose template is picked by the keyword classifier."""
        from vizbridge.prompts import select_template

        return cls(
            source_text=text,
            prompt_template=select_template(text),
            sampling=sampling or SamplingParams(),
        )


# Generation outcomes. Exactly one is produced per upstream call.

@dataclass(frozen=True)
class Success:
    html: str


@dataclass(frozen=True)
class Timeout:
    budget_seconds: float


@dataclass(frozen=True)
class UpstreamError:
    # None when the request never got an HTTP status (DNS, reset, TLS)
    status_code: Optional[int]
    message: str


@dataclass(frozen=True)
class EmptyCompletion:
    reason: str = "no candidates"


GenerationResult = Union[Success, Timeout, UpstreamError, EmptyCompletion]


@dataclass(frozen=True)
class NormalizedDocument:
    html: str
    was_fallback: bool = False
