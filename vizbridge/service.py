from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from vizbridge import gemini_client
from vizbridge.errors import InputValidationError
from vizbridge.normalizer import failure_message, normalize
from vizbridge.types import GenerationRequest, GenerationResult, NormalizedDocument

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class VisualizationOutcome:
    result: GenerationResult
    document: NormalizedDocument

    @property
    def error(self) -> Optional[str]:
        return failure_message(self.result)


def visualize(
    message_text: str,
    *,
    api_key: Optional[str] = None,
    budget: Optional[float] = None,
) -> VisualizationOutcome:
    """Message text in, renderable HTML out: prompt, one upstream call, normalize."""
    if not isinstance(message_text, str) or not message_text.strip():
        raise InputValidationError("Message text is required")
    req = GenerationRequest.for_text(message_text, sampling=gemini_client.default_sampling())
    result = gemini_client.generate(req, budget=budget, api_key=api_key)
    document = normalize(result, message_text)
    log.info(
        "visualize: outcome=%s fallback=%s html_chars=%d",
        type(result).__name__,
        document.was_fallback,
        len(document.html),
    )
    return VisualizationOutcome(result=result, document=document)
