"""Turn any generation outcome into HTML the chat UI can embed.

``normalize`` is total: every result variant maps to exactly one non-empty,
closed document or fragment, and it never raises.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Optional

from vizbridge.render import render_document_shell, render_fallback
from vizbridge.types import (
    EmptyCompletion,
    GenerationResult,
    NormalizedDocument,
    Success,
    Timeout,
    UpstreamError,
)

log = logging.getLogger(__name__)

try:
    FALLBACK_PREVIEW_CHARS = int(os.getenv("FALLBACK_PREVIEW_CHARS", "150"))
except ValueError:
    FALLBACK_PREVIEW_CHARS = 150

_ENCLOSING_FENCE_RE = re.compile(r"^```[ \t]*(?:html?)?[ \t]*\r?\n?(.*?)\r?\n?[ \t]*```$", re.IGNORECASE | re.DOTALL)
_EMBEDDED_FENCE_RE = re.compile(r"```[ \t]*(?:html?)?[ \t]*\r?\n(.*?)```", re.IGNORECASE | re.DOTALL)
_LEADING_FENCE_RE = re.compile(r"^```[ \t]*(?:html?)?[ \t]*\r?\n?", re.IGNORECASE)
_TRAILING_FENCE_RE = re.compile(r"\r?\n?[ \t]*```$")
_FENCE_LINE_RE = re.compile(r"^[ \t]*```[ \t]*(?:html?)?[ \t]*(?:\r?\n|$)", re.IGNORECASE | re.MULTILINE)
_DOCUMENT_ROOT_RE = re.compile(r"<!doctype|<html", re.IGNORECASE)

# Used only if template rendering itself blows up
_LAST_RESORT_FALLBACK = (
    '<div class="viz-fallback" data-fallback-reason="error" role="alert" '
    'style="padding: 20px; text-align: center; color: #ef4444; background: #1f2937; border-radius: 8px;">'
    "<h3>Failed to generate visualization</h3><p>Please try again.</p></div>"
)


def strip_code_fences(text: str) -> str:
    """Remove markdown fences the model wrapped around its HTML."""
    t = (text or "").strip()
    m = _ENCLOSING_FENCE_RE.match(t)
    if m:
        return m.group(1).strip()
    if t.startswith("<"):
        # Markup first: drop stray fence lines wherever the model left them
        t = _FENCE_LINE_RE.sub("", t)
        return _TRAILING_FENCE_RE.sub("", t, count=1).strip()
    # Chatter around a fenced block: keep the first block that looks like markup
    for m in _EMBEDDED_FENCE_RE.finditer(t):
        inner = m.group(1).strip()
        if "<" in inner:
            return inner
    # Truncated completions often lose the closing fence
    t = _LEADING_FENCE_RE.sub("", t, count=1)
    t = _TRAILING_FENCE_RE.sub("", t, count=1)
    return t.strip()


def is_complete_document(text: str) -> bool:
    return bool(_DOCUMENT_ROOT_RE.search(text or ""))


def fallback_preview(source_text: str, limit: Optional[int] = None) -> str:
    """Prefix of the source text shown in the fallback, ellipsised past the bound."""
    bound = FALLBACK_PREVIEW_CHARS if limit is None else limit
    s = source_text or ""
    if bound > 0 and len(s) > bound:
        return s[:bound] + "..."
    return s


def _fallback(result: GenerationResult, source_text: str, reason: Optional[str] = None) -> NormalizedDocument:
    if isinstance(result, Timeout):
        reason = reason or "timeout"
        heading = "Visualization timed out"
        detail = f"The model did not respond within {result.budget_seconds:g} seconds."
    elif isinstance(result, UpstreamError):
        reason = reason or "upstream_error"
        heading = "Failed to generate visualization"
        if result.status_code is None:
            detail = "The model provider could not be reached."
        else:
            detail = f"The model provider returned an error (HTTP {result.status_code})."
    else:
        reason = reason or "empty"
        heading = "No visualization could be generated"
        detail = "The model returned no usable content for this message."
    try:
        content = render_fallback(reason, heading, detail, fallback_preview(source_text))
    except Exception:
        log.exception("normalizer: fallback template failed to render")
        content = _LAST_RESORT_FALLBACK
    return NormalizedDocument(html=content, was_fallback=True)


def normalize(result: GenerationResult, source_text_for_fallback: str) -> NormalizedDocument:
    try:
        if not isinstance(result, Success):
            return _fallback(result, source_text_for_fallback)
        cleaned = strip_code_fences(result.html)
        if not cleaned:
            log.info("normalizer: completion empty after fence stripping")
            return _fallback(EmptyCompletion(reason="empty after cleanup"), source_text_for_fallback)
        if is_complete_document(cleaned):
            return NormalizedDocument(html=cleaned, was_fallback=False)
        return NormalizedDocument(html=render_document_shell(cleaned), was_fallback=False)
    except Exception:
        log.exception("normalizer: unexpected error; serving fallback")
        return NormalizedDocument(html=_LAST_RESORT_FALLBACK, was_fallback=True)


def failure_message(result: GenerationResult) -> Optional[str]:
    """Text for the ``error`` field of a fallback response; None on success."""
    if isinstance(result, Success):
        return None
    if isinstance(result, Timeout):
        detail = "Gemini request timed out"
    elif isinstance(result, UpstreamError):
        if result.status_code is None:
            detail = f"Gemini request failed: {result.message[:500]}"
        else:
            detail = f"Gemini API error: {result.status_code} - {result.message[:500]}"
    elif isinstance(result, EmptyCompletion):
        detail = f"No visualization could be generated ({result.reason})"
    else:
        detail = "Unknown generation outcome"
    return f"Failed to generate visualization: {detail}"