from __future__ import annotations

import json
import logging
import os
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Dict, Optional

import requests

from vizbridge.errors import ConfigurationError
from vizbridge.operation import AbandonableCall
from vizbridge.prompts import build_prompt
from vizbridge.types import (
    EmptyCompletion,
    GenerationRequest,
    GenerationResult,
    SamplingParams,
    Success,
    Timeout,
    UpstreamError,
)

log = logging.getLogger(__name__)

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "").strip()
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash").strip()
GEMINI_ENDPOINT = f"https://generativelanguage.googleapis.com/v1beta/models/{GEMINI_MODEL}:generateContent"


def _env_number(name: str, default: Any, cast: Callable[[str], Any], valid: Callable[[Any], bool]) -> Any:
    """Parse a numeric setting; unparsable or out-of-range values fall back to the default."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        log.warning("config: %s=%r is not a number; using %r", name, raw, default)
        return default
    if not valid(value):
        log.warning("config: %s=%r is out of range; using %r", name, raw, default)
        return default
    return value


TEMPERATURE = _env_number("TEMPERATURE", 0.3, float, lambda v: 0.0 <= v <= 1.0)
LLM_MAX_TOKENS = _env_number("LLM_MAX_TOKENS", 10800, int, lambda v: v > 0)
TOP_K = _env_number("TOP_K", 40, int, lambda v: v > 0)
TOP_P = _env_number("TOP_P", 0.95, float, lambda v: 0.0 <= v <= 1.0)

# Wall-clock budget the caller waits for a completion
LLM_TIMEOUT_SECS = _env_number("LLM_TIMEOUT_SECS", 23.0, float, lambda v: v > 0)
# Socket-level timeout; bounds how long an abandoned request can linger
LLM_TRANSPORT_TIMEOUT_SECS = _env_number("LLM_TRANSPORT_TIMEOUT_SECS", 60.0, float, lambda v: v > 0)


def default_sampling() -> SamplingParams:
    return SamplingParams(
        temperature=TEMPERATURE,
        max_output_tokens=LLM_MAX_TOKENS,
        top_k=TOP_K,
        top_p=TOP_P,
    )


def status() -> Dict[str, Any]:
    return {
        "provider": "gemini",
        "model": GEMINI_MODEL,
        "has_token": bool(GEMINI_API_KEY),
        "timeout_secs": LLM_TIMEOUT_SECS,
    }


def build_payload(req: GenerationRequest) -> Dict[str, Any]:
    prompt = build_prompt(req.prompt_template, req.source_text)
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": req.sampling.as_generation_config(),
    }


def _post_generate(body: Dict[str, Any], api_key: str) -> "requests.Response":
    return requests.post(
        GEMINI_ENDPOINT,
        params={"key": api_key},
        headers={"Content-Type": "application/json"},
        json=body,
        timeout=LLM_TRANSPORT_TIMEOUT_SECS,
    )


def generate(
    req: GenerationRequest,
    budget: Optional[float] = None,
    api_key: Optional[str] = None,
) -> GenerationResult:
    """Issue exactly one generateContent call and classify its outcome.

    Upstream failures never raise; they come back as result variants. The only
    exception is a missing credential, which is a deployment problem rather
    than something the UI can render around.
    """
    key = (api_key or GEMINI_API_KEY or "").strip()
    if not key:
        raise ConfigurationError("Gemini API key not configured")
    budget_secs = LLM_TIMEOUT_SECS if budget is None else float(budget)

    body = build_payload(req)
    log.info(
        "gemini: template=%s payload_bytes=%d budget=%.1fs",
        req.prompt_template.value,
        len(json.dumps(body)),
        budget_secs,
    )

    call = AbandonableCall(_post_generate, body, key, name="gemini-generate").start()
    try:
        resp = call.result(timeout=budget_secs)
    except FuturesTimeoutError:
        call.abandon()
        log.warning("gemini: no response within %.1fs budget", budget_secs)
        return Timeout(budget_seconds=budget_secs)
    except Exception as e:
        log.warning("gemini: request error: %r", e)
        return UpstreamError(status_code=None, message=str(e) or e.__class__.__name__)

    log.info("gemini: HTTP %s in %dms", resp.status_code, int(call.elapsed() * 1000))
    return _interpret_response(resp)


def _interpret_response(resp: Any) -> GenerationResult:
    if not 200 <= resp.status_code < 300:
        try:
            msg = resp.text
        except Exception:
            msg = ""
        log.warning("gemini: HTTP %s: %s", resp.status_code, (msg or "")[:400])
        return UpstreamError(status_code=resp.status_code, message=msg or "")

    try:
        data = resp.json()
    except ValueError:
        log.warning("gemini: non-JSON body")
        return EmptyCompletion(reason="non-JSON response body")
    if not isinstance(data, dict):
        return EmptyCompletion(reason="unexpected response shape")

    candidates = data.get("candidates") or []
    if not isinstance(candidates, list) or not candidates:
        feedback = data.get("promptFeedback")
        log.warning("gemini: no candidates returned (promptFeedback=%s)", feedback)
        return EmptyCompletion(reason="no candidates")

    candidate = candidates[0] if isinstance(candidates[0], dict) else {}
    finish_reason = candidate.get("finishReason")
    if finish_reason and finish_reason != "STOP":
        log.warning("gemini: generation finished with reason %s", finish_reason)

    text = _extract_candidate_text(candidate)
    if not text:
        log.warning("gemini: first candidate has no text parts")
        return EmptyCompletion(reason="no text in first candidate")
    log.info("gemini: completion chars=%d", len(text))
    return Success(html=text)


def _extract_candidate_text(candidate: Dict[str, Any]) -> Optional[str]:
    content = candidate.get("content") or {}
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return None
    texts = []
    for part in parts:
        if not isinstance(part, dict) or part.get("thought"):
            continue
        txt = part.get("text")
        if isinstance(txt, str):
            texts.append(txt)
    joined = "".join(texts)
    return joined if joined.strip() else None
