import json
import logging
import os
import time
import uuid
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from vizbridge import gemini_client
from vizbridge.errors import ConfigurationError, InputValidationError, VisualizationError
from vizbridge.service import visualize
from vizbridge.visualizations import VisualizationController


if not logging.getLogger().handlers:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

log = logging.getLogger(__name__)

GENERATE_PATH = "/api/generate-visualization"
API_KEY_HEADER = "x-gemini-api-key"

CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": f"Content-Type, {API_KEY_HEADER}",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}

app = FastAPI(title="vizbridge", version="0.1.0")

controller = VisualizationController()


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = str(uuid.uuid4())
    start = time.time()
    request.state.request_id = rid
    response = None
    try:
        response = await call_next(request)
        # The browser UI may be served from anywhere
        for name, value in CORS_HEADERS.items():
            response.headers.setdefault(name, value)
        return response
    finally:
        dur_ms = int((time.time() - start) * 1000)
        log.info(
            "rid=%s method=%s path=%s status=%s dur_ms=%d",
            rid,
            request.method,
            request.url.path,
            getattr(response, "status_code", "?"),
            dur_ms,
        )


class VisualizationRequest(BaseModel):
    messageText: str = Field(..., min_length=1, description="Chat message to visualize")


def _json(status_code: int, content: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=content, headers=CORS_HEADERS)


@app.exception_handler(VisualizationError)
async def visualization_error_handler(request: Request, exc: VisualizationError) -> JSONResponse:
    log.warning("request rejected status=%d error=%s", exc.status_code, exc.message)
    return _json(exc.status_code, {"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 405:
        return _json(405, {"error": "Method not allowed"})
    return _json(exc.status_code, {"error": str(exc.detail)})


async def _parse_message_text(request: Request) -> str:
    raw = await request.body()
    if not raw or not raw.strip():
        raise InputValidationError("Request body is required")
    try:
        data = json.loads(raw)
    except ValueError:
        raise InputValidationError("Request body must be valid JSON")
    if not isinstance(data, dict):
        raise InputValidationError("Request body must be a JSON object")
    try:
        body = VisualizationRequest.model_validate(data)
    except ValidationError:
        raise InputValidationError("Message text is required")
    if not body.messageText.strip():
        raise InputValidationError("Message text is required")
    return body.messageText


def _resolve_api_key(request: Request) -> str:
    # Process configuration first; the header is a development-time fallback
    key = (gemini_client.GEMINI_API_KEY or request.headers.get(API_KEY_HEADER) or "").strip()
    if not key:
        raise ConfigurationError("Gemini API key not configured")
    return key


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/llm/status")
def llm_status_endpoint() -> Dict[str, Any]:
    return gemini_client.status()


@app.options(GENERATE_PATH)
def generate_preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


@app.post(GENERATE_PATH)
async def generate_visualization(request: Request) -> JSONResponse:
    message_text = await _parse_message_text(request)
    api_key = _resolve_api_key(request)
    log.info("generate: message_chars=%d", len(message_text))
    outcome = await run_in_threadpool(visualize, message_text, api_key=api_key)
    if outcome.document.was_fallback:
        # Handled failure: the UI still gets something to render
        return _json(200, {"error": outcome.error, "content": outcome.document.html})
    return _json(200, {"content": outcome.document.html})


@app.api_route(GENERATE_PATH, methods=["GET", "HEAD", "PUT", "PATCH", "DELETE", "TRACE"])
def generate_method_not_allowed(request: Request) -> JSONResponse:
    log.info("generate: method not allowed: %s", request.method)
    return _json(405, {"error": "Method not allowed"})


@app.get("/api/visualizations")
def visualizations_overview() -> Dict[str, Any]:
    return {"current": controller.current, "isGenerating": controller.is_generating}


@app.post("/api/visualizations/hide")
def hide_visualization() -> Dict[str, Any]:
    controller.hide()
    return {"current": controller.current}


@app.post("/api/visualizations/{message_id}")
async def generate_for_message(message_id: str, request: Request) -> JSONResponse:
    message_text = await _parse_message_text(request)
    api_key = _resolve_api_key(request)
    outcome = await run_in_threadpool(controller.generate, message_id, message_text, api_key=api_key)
    state = controller.get(message_id)
    payload: Dict[str, Any] = state.as_dict() if state else {"messageId": message_id}
    if outcome.document.was_fallback:
        payload["error"] = outcome.error
    return _json(200, payload)


@app.get("/api/visualizations/{message_id}")
def get_visualization(message_id: str) -> JSONResponse:
    state = controller.get(message_id)
    if state is None:
        return _json(404, {"error": "Visualization not found"})
    return _json(200, state.as_dict())


@app.post("/api/visualizations/{message_id}/show")
def show_visualization(message_id: str) -> JSONResponse:
    try:
        state = controller.show(message_id)
    except KeyError:
        return _json(404, {"error": "Visualization not found"})
    return _json(200, state.as_dict())
