"""Per-message visualization state for the chat UI.

State lives in an immutable ``ViewState``; ``start``, ``complete``, ``show``
and ``hide`` are pure transitions returning a new view. The controller is the
only owner of the current view and swaps it under a lock.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional

from vizbridge.service import VisualizationOutcome, visualize
from vizbridge.types import NormalizedDocument

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class VisualizationState:
    message_id: str
    is_generating: bool = False
    content: Optional[str] = None
    is_visible: bool = False
    was_fallback: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "messageId": self.message_id,
            "isGenerating": self.is_generating,
            "content": self.content,
            "isVisible": self.is_visible,
            "wasFallback": self.was_fallback,
        }


def _frozen(d: Dict[str, VisualizationState]) -> Mapping[str, VisualizationState]:
    return MappingProxyType(d)


@dataclass(frozen=True)
class ViewState:
    visualizations: Mapping[str, VisualizationState] = field(default_factory=lambda: _frozen({}))
    current: Optional[str] = None

    @property
    def is_generating(self) -> bool:
        return any(v.is_generating for v in self.visualizations.values())

    def _with(self, state: VisualizationState, **changes: Any) -> "ViewState":
        items = dict(self.visualizations)
        items[state.message_id] = state
        return replace(self, visualizations=_frozen(items), **changes)


def start(view: ViewState, message_id: str) -> ViewState:
    new_view = view._with(VisualizationState(message_id=message_id, is_generating=True))
    if view.current == message_id:
        return replace(new_view, current=None)
    return new_view


def complete(view: ViewState, message_id: str, document: NormalizedDocument) -> ViewState:
    state = VisualizationState(
        message_id=message_id,
        is_generating=False,
        content=document.html,
        is_visible=not document.was_fallback,
        was_fallback=document.was_fallback,
    )
    if document.was_fallback:
        return view._with(state)
    return view._with(state, current=message_id)


def show(view: ViewState, message_id: str) -> ViewState:
    existing = view.visualizations.get(message_id)
    if existing is None:
        raise KeyError(message_id)
    return view._with(replace(existing, is_visible=True), current=message_id)


def hide(view: ViewState) -> ViewState:
    if view.current is None:
        return view
    existing = view.visualizations.get(view.current)
    if existing is None:
        return replace(view, current=None)
    return view._with(replace(existing, is_visible=False), current=None)


class VisualizationController:
    def __init__(self, visualize_fn: Optional[Callable[..., VisualizationOutcome]] = None):
        self._lock = threading.Lock()
        self._view = ViewState()
        self._visualize = visualize_fn or visualize

    def _apply(self, transition: Callable[..., ViewState], *args: Any) -> ViewState:
        with self._lock:
            self._view = transition(self._view, *args)
            return self._view

    @property
    def view(self) -> ViewState:
        return self._view

    @property
    def current(self) -> Optional[str]:
        return self._view.current

    @property
    def is_generating(self) -> bool:
        return self._view.is_generating

    def get(self, message_id: str) -> Optional[VisualizationState]:
        return self._view.visualizations.get(message_id)

    def generate(self, message_id: str, message_text: str, **kwargs: Any) -> VisualizationOutcome:
        """Run one generation for ``message_id``; other ids are unaffected."""
        self._apply(start, message_id)
        try:
            outcome = self._visualize(message_text, **kwargs)
        except Exception:
            # Roll back so the entry does not stay stuck in generating
            with self._lock:
                items = dict(self._view.visualizations)
                items.pop(message_id, None)
                self._view = replace(self._view, visualizations=_frozen(items))
            raise
        self._apply(complete, message_id, outcome.document)
        log.info("visualizations: %s completed fallback=%s", message_id, outcome.document.was_fallback)
        return outcome

    def show(self, message_id: str) -> VisualizationState:
        view = self._apply(show, message_id)
        return view.visualizations[message_id]

    def hide(self) -> None:
        self._apply(hide)
