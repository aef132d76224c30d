from __future__ import annotations

import os

from jinja2 import Environment, FileSystemLoader, select_autoescape

# Templates ship inside the package so the function works from any cwd
_env = Environment(
    loader=FileSystemLoader(os.path.join(os.path.dirname(__file__), "templates")),
    autoescape=select_autoescape(["html", "xml"]),
    enable_async=False,
)


def render_document_shell(fragment: str, title: str = "Visualization") -> str:
    """Wrap a bare HTML fragment in a minimal dark-theme document."""
    tpl = _env.get_template("document_shell.html")
    return tpl.render(fragment=fragment, title=title).strip()


def render_fallback(reason: str, heading: str, detail: str, preview: str) -> str:
    """Styled error block; ``preview`` is user text and is escaped by the template."""
    tpl = _env.get_template("fallback.html")
    return tpl.render(reason=reason, heading=heading, detail=detail, preview=preview).strip()
