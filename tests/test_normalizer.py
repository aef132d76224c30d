import pytest

from vizbridge import normalizer
from vizbridge.normalizer import failure_message, normalize, strip_code_fences
from vizbridge.types import EmptyCompletion, Success, Timeout, UpstreamError


SOURCE = "Q3 revenue was $10,000"


def test_fragment_is_wrapped_in_dark_shell():
    doc = normalize(Success(html="<p>x</p>"), SOURCE)
    assert doc.was_fallback is False
    assert "<p>x</p>" in doc.html
    assert doc.html.startswith("<!DOCTYPE html>")
    assert doc.html.endswith("</html>")
    assert "background: #111827" in doc.html


def test_fenced_document_is_unwrapped_and_passed_through():
    raw = "```html\n<html><body><h1>Q3</h1></body></html>\n```"
    doc = normalize(Success(html=raw), SOURCE)
    assert doc.was_fallback is False
    assert doc.html == "<html><body><h1>Q3</h1></body></html>"


def test_doctype_detection_is_case_insensitive():
    raw = "<!doctype HTML>\n<HTML><body>hi</body></HTML>"
    doc = normalize(Success(html=raw), SOURCE)
    assert doc.html == raw


def test_surrounding_whitespace_is_trimmed():
    doc = normalize(Success(html="\n\n  <html><body>ok</body></html>  \n"), SOURCE)
    assert doc.html == "<html><body>ok</body></html>"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("```html\n<div>a</div>\n```", "<div>a</div>"),
        ("```HTML\n<div>a</div>\n```", "<div>a</div>"),
        ("```\n<div>a</div>\n```", "<div>a</div>"),
        ("Here is your dashboard:\n```html\n<div>a</div>\n```\nEnjoy!", "<div>a</div>"),
        ("```html\n<!DOCTYPE html><html><body>cut off", "<!DOCTYPE html><html><body>cut off"),
        ("<div>a</div>\n```", "<div>a</div>"),
        ("<div>a</div>", "<div>a</div>"),
        ("<p>Here:</p>\n```html\n<div>x</div>\n```", "<p>Here:</p>\n<div>x</div>"),
    ],
)
def test_strip_code_fences(raw, expected):
    assert strip_code_fences(raw) == expected


def test_timeout_fallback_truncates_long_source_with_ellipsis():
    source = "a" * 200
    doc = normalize(Timeout(budget_seconds=23), source)
    assert doc.was_fallback is True
    assert ("a" * 150 + "...") in doc.html
    assert ("a" * 151) not in doc.html
    assert 'data-fallback-reason="timeout"' in doc.html


def test_short_source_is_echoed_without_ellipsis():
    doc = normalize(Timeout(budget_seconds=23), SOURCE)
    assert SOURCE in doc.html
    assert SOURCE + "..." not in doc.html


def test_preview_bound_is_configurable(monkeypatch):
    monkeypatch.setattr(normalizer, "FALLBACK_PREVIEW_CHARS", 10)
    doc = normalize(Timeout(budget_seconds=1), "0123456789abcdef")
    assert "0123456789..." in doc.html
    assert "0123456789a" not in doc.html


@pytest.mark.parametrize("source", ["  padded message  ", "\n" + "b" * 149 + "  tail", " " * 3 + "c" * 200])
def test_preview_is_a_prefix_of_the_source(source):
    preview = normalizer.fallback_preview(source, limit=150)
    if len(source) > 150:
        assert preview == source[:150] + "..."
    else:
        assert preview == source


def test_fallback_escapes_source_text():
    doc = normalize(EmptyCompletion(), "<script>alert(1)</script>")
    assert "<script>" not in doc.html
    assert "&lt;script&gt;" in doc.html


def test_empty_completion_yields_non_empty_fallback():
    doc = normalize(EmptyCompletion(reason="no candidates"), SOURCE)
    assert doc.was_fallback is True
    assert doc.html.strip()
    assert 'data-fallback-reason="empty"' in doc.html


def test_upstream_error_fallback_mentions_status():
    doc = normalize(UpstreamError(status_code=503, message="overloaded"), SOURCE)
    assert doc.was_fallback is True
    assert "HTTP 503" in doc.html
    assert 'data-fallback-reason="upstream_error"' in doc.html


def test_success_that_is_only_fences_falls_back():
    doc = normalize(Success(html="```html\n```"), SOURCE)
    assert doc.was_fallback is True
    assert SOURCE in doc.html


@pytest.mark.parametrize(
    "result",
    [
        Success(html="<p>x</p>"),
        Success(html="```html\n<html><body>x</body></html>\n```"),
        Success(html="   "),
        Timeout(budget_seconds=23),
        UpstreamError(status_code=None, message="dns failure"),
        UpstreamError(status_code=400, message="bad request"),
        EmptyCompletion(),
    ],
)
def test_every_outcome_yields_closed_markup(result):
    doc = normalize(result, SOURCE)
    html = doc.html
    assert html
    if doc.was_fallback:
        assert html.startswith("<div") and html.endswith("</div>")
    else:
        assert "<html" in html.lower() and html.lower().rstrip().endswith("</html>")


def test_normalize_is_deterministic():
    a = normalize(Timeout(budget_seconds=23), SOURCE)
    b = normalize(Timeout(budget_seconds=23), SOURCE)
    assert a == b


def test_normalize_never_raises_on_render_failure(monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("template missing")

    monkeypatch.setattr(normalizer, "render_document_shell", broken)
    monkeypatch.setattr(normalizer, "render_fallback", broken)

    doc = normalize(Success(html="<p>x</p>"), SOURCE)
    assert doc.was_fallback is True
    assert doc.html.startswith("<div")

    doc = normalize(Timeout(budget_seconds=1), SOURCE)
    assert doc.was_fallback is True
    assert doc.html


def test_failure_message_per_outcome():
    assert failure_message(Success(html="<p>x</p>")) is None
    assert "timed out" in failure_message(Timeout(budget_seconds=23))
    assert "Gemini API error: 500 - boom" in failure_message(UpstreamError(status_code=500, message="boom"))
    assert "no candidates" in failure_message(EmptyCompletion(reason="no candidates"))
