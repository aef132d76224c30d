import pytest

from vizbridge.prompts import build_prompt, select_template
from vizbridge.types import PromptTemplate


@pytest.mark.parametrize(
    "text",
    [
        "Q3 revenue was $10,000",
        "Net Income (Loss): -$90,661.38",
        "Cash Runway: 7.77 months at the current burn rate",
        "EBITDA margin improved year over year",
        "We closed the round at 2,500,000 USD",
    ],
)
def test_financial_text_selects_data_template(text):
    assert select_template(text) is PromptTemplate.DATA_METRICS


@pytest.mark.parametrize(
    "text",
    [
        "Tell me a story about a dragon who learns to fly",
        "Explain how photosynthesis works",
        "",
    ],
)
def test_other_text_selects_narrative_template(text):
    assert select_template(text) is PromptTemplate.GENERIC_NARRATIVE


def test_keyword_match_is_case_insensitive_and_whole_word():
    assert select_template("TOTAL ASSETS grew") is PromptTemplate.DATA_METRICS
    # "cashew" must not count as "cash"
    assert select_template("a bowl of cashews") is PromptTemplate.GENERIC_NARRATIVE


def test_build_prompt_embeds_text_verbatim():
    text = "Q3 revenue was $10,000 {not a format field}"
    prompt = build_prompt(PromptTemplate.DATA_METRICS, text)
    assert text in prompt
    assert "EXACT NUMERICAL DATA" in prompt
    assert "Return ONLY the complete HTML code" in prompt


def test_narrative_prompt_asks_for_html_only():
    prompt = build_prompt(PromptTemplate.GENERIC_NARRATIVE, "the water cycle")
    assert "the water cycle" in prompt
    assert "Return only the HTML code, no explanations." in prompt
    assert "Dark theme" in prompt
