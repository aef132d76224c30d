from __future__ import annotations

import re
from typing import Dict, Tuple

from vizbridge.types import PromptTemplate


# Financial / metric vocabulary that switches to the dashboard template.
_DATA_KEYWORDS: Tuple[str, ...] = (
    "revenue",
    "revenues",
    "total assets",
    "assets",
    "liabilities",
    "net income",
    "net loss",
    "burn rate",
    "runway",
    "cash",
    "expenses",
    "operating expenses",
    "profit",
    "ebitda",
    "margin",
    "earnings",
    "arr",
    "mrr",
    "forecast",
    "valuation",
)

_KEYWORD_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(k) for k in sorted(_DATA_KEYWORDS, key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)
_QUARTER_RE = re.compile(r"\b(?:q[1-4]|fy\s?\d{2,4})\b", re.IGNORECASE)
_CURRENCY_RE = re.compile(r"[$€£¥]\s?-?\d[\d,]*(?:\.\d+)?|-?\d[\d,]*(?:\.\d+)?\s?(?:usd|eur|gbp)\b", re.IGNORECASE)


def select_template(text: str) -> PromptTemplate:
    """Pick the prompt template for a message by plain keyword matching."""
    t = text or ""
    if _KEYWORD_RE.search(t) or _QUARTER_RE.search(t) or _CURRENCY_RE.search(t):
        return PromptTemplate.DATA_METRICS
    return PromptTemplate.GENERIC_NARRATIVE


_DATA_METRICS_PROMPT = """Based on the message text below, generate a comprehensive graphic visualization dashboard to help understand the financial information.
MISSION: Create an interactive data visualization that brings the content to life with working charts, graphs and visual elements.

CRITICAL: YOU MUST EXTRACT AND USE THE EXACT NUMERICAL DATA FROM THE MESSAGE TEXT.
DO NOT USE PLACEHOLDER VALUES LIKE $0.00 OR GENERIC NUMBERS.

DATA TO LOOK FOR (when present):
- Total Assets, Total Revenues, Net Income (Loss)
- Cash balance and Current Assets
- Monthly Burn Rate and Cash Runway
- Total Operating Expenses and major expense categories
- Period-over-period trends with their dates and amounts

EXAMPLES:
If you see "Total Assets: $217,741.72" -> display exactly $217,741.72
If you see "Cash Runway: 7.77 months" -> display exactly 7.77 months

VISUAL REQUIREMENTS:
- Complete standalone HTML with DOCTYPE, head, body
- Dark theme: #111827 background, #1f2937 cards, white text, #3b82f6/#8b5cf6 accents
- Working charts using Canvas API, SVG or CSS (bar, line, pie, gauges, progress bars)
- Colors convey meaning (red = negative, green = positive)
- Hover tooltips, animated counters, responsive layout
- Pure HTML/CSS/JavaScript, no external libraries or CDNs

Message text:
\"\"\"
{text}
\"\"\"

Return ONLY the complete HTML code, no explanations."""


_GENERIC_NARRATIVE_PROMPT = """Create an interactive HTML visualization for this data/message:
\"\"\"
{text}
\"\"\"

Requirements:
- Complete HTML with inline CSS and JavaScript
- Dark theme (background: #1f2937, text: white, accent: #2563eb)
- Responsive design
- Interactive elements where appropriate
- Professional appearance
- Maximum 10,000 characters

Return only the HTML code, no explanations."""


_TEMPLATES: Dict[PromptTemplate, str] = {
    PromptTemplate.DATA_METRICS: _DATA_METRICS_PROMPT,
    PromptTemplate.GENERIC_NARRATIVE: _GENERIC_NARRATIVE_PROMPT,
}


def build_prompt(template: PromptTemplate, text: str) -> str:
    # str.replace keeps braces in user text from being read as format fields
    return _TEMPLATES[template].replace("{text}", text)
