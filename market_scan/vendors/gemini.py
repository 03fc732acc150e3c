"""Client for the Gemini text-generation API used to phrase advisory text."""

import json
import logging
from typing import Any, Dict

import requests

from market_scan.analysis.report import AnalysisReport
from market_scan.core.config import Settings

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

_INSTRUCTION = (
    "You are a commercial-area analyst. Using only the facts below, advise a prospective owner "
    "on opening a {category} business here: opportunities, risks, and how to differentiate. "
    "When reliability is 'unavailable', say that no provider data could be collected."
)


class AdvisorError(RuntimeError):
    """Raised when the text-generation service does not return advice."""


def build_fact_sheet(report: AnalysisReport, max_competitors: int = 10) -> Dict[str, Any]:
    """Structured facts embedded in the prompt; a trimmed view of the report."""
    facts = report.to_dict()
    facts["competitors"] = facts["competitors"][:max_competitors]
    facts["providers"] = {source_id: status["ok"] for source_id, status in facts.pop("perSource").items()}
    return facts


def build_prompt(report: AnalysisReport) -> str:
    facts = build_fact_sheet(report)
    return "\n\n".join(
        [
            _INSTRUCTION.format(category=report.meta.category),
            json.dumps(facts, ensure_ascii=False, indent=2),
        ]
    )


def generate_advice(report: AnalysisReport, settings: Settings, timeout: float = 60.0) -> str:
    if not settings.gemini_api_key:
        raise AdvisorError("GEMINI_API_KEY is not configured")

    body = {
        "contents": [{"parts": [{"text": build_prompt(report)}]}],
        "generationConfig": {"temperature": 0.7, "maxOutputTokens": 8192},
    }
    try:
        response = _SESSION.post(
            f"{_BASE_URL}/{settings.gemini_model}:generateContent",
            json=body,
            headers={"x-goog-api-key": settings.gemini_api_key},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        logger.error("generate_advice request failed: %s", exc.__class__.__name__)
        raise AdvisorError("text generation request failed") from exc

    if response.status_code >= 400:
        logger.error("generate_advice failed: status=%s", response.status_code)
        raise AdvisorError(f"text generation returned HTTP {response.status_code}")

    try:
        text = response.json()["candidates"][0]["content"]["parts"][0]["text"]
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise AdvisorError("text generation returned no candidates") from exc
    return text.strip()
