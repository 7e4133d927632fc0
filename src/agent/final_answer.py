"""
agent.final_answer - Extract the structured answer from free-form model text.

parse_final_answer() is pure and never raises: it returns None when no
JSON object can be recovered. resolve_final_answer() applies the fallback
contract on top of it.

Expected shape:
    {"summary": str, "recommendations": [{"categoryLabel", "productTitle",
     "reason"}], "followUpQuestion": str|null, "followUpOptions": [str]}
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from domain.models import DEFAULT_SUMMARY, FinalAnswer, Recommendation

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_final_answer(content: str) -> Optional[FinalAnswer]:
    if not content or not content.strip():
        return None

    text = _CODE_FENCE.sub("", content.strip())
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None

    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        summary = DEFAULT_SUMMARY

    follow_up = data.get("followUpQuestion")
    return FinalAnswer(
        summary=summary,
        recommendations=_recommendations(data.get("recommendations")),
        follow_up_question=follow_up if isinstance(follow_up, str) and follow_up else None,
        follow_up_options=_strings(data.get("followUpOptions")),
    )


def resolve_final_answer(content: Optional[str]) -> FinalAnswer:
    """Parse the model's closing text, degrading to plain text on failure.

    None (no final answer, e.g. loops exhausted) and blank content give the
    default summary.
    """
    if content is None or not content.strip():
        return FinalAnswer()
    parsed = parse_final_answer(content)
    if parsed is not None:
        return parsed
    logger.info("Final answer is not JSON, using raw text as summary")
    return FinalAnswer(summary=content.strip())


def _recommendations(value: Any) -> list[Recommendation]:
    if not isinstance(value, list):
        return []
    recs = []
    for item in value:
        if not isinstance(item, dict):
            continue
        recs.append(Recommendation(
            category_label=str(item.get("categoryLabel") or ""),
            product_title=str(item.get("productTitle") or ""),
            reason=str(item.get("reason") or ""),
        ))
    return recs


def _strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if isinstance(v, (str, int, float)) and str(v).strip()]
