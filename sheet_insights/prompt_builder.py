from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from textwrap import dedent
from typing import Any, Dict, List, Mapping, Type, Union

from pydantic import BaseModel

from .models import SheetDigest
from .schemas import (
    AlertsResponse,
    FinalSummaryResponse,
    GeneralAnalyticsResponse,
    RecommendationsResponse,
)

Digest = Union[SheetDigest, Mapping[str, SheetDigest]]


class InsightKind(str, Enum):
    FINAL_SUMMARY = "final_summary"
    GENERAL_ANALYTICS = "general_analytics"
    RECOMMENDATIONS = "recommendations"
    ALERTS = "alerts"


@dataclass(frozen=True)
class InsightTemplate:
    """A fixed prompt paired with the JSON shape the model must answer with."""

    kind: InsightKind
    role: str
    data_label: str
    task: str
    shape: str
    rules: str
    response_model: Type[BaseModel]


_TEMPLATES: Dict[InsightKind, InsightTemplate] = {
    InsightKind.FINAL_SUMMARY: InsightTemplate(
        kind=InsightKind.FINAL_SUMMARY,
        role="You are a data assistant.",
        data_label="Given this Excel summary:",
        task="Generate a JSON object strictly with this format:",
        shape="""
        {
          "limitations": [{"id": number, "text": "string", "fixed": boolean}],
          "takeaway": "string"
        }
        """,
        rules="""
        - "limitations" should be 3-6 items max
        - Each item must have id, text, fixed (true/false)
        - takeaway should be 1 actionable insight.
        Return ONLY valid JSON.
        """,
        response_model=FinalSummaryResponse,
    ),
    InsightKind.GENERAL_ANALYTICS: InsightTemplate(
        kind=InsightKind.GENERAL_ANALYTICS,
        role="You are an analytics assistant.",
        data_label="Given these Excel sheet summaries:",
        task="Generate a JSON object with the structure:",
        shape="""
        {
          "kpis": [{"label": "string", "value": "string"}],
          "executiveSummary": ["string"],
          "dataQualityNotes": ["string"]
        }
        """,
        rules="""
        Return only JSON.
        """,
        response_model=GeneralAnalyticsResponse,
    ),
    InsightKind.RECOMMENDATIONS: InsightTemplate(
        kind=InsightKind.RECOMMENDATIONS,
        role="You are a city analytics assistant.",
        data_label="Based on these data summaries:",
        task="Generate recommendations in strictly valid JSON:",
        shape="""
        {
          "recommendations": {
            "immediate": [{"id": 1, "text": "string", "done": false}],
            "medium": [{"id": 1, "text": "string", "done": false}],
            "strategic": [{"id": 1, "text": "string", "done": false}]
          },
          "monitoringPlan": [
            {"id": 1, "label": "Daily", "desc": "string"},
            {"id": 2, "label": "Weekly", "desc": "string"},
            {"id": 3, "label": "Monthly", "desc": "string"}
          ]
        }
        """,
        rules="""
        Do not include explanations or extra text.
        """,
        response_model=RecommendationsResponse,
    ),
    InsightKind.ALERTS: InsightTemplate(
        kind=InsightKind.ALERTS,
        role="You are a data insights assistant.",
        data_label="Given this sheet summary:",
        task="Generate a JSON object with the structure:",
        shape="""
        {
          "alerts": [
            {"id": 1, "type": "critical|warning", "text": "string"}
          ],
          "correlations": [
            {"id": 1, "pair": "string", "value": number, "meaning": "string", "trend": "up|down"}
          ]
        }
        """,
        rules="""
        Return only valid JSON.
        """,
        response_model=AlertsResponse,
    ),
}


def get_template(kind: Union[InsightKind, str]) -> InsightTemplate:
    return _TEMPLATES[InsightKind(kind)]


def digest_payload(digest: Digest) -> Any:
    """Return the JSON-ready form of a single digest or a sheet name -> digest mapping."""

    if isinstance(digest, SheetDigest):
        return digest.to_dict()
    return {name: sheet_digest.to_dict() for name, sheet_digest in digest.items()}


def build_insight_prompt(template: InsightTemplate, digest: Digest) -> str:
    """Embed the digest into the template text."""

    digest_json = json.dumps(digest_payload(digest), ensure_ascii=False, default=str)

    sections = [
        template.role,
        f"{template.data_label} {digest_json}",
        template.task,
        dedent(template.shape).strip(),
        dedent(template.rules).strip(),
    ]
    return "\n".join(sections)


def build_insight_messages(
    kind: Union[InsightKind, str],
    digest: Digest,
) -> List[Dict[str, str]]:
    """Compose the single user message sent to the completion endpoint."""

    template = get_template(kind)
    return [{"role": "user", "content": build_insight_prompt(template, digest)}]
