"""Request bodies and the JSON shapes the completion service is asked to return.

Response models check structure (required keys, lists vs. objects) but stay
lenient about scalar types: ids may come back as strings, KPI values as
numbers. Unknown keys are allowed and the caller receives the parsed JSON
unchanged.
"""

from __future__ import annotations

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

Identifier = Union[int, str]
Scalar = Union[str, int, float, bool, None]


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="allow")


# Requests -----------------------------------------------------------------
class InsightRequestBody(BaseModel):
    url: Optional[Any] = None
    test_mode: Optional[bool] = Field(False, alias="testMode")

    model_config = ConfigDict(populate_by_name=True)


class FetchExcelRequestBody(BaseModel):
    url: Optional[Any] = None
    sheet_index: Optional[int] = Field(0, alias="sheetIndex")

    model_config = ConfigDict(populate_by_name=True)


# final-summary --------------------------------------------------------------
class Limitation(_Lenient):
    id: Identifier
    text: str
    fixed: bool


class FinalSummaryResponse(_Lenient):
    limitations: List[Limitation]
    takeaway: str


# general analytics ----------------------------------------------------------
class Kpi(_Lenient):
    label: str
    value: Scalar


class GeneralAnalyticsResponse(_Lenient):
    kpis: List[Kpi]
    executiveSummary: List[str]
    dataQualityNotes: List[str]


# recommendations ------------------------------------------------------------
class RecommendationItem(_Lenient):
    id: Identifier
    text: str
    done: bool


class RecommendationGroups(_Lenient):
    immediate: List[RecommendationItem]
    medium: List[RecommendationItem]
    strategic: List[RecommendationItem]


class MonitoringStep(_Lenient):
    id: Identifier
    label: str
    desc: str


class RecommendationsResponse(_Lenient):
    recommendations: RecommendationGroups
    monitoringPlan: List[MonitoringStep]


# alerts ---------------------------------------------------------------------
class Alert(_Lenient):
    id: Identifier
    type: str  # "critical" or "warning"
    text: str


class Correlation(_Lenient):
    id: Identifier
    pair: str
    value: Scalar
    meaning: str
    trend: str  # "up" or "down"


class AlertsResponse(_Lenient):
    alerts: List[Alert]
    correlations: List[Correlation]
