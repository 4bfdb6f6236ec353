from __future__ import annotations

import math
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import InputType, Severity


class PhishingCategory(str, Enum):
    urgency = "Urgency & pressure"
    credential_request = "Credential request"
    payment_pressure = "Payment pressure"
    call_to_action = "Call-to-action link"
    data_loss_threat = "Data loss threat"


class PiiKind(str, Enum):
    email = "email"
    phone = "phone"
    ssn = "ssn"
    credit_card = "credit_card"


class AnalysisRequest(BaseModel):
    input_type: InputType = InputType.text
    content: Optional[str] = None
    text: Optional[str] = None
    url: Optional[str] = None
    page_url: Optional[str] = None
    resources: list[str] = Field(default_factory=list)

    @field_validator("resources", mode="before")
    @classmethod
    def _coerce_resources(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, str)]


class AnalysisInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    input_type: InputType = InputType.text
    raw_text: str = ""
    raw_url_candidates: tuple[str, ...] = ()
    resource_urls: tuple[str, ...] = ()
    primary_url: Optional[str] = None
    image_payload: Optional[str] = None

    @property
    def has_image(self) -> bool:
        return self.image_payload is not None

    @property
    def is_empty(self) -> bool:
        return not self.raw_text and not self.raw_url_candidates and not self.resource_urls and not self.has_image


class PhishingFlag(BaseModel):
    category: PhishingCategory
    description: str
    severity: Severity


class LookalikeMatch(BaseModel):
    source_url: str
    hostname: str
    reason: str
    severity: Severity


class PiiDetection(BaseModel):
    kind: PiiKind
    count: int = 0
    masked_examples: list[str] = Field(default_factory=list)


class PiiResult(BaseModel):
    masked_text: str = ""
    detections: list[PiiDetection] = Field(default_factory=list)
    total_count: int = 0


class TrackerEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    domain: str
    owner: Optional[str] = None
    category: Optional[str] = None


class TrackerMatch(BaseModel):
    resource_url: str
    hostname: str
    tracker_domain: str
    owner: Optional[str] = None
    category: Optional[str] = None


class TrackerAudit(BaseModel):
    primary_domain: Optional[str] = None
    third_party_resources: list[str] = Field(default_factory=list)
    tracker_matches: list[TrackerMatch] = Field(default_factory=list)
    trackers_found_count: int = 0
    third_party_count: int = 0


class EvidenceSource(BaseModel):
    title: str
    url: str
    snippet: str


def _clean_strings(value: Any, limit: int = 12) -> list[str]:
    if not isinstance(value, list):
        return []
    items = [item.strip() for item in value if isinstance(item, str)]
    return [item for item in items if item][:limit]


class ModelAssessment(BaseModel):
    """Assessment returned by the external model.

    The upstream payload is not guaranteed stable, so every field is optional
    and malformed values are coerced to empty defaults instead of rejected.
    """

    risk_score: int = 0
    verdict: Optional[str] = None
    summary: str = ""
    extracted_text: str = ""
    findings: list[str] = Field(default_factory=list)
    flagged_segments: list[str] = Field(default_factory=list)
    recommended_actions: list[str] = Field(default_factory=list)
    evidence_sources: list[EvidenceSource] = Field(default_factory=list)
    model: Optional[str] = None

    @field_validator("risk_score", mode="before")
    @classmethod
    def _coerce_score(cls, value: Any) -> int:
        if isinstance(value, bool):
            return 0
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            return 0
        if math.isnan(numeric) or math.isinf(numeric):
            return 0
        return max(0, min(100, int(round(numeric))))

    @field_validator("verdict", mode="before")
    @classmethod
    def _coerce_verdict(cls, value: Any) -> Optional[str]:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    @field_validator("summary", "extracted_text", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return value.strip() if isinstance(value, str) else ""

    @field_validator("findings", "flagged_segments", "recommended_actions", mode="before")
    @classmethod
    def _coerce_lists(cls, value: Any) -> list[str]:
        return _clean_strings(value)

    @field_validator("evidence_sources", mode="before")
    @classmethod
    def _coerce_evidence(cls, value: Any) -> list[dict]:
        if not isinstance(value, list):
            return []
        sources = []
        for item in value:
            if not isinstance(item, dict):
                continue
            fields = {}
            for key in ("title", "url", "snippet"):
                raw = item.get(key)
                fields[key] = raw.strip() if isinstance(raw, str) else ""
            if all(fields.values()):
                sources.append(fields)
        return sources[:8]

    @property
    def has_signal(self) -> bool:
        return bool(
            self.risk_score > 0
            or self.summary
            or self.findings
            or self.flagged_segments
            or self.evidence_sources
        )


class SubScores(BaseModel):
    phishing: int = 0
    pii: int = 0
    privacy: int = 0


class PhishingRisk(BaseModel):
    score: int = 0
    level: str = "Low"
    flags: list[PhishingFlag] = Field(default_factory=list)
    lookalike_matches: list[LookalikeMatch] = Field(default_factory=list)
    applied_rules: list[dict] = Field(default_factory=list)


class PiiRisk(BaseModel):
    score: int = 0
    level: str = "Low"
    detections: list[PiiDetection] = Field(default_factory=list)
    masked_text: str = ""


class PrivacyRisk(BaseModel):
    score: int = 0
    level: str = "Low"
    audit: TrackerAudit = Field(default_factory=TrackerAudit)


class AnalyzedCounts(BaseModel):
    text_length: int = 0
    url_count: int = 0
    resource_count: int = 0


class FusedResult(BaseModel):
    risk_score: int
    verdict: str
    summary: str
    findings: list[str] = Field(default_factory=list)
    flagged_segments: list[str] = Field(default_factory=list)
    recommended_actions: list[str] = Field(default_factory=list)
    evidence_sources: list[EvidenceSource] = Field(default_factory=list)
    sub_scores: SubScores = Field(default_factory=SubScores)
    mode: str = "protect"
    input_type: InputType = InputType.text
    model: str = "protect-heuristics-v2"
    extracted_text: str = ""
    phishing_risk: PhishingRisk = Field(default_factory=PhishingRisk)
    pii_risk: PiiRisk = Field(default_factory=PiiRisk)
    privacy_risk: PrivacyRisk = Field(default_factory=PrivacyRisk)
    analyzed: AnalyzedCounts = Field(default_factory=AnalyzedCounts)
