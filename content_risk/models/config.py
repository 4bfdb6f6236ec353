from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class InputType(str, Enum):
    text = "text"
    url = "url"
    image = "image"


class VerdictMode(str, Enum):
    protect = "protect"
    verify = "verify"


class Severity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class FusionWeights(BaseModel):
    """Every constant the fusion stage uses. Defaults are heuristic, not tuned."""

    severity_weights: dict[Severity, int] = Field(
        default_factory=lambda: {Severity.high: 34, Severity.medium: 22, Severity.low: 10}
    )
    lookalike_factor: float = 0.9
    urgency_cta_bonus: int = 12
    credential_cta_bonus: int = 15
    payment_cta_bonus: int = 10
    lookalike_and_flag_bonus: int = 10
    many_urls_bonus: int = 5
    many_urls_threshold: int = 3
    critical_floor: int = 97

    pii_per_hit: int = 18
    privacy_per_third_party: int = 8
    privacy_per_tracker: int = 18

    heuristic_phishing: float = 0.90
    heuristic_pii: float = 0.07
    heuristic_privacy: float = 0.03

    model_heuristic_share: float = 0.55
    model_share: float = 0.45

    url_floor: int = 1
    text_floor: int = 2
    image_without_text_score: int = 28

    protect_high: int = 65
    protect_medium: int = 35
    verify_real: int = 75
    verify_unverified: int = 40

    level_high: int = 70
    level_medium: int = 40

    def severity_weight(self, severity: Severity) -> int:
        return int(self.severity_weights.get(severity, 0))


class EngineConfig(BaseModel):
    max_text_chars: int = 12_000
    max_resources: int = 200
    verdict_mode: VerdictMode = VerdictMode.protect
    ocr_timeout_seconds: float = 9.0
    model_timeout_seconds: float = 9.0
    use_model: bool = False
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_vision_model: str = "gpt-4.1-mini"
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-flash"
    tracker_list_path: Optional[str] = None
    weights: FusionWeights = Field(default_factory=FusionWeights)

    def redacted(self) -> dict:
        data = self.model_dump(mode="json")
        for secret in ("openai_api_key", "gemini_api_key"):
            if data.get(secret):
                data[secret] = "***"
        return data
