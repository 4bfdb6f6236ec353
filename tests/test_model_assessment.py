import asyncio
import json

import pytest

from content_risk.models.config import EngineConfig, InputType, VerdictMode
from content_risk.models.results import ModelAssessment
from content_risk.modules.model_assessment import assess, build_prompt, coerce_assessment, extract_json_string
from content_risk.utils.http import ExternalServiceError


class _Resp:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no payload")
        return self._payload


class _Http:
    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    async def post(self, url, json=None, headers=None, timeout_seconds=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout_seconds})
        return self.responses.pop(0)


def _model_payload(body, grounding=None):
    candidate = {"content": {"parts": [{"text": body}]}}
    if grounding is not None:
        candidate["groundingMetadata"] = grounding
    return {"candidates": [candidate]}


def test_extract_json_from_fences_and_prose():
    assert extract_json_string('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert extract_json_string('Sure, here you go: {"a": 1} hope it helps') == '{"a": 1}'
    assert extract_json_string("no json") == "no json"


def test_coercion_defaults_and_aliases():
    raw = {
        "veracityIndex": "87.6",
        "keyFindings": ["Spoofed sender", " ", 3],
        "fakeParts": "not a list",
        "evidenceSources": [{"title": "T", "url": "https://e.example.com", "snippet": "S"}, {"title": "missing"}],
    }
    assessment = coerce_assessment(raw, None, EngineConfig())
    assert assessment.risk_score == 88
    assert assessment.findings == ["Spoofed sender"]
    assert assessment.flagged_segments == []
    assert len(assessment.evidence_sources) == 1
    assert assessment.verdict == "High Risk"


def test_score_coercion_rejects_bad_values():
    assert ModelAssessment(risk_score="abc").risk_score == 0
    assert ModelAssessment(risk_score=150).risk_score == 100
    assert ModelAssessment(risk_score=-4).risk_score == 0
    assert ModelAssessment(risk_score=True).risk_score == 0
    assert ModelAssessment(risk_score=float("nan")).risk_score == 0


def test_list_fields_are_capped():
    assessment = ModelAssessment(findings=[f"f{i}" for i in range(20)])
    assert len(assessment.findings) == 12


def test_grounded_evidence_takes_precedence():
    grounding = {
        "groundingChunks": [{"web": {"uri": "https://src.example.com/a", "title": "Source A"}}],
        "groundingSupports": [{"segment": {"text": "Claim text"}, "groundingChunkIndices": [0]}],
    }
    raw = {"riskScore": 10, "evidenceSources": [{"title": "Model", "url": "https://m.example.com", "snippet": "x"}]}
    assessment = coerce_assessment(raw, _model_payload("{}", grounding), EngineConfig())
    assert [source.url for source in assessment.evidence_sources] == ["https://src.example.com/a"]
    assert assessment.evidence_sources[0].snippet == "Claim text"


def test_prompt_follows_verdict_mode():
    assert "Identity Guard" in build_prompt(VerdictMode.protect)
    assert "Veracity Engine" in build_prompt(VerdictMode.verify)


def test_assess_parses_fenced_response():
    body = '```json\n{"veracityIndex": 72, "verdict": "High Risk", "summary": "Scam."}\n```'
    http = _Http([_Resp(payload=_model_payload(body))])
    config = EngineConfig(gemini_api_key="key", model_timeout_seconds=3.0)
    assessment = asyncio.run(assess("Click here now", InputType.text, config, http))
    assert assessment.risk_score == 72
    assert assessment.summary == "Scam."
    assert assessment.model == "gemini-1.5-flash"
    assert http.calls[0]["timeout"] == 3.0
    assert http.calls[0]["json"]["tools"] == [{"google_search": {}}]


def test_assess_retries_with_legacy_search_tool():
    rejected = _Resp(status_code=400, payload={"error": {"message": 'Unknown name "google_search"'}})
    accepted = _Resp(payload=_model_payload(json.dumps({"veracityIndex": 40})))
    http = _Http([rejected, accepted])
    assessment = asyncio.run(assess("text", InputType.text, EngineConfig(gemini_api_key="key"), http))
    assert len(http.calls) == 2
    assert http.calls[1]["json"]["tools"] == [{"google_search_retrieval": {}}]
    assert assessment.risk_score == 40


def test_assess_errors_are_typed():
    with pytest.raises(ExternalServiceError) as missing:
        asyncio.run(assess("text", InputType.text, EngineConfig(), _Http([])))
    assert missing.value.status == 500

    upstream = _Http([_Resp(status_code=503, payload={"error": {"message": "overloaded"}})])
    with pytest.raises(ExternalServiceError) as failed:
        asyncio.run(assess("text", InputType.text, EngineConfig(gemini_api_key="key"), upstream))
    assert failed.value.status == 502
    assert str(failed.value) == "overloaded"

    garbage = _Http([_Resp(payload=_model_payload("not json at all"))])
    with pytest.raises(ExternalServiceError):
        asyncio.run(assess("text", InputType.text, EngineConfig(gemini_api_key="key"), garbage))


def test_assess_image_requires_data_url():
    with pytest.raises(ExternalServiceError) as bad:
        asyncio.run(assess("https://example.com/a.png", InputType.image, EngineConfig(gemini_api_key="k"), _Http([])))
    assert bad.value.status == 400
