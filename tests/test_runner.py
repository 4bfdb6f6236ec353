import asyncio
import json

import pytest

from content_risk.models.config import EngineConfig, InputType, VerdictMode
from content_risk.models.results import AnalysisRequest
from content_risk.modules import fusion
from content_risk.modules.input_normalizer import NoUsableInputError
from content_risk.modules.tracker_audit import load_tracker_directory
from content_risk.pipeline.context import AnalysisContext
from content_risk.pipeline.runner import run_analysis
from content_risk.utils.http import ExternalServiceError

IMAGE = "data:image/png;base64,AAAA"


class _Resp:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.text = ""

    def json(self):
        if self._payload is None:
            raise ValueError("no payload")
        return self._payload


class _Http:
    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    async def post(self, url, json=None, headers=None, timeout_seconds=None):
        self.calls.append(url)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _ocr_response(text):
    return _Resp(payload={"choices": [{"message": {"content": text}}]})


def _model_response(body):
    return _Resp(payload={"candidates": [{"content": {"parts": [{"text": json.dumps(body)}]}}]})


def _run(request, config=None, http=None):
    config = config or EngineConfig()
    context = AnalysisContext(config=config, trackers=load_tracker_directory(), http_client=http)
    return asyncio.run(run_analysis(request, config, context))


def _assert_in_range(result):
    for value in (result.risk_score, result.sub_scores.phishing, result.sub_scores.pii, result.sub_scores.privacy):
        assert isinstance(value, int)
        assert 0 <= value <= 100


def test_scam_text_scores_high():
    request = AnalysisRequest(
        text="URGENT: your account suspended. Click here and sign in with your password to prevent data loss."
    )
    result = _run(request)
    categories = [flag.category.value for flag in result.phishing_risk.flags]
    assert categories == ["Urgency & pressure", "Credential request", "Call-to-action link", "Data loss threat"]
    assert result.risk_score >= 97
    assert result.verdict == "High Risk"
    _assert_in_range(result)


def test_lookalike_url_only():
    result = _run(AnalysisRequest(input_type=InputType.url, url="https://paypa1-secure.com/login"))
    assert result.sub_scores.phishing == 40
    assert result.risk_score == 36
    assert result.verdict == "Medium Risk"
    assert any("paypal" in match.reason for match in result.phishing_risk.lookalike_matches)
    assert result.evidence_sources[0].title == "Suspicious domain: paypa1-secure.com"
    assert result.analyzed.url_count == 1


def test_pii_text_is_masked_in_output():
    result = _run(AnalysisRequest(text="Contact me at john.doe@example.com or 555-123-4567"))
    assert result.sub_scores.pii == 36
    assert result.risk_score == 3
    assert result.verdict == "Low Risk"
    assert "john.doe@example.com" not in result.extracted_text
    assert "j***e@example.com" in result.extracted_text
    assert "(***) ***-4567" in result.extracted_text


def test_page_resources_tracker_audit():
    request = AnalysisRequest(
        input_type=InputType.url,
        page_url="https://news.example.com",
        resources=["https://news.example.com/static/app.js", "https://google-analytics.com/collect"],
    )
    result = _run(request)
    audit = result.privacy_risk.audit
    assert audit.third_party_count == 1
    assert audit.trackers_found_count == 1
    assert result.sub_scores.privacy == 26
    assert result.risk_score == 1
    assert result.analyzed.resource_count == 2


def test_benign_text_gets_floor_score():
    result = _run(AnalysisRequest(text="Lunch at noon tomorrow? Bring the slides."))
    assert result.risk_score == 2
    assert result.verdict == "Low Risk"


def test_empty_input_rejected():
    with pytest.raises(NoUsableInputError):
        _run(AnalysisRequest(text="   "))


def test_image_text_comes_from_ocr():
    http = _Http([_ocr_response("URGENT: Click here to sign in with your password to prevent data loss.")])
    config = EngineConfig(openai_api_key="sk-test")
    result = _run(AnalysisRequest(input_type=InputType.image, content=IMAGE), config, http)
    assert len(http.calls) == 1
    assert result.input_type == InputType.image
    assert result.risk_score >= 97
    assert result.analyzed.text_length > 0


def test_image_failures_degrade_to_cautionary_result():
    http = _Http([_Resp(status_code=500)])
    config = EngineConfig(openai_api_key="sk-test")
    result = _run(AnalysisRequest(input_type=InputType.image, content=IMAGE), config, http)
    assert result.risk_score == 28
    assert result.findings[0] == fusion.IMAGE_NO_TEXT_FINDING
    assert "OCR unavailable: Vision OCR request failed." in result.findings
    assert any(item.startswith("Model fallback used due to timeout: ") for item in result.findings)
    _assert_in_range(result)


def test_image_model_fallback_supplies_text():
    http = _Http(
        [
            ExternalServiceError(504, "Request to api.openai.com timed out."),
            _model_response({"veracityIndex": 70, "extractedText": "Verify now to keep your account."}),
        ]
    )
    config = EngineConfig(openai_api_key="sk-test", gemini_api_key="g-test")
    result = _run(AnalysisRequest(input_type=InputType.image, content=IMAGE), config, http)
    assert "OCR unavailable: Request to api.openai.com timed out." in result.findings
    assert [flag.category.value for flag in result.phishing_risk.flags] == ["Call-to-action link"]
    assert result.risk_score == round(20 * 0.55 + 70 * 0.45)
    assert result.model == "gemini-1.5-flash+protect-heuristics-v2"


def test_model_assessment_fused_with_heuristics():
    http = _Http([_model_response({"veracityIndex": 80, "summary": "Model says risky.", "keyFindings": ["Model finding"]})])
    config = EngineConfig(use_model=True, gemini_api_key="g-test")
    result = _run(AnalysisRequest(text="Click here"), config, http)
    assert result.risk_score == 47
    assert result.verdict == "Medium Risk"
    assert result.summary == "Model says risky."
    assert "Model finding" in result.findings
    assert result.model == "gemini-1.5-flash+protect-heuristics-v2"


def test_model_failure_keeps_heuristic_result():
    http = _Http([_Resp(status_code=500, payload={"error": {"message": "backend down"}})])
    config = EngineConfig(use_model=True, gemini_api_key="g-test")
    result = _run(AnalysisRequest(text="Click here"), config, http)
    assert result.risk_score == 20
    assert result.model == "protect-heuristics-v2"
    assert result.findings[-1] == "Model fallback used due to timeout: backend down"


def test_account_takeover_message():
    text = (
        "Your account will be suspended immediately. Click here to verify your password "
        "within 24 hours or your data will be deleted."
    )
    result = _run(AnalysisRequest(text=text))
    categories = {flag.category.value for flag in result.phishing_risk.flags}
    assert {"Urgency & pressure", "Credential request", "Call-to-action link", "Data loss threat"} <= categories
    assert result.risk_score >= 97
    assert result.verdict == "High Risk"


def test_payment_pressure_critical_pattern():
    result = _run(AnalysisRequest(text="Final notice: click here to pay the invoice to prevent data loss."))
    assert result.risk_score >= 97


def test_verify_mode_reports_scam_as_fake():
    text = (
        "Your account will be suspended immediately. Click here to verify your password "
        "within 24 hours or your data will be deleted."
    )
    result = _run(AnalysisRequest(text=text), EngineConfig(verdict_mode=VerdictMode.verify))
    assert result.mode == "verify"
    assert result.risk_score <= 3
    assert result.verdict == "Likely Fake"


def test_unicode_lookalike_link_is_flagged():
    result = _run(AnalysisRequest(text="Sign in at https://\u0430pple.com/login"))
    assert result.analyzed.url_count == 1
    punycode = [m for m in result.phishing_risk.lookalike_matches if "Punycode" in m.reason]
    assert punycode
    assert punycode[0].hostname.startswith("xn--")
