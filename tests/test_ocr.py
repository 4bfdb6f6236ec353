import asyncio

import pytest

from content_risk.models.config import EngineConfig
from content_risk.modules.ocr import extract_text
from content_risk.utils.http import ExternalServiceError

DATA_URL = "data:image/png;base64,AAAA"


class _Resp:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no payload")
        return self._payload


class _Http:
    def __init__(self, response):
        self.response = response
        self.calls = []

    async def post(self, url, json=None, headers=None, timeout_seconds=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout_seconds})
        return self.response


def test_ocr_returns_trimmed_text():
    http = _Http(_Resp(payload={"choices": [{"message": {"content": "  Verify now \n"}}]}))
    config = EngineConfig(openai_api_key="sk-test", openai_base_url="https://llm.example.com/v1/")
    assert asyncio.run(extract_text(DATA_URL, config, http)) == "Verify now"
    call = http.calls[0]
    assert call["url"] == "https://llm.example.com/v1/chat/completions"
    assert call["headers"]["Authorization"] == "Bearer sk-test"
    assert call["json"]["messages"][1]["content"][1]["image_url"]["url"] == DATA_URL


def test_ocr_missing_key():
    with pytest.raises(ExternalServiceError) as exc:
        asyncio.run(extract_text(DATA_URL, EngineConfig(), _Http(None)))
    assert exc.value.status == 500


def test_ocr_upstream_failure_maps_to_bad_gateway():
    with pytest.raises(ExternalServiceError) as exc:
        asyncio.run(extract_text(DATA_URL, EngineConfig(openai_api_key="k"), _Http(_Resp(status_code=503))))
    assert exc.value.status == 502


def test_ocr_unexpected_payload_yields_empty_text():
    http = _Http(_Resp(payload={"choices": []}))
    assert asyncio.run(extract_text(DATA_URL, EngineConfig(openai_api_key="k"), http)) == ""
