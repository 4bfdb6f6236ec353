"""Client for the external model assessment.

The model is asked for a strict JSON object; whatever comes back is coerced
into a ``ModelAssessment`` with safe defaults rather than rejected.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional
from urllib.parse import quote

from ..models.config import EngineConfig, InputType, VerdictMode
from ..models.results import ModelAssessment
from ..utils.http import ExternalServiceError, HttpClient
from .fusion import verdict_for

logger = logging.getLogger(__name__)

ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent?key={key}"
DATA_URL_RE = re.compile(r"^data:(image/[a-z0-9.+-]+);base64,(.+)$", re.IGNORECASE | re.DOTALL)
MAX_EVIDENCE = 8


def build_prompt(mode: VerdictMode) -> str:
    role = "Veracity Engine" if mode == VerdictMode.verify else "Identity Guard"
    focus = (
        "- Focus on truthfulness and factual consistency."
        if mode == VerdictMode.verify
        else "- Focus on scam markers, privacy risks, and identity theft signals."
    )
    return "\n".join(
        [
            f"You are the {role} for a security platform.",
            "Analyze user input and return strict JSON only.",
            "Required JSON fields:",
            "{",
            '  "veracityIndex": number, // 0-100',
            '  "verdict": string,',
            '  "summary": string,',
            '  "extractedText": string, // OCR text if image, else echo concise analyzed content',
            '  "keyFindings": string[],',
            '  "fakeParts": string[], // suspicious, false, contradictory, or manipulative segments',
            '  "recommendedActions": string[],',
            '  "evidenceSources": [{ "title": string, "url": string, "snippet": string }]',
            "}",
            "Rules:",
            "- Return only valid JSON. No markdown.",
            "- veracityIndex must be integer 0-100.",
            "- fakeParts must quote or paraphrase suspicious sections from the input.",
            "- If evidence is unavailable, return an empty evidenceSources array.",
            focus,
        ]
    )


def parse_data_url(data_url: str) -> tuple[str, str]:
    match = DATA_URL_RE.match(data_url.strip())
    if not match:
        raise ExternalServiceError(400, "Image content must be a valid base64 data URL.")
    return match.group(1).lower(), re.sub(r"\s+", "", match.group(2))


def extract_json_string(text: str) -> str:
    trimmed = text.strip()
    if trimmed.startswith("```"):
        unfenced = re.sub(r"^```(?:json)?", "", trimmed, flags=re.IGNORECASE)
        unfenced = re.sub(r"```$", "", unfenced).strip()
        if unfenced.startswith("{") and unfenced.endswith("}"):
            return unfenced
    start = trimmed.find("{")
    end = trimmed.rfind("}")
    if start >= 0 and end > start:
        return trimmed[start : end + 1]
    return trimmed


def parse_model_text(payload: Any) -> str:
    try:
        parts = payload["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return ""
    if not isinstance(parts, list):
        return ""
    texts = [part.get("text") or "" for part in parts if isinstance(part, dict)]
    return "\n".join(text for text in texts if isinstance(text, str)).strip()


def grounded_evidence(metadata: Any) -> list[dict]:
    """Turn search-grounding chunks into evidence entries, with supporting snippets."""
    if not isinstance(metadata, dict):
        return []
    chunks = metadata.get("groundingChunks") or []
    supports = metadata.get("groundingSupports") or []

    snippets: dict[int, list[str]] = {}
    for support in supports if isinstance(supports, list) else []:
        if not isinstance(support, dict):
            continue
        segment = support.get("segment") or {}
        text = segment.get("text") if isinstance(segment, dict) else None
        text = text.strip() if isinstance(text, str) else ""
        if not text:
            continue
        for index in support.get("groundingChunkIndices") or []:
            if isinstance(index, int) and text not in snippets.setdefault(index, []):
                snippets[index].append(text)

    evidence: list[dict] = []
    seen = set()
    for index, chunk in enumerate(chunks if isinstance(chunks, list) else []):
        web = chunk.get("web") if isinstance(chunk, dict) else None
        if not isinstance(web, dict):
            continue
        url = web.get("uri").strip() if isinstance(web.get("uri"), str) else ""
        if not url or url in seen:
            continue
        title = web.get("title").strip() if isinstance(web.get("title"), str) else ""
        snippet = " ".join(snippets.get(index, [])).strip()
        evidence.append(
            {
                "title": title or "Grounded Web Source",
                "url": url,
                "snippet": snippet or "Grounded source retrieved for this analysis.",
            }
        )
        seen.add(url)
        if len(evidence) >= MAX_EVIDENCE:
            break
    return evidence


def coerce_assessment(raw: Any, payload: Any, config: EngineConfig, model: Optional[str] = None) -> ModelAssessment:
    raw = raw if isinstance(raw, dict) else {}
    grounded = []
    if isinstance(payload, dict):
        try:
            grounded = grounded_evidence(payload["candidates"][0].get("groundingMetadata"))
        except (KeyError, IndexError, TypeError, AttributeError):
            grounded = []

    assessment = ModelAssessment(
        risk_score=raw.get("veracityIndex", raw.get("riskScore")),
        verdict=raw.get("verdict"),
        summary=raw.get("summary"),
        extracted_text=raw.get("extractedText"),
        findings=raw.get("keyFindings", raw.get("findings")),
        flagged_segments=raw.get("fakeParts", raw.get("flaggedSegments")),
        recommended_actions=raw.get("recommendedActions"),
        evidence_sources=grounded or raw.get("evidenceSources"),
        model=model,
    )
    if assessment.verdict is None:
        assessment.verdict = verdict_for(assessment.risk_score, config.verdict_mode, config.weights)
    return assessment


def _api_error_message(resp) -> str:
    message = "Model analysis request failed."
    try:
        data = resp.json()
        detail = data.get("error", {}).get("message")
        if isinstance(detail, str) and detail:
            message = detail
    except (ValueError, AttributeError):
        if resp.text.strip():
            message = resp.text.strip()
    return message


async def assess(
    content: str,
    input_type: InputType,
    config: EngineConfig,
    http: HttpClient,
) -> ModelAssessment:
    if not content or not content.strip():
        raise ExternalServiceError(400, "Missing analysis content.")
    api_key = (config.gemini_api_key or "").strip().strip("'\"")
    if not api_key:
        raise ExternalServiceError(500, "Missing GEMINI_API_KEY for analysis.")

    parts: list[dict] = [{"text": build_prompt(config.verdict_mode)}]
    if input_type == InputType.image:
        mime_type, data = parse_data_url(content)
        parts.append({"text": "Analyze this uploaded image for factual credibility and suspicious content."})
        parts.append({"inline_data": {"mime_type": mime_type, "data": data}})
    else:
        parts.append({"text": f"Input type: {input_type.value}\nUser content:\n{content.strip()}"})

    url = ENDPOINT.format(model=quote(config.gemini_model, safe=""), key=quote(api_key, safe=""))

    async def _call(tools: list[dict]):
        body = {
            "contents": [{"role": "user", "parts": parts}],
            "tools": tools,
            "generationConfig": {"temperature": 0.1},
        }
        return await http.post(
            url,
            json=body,
            headers={"Content-Type": "application/json"},
            timeout_seconds=config.model_timeout_seconds,
        )

    resp = await _call([{"google_search": {}}])
    if resp.status_code == 400:
        lowered = _api_error_message(resp).lower()
        if "google_search" in lowered or "unknown name" in lowered:
            resp = await _call([{"google_search_retrieval": {}}])

    if resp.status_code >= 400:
        message = _api_error_message(resp)
        logger.warning("model API error", extra={"status": resp.status_code, "error": message[:500]})
        raise ExternalServiceError(502 if resp.status_code >= 500 else resp.status_code, message)

    try:
        payload = resp.json()
    except ValueError as exc:
        raise ExternalServiceError(502, "Model returned a non-JSON response.") from exc

    text = parse_model_text(payload)
    if not text:
        raise ExternalServiceError(502, "Model returned an empty response.")
    try:
        raw = json.loads(extract_json_string(text))
    except json.JSONDecodeError as exc:
        raise ExternalServiceError(502, "Model returned malformed JSON.") from exc

    return coerce_assessment(raw, payload, config, model=config.gemini_model)
