from __future__ import annotations

import logging

from ..models.config import EngineConfig
from ..utils.http import ExternalServiceError, HttpClient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are an OCR engine. Extract all visible text. Preserve line breaks."
USER_PROMPT = "Extract all visible text from this screenshot. Return plain text only."
MAX_TOKENS = 1000


async def extract_text(data_url: str, config: EngineConfig, http: HttpClient) -> str:
    """Send an image data URL to an OpenAI-compatible vision endpoint and return its text."""
    if not data_url:
        raise ExternalServiceError(400, "Missing image data URL.")
    if not config.openai_api_key:
        raise ExternalServiceError(500, "Missing OPENAI_API_KEY for image OCR.")

    url = f"{config.openai_base_url.rstrip('/')}/chat/completions"
    headers = {"Authorization": f"Bearer {config.openai_api_key}", "Content-Type": "application/json"}
    body = {
        "model": config.openai_vision_model,
        "temperature": 0,
        "max_tokens": MAX_TOKENS,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": USER_PROMPT},
                    {"type": "image_url", "image_url": {"url": data_url}},
                ],
            },
        ],
    }

    resp = await http.post(url, json=body, headers=headers, timeout_seconds=config.ocr_timeout_seconds)
    if resp.status_code >= 400:
        logger.warning("vision OCR error", extra={"status": resp.status_code})
        status = 502 if resp.status_code >= 500 else resp.status_code
        raise ExternalServiceError(status, "Vision OCR request failed.")

    try:
        payload = resp.json()
        content = payload["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError):
        return ""
    return content.strip() if isinstance(content, str) else ""
