from __future__ import annotations

from typing import Optional

from ..models.config import EngineConfig, InputType
from ..models.results import AnalysisInput, AnalysisRequest
from ..utils.normalize import (
    dedupe_urls,
    extract_urls,
    is_image_data_url,
    looks_like_url,
    normalize_text,
    normalize_url,
    read_string_array,
)


class NoUsableInputError(ValueError):
    pass


def read_text(request: AnalysisRequest, max_chars: int = 12_000) -> str:
    for candidate in (request.text, request.content):
        if not isinstance(candidate, str):
            continue
        normalized = normalize_text(candidate, max_chars)
        if is_image_data_url(normalized):
            continue
        if normalized:
            return normalized
    return ""


def read_raw_content(request: AnalysisRequest) -> str:
    for candidate in (request.content, request.text):
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return ""


def image_payload(request: AnalysisRequest) -> Optional[str]:
    raw = read_raw_content(request)
    if request.input_type == InputType.image and is_image_data_url(raw):
        return raw
    return None


def collect_urls(request: AnalysisRequest, text: str) -> list[str]:
    candidates = [
        value
        for value in (request.url, request.content)
        if isinstance(value, str) and looks_like_url(value)
    ]
    candidates.extend(extract_urls(text))
    return dedupe_urls(candidates)


def collect_resource_urls(request: AnalysisRequest, text: str, max_items: int = 200) -> list[str]:
    candidates = read_string_array(request.resources, max_items)
    candidates.extend(extract_urls(text))
    return dedupe_urls(candidates)


def resolve_primary_url(request: AnalysisRequest, fallback_urls: list[str]) -> Optional[str]:
    for candidate in (request.page_url, request.url):
        if not isinstance(candidate, str):
            continue
        normalized = normalize_url(candidate)
        if normalized:
            return normalized
    return fallback_urls[0] if fallback_urls else None


def build_input(request: AnalysisRequest, config: EngineConfig, text: Optional[str] = None) -> AnalysisInput:
    """Build the immutable analysis input.

    ``text`` overrides the request body text, e.g. with OCR output for images.
    """
    if text is None:
        text = read_text(request, config.max_text_chars)
    else:
        text = normalize_text(text, config.max_text_chars)

    urls = collect_urls(request, text)
    resources = collect_resource_urls(request, text, config.max_resources)
    primary = resolve_primary_url(request, urls or resources)

    return AnalysisInput(
        input_type=request.input_type,
        raw_text=text,
        raw_url_candidates=tuple(urls),
        resource_urls=tuple(resources),
        primary_url=primary,
        image_payload=image_payload(request),
    )


def ensure_usable(analysis_input: AnalysisInput) -> AnalysisInput:
    if analysis_input.is_empty:
        raise NoUsableInputError("Provide text, URL, or resource list for protection checks.")
    return analysis_input
