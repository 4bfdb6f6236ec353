from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from ..models.config import EngineConfig, InputType
from ..models.results import AnalysisRequest, AnalyzedCounts, FusedResult, ModelAssessment
from ..modules import domain_reputation, fusion, model_assessment, ocr, phishing_flags, pii, tracker_audit
from ..modules.input_normalizer import build_input, ensure_usable, read_raw_content
from ..pipeline.context import AnalysisContext
from ..utils.http import HttpClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _degrade(name: str, coro: Awaitable[T], warnings: list[str], prefix: str) -> Optional[T]:
    """Await an external call; on any failure record a warning and return None."""
    try:
        return await coro
    except Exception as exc:
        message = str(exc) or type(exc).__name__
        logger.warning("external call degraded", extra={"source": name, "error": message})
        warnings.append(f"{prefix}{message}")
        return None


async def run_analysis(
    request: AnalysisRequest,
    config: Optional[EngineConfig] = None,
    context: Optional[AnalysisContext] = None,
) -> FusedResult:
    """Analyze one request end to end.

    Raises ``NoUsableInputError`` when there is nothing to analyze. Every
    other problem, including OCR or model failures, resolves to a
    best-effort heuristic result.
    """
    config = config or (context.config if context else EngineConfig())
    context = context or AnalysisContext.build(config)

    analysis_input = ensure_usable(build_input(request, config))
    text = analysis_input.raw_text
    warnings: list[str] = []
    assessment: Optional[ModelAssessment] = None

    needs_http = analysis_input.has_image or config.use_model
    http = context.http_client
    owns_http = http is None and needs_http
    if owns_http:
        http = HttpClient(timeout_seconds=max(config.ocr_timeout_seconds, config.model_timeout_seconds))

    try:
        if analysis_input.has_image:
            ocr_text = await _degrade(
                "ocr",
                ocr.extract_text(analysis_input.image_payload, config, http),
                warnings,
                "OCR unavailable: ",
            )
            if ocr_text:
                text = ocr_text
            if config.use_model or not text:
                assessment = await _degrade(
                    "model",
                    model_assessment.assess(analysis_input.image_payload, InputType.image, config, http),
                    warnings,
                    "Model fallback used due to timeout: ",
                )
                if not text and assessment is not None and assessment.extracted_text:
                    text = assessment.extracted_text
        elif config.use_model:
            content = text or read_raw_content(request)
            assessment = await _degrade(
                "model",
                model_assessment.assess(content, request.input_type, config, http),
                warnings,
                "Model fallback used due to timeout: ",
            )
    finally:
        if owns_http:
            await http.close()

    if text != analysis_input.raw_text:
        analysis_input = build_input(request, config, text=text)

    urls = list(analysis_input.raw_url_candidates)
    resources = list(analysis_input.resource_urls)

    flags = phishing_flags.classify(analysis_input.raw_text)
    lookalikes = domain_reputation.analyze_urls(urls, context.tables)
    pii_result = pii.detect_and_mask(analysis_input.raw_text)
    audit = tracker_audit.audit(
        analysis_input.primary_url,
        resources,
        trackers=context.trackers,
        suffixes=context.tables.multi_label_suffixes,
    )

    result = fusion.fuse(
        flags,
        lookalikes,
        pii_result,
        audit,
        len(urls),
        assessment,
        config=config,
        input_type=request.input_type,
        image_without_text=analysis_input.has_image and not analysis_input.raw_text,
        warnings=warnings,
    )
    result.analyzed = AnalyzedCounts(
        text_length=len(analysis_input.raw_text),
        url_count=len(urls),
        resource_count=len(resources),
    )
    logger.info(
        "analysis complete",
        extra={
            "risk_score": result.risk_score,
            "verdict": result.verdict,
            "flags": len(flags),
            "lookalikes": len(lookalikes),
            "pii": pii_result.total_count,
            "trackers": audit.trackers_found_count,
            "degraded": len(warnings),
        },
    )
    return result


def run_analysis_sync(request: AnalysisRequest, config: Optional[EngineConfig] = None) -> FusedResult:
    return asyncio.run(run_analysis(request, config))
