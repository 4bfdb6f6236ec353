from __future__ import annotations

from typing import Iterable, Optional

from ..models.config import EngineConfig, FusionWeights, InputType, VerdictMode
from ..models.results import (
    EvidenceSource,
    FusedResult,
    LookalikeMatch,
    ModelAssessment,
    PhishingCategory,
    PhishingFlag,
    PhishingRisk,
    PiiDetection,
    PiiResult,
    PiiRisk,
    PrivacyRisk,
    SubScores,
    TrackerAudit,
)
from ..utils.normalize import merge_evidence_sources, merge_unique_strings

HEURISTICS_LABEL = "protect-heuristics-v2"

MAX_FINDINGS = 8
MAX_FLAGGED_SEGMENTS = 12
MAX_ACTIONS = 6
MAX_EVIDENCE = 8

IMAGE_NO_TEXT_FINDING = "Unable to extract readable text from the uploaded image for a full scam analysis."
IMAGE_NO_TEXT_ACTION = "Retry with a clearer screenshot or paste the suspicious text directly."
IMAGE_NO_TEXT_SEGMENT = (
    "Unable to extract readable text from the uploaded image; suspicious phrases could not be evaluated."
)
IMAGE_NO_TEXT_SUMMARY = (
    "Image text extraction was incomplete. Returning a cautionary risk score pending clearer input."
)


def clamp(value: float, low: int = 0, high: int = 100) -> int:
    return int(max(low, min(high, value)))


def risk_level(score: int, weights: FusionWeights) -> str:
    if score >= weights.level_high:
        return "High"
    if score >= weights.level_medium:
        return "Medium"
    return "Low"


def verdict_for(score: int, mode: VerdictMode, weights: FusionWeights) -> str:
    if mode == VerdictMode.verify:
        if score >= weights.verify_real:
            return "Likely Real"
        if score >= weights.verify_unverified:
            return "Unverified"
        return "Likely Fake"
    if score >= weights.protect_high:
        return "High Risk"
    if score >= weights.protect_medium:
        return "Medium Risk"
    return "Low Risk"


def _score_from_rules(base: int, rules: list[dict]) -> tuple[int, list[dict]]:
    score = base
    applied: list[dict] = []
    for rule in rules:
        if rule["triggered"]:
            score += int(rule["bonus"])
            applied.append({"id": rule["id"], "label": rule["label"], "bonus": rule["bonus"]})
    return clamp(score), applied


def score_phishing(
    flags: list[PhishingFlag],
    lookalikes: list[LookalikeMatch],
    url_count: int,
    weights: FusionWeights,
) -> tuple[int, list[dict]]:
    base = sum(weights.severity_weight(flag.severity) for flag in flags)
    base += sum(round(weights.severity_weight(match.severity) * weights.lookalike_factor) for match in lookalikes)

    present = {flag.category for flag in flags}
    has_cta = PhishingCategory.call_to_action in present
    rules = [
        {
            "id": "phishing.urgency_with_cta",
            "label": "Urgent language combined with a call to action",
            "bonus": weights.urgency_cta_bonus,
            "triggered": has_cta and PhishingCategory.urgency in present,
        },
        {
            "id": "phishing.credential_with_cta",
            "label": "Credential request combined with a call to action",
            "bonus": weights.credential_cta_bonus,
            "triggered": has_cta and PhishingCategory.credential_request in present,
        },
        {
            "id": "phishing.payment_with_cta",
            "label": "Payment pressure combined with a call to action",
            "bonus": weights.payment_cta_bonus,
            "triggered": has_cta and PhishingCategory.payment_pressure in present,
        },
        {
            "id": "phishing.lookalike_with_flags",
            "label": "Suspicious URLs alongside phishing language",
            "bonus": weights.lookalike_and_flag_bonus,
            "triggered": bool(lookalikes) and bool(flags),
        },
        {
            "id": "phishing.many_urls",
            "label": f"{weights.many_urls_threshold} or more URLs present",
            "bonus": weights.many_urls_bonus,
            "triggered": url_count >= weights.many_urls_threshold,
        },
    ]
    return _score_from_rules(base, rules)


def has_critical_pattern(flags: list[PhishingFlag]) -> bool:
    present = {flag.category for flag in flags}
    return (
        PhishingCategory.urgency in present
        and PhishingCategory.call_to_action in present
        and PhishingCategory.data_loss_threat in present
        and (PhishingCategory.payment_pressure in present or PhishingCategory.credential_request in present)
    )


def score_pii(total_count: int, weights: FusionWeights) -> int:
    return clamp(total_count * weights.pii_per_hit)


def score_privacy(tracker_audit: TrackerAudit, weights: FusionWeights) -> int:
    return clamp(
        tracker_audit.third_party_count * weights.privacy_per_third_party
        + tracker_audit.trackers_found_count * weights.privacy_per_tracker
    )


def heuristic_index(sub_scores: SubScores, flags: list[PhishingFlag], weights: FusionWeights) -> int:
    index = clamp(
        round(
            sub_scores.phishing * weights.heuristic_phishing
            + sub_scores.pii * weights.heuristic_pii
            + sub_scores.privacy * weights.heuristic_privacy
        )
    )
    if has_critical_pattern(flags):
        index = max(index, weights.critical_floor)
    return clamp(index)


def build_summary(verdict: str, flag_count: int, pii_count: int, trackers_found: int) -> str:
    return (
        f"{verdict} signal based on scam and privacy heuristics. "
        f"Detected {flag_count} phishing indicator(s), {pii_count} PII match(es), "
        f"and {trackers_found} tracker domain(s)."
    )


def build_findings(
    flags: list[PhishingFlag],
    lookalikes: list[LookalikeMatch],
    detections: list[PiiDetection],
    tracker_audit: TrackerAudit,
) -> list[str]:
    findings = []
    if flags:
        findings.append(f"Phishing heuristics flagged {len(flags)} suspicious pattern(s).")
    if lookalikes:
        findings.append(f"Detected {len(lookalikes)} lookalike or suspicious URL signal(s).")
    if detections:
        summary = ", ".join(f"{item.kind.value}:{item.count}" for item in detections)
        findings.append(f"PII patterns detected ({summary}).")
    if tracker_audit.trackers_found_count > 0:
        findings.append(
            f"Tracker audit matched {tracker_audit.trackers_found_count} tracker domain(s) "
            f"across {tracker_audit.third_party_count} third-party resource(s)."
        )
    if not findings:
        findings.append("No strong phishing, PII, or tracking indicators were detected.")
    return findings[:6]


def build_flagged_segments(
    flags: list[PhishingFlag], lookalikes: list[LookalikeMatch], detections: list[PiiDetection]
) -> list[str]:
    parts = [f"{flag.category.value}: {flag.description}" for flag in flags]
    parts.extend(f"URL {match.hostname} flagged: {match.reason}" for match in lookalikes)
    parts.extend(f"PII exposure risk: {item.kind.value} detected {item.count} time(s)." for item in detections)
    return parts[:10]


def build_actions(
    score: int,
    lookalikes: list[LookalikeMatch],
    detections: list[PiiDetection],
    tracker_audit: TrackerAudit,
    weights: FusionWeights,
) -> list[str]:
    actions = []
    if score >= weights.protect_high:
        actions.append("Avoid clicking links or sharing credentials until the source is independently verified.")
    if lookalikes:
        actions.append("Verify suspicious domains manually by navigating to official sites directly.")
    if detections:
        actions.append("Redact personal data and avoid sending sensitive identifiers in messages or forms.")
    if tracker_audit.trackers_found_count > 0:
        actions.append("Use privacy-focused browsing settings or tracker blocking extensions on risky pages.")
    if not actions:
        actions.append("Continue monitoring the source and re-scan if new content appears.")
    return actions[:5]


def build_evidence(lookalikes: list[LookalikeMatch], tracker_audit: TrackerAudit) -> list[EvidenceSource]:
    evidence = [
        EvidenceSource(title=f"Suspicious domain: {match.hostname}", url=match.source_url, snippet=match.reason)
        for match in lookalikes
    ]
    evidence.extend(
        EvidenceSource(
            title=f"Tracker detected: {match.tracker_domain}",
            url=match.resource_url,
            snippet=f"Loaded third-party resource from {match.hostname}.",
        )
        for match in tracker_audit.tracker_matches
    )
    return evidence[:MAX_EVIDENCE]


def _with_leading(item: str, items: list[str], cap: int) -> list[str]:
    return merge_unique_strings([item], items, cap)


def _with_trailing(items: list[str], extra: Iterable[str], cap: int) -> list[str]:
    extra = [value for value in extra if value]
    if not extra:
        return items
    keep = max(0, cap - len(extra))
    return merge_unique_strings(items[:keep], extra, cap)


def fuse(
    flags: list[PhishingFlag],
    lookalikes: list[LookalikeMatch],
    pii_result: PiiResult,
    tracker_audit: TrackerAudit,
    url_count: int,
    model_assessment: Optional[ModelAssessment] = None,
    *,
    config: Optional[EngineConfig] = None,
    input_type: InputType = InputType.text,
    image_without_text: bool = False,
    warnings: Iterable[str] = (),
) -> FusedResult:
    config = config or EngineConfig()
    weights = config.weights

    phishing, applied_rules = score_phishing(flags, lookalikes, url_count, weights)
    sub_scores = SubScores(
        phishing=phishing,
        pii=score_pii(pii_result.total_count, weights),
        privacy=score_privacy(tracker_audit, weights),
    )
    index = heuristic_index(sub_scores, flags, weights)
    verify = config.verdict_mode == VerdictMode.verify

    model_signal = model_assessment is not None and model_assessment.has_signal
    if not model_signal:
        if image_without_text:
            index = clamp(weights.image_without_text_score)
        elif index == 0:
            index = weights.url_floor if input_type == InputType.url else weights.text_floor
    if verify:
        # verify mode reports veracity, so heuristic risk is inverted; the model already reports veracity
        index = 100 - index
    if model_signal:
        index = clamp(
            round(index * weights.model_heuristic_share + model_assessment.risk_score * weights.model_share)
        )
    risk = 100 - index if verify else index

    verdict = verdict_for(index, config.verdict_mode, weights)
    model_findings = model_assessment.findings if model_assessment else []
    model_segments = model_assessment.flagged_segments if model_assessment else []
    model_actions = model_assessment.recommended_actions if model_assessment else []
    model_evidence = model_assessment.evidence_sources if model_assessment else []

    findings = merge_unique_strings(
        build_findings(flags, lookalikes, pii_result.detections, tracker_audit), model_findings, MAX_FINDINGS
    )
    segments = merge_unique_strings(
        build_flagged_segments(flags, lookalikes, pii_result.detections), model_segments, MAX_FLAGGED_SEGMENTS
    )
    actions = merge_unique_strings(
        build_actions(risk, lookalikes, pii_result.detections, tracker_audit, weights), model_actions, MAX_ACTIONS
    )
    evidence = merge_evidence_sources(build_evidence(lookalikes, tracker_audit), model_evidence, MAX_EVIDENCE)

    findings = _with_trailing(findings, warnings, MAX_FINDINGS)

    summary = build_summary(verdict, len(flags), pii_result.total_count, tracker_audit.trackers_found_count)
    if model_signal and model_assessment.summary:
        summary = model_assessment.summary
    elif image_without_text and not model_signal:
        summary = IMAGE_NO_TEXT_SUMMARY
        findings = _with_leading(IMAGE_NO_TEXT_FINDING, findings, MAX_FINDINGS)
        actions = _with_leading(IMAGE_NO_TEXT_ACTION, actions, MAX_ACTIONS)
        segments = _with_leading(IMAGE_NO_TEXT_SEGMENT, segments, MAX_FLAGGED_SEGMENTS)

    model_label = HEURISTICS_LABEL
    if model_assessment is not None and model_assessment.model:
        model_label = f"{model_assessment.model}+{HEURISTICS_LABEL}"

    return FusedResult(
        risk_score=index,
        verdict=verdict,
        summary=summary,
        findings=findings,
        flagged_segments=segments,
        recommended_actions=actions,
        evidence_sources=evidence,
        sub_scores=sub_scores,
        mode=config.verdict_mode.value,
        input_type=input_type,
        model=model_label,
        extracted_text=pii_result.masked_text,
        phishing_risk=PhishingRisk(
            score=sub_scores.phishing,
            level=risk_level(sub_scores.phishing, weights),
            flags=flags,
            lookalike_matches=lookalikes,
            applied_rules=applied_rules,
        ),
        pii_risk=PiiRisk(
            score=sub_scores.pii,
            level=risk_level(sub_scores.pii, weights),
            detections=pii_result.detections,
            masked_text=pii_result.masked_text,
        ),
        privacy_risk=PrivacyRisk(
            score=sub_scores.privacy,
            level=risk_level(sub_scores.privacy, weights),
            audit=tracker_audit,
        ),
    )
