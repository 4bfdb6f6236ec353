"""Detect and irreversibly mask personal data in free text.

Passes run in a fixed order (email, phone, SSN, payment card) over the
progressively masked text, so characters consumed by an earlier pass cannot
be counted again by a later one. Masked forms keep at most the last four
digits, and never contain enough digits to re-match any pattern.
"""

from __future__ import annotations

import re
from typing import Callable, Optional

from ..models.results import PiiDetection, PiiKind, PiiResult

MAX_EXAMPLES = 3

EMAIL_RE = re.compile(r"(?<![A-Z0-9._%+*-])[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
PHONE_RE = re.compile(r"(?<![\d*])(?:\+?1[-.\s]?)?(?:\(\d{3}\)|\d{3})[-.\s]?\d{3}[-.\s]?\d{4}(?!\d)")
SSN_RE = re.compile(r"\b\d{3}-\d{2}-\d{4}\b")
CARD_RE = re.compile(r"\b(?:\d[ -]*?){13,19}\b")


def mask_email(value: str) -> str:
    name, _, domain = value.partition("@")
    if not domain:
        return "[REDACTED_EMAIL]"
    if len(name) <= 2:
        safe_name = f"{name[:1]}*"
    else:
        safe_name = f"{name[0]}***{name[-1]}"
    return f"{safe_name}@{domain}"


def _last4(value: str) -> str:
    digits = re.sub(r"\D", "", value)
    return digits[-4:] or "****"


def mask_phone(value: str) -> str:
    return f"(***) ***-{_last4(value)}"


def mask_ssn(value: str) -> str:
    return f"***-**-{_last4(value)}"


def mask_credit_card(value: str) -> str:
    return f"**** **** **** {_last4(value)}"


def luhn_valid(digits: str) -> bool:
    if not digits or not digits.isdigit():
        return False
    total = 0
    for index, char in enumerate(reversed(digits)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def _card_mask(value: str) -> Optional[str]:
    digits = re.sub(r"\D", "", value)
    if not 13 <= len(digits) <= 19 or not luhn_valid(digits):
        return None
    return mask_credit_card(value)


def _run_pass(
    text: str,
    pattern: re.Pattern,
    masker: Callable[[str], Optional[str]],
    detection: PiiDetection,
) -> str:
    def replace(match: re.Match) -> str:
        original = match.group(0)
        masked = masker(original)
        if masked is None:
            return original
        detection.count += 1
        if len(detection.masked_examples) < MAX_EXAMPLES:
            detection.masked_examples.append(masked)
        return masked

    return pattern.sub(replace, text)


PASSES: tuple[tuple[PiiKind, re.Pattern, Callable[[str], Optional[str]]], ...] = (
    (PiiKind.email, EMAIL_RE, mask_email),
    (PiiKind.phone, PHONE_RE, mask_phone),
    (PiiKind.ssn, SSN_RE, mask_ssn),
    (PiiKind.credit_card, CARD_RE, _card_mask),
)


def detect_and_mask(text: str) -> PiiResult:
    if not text:
        return PiiResult()

    masked = text
    detections = []
    for kind, pattern, masker in PASSES:
        detection = PiiDetection(kind=kind)
        masked = _run_pass(masked, pattern, masker, detection)
        detections.append(detection)

    found = [item for item in detections if item.count > 0]
    return PiiResult(
        masked_text=masked,
        detections=found,
        total_count=sum(item.count for item in found),
    )
