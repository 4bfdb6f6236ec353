from __future__ import annotations

import re

from ..models.config import Severity
from ..models.results import PhishingCategory, PhishingFlag

URGENCY_PATTERNS = [
    r"urgent",
    r"immediately",
    r"action required",
    r"within (?:24|48) hours",
    r"final notice",
    r"final reminder",
    r"last warning",
    r"by (?:\w{3},?\s*)?\d{1,2}\s+\w{3}\s+\d{4}",
    r"suspend(?:ed|ing)",
    r"account (?:locked|limited|suspended)",
    r"data (?:will be|is) (?:deleted|removed)",
    r"permanently removed",
]

CREDENTIAL_PATTERNS = [
    r"password",
    r"login",
    r"sign in",
    r"verification code",
    r"one[- ]time code",
    r"ssn|social security",
    r"bank account",
    r"routing number",
    r"credit card",
]

PAYMENT_PATTERNS = [
    r"wire transfer",
    r"gift card",
    r"crypto",
    r"bitcoin|ethereum|usdt",
    r"payment required",
    r"invoice",
    r"update payment",
    r"payment method (?:has )?expired",
    r"renew(?:al)?",
    r"subscription",
]

CALL_TO_ACTION_PATTERNS = [
    r"click here",
    r"tap here",
    r"open the link",
    r"verify now",
]

DATA_LOSS_PATTERNS = [
    r"what you could lose",
    r"to prevent data loss",
    r"secure my data",
    r"data (?:is|will be) (?:removed|deleted)",
]

# Declaration order is the order flags are reported in.
CATEGORY_RULES: tuple[tuple[PhishingCategory, str, Severity, tuple[re.Pattern, ...]], ...] = tuple(
    (category, description, severity, tuple(re.compile(p, re.IGNORECASE) for p in patterns))
    for category, description, severity, patterns in (
        (
            PhishingCategory.urgency,
            "Message uses urgent or threatening language to prompt quick action.",
            Severity.medium,
            URGENCY_PATTERNS,
        ),
        (
            PhishingCategory.credential_request,
            "Message asks for passwords, codes, or sensitive account details.",
            Severity.high,
            CREDENTIAL_PATTERNS,
        ),
        (
            PhishingCategory.payment_pressure,
            "Message references transfers, crypto, or invoices that can indicate fraud.",
            Severity.high,
            PAYMENT_PATTERNS,
        ),
        (
            PhishingCategory.call_to_action,
            "Message encourages clicking a link, which is common in phishing.",
            Severity.medium,
            CALL_TO_ACTION_PATTERNS,
        ),
        (
            PhishingCategory.data_loss_threat,
            "Message uses data-loss fear to push immediate action.",
            Severity.high,
            DATA_LOSS_PATTERNS,
        ),
    )
)


def classify(text: str) -> list[PhishingFlag]:
    if not text:
        return []
    flags = []
    for category, description, severity, patterns in CATEGORY_RULES:
        if any(pattern.search(text) for pattern in patterns):
            flags.append(PhishingFlag(category=category, description=description, severity=severity))
    return flags


def categories(flags: list[PhishingFlag]) -> set[PhishingCategory]:
    return {flag.category for flag in flags}
