from __future__ import annotations

import re
from typing import Iterable

from ..models.config import Severity
from ..models.results import LookalikeMatch
from ..utils.domains import DEFAULT_TABLES, ReferenceTables, alnum, is_ipv4, levenshtein, registrable_domain
from ..utils.normalize import hostname_of

MAX_BRAND_EDIT_DISTANCE = 2


def _host_checks(url: str, hostname: str, tables: ReferenceTables) -> list[LookalikeMatch]:
    registrable = registrable_domain(hostname, tables.multi_label_suffixes)
    labels = registrable.split(".")
    tld = ".".join(labels[1:])
    sld = labels[0] or hostname
    matches = []

    def add(reason: str, severity: Severity) -> None:
        matches.append(LookalikeMatch(source_url=url, hostname=hostname, reason=reason, severity=severity))

    if hostname.startswith("xn--"):
        add("Punycode domain detected (possible lookalike Unicode characters).", Severity.high)
    if is_ipv4(hostname):
        add("URL uses a raw IP address instead of a domain.", Severity.medium)
    if tld in tables.suspicious_tlds:
        add(f"Uncommon or high-risk top-level domain (.{tld}).", Severity.medium)
    if re.search(r"[0-9]", sld) or "-" in sld:
        add("Domain includes digits or hyphens (common in phishing kits).", Severity.low)

    normalized_sld = alnum(sld)
    for brand, official_domains in tables.brand_domains.items():
        normalized_brand = alnum(brand)
        if not normalized_brand or not normalized_sld:
            continue
        if _is_official(hostname, official_domains):
            continue
        if normalized_brand in hostname:
            add(f"Domain references {brand} but does not match official domains.", Severity.high)
        distance = _brand_distance(sld, normalized_brand)
        if distance is not None:
            add(f"Domain looks similar to {brand} (edit distance {distance}).", Severity.high)
    return matches


def _is_official(hostname: str, official_domains: Iterable[str]) -> bool:
    return any(hostname == domain or hostname.endswith(f".{domain}") for domain in official_domains)


def _brand_distance(sld: str, brand: str) -> int | None:
    """Smallest non-zero edit distance within range between the brand and the label.

    The whole label is compared, and so is each hyphen-separated token of at
    least four characters, so ``paypa1-secure`` still resolves to ``paypal``.
    """
    candidates = {alnum(sld)}
    candidates.update(alnum(token) for token in sld.split("-") if len(alnum(token)) >= 4)
    distances = [
        levenshtein(candidate, brand)
        for candidate in candidates
        if candidate and candidate != brand
    ]
    in_range = [d for d in distances if 0 < d <= MAX_BRAND_EDIT_DISTANCE]
    return min(in_range) if in_range else None


def analyze_urls(urls: Iterable[str], tables: ReferenceTables = DEFAULT_TABLES) -> list[LookalikeMatch]:
    matches: list[LookalikeMatch] = []
    for url in urls:
        hostname = hostname_of(url)
        if not hostname:
            continue
        matches.extend(_host_checks(url, hostname, tables))

    seen = set()
    unique = []
    for match in matches:
        key = (match.source_url, match.reason)
        if key not in seen:
            seen.add(key)
            unique.append(match)
    return unique
