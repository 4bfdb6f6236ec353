"""Static reference tables and domain helpers shared by the URL analyzers.

The tables are read-only: they are built once at import time as frozensets and
mapping proxies, and handed to analyzers through ``ReferenceTables``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

IPV4_RE = re.compile(r"^\d{1,3}(?:\.\d{1,3}){3}$")

MULTI_LABEL_SUFFIXES = frozenset(
    {
        "co.uk",
        "org.uk",
        "ac.uk",
        "gov.uk",
        "co.jp",
        "ne.jp",
        "or.jp",
        "com.au",
        "net.au",
        "org.au",
        "com.br",
        "com.mx",
        "com.tr",
        "com.sg",
        "com.hk",
        "com.tw",
        "com.my",
        "co.in",
        "com.ng",
        "co.za",
    }
)

SUSPICIOUS_TLDS = frozenset(
    {"zip", "mov", "xyz", "top", "click", "link", "live", "work", "shop", "gq", "cf", "tk", "ml"}
)

BRAND_DOMAINS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "paypal": ("paypal.com",),
        "google": ("google.com",),
        "gmail": ("gmail.com",),
        "apple": ("apple.com", "icloud.com"),
        "amazon": ("amazon.com",),
        "microsoft": ("microsoft.com", "outlook.com", "live.com"),
        "facebook": ("facebook.com",),
        "instagram": ("instagram.com",),
        "netflix": ("netflix.com",),
        "chase": ("chase.com",),
        "wells": ("wellsfargo.com",),
        "bankofamerica": ("bankofamerica.com",),
        "capitalone": ("capitalone.com",),
        "venmo": ("venmo.com",),
        "zelle": ("zellepay.com",),
        "cashapp": ("cash.app",),
        "linkedin": ("linkedin.com",),
        "discord": ("discord.com",),
        "roblox": ("roblox.com",),
        "steam": ("steampowered.com",),
    }
)


@dataclass(frozen=True)
class ReferenceTables:
    multi_label_suffixes: frozenset[str] = MULTI_LABEL_SUFFIXES
    suspicious_tlds: frozenset[str] = SUSPICIOUS_TLDS
    brand_domains: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: BRAND_DOMAINS)


DEFAULT_TABLES = ReferenceTables()


def registrable_domain(hostname: str, suffixes: frozenset[str] = MULTI_LABEL_SUFFIXES) -> str:
    """Return the registrant-controlled part of a host name.

    ``sub.example.com`` -> ``example.com``; ``shop.example.co.uk`` ->
    ``example.co.uk``. Hosts with two or fewer labels are returned as-is.
    """
    host = hostname.lower().rstrip(".")
    parts = [part for part in host.split(".") if part]
    if len(parts) <= 2:
        return host
    last_two = ".".join(parts[-2:])
    if last_two in suffixes:
        return ".".join(parts[-3:])
    return last_two


def is_ipv4(hostname: str) -> bool:
    return bool(IPV4_RE.match(hostname))


def levenshtein(a: str, b: str) -> int:
    """Classic insert/delete/substitute edit distance, all costs 1."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def alnum(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "", value.lower())
