from __future__ import annotations

import re
from typing import Any, Iterable, Optional
from urllib.parse import urlsplit

import idna

from ..models.results import EvidenceSource

IMAGE_DATA_URL_RE = re.compile(r"^data:image/[a-z0-9.+-]+;base64,", re.IGNORECASE)
LOOKS_LIKE_URL_RE = re.compile(r"^(?:https?://|www\.)", re.IGNORECASE)
HTTP_TOKEN_RE = re.compile(r"https?://[^\s)<>\"']+", re.IGNORECASE)
WWW_TOKEN_RE = re.compile(r"(?<![\w/.@-])www\.[^\s)<>\"']+", re.IGNORECASE)
TRAILING_PUNCT = ".,;:!?"
HOST_RE = re.compile(r"^[a-z0-9_.-]+$|^\[[0-9a-f:.]+\]$", re.IGNORECASE)


def normalize_whitespace(value: str) -> str:
    value = value.replace("\r", "\n")
    value = re.sub(r"[ \t\f\v]+", " ", value)
    value = re.sub(r"\n{3,}", "\n\n", value)
    return value.strip()


def normalize_text(value: str, max_chars: int = 12_000) -> str:
    return normalize_whitespace(value)[:max_chars]


def is_image_data_url(value: str) -> bool:
    return bool(IMAGE_DATA_URL_RE.match(value.strip()))


def looks_like_url(value: str) -> bool:
    return bool(LOOKS_LIKE_URL_RE.match(value.strip()))


def normalize_domain(domain: str) -> Optional[str]:
    value = domain.strip().lower()
    value = re.sub(r"^https?://", "", value)
    if value.startswith("www."):
        value = value[4:]
    value = value.split("/")[0].strip().rstrip(".")
    return value or None


def ascii_host(host: str) -> Optional[str]:
    """IDNA-encode an internationalized host name; None when it cannot be encoded."""
    try:
        return idna.encode(host, uts46=True).decode("ascii")
    except idna.IDNAError:
        return None


def normalize_url(raw_url: str) -> Optional[str]:
    """Repair a missing scheme and return the canonical URL, or None when unparseable."""
    trimmed = raw_url.strip()
    if not trimmed:
        return None
    if trimmed.startswith("//"):
        candidate = f"https:{trimmed}"
    elif re.match(r"^https?://", trimmed, re.IGNORECASE):
        candidate = trimmed
    else:
        candidate = f"https://{trimmed}"

    if any(ch.isspace() for ch in candidate):
        return None
    try:
        parts = urlsplit(candidate)
        host = parts.hostname
        port = parts.port
    except ValueError:
        return None
    if host and not host.isascii():
        host = ascii_host(host)
    if not host or not HOST_RE.match(host) or ".." in host:
        return None

    scheme = parts.scheme.lower()
    netloc = host.lower()
    if port is not None and port != {"http": 80, "https": 443}.get(scheme):
        netloc = f"{netloc}:{port}"
    if parts.username:
        userinfo = parts.username
        if parts.password:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    url = f"{scheme}://{netloc}{parts.path or '/'}"
    if parts.query:
        url += f"?{parts.query}"
    if parts.fragment:
        url += f"#{parts.fragment}"
    return url


def hostname_of(url: str) -> Optional[str]:
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    return host.lower() if host else None


def extract_urls(text: str) -> list[str]:
    """Raw URL-looking tokens: explicit http(s) links first, then bare www. hosts."""
    if not text:
        return []
    tokens = HTTP_TOKEN_RE.findall(text) + WWW_TOKEN_RE.findall(text)
    return [token.rstrip(TRAILING_PUNCT) for token in tokens]


def dedupe_urls(candidates: Iterable[str]) -> list[str]:
    seen = set()
    out = []
    for raw in candidates:
        url = normalize_url(raw)
        if url and url not in seen:
            seen.add(url)
            out.append(url)
    return out


def read_string_array(value: Any, max_items: int = 200) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    items = []
    for entry in value:
        if not isinstance(entry, str):
            continue
        trimmed = entry.strip()
        if not trimmed:
            continue
        items.append(trimmed)
        if len(items) >= max_items:
            break
    return items


def merge_unique_strings(primary: Iterable[str], secondary: Iterable[str], max_items: int) -> list[str]:
    merged: list[str] = []
    seen = set()
    for value in [*primary, *secondary]:
        normalized = value.strip()
        if not normalized or normalized.lower() in seen:
            continue
        seen.add(normalized.lower())
        merged.append(normalized)
        if len(merged) >= max_items:
            break
    return merged


def merge_evidence_sources(
    primary: Iterable[EvidenceSource], secondary: Iterable[EvidenceSource], max_items: int = 8
) -> list[EvidenceSource]:
    merged: list[EvidenceSource] = []
    seen = set()
    for source in [*primary, *secondary]:
        title, url, snippet = source.title.strip(), source.url.strip(), source.snippet.strip()
        if not title or not url or not snippet:
            continue
        key = normalize_url(url) or url
        if key in seen:
            continue
        seen.add(key)
        merged.append(EvidenceSource(title=title, url=url, snippet=snippet))
        if len(merged) >= max_items:
            break
    return merged
