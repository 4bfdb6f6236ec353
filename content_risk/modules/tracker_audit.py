from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional

from ..models.results import TrackerAudit, TrackerEntry, TrackerMatch
from ..utils.domains import MULTI_LABEL_SUFFIXES, registrable_domain
from ..utils.normalize import hostname_of, normalize_domain

logger = logging.getLogger(__name__)

DEFAULT_TRACKER_LIST = Path(__file__).resolve().parent.parent / "data" / "tracker_list.json"

FALLBACK_TRACKER_DOMAINS = (
    "google-analytics.com",
    "googletagmanager.com",
    "doubleclick.net",
    "facebook.net",
    "connect.facebook.net",
    "hotjar.com",
    "segment.com",
    "mixpanel.com",
    "amplitude.com",
    "clarity.ms",
)


def parse_tracker_entries(data: object) -> list[TrackerEntry]:
    if not isinstance(data, list):
        return []
    entries = []
    for item in data:
        if isinstance(item, str):
            domain = normalize_domain(item)
            if domain:
                entries.append(TrackerEntry(domain=domain))
            continue
        if not isinstance(item, dict) or not isinstance(item.get("domain"), str):
            continue
        domain = normalize_domain(item["domain"])
        if not domain:
            continue
        owner = item.get("owner")
        category = item.get("category")
        entries.append(
            TrackerEntry(
                domain=domain,
                owner=owner if isinstance(owner, str) else None,
                category=category if isinstance(category, str) else None,
            )
        )
    return entries


@lru_cache(maxsize=8)
def load_tracker_directory(path: Optional[str] = None) -> tuple[TrackerEntry, ...]:
    """Read the tracker directory, falling back to a built-in list on any problem."""
    source = Path(path) if path else DEFAULT_TRACKER_LIST
    try:
        entries = parse_tracker_entries(json.loads(source.read_text(encoding="utf-8")))
    except (OSError, ValueError) as exc:
        logger.warning("tracker list unavailable, using fallback", extra={"path": str(source), "error": str(exc)})
        entries = []
    if not entries:
        logger.warning("tracker list empty, using fallback", extra={"path": str(source)})
        return tuple(TrackerEntry(domain=domain) for domain in FALLBACK_TRACKER_DOMAINS)
    return tuple(entries)


def _primary_domain(primary_url: Optional[str], suffixes: frozenset[str]) -> Optional[str]:
    if not primary_url:
        return None
    host = hostname_of(primary_url)
    return registrable_domain(host, suffixes) if host else None


def audit(
    primary_url: Optional[str],
    resource_urls: Iterable[str],
    trackers: Optional[Iterable[TrackerEntry]] = None,
    suffixes: frozenset[str] = MULTI_LABEL_SUFFIXES,
) -> TrackerAudit:
    directory = tuple(trackers) if trackers is not None else load_tracker_directory()
    primary_domain = _primary_domain(primary_url, suffixes)

    third_party: list[str] = []
    matches: list[TrackerMatch] = []
    seen_matches = set()

    for resource_url in resource_urls:
        hostname = hostname_of(resource_url)
        if not hostname:
            continue
        if primary_domain and registrable_domain(hostname, suffixes) == primary_domain:
            continue
        if resource_url not in third_party:
            third_party.append(resource_url)

        for tracker in directory:
            tracker_domain = tracker.domain.lower()
            if hostname != tracker_domain and not hostname.endswith(f".{tracker_domain}"):
                continue
            key = (hostname, tracker_domain, resource_url)
            if key in seen_matches:
                continue
            seen_matches.add(key)
            matches.append(
                TrackerMatch(
                    resource_url=resource_url,
                    hostname=hostname,
                    tracker_domain=tracker_domain,
                    owner=tracker.owner,
                    category=tracker.category,
                )
            )

    return TrackerAudit(
        primary_domain=primary_domain,
        third_party_resources=third_party,
        tracker_matches=matches,
        trackers_found_count=len({match.tracker_domain for match in matches}),
        third_party_count=len(third_party),
    )
