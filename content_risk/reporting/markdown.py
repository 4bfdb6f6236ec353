from __future__ import annotations

from datetime import datetime, timezone


def build_summary(result: dict) -> str:
    sub_scores = result.get("sub_scores", {})

    lines = ["# Content Risk Summary", "", f"Generated: {datetime.now(timezone.utc).isoformat()}", ""]
    lines.append(f"**{result.get('verdict', 'n/a')}** (risk score {result.get('risk_score', 'n/a')}/100)")
    lines.append("")
    lines.append(result.get("summary", ""))
    lines.append("")

    lines.append("## Scores")
    lines.append(f"- Phishing: {sub_scores.get('phishing', 'n/a')}")
    lines.append(f"- PII: {sub_scores.get('pii', 'n/a')}")
    lines.append(f"- Privacy: {sub_scores.get('privacy', 'n/a')}")
    lines.append("")

    sections = [
        ("Findings", result.get("findings", [])),
        ("Flagged Segments", result.get("flagged_segments", [])),
        ("Recommended Actions", result.get("recommended_actions", [])),
    ]
    for title, items in sections:
        lines.append(f"## {title}")
        if not items:
            lines.append("- None.")
        for item in items:
            lines.append(f"- {item}")
        lines.append("")

    lines.append("## Evidence")
    evidence = result.get("evidence_sources", [])
    if not evidence:
        lines.append("- None.")
    for source in evidence:
        lines.append(f"- [{source.get('title')}]({source.get('url')}): {source.get('snippet')}")

    return "\n".join(lines)
